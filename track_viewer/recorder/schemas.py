"""
Decoding of recorder API payloads.

Every response body is checked here before it reaches the rest of the
pipeline. Failures raise RecorderDecodeError; callers decide whether that
propagates or degrades to an empty result.
"""
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Location point as returned by the recorder: lat, lon, tst, acc and
# whatever else the device reported.
LocationPoint = dict[str, Any]

# user -> ordered device names
DeviceRegistry = dict[str, list[str]]

# user -> device -> points ordered by tst
LocationHistory = dict[str, dict[str, list[LocationPoint]]]

# Optional point fields that the filters compute with
NUMERIC_FIELDS = ("lat", "lon", "acc")


class RecorderDecodeError(ValueError):
    """A recorder response was absent or did not have the expected shape."""


def decode_json(response: httpx.Response | None, context: str) -> Any:
    """
    Parse a response body as JSON.

    Args:
        response: Response from RecorderClient.fetch_resource, possibly None
        context: Short description used in error messages

    Returns:
        Parsed JSON value

    Raises:
        RecorderDecodeError: If there is no response or the body is not JSON
    """
    if response is None:
        raise RecorderDecodeError(f"{context}: no response from recorder")
    try:
        return response.json()
    except ValueError as e:
        raise RecorderDecodeError(f"{context}: invalid JSON body: {e}") from e


def decode_field(payload: Any, field: str, context: str) -> Any:
    """Return ``payload[field]``, requiring payload to be a JSON object."""
    if not isinstance(payload, dict):
        raise RecorderDecodeError(
            f"{context}: expected JSON object, got {type(payload).__name__}"
        )
    if field not in payload:
        raise RecorderDecodeError(f"{context}: missing '{field}' field")
    return payload[field]


def decode_string_list(value: Any, context: str) -> list[str]:
    """Validate a JSON array of strings (user or device names)."""
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise RecorderDecodeError(f"{context}: expected a list of strings")
    return list(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def decode_location_point(value: Any, context: str) -> LocationPoint:
    """
    Validate a single location point.

    Only ``tst`` is required since it is the ordering key; points without
    coordinates are kept and skipped later when flattening. ``lat``, ``lon``
    and ``acc`` must be numbers when present.
    """
    if not isinstance(value, dict):
        raise RecorderDecodeError(
            f"{context}: expected location object, got {type(value).__name__}"
        )
    if not _is_number(value.get("tst")):
        raise RecorderDecodeError(f"{context}: location without numeric 'tst'")
    for field in NUMERIC_FIELDS:
        if value.get(field) is not None and not _is_number(value[field]):
            raise RecorderDecodeError(f"{context}: location with non-numeric '{field}'")
    return value


def decode_location_points(value: Any, context: str) -> list[LocationPoint]:
    """Validate a JSON array of location points."""
    if not isinstance(value, list):
        raise RecorderDecodeError(
            f"{context}: expected a list of locations, got {type(value).__name__}"
        )
    return [decode_location_point(item, context) for item in value]


def coerce_location_points(value: Any, context: str) -> list[LocationPoint]:
    """
    Lenient variant of decode_location_points for last-location snapshots.

    A non-array value becomes an empty list and entries that are not
    objects are dropped.
    """
    if not isinstance(value, list):
        logger.warning("%s: expected a list, got %s; using []", context, type(value).__name__)
        return []
    points = [item for item in value if isinstance(item, dict)]
    if len(points) != len(value):
        logger.warning("%s: dropped %d malformed entries", context, len(value) - len(points))
    return points
