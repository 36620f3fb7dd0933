"""
Filtering and path segmentation of location histories.

Everything here is pure and synchronous: functions read a location history
and return new values without touching the input, so they can be re-run on
every state change.
"""
import math
from collections.abc import Iterator
from typing import NamedTuple

from track_viewer.recorder.schemas import LocationHistory, LocationPoint

EARTH_RADIUS_M = 6_371_000.0


class LatLng(NamedTuple):
    """Geographic coordinate in degrees."""

    lat: float
    lng: float


def distance_between_coordinates(a: LatLng, b: LatLng) -> float:
    """
    Great-circle (haversine) distance between two coordinates.

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance in meters
    """
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)

    h = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))


def _series(history: LocationHistory) -> Iterator[list[LocationPoint]]:
    """Yield each (user, device) series, depth first."""
    for devices in history.values():
        yield from devices.values()


def _lat_lng(location: LocationPoint) -> LatLng | None:
    lat = location.get("lat")
    lon = location.get("lon")
    if lat is None or lon is None:
        return None
    return LatLng(float(lat), float(lon))


def location_history_count(history: LocationHistory) -> int:
    """Total number of points across all users and devices."""
    return sum(len(series) for series in _series(history))


def filter_by_accuracy(history: LocationHistory, max_accuracy: float | None) -> LocationHistory:
    """
    Drop points whose accuracy radius exceeds ``max_accuracy``.

    Points without an ``acc`` value are kept. A None threshold keeps
    everything. Per-series order is preserved and the input is not modified.
    """
    filtered: LocationHistory = {}
    for user, devices in history.items():
        filtered[user] = {}
        for device, locations in devices.items():
            filtered[user][device] = [
                location for location in locations
                if max_accuracy is None
                or location.get("acc") is None
                or location["acc"] <= max_accuracy
            ]
    return filtered


def flatten_to_points(history: LocationHistory) -> list[LatLng]:
    """All coordinates of the history, skipping points without lat/lon."""
    lat_lngs: list[LatLng] = []
    for locations in _series(history):
        for location in locations:
            lat_lng = _lat_lng(location)
            if lat_lng is not None:
                lat_lngs.append(lat_lng)
    return lat_lngs


def segmentation_enabled(max_distance: float | None) -> bool:
    """Segmentation only applies for a positive numeric distance."""
    return (
        isinstance(max_distance, int | float)
        and not isinstance(max_distance, bool)
        and max_distance > 0
    )


def segment_by_distance(history: LocationHistory, max_distance: float | None) -> list[list[LatLng]]:
    """
    Split every series into groups of nearby consecutive coordinates.

    A new group starts whenever the distance to the previous coordinate of
    the current group exceeds ``max_distance``. Each series contributes at
    least one group, empty if the series has no coordinates, and groups
    never span two devices.

    Args:
        history: Location history to segment
        max_distance: Maximum distance in meters between consecutive
            coordinates; None or <= 0 disables splitting

    Returns:
        Groups of coordinates in series order
    """
    enabled = segmentation_enabled(max_distance)
    groups: list[list[LatLng]] = []
    for locations in _series(history):
        current: list[LatLng] = []
        for location in locations:
            lat_lng = _lat_lng(location)
            if lat_lng is None:
                continue
            if enabled and current:
                if distance_between_coordinates(current[-1], lat_lng) > max_distance:  # type: ignore[operator]
                    groups.append(current)
                    current = []
            current.append(lat_lng)
        groups.append(current)
    return groups


def distance_travelled(groups: list[list[LatLng]]) -> float:
    """Sum of distances between consecutive coordinates within each group."""
    total = 0.0
    for group in groups:
        for previous, current in zip(group, group[1:]):
            total += distance_between_coordinates(previous, current)
    return total
