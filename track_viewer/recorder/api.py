"""
Recorder API calls.

Fetches the recorder version, users, devices, last locations and location
history. History for several devices is fetched concurrently and merged
into one nested mapping of user -> device -> points.
"""
import asyncio
import logging
from typing import Any

from track_viewer.recorder.client import API_PREFIX, RecorderClient
from track_viewer.recorder.schemas import (DeviceRegistry, LocationHistory,
                                           LocationPoint, RecorderDecodeError,
                                           coerce_location_points,
                                           decode_field, decode_json,
                                           decode_location_points,
                                           decode_string_list)

logger = logging.getLogger(__name__)


async def get_version(client: RecorderClient) -> str:
    """
    Get the recorder's version.

    Raises:
        RecorderDecodeError: If the response is absent or malformed
    """
    response = await client.fetch_resource(f"{API_PREFIX}/version")
    payload = decode_json(response, "version")
    version = decode_field(payload, "version", "version")
    if not isinstance(version, str):
        raise RecorderDecodeError("version: expected a string")
    logger.info("[get_version] %s", version)
    return version


async def get_users(client: RecorderClient) -> list[str]:
    """
    Get all users.

    Raises:
        RecorderDecodeError: If the response is absent or malformed
    """
    response = await client.fetch_resource(f"{API_PREFIX}/list")
    payload = decode_json(response, "users")
    users = decode_string_list(decode_field(payload, "results", "users"), "users")
    logger.info("[get_users] Fetched %d users", len(users))
    return users


async def get_devices(client: RecorderClient, users: list[str]) -> DeviceRegistry:
    """
    Get all devices for the provided users, one request per user.

    Args:
        client: Open recorder client
        users: Usernames

    Returns:
        Mapping of each username to its device names

    Raises:
        RecorderDecodeError: If any response is absent or malformed
    """
    async def fetch_user_devices(user: str) -> list[str]:
        response = await client.fetch_resource(f"{API_PREFIX}/list", {"user": user})
        context = f"devices of {user}"
        return decode_string_list(decode_field(decode_json(response, context), "results", context), context)

    results = await asyncio.gather(*(fetch_user_devices(user) for user in users))
    devices: DeviceRegistry = dict(zip(users, results))
    logger.info(
        "[get_devices] Fetched %d devices for %d users",
        sum(len(d) for d in devices.values()),
        len(users),
    )
    return devices


async def get_last_locations(client: RecorderClient) -> list[LocationPoint]:
    """
    Get the last location of every device.

    Never raises for transport or decode failures: any non-array body
    becomes an empty list.
    """
    response = await client.fetch_resource(f"{API_PREFIX}/last")
    try:
        payload = decode_json(response, "last locations")
    except RecorderDecodeError as e:
        logger.error("[get_last_locations] %s", e)
        return []
    last_locations = coerce_location_points(payload, "last locations")
    logger.info("[get_last_locations] Fetched %d last locations", len(last_locations))
    return last_locations


async def get_user_device_location_history(
    client: RecorderClient,
    user: str,
    device: str,
    start: str,
    end: str,
    request_options: dict[str, Any] | None = None,
) -> list[LocationPoint]:
    """
    Get the location history of a specific user/device.

    Args:
        client: Open recorder client
        user: Username
        device: Device name
        start: Start date and time in UTC (ISO 8601)
        end: End date and time in UTC (ISO 8601)
        request_options: Request options, e.g. a ``cancel_event``

    Returns:
        Locations sorted by timestamp

    Raises:
        RecorderDecodeError: If the response is absent or malformed
    """
    response = await client.fetch_resource(
        f"{API_PREFIX}/locations",
        {
            "from": start,
            "to": end,
            "user": user,
            "device": device,
            "format": "json",
        },
        request_options,
    )
    context = f"locations of {user}/{device}"
    locations = decode_location_points(decode_field(decode_json(response, context), "data", context), context)
    # The recorder returns entries in the order they appear in its
    # storage files, so line segments would be drawn out of order.
    locations = sorted(locations, key=lambda location: location["tst"])
    logger.debug(
        "[get_user_device_location_history] Fetched %d locations for %s/%s from %s - %s",
        len(locations), user, device, start, end,
    )
    return locations


async def get_location_history(
    client: RecorderClient,
    devices: DeviceRegistry,
    start: str,
    end: str,
    request_options: dict[str, Any] | None = None,
) -> LocationHistory:
    """
    Get the location history of multiple devices.

    All (user, device) series are fetched concurrently. If any of them
    fails the whole result is an empty mapping rather than a partial one.

    Args:
        client: Open recorder client
        devices: Devices of which the history should be fetched
        start: Start date and time in UTC (ISO 8601)
        end: End date and time in UTC (ISO 8601)
        request_options: Request options shared by every fetch

    Returns:
        Location history, or {} on failure
    """
    pairs = [(user, device) for user, user_devices in devices.items() for device in user_devices]
    results = await asyncio.gather(
        *(
            get_user_device_location_history(client, user, device, start, end, request_options)
            for user, device in pairs
        ),
        return_exceptions=True,
    )

    errors = [result for result in results if isinstance(result, BaseException)]
    if errors:
        for error in errors:
            logger.error("[get_location_history] %s", error)
        return {}

    location_history: LocationHistory = {user: {} for user in devices}
    for (user, device), locations in zip(pairs, results):
        location_history[user][device] = locations  # type: ignore[assignment]

    logger.info(
        "[get_location_history] Fetched %d locations in total",
        sum(len(locations) for user_history in location_history.values() for locations in user_history.values()),
    )
    return location_history
