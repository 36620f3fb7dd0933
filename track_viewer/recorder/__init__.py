"""Client side of the location recorder: HTTP API and live updates."""

from track_viewer.recorder.api import (get_devices, get_last_locations,
                                       get_location_history, get_users,
                                       get_user_device_location_history,
                                       get_version)
from track_viewer.recorder.client import RecorderClient
from track_viewer.recorder.live import ChannelState, LiveUpdateChannel
from track_viewer.recorder.schemas import (DeviceRegistry, LocationHistory,
                                           LocationPoint, RecorderDecodeError)

__all__ = [
    "RecorderClient",
    "LiveUpdateChannel",
    "ChannelState",
    "RecorderDecodeError",
    "DeviceRegistry",
    "LocationHistory",
    "LocationPoint",
    "get_version",
    "get_users",
    "get_devices",
    "get_last_locations",
    "get_user_device_location_history",
    "get_location_history",
]
