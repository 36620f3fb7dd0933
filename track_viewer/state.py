"""
Viewer state.

Holds what the pipeline produced (users, devices, last locations, location
history) and the current selection, and derives the filtered views from it.
Values are replaced as a whole by the ``set_*`` methods, never edited in
place, so a reader holding an old reference always sees a consistent
snapshot.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from track_viewer.filters import (LatLng, distance_travelled,
                                  filter_by_accuracy, flatten_to_points,
                                  location_history_count, segment_by_distance)
from track_viewer.recorder import (DeviceRegistry, LocationHistory,
                                   LocationPoint, RecorderClient,
                                   get_devices, get_last_locations,
                                   get_location_history, get_users)

logger = logging.getLogger(__name__)

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S"


@dataclass(frozen=True)
class ViewerSettings:
    """
    Pipeline configuration.

    Attributes:
        api_base_url: Recorder root URL
        fetch_options: Request options applied to every recorder request
        min_accuracy: Drop points with a larger accuracy radius (None = keep all)
        max_point_distance: Split paths at gaps larger than this many meters
            (None or 0 = never split)
        live_updates: Run the live-update channel in the server process
        reconnect_delay: Seconds between live-update reconnect attempts
    """

    api_base_url: str = "http://localhost:8083"
    fetch_options: dict[str, Any] | None = None
    min_accuracy: float | None = None
    max_point_distance: float | None = None
    live_updates: bool = True
    reconnect_delay: float = 1.0

    @classmethod
    def from_settings(cls) -> "ViewerSettings":
        """Build from ``settings.TRACK_VIEWER``."""
        from django.conf import settings

        options: dict[str, Any] = getattr(settings, "TRACK_VIEWER", {})
        return cls(
            api_base_url=options.get("API_BASE_URL", cls.api_base_url),
            fetch_options=dict(options.get("FETCH_OPTIONS") or {}),
            min_accuracy=options.get("MIN_ACCURACY"),
            max_point_distance=options.get("MAX_POINT_DISTANCE"),
            live_updates=options.get("LIVE_UPDATES", cls.live_updates),
            reconnect_delay=options.get("RECONNECT_DELAY", cls.reconnect_delay),
        )

    def create_client(self) -> RecorderClient:
        """Return a recorder client for these settings (not yet opened)."""
        return RecorderClient(self.api_base_url, self.fetch_options)


def _default_time_range() -> tuple[str, str]:
    now = datetime.now(tz=UTC)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start.strftime(ISO_FORMAT), now.strftime(ISO_FORMAT)


def _signal_cancel(pending: tuple[asyncio.AbstractEventLoop, asyncio.Event]) -> None:
    """Set a cancel event on the loop that owns it."""
    loop, event = pending
    if not loop.is_closed():
        loop.call_soon_threadsafe(event.set)


class ViewerState:
    """State shared by the recorder pipeline and the API views."""

    def __init__(self, settings: ViewerSettings | None = None) -> None:
        self.settings = settings or ViewerSettings()
        self.recorder_version: str = ""
        self.users: list[str] = []
        self.devices: DeviceRegistry = {}
        self.last_locations: list[LocationPoint] = []
        self.location_history: LocationHistory = {}
        self.selected_user: str | None = None
        self.selected_device: str | None = None
        self.start_date_time, self.end_date_time = _default_time_range()

        self._lock = threading.Lock()
        self._generation = 0
        self._pending_request: tuple[asyncio.AbstractEventLoop, asyncio.Event] | None = None

    # -- replace-whole-value setters ------------------------------------

    def set_recorder_version(self, version: str) -> None:
        self.recorder_version = version

    def set_users(self, users: list[str]) -> None:
        self.users = list(users)

    def set_devices(self, devices: DeviceRegistry) -> None:
        self.devices = {user: list(user_devices) for user, user_devices in devices.items()}

    def set_last_locations(self, last_locations: Any) -> None:
        self.last_locations = list(last_locations) if isinstance(last_locations, list) else []

    def set_location_history(self, location_history: LocationHistory) -> None:
        self.location_history = location_history

    def set_selection(self, user: str | None, device: str | None = None) -> None:
        """Select a user and optionally one of their devices (None = all)."""
        self.selected_user = user or None
        self.selected_device = (device or None) if self.selected_user else None

    def set_time_range(self, start: str, end: str) -> None:
        self.start_date_time = start
        self.end_date_time = end

    # -- derived values -------------------------------------------------

    def selected_devices(self) -> DeviceRegistry:
        """Device registry narrowed to the current selection."""
        if self.selected_user is None:
            return self.devices
        if self.selected_device is not None:
            return {self.selected_user: [self.selected_device]}
        return {self.selected_user: self.devices.get(self.selected_user, [])}

    @property
    def filtered_location_history(self) -> LocationHistory:
        return filter_by_accuracy(self.location_history, self.settings.min_accuracy)

    @property
    def filtered_location_history_lat_lngs(self) -> list[LatLng]:
        return flatten_to_points(self.filtered_location_history)

    @property
    def filtered_location_history_lat_lng_groups(self) -> list[list[LatLng]]:
        return segment_by_distance(self.filtered_location_history, self.settings.max_point_distance)

    @property
    def distance_travelled(self) -> float:
        """Meters travelled along the coordinate groups."""
        return distance_travelled(self.filtered_location_history_lat_lng_groups)

    def snapshot(self) -> dict[str, Any]:
        """All state values plus derived views, computed once."""
        history = self.location_history
        filtered = filter_by_accuracy(history, self.settings.min_accuracy)
        groups = segment_by_distance(filtered, self.settings.max_point_distance)
        return {
            "recorder_version": self.recorder_version,
            "users": self.users,
            "devices": self.devices,
            "last_locations": self.last_locations,
            "selected_user": self.selected_user,
            "selected_device": self.selected_device,
            "start_date_time": self.start_date_time,
            "end_date_time": self.end_date_time,
            "location_history": history,
            "location_count": location_history_count(history),
            "filtered_location_history": filtered,
            "lat_lngs": flatten_to_points(filtered),
            "groups": groups,
            "distance_travelled": distance_travelled(groups),
        }

    # -- loading from the recorder --------------------------------------

    async def load_users(self, client: RecorderClient) -> None:
        """Fetch users and their devices."""
        users = await get_users(client)
        devices = await get_devices(client, users)
        self.set_users(users)
        self.set_devices(devices)

    async def load_last_locations(self, client: RecorderClient) -> None:
        self.set_last_locations(await get_last_locations(client))

    async def load_location_history(self, client: RecorderClient) -> bool:
        """
        Fetch history for the current selection and time range.

        Starting a new load cancels the one still in flight; a result that
        was superseded by a newer load is discarded.

        Returns:
            True if the result was stored, False if it was superseded
        """
        cancel_event = asyncio.Event()
        with self._lock:
            self._generation += 1
            generation = self._generation
            previous = self._pending_request
            self._pending_request = (asyncio.get_running_loop(), cancel_event)
        if previous is not None:
            logger.debug("Cancelling superseded location history request")
            _signal_cancel(previous)

        history = await get_location_history(
            client,
            self.selected_devices(),
            self.start_date_time,
            self.end_date_time,
            {"cancel_event": cancel_event},
        )

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding location history of superseded request %d", generation)
                return False
            self._pending_request = None
            self.set_location_history(history)
        return True


class _ViewerStateHolder:
    """Holder for the process-wide ViewerState."""

    def __init__(self) -> None:
        self.state: ViewerState | None = None
        self.lock = threading.Lock()


_holder = _ViewerStateHolder()


def get_viewer_state() -> ViewerState:
    """Return the process-wide viewer state, creating it from settings."""
    with _holder.lock:
        if _holder.state is None:
            _holder.state = ViewerState(ViewerSettings.from_settings())
        return _holder.state


def reset_viewer_state() -> None:
    """Forget the process-wide state so it is rebuilt from settings."""
    with _holder.lock:
        _holder.state = None
