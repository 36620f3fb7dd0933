"""App configuration for the track_viewer application."""

import asyncio
import atexit
import logging
import sys
import threading
from pathlib import PurePath

from django.apps import AppConfig

from track_viewer.recorder import LiveUpdateChannel

logger = logging.getLogger(__name__)

_ASGI_SERVER_BINARIES = {'daphne', 'uvicorn'}

# Seconds to wait for the live-update thread on shutdown
_SHUTDOWN_TIMEOUT_SECONDS = 5


class _LiveChannelState:
    """Holder for the live-update thread state."""

    def __init__(self) -> None:
        self.channel: LiveUpdateChannel | None = None
        self.loop: asyncio.AbstractEventLoop | None = None
        self.thread: threading.Thread | None = None
        self.shutting_down: threading.Event = threading.Event()


_state = _LiveChannelState()


async def _relay_live_updates() -> None:
    """Connect to the recorder websocket and relay until stopped."""
    from track_viewer.relay import LiveRelay
    from track_viewer.state import get_viewer_state

    viewer_state = get_viewer_state()
    async with viewer_state.settings.create_client() as client:
        relay = LiveRelay(viewer_state, client)
        _state.channel = relay.create_channel()
        if _state.shutting_down.is_set():
            return
        await _state.channel.connect()


def _run_live_channel() -> None:
    """Run the live-update channel in a dedicated thread with its own event loop.

    Daphne does not support the ASGI lifespan protocol, so the channel
    cannot be started from lifespan events.
    """
    _state.loop = asyncio.new_event_loop()
    asyncio.set_event_loop(_state.loop)
    try:
        _state.loop.run_until_complete(_relay_live_updates())
    except Exception:
        logger.exception("Live update channel error")
    finally:
        _state.loop.close()


def _stop_live_channel() -> None:
    """Stop the live-update channel on process exit."""
    _state.shutting_down.set()

    loop, channel = _state.loop, _state.channel
    if loop is not None and channel is not None and not loop.is_closed():
        loop.call_soon_threadsafe(channel.stop)
    if _state.thread is not None:
        _state.thread.join(timeout=_SHUTDOWN_TIMEOUT_SECONDS)


def _is_server_process() -> bool:
    """Detect if the process is serving HTTP (daphne, uvicorn or runserver).

    Management commands, test runners and shells return False.
    """
    prog = PurePath(sys.argv[0]).stem
    if prog in _ASGI_SERVER_BINARIES:
        return True
    return len(sys.argv) >= 2 and sys.argv[1] == 'runserver'


class TrackViewerConfig(AppConfig):
    """Configuration for the track_viewer app."""

    default_auto_field: str = 'django.db.models.BigAutoField'
    name: str = 'track_viewer'
    verbose_name: str = 'Track Viewer'

    def ready(self) -> None:
        """Start the live-update channel when serving and enabled."""
        from track_viewer.state import get_viewer_state

        if not _is_server_process():
            logger.debug("Not a server process, skipping live updates")
            return

        settings = get_viewer_state().settings
        if not settings.live_updates:
            logger.info("Live updates disabled")
            return

        _state.thread = threading.Thread(
            target=_run_live_channel,
            daemon=True,
            name="live-updates",
        )
        _state.thread.start()
        atexit.register(_stop_live_channel)
        logger.info("Live update thread started (recorder=%s)", settings.api_base_url)
