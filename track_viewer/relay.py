"""
Relay of recorder live updates to the viewer.

Each location message from the recorder refreshes the last-locations
snapshot in the viewer state and is broadcast to connected browsers.
"""
import logging
from typing import TYPE_CHECKING, Any

from channels.layers import get_channel_layer

from track_viewer.recorder import LiveUpdateChannel, RecorderClient
from track_viewer.state import ViewerState

if TYPE_CHECKING:
    from channels.layers import BaseChannelLayer

logger = logging.getLogger(__name__)

LOCATIONS_GROUP = "locations"


def get_channel_layer_lazy() -> "BaseChannelLayer | None":
    """Get channel layer, returning None if unavailable."""
    try:
        return get_channel_layer()
    except Exception:
        return None


class LiveRelay:
    """
    Location callback for a LiveUpdateChannel.

    Args:
        state: Viewer state receiving the refreshed last locations
        client: Open recorder client used for the refresh
    """

    def __init__(self, state: ViewerState, client: RecorderClient) -> None:
        self.state = state
        self.client = client

    def create_channel(self) -> LiveUpdateChannel:
        """Return a live-update channel wired to this relay."""
        return LiveUpdateChannel(
            self.client.get_live_url(),
            self.on_location,
            reconnect_delay=self.state.settings.reconnect_delay,
        )

    async def on_location(self, message: dict[str, Any]) -> None:
        """Handle a location message from the recorder."""
        logger.debug(
            "Live location: user=%s, device=%s, tst=%s",
            message.get("username"),
            message.get("device"),
            message.get("tst"),
        )
        await self.state.load_last_locations(self.client)
        await self._broadcast_location(message)

    async def _broadcast_location(self, message: dict[str, Any]) -> None:
        """Send a location message to every browser in the locations group."""
        channel_layer = get_channel_layer_lazy()
        if channel_layer is None:
            logger.warning("WebSocket broadcast skipped: no channel layer configured")
            return

        try:
            await channel_layer.group_send(
                LOCATIONS_GROUP,
                {
                    "type": "location_update",
                    "data": message,
                },
            )
        except Exception:
            logger.exception("WebSocket broadcast failed for live location")
