"""
WebSocket consumer for browsers viewing the map.

Browsers join the ``locations`` group and receive every live location
relayed from the recorder.
"""
import json
import logging
from typing import Any

from channels.generic.websocket import AsyncWebsocketConsumer

from track_viewer import STARTUP_TIMESTAMP
from track_viewer.relay import LOCATIONS_GROUP
from track_viewer.state import get_viewer_state

logger = logging.getLogger(__name__)


class LocationConsumer(AsyncWebsocketConsumer):
    """Pushes live location updates to a browser."""

    def get_client_address(self) -> str:
        """Get formatted client address (IP:port)."""
        headers = dict(self.scope.get('headers', []))
        x_forwarded_for = headers.get(b'x-forwarded-for')
        if x_forwarded_for:
            return x_forwarded_for.decode().split(',')[0].strip()

        client = self.scope.get('client')
        if not client:
            return 'unknown'
        if len(client) > 1 and client[1]:
            return f"{client[0]}:{client[1]}"
        return str(client[0])

    async def connect(self) -> None:
        """Handle new WebSocket connection."""
        await self.channel_layer.group_add(LOCATIONS_GROUP, self.channel_name)
        await self.accept()

        client_addr = self.get_client_address()
        logger.info(
            "WebSocket client connected from %s",
            client_addr,
            extra={"channel": self.channel_name, "client_address": client_addr},
        )

        # Clients use server_startup to detect backend restarts
        await self.send(text_data=json.dumps({
            'type': 'welcome',
            'server_startup': STARTUP_TIMESTAMP,
            'last_locations': get_viewer_state().last_locations,
        }))

    async def disconnect(self, close_code: int) -> None:
        """Handle WebSocket disconnection."""
        await self.channel_layer.group_discard(LOCATIONS_GROUP, self.channel_name)
        logger.info(
            "WebSocket client disconnected from %s",
            self.get_client_address(),
            extra={"channel": self.channel_name, "close_code": close_code},
        )

    async def location_update(self, event: dict[str, Any]) -> None:
        """
        Receive a relayed location from the channel layer.

        Args:
            event: Dictionary with the recorder location message under ``data``
        """
        await self.send(text_data=json.dumps({
            'type': 'location',
            'data': event['data'],
        }))
