"""Transport layer for the RCON client.

Components:
- ws: WebSocket connection management
- ws_client: WebSocket frame iteration and sending
"""

from .ws import build_ws_url, connect_websocket
from .ws_client import RconWsClient, RconWsMessage, RconWsMessageType

__all__ = [
    "RconWsClient",
    "RconWsMessage",
    "RconWsMessageType",
    "build_ws_url",
    "connect_websocket",
]
