"""WebSocket helpers for the RCON transport."""

from __future__ import annotations

import asyncio
import ipaddress

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    RconConnectionError,
    RconHandshakeError,
    RconTimeout,
)


def build_ws_url(host: str, port: int, path: str = "/") -> str:
    """Build the ws:// URL for an RCON endpoint.

    IPv6 literals are bracketed and a missing leading slash on the path is
    added.
    """
    try:
        if ipaddress.ip_address(host).version == 6:
            host = f"[{host}]"
    except ValueError:
        pass  # hostname
    if not path.startswith("/"):
        path = f"/{path}"
    return f"ws://{host}:{port}{path}"


async def connect_websocket(
    host: str,
    port: int,
    *,
    path: str = "/",
    ping_interval: int | None = 20,
    close_timeout: float | None = 5.0,
    timeout: float = 15.0,
) -> ClientConnection:
    """Connect to an RCON WebSocket endpoint.

    Frame size is not limited here; the session enforces its own
    maximum on outgoing packets.

    Args:
        host: Target host or IP literal (IPv4 or IPv6)
        port: Target RCON port
        path: WebSocket path (default: /)
        ping_interval: Interval for ping frames
        close_timeout: Time allowed for the closing handshake
        timeout: Connection timeout
    """
    ws_url = build_ws_url(host, port, path)
    try:
        return await asyncio.wait_for(
            websockets.connect(
                ws_url,
                ping_interval=ping_interval,
                close_timeout=close_timeout,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise RconTimeout(f"Connection to {ws_url} timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise RconHandshakeError(f"WebSocket handshake with {ws_url} failed") from err
    except (OSError, WebSocketException) as err:
        raise RconConnectionError(f"Connection to {ws_url} failed") from err
