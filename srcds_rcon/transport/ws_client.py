"""WebSocket client wrapper for RCON traffic."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from ..errors import RconConnectionError, RconTransportError
from .ws import connect_websocket

try:  # pragma: no cover - optional dependency for normalization
    from aiohttp import WSMsgType
except ImportError:  # pragma: no cover
    WSMsgType = None

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class RconWsMessageType(Enum):
    """Normalized WebSocket message types."""

    BINARY = "binary"
    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class RconWsMessage:
    """Normalized WebSocket message payload."""

    type: RconWsMessageType
    data: bytes | str | BaseException | None = None


class RconWsClient:
    """Wrapper around websockets library for RCON packets."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    async def connect(
        self,
        host: str,
        port: int,
        *,
        path: str = "/",
        ping_interval: int | None = 20,
        close_timeout: float | None = 5.0,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the server websocket."""
        self._ws = await connect_websocket(
            host,
            port,
            path=path,
            ping_interval=ping_interval,
            close_timeout=close_timeout,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            try:
                await self._ws.close()
            except (OSError, WebSocketException) as err:
                raise RconTransportError("WebSocket close failed") from err

    @property
    def can_send(self) -> bool:
        """True while the underlying connection accepts frames."""
        return self._ws is not None and getattr(self._ws, "state", None) is State.OPEN

    async def send_bytes(self, data: bytes) -> None:
        """Send one binary frame.

        Raises:
            RconConnectionError: If not connected
            RconTransportError: If the connection fails while sending
        """
        if self._ws is None:
            raise RconConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(data)
        except (OSError, WebSocketException) as err:
            raise RconTransportError("WebSocket send failed") from err

    def __aiter__(self) -> AsyncIterator[RconWsMessage]:
        if self._ws is None:
            raise RconConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[RconWsMessage]:
        if self._ws is None:
            raise RconConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized: RconWsMessage | None = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed:
            yield RconWsMessage(type=RconWsMessageType.CLOSED)
        except Exception as err:
            yield RconWsMessage(type=RconWsMessageType.ERROR, data=err)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield RconWsMessage(type=RconWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> RconWsMessage | None:
        """Normalize backend-specific frames into RconWsMessage."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return RconWsMessage(RconWsMessageType.BINARY, bytes(msg))
        if isinstance(msg, str):
            return RconWsMessage(RconWsMessageType.TEXT, msg)

        msg_type = getattr(msg, "type", None)
        data = getattr(msg, "data", None)

        if WSMsgType is not None and isinstance(msg_type, WSMsgType):
            normalized_type: RconWsMessageType | None = (
                RconWsClient._map_aiohttp_type(msg_type)
            )
            if normalized_type is None:
                return None
            if normalized_type is RconWsMessageType.BINARY:
                data = bytes(data or b"")
            return RconWsMessage(normalized_type, data)

        return None

    @staticmethod
    def _map_aiohttp_type(msg_type: Any) -> RconWsMessageType | None:
        """Map aiohttp WSMsgType enums to internal message types."""
        if WSMsgType is None:
            return None

        if msg_type is WSMsgType.BINARY:
            return RconWsMessageType.BINARY

        if msg_type is WSMsgType.TEXT:
            return RconWsMessageType.TEXT

        if msg_type in {WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED}:
            return RconWsMessageType.CLOSED

        if msg_type is WSMsgType.ERROR:
            return RconWsMessageType.ERROR

        return None
