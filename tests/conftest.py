"""Pytest configuration and fixtures for srcds_rcon tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock, patch

import pytest

from srcds_rcon import RconSession
from srcds_rcon.protocol import (
    ID_AUTH,
    ID_AUTH_FAILED,
    Packet,
    PacketType,
    decode_packet,
    encode_packet,
)
from srcds_rcon.transport.ws_client import RconWsMessage, RconWsMessageType

PASSWORD = "secret"

Responder = Callable[[Packet], list[bytes | RconWsMessage]]


def frame(packet_type: int, packet_id: int, body: str = "") -> bytes:
    """Encode a server packet as the transport would deliver it."""
    return encode_packet(packet_type, packet_id, body)


class FakeRconWsClient:
    """Scripted stand-in for RconWsClient.

    Every frame sent by the session is decoded into ``sent`` and passed to
    ``responder``; whatever it returns is queued for the session's reader.
    """

    def __init__(self, responder: Responder | None = None) -> None:
        self.responder = responder
        self.sent: list[Packet] = []
        self.can_send = True
        self.closed = False
        self.connect = AsyncMock()
        self.close_error: Exception | None = None
        self._queue: asyncio.Queue[RconWsMessage | None] = asyncio.Queue()

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(None)
        if self.close_error is not None:
            raise self.close_error

    async def send_bytes(self, data: bytes) -> None:
        packet = decode_packet(data)
        self.sent.append(packet)
        if self.responder is not None:
            for item in self.responder(packet):
                self.feed(item)

    def feed(self, item: bytes | RconWsMessage) -> None:
        if isinstance(item, bytes):
            item = RconWsMessage(RconWsMessageType.BINARY, item)
        self._queue.put_nowait(item)

    def __aiter__(self):
        return self._iter_messages()

    async def _iter_messages(self):
        while True:
            msg = await self._queue.get()
            if msg is None:
                return
            yield msg


def srcds_responder(
    replies: dict[str, list[str]] | None = None, *, password: str = PASSWORD
) -> Responder:
    """Build a responder that behaves like a Source dedicated server."""
    replies = replies or {}

    def respond(packet: Packet) -> list[bytes | RconWsMessage]:
        if packet.type == PacketType.AUTH:
            verdict = ID_AUTH if packet.body == password else ID_AUTH_FAILED
            return [
                frame(PacketType.RESPONSE_VALUE, packet.id),
                frame(PacketType.AUTH_RESPONSE, verdict),
            ]
        if packet.type == PacketType.EXECCOMMAND:
            bodies = replies.get(packet.body, [f"{packet.body}\n"])
            return [frame(PacketType.RESPONSE_VALUE, packet.id, b) for b in bodies]
        if packet.type == PacketType.RESPONSE_VALUE:
            return [
                frame(PacketType.RESPONSE_VALUE, packet.id),
                frame(PacketType.RESPONSE_VALUE, packet.id, "\x00\x00\x00\x01"),
            ]
        return []

    return respond


@pytest.fixture
def fake_ws() -> FakeRconWsClient:
    """Create a fake transport answering like a Source server."""
    return FakeRconWsClient(srcds_responder())


@pytest.fixture
def patch_ws(fake_ws: FakeRconWsClient) -> Iterator[FakeRconWsClient]:
    """Make RconSession use the fake transport."""
    with patch("srcds_rcon.session.RconWsClient", return_value=fake_ws):
        yield fake_ws


@pytest.fixture
def session(patch_ws: FakeRconWsClient) -> RconSession:
    """Create a session with default options and a short timeout."""
    return RconSession(response_timeout=0.2)
