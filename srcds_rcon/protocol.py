"""Source RCON packet codec.

Wire layout, all integers little-endian int32::

    size | id | type | body | 0x00 | 0x00

``size`` counts every byte after itself.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum, IntEnum

from .errors import RconProtocolError


class PacketType(IntEnum):
    """RCON packet types."""

    RESPONSE_VALUE = 0
    EXECCOMMAND = 2
    # Same wire value as EXECCOMMAND; only the direction tells them apart.
    AUTH_RESPONSE = 2
    AUTH = 3


class RconEncoding(str, Enum):
    """Text encodings supported for packet bodies."""

    ASCII = "ascii"
    UTF8 = "utf-8"

    @classmethod
    def coerce(cls, value: RconEncoding | str) -> RconEncoding:
        """Return the member for an enum or its string value."""
        if isinstance(value, cls):
            return value
        normalized = str(value).lower()
        if normalized == "utf8":
            normalized = cls.UTF8.value
        try:
            return cls(normalized)
        except ValueError as err:
            raise ValueError(f"Unsupported encoding: {value!r}") from err


ID_AUTH = 0x999
ID_AUTH_FAILED = -1
# Base of the end-of-reply marker ids; a request uses ID_TERMINATOR + its id.
ID_TERMINATOR = 0x777
MAX_REQUEST_ID = 255

_HEADER = struct.Struct("<iii")
_TRAILER = b"\x00\x00"
# id + type + two null bytes
_SIZE_OVERHEAD = 10
MIN_PACKET_SIZE = _HEADER.size + len(_TRAILER)


@dataclass(frozen=True)
class Packet:
    """A single decoded RCON packet."""

    type: int
    id: int
    body: str


def encode_packet(
    packet_type: int,
    packet_id: int,
    body: str,
    encoding: RconEncoding | str = RconEncoding.ASCII,
) -> bytes:
    """Encode a packet into a framed byte string.

    Raises:
        RconProtocolError: If the body cannot be represented in the
            encoding or the id does not fit an int32.
    """
    codec = RconEncoding.coerce(encoding).value
    try:
        payload = body.encode(codec)
    except UnicodeEncodeError as err:
        raise RconProtocolError(f"Body is not representable as {codec}") from err

    try:
        header = _HEADER.pack(len(payload) + _SIZE_OVERHEAD, packet_id, packet_type)
    except struct.error as err:
        raise RconProtocolError(f"Invalid packet header: {err}") from err
    return header + payload + _TRAILER


def decode_packet(
    data: bytes, encoding: RconEncoding | str = RconEncoding.ASCII
) -> Packet:
    """Decode one framed packet.

    Raises:
        RconProtocolError: If the frame is truncated or its size field
            disagrees with the frame length.
    """
    if len(data) < MIN_PACKET_SIZE:
        raise RconProtocolError(
            f"Packet too short: {len(data)} bytes (minimum {MIN_PACKET_SIZE})"
        )

    size, packet_id, packet_type = _HEADER.unpack_from(data, 0)
    if size + 4 != len(data):
        raise RconProtocolError(
            f"Packet size field {size} does not match frame of {len(data)} bytes"
        )

    codec = RconEncoding.coerce(encoding).value
    body = data[_HEADER.size : -len(_TRAILER)].decode(codec, errors="replace")
    return Packet(type=packet_type, id=packet_id, body=body)
