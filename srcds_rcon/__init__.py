"""Asyncio client for the Source RCON protocol over WebSocket."""

__version__ = "0.1.0"

from .errors import (
    RconAlreadyAuthenticated,
    RconAuthenticationFailed,
    RconClientError,
    RconConnectionError,
    RconHandshakeError,
    RconNotAuthorized,
    RconNotConnected,
    RconPacketTooLarge,
    RconProtocolError,
    RconSendUnavailable,
    RconTimeout,
    RconTransportError,
)
from .protocol import (
    ID_AUTH,
    ID_AUTH_FAILED,
    ID_TERMINATOR,
    Packet,
    PacketType,
    RconEncoding,
    decode_packet,
    encode_packet,
)
from .session import RconSession
from .transport import RconWsClient, RconWsMessage, RconWsMessageType, connect_websocket

__all__ = [
    "ID_AUTH",
    "ID_AUTH_FAILED",
    "ID_TERMINATOR",
    "Packet",
    "PacketType",
    "RconAlreadyAuthenticated",
    "RconAuthenticationFailed",
    "RconClientError",
    "RconConnectionError",
    "RconEncoding",
    "RconHandshakeError",
    "RconNotAuthorized",
    "RconNotConnected",
    "RconPacketTooLarge",
    "RconProtocolError",
    "RconSendUnavailable",
    "RconSession",
    "RconTimeout",
    "RconTransportError",
    "RconWsClient",
    "RconWsMessage",
    "RconWsMessageType",
    "__version__",
    "connect_websocket",
    "decode_packet",
    "encode_packet",
]
