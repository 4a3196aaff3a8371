"""Client error types for Source RCON interactions."""

from __future__ import annotations


class RconClientError(Exception):
    """Base error for RCON client failures."""


class RconTimeout(RconClientError):
    """Timeout while communicating with the server."""


class RconTransportError(RconClientError):
    """Lower-layer failure of the WebSocket transport."""


class RconConnectionError(RconTransportError):
    """Network connection to the server failed."""


class RconHandshakeError(RconTransportError):
    """WebSocket handshake failed."""


class RconProtocolError(RconClientError):
    """A packet could not be encoded or decoded."""


class RconAlreadyAuthenticated(RconClientError):
    """authenticate() was called on an authenticated session."""


class RconAuthenticationFailed(RconClientError):
    """The server rejected the password."""


class RconNotAuthorized(RconClientError):
    """A command was issued before authenticating."""


class RconNotConnected(RconNotAuthorized):
    """The session has no open connection.

    A session without a connection cannot be authorized either, so this
    is also caught by handlers for RconNotAuthorized.
    """


class RconSendUnavailable(RconClientError):
    """The transport cannot accept a send right now."""


class RconPacketTooLarge(RconClientError):
    """Encoded request exceeds the configured maximum packet size."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Packet size {size} exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit
