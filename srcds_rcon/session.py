"""Session manager for Source RCON over WebSocket.

This module provides the public client API. It handles:
- Connection lifecycle and status flags
- The one-time authentication handshake
- Command dispatch with reply correlation by packet id
- Response timeouts and one-request-in-flight serialization

Usage:
    async with RconSession(host="10.0.0.5", port=28016) as rcon:
        await rcon.authenticate("secret")
        reply = await rcon.execute("status")
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import (
    RconAlreadyAuthenticated,
    RconAuthenticationFailed,
    RconClientError,
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
    ID_TERMINATOR,
    MAX_REQUEST_ID,
    Packet,
    PacketType,
    RconEncoding,
    decode_packet,
    encode_packet,
)
from .transport.ws import build_ws_url
from .transport.ws_client import RconWsClient, RconWsMessageType

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 27015
DEFAULT_MAX_PACKET_SIZE = 4096
DEFAULT_RESPONSE_TIMEOUT = 1.0


@dataclass(slots=True)
class _PendingRequest:
    """The single request awaiting a reply."""

    request_type: PacketType
    expected_id: int
    future: asyncio.Future[Any]
    terminator_id: int | None = None
    fragments: list[str] = field(default_factory=list)

    @property
    def response(self) -> str:
        return "".join(self.fragments)


class RconSession:
    """Client session bound to one RCON endpoint.

    State moves created -> authenticating -> authenticated -> closed. A
    rejected password forces the session closed.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        max_packet_size: int = DEFAULT_MAX_PACKET_SIZE,
        encoding: RconEncoding | str = RconEncoding.ASCII,
        response_timeout: float | None = DEFAULT_RESPONSE_TIMEOUT,
        multi_packet: bool = False,
        path: str = "/",
        connect_timeout: float = 15.0,
        ping_interval: int | None = 20,
        close_timeout: float | None = 5.0,
    ):
        """Initialize session.

        Args:
            host: Server hostname or IP
            port: Server RCON port
            max_packet_size: Largest encoded request in bytes, 0 disables
            encoding: Text encoding of packet bodies
            response_timeout: Seconds to wait for a reply, None waits forever
            multi_packet: Reassemble replies split over several packets
            path: WebSocket path
            connect_timeout: Seconds allowed for opening the transport
            ping_interval: Keepalive ping interval (seconds), None disables
            close_timeout: Seconds to wait for the closing handshake
        """
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port: {port}")
        if max_packet_size < 0:
            raise ValueError("max_packet_size must be >= 0")
        if response_timeout is not None and response_timeout <= 0:
            raise ValueError("response_timeout must be positive or None")

        self.host = host or DEFAULT_HOST
        self.port = port
        self.max_packet_size = max_packet_size
        self.encoding = RconEncoding.coerce(encoding)
        self.response_timeout = response_timeout
        self.multi_packet = multi_packet

        self._path = path
        self._connect_timeout = connect_timeout
        self._ping_interval = ping_interval
        self._close_timeout = close_timeout
        self._tag = f"{self.host}:{self.port}"

        # Connection state
        self._ws: RconWsClient | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._connected = False
        self._authenticated = False
        self._state = "created"

        # Request state
        self._pending: _PendingRequest | None = None
        self._request_lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()
        self._last_request_id = 0

    async def __aenter__(self) -> RconSession:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # -------------------------------------------------------------------------
    # Public API: Connection Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the transport and start the reader.

        Raises:
            RconTimeout: If the server does not answer in time
            RconConnectionError: If the connection fails
            RconHandshakeError: If the WebSocket upgrade is rejected
        """
        async with self._connect_lock:
            if self._connected:
                return

            _LOGGER.info(
                "[%s] Connecting to %s",
                self._tag,
                build_ws_url(self.host, self.port, self._path),
            )
            ws_client = RconWsClient()
            await ws_client.connect(
                self.host,
                self.port,
                path=self._path,
                ping_interval=self._ping_interval,
                close_timeout=self._close_timeout,
                timeout=self._connect_timeout,
            )

            self._ws = ws_client
            self._connected = True
            self._authenticated = False
            self._set_state("created")
            self._listen_task = asyncio.create_task(self._listen())
        _LOGGER.debug("[%s] WebSocket connected, listener started", self._tag)

    async def disconnect(self) -> None:
        """Close the transport.

        Any request still waiting for a reply fails with RconNotConnected.

        Raises:
            RconTransportError: If closing the WebSocket fails
        """
        self._authenticated = False
        self._connected = False
        self._fail_pending(RconNotConnected("Session disconnected"))

        ws, self._ws = self._ws, None
        listen_task, self._listen_task = self._listen_task, None
        if ws is None:
            return

        _LOGGER.info("[%s] Disconnecting", self._tag)
        self._set_state("closed")

        if listen_task is not None and listen_task is not asyncio.current_task():
            listen_task.cancel()
            try:
                await listen_task
            except asyncio.CancelledError:
                pass

        await ws.close()
        _LOGGER.debug("[%s] WebSocket closed", self._tag)

    def is_connected(self) -> bool:
        """Return True while the transport is open."""
        return self._connected

    def is_authenticated(self) -> bool:
        """Return True after a successful handshake."""
        return self._authenticated

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    @property
    def state(self) -> str:
        """Current state: created, authenticating, authenticated or closed."""
        return self._state

    # -------------------------------------------------------------------------
    # Public API: Authentication and Commands
    # -------------------------------------------------------------------------

    async def authenticate(self, password: str) -> None:
        """Authenticate the connection.

        Opens the transport first if it was never opened.

        Raises:
            RconAlreadyAuthenticated: If the session is already authenticated
            RconAuthenticationFailed: If the password is rejected; the
                session is disconnected
            RconNotConnected: If the session was disconnected
            RconTransportError: On transport failure
            RconTimeout: If the server does not answer in time
        """
        if self._authenticated:
            raise RconAlreadyAuthenticated("Already authenticated")

        if self._ws is None and self._state == "created":
            await self.connect()

        async with self._request_lock:
            if self._authenticated:
                raise RconAlreadyAuthenticated("Already authenticated")
            if not self._connected:
                raise RconNotConnected("Session is closed")
            if not self._reader_alive():
                raise RconTransportError(
                    "Transport reader stopped; disconnect and reconnect"
                )

            self._set_state("authenticating")
            try:
                accepted = await self._write(PacketType.AUTH, ID_AUTH, password)
            except RconClientError:
                if self._state == "authenticating":
                    self._set_state("created")
                raise

        if not accepted:
            _LOGGER.error("[%s] Authentication rejected", self._tag)
            try:
                await self.disconnect()
            except RconTransportError as err:
                _LOGGER.warning(
                    "[%s] Close after rejection failed: %s", self._tag, err
                )
            raise RconAuthenticationFailed("Unable to authenticate")

        self._authenticated = True
        self._set_state("authenticated")
        _LOGGER.info("[%s] Authenticated", self._tag)

    async def execute(self, command: str) -> str:
        """Execute a command on the server and return its reply.

        Calls are serialized; a second caller waits until the first reply
        has arrived.

        Raises:
            RconNotConnected: If the session is not connected
            RconNotAuthorized: If the session is not authenticated
            RconSendUnavailable: If the transport cannot accept a send or
                its reader has stopped after a transport error
            RconPacketTooLarge: If the encoded command exceeds max_packet_size
            RconTransportError: On transport failure
            RconTimeout: If no reply arrives within response_timeout
        """
        async with self._request_lock:
            if not self._connected:
                raise RconNotConnected("Already disconnected. Please reauthenticate.")
            if not self._authenticated:
                raise RconNotAuthorized("Not authorized")
            usable = self._ws is not None and self._ws.can_send
            if not usable or not self._reader_alive():
                raise RconSendUnavailable("Unable to write to socket")

            request_id = self._next_request_id()
            return await self._write(PacketType.EXECCOMMAND, request_id, command)

    # -------------------------------------------------------------------------
    # Internal: Write Path
    # -------------------------------------------------------------------------

    def _next_request_id(self) -> int:
        """Cycle through 1..MAX_REQUEST_ID."""
        self._last_request_id = self._last_request_id % MAX_REQUEST_ID + 1
        return self._last_request_id

    async def _write(self, packet_type: PacketType, packet_id: int, body: str) -> Any:
        """Send one request and wait for its reply.

        Must be called with the request lock held. Resolves to a bool for
        AUTH requests and to the reply text for commands.
        """
        encoded = encode_packet(packet_type, packet_id, body, self.encoding)
        if self.max_packet_size > 0 and len(encoded) > self.max_packet_size:
            raise RconPacketTooLarge(len(encoded), self.max_packet_size)

        if self._ws is None:
            raise RconNotConnected("Connection not defined")

        pending = _PendingRequest(
            request_type=packet_type,
            expected_id=packet_id,
            future=asyncio.get_running_loop().create_future(),
        )
        if self.multi_packet and packet_type is PacketType.EXECCOMMAND:
            # Unique per request so a late echo cannot end a later reply.
            pending.terminator_id = ID_TERMINATOR + packet_id
        self._pending = pending

        try:
            await self._ws.send_bytes(encoded)
            if pending.terminator_id is not None:
                await self._ws.send_bytes(
                    encode_packet(
                        PacketType.RESPONSE_VALUE,
                        pending.terminator_id,
                        "",
                        self.encoding,
                    )
                )
            _LOGGER.debug(
                "[%s] Sent packet type=%d id=%d (%d bytes)",
                self._tag,
                packet_type,
                packet_id,
                len(encoded),
            )
            return await asyncio.wait_for(pending.future, timeout=self.response_timeout)
        except TimeoutError as err:
            _LOGGER.warning(
                "[%s] No reply to request id=%d within %ss",
                self._tag,
                packet_id,
                self.response_timeout,
            )
            raise RconTimeout(f"No reply to request {packet_id}") from err
        finally:
            if self._pending is pending:
                self._pending = None

    def _reader_alive(self) -> bool:
        return self._listen_task is not None and not self._listen_task.done()

    def _fail_pending(self, err: RconClientError) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.future.done():
            pending.future.set_exception(err)

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self) -> None:
        """Route incoming frames to the pending request."""
        ws = self._ws
        if ws is None:
            return

        message_count = 0
        try:
            async for msg in ws:
                message_count += 1

                if msg.type is RconWsMessageType.BINARY:
                    self._handle_frame(msg.data)

                elif msg.type is RconWsMessageType.TEXT:
                    _LOGGER.debug("[%s] Ignoring text frame", self._tag)

                elif msg.type is RconWsMessageType.CLOSED:
                    _LOGGER.info("[%s] WebSocket closed by server", self._tag)
                    self._connected = False
                    self._authenticated = False
                    self._set_state("closed")
                    self._fail_pending(
                        RconTransportError("Connection closed by server")
                    )
                    break

                elif msg.type is RconWsMessageType.ERROR:
                    _LOGGER.error("[%s] WebSocket error: %s", self._tag, msg.data)
                    err = RconTransportError("WebSocket error")
                    if isinstance(msg.data, BaseException):
                        err.__cause__ = msg.data
                    self._fail_pending(err)
                    # The iterator ends after an error; execute() reports
                    # the stopped reader as RconSendUnavailable.
                    break

        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self._tag, message_count
            )
            raise

    def _handle_frame(self, data: Any) -> None:
        try:
            packet = decode_packet(data, self.encoding)
        except RconProtocolError as err:
            _LOGGER.warning("[%s] Dropping invalid frame: %s", self._tag, err)
            return

        _LOGGER.debug(
            "[%s] Received packet type=%d id=%d", self._tag, packet.type, packet.id
        )

        pending = self._pending
        if pending is None or pending.future.done():
            _LOGGER.debug("[%s] No request waiting for id=%d", self._tag, packet.id)
            return

        if pending.request_type is PacketType.AUTH:
            self._handle_auth_reply(pending, packet)
        else:
            self._handle_command_reply(pending, packet)

    def _handle_auth_reply(self, pending: _PendingRequest, packet: Packet) -> None:
        # The server answers AUTH twice: an empty RESPONSE_VALUE first,
        # then the AUTH_RESPONSE that carries the verdict.
        if packet.type != PacketType.AUTH_RESPONSE:
            return
        pending.future.set_result(packet.id == ID_AUTH)

    def _handle_command_reply(self, pending: _PendingRequest, packet: Packet) -> None:
        if pending.terminator_id is not None and packet.id == pending.terminator_id:
            # Only the empty mirror marks the end; the trailing 0x00000001
            # packet some servers add is ignored.
            if packet.body == "":
                pending.future.set_result(pending.response)
            return

        if packet.id != pending.expected_id:
            return

        pending.fragments.append(packet.body)
        if pending.terminator_id is None and pending.response:
            pending.future.set_result(pending.response)

    # -------------------------------------------------------------------------
    # Internal: State
    # -------------------------------------------------------------------------

    def _set_state(self, state: str) -> None:
        if self._state != state:
            _LOGGER.debug("[%s] State: %s → %s", self._tag, self._state, state)
            self._state = state
