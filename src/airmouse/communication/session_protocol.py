"""
Plain-text session protocol spoken over one accepted TCP connection.

State machine:
    AWAITING_HANDSHAKE --valid handshake--> ACTIVE --quit / EOF / I/O error--> CLOSED
    AWAITING_HANDSHAKE --HandshakeError--> CLOSED (no ClientConnected, no ClientDisconnected)

Every parsed line becomes a SessionEvent passed to the ``emit`` callback, in
arrival order. Malformed payloads and unknown commands never end a session:
the former are logged and skipped, the latter are ignored so newer devices
can talk to older hosts.

Usage:
    stream = client_socket.makefile("rb")
    protocol = SessionProtocol(stream, "192.168.1.20", emit=listeners.dispatch)
    protocol.run()   # handshake + read loop + teardown events
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Callable, Dict, Optional

from airmouse.communication.protocols import (
    ClickRequested,
    ClientConnected,
    ClientDisconnected,
    ConnectionFailed,
    EventCallback,
    HandshakeError,
    LineTooLong,
    MalformedCommand,
    RecalibrationRequested,
    SensorSampleReceived,
    SensorTypeChanged,
    parse_handshake,
    parse_sample,
    parse_sensor_type,
    split_command,
)
from airmouse.core.filters.heading_filter import InvalidSample
from airmouse.utils.config_sections import ServerConfig, load_server_config

log = logging.getLogger("airmouse.protocol")


class SessionState(Enum):
    IDLE = "idle"
    HANDSHAKING = "handshaking"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class ProtocolState(Enum):
    AWAITING_HANDSHAKE = "awaiting_handshake"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class Session:
    """One connected device, from accept to disconnect."""

    address: str
    device_name: str = ""
    sensor_type: Optional[int] = None
    state: SessionState = SessionState.IDLE
    connected_at: float = field(default_factory=time.time)


class SessionProtocol:
    """Reads lines from one connection and turns them into session events."""

    def __init__(
        self,
        stream: BinaryIO,
        address: str,
        emit: EventCallback,
        config: Optional[ServerConfig] = None,
    ) -> None:
        self.stream = stream
        self.emit = emit
        self.config = config or load_server_config()

        self.state = ProtocolState.AWAITING_HANDSHAKE
        self.session = Session(address=address)
        self.lines_read = 0

        self._commands: Dict[str, Callable[[str], None]] = {
            "data": self._on_data,
            "type": self._on_type,
            "reset": self._on_reset,
            "tap": self._on_tap,
        }

    # ------------------------------------------------------------------
    # stream
    # ------------------------------------------------------------------

    def _read_line(self) -> Optional[str]:
        """
        Next line without its terminator, or None at end-of-stream.

        Raises:
            LineTooLong: More than ``max_line`` bytes before the newline. The
                rest of that line is consumed so the next read starts clean.
        """
        limit = self.config.max_line
        raw = self.stream.readline(limit + 1)
        if not raw:
            return None
        self.lines_read += 1

        if len(raw) > limit and not raw.endswith(b"\n"):
            self._discard_rest_of_line()
            raise LineTooLong(f"Line exceeds {limit} bytes")

        return raw.decode(self.config.encoding, errors="replace").rstrip("\r\n")

    def _discard_rest_of_line(self) -> None:
        while True:
            chunk = self.stream.readline(self.config.max_line)
            if not chunk or chunk.endswith(b"\n"):
                return

    # ------------------------------------------------------------------
    # states
    # ------------------------------------------------------------------

    def handshake(self) -> None:
        """
        Consume the handshake line and announce the client.

        Raises:
            HandshakeError: Malformed line; protocol is CLOSED afterwards.
        """
        if self.state is not ProtocolState.AWAITING_HANDSHAKE:
            raise HandshakeError(f"Handshake not expected in state {self.state.value}")

        self.session.state = SessionState.HANDSHAKING
        try:
            try:
                line = self._read_line()
            except LineTooLong as exc:
                raise HandshakeError(f"Handshake error, {exc}") from exc
            device_name, sensor_type = parse_handshake(line, self.config.magic)
        except (HandshakeError, OSError):
            self.state = ProtocolState.CLOSED
            self.session.state = SessionState.CLOSED
            raise

        self.session.device_name = device_name
        self.session.sensor_type = sensor_type
        self.session.state = SessionState.ACTIVE
        self.state = ProtocolState.ACTIVE

        log.info(f"Handshake from {self.session.address}: device={device_name!r} sensor={sensor_type}")
        self.emit(ClientConnected(self.session.address, device_name, sensor_type))

    def read_next(self) -> bool:
        """
        Read and dispatch one command line.

        Returns:
            False when the session should end (quit or peer closed).
        """
        if self.state is not ProtocolState.ACTIVE:
            return False

        try:
            line = self._read_line()
        except LineTooLong as exc:
            log.warning(f"Skipping line from {self.session.address}: {exc}")
            return True
        if line is None:
            log.info(f"Peer {self.session.address} closed the stream")
            return False

        log.debug(line)

        if line.strip().lower() == "quit":
            log.info(f"Peer {self.session.address} sent quit")
            return False

        command, remainder = split_command(line)
        if not command:
            return True

        handler = self._commands.get(command)
        if handler is None:
            log.debug(f"Ignoring unknown command {command!r}")
            return True

        try:
            handler(remainder)
        except (InvalidSample, MalformedCommand) as exc:
            log.warning(f"Skipping malformed {command!r} line: {exc}")
        return True

    def run(self) -> None:
        """Handshake, read until the session ends, then tear down."""
        try:
            self.handshake()
        except (HandshakeError, OSError) as exc:
            log.warning(f"Session from {self.session.address} aborted: {exc}")
            self.emit(ConnectionFailed(exc))
            return

        try:
            while self.read_next():
                pass
        except OSError as exc:
            log.warning(f"Connection error with {self.session.address}: {exc}")
            self.emit(ConnectionFailed(exc))
        finally:
            self.close()

    def close(self) -> None:
        """Enter CLOSED; ClientDisconnected fires once for an established session."""
        if self.state is ProtocolState.CLOSED:
            return

        established = self.state is ProtocolState.ACTIVE
        self.session.state = SessionState.CLOSING
        self.state = ProtocolState.CLOSED
        self.session.state = SessionState.CLOSED

        if established:
            log.info(f"Session with {self.session.address} closed")
            self.emit(ClientDisconnected())

    # ------------------------------------------------------------------
    # commands
    # ------------------------------------------------------------------

    def _on_data(self, payload: str) -> None:
        self.emit(SensorSampleReceived(parse_sample(payload)))

    def _on_type(self, payload: str) -> None:
        sensor_type = parse_sensor_type(payload)
        self.session.sensor_type = sensor_type
        self.emit(SensorTypeChanged(sensor_type))

    def _on_reset(self, _payload: str) -> None:
        self.emit(RecalibrationRequested())

    def _on_tap(self, payload: str) -> None:
        self.emit(ClickRequested(is_release=payload != "on"))
