"""
Communication Protocols - AirMouse host
Contracts between the handheld device and the host

The wire protocol is plain ASCII, one command per '\n'-terminated line,
similar to IRC: the first word is the command, the rest its arguments.

    handshake   RS-AirMouse <device-name> <sensor-type-id>
    data        data <x>,<y>[,<z>]
    type        type <sensor-type-id>
    reset       reset
    tap         tap on | tap off
    quit        quit

Discovery runs over UDP on a fixed port:

    probe       RS-AirMouse discover
    reply       RS-AirMouse <ip-address> <tcp-port>

Architecture:
Device → TCP line → SessionProtocol → SessionEvent → listeners
Device → UDP probe → DiscoveryResponder → UDP reply → Device
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from airmouse.core.filters.heading_filter import InvalidSample
from airmouse.utils.config import Config


# =================================================================
# SESSION EVENTS
# =================================================================

@dataclass(frozen=True)
class ClientConnected:
    """
    Handshake accepted.

    Attributes:
        address: Peer IP address
        device_name: Name announced by the device (hostname or model)
        sensor_type: Sensor id the device starts streaming with
    """
    address: str
    device_name: str
    sensor_type: int


@dataclass(frozen=True)
class SensorSampleReceived:
    """Raw sensor reading: x, y and optionally z."""
    values: Tuple[float, ...]


@dataclass(frozen=True)
class SensorTypeChanged:
    sensor_type: int


@dataclass(frozen=True)
class RecalibrationRequested:
    pass


@dataclass(frozen=True)
class ClickRequested:
    """``is_release`` False means button down, True means button up."""
    is_release: bool


@dataclass(frozen=True)
class ClientDisconnected:
    pass


@dataclass(frozen=True)
class ConnectionFailed:
    """Transport or handshake failure; ``cause`` is the exception."""
    cause: BaseException


SessionEvent = Union[
    ClientConnected,
    SensorSampleReceived,
    SensorTypeChanged,
    RecalibrationRequested,
    ClickRequested,
    ClientDisconnected,
    ConnectionFailed,
]

EventCallback = Callable[[SessionEvent], None]


# =================================================================
# ERROR HANDLING
# =================================================================

class CommunicationError(Exception):
    """Base exception for communication errors"""
    pass

class HandshakeError(CommunicationError):
    """First line of a session is not a valid handshake"""
    pass

class MalformedCommand(CommunicationError):
    """Command line whose payload cannot be decoded"""
    pass

class LineTooLong(MalformedCommand):
    """Line exceeds the configured maximum length"""
    pass

class NetworkError(CommunicationError):
    """Socket / connectivity error"""
    pass

class BindError(NetworkError):
    """Listening socket could not be bound"""
    pass


# =================================================================
# LINE PARSING
# =================================================================

def parse_handshake(line: Optional[str], magic: str = Config.PROTOCOL_MAGIC) -> Tuple[str, int]:
    """
    Parse ``<magic> <device-name> <sensor-type-id>``.

    Returns:
        (device_name, sensor_type)

    Raises:
        HandshakeError: Missing line, wrong magic, too few fields or
            non-integer sensor id.
    """
    if line is None:
        raise HandshakeError("Handshake error, connection closed before handshake")

    tokens = line.split()
    if not tokens or tokens[0] != magic:
        raise HandshakeError(f"Handshake error, line not valid: {line!r}")
    if len(tokens) < 3:
        raise HandshakeError(f"Handshake error, expected '{magic} <name> <type>', got: {line!r}")

    try:
        sensor_type = int(tokens[2])
    except ValueError as exc:
        raise HandshakeError(f"Handshake error, sensor type is not an integer: {tokens[2]!r}") from exc

    return tokens[1], sensor_type


def split_command(line: str) -> Tuple[str, str]:
    """Split a line into (lower-cased command, stripped remainder)."""
    stripped = line.strip()
    if not stripped:
        return "", ""
    parts = stripped.split(None, 1)
    command = parts[0].lower()
    remainder = parts[1].strip() if len(parts) > 1 else ""
    return command, remainder


def parse_sample(payload: str) -> Tuple[float, ...]:
    """
    Parse ``<x>,<y>[,<z>]`` into floats.

    Values past the third are dropped.

    Raises:
        InvalidSample: Non-numeric or non-finite field, or fewer than two
            values.
    """
    fields = [f.strip() for f in payload.split(",") if f.strip()]
    try:
        values = tuple(float(f) for f in fields)
    except ValueError as exc:
        raise InvalidSample(f"Sensor data is not numeric: {payload!r}") from exc

    if len(values) < 2:
        raise InvalidSample(f"Sensor data needs at least 2 values: {payload!r}")

    values = values[:3]
    # float() accepts "nan" and "inf"
    if not all(math.isfinite(v) for v in values):
        raise InvalidSample(f"Sensor data is not finite: {payload!r}")

    return values


def parse_sensor_type(payload: str) -> int:
    try:
        return int(payload.strip())
    except ValueError as exc:
        raise MalformedCommand(f"Sensor type is not an integer: {payload!r}") from exc


def format_discovery_reply(address: str, port: int, magic: str = Config.PROTOCOL_MAGIC) -> str:
    return f"{magic} {address} {port}"
