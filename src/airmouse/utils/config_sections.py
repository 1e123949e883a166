"""
Typed configuration sections for the AirMouse host.

One dataclass per component. Each component takes its section in the
constructor and falls back to the matching load_*() function, which reads
Config with a default per field. Tests and CLI flags pass a section built
directly (or via dataclasses.replace) instead of patching Config.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass
class ServerConfig:
    """Configuration for the single-session TCP listener."""

    host: str = "0.0.0.0"
    port: int = 0  # Ephemeral
    backlog: int = 1
    accept_poll: float = 0.5  # Seconds between stop checks in accept()
    join_timeout: float = 2.0
    magic: str = "RS-AirMouse"
    encoding: str = "ascii"
    max_line: int = 1024


@dataclass
class DiscoveryConfig:
    """Configuration for the UDP discovery responder."""

    enabled: bool = True
    host: str = ""
    port: int = 8337  # Must match the device side, not negotiable
    buffer_size: int = 15000
    recv_poll: float = 0.5
    probe: str = "RS-AirMouse discover"
    magic: str = "RS-AirMouse"
    virtual_interface_markers: Tuple[str, ...] = field(
        default_factory=lambda: ("vmware", "virtualbox", "vbox", "docker", "veth", "virbr", "br-", "vmnet")
    )


@dataclass
class MotionConfig:
    """Configuration for the pointer smoothing loop."""

    tick_interval: float = 0.010
    idle_interval: float = 0.100
    stale_timeout: float = 1.000
    join_timeout: float = 1.0


@dataclass
class FilterConfig:
    """Configuration for sensor heading filters."""

    dead_zone: float = 1.0
    accelerometer_gain: float = 1.0
    gyroscope_gain: float = 10.0


def load_server_config() -> ServerConfig:
    """
    Load TCP server configuration from Config with fallback defaults.

    Returns:
        ServerConfig with values from Config or defaults
    """
    from airmouse.utils.config import Config

    return ServerConfig(
        host=getattr(Config, "SERVER_HOST", "0.0.0.0"),
        port=getattr(Config, "SERVER_PORT", 0),
        backlog=getattr(Config, "SERVER_BACKLOG", 1),
        accept_poll=getattr(Config, "SERVER_ACCEPT_POLL", 0.5),
        join_timeout=getattr(Config, "SERVER_JOIN_TIMEOUT", 2.0),
        magic=getattr(Config, "PROTOCOL_MAGIC", "RS-AirMouse"),
        encoding=getattr(Config, "PROTOCOL_ENCODING", "ascii"),
        max_line=getattr(Config, "PROTOCOL_MAX_LINE", 1024),
    )


def load_discovery_config() -> DiscoveryConfig:
    """
    Load discovery responder configuration from Config with fallback defaults.

    Returns:
        DiscoveryConfig with values from Config or defaults
    """
    from airmouse.utils.config import Config

    defaults = DiscoveryConfig()
    return DiscoveryConfig(
        enabled=getattr(Config, "DISCOVERY_ENABLED", True),
        host=getattr(Config, "DISCOVERY_HOST", ""),
        port=getattr(Config, "DISCOVERY_PORT", 8337),
        buffer_size=getattr(Config, "DISCOVERY_BUFFER_SIZE", 15000),
        recv_poll=getattr(Config, "DISCOVERY_RECV_POLL", 0.5),
        probe=getattr(Config, "DISCOVERY_PROBE", "RS-AirMouse discover"),
        magic=getattr(Config, "PROTOCOL_MAGIC", "RS-AirMouse"),
        virtual_interface_markers=tuple(
            getattr(Config, "DISCOVERY_VIRTUAL_INTERFACE_MARKERS", defaults.virtual_interface_markers)
        ),
    )


def load_motion_config() -> MotionConfig:
    """
    Load motion loop configuration from Config with fallback defaults.

    Returns:
        MotionConfig with values from Config or defaults
    """
    from airmouse.utils.config import Config

    return MotionConfig(
        tick_interval=getattr(Config, "MOTION_TICK_INTERVAL", 0.010),
        idle_interval=getattr(Config, "MOTION_IDLE_INTERVAL", 0.100),
        stale_timeout=getattr(Config, "MOTION_STALE_TIMEOUT", 1.000),
        join_timeout=getattr(Config, "MOTION_JOIN_TIMEOUT", 1.0),
    )


def load_filter_config() -> FilterConfig:
    """
    Load heading filter configuration from Config with fallback defaults.

    Returns:
        FilterConfig with values from Config or defaults
    """
    from airmouse.utils.config import Config

    return FilterConfig(
        dead_zone=getattr(Config, "FILTER_DEAD_ZONE", 1.0),
        accelerometer_gain=getattr(Config, "FILTER_ACCELEROMETER_GAIN", 1.0),
        gyroscope_gain=getattr(Config, "FILTER_GYROSCOPE_GAIN", 10.0),
    )
