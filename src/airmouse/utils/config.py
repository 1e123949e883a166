"""
Centralized configuration for the AirMouse host.

This module provides all configuration constants and runtime settings for:
- Wire protocol (magic token, discovery probe)
- TCP session server and UDP discovery responder
- Sensor heading filters (dead-zone, gyroscope gain)
- Pointer smoothing loop timings
- Session logging

The Config class contains all constants as class attributes, making them
accessible throughout the application without instantiation. Typed views of
these values live in utils.config_sections.

Usage:
    from airmouse.utils.config import Config

    probe = Config.DISCOVERY_PROBE
    if Config.DISCOVERY_ENABLED:
        # Answer discovery broadcasts
"""


class Config:
    """System configuration constants for the AirMouse host."""

    # ==========================================================================
    # PROTOCOL: Magic token shared by handshake and discovery
    # ==========================================================================

    PROTOCOL_MAGIC = "RS-AirMouse"
    DISCOVERY_PROBE = f"{PROTOCOL_MAGIC} discover"
    PROTOCOL_ENCODING = "ascii"
    PROTOCOL_MAX_LINE = 1024            # Bytes per line, terminator excluded

    # ==========================================================================
    # TCP SERVER: Single-client session listener
    # ==========================================================================

    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 0                     # 0 = ephemeral port chosen by the OS
    SERVER_BACKLOG = 1                  # Sessions are strictly sequential
    SERVER_ACCEPT_POLL = 0.5            # Seconds between stop-flag checks while idle
    SERVER_JOIN_TIMEOUT = 2.0

    # ==========================================================================
    # UDP DISCOVERY: Fixed well-known port so devices can find us
    # ==========================================================================

    DISCOVERY_ENABLED = True
    DISCOVERY_HOST = ""
    DISCOVERY_PORT = 8337
    DISCOVERY_BUFFER_SIZE = 15000
    DISCOVERY_RECV_POLL = 0.5
    DISCOVERY_VIRTUAL_INTERFACE_MARKERS = (
        "vmware", "virtualbox", "vbox", "docker", "veth", "virbr", "br-", "vmnet",
    )

    # ==========================================================================
    # HEADING FILTERS: Calibration and noise suppression
    # ==========================================================================

    SENSOR_ACCELEROMETER = 1
    SENSOR_GYROSCOPE = 2
    FILTER_DEAD_ZONE = 1.0              # |delta| < 1 on both axes clamps to 0
    FILTER_ACCELEROMETER_GAIN = 1.0
    FILTER_GYROSCOPE_GAIN = 10.0        # Angular-rate deltas are ~10x smaller

    # ==========================================================================
    # MOTION LOOP: Pointer animation decoupled from sample rate
    # ==========================================================================

    MOTION_TICK_INTERVAL = 0.010        # ~100 Hz pointer updates
    MOTION_IDLE_INTERVAL = 0.100        # Re-check period while setpoint is stale
    MOTION_STALE_TIMEOUT = 1.000        # Setpoint older than this stops movement
    MOTION_JOIN_TIMEOUT = 1.0

    # ==========================================================================
    # LOGGING: Session log files
    # ==========================================================================

    LOG_DIR = "logs"
    LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s: %(message)s"
    LOG_DATE_FORMAT = "%H:%M:%S"
