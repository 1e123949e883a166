"""
Simple Builder Pattern - AirMouse host
"""

import logging
from typing import Optional

from airmouse.communication.connection_manager import ConnectionManager
from airmouse.communication.discovery_responder import DiscoveryResponder
from airmouse.core.hardware.pointer_actuator import PointerActuator, PyAutoGuiActuator
from airmouse.core.motion.motion_controller import MotionController
from airmouse.core.session_coordinator import SessionCoordinator
from airmouse.utils.config_sections import (
    DiscoveryConfig,
    FilterConfig,
    MotionConfig,
    ServerConfig,
    load_discovery_config,
    load_filter_config,
    load_motion_config,
    load_server_config,
)

log = logging.getLogger("airmouse.session")


class Builder:
    """Creates every host component; sections default to Config values."""

    def __init__(
        self,
        server_config: Optional[ServerConfig] = None,
        discovery_config: Optional[DiscoveryConfig] = None,
        motion_config: Optional[MotionConfig] = None,
        filter_config: Optional[FilterConfig] = None,
    ):
        self.server_config = server_config or load_server_config()
        self.discovery_config = discovery_config or load_discovery_config()
        self.motion_config = motion_config or load_motion_config()
        self.filter_config = filter_config or load_filter_config()

    def build_connection_manager(self) -> ConnectionManager:
        log.debug("Creating ConnectionManager...")
        return ConnectionManager(self.server_config)

    def build_discovery_responder(self, connection_manager: ConnectionManager) -> Optional[DiscoveryResponder]:
        if not self.discovery_config.enabled:
            log.debug("Discovery disabled")
            return None
        log.debug("Creating DiscoveryResponder...")
        return DiscoveryResponder(lambda: connection_manager.port, self.discovery_config)

    def build_motion_controller(self, actuator: PointerActuator) -> MotionController:
        log.debug("Creating MotionController...")
        return MotionController(actuator, self.motion_config)

    def build_full_system(self, actuator: Optional[PointerActuator] = None) -> SessionCoordinator:
        connection_manager = self.build_connection_manager()
        discovery = self.build_discovery_responder(connection_manager)
        motion = self.build_motion_controller(actuator or PyAutoGuiActuator())

        coordinator = SessionCoordinator(
            connection_manager,
            motion,
            discovery=discovery,
            filter_config=self.filter_config,
        )
        log.info("Host components built")
        return coordinator


def build_session_coordinator(
    actuator: Optional[PointerActuator] = None,
    *,
    server_config: Optional[ServerConfig] = None,
    discovery_config: Optional[DiscoveryConfig] = None,
    motion_config: Optional[MotionConfig] = None,
    filter_config: Optional[FilterConfig] = None,
) -> SessionCoordinator:
    """Convenience function that wires the default host."""
    builder = Builder(
        server_config=server_config,
        discovery_config=discovery_config,
        motion_config=motion_config,
        filter_config=filter_config,
    )
    return builder.build_full_system(actuator)
