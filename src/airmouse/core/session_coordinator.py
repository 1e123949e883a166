"""
Session Coordinator - AirMouse host

Turns session events from the ConnectionManager into pointer actions and
status notifications. This is the piece the UI talks to: it starts and stops
the server, and tells registered status listeners what is going on.

Event flow:
    ConnectionManager → handle_event() → HeadingFilter → MotionController
                                       ↘ status listeners (UI / console)

All events of a session arrive on the ConnectionManager's accept thread, in
wire order. start_server()/stop_server()/disconnect() are called from the UI
thread; the filter and session slots are guarded by a lock.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, Dict, List, Optional, Protocol

from airmouse.communication.connection_manager import ConnectionManager
from airmouse.communication.discovery_responder import DiscoveryResponder, resolve_local_address
from airmouse.communication.protocols import (
    BindError,
    ClickRequested,
    ClientConnected,
    ClientDisconnected,
    ConnectionFailed,
    RecalibrationRequested,
    SensorSampleReceived,
    SensorTypeChanged,
    SessionEvent,
)
from airmouse.communication.session_protocol import Session, SessionState
from airmouse.core.filters.heading_filter import (
    Heading,
    HeadingFilter,
    InvalidSample,
    UnknownSensorType,
    create_filter,
)
from airmouse.core.motion.motion_controller import MotionController
from airmouse.utils.config_sections import FilterConfig, load_discovery_config, load_filter_config

log = logging.getLogger("airmouse.session")


class StatusListener(Protocol):
    """Receives coarse session status; every method is called from the server thread."""

    def on_client_connected(self, session: Session) -> None: ...

    def on_client_disconnected(self) -> None: ...

    def on_connection_error(self, cause: BaseException) -> None: ...

    def on_heading(self, heading: Heading) -> None: ...

    def on_sensor_changed(self, heading_filter: Optional[HeadingFilter]) -> None: ...


def normalize_device_name(name: str, address: str, resolve_host: Callable[[str], str]) -> str:
    """Underscores become spaces; an empty name falls back to the peer's hostname."""
    cleaned = name.replace("_", " ").strip()
    if cleaned:
        return cleaned
    return resolve_host(address)


def reverse_lookup(address: str) -> str:
    try:
        return socket.gethostbyaddr(address)[0]
    except OSError:
        return address


class SessionCoordinator:
    """Owns the host components and applies session events to them."""

    def __init__(
        self,
        connection_manager: ConnectionManager,
        motion_controller: MotionController,
        discovery: Optional[DiscoveryResponder] = None,
        filter_config: Optional[FilterConfig] = None,
        resolve_host: Callable[[str], str] = reverse_lookup,
        address_resolver: Optional[Callable[[], str]] = None,
    ) -> None:
        self.connection_manager = connection_manager
        self.motion = motion_controller
        self.discovery = discovery
        self.filter_config = filter_config or load_filter_config()
        self.resolve_host = resolve_host

        if address_resolver is None:
            markers = load_discovery_config().virtual_interface_markers
            address_resolver = lambda: resolve_local_address(markers)
        self.address_resolver = address_resolver

        self._state_lock = threading.RLock()
        self._filter: Optional[HeadingFilter] = None
        self._session: Optional[Session] = None
        self._status_listeners: List[StatusListener] = []

        self._handlers: Dict[type, Callable[[SessionEvent], None]] = {
            ClientConnected: self._on_client_connected,
            SensorSampleReceived: self._on_sample,
            SensorTypeChanged: self._on_sensor_type_changed,
            RecalibrationRequested: self._on_recalibrate,
            ClickRequested: self._on_click,
            ClientDisconnected: self._on_client_disconnected,
            ConnectionFailed: self._on_connection_failed,
        }

        self.connection_manager.add_listener(self.handle_event)

    # ------------------------------------------------------------------
    # status listeners
    # ------------------------------------------------------------------

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> bool:
        try:
            self._status_listeners.remove(listener)
        except ValueError:
            return False
        return True

    def _notify(self, method: str, *args) -> None:
        for listener in list(self._status_listeners):
            try:
                getattr(listener, method)(*args)
            except Exception:
                log.exception(f"Status listener {listener!r} failed in {method}")

    # ------------------------------------------------------------------
    # server control
    # ------------------------------------------------------------------

    def start_server(self) -> None:
        """
        Start accepting devices and, if configured, answering discovery.

        Raises:
            BindError: TCP or UDP port could not be bound. Nothing is left
                running in that case.
        """
        self.connection_manager.start()
        if self.discovery is None:
            return
        try:
            self.discovery.start()
        except BindError:
            self.connection_manager.stop()
            raise

    def stop_server(self) -> None:
        if self.discovery is not None:
            self.discovery.stop()
        self.connection_manager.stop()
        self.motion.stop()

    def disconnect(self) -> None:
        self.connection_manager.disconnect()

    @property
    def is_listening(self) -> bool:
        return self.connection_manager.is_listening

    @property
    def is_connected(self) -> bool:
        return self.connection_manager.is_connected

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def active_filter(self) -> Optional[HeadingFilter]:
        return self._filter

    def local_endpoint(self) -> Optional[str]:
        """``ip:port`` a device can connect to, or None when not listening."""
        port = self.connection_manager.port
        if port < 0:
            return None
        try:
            address = self.address_resolver()
        except OSError as exc:
            log.warning(f"Cannot resolve local address: {exc}")
            return None
        return f"{address}:{port}"

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------

    def handle_event(self, event: SessionEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            log.debug(f"No handler for {type(event).__name__}")
            return
        handler(event)

    def _build_filter(self, sensor_type: int) -> Optional[HeadingFilter]:
        try:
            return create_filter(sensor_type, self.filter_config)
        except UnknownSensorType as exc:
            log.warning(f"{exc}; pointer input disabled until a known sensor is selected")
            return None

    def _on_client_connected(self, event: ClientConnected) -> None:
        name = normalize_device_name(event.device_name, event.address, self.resolve_host)
        session = Session(
            address=event.address,
            device_name=name,
            sensor_type=event.sensor_type,
            state=SessionState.ACTIVE,
        )
        heading_filter = self._build_filter(event.sensor_type)
        with self._state_lock:
            self._session = session
            self._filter = heading_filter

        log.info(f"Client connected: {name} ({event.address}), filter={heading_filter!r}")
        self._notify("on_client_connected", session)
        self._notify("on_sensor_changed", heading_filter)

    def _on_sample(self, event: SensorSampleReceived) -> None:
        with self._state_lock:
            heading_filter = self._filter
            if heading_filter is None:
                return
            try:
                heading = heading_filter.process_sample(event.values)
            except InvalidSample as exc:
                log.warning(f"Dropping sample {event.values}: {exc}")
                return

        if heading is None:
            log.debug(f"{heading_filter.display_name()} calibrated at {event.values}")
            return

        self.motion.set_heading(heading.x, heading.y)
        self._notify("on_heading", heading)

    def _on_sensor_type_changed(self, event: SensorTypeChanged) -> None:
        heading_filter = self._build_filter(event.sensor_type)
        with self._state_lock:
            self._filter = heading_filter
            if self._session is not None:
                self._session.sensor_type = event.sensor_type

        log.info(f"Sensor changed to {event.sensor_type}: {heading_filter!r}")
        self._notify("on_sensor_changed", heading_filter)

    def _on_recalibrate(self, _event: RecalibrationRequested) -> None:
        with self._state_lock:
            if self._filter is None:
                return
            self._filter.recalibrate()
        log.info("Recalibration requested")

    def _on_click(self, event: ClickRequested) -> None:
        if self._filter is None:
            log.debug("Ignoring click without an active sensor")
            return

        if event.is_release:
            self.motion.release()
        else:
            self.motion.press()

    def _on_client_disconnected(self, _event: ClientDisconnected) -> None:
        with self._state_lock:
            session, self._session = self._session, None
            self._filter = None
        if session is not None:
            session.state = SessionState.CLOSED

        self.motion.stop()
        log.info("Client disconnected")
        self._notify("on_client_disconnected")

    def _on_connection_failed(self, event: ConnectionFailed) -> None:
        log.warning(f"Connection error: {event.cause}")
        self._notify("on_connection_error", event.cause)
