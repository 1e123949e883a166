"""Tests for SessionCoordinator event handling with stubbed components."""

from __future__ import annotations

from typing import List

import pytest

from airmouse.communication.protocols import (
    BindError,
    ClickRequested,
    ClientConnected,
    ClientDisconnected,
    ConnectionFailed,
    RecalibrationRequested,
    SensorSampleReceived,
    SensorTypeChanged,
)
from airmouse.core.filters.heading_filter import Heading
from airmouse.core.session_coordinator import SessionCoordinator, normalize_device_name

PEER = "192.168.1.20"


class StubConnectionManager:
    def __init__(self) -> None:
        self.listeners = []
        self.port = -1
        self.is_listening = False
        self.is_connected = False
        self.calls: List[str] = []

    def add_listener(self, listener) -> None:
        self.listeners.append(listener)

    def start(self) -> None:
        self.calls.append("start")
        self.is_listening = True
        self.port = 5000

    def stop(self) -> None:
        self.calls.append("stop")
        self.is_listening = False
        self.port = -1

    def disconnect(self) -> None:
        self.calls.append("disconnect")


class StubDiscovery:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[str] = []

    def start(self) -> None:
        if self.fail:
            raise BindError("UDP 8337 in use")
        self.calls.append("start")

    def stop(self) -> None:
        self.calls.append("stop")


class StubMotion:
    def __init__(self) -> None:
        self.headings = []
        self.calls: List[str] = []

    def set_heading(self, x: float, y: float) -> None:
        self.headings.append((x, y))

    def press(self) -> None:
        self.calls.append("press")

    def release(self) -> None:
        self.calls.append("release")

    def stop(self) -> None:
        self.calls.append("stop")


class RecordingStatus:
    def __init__(self) -> None:
        self.calls = []

    def on_client_connected(self, session) -> None:
        self.calls.append(("connected", session))

    def on_client_disconnected(self) -> None:
        self.calls.append(("disconnected",))

    def on_connection_error(self, cause) -> None:
        self.calls.append(("error", cause))

    def on_heading(self, heading) -> None:
        self.calls.append(("heading", heading))

    def on_sensor_changed(self, heading_filter) -> None:
        self.calls.append(("sensor", heading_filter))

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture()
def manager() -> StubConnectionManager:
    return StubConnectionManager()


@pytest.fixture()
def motion() -> StubMotion:
    return StubMotion()


@pytest.fixture()
def status() -> RecordingStatus:
    return RecordingStatus()


@pytest.fixture()
def coordinator(manager, motion, status) -> SessionCoordinator:
    coord = SessionCoordinator(
        manager,
        motion,
        resolve_host=lambda address: f"host-{address}",
        address_resolver=lambda: "10.0.0.2",
    )
    coord.add_status_listener(status)
    return coord


def connect(coordinator: SessionCoordinator, name: str = "devA", sensor_type: int = 1) -> None:
    coordinator.handle_event(ClientConnected(PEER, name, sensor_type))


def test_registers_with_connection_manager(coordinator, manager):
    assert manager.listeners == [coordinator.handle_event]


def test_normalize_device_name():
    resolve = lambda address: "resolved"
    assert normalize_device_name("Pixel_7_Pro", PEER, resolve) == "Pixel 7 Pro"
    assert normalize_device_name("", PEER, resolve) == "resolved"
    assert normalize_device_name("__", PEER, resolve) == "resolved"


def test_client_connected_creates_filter_and_notifies(coordinator, status):
    connect(coordinator, "my_phone", 2)

    assert coordinator.session.device_name == "my phone"
    assert coordinator.session.address == PEER
    assert coordinator.active_filter.display_name() == "Gyroscope"
    assert status.names() == ["connected", "sensor"]
    assert status.calls[1][1] is coordinator.active_filter


def test_empty_device_name_uses_peer_hostname(coordinator):
    connect(coordinator, "")

    assert coordinator.session.device_name == f"host-{PEER}"


def test_samples_drive_motion_after_calibration(coordinator, motion, status):
    connect(coordinator)

    coordinator.handle_event(SensorSampleReceived((0.0, 0.0)))
    assert motion.headings == []

    coordinator.handle_event(SensorSampleReceived((5.0, -2.0)))

    assert motion.headings == [(-5.0, -2.0)]
    assert ("heading", Heading(-5.0, -2.0)) in status.calls


def test_unknown_sensor_disables_input(coordinator, motion, status):
    connect(coordinator, sensor_type=9)

    coordinator.handle_event(SensorSampleReceived((0.0, 0.0)))
    coordinator.handle_event(SensorSampleReceived((5.0, 5.0)))
    coordinator.handle_event(ClickRequested(is_release=False))
    coordinator.handle_event(RecalibrationRequested())

    assert coordinator.active_filter is None
    assert ("sensor", None) in status.calls
    assert motion.headings == []
    assert motion.calls == []


def test_sensor_type_change_swaps_filter(coordinator, status):
    connect(coordinator, sensor_type=1)

    coordinator.handle_event(SensorTypeChanged(2))

    assert coordinator.active_filter.display_name() == "Gyroscope"
    assert coordinator.session.sensor_type == 2
    assert status.names()[-1] == "sensor"

    coordinator.handle_event(SensorTypeChanged(42))
    assert coordinator.active_filter is None


def test_recalibration_resets_origin(coordinator, motion):
    connect(coordinator)
    coordinator.handle_event(SensorSampleReceived((0.0, 0.0)))

    coordinator.handle_event(RecalibrationRequested())
    coordinator.handle_event(SensorSampleReceived((5.0, 5.0)))

    assert motion.headings == []
    coordinator.handle_event(SensorSampleReceived((5.0, 5.0)))
    assert motion.headings == [(0.0, 0.0)]


def test_clicks_forwarded_while_filter_active(coordinator, motion):
    connect(coordinator)

    coordinator.handle_event(ClickRequested(is_release=False))
    coordinator.handle_event(ClickRequested(is_release=True))

    assert motion.calls == ["press", "release"]


def test_click_without_session_is_ignored(coordinator, motion):
    coordinator.handle_event(ClickRequested(is_release=False))

    assert motion.calls == []


def test_short_sample_is_dropped(coordinator, motion):
    connect(coordinator)

    coordinator.handle_event(SensorSampleReceived((1.0,)))

    assert motion.headings == []
    assert not coordinator.active_filter.is_calibrated


def test_disconnect_clears_state_and_stops_motion(coordinator, motion, status):
    connect(coordinator)
    session = coordinator.session

    coordinator.handle_event(ClientDisconnected())

    assert coordinator.session is None
    assert coordinator.active_filter is None
    assert motion.calls == ["stop"]
    assert status.names()[-1] == "disconnected"
    assert session.state.value == "closed"


def test_connection_failure_is_reported(coordinator, status):
    cause = ConnectionResetError("reset")

    coordinator.handle_event(ConnectionFailed(cause))

    assert status.calls == [("error", cause)]


def test_failing_status_listener_does_not_block_others(coordinator, status):
    class Broken:
        def __getattr__(self, _name):
            raise RuntimeError("ui bug")

    coordinator.remove_status_listener(status)
    coordinator.add_status_listener(Broken())
    coordinator.add_status_listener(status)

    connect(coordinator)

    assert status.names() == ["connected", "sensor"]


def test_start_and_stop_server(coordinator, manager, motion):
    discovery = StubDiscovery()
    coordinator.discovery = discovery

    coordinator.start_server()
    assert coordinator.is_listening
    assert coordinator.local_endpoint() == "10.0.0.2:5000"

    coordinator.stop_server()
    assert manager.calls == ["start", "stop"]
    assert discovery.calls == ["start", "stop"]
    assert motion.calls == ["stop"]
    assert coordinator.local_endpoint() is None


def test_discovery_bind_error_rolls_back_server(coordinator, manager):
    coordinator.discovery = StubDiscovery(fail=True)

    with pytest.raises(BindError):
        coordinator.start_server()

    assert manager.calls == ["start", "stop"]
    assert not coordinator.is_listening


def test_disconnect_delegates_to_manager(coordinator, manager):
    coordinator.disconnect()

    assert manager.calls == ["disconnect"]
