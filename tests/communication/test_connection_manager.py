"""Tests for the single-client TCP server over real loopback sockets."""

from __future__ import annotations

import socket
import threading
import time
from typing import List

import pytest

from airmouse.communication.connection_manager import ConnectionManager
from airmouse.communication.protocols import (
    BindError,
    ClientConnected,
    ClientDisconnected,
    SensorSampleReceived,
)
from airmouse.utils.config_sections import ServerConfig

HANDSHAKE = b"RS-AirMouse devA 1\n"


class RecordingListener:
    def __init__(self) -> None:
        self.events: List[object] = []
        self._lock = threading.Lock()

    def __call__(self, event) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type) -> List[object]:
        with self._lock:
            return [e for e in self.events if isinstance(e, event_type)]


def wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture()
def config() -> ServerConfig:
    return ServerConfig(host="127.0.0.1", port=0, accept_poll=0.05, join_timeout=2.0)


@pytest.fixture()
def recorder() -> RecordingListener:
    return RecordingListener()


@pytest.fixture()
def manager(config: ServerConfig, recorder: RecordingListener):
    server = ConnectionManager(config)
    server.add_listener(recorder)
    server.start()
    yield server
    server.stop()


def connect(manager: ConnectionManager) -> socket.socket:
    return socket.create_connection(("127.0.0.1", manager.port), timeout=2.0)


def test_port_is_minus_one_when_not_listening(config: ServerConfig):
    server = ConnectionManager(config)

    assert server.port == -1
    assert not server.is_listening

    server.start()
    try:
        assert server.is_listening
        assert server.port > 0
    finally:
        server.stop()

    assert server.port == -1
    assert not server.is_listening


def test_full_session_is_delivered_in_order(manager: ConnectionManager, recorder: RecordingListener):
    with connect(manager) as client:
        client.sendall(HANDSHAKE + b"data 2,3\nquit\n")
        assert wait_for(lambda: recorder.of_type(ClientDisconnected))

    assert recorder.events == [
        ClientConnected("127.0.0.1", "devA", 1),
        SensorSampleReceived((2.0, 3.0)),
        ClientDisconnected(),
    ]
    assert wait_for(lambda: manager.sessions_served == 1)
    assert manager.is_listening


def test_sessions_are_served_one_at_a_time(manager: ConnectionManager, recorder: RecordingListener):
    first = connect(manager)
    first.sendall(HANDSHAKE)
    assert wait_for(lambda: len(recorder.of_type(ClientConnected)) == 1)
    assert manager.is_connected

    second = connect(manager)
    second.sendall(b"RS-AirMouse devB 2\n")
    time.sleep(0.3)
    assert len(recorder.of_type(ClientConnected)) == 1

    first.close()
    assert wait_for(lambda: len(recorder.of_type(ClientConnected)) == 2)
    connected = recorder.of_type(ClientConnected)
    assert [e.device_name for e in connected] == ["devA", "devB"]

    # First teardown completes before the second session starts
    disconnect_index = recorder.events.index(ClientDisconnected())
    assert disconnect_index < recorder.events.index(connected[1])

    second.close()
    assert wait_for(lambda: len(recorder.of_type(ClientDisconnected)) == 2)


def test_disconnect_drops_client_but_keeps_listening(manager: ConnectionManager, recorder: RecordingListener):
    with connect(manager) as client:
        client.sendall(HANDSHAKE)
        assert wait_for(lambda: recorder.of_type(ClientConnected))

        manager.disconnect()

        assert wait_for(lambda: recorder.of_type(ClientDisconnected))
        assert wait_for(lambda: not manager.is_connected)
        assert manager.is_listening


def test_stop_during_session_tears_it_down(config: ServerConfig, recorder: RecordingListener):
    server = ConnectionManager(config)
    server.add_listener(recorder)
    server.start()

    with socket.create_connection(("127.0.0.1", server.port), timeout=2.0) as client:
        client.sendall(HANDSHAKE)
        assert wait_for(lambda: recorder.of_type(ClientConnected))

        server.stop()

    assert recorder.of_type(ClientDisconnected)
    assert not server.is_listening
    assert not server.is_connected


def test_bind_error_when_port_taken(config: ServerConfig):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    try:
        taken = blocker.getsockname()[1]
        server = ConnectionManager(ServerConfig(host="127.0.0.1", port=taken, accept_poll=0.05))

        with pytest.raises(BindError):
            server.start()
        assert not server.is_listening
    finally:
        blocker.close()


def test_failing_listener_does_not_break_session(config: ServerConfig, recorder: RecordingListener):
    def explode(_event):
        raise RuntimeError("listener bug")

    server = ConnectionManager(config)
    server.add_listener(explode)
    server.add_listener(recorder)
    server.start()
    try:
        with socket.create_connection(("127.0.0.1", server.port), timeout=2.0) as client:
            client.sendall(HANDSHAKE + b"quit\n")
            assert wait_for(lambda: recorder.of_type(ClientDisconnected))
    finally:
        server.stop()

    assert recorder.events[0] == ClientConnected("127.0.0.1", "devA", 1)


def test_remove_listener(config: ServerConfig, recorder: RecordingListener):
    server = ConnectionManager(config)
    server.add_listener(recorder)

    assert server.remove_listener(recorder)
    assert not server.remove_listener(recorder)


def test_not_connected_while_disconnect_is_delivered(config: ServerConfig):
    seen = []

    server = ConnectionManager(config)

    def on_event(event):
        if isinstance(event, ClientDisconnected):
            seen.append(server.is_connected)

    server.add_listener(on_event)
    server.start()
    try:
        with socket.create_connection(("127.0.0.1", server.port), timeout=2.0) as client:
            client.sendall(HANDSHAKE + b"quit\n")
            assert wait_for(lambda: seen)
    finally:
        server.stop()

    assert seen == [False]
