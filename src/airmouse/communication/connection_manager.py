"""
Single-client TCP server for device sessions.

Responsibilities:
- Bind a listening socket on an ephemeral port
- Accept one device at a time and run its SessionProtocol to completion
- Fan session events out to registered listeners, in registration order
- Tear down cleanly from any thread: stop() closes the sockets so blocking
  accept()/readline() calls return, then joins the accept thread

Sessions are strictly sequential. The listen backlog is 1 and accept() is
only called again after the previous session has closed and its teardown
events have been delivered.

Usage:
    manager = ConnectionManager()
    manager.add_listener(coordinator.handle_event)
    manager.start()          # raises BindError if the port is taken
    print(manager.port)
    manager.disconnect()     # drop current device, keep listening
    manager.stop()
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import List, Optional

from airmouse.communication.protocols import (
    BindError,
    ClientDisconnected,
    ConnectionFailed,
    EventCallback,
    SessionEvent,
)
from airmouse.communication.session_protocol import Session, SessionProtocol
from airmouse.utils.config_sections import ServerConfig, load_server_config

log = logging.getLogger("airmouse.server")


def _shutdown_and_close(sock: Optional[socket.socket]) -> None:
    """shutdown() wakes threads blocked on the socket, close() frees it."""
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # Already disconnected or never connected
        pass
    sock.close()


class ConnectionManager:
    """Accepts device connections one at a time and runs their protocol."""

    def __init__(self, config: Optional[ServerConfig] = None) -> None:
        self.config = config or load_server_config()

        self._listeners: List[EventCallback] = []
        self._listeners_lock = threading.Lock()

        self._server_socket: Optional[socket.socket] = None
        self._client_socket: Optional[socket.socket] = None
        self._client_lock = threading.Lock()
        self._protocol: Optional[SessionProtocol] = None

        self._running = False
        self._thread: Optional[threading.Thread] = None

        self.sessions_served = 0

    # ------------------------------------------------------------------
    # listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: EventCallback) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventCallback) -> bool:
        with self._listeners_lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
            return True

    def _emit(self, event: SessionEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                log.exception(f"Listener {listener!r} failed on {type(event).__name__}")

    def _emit_session_event(self, event: SessionEvent) -> None:
        # Listeners reacting to a disconnect must already see is_connected False
        if isinstance(event, ClientDisconnected):
            with self._client_lock:
                self._client_socket = None
        self._emit(event)

    # ------------------------------------------------------------------
    # introspection
    # ------------------------------------------------------------------

    @property
    def is_listening(self) -> bool:
        return self._running and self._server_socket is not None

    @property
    def is_connected(self) -> bool:
        return self._client_socket is not None

    @property
    def port(self) -> int:
        """Bound TCP port, or -1 when not listening."""
        sock = self._server_socket
        if not self.is_listening or sock is None:
            return -1
        try:
            return sock.getsockname()[1]
        except OSError:
            return -1

    @property
    def session(self) -> Optional[Session]:
        protocol = self._protocol
        return protocol.session if protocol is not None else None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Bind the listener and start accepting devices in the background.

        Raises:
            BindError: Socket could not be bound; not retried.
        """
        self.stop()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as exc:
            sock.close()
            raise BindError(f"Cannot bind TCP {self.config.host}:{self.config.port}: {exc}") from exc

        # Periodic wake-up so a missed shutdown still ends accept()
        sock.settimeout(self.config.accept_poll)

        self._server_socket = sock
        self._running = True
        self._thread = threading.Thread(target=self._accept_loop, name="ConnectionManager", daemon=True)
        self._thread.start()
        log.info(f"Listening on {self.config.host}:{self.port}")

    def stop(self) -> None:
        """Close listener and active session, then join the accept thread."""
        thread = self._thread
        if thread is None and self._server_socket is None:
            return

        self._running = False
        server_socket, self._server_socket = self._server_socket, None
        _shutdown_and_close(server_socket)
        self.disconnect()

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.config.join_timeout)
            if thread.is_alive():
                log.warning(f"Accept loop did not stop within {self.config.join_timeout:.1f}s")
        self._thread = None
        log.info("Server stopped")

    def disconnect(self) -> None:
        """Drop the connected device, if any; keep listening."""
        with self._client_lock:
            client = self._client_socket
        if client is None:
            return
        log.info("Disconnecting current client")
        try:
            client.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    # ------------------------------------------------------------------
    # worker
    # ------------------------------------------------------------------

    def _accept_loop(self) -> None:
        while self._running:
            server_socket = self._server_socket
            if server_socket is None:
                break

            try:
                client, addr = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running:
                    break
                log.error(f"Accept failed: {exc}")
                self._emit(ConnectionFailed(exc))
                continue

            self._serve(client, addr[0])

    def _serve(self, client: socket.socket, address: str) -> None:
        log.info(f"Client connected from {address}")
        client.settimeout(None)

        with self._client_lock:
            self._client_socket = client

        stream = client.makefile("rb")
        self._protocol = SessionProtocol(stream, address, self._emit_session_event, self.config)
        try:
            if not self._running:
                return
            self._protocol.run()
        finally:
            stream.close()
            with self._client_lock:
                self._client_socket = None
            _shutdown_and_close(client)
            self._protocol = None
            self.sessions_served += 1
            log.info(f"Client {address} torn down")
