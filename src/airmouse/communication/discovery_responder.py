"""
UDP discovery responder.

Devices broadcast ``RS-AirMouse discover`` on a fixed well-known port. The
responder answers each probe, unicast to the sender, with the address and
TCP port the device should connect to:

    RS-AirMouse 192.168.1.10 40123

The advertised address is the first site-local IPv4 address of an interface
that is up and is neither loopback nor virtual (VMware, VirtualBox, docker
bridges...). Interfaces are enumerated with psutil; when none qualifies the
host's resolvable name is used instead.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
from typing import Callable, Optional, Sequence

import psutil

from airmouse.communication.protocols import BindError, format_discovery_reply
from airmouse.utils.config_sections import DiscoveryConfig, load_discovery_config

log = logging.getLogger("airmouse.discovery")

SITE_LOCAL_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


def is_site_local(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return ip.version == 4 and any(ip in net for net in SITE_LOCAL_NETWORKS)


def is_virtual_interface(name: str, markers: Sequence[str]) -> bool:
    lowered = name.lower()
    return lowered.startswith("lo") or any(marker in lowered for marker in markers)


def resolve_local_address(virtual_markers: Sequence[str] = ()) -> str:
    """Best address a device on the LAN can reach this host at."""
    try:
        stats = psutil.net_if_stats()
        interfaces = psutil.net_if_addrs()
    except psutil.Error as exc:
        log.warning(f"Cannot enumerate network interfaces: {exc}")
        return socket.gethostbyname(socket.gethostname())

    for name, addrs in interfaces.items():
        if_stats = stats.get(name)
        if if_stats is None or not if_stats.isup:
            continue
        if is_virtual_interface(name, virtual_markers):
            continue
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            if ipaddress.ip_address(addr.address).is_loopback:
                continue
            if is_site_local(addr.address):
                return addr.address

    return socket.gethostbyname(socket.gethostname())


class DiscoveryResponder:
    """Answers discovery probes with this host's session endpoint."""

    def __init__(
        self,
        port_provider: Callable[[], int],
        config: Optional[DiscoveryConfig] = None,
        address_resolver: Optional[Callable[[], str]] = None,
    ) -> None:
        self.port_provider = port_provider
        self.config = config or load_discovery_config()
        self.address_resolver = address_resolver or (
            lambda: resolve_local_address(self.config.virtual_interface_markers)
        )

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

        self.probes_received = 0
        self.replies_sent = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def bound_port(self) -> int:
        sock = self._socket
        if sock is None:
            return -1
        return sock.getsockname()[1]

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Bind the discovery port and answer probes in the background.

        Raises:
            BindError: Port already taken (e.g. another host instance).
        """
        self.stop()

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as exc:
            sock.close()
            raise BindError(f"Cannot bind UDP discovery port {self.config.port}: {exc}") from exc
        sock.settimeout(self.config.recv_poll)

        self._socket = sock
        self._running = True
        self._thread = threading.Thread(target=self._run, name="DiscoveryResponder", daemon=True)
        self._thread.start()
        log.info(f"Discovery responder listening on UDP {self.bound_port}")

    def stop(self) -> None:
        thread = self._thread
        if thread is None and self._socket is None:
            return

        self._running = False
        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.config.recv_poll * 2))
        self._thread = None
        log.info("Discovery responder stopped")

    # ------------------------------------------------------------------
    # worker
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while self._running:
            sock = self._socket
            if sock is None:
                break

            try:
                data, peer = sock.recvfrom(self.config.buffer_size)
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running:
                    break
                log.error(f"Discovery receive failed: {exc}")
                continue

            log.info(f"Packet received from {peer[0]}")
            self.handle_datagram(sock, data, peer)

    def handle_datagram(self, sock: socket.socket, data: bytes, peer) -> bool:
        """Reply to one datagram if it is a probe. Returns True when answered."""
        payload = data.decode("ascii", errors="replace").strip()
        if payload != self.config.probe:
            log.debug(f"Ignoring non-probe datagram from {peer[0]}: {payload!r}")
            return False

        self.probes_received += 1
        try:
            reply = format_discovery_reply(self.address_resolver(), self.port_provider(), self.config.magic)
            sock.sendto(reply.encode("ascii"), peer)
        except (OSError, psutil.Error) as exc:
            log.error(f"Discovery reply to {peer[0]} failed: {exc}")
            return False

        self.replies_sent += 1
        log.info(f"Answered probe from {peer[0]}: {reply}")
        return True
