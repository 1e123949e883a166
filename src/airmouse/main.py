#!/usr/bin/env python3
"""
AirMouse host - entry point

Starts the TCP session server and the UDP discovery responder, drives the
system pointer from the connected device and runs until Ctrl+C.

Usage:
    airmouse                       # ephemeral TCP port, discovery on 8337
    airmouse --port 5000 --verbose
    airmouse --no-discovery --log-dir /tmp/airmouse-logs
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from airmouse.communication.protocols import BindError
from airmouse.communication.session_protocol import Session
from airmouse.core.builder import build_session_coordinator
from airmouse.core.filters.heading_filter import Heading, HeadingFilter
from airmouse.core.telemetry.loggers.session_logger import get_session_logger
from airmouse.utils.config import Config
from airmouse.utils.config_sections import load_discovery_config, load_server_config
from airmouse.utils.ctrl_handler import CtrlCHandler

log = logging.getLogger("airmouse.session")


class ConsoleStatusListener:
    """Prints session status changes for the person at the host."""

    def on_client_connected(self, session: Session) -> None:
        print(f"[HOST] Connected: {session.device_name} ({session.address})")

    def on_client_disconnected(self) -> None:
        print("[HOST] Device disconnected, waiting for the next one...")

    def on_connection_error(self, cause: BaseException) -> None:
        print(f"[HOST] Connection error: {cause}")

    def on_heading(self, heading: Heading) -> None:
        # Too frequent for the console; the motion log has it
        pass

    def on_sensor_changed(self, heading_filter: Optional[HeadingFilter]) -> None:
        if heading_filter is None:
            print("[HOST] Sensor: none (unknown sensor type)")
        else:
            print(f"[HOST] Sensor: {heading_filter.display_name()}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="AirMouse host: drive the pointer from a handheld device")
    ap.add_argument("--host", default=Config.SERVER_HOST, help="Address the TCP server binds to")
    ap.add_argument("--port", type=int, default=Config.SERVER_PORT, help="TCP port (0 = ephemeral)")
    ap.add_argument("--discovery-port", type=int, default=Config.DISCOVERY_PORT, help="UDP discovery port")
    ap.add_argument("--no-discovery", action="store_true", help="Do not answer discovery probes")
    ap.add_argument("--log-dir", type=Path, default=Path(Config.LOG_DIR), help="Root directory for session logs")
    ap.add_argument("--verbose", action="store_true", help="Print DEBUG logs to the console")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    session_logger = get_session_logger(log_root=args.log_dir, verbose=args.verbose)

    server_config = replace(load_server_config(), host=args.host, port=args.port)
    discovery_config = replace(
        load_discovery_config(),
        enabled=not args.no_discovery,
        port=args.discovery_port,
    )

    print("=" * 60)
    print("AirMouse host".center(60))
    print("=" * 60)

    ctrl_handler = CtrlCHandler()
    coordinator = build_session_coordinator(server_config=server_config, discovery_config=discovery_config)
    coordinator.add_status_listener(ConsoleStatusListener())

    try:
        coordinator.start_server()
    except BindError as exc:
        log.error(f"Cannot start server: {exc}")
        print(f"[ERROR] {exc}")
        session_logger.close()
        return 1

    endpoint = coordinator.local_endpoint()
    print(f"[HOST] Listening on {endpoint}")
    if discovery_config.enabled:
        print(f"[HOST] Answering discovery on UDP {discovery_config.port}")
    print(f"[HOST] Logs: {session_logger.log_dir}")
    print("[HOST] Ctrl+C to quit")

    try:
        while not ctrl_handler.should_stop:
            ctrl_handler.wait(0.5)
    finally:
        print("\n[HOST] Shutting down...")
        coordinator.stop_server()
        session_logger.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
