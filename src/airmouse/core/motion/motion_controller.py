"""
Pointer smoothing loop driven by heading setpoints.

Sensor samples arrive irregularly, sometimes in bursts and sometimes not at
all. Instead of jumping the pointer on every sample, the MotionController
holds the latest heading as a setpoint and a background thread nudges the
pointer by that heading at a fixed short interval.

Loop behaviour:
- Fresh setpoint (< stale_timeout old): move pointer by round(heading),
  wrapped to the screen, then wait tick_interval (~10 ms)
- Stale setpoint: no actuation, wait idle_interval (~100 ms) and re-check,
  so a silent or disconnected device does not keep the pointer drifting
- Actuator failure: logged, loop keeps running

Architecture:
    SessionCoordinator → set_heading() → setpoint ← _run() thread → PointerActuator

Usage:
    controller = MotionController(PyAutoGuiActuator())
    controller.set_heading(3.0, -1.5)   # starts the loop on first call
    controller.press(); controller.release()
    controller.stop()                   # joins the loop thread
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Optional, Tuple

from airmouse.core.filters.heading_filter import Heading
from airmouse.core.hardware.pointer_actuator import PointerActuator
from airmouse.utils.config_sections import MotionConfig, load_motion_config

log = logging.getLogger("airmouse.motion")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def next_position(current: int, delta: float, size: int) -> int:
    """
    Advance one pointer axis by ``delta`` and wrap it onto a screen of ``size``.

    A negative result is clamped to ``size`` rather than wrapped, so the
    coordinate is never negative.
    """
    nxt = int(math.fmod(_round_half_up(current + delta), size))
    if nxt < 0:
        nxt = size
    return nxt


class MotionController:
    """Animates the pointer from a held heading setpoint."""

    def __init__(self, actuator: PointerActuator, config: Optional[MotionConfig] = None) -> None:
        self.actuator = actuator
        self.config = config or load_motion_config()

        # Written by the session thread, read by the loop; the tuple swap is atomic
        self._setpoint: Tuple[float, float, float] = (0.0, 0.0, float("-inf"))

        self._lifecycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.ticks = 0
        self.actuation_failures = 0

    # ------------------------------------------------------------------
    # setpoint
    # ------------------------------------------------------------------

    def set_heading(self, x: float, y: float) -> None:
        self._setpoint = (float(x), float(y), time.monotonic())
        if not self.is_running():
            self.start()

    @property
    def heading(self) -> Heading:
        x, y, _ = self._setpoint
        return Heading(x, y)

    def is_stale(self, now: Optional[float] = None) -> bool:
        _, _, stamp = self._setpoint
        now = time.monotonic() if now is None else now
        return now - stamp > self.config.stale_timeout

    # ------------------------------------------------------------------
    # buttons
    # ------------------------------------------------------------------

    def press(self) -> None:
        self.actuator.press()

    def release(self) -> None:
        self.actuator.release()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,), name="MotionController", daemon=True
            )
            self._thread.start()
        log.info("Motion loop started")

    def stop(self) -> None:
        with self._lifecycle_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            if thread is not threading.current_thread():
                thread.join(timeout=self.config.join_timeout)
                if thread.is_alive():
                    log.warning(f"Motion loop did not stop within {self.config.join_timeout:.1f}s")
            self._thread = None
        log.info("Motion loop stopped")

    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    # ------------------------------------------------------------------
    # worker
    # ------------------------------------------------------------------

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            if self.is_stale():
                stop_event.wait(self.config.idle_interval)
                continue

            try:
                self._step()
            except Exception:
                self.actuation_failures += 1
                log.exception("Pointer actuation failed")

            stop_event.wait(self.config.tick_interval)

    def _step(self) -> None:
        hx, hy, _ = self._setpoint
        x, y = self.actuator.current_position()
        w, h = self.actuator.screen_size()
        self.actuator.move_to(next_position(x, hx, w), next_position(y, hy, h))
        self.ticks += 1
