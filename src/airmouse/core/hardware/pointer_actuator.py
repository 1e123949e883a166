"""
OS pointer access for the AirMouse host.

This module isolates the only code that touches the real mouse:
- Reading the current pointer position and screen size
- Absolute pointer moves
- Left-button press / release

PointerActuator is the structural interface the motion loop depends on, so
tests can hand in a fake without a display. PyAutoGuiActuator is the default
desktop backend.

Usage:
    actuator = PyAutoGuiActuator()
    x, y = actuator.current_position()
    actuator.move_to(x + 5, y)
"""

from __future__ import annotations

import logging
from typing import Protocol, Tuple

log = logging.getLogger("airmouse.motion")


class PointerActuator(Protocol):
    """Capabilities the motion loop needs from the OS pointer."""

    def current_position(self) -> Tuple[int, int]: ...

    def screen_size(self) -> Tuple[int, int]: ...

    def move_to(self, x: int, y: int) -> None: ...

    def press(self) -> None: ...

    def release(self) -> None: ...


class PyAutoGuiActuator:
    """Pointer actuator backed by pyautogui (X11, macOS, Windows)."""

    def __init__(self) -> None:
        # Imported here so headless environments can still import the package
        import pyautogui

        # Corner fail-safe would abort the motion loop whenever the pointer wraps
        pyautogui.FAILSAFE = False
        pyautogui.PAUSE = 0

        self._gui = pyautogui
        self._screen = self._read_screen_size()
        log.info(f"PyAutoGUI actuator ready (screen {self._screen[0]}x{self._screen[1]})")

    def _read_screen_size(self) -> Tuple[int, int]:
        w, h = self._gui.size()
        return int(w), int(h)

    def current_position(self) -> Tuple[int, int]:
        x, y = self._gui.position()
        return int(x), int(y)

    def screen_size(self) -> Tuple[int, int]:
        return self._screen

    def move_to(self, x: int, y: int) -> None:
        w, h = self._screen
        # Wrapped coordinates may land exactly on the screen edge
        x = max(0, min(w - 1, int(x)))
        y = max(0, min(h - 1, int(y)))
        self._gui.moveTo(x, y)

    def press(self) -> None:
        self._gui.mouseDown(button="left")

    def release(self) -> None:
        self._gui.mouseUp(button="left")
