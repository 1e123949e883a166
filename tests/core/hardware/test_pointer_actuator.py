"""Tests for the pyautogui-backed pointer actuator, with pyautogui faked out."""

from __future__ import annotations

import sys
from types import SimpleNamespace

import pytest

from airmouse.core.hardware.pointer_actuator import PyAutoGuiActuator


@pytest.fixture()
def fake_gui(monkeypatch):
    calls = []
    gui = SimpleNamespace(
        FAILSAFE=True,
        PAUSE=0.1,
        size=lambda: (800, 600),
        position=lambda: (12, 34),
        moveTo=lambda x, y: calls.append(("move", x, y)),
        mouseDown=lambda button: calls.append(("down", button)),
        mouseUp=lambda button: calls.append(("up", button)),
        calls=calls,
    )
    monkeypatch.setitem(sys.modules, "pyautogui", gui)
    return gui


def test_init_disables_failsafe_and_pause(fake_gui):
    actuator = PyAutoGuiActuator()

    assert fake_gui.FAILSAFE is False
    assert fake_gui.PAUSE == 0
    assert actuator.screen_size() == (800, 600)
    assert actuator.current_position() == (12, 34)


def test_move_to_clamps_into_screen(fake_gui):
    actuator = PyAutoGuiActuator()

    actuator.move_to(800, -5)
    actuator.move_to(10, 20)

    assert fake_gui.calls == [("move", 799, 0), ("move", 10, 20)]


def test_press_and_release_use_left_button(fake_gui):
    actuator = PyAutoGuiActuator()

    actuator.press()
    actuator.release()

    assert fake_gui.calls == [("down", "left"), ("up", "left")]
