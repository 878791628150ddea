"""Tests for the action executor."""

import asyncio

import pytest

from desktop_agent.controller import Controller
from desktop_agent.memory import TASK_DONE, TaskState
from desktop_agent.models import Wait

from conftest import FakeDevice


@pytest.fixture
def controller(device, sleep):
    return Controller(device, sleep, sleep.wait)


def execute(controller, raw, state=None):
    return asyncio.run(controller.execute(raw, state if state is not None else TaskState()))


def test_wait_succeeds_and_is_logged_without_touching_attempts(controller, sleep):
    state = TaskState()
    result = execute(controller, {"action": "wait", "ms": 100}, state)
    assert result.success
    assert result.action_type == "wait"
    assert state.action_results == [result]
    assert state.attempts == 0
    assert sleep.calls == [0.1]


def test_missing_parameter_is_reported_and_never_dispatched(controller, device):
    state = TaskState()
    result = execute(controller, {"action": "mouse_click"}, state)
    assert not result.success
    assert "Missing button" in result.error_message
    assert device.calls == []
    assert state.action_results == [result]


def test_unknown_action_type_fails(controller, device):
    result = execute(controller, {"action": "scroll", "dy": 3})
    assert not result.success
    assert result.action_type == "scroll"
    assert "Unknown action type" in result.error_message
    assert device.calls == []


def test_window_focus_alt_tab_chord(controller, device, sleep):
    action = {"action": "window_focus", "title": "Chrome", "class": "chrome", "method": "alt_tab"}
    result = execute(controller, action)
    assert result.success
    assert device.calls == [("key_down", "alt"), ("press", "tab"), ("key_up", "alt")]
    assert sleep.calls == [0.1, 0.1, 0.5]


def test_window_focus_super_tab_uses_meta(controller, device):
    action = {"action": "window_focus", "title": "Chrome", "class": "chrome", "method": "super_tab"}
    execute(controller, action)
    assert device.calls == [("key_down", "meta"), ("press", "tab"), ("key_up", "meta")]


def test_window_focus_releases_modifier_when_tab_fails(sleep):
    device = FakeDevice(fail_on={"press"})
    action = {"action": "window_focus", "title": "x", "class": "y", "method": "alt_tab"}
    result = execute(Controller(device, sleep, sleep.wait), action)
    assert not result.success
    assert result.error_message == "press denied"
    assert device.calls == [("key_down", "alt"), ("key_up", "alt")]


def test_window_focus_unknown_method_is_successful_noop(controller, device):
    action = {"action": "window_focus", "title": "Chrome", "class": "chrome", "method": "teleport"}
    assert execute(controller, action).success
    assert device.calls == []


def test_mouse_move_has_no_bounds_check(controller, device):
    assert execute(controller, {"action": "mouse_move", "x": -50, "y": 99999}).success
    assert device.calls == [("move_to", -50, 99999)]


def test_mouse_click_buttons(controller, device):
    assert execute(controller, {"action": "mouse_click", "button": "right"}).success
    assert execute(controller, {"action": "mouse_click", "button": "left", "x": 3, "y": 4}).success
    assert device.calls == [("click", "right"), ("move_to", 3, 4), ("click", "left")]


def test_mouse_click_unknown_button_is_error(controller, device, capsys):
    result = execute(controller, {"action": "mouse_click", "button": "side"})
    assert not result.success
    assert "Unknown mouse button" in result.error_message
    assert device.calls == []
    out = capsys.readouterr().out
    assert "✓" not in out
    assert "❌" in out


@pytest.mark.parametrize("key, expected", [("return", "enter"), ("Enter", "enter"), ("tab", "tab"), ("escape", "esc")])
def test_key_press_vocabulary(controller, device, key, expected):
    assert execute(controller, {"action": "key_press", "key": key}).success
    assert device.calls == [("press", expected)]


def test_key_press_unknown_key_is_error(controller, device, capsys):
    result = execute(controller, {"action": "key_press", "key": "f13"})
    assert not result.success
    assert "Unknown key" in result.error_message
    assert device.calls == []
    assert "✓" not in capsys.readouterr().out


def test_key_combination_order(controller, device, sleep):
    result = execute(controller, {"action": "key_combination", "keys": ["control", "shift", "t"]})
    assert result.success
    assert device.calls == [
        ("key_down", "ctrl"),
        ("key_down", "shift"),
        ("write", "t"),
        ("key_up", "shift"),
        ("key_up", "ctrl"),
    ]
    assert sleep.calls == [0.05, 0.05]


def test_key_combination_errors(controller, device):
    empty = execute(controller, {"action": "key_combination", "keys": []})
    assert not empty.success and "No keys" in empty.error_message

    bad_letter = execute(controller, {"action": "key_combination", "keys": ["control", "q"]})
    assert not bad_letter.success and "Unknown key in combination" in bad_letter.error_message

    bad_modifier = execute(controller, {"action": "key_combination", "keys": ["hyper", "c"]})
    assert not bad_modifier.success and "Unknown modifier" in bad_modifier.error_message

    null_key = execute(controller, {"action": "key_combination", "keys": ["ctrl", None, "c"]})
    assert not null_key.success and "Invalid keys" in null_key.error_message
    assert device.calls == []


def test_key_combination_releases_modifiers_when_injection_fails(sleep):
    device = FakeDevice(fail_on={"write"})
    result = execute(Controller(device, sleep, sleep.wait), {"action": "key_combination", "keys": ["ctrl", "c"]})
    assert not result.success
    assert "write denied" in result.error_message
    assert device.calls == [("key_down", "ctrl"), ("key_up", "ctrl")]


def test_ascii_text_input_is_typed(controller, device):
    assert execute(controller, {"action": "text_input", "text": "hello \"world\"\n"}).success
    assert device.calls == [("write", "hello \"world\"\n")]


@pytest.mark.parametrize("text", ["你好", "héllo", "ok 👍"])
def test_non_ascii_text_input_is_pasted(controller, device, text):
    assert execute(controller, {"action": "text_input", "text": text}).success
    assert device.calls == [("paste", text)]


def test_paste_failure_becomes_error_result(sleep):
    device = FakeDevice(fail_on={"paste"})
    result = execute(Controller(device, sleep, sleep.wait), {"action": "text_input", "text": "你好"})
    assert not result.success
    assert result.error_message == "paste denied"


def test_task_done_marks_state(controller):
    state = TaskState()
    result = execute(controller, {"action": "task_done", "reason": "finished"}, state)
    assert result.success
    assert state.status == TASK_DONE


def test_injection_failure_becomes_error_result(sleep):
    device = FakeDevice(fail_on={"move_to"})
    state = TaskState()
    result = execute(Controller(device, sleep, sleep.wait), {"action": "mouse_move", "x": 1, "y": 2}, state)
    assert not result.success
    assert result.error_message == "move_to denied"
    assert state.action_results == [result]


def test_accepts_parsed_action(controller, sleep):
    assert execute(controller, Wait(ms=20)).success
    assert sleep.calls == [0.02]
