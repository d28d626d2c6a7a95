# test_input_router.py
from __future__ import annotations

import pytest

pytest.importorskip("PyQt6")

from PyQt6.QtCore import QEvent, Qt  # noqa: E402
from PyQt6.QtGui import QKeyEvent  # noqa: E402

import input_router  # noqa: E402


def _key(key: Qt.Key, *, release: bool = False, auto_repeat: bool = False) -> QKeyEvent:
    event_type = QEvent.Type.KeyRelease if release else QEvent.Type.KeyPress
    return QKeyEvent(event_type, int(key.value), Qt.KeyboardModifier.NoModifier, "", auto_repeat)


@pytest.fixture
def router(qt_application):
    router = input_router.InputRouter()
    lanes = []
    commands = []
    router.lanePressed.connect(lanes.append)
    router.commandRequested.connect(commands.append)
    return router, lanes, commands


def test_default_lane_keys(router):
    router_obj, lanes, _ = router
    for key in (Qt.Key.Key_D, Qt.Key.Key_F, Qt.Key.Key_J, Qt.Key.Key_K):
        assert router_obj.handle_key_press(_key(key))
        router_obj.handle_key_release(_key(key, release=True))

    assert lanes == [0, 1, 2, 3]
    assert router_obj.lane_for_key(int(Qt.Key.Key_Left.value)) == 0
    assert router_obj.lane_for_key(int(Qt.Key.Key_Right.value)) == 3


def test_held_key_and_auto_repeat_are_debounced(router):
    router_obj, lanes, _ = router
    router_obj.handle_key_press(_key(Qt.Key.Key_J))
    assert router_obj.handle_key_press(_key(Qt.Key.Key_J, auto_repeat=True))
    assert router_obj.handle_key_press(_key(Qt.Key.Key_J))
    router_obj.handle_key_release(_key(Qt.Key.Key_J, release=True))
    router_obj.handle_key_press(_key(Qt.Key.Key_J))

    assert lanes == [2, 2]


def test_focus_loss_releases_keys(router):
    router_obj, lanes, _ = router
    router_obj.handle_key_press(_key(Qt.Key.Key_K))
    router_obj.clear_pressed_keys()
    router_obj.handle_key_press(_key(Qt.Key.Key_K))

    assert lanes == [3, 3]


def test_command_keys(router):
    router_obj, lanes, commands = router
    router_obj.handle_key_press(_key(Qt.Key.Key_Space))
    router_obj.handle_key_press(_key(Qt.Key.Key_Escape))

    assert lanes == []
    assert commands == [input_router.SessionCommand.TOGGLE_PAUSE.value, input_router.SessionCommand.EXIT.value]


def test_unknown_key_is_not_consumed(router):
    router_obj, lanes, commands = router
    assert not router_obj.handle_key_press(_key(Qt.Key.Key_Z))
    assert lanes == [] and commands == []


def test_key_map_rejects_bad_lanes(qt_application):
    with pytest.raises(ValueError):
        input_router.InputRouter(key_to_lane_map={int(Qt.Key.Key_Q.value): 9})
