# -*- coding: utf-8 -*-
########################
# input_router.py
########################
# Purpose:
# - Single keyboard listener for gameplay input.
# - Translates QKeyEvent into a lane index or a session command and emits a Qt signal.
#
# Design notes:
# - This must be the only lane input source. No duplicate key mapping elsewhere.
# - Debounce rules:
#   - Ignore auto repeat.
#   - Track pressed keys to avoid duplicate presses.
# - The router never judges timing. GameLoop.on_lane_pressed reads the session clock when the tap lands.
#
########################
# Interfaces:
# Public enums:
# - class SessionCommand(str, Enum): TOGGLE_PAUSE, RETRY, EXIT
#
# Public classes:
# - class InputRouter(PyQt6.QtCore.QObject)
#   - Signals:
#     - lanePressed(int)
#     - commandRequested(str)
#   - Methods:
#     - handle_key_press(event: QKeyEvent) -> bool
#     - handle_key_release(event: QKeyEvent) -> bool
#     - lane_for_key(key_code: int) -> Optional[int]
#     - clear_pressed_keys() -> None
#
# Inputs:
# - Raw QKeyEvent from the Qt event loop.
#
# Outputs:
# - Lane indexes consumed by GameLoop.on_lane_pressed and session commands for the play window.
#
########################

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Set

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QKeyEvent

import gameplay_models


class SessionCommand(str, Enum):
    TOGGLE_PAUSE = "toggle_pause"
    RETRY = "retry"
    EXIT = "exit"


def _build_default_key_to_lane_map() -> Dict[int, int]:
    """
    Default mapping for the four lanes, left to right.

    Accepted keys:
      - D F J K
      - Arrow keys: Left, Down, Up, Right
    """
    key_to_lane: Dict[int, int] = {}

    def bind(key_constant: Qt.Key, lane_index: int) -> None:
        key_to_lane[int(key_constant.value)] = int(lane_index)

    bind(Qt.Key.Key_D, 0)
    bind(Qt.Key.Key_F, 1)
    bind(Qt.Key.Key_J, 2)
    bind(Qt.Key.Key_K, 3)

    bind(Qt.Key.Key_Left, 0)
    bind(Qt.Key.Key_Down, 1)
    bind(Qt.Key.Key_Up, 2)
    bind(Qt.Key.Key_Right, 3)

    return key_to_lane


def _build_default_command_map() -> Dict[int, SessionCommand]:
    return {
        int(Qt.Key.Key_Space.value): SessionCommand.TOGGLE_PAUSE,
        int(Qt.Key.Key_P.value): SessionCommand.TOGGLE_PAUSE,
        int(Qt.Key.Key_R.value): SessionCommand.RETRY,
        int(Qt.Key.Key_Escape.value): SessionCommand.EXIT,
    }


class InputRouter(QObject):
    lanePressed = pyqtSignal(int)
    commandRequested = pyqtSignal(str)

    def __init__(
        self,
        parent: Optional[QObject] = None,
        key_to_lane_map: Optional[Dict[int, int]] = None,
    ) -> None:
        super().__init__(parent)

        self._key_to_lane: Dict[int, int] = (
            dict(key_to_lane_map) if key_to_lane_map is not None else _build_default_key_to_lane_map()
        )
        for lane in self._key_to_lane.values():
            if lane < 0 or lane >= gameplay_models.LANE_COUNT:
                raise ValueError(f"Lane index out of range in key map: {lane}")

        self._key_to_command: Dict[int, SessionCommand] = _build_default_command_map()
        self._pressed_keys: Set[int] = set()

    @property
    def key_to_lane_map(self) -> Dict[int, int]:
        return dict(self._key_to_lane)

    def lane_for_key(self, key_code: int) -> Optional[int]:
        return self._key_to_lane.get(int(key_code))

    def handle_key_press(self, event: QKeyEvent) -> bool:
        """
        Handle a Qt key press.

        Returns True if this router consumed the event, False otherwise.
        """
        key_code = int(event.key())
        is_known = key_code in self._key_to_lane or key_code in self._key_to_command

        if event.isAutoRepeat() or key_code in self._pressed_keys:
            return is_known

        if not is_known:
            return False

        self._pressed_keys.add(key_code)

        lane_index = self._key_to_lane.get(key_code)
        if lane_index is not None:
            self.lanePressed.emit(int(lane_index))
            return True

        self.commandRequested.emit(self._key_to_command[key_code].value)
        return True

    def handle_key_release(self, event: QKeyEvent) -> bool:
        key_code = int(event.key())
        is_known = key_code in self._key_to_lane or key_code in self._key_to_command

        if event.isAutoRepeat():
            return is_known

        self._pressed_keys.discard(key_code)
        return is_known

    def clear_pressed_keys(self) -> None:
        """Called on focus loss so a key released elsewhere does not stay stuck."""
        self._pressed_keys.clear()
