# -*- coding: utf-8 -*-
########################
# game_loop.py
########################
# Purpose:
# - Qt driver for RhythmGameController.
# - Calls controller.pump() at a fixed tick rate and turns controller changes into Qt signals.
#
# Design notes:
# - The QTimer runs on the GUI thread, so pump() and every state mutation stay on one timeline.
# - Lane taps from InputRouter are routed through on_lane_pressed so taps and ticks share that timeline.
# - Signals are edge triggered: stateChanged and errorRaised fire only when the value changes.
#
########################
# Interfaces:
# Public classes:
# - class GameLoop(PyQt6.QtCore.QObject)
#   - Signals:
#     - stateChanged(str)
#     - judged(object)          # gameplay_models.JudgementEvent
#     - errorRaised(str)
#     - sessionFinished(object) # gameplay_models.SessionResult
#     - ticked()
#   - Methods:
#     - start() -> None
#     - stop() -> None
#     - is_running() -> bool
#     - pump_once() -> None
#     - on_lane_pressed(lane: int) -> None
#
########################

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

import rhythm_game_controller
from gameplay_models import GameState


logger = logging.getLogger(__name__)


class GameLoop(QObject):
    stateChanged = pyqtSignal(str)
    judged = pyqtSignal(object)
    errorRaised = pyqtSignal(str)
    sessionFinished = pyqtSignal(object)
    ticked = pyqtSignal()

    def __init__(
        self,
        controller: rhythm_game_controller.RhythmGameController,
        *,
        tick_hz: int = 60,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._controller = controller

        self._tick_timer = QTimer(self)
        self._tick_timer.setInterval(max(1, int(round(1000.0 / float(max(1, int(tick_hz)))))))
        self._tick_timer.timeout.connect(self.pump_once)

        self._last_state: GameState = controller.state
        self._last_error_text: Optional[str] = controller.last_error_text

    @property
    def controller(self) -> rhythm_game_controller.RhythmGameController:
        return self._controller

    def start(self) -> None:
        if self._tick_timer.isActive():
            return
        self._tick_timer.start()

    def stop(self) -> None:
        if self._tick_timer.isActive():
            self._tick_timer.stop()

    def is_running(self) -> bool:
        return self._tick_timer.isActive()

    def pump_once(self) -> None:
        for event in self._controller.pump():
            self.judged.emit(event)
        self._emit_changes()
        self.ticked.emit()

    def on_lane_pressed(self, lane: int) -> None:
        event = self._controller.tap_lane(int(lane))
        if event is not None:
            self.judged.emit(event)

    def _emit_changes(self) -> None:
        state = self._controller.state
        if state != self._last_state:
            self._last_state = state
            self.stateChanged.emit(state.value)
            if state == GameState.FINISHED:
                result = self._controller.session_result()
                if result is not None:
                    logger.info("Session finished: score=%d max_combo=%d", result.score, result.max_combo)
                    self.sessionFinished.emit(result)

        error_text = self._controller.last_error_text
        if error_text != self._last_error_text:
            self._last_error_text = error_text
            if error_text:
                self.errorRaised.emit(error_text)
