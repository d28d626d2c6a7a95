# -*- coding: utf-8 -*-
########################
# session_clock.py
########################
# Purpose:
# - Single source of truth for elapsed time in a game session.
# - Elapsed time is wall clock time since a reference start instant captured when the session starts.
#
# Design notes:
# - Gameplay code (spawn, position, judgement) must use SessionClock.elapsed_seconds.
# - No Qt usage. The time source is injected so tests can drive it by hand.
# - Elapsed is negative during the lead in, before the reference instant.
# - Pausing freezes elapsed. Resuming shifts the reference instant by the paused duration,
#   so elapsed never jumps.
#
########################
# Interfaces:
# Public classes:
# - class SessionClock
#   - __init__(time_source: Callable[[], float] = time.monotonic)
#   - now() -> float
#   - start(delay_seconds: float) -> None
#   - pause() -> None
#   - resume() -> None
#   - reset() -> None
#   - elapsed_seconds() -> float
#
########################

from __future__ import annotations

import time
from typing import Callable, Optional


class SessionClock:
    def __init__(self, time_source: Callable[[], float] = time.monotonic) -> None:
        self._time_source = time_source
        self._reference_start: Optional[float] = None
        self._paused_at: Optional[float] = None

    def now(self) -> float:
        return float(self._time_source())

    def start(self, delay_seconds: float) -> None:
        self._reference_start = self.now() + float(delay_seconds)
        self._paused_at = None

    def pause(self) -> None:
        if self._reference_start is None or self._paused_at is not None:
            return
        self._paused_at = self.now()

    def resume(self) -> None:
        if self._reference_start is None or self._paused_at is None:
            return
        self._reference_start += self.now() - self._paused_at
        self._paused_at = None

    def reset(self) -> None:
        self._reference_start = None
        self._paused_at = None

    def elapsed_seconds(self) -> float:
        if self._reference_start is None:
            return 0.0
        current = self._paused_at if self._paused_at is not None else self.now()
        return float(current - self._reference_start)


def _run_unit_tests() -> None:
    current = [100.0]
    clock = SessionClock(lambda: current[0])
    assert clock.elapsed_seconds() == 0.0

    clock.start(3.0)
    assert abs(clock.elapsed_seconds() - (-3.0)) < 1e-9

    current[0] = 105.0
    assert abs(clock.elapsed_seconds() - 2.0) < 1e-9

    clock.pause()
    current[0] = 110.0
    assert abs(clock.elapsed_seconds() - 2.0) < 1e-9

    clock.resume()
    assert abs(clock.elapsed_seconds() - 2.0) < 1e-9
    current[0] = 111.0
    assert abs(clock.elapsed_seconds() - 3.0) < 1e-9


if __name__ == "__main__":
    _run_unit_tests()
    print("session_clock.py: ok")
