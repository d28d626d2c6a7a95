# -*- coding: utf-8 -*-
########################
# playback_transport.py
########################
# Purpose:
# - Playback transport port used by the game controller.
# - Ships a silent wall clock transport that plays a track of known duration without audio output,
#   used by the simulate command and by tests.
#
# Design notes:
# - No Qt usage here. The Qt multimedia transport lives in media_transport.py.
# - A transport that cannot honor a scheduled start raises SchedulingError. The controller surfaces it
#   and keeps its state.
# - The transport never tells the controller that a track ended. The controller derives end of track
#   from elapsed time and is_playing().
#
########################
# Interfaces:
# Public exceptions:
# - class SchedulingError(Exception)
#
# Public classes:
# - class PlaybackTransport(Protocol)
#   - prepare(track: Track) -> None
#   - schedule_start(delay_seconds: float) -> None
#   - is_playing() -> bool
#   - pause() -> None
#   - resume() -> None
#   - stop() -> None
#   - elapsed_seconds() -> float
# - class WallClockTransport
#
########################

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

import gameplay_models


logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Raised when a transport cannot start, pause or resume as requested."""


class PlaybackTransport(Protocol):
    def prepare(self, track: gameplay_models.Track) -> None:
        ...

    def schedule_start(self, delay_seconds: float) -> None:
        ...

    def is_playing(self) -> bool:
        ...

    def pause(self) -> None:
        ...

    def resume(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def elapsed_seconds(self) -> float:
        ...


class WallClockTransport:
    """
    Silent transport driven by a monotonic clock.

    prepare() may run on a worker thread while the controller timeline polls is_playing(),
    so state changes are guarded by a lock.
    """

    def __init__(self, time_source: Callable[[], float] = time.monotonic) -> None:
        self._time_source = time_source
        self._lock = threading.Lock()
        self._duration_seconds: Optional[float] = None
        self._start_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._stopped = True

    def prepare(self, track: gameplay_models.Track) -> None:
        duration = float(track.duration_seconds)
        if duration <= 0.0:
            raise SchedulingError(f"Track {track.track_id!r} has no duration")
        with self._lock:
            self._duration_seconds = duration
            self._start_at = None
            self._paused_at = None
            self._stopped = True

    def schedule_start(self, delay_seconds: float) -> None:
        delay = float(delay_seconds)
        with self._lock:
            if self._duration_seconds is None:
                raise SchedulingError("No track prepared")
            if delay < 0.0:
                raise SchedulingError(f"Cannot schedule a start in the past (delay={delay})")
            self._start_at = float(self._time_source()) + delay
            self._paused_at = None
            self._stopped = False

    def is_playing(self) -> bool:
        with self._lock:
            if self._stopped or self._start_at is None or self._paused_at is not None:
                return False
            position = float(self._time_source()) - self._start_at
            return 0.0 <= position < float(self._duration_seconds or 0.0)

    def pause(self) -> None:
        with self._lock:
            if self._stopped or self._start_at is None or self._paused_at is not None:
                return
            self._paused_at = float(self._time_source())

    def resume(self) -> None:
        with self._lock:
            if self._start_at is None or self._paused_at is None:
                raise SchedulingError("Transport is not paused")
            self._start_at += float(self._time_source()) - self._paused_at
            self._paused_at = None

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            self._start_at = None
            self._paused_at = None

    def elapsed_seconds(self) -> float:
        with self._lock:
            if self._start_at is None:
                return 0.0
            current = self._paused_at if self._paused_at is not None else float(self._time_source())
            position = current - self._start_at
            return float(min(max(0.0, position), float(self._duration_seconds or 0.0)))
