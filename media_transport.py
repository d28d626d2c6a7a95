# -*- coding: utf-8 -*-
########################
# media_transport.py
########################
# Purpose:
# - PlaybackTransport backed by Qt Multimedia (QMediaPlayer + QAudioOutput).
# - Used by the play command to play the selected track in sync with the session clock.
#
# Design notes:
# - The controller calls prepare() from a worker thread. QMediaPlayer must stay on the thread that owns it,
#   so prepare() only validates and records the source. The player is touched from the timeline thread only.
# - The delayed start is a single shot QTimer owned by this object. Pausing during the lead in keeps the
#   remaining delay and resume() re-arms it.
# - Player errors are recorded from errorOccurred and reported as SchedulingError on the next request.
#
########################
# Interfaces:
# Public classes:
# - class MediaPlayerTransport(PyQt6.QtCore.QObject)
#   - Signals:
#     - errorOccurred(str)
#   - Methods:
#     - prepare(track: Track) -> None
#     - schedule_start(delay_seconds: float) -> None
#     - is_playing() -> bool
#     - pause() -> None
#     - resume() -> None
#     - stop() -> None
#     - elapsed_seconds() -> float
#     - set_volume(volume: float) -> None
#
########################

from __future__ import annotations

import logging
from pathlib import Path
import threading
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, QUrl, pyqtSignal
from PyQt6.QtMultimedia import QAudioOutput, QMediaPlayer

import gameplay_models
import playback_transport


logger = logging.getLogger(__name__)


class MediaPlayerTransport(QObject):
    errorOccurred = pyqtSignal(str)

    def __init__(self, parent: Optional[QObject] = None, *, volume: float = 1.0) -> None:
        super().__init__(parent)

        self._audio_output = QAudioOutput(self)
        self._audio_output.setVolume(float(volume))

        self._player = QMediaPlayer(self)
        self._player.setAudioOutput(self._audio_output)
        self._player.errorOccurred.connect(self._on_player_error)

        self._start_timer = QTimer(self)
        self._start_timer.setSingleShot(True)
        self._start_timer.timeout.connect(self._begin_playback)

        self._source_lock = threading.Lock()
        self._prepared_path: Optional[Path] = None
        self._loaded_path: Optional[Path] = None

        self._paused_remaining_ms: Optional[int] = None
        self._is_paused = False
        self._last_error_text: Optional[str] = None

    def set_volume(self, volume: float) -> None:
        self._audio_output.setVolume(float(min(1.0, max(0.0, volume))))

    def prepare(self, track: gameplay_models.Track) -> None:
        if track.source_path is None:
            raise playback_transport.SchedulingError(f"Track {track.track_id!r} has no source file")
        path = Path(track.source_path)
        if not path.is_file():
            raise playback_transport.SchedulingError(f"Audio file not found: {path}")
        with self._source_lock:
            self._prepared_path = path

    def schedule_start(self, delay_seconds: float) -> None:
        delay_ms = int(round(float(delay_seconds) * 1000.0))
        if delay_ms < 0:
            raise playback_transport.SchedulingError(f"Cannot schedule a start in the past (delay={delay_seconds})")

        with self._source_lock:
            prepared_path = self._prepared_path
        if prepared_path is None:
            raise playback_transport.SchedulingError("No track prepared")

        if prepared_path != self._loaded_path:
            self._last_error_text = None
            self._player.setSource(QUrl.fromLocalFile(str(prepared_path)))
            self._loaded_path = prepared_path

        if self._last_error_text:
            raise playback_transport.SchedulingError(self._last_error_text)
        if self._player.mediaStatus() == QMediaPlayer.MediaStatus.InvalidMedia:
            raise playback_transport.SchedulingError(f"Unsupported media: {prepared_path.name}")

        self._start_timer.stop()
        self._player.stop()
        self._player.setPosition(0)
        self._paused_remaining_ms = None
        self._is_paused = False

        self._start_timer.start(delay_ms)
        logger.debug("Playback of %s scheduled in %d ms", prepared_path.name, delay_ms)

    def is_playing(self) -> bool:
        return self._player.playbackState() == QMediaPlayer.PlaybackState.PlayingState

    def pause(self) -> None:
        if self._is_paused:
            return
        if self._start_timer.isActive():
            self._paused_remaining_ms = max(0, int(self._start_timer.remainingTime()))
            self._start_timer.stop()
        else:
            self._paused_remaining_ms = None
            self._player.pause()
        self._is_paused = True

    def resume(self) -> None:
        if not self._is_paused:
            raise playback_transport.SchedulingError("Transport is not paused")
        if self._last_error_text:
            raise playback_transport.SchedulingError(self._last_error_text)

        self._is_paused = False
        if self._paused_remaining_ms is not None:
            self._start_timer.start(int(self._paused_remaining_ms))
            self._paused_remaining_ms = None
        else:
            self._player.play()

    def stop(self) -> None:
        self._start_timer.stop()
        self._paused_remaining_ms = None
        self._is_paused = False
        self._player.stop()

    def elapsed_seconds(self) -> float:
        return float(self._player.position()) / 1000.0

    def _begin_playback(self) -> None:
        if self._is_paused:
            return
        self._player.play()

    def _on_player_error(self, error, error_string: str) -> None:
        if error == QMediaPlayer.Error.NoError:
            return
        self._last_error_text = str(error_string or "Media playback error")
        logger.error("Media player error: %s", self._last_error_text)
        self.errorOccurred.emit(self._last_error_text)
