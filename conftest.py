"""
Shared fixtures for the test suite.

Fakes for every collaborator the controller takes in its constructor, so tests drive
time, background work and playback by hand.
"""

from __future__ import annotations

import os
from concurrent.futures import Executor, Future
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pytest

import audio_source
import playback_transport
from gameplay_models import Beat, BeatMap, Difficulty, Track


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable time source that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)

    def set(self, value: float) -> None:
        self.now = float(value)


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


class InlineExecutor(Executor):
    """Runs work synchronously in submit() and hands back a finished Future."""

    def submit(self, fn: Callable, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # noqa: BLE001 - mirrors ThreadPoolExecutor
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Queues work until run_all() is called, to interleave loads in a known order."""

    def __init__(self) -> None:
        self._queued: List[Tuple[Future, Callable, tuple, dict]] = []

    def submit(self, fn: Callable, /, *args, **kwargs) -> Future:
        future: Future = Future()
        self._queued.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        queued, self._queued = self._queued, []
        for future, fn, args, kwargs in queued:
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as exc:  # noqa: BLE001
                future.set_exception(exc)

    @property
    def queued_count(self) -> int:
        return len(self._queued)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """Records calls; is_playing is whatever the test says it is."""

    def __init__(self) -> None:
        self.prepared: List[str] = []
        self.scheduled_delays: List[float] = []
        self.playing = False
        self.paused = False
        self.stop_calls = 0
        self.fail_schedule = False
        self.fail_resume = False
        self.fail_prepare = False

    def prepare(self, track: Track) -> None:
        if self.fail_prepare:
            raise playback_transport.SchedulingError("prepare failed")
        self.prepared.append(track.track_id)

    def schedule_start(self, delay_seconds: float) -> None:
        if self.fail_schedule:
            raise playback_transport.SchedulingError("audio device busy")
        self.scheduled_delays.append(float(delay_seconds))
        self.playing = True
        self.paused = False

    def is_playing(self) -> bool:
        return self.playing and not self.paused

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        if self.fail_resume:
            raise playback_transport.SchedulingError("cannot resume")
        self.paused = False

    def stop(self) -> None:
        self.stop_calls += 1
        self.playing = False
        self.paused = False

    def elapsed_seconds(self) -> float:
        return 0.0


# ---------------------------------------------------------------------------
# Decoder and cache
# ---------------------------------------------------------------------------


class InMemoryAudioSource:
    """Serves DecodedAudio (or raises) per track id."""

    def __init__(self) -> None:
        self._entries: Dict[str, object] = {}
        self.decoded: List[str] = []

    def add(self, track_id: str, entry: object) -> None:
        self._entries[track_id] = entry

    def decode(self, track: Track) -> audio_source.DecodedAudio:
        self.decoded.append(track.track_id)
        entry = self._entries.get(track.track_id)
        if entry is None:
            raise audio_source.DecodeError(f"no audio for {track.track_id}")
        if isinstance(entry, BaseException):
            raise entry
        return entry  # type: ignore[return-value]


class FakeCache:
    """Dictionary backed stand in for BeatMapCache."""

    def __init__(self) -> None:
        self.entries: Dict[str, BeatMap] = {}
        self.saved: List[str] = []

    def load(self, track_id: str) -> Optional[BeatMap]:
        return self.entries.get(track_id)

    def save_async(self, track_id: str, beat_map: BeatMap) -> Future:
        self.entries[track_id] = beat_map
        self.saved.append(track_id)
        future: Future = Future()
        future.set_result(True)
        return future


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_beat_map(times_and_lanes: List[Tuple[float, int]]) -> BeatMap:
    beats = [Beat(time_seconds=float(time_value), lane=int(lane), intensity=0.5) for time_value, lane in times_and_lanes]
    return BeatMap.from_sequences({difficulty: beats for difficulty in Difficulty})


def make_pulse_train(
    *,
    sample_rate: int = 44100,
    seconds: float = 10.0,
    pulse_hz: float = 2.0,
    burst_seconds: float = 0.03,
    tone_hz: float = 60.0,
    noise_level: float = 0.001,
) -> np.ndarray:
    """Low frequency bursts starting exactly on block boundaries over a faint noise floor."""
    total = int(round(sample_rate * seconds))
    generator = np.random.default_rng(1234)
    samples = (generator.uniform(-1.0, 1.0, total) * noise_level).astype(np.float32)

    period = int(round(sample_rate / pulse_hz))
    burst_length = int(round(sample_rate * burst_seconds))
    burst_time = np.arange(burst_length, dtype=np.float64) / float(sample_rate)
    burst = np.sin(2.0 * np.pi * tone_hz * burst_time).astype(np.float32)

    for start in range(0, total, period):
        end = min(total, start + burst_length)
        samples[start:end] = burst[: end - start]
    return samples


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock(100.0)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def deferred_executor() -> DeferredExecutor:
    return DeferredExecutor()


@pytest.fixture
def memory_audio() -> InMemoryAudioSource:
    return InMemoryAudioSource()


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def pulse_train() -> Tuple[np.ndarray, int]:
    return make_pulse_train(), 44100


@pytest.fixture
def five_beat_track() -> Tuple[Track, BeatMap]:
    track = Track(track_id="five-beats", title="Five Beats", duration_seconds=5.0)
    beat_map = make_beat_map([(1.0, 0), (1.5, 1), (2.0, 2), (2.5, 3), (3.0, 0)])
    return track, beat_map


@pytest.fixture(scope="session")
def qt_application():
    """Offscreen QApplication shared by the Qt tests; windows are never shown."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    qt_widgets = pytest.importorskip("PyQt6.QtWidgets")
    return qt_widgets.QApplication.instance() or qt_widgets.QApplication(["tapbeat-tests"])
