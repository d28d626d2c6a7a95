# -*- coding: utf-8 -*-
########################
# rhythm_game_controller.py
########################
# Purpose:
# - Session orchestrator for the rhythm game.
# - Owns the authoritative GameState machine: selecting -> loading -> playing <-> paused -> finished.
# - Resolves a beat map (cache or detection) off the timeline, then runs the per tick update and tap judging.
#
# Design notes:
# - No Qt usage. GameLoop (game_loop.py) drives pump() from a QTimer at tick_hz; tests call pump() by hand.
# - Single timeline: tiles, counters and state are mutated only by the thread that calls the public methods
#   and pump(). Workers never touch them. They post callables to an inbox drained by process_pending().
# - Two phase load: a cancellable background job produces a beat map, then one synchronous transition on the
#   timeline applies it if its generation is still current. Stale results are discarded.
# - Collaborators (decoder, cache, transport, executor, time source, lane RNG) are injected.
# - End of track is derived: transport stopped AND elapsed past the grace period AND elapsed within the good
#   window of the track duration, held for end_confirm_seconds.
#
########################
# Interfaces:
# Public dataclasses:
# - ControllerSettings(lead_in_seconds, geometry, hit_windows, end_grace_seconds, end_confirm_seconds,
#                      feedback_seconds, default_difficulty)
#
# Public classes:
# - class RhythmGameController
#   - state -> GameState
#   - selected_track -> Optional[Track]
#   - difficulty -> Difficulty
#   - beat_map -> Optional[BeatMap]
#   - loading_progress -> float
#   - last_error_text -> Optional[str]
#   - select_track(track: Track, difficulty: Optional[Difficulty] = None) -> None
#   - start_game(difficulty: Optional[Difficulty] = None) -> bool
#   - pause() -> bool
#   - resume() -> bool
#   - retry() -> bool
#   - end_game() -> bool
#   - exit() -> None
#   - tap_lane(lane: int) -> Optional[JudgementEvent]
#   - update() -> list[JudgementEvent]
#   - process_pending() -> int
#   - pump() -> list[JudgementEvent]
#   - elapsed_seconds() -> float
#   - active_tiles() -> list[GameTile]
#   - score_state() -> ScoreState
#   - last_accuracy() -> Optional[HitAccuracy]
#   - clear_last_accuracy() -> None
#   - session_result() -> Optional[SessionResult]
#   - close() -> None
#
# Inputs:
# - Track selection and lane taps from the presentation layer.
# - AudioSource, BeatMapCache and PlaybackTransport collaborators.
#
# Outputs:
# - Live tiles, counters, state and JudgementEvents for the presentation layer.
#
########################

from __future__ import annotations

from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
import functools
import logging
import queue
import random
import time
from typing import Callable, List, Optional

import audio_source
import beat_detector
import beat_map_builder
import beat_map_cache
import gameplay_models
import judge
import playback_transport
import session_clock
import tile_scheduler
from gameplay_models import Difficulty, GameState, HitAccuracy


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControllerSettings:
    lead_in_seconds: float = 3.0
    geometry: tile_scheduler.TileGeometry = field(default_factory=tile_scheduler.TileGeometry)
    hit_windows: judge.HitWindows = field(default_factory=judge.HitWindows)
    end_grace_seconds: float = 1.0
    end_confirm_seconds: float = 0.25
    feedback_seconds: float = 0.3
    default_difficulty: Difficulty = Difficulty.MEDIUM


@dataclass(frozen=True)
class _Resolution:
    beat_map: gameplay_models.BeatMap
    duration_seconds: float
    from_cache: bool


@dataclass
class _LoadJob:
    generation: int
    track: gameplay_models.Track
    cancel_token: beat_detector.CancelToken
    resolution_future: Optional[Future] = None
    prepare_future: Optional[Future] = None

    def is_done(self) -> bool:
        return (
            self.resolution_future is not None
            and self.prepare_future is not None
            and self.resolution_future.done()
            and self.prepare_future.done()
        )

    def cancel(self) -> None:
        self.cancel_token.cancel()
        for future in (self.resolution_future, self.prepare_future):
            if future is not None:
                future.cancel()


class RhythmGameController:
    def __init__(
        self,
        *,
        audio_source_obj: audio_source.AudioSource,
        transport: playback_transport.PlaybackTransport,
        cache: Optional[beat_map_cache.BeatMapCache] = None,
        detector: Optional[beat_detector.BeatDetector] = None,
        settings: Optional[ControllerSettings] = None,
        executor: Optional[Executor] = None,
        time_source: Callable[[], float] = time.monotonic,
        rng_factory: Optional[Callable[[gameplay_models.Track], random.Random]] = None,
    ) -> None:
        self._audio_source = audio_source_obj
        self._transport = transport
        self._cache = cache
        self._detector = detector or beat_detector.BeatDetector()
        self._settings = settings or ControllerSettings()
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="tapbeat-load")
        self._rng_factory = rng_factory or (lambda track: beat_map_builder.rng_for_track(track.track_id))

        self._clock = session_clock.SessionClock(time_source)
        self._inbox: "queue.SimpleQueue[Callable[[], None]]" = queue.SimpleQueue()

        self._state = GameState.SELECTING
        self._generation = 0
        self._load_job: Optional[_LoadJob] = None

        self._track: Optional[gameplay_models.Track] = None
        self._beat_map: Optional[gameplay_models.BeatMap] = None
        self._duration_seconds = 0.0
        self._difficulty = self._settings.default_difficulty
        self._scheduler: Optional[tile_scheduler.TileScheduler] = None
        self._judge: Optional[judge.JudgeEngine] = None

        self._loading_progress = 0.0
        self._last_error_text: Optional[str] = None
        self._last_accuracy: Optional[HitAccuracy] = None
        self._last_accuracy_at = 0.0
        self._stopped_since: Optional[float] = None

    # -----------------
    # Read only views for the presentation layer
    # -----------------

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def settings(self) -> ControllerSettings:
        return self._settings

    @property
    def selected_track(self) -> Optional[gameplay_models.Track]:
        return self._track

    @property
    def difficulty(self) -> Difficulty:
        return self._difficulty

    @property
    def beat_map(self) -> Optional[gameplay_models.BeatMap]:
        return self._beat_map

    @property
    def loading_progress(self) -> float:
        return float(self._loading_progress)

    @property
    def last_error_text(self) -> Optional[str]:
        return self._last_error_text

    def elapsed_seconds(self) -> float:
        return self._clock.elapsed_seconds()

    def active_tiles(self) -> List[gameplay_models.GameTile]:
        if self._scheduler is None:
            return []
        return self._scheduler.active_tiles()

    def score_state(self) -> judge.ScoreState:
        if self._judge is None:
            return judge.ScoreState()
        return self._judge.score_state()

    def last_accuracy(self) -> Optional[HitAccuracy]:
        if self._last_accuracy is None:
            return None
        if self._clock.now() - self._last_accuracy_at >= float(self._settings.feedback_seconds):
            self._last_accuracy = None
        return self._last_accuracy

    def clear_last_accuracy(self) -> None:
        self._last_accuracy = None

    def session_result(self) -> Optional[gameplay_models.SessionResult]:
        if self._judge is None or self._scheduler is None:
            return None
        score = self._judge.score_state()
        return gameplay_models.SessionResult(
            track_title=str(self._track.title if self._track is not None else ""),
            difficulty=self._difficulty,
            score=int(score.score),
            max_combo=int(score.max_combo),
            perfect_hits=int(score.perfect_count),
            good_hits=int(score.good_count),
            misses=int(score.miss_count),
            total_beats=len(self._scheduler.beats()),
        )

    # -----------------
    # Track selection and loading (two phase handoff)
    # -----------------

    def select_track(self, track: gameplay_models.Track, difficulty: Optional[Difficulty] = None) -> None:
        if self._state in (GameState.PLAYING, GameState.PAUSED, GameState.FINISHED):
            self.exit()
        elif self._load_job is not None:
            self._cancel_load_job()

        self._generation += 1
        generation = self._generation

        self._track = track
        self._beat_map = None
        self._duration_seconds = float(track.duration_seconds)
        if difficulty is not None:
            self._difficulty = Difficulty.parse(difficulty)
        self._loading_progress = 0.0
        self._last_error_text = None
        self._set_state(GameState.LOADING)

        job = _LoadJob(generation=generation, track=track, cancel_token=beat_detector.CancelToken())
        self._load_job = job

        # Both futures exist before any done callback can look at the job.
        resolution_future = self._executor.submit(self._resolve_beat_map, track, job.cancel_token, generation)
        prepare_future = self._executor.submit(self._transport.prepare, track)
        job.resolution_future = resolution_future
        job.prepare_future = prepare_future

        for future in (resolution_future, prepare_future):
            future.add_done_callback(lambda _future, job=job: self._post(functools.partial(self._on_load_job_update, job)))

    def _resolve_beat_map(
        self,
        track: gameplay_models.Track,
        cancel_token: beat_detector.CancelToken,
        generation: int,
    ) -> _Resolution:
        # Runs on a worker thread. Never touch session state here.
        if self._cache is not None:
            cached = self._cache.load(track.track_id)
            if cached is not None:
                logger.info("Beat map for %r loaded from cache", track.track_id)
                return _Resolution(beat_map=cached, duration_seconds=float(track.duration_seconds), from_cache=True)

        self._post(functools.partial(self._set_loading_progress, generation, 0.2))
        cancel_token.raise_if_cancelled()

        decoded = self._audio_source.decode(track)
        cancel_token.raise_if_cancelled()

        beat_map = self._detector.detect(
            decoded,
            random_generator=self._rng_factory(track),
            cancel_token=cancel_token,
        )

        if self._cache is not None:
            self._cache.save_async(track.track_id, beat_map)

        self._post(functools.partial(self._set_loading_progress, generation, 0.8))
        duration = float(track.duration_seconds) if float(track.duration_seconds) > 0.0 else decoded.duration_seconds
        return _Resolution(beat_map=beat_map, duration_seconds=duration, from_cache=False)

    def _set_loading_progress(self, generation: int, progress: float) -> None:
        if generation != self._generation or self._state != GameState.LOADING:
            return
        self._loading_progress = max(self._loading_progress, float(progress))

    def _on_load_job_update(self, job: _LoadJob) -> None:
        if job is not self._load_job or job.generation != self._generation:
            logger.debug("Discarding stale load result for %r (generation %d)", job.track.track_id, job.generation)
            return
        if not job.is_done():
            return

        self._load_job = None
        assert job.resolution_future is not None and job.prepare_future is not None

        try:
            resolution: _Resolution = job.resolution_future.result()
            job.prepare_future.result()
        except (CancelledError, beat_detector.DetectionCancelled):
            logger.debug("Load for %r was cancelled", job.track.track_id)
            self._abort_load("Loading was cancelled")
            return
        except audio_source.PcmBufferError as exc:
            logger.error("Not enough memory to decode %r: %s", job.track.track_id, exc)
            self._abort_load(f"Not enough memory to load {self._track_label(job.track)}")
            return
        except audio_source.DecodeError as exc:
            logger.error("Could not decode %r: %s", job.track.track_id, exc)
            self._abort_load(f"Could not read {self._track_label(job.track)}: {exc}")
            return
        except playback_transport.SchedulingError as exc:
            logger.error("Could not prepare playback for %r: %s", job.track.track_id, exc)
            self._abort_load(f"Could not prepare playback for {self._track_label(job.track)}: {exc}")
            return
        except Exception as exc:
            logger.exception("Unexpected failure while loading %r", job.track.track_id)
            self._abort_load(f"Could not load {self._track_label(job.track)}: {exc}")
            return

        self._beat_map = resolution.beat_map
        if resolution.duration_seconds > 0.0:
            self._duration_seconds = float(resolution.duration_seconds)
        self._loading_progress = 1.0

        if not self.start_game(self._difficulty):
            logger.warning("Beat map for %r is ready but playback could not be scheduled", job.track.track_id)

    def _abort_load(self, message: str) -> None:
        self._transport.stop()
        self._clear_session()
        self._track = None
        self._beat_map = None
        self._loading_progress = 0.0
        self._last_error_text = str(message)
        self._set_state(GameState.SELECTING)

    def _cancel_load_job(self) -> None:
        job = self._load_job
        self._load_job = None
        if job is not None:
            # Never waits. A worker that is already running stops at its next cancel check.
            job.cancel()

    # -----------------
    # Session control
    # -----------------

    def start_game(self, difficulty: Optional[Difficulty] = None) -> bool:
        if self._beat_map is None or self._state == GameState.SELECTING:
            return False

        chosen = Difficulty.parse(difficulty) if difficulty is not None else self._difficulty
        lead_in = float(self._settings.lead_in_seconds)

        try:
            self._transport.schedule_start(lead_in)
        except playback_transport.SchedulingError as exc:
            logger.warning("Could not schedule playback: %s", exc)
            self._last_error_text = f"Could not start playback: {exc}"
            return False

        self._difficulty = chosen
        self._scheduler = tile_scheduler.TileScheduler(self._beat_map.beats_for(chosen), self._settings.geometry)
        self._judge = judge.JudgeEngine(self._scheduler, self._settings.hit_windows)
        self._clock.start(lead_in)
        self._last_accuracy = None
        self._stopped_since = None
        self._last_error_text = None
        self._set_state(GameState.PLAYING)
        return True

    def pause(self) -> bool:
        if self._state != GameState.PLAYING:
            return False
        try:
            self._transport.pause()
        except playback_transport.SchedulingError as exc:
            logger.warning("Could not pause playback: %s", exc)
            self._last_error_text = f"Could not pause playback: {exc}"
            return False
        self._clock.pause()
        self._set_state(GameState.PAUSED)
        return True

    def resume(self) -> bool:
        if self._state != GameState.PAUSED:
            return False
        try:
            self._transport.resume()
        except playback_transport.SchedulingError as exc:
            logger.warning("Could not resume playback: %s", exc)
            self._last_error_text = f"Could not resume playback: {exc}"
            return False
        self._clock.resume()
        self._stopped_since = None
        self._set_state(GameState.PLAYING)
        return True

    def retry(self) -> bool:
        # LOADING counts once the beat map is bound and only the playback start failed.
        start_failed = self._state == GameState.LOADING and self._beat_map is not None and self._load_job is None
        if self._state not in (GameState.FINISHED, GameState.PLAYING, GameState.PAUSED) and not start_failed:
            return False
        return self.start_game(self._difficulty)

    def end_game(self) -> bool:
        if self._state not in (GameState.PLAYING, GameState.PAUSED):
            return False
        self._clock.pause()
        self._transport.stop()
        self._set_state(GameState.FINISHED)
        return True

    def exit(self) -> None:
        self._cancel_load_job()
        self._generation += 1
        self._transport.stop()
        self._clear_session()
        self._track = None
        self._beat_map = None
        self._duration_seconds = 0.0
        self._loading_progress = 0.0
        self._set_state(GameState.SELECTING)

    def close(self) -> None:
        self.exit()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _clear_session(self) -> None:
        self._scheduler = None
        self._judge = None
        self._clock.reset()
        self._last_accuracy = None
        self._stopped_since = None

    # -----------------
    # Timeline: input, inbox and per tick update
    # -----------------

    def tap_lane(self, lane: int) -> Optional[gameplay_models.JudgementEvent]:
        if self._state != GameState.PLAYING or self._judge is None:
            return None
        lane_index = int(lane)
        if lane_index < 0 or lane_index >= gameplay_models.LANE_COUNT:
            return None

        event = self._judge.on_tap(lane=lane_index, elapsed_seconds=self._clock.elapsed_seconds())
        if event is not None:
            self._show_accuracy(event.accuracy)
        return event

    def process_pending(self) -> int:
        handled = 0
        while True:
            try:
                callback = self._inbox.get_nowait()
            except queue.Empty:
                return handled
            callback()
            handled += 1

    def pump(self) -> List[gameplay_models.JudgementEvent]:
        self.process_pending()
        return self.update()

    def update(self) -> List[gameplay_models.JudgementEvent]:
        if self._state != GameState.PLAYING or self._scheduler is None or self._judge is None:
            return []

        elapsed = self._clock.elapsed_seconds()
        self._scheduler.spawn_due(elapsed)
        self._scheduler.update_positions(elapsed)
        misses = self._judge.update_for_time(elapsed)
        if misses:
            self._show_accuracy(HitAccuracy.MISS)
        self._scheduler.retire_offscreen()

        if self._track_has_ended(elapsed):
            logger.info("Track finished at %.2fs", elapsed)
            self.end_game()

        return misses

    def _track_has_ended(self, elapsed: float) -> bool:
        settings = self._settings
        if self._transport.is_playing() or elapsed <= float(settings.end_grace_seconds):
            self._stopped_since = None
            return False

        tolerance = float(settings.hit_windows.good_seconds)
        if self._duration_seconds > 0.0 and elapsed < self._duration_seconds - tolerance:
            self._stopped_since = None
            return False

        now = self._clock.now()
        if self._stopped_since is None:
            self._stopped_since = now
        return now - self._stopped_since >= float(settings.end_confirm_seconds)

    def _show_accuracy(self, accuracy: HitAccuracy) -> None:
        self._last_accuracy = accuracy
        self._last_accuracy_at = self._clock.now()

    def _post(self, callback: Callable[[], None]) -> None:
        self._inbox.put(callback)

    def _set_state(self, new_state: GameState) -> None:
        if new_state == self._state:
            return
        logger.info("Game state %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    @staticmethod
    def _track_label(track: gameplay_models.Track) -> str:
        return repr(track.title or track.track_id)
