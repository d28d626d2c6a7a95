# -*- coding: utf-8 -*-
########################
# judge.py
########################
# Purpose:
# - Hit judgement and scoring engine.
# - Matches a lane tap to the nearest open GameTile and classifies it as perfect or good.
# - Marks tiles missed once their good window has passed.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Strict inputs: consume only a lane and elapsed_seconds from SessionClock.
# - Taps outside every window are ignored: no tile is marked, no combo reset, no score change.
# - Only the miss transition resets combo.
# - TileScheduler owns the tiles; JudgeEngine flips their is_hit / is_missed flags.
#
########################
# Interfaces:
# Public dataclasses:
# - HitWindows(perfect_seconds: float, good_seconds: float)
#   - classify_delta(delta_seconds: float) -> Optional[HitAccuracy]
# - ScoreState(score, combo, max_combo, perfect_count, good_count, miss_count)
#   - combo_multiplier() -> int
#   - apply_hit(accuracy: HitAccuracy) -> int
#   - apply_miss() -> None
#
# Public classes:
# - class JudgeEngine
#   - __init__(tile_scheduler: TileScheduler, hit_windows: HitWindows)
#   - score_state() -> ScoreState
#   - on_tap(*, lane: int, elapsed_seconds: float) -> Optional[JudgementEvent]
#   - update_for_time(elapsed_seconds: float) -> list[JudgementEvent]
#
# Outputs:
# - JudgementEvent objects for feedback and stats.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import gameplay_models
import tile_scheduler
from gameplay_models import HitAccuracy


@dataclass(frozen=True)
class HitWindows:
    perfect_seconds: float = 0.05
    good_seconds: float = 0.10

    def classify_delta(self, delta_seconds: float) -> Optional[HitAccuracy]:
        abs_delta = abs(float(delta_seconds))
        if abs_delta <= float(self.perfect_seconds):
            return HitAccuracy.PERFECT
        if abs_delta <= float(self.good_seconds):
            return HitAccuracy.GOOD
        return None


@dataclass
class ScoreState:
    score: int = 0
    combo: int = 0
    max_combo: int = 0
    perfect_count: int = 0
    good_count: int = 0
    miss_count: int = 0

    def combo_multiplier(self) -> int:
        # +1 for every 10 combo.
        return max(1, self.combo // 10 + 1)

    def apply_hit(self, accuracy: HitAccuracy) -> int:
        if accuracy == HitAccuracy.MISS:
            self.apply_miss()
            return 0

        self.combo += 1
        if self.combo > self.max_combo:
            self.max_combo = self.combo

        points = accuracy.points * self.combo_multiplier()
        self.score += points

        if accuracy == HitAccuracy.PERFECT:
            self.perfect_count += 1
        else:
            self.good_count += 1
        return points

    def apply_miss(self) -> None:
        self.combo = 0
        self.miss_count += 1


class JudgeEngine:
    def __init__(self, tile_scheduler_obj: tile_scheduler.TileScheduler, hit_windows: HitWindows) -> None:
        self._tile_scheduler = tile_scheduler_obj
        self._hit_windows = hit_windows
        self._score_state = ScoreState()

    def score_state(self) -> ScoreState:
        return self._score_state

    def on_tap(self, *, lane: int, elapsed_seconds: float) -> Optional[gameplay_models.JudgementEvent]:
        tile = self._tile_scheduler.find_nearest_open_tile(lane=int(lane), elapsed_seconds=float(elapsed_seconds))
        if tile is None:
            return None

        beat_time = float(tile.beat.time_seconds)
        delta = float(elapsed_seconds) - beat_time
        accuracy = self._hit_windows.classify_delta(delta)
        if accuracy is None:
            return None

        tile.is_hit = True
        points = self._score_state.apply_hit(accuracy)

        return gameplay_models.JudgementEvent(
            elapsed_seconds=float(elapsed_seconds),
            lane=int(lane),
            beat_time_seconds=beat_time,
            delta_seconds=delta,
            accuracy=accuracy,
            points_awarded=int(points),
            combo=int(self._score_state.combo),
        )

    def update_for_time(self, elapsed_seconds: float) -> List[gameplay_models.JudgementEvent]:
        elapsed = float(elapsed_seconds)
        cutoff = elapsed - float(self._hit_windows.good_seconds)
        misses: List[gameplay_models.JudgementEvent] = []

        for tile in self._tile_scheduler.open_tiles_past(cutoff_seconds=cutoff):
            tile.is_missed = True
            self._score_state.apply_miss()
            beat_time = float(tile.beat.time_seconds)
            misses.append(
                gameplay_models.JudgementEvent(
                    elapsed_seconds=elapsed,
                    lane=tile.lane,
                    beat_time_seconds=beat_time,
                    delta_seconds=elapsed - beat_time,
                    accuracy=HitAccuracy.MISS,
                    points_awarded=0,
                    combo=0,
                )
            )
        return misses


def _run_unit_tests() -> None:
    beats = [gameplay_models.Beat(time_seconds=1.0, lane=0, intensity=1.0)]
    scheduler = tile_scheduler.TileScheduler(beats, tile_scheduler.TileGeometry())
    engine = JudgeEngine(scheduler, HitWindows())
    scheduler.spawn_due(0.0)

    assert engine.on_tap(lane=0, elapsed_seconds=1.15) is None
    assert engine.score_state().score == 0

    hit = engine.on_tap(lane=0, elapsed_seconds=1.0)
    assert hit is not None
    assert hit.accuracy == HitAccuracy.PERFECT
    assert engine.score_state().score == 100

    stray = engine.on_tap(lane=1, elapsed_seconds=1.0)
    assert stray is None

    scheduler = tile_scheduler.TileScheduler(beats, tile_scheduler.TileGeometry())
    engine = JudgeEngine(scheduler, HitWindows())
    scheduler.spawn_due(0.0)
    misses = engine.update_for_time(2.0)
    assert len(misses) == 1
    assert engine.score_state().miss_count == 1
    assert engine.update_for_time(3.0) == []


if __name__ == "__main__":
    _run_unit_tests()
    print("judge.py: ok")
