# -*- coding: utf-8 -*-
########################
# gameplay_models.py
########################
# Purpose:
# - Core data models shared by beat detection, the beat map cache and the game controller.
# - Defines beats, beat maps, live tiles, judgement events and session results.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. These are plain dataclasses and enums.
# - Beat and BeatMap are immutable. GameTile is the only mutable gameplay entity.
#
########################
# Interfaces:
# Public enums:
# - class Difficulty(str, Enum): EASY | MEDIUM | HARD
#   - parse(value: str | Difficulty) -> Difficulty
# - class HitAccuracy(str, Enum): PERFECT | GOOD | MISS
#   - points -> int
# - class GameState(str, Enum): SELECTING | LOADING | PLAYING | PAUSED | FINISHED
#
# Public dataclasses:
# - Beat(time_seconds: float, lane: int, intensity: float)
# - BeatMap(beats_by_difficulty: dict[Difficulty, tuple[Beat, ...]])
#   - beats_for(difficulty) -> tuple[Beat, ...]
#   - total_beats() -> int
# - Track(track_id: str, title: str, duration_seconds: float, source_path: Optional[Path])
# - GameTile(beat: Beat, position: float, is_hit: bool, is_missed: bool)
# - JudgementEvent(elapsed_seconds, lane, beat_time_seconds, delta_seconds, accuracy, points_awarded, combo)
# - SessionResult(track_title, difficulty, score, max_combo, perfect_hits, good_hits, misses, total_beats)
#
# Inputs/Outputs:
# - These types are exchanged between BeatDetector, BeatMapCache, TileScheduler, JudgeEngine,
#   RhythmGameController, GameLoop and LaneView.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple


LANE_COUNT = 4
MIN_BEAT_INTERVAL_SECONDS = 0.15


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: object) -> "Difficulty":
        if isinstance(value, Difficulty):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unknown difficulty: {value!r} (expected one of: easy, medium, hard)")


_POINTS_BY_ACCURACY = {
    "perfect": 100,
    "good": 50,
    "miss": 0,
}


class HitAccuracy(str, Enum):
    PERFECT = "perfect"
    GOOD = "good"
    MISS = "miss"

    @property
    def points(self) -> int:
        return int(_POINTS_BY_ACCURACY[self.value])


class GameState(str, Enum):
    SELECTING = "selecting"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass(frozen=True)
class Beat:
    time_seconds: float
    lane: int
    intensity: float

    def with_lane(self, lane: int) -> "Beat":
        return Beat(time_seconds=float(self.time_seconds), lane=int(lane), intensity=float(self.intensity))


@dataclass(frozen=True)
class BeatMap:
    beats_by_difficulty: Dict[Difficulty, Tuple[Beat, ...]]

    @classmethod
    def from_sequences(cls, sequences: Dict[Difficulty, Iterable[Beat]]) -> "BeatMap":
        normalized: Dict[Difficulty, Tuple[Beat, ...]] = {}
        for difficulty, beats in sequences.items():
            ordered = sorted(beats, key=lambda item: float(item.time_seconds))
            normalized[Difficulty.parse(difficulty)] = tuple(ordered)
        return cls(beats_by_difficulty=normalized)

    def beats_for(self, difficulty: Difficulty) -> Tuple[Beat, ...]:
        return self.beats_by_difficulty.get(Difficulty.parse(difficulty), ())

    def difficulties(self) -> Tuple[Difficulty, ...]:
        return tuple(member for member in Difficulty if member in self.beats_by_difficulty)

    def total_beats(self, difficulty: Difficulty = Difficulty.MEDIUM) -> int:
        return len(self.beats_for(difficulty))


@dataclass(frozen=True)
class Track:
    track_id: str
    title: str = ""
    duration_seconds: float = 0.0
    source_path: Optional[Path] = None


@dataclass
class GameTile:
    beat: Beat
    position: float = 0.0
    is_hit: bool = False
    is_missed: bool = False

    @property
    def lane(self) -> int:
        return int(self.beat.lane)

    @property
    def is_judged(self) -> bool:
        return bool(self.is_hit or self.is_missed)


@dataclass(frozen=True)
class JudgementEvent:
    elapsed_seconds: float
    lane: int
    beat_time_seconds: float
    delta_seconds: float
    accuracy: HitAccuracy
    points_awarded: int = 0
    combo: int = 0


@dataclass(frozen=True)
class SessionResult:
    track_title: str
    difficulty: Difficulty
    score: int
    max_combo: int
    perfect_hits: int
    good_hits: int
    misses: int
    total_beats: int

    @property
    def hit_ratio(self) -> float:
        judged = self.perfect_hits + self.good_hits + self.misses
        if judged <= 0:
            return 0.0
        return float(self.perfect_hits + self.good_hits) / float(judged)
