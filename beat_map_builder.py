# -*- coding: utf-8 -*-
########################
# beat_map_builder.py
########################
# Purpose:
# - Turns raw detected beats into a playable BeatMap.
# - Drops beats closer than the minimum interval and assigns each beat a lane.
#
# Design notes:
# - Lane choice is driven by an injected random.Random. rng_for_track seeds it from a SHA-256 digest of the
#   track id and BUILDER_VERSION, so a track gets the same layout in every process.
# - A lane that repeats the previous one moves over one lane half the time.
# - Every difficulty currently maps to the same beat sequence.
#
########################
# Interfaces:
# Public functions:
# - seed_for_track(track_id: str, builder_version: str = BUILDER_VERSION) -> int
# - rng_for_track(track_id: str) -> random.Random
# - filter_min_interval(beats: Iterable[Beat], min_interval_seconds: float) -> list[Beat]
# - assign_lanes(beats: Sequence[Beat], random_generator: random.Random) -> list[Beat]
# - build_beat_map(raw_beats: Iterable[Beat], *, random_generator, min_interval_seconds) -> BeatMap
#
# Inputs:
# - Raw beats from onset_dsp.pick_peaks (lane 0 placeholder).
#
# Outputs:
# - BeatMap consumed by the controller and written to BeatMapCache.
#
########################

from __future__ import annotations

import hashlib
import random
from typing import Iterable, List, Optional, Sequence

from gameplay_models import LANE_COUNT, MIN_BEAT_INTERVAL_SECONDS, Beat, BeatMap, Difficulty


BUILDER_VERSION = "lanes_v1"


def seed_for_track(track_id: str, builder_version: str = BUILDER_VERSION) -> int:
    payload = f"{track_id}|{builder_version}".encode("utf-8")
    digest = hashlib.sha256(payload).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def rng_for_track(track_id: str) -> random.Random:
    return random.Random(seed_for_track(track_id))


def filter_min_interval(beats: Iterable[Beat], min_interval_seconds: float = MIN_BEAT_INTERVAL_SECONDS) -> List[Beat]:
    """Greedy spacing filter over time-sorted beats. The first beat is always kept."""
    ordered = sorted(beats, key=lambda item: float(item.time_seconds))
    interval = float(min_interval_seconds)

    kept: List[Beat] = []
    last_time: Optional[float] = None
    for beat in ordered:
        time_seconds = float(beat.time_seconds)
        if last_time is None or time_seconds - last_time >= interval:
            kept.append(beat)
            last_time = time_seconds
    return kept


def assign_lanes(beats: Sequence[Beat], random_generator: random.Random) -> List[Beat]:
    assigned: List[Beat] = []
    last_lane = -1

    for beat in beats:
        lane = random_generator.randint(0, LANE_COUNT - 1)
        # Soft anti repetition: a repeated lane moves over one half the time.
        if lane == last_lane and random_generator.random() < 0.5:
            lane = (lane + 1) % LANE_COUNT
        assigned.append(beat.with_lane(lane))
        last_lane = lane

    return assigned


def build_beat_map(
    raw_beats: Iterable[Beat],
    *,
    random_generator: random.Random,
    min_interval_seconds: float = MIN_BEAT_INTERVAL_SECONDS,
) -> BeatMap:
    filtered = filter_min_interval(raw_beats, min_interval_seconds)
    laned = tuple(assign_lanes(filtered, random_generator))

    # All tiers share the medium chart. Per tier thinning is not defined yet.
    return BeatMap(
        beats_by_difficulty={
            Difficulty.EASY: laned,
            Difficulty.MEDIUM: laned,
            Difficulty.HARD: laned,
        }
    )
