# test_beat_map_builder.py
from __future__ import annotations

import random

import beat_map_builder
from gameplay_models import LANE_COUNT, Beat, Difficulty


def _beats(times):
    return [Beat(time_seconds=float(value), lane=0, intensity=0.5) for value in times]


def test_min_interval_keeps_first_and_spaces_rest():
    kept = beat_map_builder.filter_min_interval(_beats([0.0, 0.1, 0.15, 0.2, 0.31, 1.0]))
    assert [beat.time_seconds for beat in kept] == [0.0, 0.15, 0.31, 1.0]


def test_min_interval_sorts_input():
    kept = beat_map_builder.filter_min_interval(_beats([2.0, 1.0, 1.05, 0.5]))
    assert [beat.time_seconds for beat in kept] == [0.5, 1.0, 2.0]


def test_min_interval_of_empty_input():
    assert beat_map_builder.filter_min_interval([]) == []


def test_lanes_are_in_range_and_times_preserved():
    beats = _beats([0.2 * index for index in range(200)])
    laned = beat_map_builder.assign_lanes(beats, random.Random(3))

    assert len(laned) == len(beats)
    assert all(0 <= beat.lane < LANE_COUNT for beat in laned)
    assert [beat.time_seconds for beat in laned] == [beat.time_seconds for beat in beats]
    assert len({beat.lane for beat in laned}) == LANE_COUNT


def test_lane_assignment_is_deterministic_for_a_seed():
    beats = _beats([0.2 * index for index in range(50)])
    first = beat_map_builder.assign_lanes(beats, random.Random(99))
    second = beat_map_builder.assign_lanes(beats, random.Random(99))
    assert first == second


def test_track_seed_is_stable():
    assert beat_map_builder.seed_for_track("song") == beat_map_builder.seed_for_track("song")
    assert beat_map_builder.seed_for_track("song") != beat_map_builder.seed_for_track("other song")


def test_build_beat_map_shares_one_chart_across_difficulties():
    beat_map = beat_map_builder.build_beat_map(_beats([1.0, 1.05, 1.5, 2.0]), random_generator=random.Random(1))

    medium = beat_map.beats_for(Difficulty.MEDIUM)
    assert [beat.time_seconds for beat in medium] == [1.0, 1.5, 2.0]
    assert beat_map.beats_for(Difficulty.EASY) == medium
    assert beat_map.beats_for(Difficulty.HARD) == medium


def test_adjacent_beats_respect_minimum_interval():
    generator = random.Random(5)
    times = sorted(generator.uniform(0.0, 30.0) for _ in range(400))
    beat_map = beat_map_builder.build_beat_map(_beats(times), random_generator=random.Random(5))

    medium = beat_map.beats_for(Difficulty.MEDIUM)
    gaps = [later.time_seconds - earlier.time_seconds for earlier, later in zip(medium, medium[1:])]
    assert gaps
    assert min(gaps) >= 0.15
