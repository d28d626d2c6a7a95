# -*- coding: utf-8 -*-
########################
# tile_scheduler.py
########################
# Purpose:
# - Turn the bound beat sequence into live GameTiles for one session.
# - Owns the spawn cursor and the active tile set: spawning, positioning and retirement.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Beats are consumed strictly in time order through a single cursor.
# - Position is a pure function of elapsed time and the beat time, never of rendering or audio callbacks.
# - Retirement ignores hit and miss state. A tile leaves the active set only by passing retire_position.
#
########################
# Interfaces:
# Public dataclasses:
# - TileGeometry(lead_seconds: float, tap_zone_position: float, retire_position: float)
#   - position_for(beat_time_seconds: float, elapsed_seconds: float) -> float
#
# Public classes:
# - class TileScheduler
#   - __init__(beats: Sequence[Beat], geometry: TileGeometry)
#   - beats() -> tuple[Beat, ...]
#   - spawn_due(elapsed_seconds: float) -> list[GameTile]
#   - update_positions(elapsed_seconds: float) -> None
#   - retire_offscreen() -> list[GameTile]
#   - active_tiles() -> list[GameTile]
#   - find_nearest_open_tile(*, lane: int, elapsed_seconds: float) -> Optional[GameTile]
#   - open_tiles_past(*, cutoff_seconds: float) -> list[GameTile]
#
# Inputs:
# - Beat sequence for the active difficulty and elapsed time from SessionClock.
#
# Outputs:
# - Active tiles for rendering and candidate selection for JudgeEngine.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import gameplay_models


@dataclass(frozen=True)
class TileGeometry:
    lead_seconds: float = 2.0
    tap_zone_position: float = 0.92
    retire_position: float = 1.2

    def position_for(self, beat_time_seconds: float, elapsed_seconds: float) -> float:
        spawn_time = float(beat_time_seconds) - float(self.lead_seconds)
        progress = (float(elapsed_seconds) - spawn_time) / float(self.lead_seconds)
        return max(0.0, progress * float(self.tap_zone_position))


class TileScheduler:
    def __init__(self, beats: Sequence[gameplay_models.Beat], geometry: TileGeometry) -> None:
        self._beats: Tuple[gameplay_models.Beat, ...] = tuple(
            sorted(beats, key=lambda item: float(item.time_seconds))
        )
        self._geometry = geometry
        self._spawn_index = 0
        self._active: List[gameplay_models.GameTile] = []

    def beats(self) -> Tuple[gameplay_models.Beat, ...]:
        return self._beats

    def spawn_due(self, elapsed_seconds: float) -> List[gameplay_models.GameTile]:
        lead = float(self._geometry.lead_seconds)
        elapsed = float(elapsed_seconds)
        spawned: List[gameplay_models.GameTile] = []

        while self._spawn_index < len(self._beats):
            beat = self._beats[self._spawn_index]
            if float(beat.time_seconds) - lead > elapsed:
                break
            tile = gameplay_models.GameTile(beat=beat)
            self._active.append(tile)
            spawned.append(tile)
            self._spawn_index += 1

        return spawned

    def update_positions(self, elapsed_seconds: float) -> None:
        for tile in self._active:
            tile.position = self._geometry.position_for(tile.beat.time_seconds, elapsed_seconds)

    def retire_offscreen(self) -> List[gameplay_models.GameTile]:
        limit = float(self._geometry.retire_position)
        retired = [tile for tile in self._active if tile.position > limit]
        if retired:
            self._active = [tile for tile in self._active if tile.position <= limit]
        return retired

    def active_tiles(self) -> List[gameplay_models.GameTile]:
        return list(self._active)

    def find_nearest_open_tile(self, *, lane: int, elapsed_seconds: float) -> Optional[gameplay_models.GameTile]:
        target = float(elapsed_seconds)
        best_tile: Optional[gameplay_models.GameTile] = None
        best_abs_delta = float("inf")

        for tile in self._active:
            if tile.lane != int(lane) or tile.is_judged:
                continue
            abs_delta = abs(target - float(tile.beat.time_seconds))
            # Strict comparison keeps the earlier tile on ties.
            if abs_delta < best_abs_delta:
                best_tile = tile
                best_abs_delta = abs_delta

        return best_tile

    def open_tiles_past(self, *, cutoff_seconds: float) -> List[gameplay_models.GameTile]:
        cutoff = float(cutoff_seconds)
        return [
            tile
            for tile in self._active
            if not tile.is_judged and float(tile.beat.time_seconds) < cutoff
        ]


def _run_unit_tests() -> None:
    beats = [
        gameplay_models.Beat(time_seconds=3.0, lane=1, intensity=0.5),
        gameplay_models.Beat(time_seconds=2.5, lane=0, intensity=0.4),
    ]
    scheduler = TileScheduler(beats, TileGeometry())

    assert scheduler.spawn_due(0.0) == []
    spawned = scheduler.spawn_due(0.5)
    assert [tile.beat.time_seconds for tile in spawned] == [2.5]

    scheduler.spawn_due(1.0)
    scheduler.update_positions(2.5)
    positions = {tile.lane: tile.position for tile in scheduler.active_tiles()}
    assert abs(positions[0] - 0.92) < 1e-9
    assert abs(positions[1] - 0.69) < 1e-9

    nearest = scheduler.find_nearest_open_tile(lane=1, elapsed_seconds=3.0)
    assert nearest is not None and nearest.beat.time_seconds == 3.0

    scheduler.update_positions(10.0)
    assert len(scheduler.retire_offscreen()) == 2
    assert scheduler.active_tiles() == []


if __name__ == "__main__":
    _run_unit_tests()
    print("tile_scheduler.py: ok")
