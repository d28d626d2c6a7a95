# test_game_loop.py
from __future__ import annotations

import pytest

pytest.importorskip("PyQt6")

import game_loop  # noqa: E402
import rhythm_game_controller  # noqa: E402
from conftest import make_beat_map  # noqa: E402
from gameplay_models import GameState, HitAccuracy, Track  # noqa: E402


@pytest.fixture
def wired(qt_application, fake_clock, fake_transport, inline_executor, fake_cache, memory_audio):
    controller = rhythm_game_controller.RhythmGameController(
        audio_source_obj=memory_audio,
        transport=fake_transport,
        cache=fake_cache,
        executor=inline_executor,
        time_source=fake_clock,
    )
    loop = game_loop.GameLoop(controller, tick_hz=60)
    received = {"states": [], "judged": [], "errors": [], "finished": []}
    loop.stateChanged.connect(received["states"].append)
    loop.judged.connect(received["judged"].append)
    loop.errorRaised.connect(received["errors"].append)
    loop.sessionFinished.connect(received["finished"].append)
    return controller, loop, received


def test_pump_once_reports_state_changes(wired, fake_cache, fake_clock):
    controller, loop, received = wired
    track = Track(track_id="loop", title="Loop", duration_seconds=5.0)
    fake_cache.entries[track.track_id] = make_beat_map([(1.0, 2)])

    controller.select_track(track)
    loop.pump_once()
    loop.pump_once()

    assert received["states"] == [GameState.PLAYING.value]
    assert controller.state == GameState.PLAYING


def test_lane_press_emits_judgement(wired, fake_cache, fake_clock):
    controller, loop, received = wired
    track = Track(track_id="loop", title="Loop", duration_seconds=5.0)
    fake_cache.entries[track.track_id] = make_beat_map([(1.0, 2)])
    controller.select_track(track)
    loop.pump_once()

    fake_clock.advance(3.0 + 1.0)
    loop.pump_once()
    loop.on_lane_pressed(2)

    assert len(received["judged"]) == 1
    assert received["judged"][0].accuracy == HitAccuracy.PERFECT


def test_misses_are_emitted_from_ticks(wired, fake_cache, fake_clock):
    controller, loop, received = wired
    track = Track(track_id="loop", title="Loop", duration_seconds=5.0)
    fake_cache.entries[track.track_id] = make_beat_map([(1.0, 2)])
    controller.select_track(track)
    loop.pump_once()

    fake_clock.advance(3.0 + 1.5)
    loop.pump_once()

    assert [event.accuracy for event in received["judged"]] == [HitAccuracy.MISS]


def test_finished_session_emits_result(wired, fake_cache):
    controller, loop, received = wired
    track = Track(track_id="loop", title="Loop", duration_seconds=5.0)
    fake_cache.entries[track.track_id] = make_beat_map([(1.0, 2)])
    controller.select_track(track)
    loop.pump_once()

    controller.end_game()
    loop.pump_once()

    assert received["states"][-1] == GameState.FINISHED.value
    assert len(received["finished"]) == 1
    assert received["finished"][0].track_title == "Loop"


def test_load_failure_emits_error(wired):
    controller, loop, received = wired
    controller.select_track(Track(track_id="missing", title="Missing", duration_seconds=5.0))
    loop.pump_once()
    loop.pump_once()

    assert controller.state == GameState.SELECTING
    assert len(received["errors"]) == 1


def test_start_and_stop_timer(wired):
    _, loop, _ = wired
    loop.start()
    assert loop.is_running()
    loop.stop()
    assert not loop.is_running()
