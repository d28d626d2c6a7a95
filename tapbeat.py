"""
tapbeat.py

Command line entrypoint for tapbeat.

Commands
- analyze PATH    Resolve the beat map for an audio file (cache or detection) and print it
- simulate PATH   Play a full session with an auto player on a silent wall clock transport
- play PATH       Open the lane view and play the track with the keyboard
- config          Print the resolved configuration as JSON

Integration
- Loads config (config.get_config) and configures logging
- Builds the decoder, cache, detector and transport adapters and injects them into the controller
- simulate and play drive the controller through game_loop.GameLoop on a Qt event loop

Exit codes
- 0 on success
- 2 on any error, with {"ok": false, "error": ...} printed as JSON
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import audio_source
import beat_detector
import beat_map_builder
import beat_map_cache
import config
import gameplay_models
import playback_transport
import rhythm_game_controller
from gameplay_models import Difficulty, GameState


logger = logging.getLogger("tapbeat")


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level_name).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _build_cache(app_config: config.AppConfig, *, disabled: bool = False) -> beat_map_cache.BeatMapCache:
    return beat_map_cache.BeatMapCache(
        cache_dir=app_config.cache.resolved_directory(),
        enabled=bool(app_config.cache.enabled) and not disabled,
    )


def _beat_to_dict(beat: gameplay_models.Beat) -> Dict[str, Any]:
    return {
        "time_seconds": round(float(beat.time_seconds), 4),
        "lane": int(beat.lane),
        "intensity": round(float(beat.intensity), 6),
    }


def _result_to_dict(result: gameplay_models.SessionResult) -> Dict[str, Any]:
    return {
        "track_title": result.track_title,
        "difficulty": result.difficulty.value,
        "score": int(result.score),
        "max_combo": int(result.max_combo),
        "perfect_hits": int(result.perfect_hits),
        "good_hits": int(result.good_hits),
        "misses": int(result.misses),
        "total_beats": int(result.total_beats),
        "hit_ratio": round(float(result.hit_ratio), 4),
    }


# -----------------
# analyze
# -----------------

def _run_analyze(parsed_args: argparse.Namespace, app_config: config.AppConfig) -> int:
    track = audio_source.probe_track(Path(parsed_args.path))
    difficulty = Difficulty.parse(parsed_args.difficulty or app_config.game.default_difficulty)

    # A custom seed produces a different lane layout, so it never reads or writes the cache.
    use_cache = not parsed_args.no_cache and parsed_args.seed is None
    cache = _build_cache(app_config, disabled=not use_cache)

    try:
        beat_map = cache.load(track.track_id)
        from_cache = beat_map is not None

        if beat_map is None:
            random_generator = (
                random.Random(int(parsed_args.seed))
                if parsed_args.seed is not None
                else beat_map_builder.rng_for_track(track.track_id)
            )
            detector = beat_detector.BeatDetector(app_config.detector.to_parameters())
            decoded = audio_source.SoundFileAudioSource().decode(track)
            beat_map = detector.detect(decoded, random_generator=random_generator)
            if cache.enabled:
                try:
                    cache.save(track.track_id, beat_map)
                except beat_map_cache.CacheIOError as exception:
                    logger.warning("Could not write beat map cache: %s", exception)
    finally:
        cache.close()

    beats = beat_map.beats_for(difficulty)

    if parsed_args.json:
        _print_json(
            {
                "ok": True,
                "track": track.title,
                "duration_seconds": round(float(track.duration_seconds), 3),
                "difficulty": difficulty.value,
                "from_cache": bool(from_cache),
                "beat_count": len(beats),
                "beats": [_beat_to_dict(beat) for beat in beats],
            }
        )
        return 0

    print(f"{track.title}: {len(beats)} beats ({difficulty.value}) over {track.duration_seconds:.1f}s")
    print(f"source: {'cache' if from_cache else 'detection'}")
    for beat in beats[:10]:
        print(f"  {beat.time_seconds:8.3f}s  lane {beat.lane}  intensity {beat.intensity:.4f}")
    if len(beats) > 10:
        print(f"  ... {len(beats) - 10} more")
    return 0


# -----------------
# simulate
# -----------------

class _AutoPlayer:
    """Taps every tile at beat time plus a fixed offset."""

    def __init__(self, controller: rhythm_game_controller.RhythmGameController, offset_seconds: float) -> None:
        self._controller = controller
        self._offset_seconds = float(offset_seconds)
        self._attempted: Set[int] = set()

    def on_tick(self) -> None:
        if self._controller.state != GameState.PLAYING:
            return
        elapsed = self._controller.elapsed_seconds()
        for tile in self._controller.active_tiles():
            if tile.is_judged or id(tile) in self._attempted:
                continue
            if elapsed >= float(tile.beat.time_seconds) + self._offset_seconds:
                self._attempted.add(id(tile))
                self._controller.tap_lane(tile.lane)

    def reset(self) -> None:
        self._attempted.clear()


def _run_simulate(parsed_args: argparse.Namespace, app_config: config.AppConfig) -> int:
    from PyQt6.QtCore import QCoreApplication

    import game_loop

    track = audio_source.probe_track(Path(parsed_args.path))
    difficulty = Difficulty.parse(parsed_args.difficulty or app_config.game.default_difficulty)

    application = QCoreApplication.instance() or QCoreApplication(sys.argv[:1] or ["tapbeat"])
    cache = _build_cache(app_config, disabled=bool(parsed_args.no_cache))
    controller = rhythm_game_controller.RhythmGameController(
        audio_source_obj=audio_source.SoundFileAudioSource(),
        transport=playback_transport.WallClockTransport(),
        cache=cache,
        detector=beat_detector.BeatDetector(app_config.detector.to_parameters()),
        settings=app_config.game.to_settings(),
    )
    loop = game_loop.GameLoop(controller, tick_hz=int(app_config.game.tick_hz))
    auto_player = _AutoPlayer(controller, float(parsed_args.accuracy_offset))

    def on_state_changed(state_value: str) -> None:
        if state_value in (GameState.FINISHED.value, GameState.SELECTING.value):
            application.quit()

    loop.ticked.connect(auto_player.on_tick)
    loop.stateChanged.connect(on_state_changed)

    controller.select_track(track, difficulty)
    loop.start()
    try:
        application.exec()
    finally:
        loop.stop()

    result = controller.session_result()
    error_text = controller.last_error_text
    controller.close()
    cache.close()

    if controller.state == GameState.SELECTING or result is None:
        _print_json({"ok": False, "error": error_text or "Session did not start"})
        return 2

    payload: Dict[str, Any] = {"ok": True}
    payload.update(_result_to_dict(result))
    _print_json(payload)
    return 0


# -----------------
# play
# -----------------

def _route_status_text(view, loop, transport) -> None:
    """Show controller and media player errors on the view; a fresh start clears them."""
    loop.errorRaised.connect(view.set_status_text)
    transport.errorOccurred.connect(view.set_status_text)

    def on_state_changed(state_value: str) -> None:
        if state_value == GameState.PLAYING.value:
            view.set_status_text("")

    loop.stateChanged.connect(on_state_changed)


def _run_play(parsed_args: argparse.Namespace, app_config: config.AppConfig) -> int:
    from PyQt6.QtWidgets import QApplication

    import game_loop
    import input_router
    import lane_view
    import media_transport

    track = audio_source.probe_track(Path(parsed_args.path))
    difficulty = Difficulty.parse(parsed_args.difficulty or app_config.game.default_difficulty)

    application = QApplication(sys.argv[:1] or ["tapbeat"])
    cache = _build_cache(app_config)
    transport = media_transport.MediaPlayerTransport()
    controller = rhythm_game_controller.RhythmGameController(
        audio_source_obj=audio_source.SoundFileAudioSource(),
        transport=transport,
        cache=cache,
        detector=beat_detector.BeatDetector(app_config.detector.to_parameters()),
        settings=app_config.game.to_settings(),
    )
    loop = game_loop.GameLoop(controller, tick_hz=int(app_config.game.tick_hz))
    router = input_router.InputRouter()
    view = lane_view.LaneView(controller, router)
    view.setWindowTitle(f"tapbeat - {track.title}")

    def on_command(command_value: str) -> None:
        command = input_router.SessionCommand(command_value)
        if command == input_router.SessionCommand.TOGGLE_PAUSE:
            if controller.state == GameState.PLAYING:
                controller.pause()
            elif controller.state == GameState.PAUSED:
                controller.resume()
        elif command == input_router.SessionCommand.RETRY:
            controller.retry()
        elif command == input_router.SessionCommand.EXIT:
            view.close()

    router.lanePressed.connect(loop.on_lane_pressed)
    router.commandRequested.connect(on_command)
    loop.ticked.connect(view.update)
    _route_status_text(view, loop, transport)

    view.resize(480, 720)
    view.show()

    controller.select_track(track, difficulty)
    loop.start()
    try:
        exit_code = int(application.exec())
    finally:
        loop.stop()
        controller.close()
        cache.close()

    result = controller.session_result()
    if result is not None:
        _print_json({"ok": True, **_result_to_dict(result)})
    return exit_code


# -----------------
# main
# -----------------

def _build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(prog="tapbeat", description="Beat detection and tap rhythm game")
    argument_parser.add_argument("--log-level", default=None, help="Override the configured log level.")
    subparsers = argument_parser.add_subparsers(dest="command", required=True)

    difficulty_choices = [difficulty.value for difficulty in Difficulty]

    analyze_parser = subparsers.add_parser("analyze", help="Print the beat map for an audio file.")
    analyze_parser.add_argument("path", help="Audio file (wav, flac, ogg, ...).")
    analyze_parser.add_argument("--difficulty", choices=difficulty_choices, default=None)
    analyze_parser.add_argument("--seed", type=int, default=None, help="Lane RNG seed. Bypasses the cache.")
    analyze_parser.add_argument("--no-cache", action="store_true", help="Always run detection.")
    analyze_parser.add_argument("--json", action="store_true", help="Print the full beat list as JSON.")

    simulate_parser = subparsers.add_parser("simulate", help="Play a session with an auto player.")
    simulate_parser.add_argument("path", help="Audio file (wav, flac, ogg, ...).")
    simulate_parser.add_argument("--difficulty", choices=difficulty_choices, default=None)
    simulate_parser.add_argument(
        "--accuracy-offset",
        type=float,
        default=0.0,
        help="Seconds added to each beat time before the auto player taps.",
    )
    simulate_parser.add_argument("--no-cache", action="store_true", help="Always run detection.")

    play_parser = subparsers.add_parser("play", help="Play a track with the keyboard.")
    play_parser.add_argument("path", help="Audio file (wav, flac, ogg, ...).")
    play_parser.add_argument("--difficulty", choices=difficulty_choices, default=None)

    subparsers.add_parser("config", help="Print the resolved configuration as JSON.")
    return argument_parser


def main(argv: Optional[List[str]] = None) -> int:
    parsed_args = _build_argument_parser().parse_args(argv)

    try:
        app_config, config_path = config.get_config()
    except (OSError, ValueError) as exception:
        _print_json({"ok": False, "error": str(exception)})
        return 2

    _configure_logging(parsed_args.log_level or app_config.logging.level)
    logger.debug("Config source: %s", config_path or "(defaults)")

    try:
        if parsed_args.command == "analyze":
            return _run_analyze(parsed_args, app_config)
        if parsed_args.command == "simulate":
            return _run_simulate(parsed_args, app_config)
        if parsed_args.command == "play":
            return _run_play(parsed_args, app_config)
        if parsed_args.command == "config":
            print(config.to_json(app_config))
            return 0
    except (audio_source.DecodeError, audio_source.PcmBufferError) as exception:
        _print_json({"ok": False, "error": str(exception)})
        return 2
    except (OSError, ValueError) as exception:
        _print_json({"ok": False, "error": str(exception)})
        return 2

    _print_json({"ok": False, "error": f"Unknown command: {parsed_args.command}"})
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
