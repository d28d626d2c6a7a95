# test_tapbeat.py
from __future__ import annotations

import json

import pytest
import soundfile

import config
import paths
import tapbeat
from conftest import make_pulse_train


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    for name in ("TAPBEAT_CONFIG_PATH", "TAPBEAT_CACHE_ENABLED", "TAPBEAT_DEFAULT_DIFFICULTY", "TAPBEAT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TAPBEAT_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setattr(paths, "default_config_candidates", lambda: [])
    config.get_config.cache_clear()
    yield
    config.get_config.cache_clear()


@pytest.fixture
def pulse_wav(tmp_path):
    path = tmp_path / "pulses.wav"
    soundfile.write(str(path), make_pulse_train(), 44100, subtype="FLOAT")
    return path


def _json_output(capsys):
    return json.loads(capsys.readouterr().out)


def test_config_command_prints_json(capsys):
    assert tapbeat.main(["config"]) == 0
    payload = _json_output(capsys)
    assert payload["game"]["lead_in_seconds"] == 3.0


def test_analyze_json(pulse_wav, capsys):
    assert tapbeat.main(["analyze", str(pulse_wav), "--json", "--no-cache"]) == 0
    payload = _json_output(capsys)

    assert payload["ok"] is True
    assert payload["from_cache"] is False
    assert 18 <= payload["beat_count"] <= 20
    assert all(0 <= beat["lane"] <= 3 for beat in payload["beats"])


def test_analyze_uses_cache_on_second_run(pulse_wav, capsys, tmp_path):
    assert tapbeat.main(["analyze", str(pulse_wav), "--json"]) == 0
    first = _json_output(capsys)
    assert tapbeat.main(["analyze", str(pulse_wav), "--json"]) == 0
    second = _json_output(capsys)

    assert first["from_cache"] is False
    assert second["from_cache"] is True
    assert second["beats"] == first["beats"]
    assert any((tmp_path / "cache").iterdir())


def test_analyze_seed_changes_nothing_but_lanes(pulse_wav, capsys):
    assert tapbeat.main(["analyze", str(pulse_wav), "--json", "--seed", "1"]) == 0
    seeded = _json_output(capsys)
    assert tapbeat.main(["analyze", str(pulse_wav), "--json", "--seed", "1"]) == 0
    again = _json_output(capsys)

    assert seeded["beats"] == again["beats"]
    assert seeded["from_cache"] is False


def test_analyze_missing_file_exits_with_error(tmp_path, capsys):
    assert tapbeat.main(["analyze", str(tmp_path / "nope.wav")]) == 2
    payload = _json_output(capsys)
    assert payload["ok"] is False
    assert "nope.wav" in payload["error"]


def test_analyze_text_summary(pulse_wav, capsys):
    assert tapbeat.main(["analyze", str(pulse_wav), "--no-cache"]) == 0
    output = capsys.readouterr().out
    assert "pulses" in output
    assert "source: detection" in output


def test_simulate_auto_player_hits_every_beat(qt_application, monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("TAPBEAT_LEAD_IN_SECONDS", "0")
    config.get_config.cache_clear()
    path = tmp_path / "short.wav"
    soundfile.write(str(path), make_pulse_train(seconds=2.5), 44100, subtype="FLOAT")

    assert tapbeat.main(["simulate", str(path), "--no-cache"]) == 0
    payload = _json_output(capsys)

    assert payload["ok"] is True
    assert payload["total_beats"] == 4
    assert payload["misses"] == 0
    assert payload["perfect_hits"] + payload["good_hits"] == 4
    assert payload["max_combo"] == 4
