# test_beat_detector.py
from __future__ import annotations

import random

import numpy as np
import pytest

import audio_source
import beat_detector
from gameplay_models import Difficulty


def test_silence_has_no_beats():
    detector = beat_detector.BeatDetector()
    beat_map = detector.detect_samples(np.zeros(44100 * 5, dtype=np.float32), 44100.0, random_generator=random.Random(0))

    for difficulty in Difficulty:
        assert beat_map.beats_for(difficulty) == ()


def test_pulse_train_gives_half_second_beats(pulse_train):
    samples, sample_rate = pulse_train
    beat_map = beat_detector.BeatDetector().detect_samples(samples, sample_rate, random_generator=random.Random(0))

    beats = beat_map.beats_for(Difficulty.MEDIUM)
    assert 18 <= len(beats) <= 20

    gaps = np.diff([beat.time_seconds for beat in beats])
    assert np.all(np.abs(gaps - 0.5) <= 0.02)
    assert all(0 <= beat.lane <= 3 for beat in beats)


def test_stereo_input_is_downmixed(pulse_train):
    samples, sample_rate = pulse_train
    stereo = np.stack([samples, samples], axis=1)
    decoded = audio_source.DecodedAudio(samples=stereo, sample_rate=float(sample_rate))

    beat_map = beat_detector.BeatDetector().detect(decoded, random_generator=random.Random(0))
    assert 18 <= beat_map.total_beats() <= 20


def test_same_pcm_and_seed_is_deterministic(pulse_train):
    samples, sample_rate = pulse_train
    detector = beat_detector.BeatDetector()

    first = detector.detect_samples(samples, sample_rate, random_generator=random.Random(42))
    second = detector.detect_samples(samples, sample_rate, random_generator=random.Random(42))
    assert first == second


def test_cancelled_token_stops_detection(pulse_train):
    samples, sample_rate = pulse_train
    token = beat_detector.CancelToken()
    token.cancel()

    with pytest.raises(beat_detector.DetectionCancelled):
        beat_detector.BeatDetector().detect_samples(
            samples, sample_rate, random_generator=random.Random(0), cancel_token=token
        )


def test_cancel_token_state():
    token = beat_detector.CancelToken()
    assert not token.is_cancelled()
    token.raise_if_cancelled()
    token.cancel()
    assert token.is_cancelled()
