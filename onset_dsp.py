# -*- coding: utf-8 -*-
########################
# onset_dsp.py
########################
# Purpose:
# - Signal stages of beat detection: transient emphasis, block energy framing and adaptive peak picking.
# - Turns a mono PCM buffer into raw beat candidates (lane 0 placeholder).
#
# Design notes:
# - No Qt usage. numpy and scipy only.
# - Batch analysis of a complete buffer. Nothing here keeps state between calls.
# - Constants are tuned for kick-heavy pop and rock. They are not adaptive to genre.
#
########################
# Interfaces:
# Public dataclasses:
# - DetectorParameters(low_pass_cutoff_hz, low_weight, high_weight, block_seconds, window_blocks,
#                      threshold_multiplier, min_energy, min_beat_interval_seconds)
#
# Public functions:
# - emphasize_transients(samples: np.ndarray, sample_rate: float, *, parameters) -> np.ndarray
# - frame_energies(emphasized: np.ndarray, sample_rate: float, *, parameters) -> np.ndarray
# - pick_peaks(energies: np.ndarray, *, parameters) -> list[Beat]
#
# Inputs:
# - Mono float samples in [-1, 1] and the sample rate in Hz.
#
# Outputs:
# - Emphasized signal, per-block energies, raw Beat candidates for beat_map_builder.
#
########################
# Unit Tests:
# python onset_dsp.py
########################

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import List

import numpy as np
from scipy.signal import lfilter

import gameplay_models


@dataclass(frozen=True)
class DetectorParameters:
    low_pass_cutoff_hz: float = 150.0
    low_weight: float = 1.2
    high_weight: float = 0.8
    block_seconds: float = 0.02
    window_blocks: int = 8
    threshold_multiplier: float = 1.3
    min_energy: float = 0.05
    min_beat_interval_seconds: float = gameplay_models.MIN_BEAT_INTERVAL_SECONDS

    def block_size(self, sample_rate: float) -> int:
        return int(round(float(sample_rate) * float(self.block_seconds)))


DEFAULT_PARAMETERS = DetectorParameters()


def _low_pass_alpha(sample_rate: float, cutoff_hz: float) -> float:
    dt = 1.0 / float(sample_rate)
    rc = 1.0 / (2.0 * math.pi * float(cutoff_hz))
    return dt / (rc + dt)


def emphasize_transients(
    samples: np.ndarray,
    sample_rate: float,
    *,
    parameters: DetectorParameters = DEFAULT_PARAMETERS,
) -> np.ndarray:
    """Weight low band (kick) content above broadband (snare) content.

    lowpass[n] = lowpass[n-1] + alpha * (x[n] - lowpass[n-1]), starting from zero.
    The output is |lowpass| * low_weight + |x - lowpass| * high_weight.
    """
    if float(sample_rate) <= 0.0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate!r}")

    signal = np.asarray(samples, dtype=np.float64).reshape(-1)
    if signal.size == 0:
        return np.zeros(0, dtype=np.float64)

    alpha = _low_pass_alpha(sample_rate, parameters.low_pass_cutoff_hz)
    # One pole recursion: y[n] = alpha * x[n] + (1 - alpha) * y[n-1]
    low_band = lfilter([alpha], [1.0, -(1.0 - alpha)], signal)
    high_band = signal - low_band

    return np.abs(low_band) * float(parameters.low_weight) + np.abs(high_band) * float(parameters.high_weight)


def frame_energies(
    emphasized: np.ndarray,
    sample_rate: float,
    *,
    parameters: DetectorParameters = DEFAULT_PARAMETERS,
) -> np.ndarray:
    """Mean of each full block. A trailing partial block is dropped."""
    block_size = parameters.block_size(sample_rate)
    if block_size <= 0:
        raise ValueError(f"block size must be positive (sample_rate={sample_rate!r})")

    signal = np.asarray(emphasized, dtype=np.float64).reshape(-1)
    block_count = signal.size // block_size
    if block_count == 0:
        return np.zeros(0, dtype=np.float64)

    blocks = signal[: block_count * block_size].reshape(block_count, block_size)
    return blocks.mean(axis=1)


def pick_peaks(
    energies: np.ndarray,
    *,
    parameters: DetectorParameters = DEFAULT_PARAMETERS,
) -> List[gameplay_models.Beat]:
    values = np.asarray(energies, dtype=np.float64).reshape(-1)
    window = int(parameters.window_blocks)
    count = int(values.size)

    if window <= 0 or count < (2 * window) + 1:
        return []

    # Running sums give the mean of [i - window, i + window) for every index in O(n).
    cumulative = np.concatenate(([0.0], np.cumsum(values)))
    indices = np.arange(window, count - window)
    local_sums = cumulative[indices + window] - cumulative[indices - window]
    local_averages = local_sums / float(2 * window)

    current = values[indices]
    above_average = current > local_averages * float(parameters.threshold_multiplier)
    above_floor = current > float(parameters.min_energy)
    local_maximum = (current >= values[indices - 1]) & (current >= values[indices + 1])

    accepted = indices[above_average & above_floor & local_maximum]

    block_seconds = float(parameters.block_seconds)
    return [
        gameplay_models.Beat(
            time_seconds=float(index) * block_seconds,
            lane=0,
            intensity=float(values[index]),
        )
        for index in accepted
    ]


def _run_unit_tests() -> None:
    silence = np.zeros(44100, dtype=np.float32)
    emphasized = emphasize_transients(silence, 44100.0)
    assert emphasized.shape == silence.shape
    assert float(emphasized.max()) == 0.0

    energies = frame_energies(np.ones(882 * 3 + 100), 44100.0)
    assert energies.shape == (3,)
    assert np.allclose(energies, 1.0)

    spike = np.zeros(40)
    spike[20] = 1.0
    peaks = pick_peaks(spike)
    assert [round(beat.time_seconds, 6) for beat in peaks] == [0.4]
    assert peaks[0].lane == 0
    assert peaks[0].intensity == 1.0

    assert pick_peaks(np.ones(16)) == []


if __name__ == "__main__":
    _run_unit_tests()
    print("onset_dsp.py: ok")
