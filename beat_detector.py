# -*- coding: utf-8 -*-
########################
# beat_detector.py
########################
# Purpose:
# - Full detection pipeline: mono downmix -> transient emphasis -> energy framing -> peak picking
#   -> spacing filter, lane assignment and difficulty population.
#
# Design notes:
# - CPU bound. Called from a background worker, never from the game loop timeline.
# - Cooperative cancellation: the CancelToken is checked between stages and a superseded run raises
#   DetectionCancelled instead of returning a beat map.
# - Beat times and intensities are fully deterministic. Lanes depend only on the injected random.Random.
#
########################
# Interfaces:
# Public exceptions:
# - class DetectionCancelled(Exception)
#
# Public classes:
# - class CancelToken
#   - cancel() -> None
#   - is_cancelled() -> bool
#   - raise_if_cancelled() -> None
# - class BeatDetector
#   - __init__(parameters: DetectorParameters = DEFAULT_PARAMETERS)
#   - detect_samples(samples, sample_rate, *, random_generator, cancel_token=None) -> BeatMap
#   - detect(decoded: DecodedAudio, *, random_generator, cancel_token=None) -> BeatMap
#
########################

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Optional

import numpy as np

import audio_source
import beat_map_builder
import gameplay_models
import onset_dsp


logger = logging.getLogger(__name__)


class DetectionCancelled(Exception):
    """Raised inside a worker when its detection run has been superseded."""


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DetectionCancelled("Beat detection was cancelled")


class BeatDetector:
    def __init__(self, parameters: onset_dsp.DetectorParameters = onset_dsp.DEFAULT_PARAMETERS) -> None:
        self._parameters = parameters

    @property
    def parameters(self) -> onset_dsp.DetectorParameters:
        return self._parameters

    def detect(
        self,
        decoded: audio_source.DecodedAudio,
        *,
        random_generator: random.Random,
        cancel_token: Optional[CancelToken] = None,
    ) -> gameplay_models.BeatMap:
        return self.detect_samples(
            decoded.mono(),
            decoded.sample_rate,
            random_generator=random_generator,
            cancel_token=cancel_token,
        )

    def detect_samples(
        self,
        samples: np.ndarray,
        sample_rate: float,
        *,
        random_generator: random.Random,
        cancel_token: Optional[CancelToken] = None,
    ) -> gameplay_models.BeatMap:
        token = cancel_token if cancel_token is not None else CancelToken()
        parameters = self._parameters
        started_at = time.perf_counter()

        mono = audio_source.downmix_to_mono(samples)
        token.raise_if_cancelled()

        emphasized = onset_dsp.emphasize_transients(mono, sample_rate, parameters=parameters)
        token.raise_if_cancelled()

        energies = onset_dsp.frame_energies(emphasized, sample_rate, parameters=parameters)
        token.raise_if_cancelled()

        raw_beats = onset_dsp.pick_peaks(energies, parameters=parameters)
        token.raise_if_cancelled()

        beat_map = beat_map_builder.build_beat_map(
            raw_beats,
            random_generator=random_generator,
            min_interval_seconds=parameters.min_beat_interval_seconds,
        )

        logger.debug(
            "Detected %d beats (%d raw candidates, %d blocks) in %.3fs",
            beat_map.total_beats(),
            len(raw_beats),
            int(energies.size),
            time.perf_counter() - started_at,
        )
        return beat_map
