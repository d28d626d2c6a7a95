# -*- coding: utf-8 -*-
########################
# audio_source.py
########################
# Purpose:
# - Decoder boundary for beat detection.
# - Reads a track into a float PCM buffer and downmixes it to mono.
#
# Design notes:
# - Decoding proper is delegated to soundfile (libsndfile). This module only normalizes shape and errors.
# - Every failure is mapped to DecodeError or PcmBufferError so the controller can abort the session cleanly.
#
########################
# Interfaces:
# Public exceptions:
# - class DecodeError(Exception)
# - class PcmBufferError(BufferError)
#
# Public dataclasses:
# - DecodedAudio(samples: np.ndarray, sample_rate: float)
#   - channel_count -> int
#   - frame_count -> int
#   - duration_seconds -> float
#   - mono() -> np.ndarray
#
# Public classes:
# - class AudioSource(Protocol)
#   - decode(track: Track) -> DecodedAudio
# - class SoundFileAudioSource
#   - decode(track: Track) -> DecodedAudio
#
# Public functions:
# - downmix_to_mono(samples: np.ndarray) -> np.ndarray
# - probe_track(source_path: Path) -> Track
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Protocol

import numpy as np
import soundfile

import gameplay_models


logger = logging.getLogger(__name__)


class DecodeError(Exception):
    """Raised when a track cannot be read or has no usable format information."""


class PcmBufferError(BufferError):
    """Raised when the PCM buffer for a decoded track cannot be allocated."""


def downmix_to_mono(samples: np.ndarray) -> np.ndarray:
    """Average interleaved channels. A 1-D buffer is returned as float32 unchanged."""
    data = np.asarray(samples)
    if data.ndim == 1:
        return data.astype(np.float32, copy=False)
    if data.ndim != 2:
        raise DecodeError(f"Expected a (frames, channels) buffer, got shape {data.shape}")
    if data.shape[1] == 0:
        raise DecodeError("Decoded buffer has no channels")
    return data.mean(axis=1, dtype=np.float64).astype(np.float32)


@dataclass(frozen=True)
class DecodedAudio:
    samples: np.ndarray
    sample_rate: float

    @property
    def channel_count(self) -> int:
        return 1 if self.samples.ndim == 1 else int(self.samples.shape[1])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_seconds(self) -> float:
        if float(self.sample_rate) <= 0.0:
            return 0.0
        return float(self.frame_count) / float(self.sample_rate)

    def mono(self) -> np.ndarray:
        return downmix_to_mono(self.samples)


class AudioSource(Protocol):
    def decode(self, track: gameplay_models.Track) -> DecodedAudio:
        ...


class SoundFileAudioSource:
    """Decode WAV, FLAC, OGG and anything else libsndfile understands."""

    def decode(self, track: gameplay_models.Track) -> DecodedAudio:
        if track.source_path is None:
            raise DecodeError(f"Track {track.track_id!r} has no source path")

        source_path = Path(track.source_path)
        if not source_path.is_file():
            raise DecodeError(f"Audio file not found: {source_path}")

        try:
            samples, sample_rate = soundfile.read(str(source_path), dtype="float32", always_2d=True)
        except MemoryError as exc:
            raise PcmBufferError(f"Could not allocate PCM buffer for {source_path}") from exc
        except (soundfile.LibsndfileError, RuntimeError, TypeError) as exc:
            raise DecodeError(f"Unsupported or unreadable audio file {source_path}: {exc}") from exc

        if not sample_rate or int(sample_rate) <= 0:
            raise DecodeError(f"Missing sample rate in {source_path}")
        if samples.shape[0] == 0:
            raise DecodeError(f"Audio file has no frames: {source_path}")

        logger.debug(
            "Decoded %s: %d frames, %d channels at %d Hz",
            source_path.name,
            samples.shape[0],
            samples.shape[1],
            int(sample_rate),
        )
        return DecodedAudio(samples=samples, sample_rate=float(sample_rate))


def probe_track(source_path: Path) -> gameplay_models.Track:
    """Build a Track for a local file, reading its duration from the file header."""
    resolved_path = Path(source_path).expanduser().resolve()
    if not resolved_path.is_file():
        raise DecodeError(f"Audio file not found: {resolved_path}")

    try:
        info = soundfile.info(str(resolved_path))
    except (soundfile.LibsndfileError, RuntimeError, TypeError) as exc:
        raise DecodeError(f"Unsupported or unreadable audio file {resolved_path}: {exc}") from exc

    return gameplay_models.Track(
        track_id=str(resolved_path),
        title=resolved_path.stem,
        duration_seconds=float(info.duration),
        source_path=resolved_path,
    )
