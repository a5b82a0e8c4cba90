"""Numeric kernels for sample extraction, windowing, FFT stages and magnitudes.

Two interchangeable kernel sets exist: the scalar-style set and the lane-based
set, which builds on the 8-lane ``compute_cos`` and ``compute_log`` primitives.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .options import LibraryOption

CPP_LIBRARY_ID = 67
LANES = 8

_F32 = np.float32


def compute_cos(values) -> np.ndarray:
    """Single-precision cosine, element-wise."""
    return np.cos(np.asarray(values, dtype=_F32))


def compute_log(values) -> np.ndarray:
    """Single-precision base-10 logarithm, element-wise."""
    return np.log10(np.asarray(values, dtype=_F32))


def _hann(samples, cos: Callable) -> np.ndarray:
    data = np.asarray(samples, dtype=_F32)
    size = data.size
    if size == 0:
        return data.copy()
    index = np.arange(size, dtype=_F32)
    with np.errstate(invalid="ignore", divide="ignore"):
        angle = (_F32(2.0 * math.pi) * index) / _F32(size - 1)
        return (data * (_F32(0.5) * (_F32(1.0) - cos(angle)))).astype(_F32)


def _magnitudes(frequencies, log10: Callable) -> np.ndarray:
    values = np.asarray(frequencies, dtype=np.complex64)
    mag = _F32(2.0) * np.abs(values).astype(_F32) + _F32(0.0001)
    mag = _F32(20.0) * log10(mag)
    return np.maximum(mag, _F32(0.0)).astype(_F32)


def hann_window(samples) -> np.ndarray:
    """Return ``samples`` multiplied by a Hann window of the same length."""
    return _hann(samples, np.cos)


def compute_magnitudes(frequencies) -> np.ndarray:
    """Convert complex bins to non-negative decibel magnitudes."""
    return _magnitudes(frequencies, np.log10)


def compute_part_of_fft(out, w, in_size: int, m: int) -> np.ndarray:
    """Apply one radix-2 butterfly stage of span ``m`` to the first ``in_size`` bins.

    ``w`` holds the eight twiddle factors for positions 0..7 of a span; the
    remaining twiddles are reached by repeated multiplication by ``w[1] ** 8``.
    Returns the transformed copy of ``out``.
    """
    data = np.array(out, dtype=np.complex64)
    lanes = np.asarray(w, dtype=np.complex64)
    if lanes.shape != (LANES,):
        raise ValueError("twiddle factors must hold exactly 8 values")
    if m < 2 * LANES or m % (2 * LANES):
        raise ValueError(f"stage span must be a positive multiple of 16, got {m}")
    if in_size < 0 or in_size % m or in_size > data.size:
        raise ValueError(f"input size {in_size} is not a multiple of {m} within the buffer")

    half = m // 2
    wm = lanes[1]
    wm2 = wm * wm
    wm4 = wm2 * wm2
    step = wm4 * wm4

    twiddles = np.empty(half, dtype=np.complex64)
    current = lanes.copy()
    for start in range(0, half, LANES):
        twiddles[start:start + LANES] = current
        current = current * step

    groups = data[:in_size].reshape(-1, m)
    upper = groups[:, :half].copy()
    lower = groups[:, half:] * twiddles
    groups[:, :half] = upper + lower
    groups[:, half:] = upper - lower
    return data


def _to_unit_float(raw: np.ndarray) -> np.ndarray:
    as_float = raw.astype(_F32)
    return np.where(raw > 0, as_float / _F32(32767.0), as_float / _F32(32768.0)).astype(_F32)


def extract_mono_samples(raw_samples, size: int) -> np.ndarray:
    """Convert ``size`` blocks of eight 16-bit samples to floats in [-1, 1]."""
    raw = np.asarray(raw_samples, dtype=np.int16)
    count = size * LANES
    if size < 0 or raw.size < count:
        raise ValueError(f"need {count} raw samples, got {raw.size}")
    return _to_unit_float(raw[:count])


def extract_stereo_samples(raw_samples, size: int) -> np.ndarray:
    """Mix ``size`` blocks of eight interleaved stereo frames down to mono floats."""
    raw = np.asarray(raw_samples, dtype=np.int16)
    count = size * 2 * LANES
    if size < 0 or raw.size < count:
        raise ValueError(f"need {count} raw samples, got {raw.size}")
    frames = raw[:count].reshape(-1, 2)
    mixed = (frames[:, 0] >> 1) + (frames[:, 1] >> 1)
    return _to_unit_float(mixed.astype(np.int16))


def _lane_hann_window(samples) -> np.ndarray:
    return _hann(samples, compute_cos)


def _lane_compute_magnitudes(frequencies) -> np.ndarray:
    return _magnitudes(frequencies, compute_log)


@dataclass(frozen=True)
class Kernels:
    """One selectable set of processing kernels."""

    option: LibraryOption
    library_id: int | None
    hann_window: Callable[..., np.ndarray]
    compute_magnitudes: Callable[..., np.ndarray]
    compute_part_of_fft: Callable[..., np.ndarray]
    extract_mono_samples: Callable[..., np.ndarray]
    extract_stereo_samples: Callable[..., np.ndarray]


def load_library(option) -> Kernels:
    """Return the kernel set for a library option."""
    option = LibraryOption(option)
    if option is LibraryOption.CPP:
        return Kernels(
            option=option,
            library_id=CPP_LIBRARY_ID,
            hann_window=hann_window,
            compute_magnitudes=compute_magnitudes,
            compute_part_of_fft=compute_part_of_fft,
            extract_mono_samples=extract_mono_samples,
            extract_stereo_samples=extract_stereo_samples,
        )
    return Kernels(
        option=option,
        library_id=None,
        hann_window=_lane_hann_window,
        compute_magnitudes=_lane_compute_magnitudes,
        compute_part_of_fft=compute_part_of_fft,
        extract_mono_samples=extract_mono_samples,
        extract_stereo_samples=extract_stereo_samples,
    )