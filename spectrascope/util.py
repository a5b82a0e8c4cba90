"""Formatting helpers and frequency-axis geometry shared by the views."""

from __future__ import annotations

import math
from typing import Sequence

FFT_SIZE = 4096
HOP_SIZE = 512

Color = tuple[int, int, int, int]


def _trunc_mod(a: int, b: int) -> int:
    return int(math.fmod(a, b))


def pad_integer_to_string(value: int, padding: int) -> str:
    """Left-pad ``value`` with zeros to ``padding`` digits; negatives become all zeros."""
    if value < 0:
        return "0" * padding
    return str(value).rjust(padding, "0")


def make_time_string(x: float) -> str:
    """Format a number of seconds as ``m:ss`` or, past an hour, ``h:mmss``."""
    hours = int(x / 3600.0)
    minutes = _trunc_mod(int(x / 60.0), 60)
    seconds = _trunc_mod(int(x), 60)
    if hours > 0:
        return f"{hours}:{pad_integer_to_string(minutes, 2)}{pad_integer_to_string(seconds, 2)}"
    return f"{minutes}:{pad_integer_to_string(seconds, 2)}"


def interpolate_color(t: float, c1: Sequence[int], c2: Sequence[int]) -> Color:
    """Blend two RGB colours linearly; the result is opaque RGBA."""
    r1, g1, b1 = c1[:3]
    r2, g2, b2 = c2[:3]
    return (
        int(r1 * (1.0 - t) + r2 * t),
        int(g1 * (1.0 - t) + g2 * t),
        int(b1 * (1.0 - t) + b2 * t),
        255,
    )


def get_linear_y(k: float, height: int, max_frequency: int, sample_rate: int) -> int:
    """Row of FFT bin ``k`` on a linear frequency axis of ``height`` pixels."""
    bin_size = sample_rate / FFT_SIZE
    resolution = height / (max_frequency / bin_size)
    return int(math.floor((height - 1) - k * resolution))


def get_logarithmic_y(k: float, height: int, max_frequency: int, sample_rate: int) -> int:
    """Row of FFT bin ``k`` on a logarithmic frequency axis of ``height`` pixels."""
    bin_size = sample_rate / FFT_SIZE
    half = math.log10(FFT_SIZE / 2.0)
    factor = half / math.log10(max_frequency / bin_size + 1.0)
    return int(math.floor((height - 1) - math.log10(k + 1) / half * height * factor))


def draw_horizontal_line(image, color, x: int, from_y: int, to_y: int) -> None:
    """Paint column ``x`` of a Pillow image between two rows, clipped to the image."""
    low, high = sorted((from_y, to_y))
    height = image.size[1]
    for y in range(max(low, 0), min(high, height - 1) + 1):
        image.putpixel((x, y), color)