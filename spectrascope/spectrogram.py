"""Rendering of magnitude frames into a scrolling, chunked spectrogram image."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from PIL import Image

from .audio import SoundBuffer
from .options import ScaleOption
from .util import HOP_SIZE, get_linear_y, get_logarithmic_y, interpolate_color

CHUNK_SIZE = 128

_STOPS = (
    (0, 0, 0),
    (29, 17, 70),
    (80, 18, 123),
    (129, 37, 130),
    (181, 55, 122),
    (229, 80, 100),
    (251, 135, 97),
    (254, 195, 135),
    (252, 252, 190),
)
_STOP_ARRAY = np.array(_STOPS, dtype=np.float64)
_BLACK = (0, 0, 0, 255)


def calculate_color(t: float) -> tuple[int, int, int, int]:
    """Map an intensity in [0, 1] (clamped) to an opaque colour of the palette."""
    t = min(max(float(t), 0.0), 1.0)
    segment = min(int(t * 8.0), 7) if t < 1.0 else 7
    local = (t - segment * 0.125) * 8.0
    return interpolate_color(local, _STOPS[segment], _STOPS[segment + 1])


def _color_array(t: np.ndarray) -> np.ndarray:
    """Vectorised :func:`calculate_color`; returns ``uint8`` RGBA in a trailing axis."""
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    segment = np.minimum(np.floor(t * 8.0), 7).astype(np.intp)
    local = ((t - segment * 0.125) * 8.0)[..., None]
    rgb = _STOP_ARRAY[segment] * (1.0 - local) + _STOP_ARRAY[segment + 1] * local
    out = np.empty(t.shape + (4,), dtype=np.uint8)
    out[..., :3] = rgb.astype(np.uint8)
    out[..., 3] = 255
    return out


@dataclass
class _Chunk:
    image: Image.Image | None = None
    generated: bool = False


class Spectrogram:
    """Turns magnitude frames into image chunks and composes the visible window.

    The playback position sits at the horizontal centre of the viewport.
    Chunks are generated lazily by :meth:`update` and dropped whenever a
    setting that affects their appearance changes.
    """

    def __init__(self, sound: SoundBuffer | None = None) -> None:
        self.sound = sound if sound is not None else SoundBuffer()
        self._magnitudes = np.zeros((0, 0), dtype=np.float32)
        self._chunks: list[_Chunk] = []
        self._offset = 0.0
        self._width = 0
        self._height = 0
        self._max_frequency = 5000
        self._saturation = 1.0
        self._min_db = 0.0
        self._max_db = 0.0
        self._time_scale = 1.0
        self._scale = ScaleOption.LOGARITHMIC
        self._owner_cache: dict[tuple, np.ndarray] = {}

    @property
    def offset(self) -> float:
        return self._offset

    @property
    def time_scale(self) -> float:
        return self._time_scale

    @property
    def viewport_size(self) -> tuple[int, int]:
        return (self._width, self._height)

    @property
    def max_frequency(self) -> int:
        return self._max_frequency

    @property
    def saturation(self) -> float:
        return self._saturation

    @property
    def scale(self) -> ScaleOption:
        return self._scale

    @property
    def min_db(self) -> float:
        return self._min_db

    @property
    def max_db(self) -> float:
        return self._max_db

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def generated_chunks(self) -> list[int]:
        return [i for i, chunk in enumerate(self._chunks) if chunk.generated]

    def set_offset(self, x: float) -> None:
        """Move the view to ``x`` seconds into the sound."""
        self._offset = float(x) * (self.sound.sample_rate / HOP_SIZE) * self._time_scale

    def on_viewport_size_change(self, width: int, height: int) -> None:
        self._width = int(width)
        self._height = int(height)
        self._invalidate_chunks()

    def set_max_frequency(self, x: int) -> None:
        self._max_frequency = int(x)
        self._invalidate_chunks()

    def set_scale(self, option) -> None:
        self._scale = ScaleOption(option)
        self._invalidate_chunks()

    def set_saturation(self, x: float) -> None:
        self._saturation = float(x)
        self._invalidate_chunks()

    def set_time_scale(self, x: float) -> None:
        """Show ``x`` seconds of sound across the viewport width."""
        if x <= 0:
            raise ValueError(f"time scale must be positive, got {x}")
        if self.sound.sample_rate <= 0:
            raise ValueError("time scale needs a sound with a sample rate")
        self._time_scale = (HOP_SIZE * self._width / self.sound.sample_rate) / float(x)
        self._resize_chunks()

    def set_collection(self, collection) -> None:
        """Replace the magnitude frames and recompute the decibel range."""
        frames = [np.asarray(frame, dtype=np.float32).ravel() for frame in collection]
        if not frames or frames[0].size == 0:
            raise ValueError("the magnitude collection must hold at least one value")
        self._magnitudes = np.vstack(frames)
        self._min_db = float(self._magnitudes.min())
        self._max_db = float(self._magnitudes.max())
        self._resize_chunks()

    def update(self, delta_time: float) -> int:
        """Generate the missing chunks around the view; return how many were made."""
        start, end = self._visible_range()
        made = 0
        for index in range(start, end):
            if self._chunks[index].generated:
                continue
            self._generate_chunk(index)
            made += 1
        return made

    def render(self) -> Image.Image:
        """Compose the generated chunks into an RGBA image of the viewport."""
        canvas = Image.new("RGBA", (self._width, self._height), _BLACK)
        start, end = self._visible_range()
        for index in range(start, end):
            chunk = self._chunks[index]
            if not chunk.generated or chunk.image is None:
                continue
            if index * CHUNK_SIZE - self._offset > self._width:
                break
            x = math.floor(index * CHUNK_SIZE - self._offset + self._width / 2.0)
            left = max(0, -x)
            right = min(chunk.image.width, self._width - x)
            height = min(chunk.image.height, self._height)
            if right <= left or height <= 0:
                continue
            canvas.paste(chunk.image.crop((left, 0, right, height)), (x + left, 0))
        return canvas

    def _visible_range(self) -> tuple[int, int]:
        span = math.ceil(self._width / CHUNK_SIZE)
        start = max(0, int(self._offset / CHUNK_SIZE - span))
        end = min(len(self._chunks), int(self._offset / CHUNK_SIZE + span))
        return start, end

    def _invalidate_chunks(self) -> None:
        for chunk in self._chunks:
            chunk.generated = False
            chunk.image = None

    def _resize_chunks(self) -> None:
        count = math.ceil(len(self._magnitudes) / CHUNK_SIZE * self._time_scale)
        self._chunks = [_Chunk() for _ in range(max(count, 0))]

    def _row_owner(self, bins: int) -> np.ndarray:
        """For every row, the frequency bin painted last onto it, or -1."""
        key = (self._height, self._max_frequency, self.sound.sample_rate, self._scale, bins)
        cached = self._owner_cache.get(key)
        if cached is not None:
            return cached
        locate = get_linear_y if self._scale is ScaleOption.LINEAR else get_logarithmic_y
        owner = np.full(self._height, -1, dtype=np.intp)
        rate = self.sound.sample_rate
        for j in range(bins):
            last_y = locate(max(0, j - 1), self._height, self._max_frequency, rate)
            y = locate(j, self._height, self._max_frequency, rate)
            if last_y < 0 and y < 0:
                break
            low, high = sorted((last_y, y))
            low, high = max(low, 0), min(high, self._height - 1)
            if low <= high:
                owner[low:high + 1] = j
        self._owner_cache[key] = owner
        return owner

    def _generate_chunk(self, index: int) -> None:
        pixels = np.zeros((self._height, CHUNK_SIZE, 4), dtype=np.uint8)
        pixels[..., 3] = 255
        frames = self._magnitudes
        if self._height > 0 and frames.size:
            columns = np.arange(CHUNK_SIZE)
            frame_index = ((columns + index * CHUNK_SIZE) / self._time_scale).astype(np.int64)
            valid = frame_index < len(frames)
            columns, frame_index = columns[valid], frame_index[valid]
            owner = self._row_owner(frames.shape[1])
            rows = np.nonzero(owner >= 0)[0]
            if columns.size and rows.size:
                mags = np.clip(frames[frame_index].astype(np.float64), 0.0, 255.0)
                span = self._max_db - self._min_db
                normalized = (mags - self._min_db) / span if span else np.zeros_like(mags)
                colors = _color_array(normalized * self._saturation)
                pixels[np.ix_(rows, columns)] = colors[:, owner[rows]].transpose(1, 0, 2)
        chunk = self._chunks[index]
        chunk.image = Image.fromarray(pixels, "RGBA")
        chunk.generated = True