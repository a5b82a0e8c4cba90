"""Audio loading, sample extraction and short-time spectrum analysis.

Spectra are held as ``complex64`` arrays; the staged transform processes them
eight bins at a time through the selected kernel set.
"""

from __future__ import annotations

import math
import wave
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import numpy as np

from .kernels import LANES, Kernels
from .options import Options
from .util import FFT_SIZE, HOP_SIZE

_F32 = np.float32
_C64 = np.complex64


class AudioFormatError(ValueError):
    """Raised when a file cannot be decoded as PCM audio."""


@dataclass
class SoundBuffer:
    """Interleaved signed 16-bit samples with their layout."""

    samples: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int16))
    channel_count: int = 1
    sample_rate: int = 44100

    def __post_init__(self) -> None:
        self.samples = np.asarray(self.samples, dtype=np.int16).ravel()
        if self.channel_count < 1:
            raise ValueError(f"channel count must be positive, got {self.channel_count}")
        if self.sample_rate < 0:
            raise ValueError(f"sample rate must not be negative, got {self.sample_rate}")

    @property
    def sample_count(self) -> int:
        return int(self.samples.size)

    @property
    def duration(self) -> float:
        """Length of the sound in seconds."""
        if self.sample_rate == 0:
            return 0.0
        return self.sample_count / self.channel_count / self.sample_rate


def _frames_to_int16(frames: bytes, width: int) -> np.ndarray:
    if width == 1:
        unsigned = np.frombuffer(frames, dtype=np.uint8).astype(np.int16)
        return ((unsigned - 128) << 8).astype(np.int16)
    if width == 2:
        return np.frombuffer(frames, dtype="<i2").astype(np.int16)
    if width == 3:
        triples = np.frombuffer(frames, dtype=np.uint8).reshape(-1, 3)
        return np.frombuffer(triples[:, 1:3].copy().tobytes(), dtype="<i2").astype(np.int16)
    if width == 4:
        return (np.frombuffer(frames, dtype="<i4") >> 16).astype(np.int16)
    raise AudioFormatError(f"unsupported sample width of {width} bytes")


def load_sound(path) -> SoundBuffer:
    """Read a PCM WAV file into a :class:`SoundBuffer` of 16-bit samples."""
    try:
        with wave.open(str(Path(path)), "rb") as reader:
            channels = reader.getnchannels()
            width = reader.getsampwidth()
            rate = reader.getframerate()
            frames = reader.readframes(reader.getnframes())
    except (wave.Error, EOFError) as exc:
        raise AudioFormatError(f"cannot decode {path}: {exc}") from exc
    return SoundBuffer(_frames_to_int16(frames, width), channels, rate)


def _normalize(raw: np.ndarray) -> np.ndarray:
    as_float = raw.astype(_F32)
    return np.where(raw > 0, as_float / _F32(32767.0), as_float / _F32(32768.0)).astype(_F32)


def _pad_to_fft_size(samples: np.ndarray) -> np.ndarray:
    missing = (-samples.size) % FFT_SIZE
    if not missing:
        return samples.astype(_F32)
    return np.concatenate((samples, np.zeros(missing, dtype=_F32))).astype(_F32)


def _stereo_frames(raw: np.ndarray) -> np.ndarray:
    return raw[: raw.size - raw.size % 2].reshape(-1, 2)


def extract_samples(sound: SoundBuffer, kernels: Kernels) -> np.ndarray:
    """Convert a sound to mono floats in [-1, 1], zero-padded to a multiple of FFT_SIZE.

    Whole blocks go through the kernel set; the remaining tail is mixed with
    division that truncates towards zero.
    """
    raw = sound.samples
    count = raw.size
    if sound.channel_count == 2:
        blocks = count >> 4
        head = kernels.extract_stereo_samples(raw, blocks)
        tail = _stereo_frames(raw[blocks << 4:]).astype(np.int32)
        mixed = np.trunc(tail[:, 0] / 2).astype(np.int32) + np.trunc(tail[:, 1] / 2).astype(np.int32)
        rest = _normalize(mixed.astype(np.int16))
    else:
        blocks = count >> 3
        head = kernels.extract_mono_samples(raw, blocks)
        rest = _normalize(raw[blocks << 3:])
    return _pad_to_fft_size(np.concatenate((np.asarray(head, dtype=_F32), rest)))


def reference_extract_samples(sound: SoundBuffer) -> np.ndarray:
    """Straightforward sample extraction used to check :func:`extract_samples`."""
    raw = sound.samples
    if sound.channel_count == 2:
        frames = _stereo_frames(raw)
        mixed = (frames[:, 0] >> 1) + (frames[:, 1] >> 1)
        samples = _normalize(mixed.astype(np.int16))
    else:
        samples = _normalize(raw)
    return _pad_to_fft_size(samples)


def _analyse(samples, options: Options, chunk: Callable[[np.ndarray], np.ndarray]) -> list[np.ndarray]:
    data = np.asarray(samples, dtype=_F32).ravel()
    if data.size % FFT_SIZE:
        raise ValueError(f"sample count {data.size} is not a multiple of {FFT_SIZE}")
    threads = int(options.threads)
    if threads < 1:
        raise ValueError(f"thread count must be positive, got {threads}")

    frame_count = max(0, (data.size - FFT_SIZE) // HOP_SIZE)
    result: list[np.ndarray] = [np.zeros(0, dtype=_F32)] * frame_count

    def worker(offset: int) -> None:
        for index in range(offset, frame_count, threads):
            start = index * HOP_SIZE
            result[index] = chunk(data[start:start + FFT_SIZE].copy())

    with ThreadPoolExecutor(max_workers=threads) as pool:
        for future in [pool.submit(worker, offset) for offset in range(threads)]:
            future.result()
    return result


def process_samples(samples, options: Options, kernels: Kernels) -> list[np.ndarray]:
    """Return the decibel magnitude spectrum of every hop-spaced frame."""

    def chunk(block: np.ndarray) -> np.ndarray:
        windowed = kernels.hann_window(block)
        spectrum = fft(windowed, kernels)
        return np.asarray(kernels.compute_magnitudes(spectrum[: block.size // 2]), dtype=_F32)

    return _analyse(samples, options, chunk)


def reference_process_samples(samples, options: Options) -> list[np.ndarray]:
    """Straightforward spectrum analysis used to check :func:`process_samples`."""

    def chunk(block: np.ndarray) -> np.ndarray:
        size = block.size
        index = np.arange(size, dtype=_F32)
        angle = _F32(2.0 * math.pi) * index / _F32(size - 1)
        window = _F32(0.5) * (_F32(1.0) - np.cos(angle))
        spectrum = reference_fft((block * window).astype(_F32))
        mags = _F32(2.0) * np.abs(spectrum[: FFT_SIZE // 2]).astype(_F32)
        mags = _F32(20.0) * np.log10(mags + _F32(0.00001))
        return np.maximum(mags, _F32(0.0)).astype(_F32)

    return _analyse(samples, options, chunk)


def _check_block(block) -> tuple[np.ndarray, int]:
    data = np.asarray(block, dtype=_F32).ravel()
    size = data.size
    if size < LANES or size & (size - 1):
        raise ValueError(f"block length must be a power of two of at least {LANES}, got {size}")
    return data, size.bit_length() - 1


def _bit_reversed(size: int, bits: int) -> np.ndarray:
    indices = np.arange(size)
    reversed_indices = np.zeros(size, dtype=np.int64)
    for bit in range(bits):
        reversed_indices |= ((indices >> bit) & 1) << (bits - 1 - bit)
    return reversed_indices


def _twiddle(m: int) -> np.complex64:
    return np.exp(_C64(2j * math.pi / m))


def _powers(base: np.complex64, count: int) -> np.ndarray:
    steps = np.cumprod(np.full(count - 1, base, dtype=_C64))
    return np.concatenate((np.ones(1, dtype=_C64), steps)).astype(_C64)


def _butterfly(out: np.ndarray, m: int) -> None:
    half = m // 2
    twiddles = _powers(_twiddle(m), half)
    groups = out.reshape(-1, m)
    upper = groups[:, :half].copy()
    lower = groups[:, half:] * twiddles
    groups[:, :half] = upper + lower
    groups[:, half:] = upper - lower


def _scatter(data: np.ndarray, bits: int) -> np.ndarray:
    out = np.zeros(data.size, dtype=_C64)
    out[_bit_reversed(data.size, bits)] = data
    return out


def fft(block, kernels: Kernels) -> np.ndarray:
    """Radix-2 transform with twiddles ``exp(+2*pi*i/m)``.

    The first three stages run here; wider stages go through the kernel set's
    ``compute_part_of_fft``. The block length must be a power of two, at least 8.
    """
    data, bits = _check_block(block)
    out = _scatter(data, bits)
    for stage in range(1, 4):
        _butterfly(out, 1 << stage)
    for stage in range(4, bits + 1):
        m = 1 << stage
        lanes = _powers(_twiddle(m), LANES)
        out = kernels.compute_part_of_fft(out, lanes, data.size, m)
    return np.asarray(out, dtype=_C64)


def reference_fft(block) -> np.ndarray:
    """Plain radix-2 transform, the same convention as :func:`fft`."""
    data, bits = _check_block(block)
    out = _scatter(data, bits)
    for stage in range(1, bits + 1):
        _butterfly(out, 1 << stage)
    return out