"""Headless application model: playback, option handling, analysis and rendering."""

from __future__ import annotations

import argparse
import math
import os
import subprocess
import sys
import time
from enum import Enum
from pathlib import Path
from typing import Callable

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .audio import (
    AudioFormatError,
    SoundBuffer,
    extract_samples,
    load_sound,
    process_samples,
    reference_extract_samples,
    reference_process_samples,
)
from .console import Console
from .kernels import load_library
from .options import LibraryOption, OptionChangeEvent, Options, ScaleOption
from .options_view import OptionsView
from .smoothing import SmoothReal
from .spectrogram import Spectrogram
from .tester import Tester
from .util import FFT_SIZE, HOP_SIZE, get_linear_y, get_logarithmic_y, make_time_string

_WHITE = (255, 255, 255, 255)
_RED = (255, 0, 0, 255)
_GRAY = (150, 150, 150, 255)
_BLACK = (0, 0, 0, 255)

_LOG_LABELS = (100.0, 500.0, 1000.0, 2000.0, 5000.0, 10000.0, 15000.0)


class _Status(Enum):
    STOPPED = "stopped"
    PAUSED = "paused"
    PLAYING = "playing"


class _Player:
    """Simulated playback position of the loaded sound."""

    def __init__(self, duration: float = 0.0, volume: float = 100.0) -> None:
        self.duration = duration
        self.volume = volume
        self.status = _Status.STOPPED
        self.offset = 0.0

    def play(self) -> None:
        if self.duration > 0:
            self.status = _Status.PLAYING

    def pause(self) -> None:
        if self.status is _Status.PLAYING:
            self.status = _Status.PAUSED

    def stop(self) -> None:
        self.status = _Status.STOPPED
        self.offset = 0.0

    def advance(self, delta_time: float) -> None:
        if self.status is not _Status.PLAYING:
            return
        self.offset += delta_time
        if self.offset >= self.duration:
            self.stop()


def _round_half_away(x: float) -> float:
    return math.copysign(math.floor(abs(x) + 0.5), x)


def _seconds_label(seconds: float) -> str:
    return f"{_round_half_away(seconds * 100.0) / 100.0:g}s"


def _open_in_file_manager(path: Path) -> None:
    if sys.platform == "win32":
        os.startfile(str(path))  # type: ignore[attr-defined]
    elif sys.platform == "darwin":
        subprocess.Popen(["open", str(path)])
    else:
        subprocess.Popen(["xdg-open", str(path)])


class App:
    """Ties together options, playback, analysis, benchmarking and rendering.

    Each call to :meth:`update` advances playback and processes pending option
    changes; :meth:`render` draws the viewport with its axis overlays.
    """

    def __init__(
        self,
        options: Options | None = None,
        *,
        viewport_size: tuple[int, int] = (1280, 720),
        console: Console | None = None,
        tests_dir="tests",
        opener: Callable[[Path], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        verify: bool = False,
    ) -> None:
        self.console = console if console is not None else Console()
        if options is None:
            options = Options(
                threads=os.cpu_count() or 1,
                library=LibraryOption.ASSEMBLY,
                paused=True,
            )
        self.options = options
        self.options_view = OptionsView(options, clock=clock)
        self.sound = SoundBuffer()
        self.spectrogram = Spectrogram(self.sound)
        self.tests_dir = Path(tests_dir)
        self.tester = Tester(self.sound, tests_dir=self.tests_dir)
        self.cursor: tuple[int, int] | None = None
        self.verify = verify

        self._clock = clock
        self._opener = opener if opener is not None else _open_in_file_manager
        self._player = _Player()
        self._offset = 0.0
        self._stop_once = False
        self._smooth_offset = SmoothReal()
        self._smooth_decay = SmoothReal()
        self._font = None

        self.kernels = load_library(options.library)
        self._log_library("asm" if options.library is LibraryOption.ASSEMBLY else "C++")

        self._width = 0
        self._height = 0
        self.viewport_size = viewport_size

    @property
    def viewport_size(self) -> tuple[int, int]:
        return (self._width, self._height)

    @viewport_size.setter
    def viewport_size(self, size: tuple[int, int]) -> None:
        width, height = (int(v) for v in size)
        if width < 0 or height < 0:
            raise ValueError(f"viewport size must not be negative, got {size}")
        self._width, self._height = width, height
        self.spectrogram.on_viewport_size_change(width, height)

    @property
    def offset(self) -> float:
        """Playback position in seconds."""
        return self._offset

    @offset.setter
    def offset(self, seconds: float) -> None:
        self._offset = float(seconds)
        self._player.offset = self._offset
        self._smooth_offset.target = self._offset
        self._smooth_offset.finish()

    @property
    def smooth_offset(self) -> float:
        return float(self._smooth_offset)

    @property
    def is_playing(self) -> bool:
        return self._player.status is _Status.PLAYING

    @property
    def volume(self) -> float:
        return self._player.volume

    def time_label(self) -> str:
        """Return ``position / duration`` as shown next to the controls."""
        return f"{make_time_string(self._offset)} / {make_time_string(self.sound.duration)}"

    def _has_sound(self) -> bool:
        return int(self.sound.duration * 1000) > 0

    def _log_library(self, name: str) -> None:
        library_id = self.kernels.library_id
        suffix = f" ({library_id})" if library_id is not None else ""
        self.console.log(f"Loaded {name} library{suffix}")

    def reload_audio(self) -> bool:
        """Load and analyse the file named by the options; return whether it loaded."""
        if not self.options.file_path:
            return False
        self.offset = 0.0
        self.options.paused = True
        self.options_view.refresh_internal_state()

        self.spectrogram.set_max_frequency(self.options.high_frequency)
        self.spectrogram.set_scale(self.options.scale)

        self._player.stop()
        started = self._clock()
        path = Path(self.options.file_path)
        try:
            sound = load_sound(path)
        except (AudioFormatError, OSError):
            self._set_sound(SoundBuffer())
            self._player = _Player()
            self.console.log("Invalid file. Supported formats: .wav")
            return False
        self._set_sound(sound)
        self._player = _Player(sound.duration, self.options.volume)
        loading_ms = (self._clock() - started) * 1000.0

        started = self._clock()
        samples = extract_samples(sound, self.kernels)
        collection = process_samples(samples, self.options, self.kernels)
        processing_ms = (self._clock() - started) * 1000.0
        library = "C++" if self.options.library is LibraryOption.CPP else "asm"
        self.console.log(
            f'Loaded "{path.name}" in {loading_ms:f}ms. Processed in {processing_ms:f}ms. '
            f"(Library: {library}; threads: {self.options.threads})"
        )
        if not collection:
            self.console.log("The file is too short to analyse")
            self._reset_spectrogram()
            return True
        self.spectrogram.set_collection(collection)

        if self.verify:
            reference = reference_process_samples(reference_extract_samples(sound), self.options)
            passed = len(reference) == len(collection) and all(
                np.allclose(mine, theirs, rtol=0.0, atol=0.01)
                for mine, theirs in zip(collection, reference)
            )
            self.console.log("Passed test" if passed else "Failed test")
        return True

    def _set_sound(self, sound: SoundBuffer) -> None:
        self.sound = sound
        self.spectrogram.sound = sound
        self.tester.sound = sound

    def _reset_spectrogram(self) -> None:
        self.spectrogram = Spectrogram(self.sound)
        self.spectrogram.on_viewport_size_change(self._width, self._height)
        self.spectrogram.set_max_frequency(self.options.high_frequency)
        self.spectrogram.set_scale(self.options.scale)

    def _handle(self, event: OptionChangeEvent) -> None:
        if event is OptionChangeEvent.HIGH_FREQUENCY:
            self.spectrogram.set_max_frequency(self.options.high_frequency)
        elif event is OptionChangeEvent.LIBRARY:
            self.kernels = load_library(self.options.library)
            self._log_library("assembly" if self.options.library is LibraryOption.ASSEMBLY else "C++")
        elif event is OptionChangeEvent.PAUSE:
            if self.options.paused:
                self._player.pause()
            else:
                self._player.offset = self._offset
                self._player.play()
        elif event is OptionChangeEvent.SCALE:
            self.spectrogram.set_scale(self.options.scale)
        elif event is OptionChangeEvent.FILE:
            self.reload_audio()
        elif event is OptionChangeEvent.STRENGTH:
            self.spectrogram.set_saturation(self.options.saturation)
        elif event is OptionChangeEvent.TIME_SCALE:
            self.spectrogram.set_time_scale(self.options.time_scale)
        elif event is OptionChangeEvent.VOLUME:
            self._player.volume = self.options.volume
        elif event is OptionChangeEvent.BEGIN_TEST:
            self.tester.begin_test()
        elif event is OptionChangeEvent.OPEN_TESTS_DIRECTORY:
            self.open_tests_directory()

    def update(self, delta_time: float) -> None:
        """Advance playback, apply option changes and refresh the spectrogram."""
        self._player.advance(delta_time)
        self.options_view.update()
        self.tester.update(self.console)

        if not self.tester.is_testing:
            for event in self.options_view.poll_changes():
                self._handle(event)

        if self._has_sound():
            if self._player.status is not _Status.STOPPED:
                self._offset = self._player.offset
                self._stop_once = True
            elif self._stop_once:
                self._stop_once = False
                self.options.paused = True
                self.options_view.refresh_internal_state()

        self._smooth_decay.decay = 10.0
        self._smooth_decay.update(delta_time)
        self._smooth_decay.target = 100.0 if self.is_playing else 20.0
        self._smooth_offset.decay = float(self._smooth_decay)

        self._smooth_offset.target = self._offset
        self._smooth_offset.update(delta_time)

        self.spectrogram.set_offset(float(self._smooth_offset))
        self.spectrogram.update(delta_time)

    def seek(self, delta_pixels: float) -> float:
        """Drag the view by ``delta_pixels``; dragging left moves forward in time.

        Playback pauses during the drag and resumes afterwards if it was running.
        Returns the new position in seconds.
        """
        if not self._has_sound():
            return self._offset
        was_paused = self._player.status is _Status.PAUSED
        self._player.pause()

        shift = (
            delta_pixels * HOP_SIZE * self._width / self.sound.sample_rate
            * self.options.time_scale / 10000.0
        )
        upper = self.sound.duration - 0.01
        self._offset = max(min(self._offset - shift, upper), 0.0)
        self._player.offset = self._offset

        if not was_paused and self._player.status is not _Status.STOPPED:
            self.options.paused = False
            self._player.play()
            self._player.offset = self._offset
        else:
            self.options.paused = True
        self.options_view.refresh_internal_state()
        return self._offset

    def toggle_pause(self) -> None:
        """Start playback from the current position, or pause it."""
        if not self._has_sound():
            return
        if self._player.status is not _Status.PLAYING:
            self.options.paused = False
            self._player.play()
            self._player.offset = self._offset
        else:
            self._player.pause()
            self.options.paused = True
        self.options_view.refresh_internal_state()

    def open_tests_directory(self) -> bool:
        """Open the benchmark results directory in the file manager."""
        if self.tests_dir.is_dir():
            self._opener(self.tests_dir.resolve())
            return True
        self.console.log(f"Directory {self.tests_dir.as_posix()} does not exists")
        return False

    def render(self) -> Image.Image:
        """Draw the spectrogram with its time and frequency overlays."""
        image = self.spectrogram.render()
        if self._has_sound() and self._width > 0 and self._height > 0:
            draw = ImageDraw.Draw(image)
            if self.options.show_cross and self.cursor is not None:
                self._draw_cross(draw)
            self._draw_frequency_labels(draw)
            self._draw_time_lines(draw)
        return image

    def _text(self, draw, text: str, x: float, y: float, origin: tuple[float, float], fill) -> None:
        if self._font is None:
            self._font = ImageFont.load_default()
        left, top, right, bottom = draw.textbbox((0, 0), text, font=self._font, stroke_width=1)
        width, height = right - left, bottom - top
        draw.text(
            (x - math.floor(width * origin[0]), y - math.floor(height * origin[1])),
            text,
            font=self._font,
            fill=fill,
            stroke_width=1,
            stroke_fill=_BLACK,
        )

    def _text_size(self, draw, text: str) -> tuple[int, int]:
        if self._font is None:
            self._font = ImageFont.load_default()
        left, top, right, bottom = draw.textbbox((0, 0), text, font=self._font, stroke_width=1)
        return right - left, bottom - top

    def _seconds_per_pixel(self) -> float:
        rate = self.sound.sample_rate
        time_scale = (HOP_SIZE * self._width / rate) / self.options.time_scale
        return HOP_SIZE / (time_scale * rate)

    def _draw_cross(self, draw) -> None:
        mx, my = self.cursor
        width, height = self._width, self._height
        if not (0 <= mx < width and 0 <= my < height):
            return
        draw.line([(mx, 0), (mx, height)], fill=_GRAY)
        draw.line([(0, my), (width, my)], fill=_GRAY)

        seconds = float(self._smooth_offset) + self._seconds_per_pixel() * (mx - width * 0.5)
        bin_size = self.sound.sample_rate / FFT_SIZE
        high = self.options.high_frequency
        if self.options.scale is ScaleOption.LOGARITHMIC:
            half = math.log10(FFT_SIZE / 2.0)
            factor = half / math.log10(high / bin_size + 1.0)
            k = 10.0 ** (((height - 1 - my) / (height * factor)) * half) - 1.0
        else:
            resolution = height / (high / bin_size)
            k = (height - 1 - my) / resolution
        label = f"{_seconds_label(seconds)}, {_round_half_away(k * bin_size):g}Hz"
        self._text(draw, label, mx + 2.0, my - 2.0, (0.0, 1.0), _WHITE)

    def _draw_frequency_labels(self, draw) -> None:
        rate = self.sound.sample_rate
        high = self.options.high_frequency
        logarithmic = self.options.scale is ScaleOption.LOGARITHMIC
        for i, base in enumerate(_LOG_LABELS):
            if logarithmic:
                freq = base * high / 20000.0
                locate = get_logarithmic_y
            else:
                freq = (1000.0 + i * (20000.0 - 2000.0) / 6.0) * high / 20000.0
                locate = get_linear_y
            bin_index = freq * FFT_SIZE / rate
            y = math.floor(locate(bin_index, self._height, high, rate))
            self._draw_label(draw, float(self._width), y, freq)

    def _draw_label(self, draw, x: float, y: int, freq: float) -> None:
        if y + 5.0 > self._height:
            return
        text = f"{math.ceil(freq)}Hz"
        text_width, _ = self._text_size(draw, text)
        if self.options.show_grid:
            end = x - text_width * 0.7 - 26.0
            if end >= 0:
                draw.line([(0, y), (end, y)], fill=_WHITE)
            origin = (0.7, 0.6)
        else:
            draw.rectangle([x - 16.0, y - 1, x - 5.0, y + 1], fill=_BLACK)
            draw.line([(x - 15.0, y), (x - 6.0, y)], fill=_WHITE)
            origin = (1.0, 0.7)
        self._text(draw, text, x - 20.0, y, origin, _WHITE)

    def _draw_time_lines(self, draw) -> None:
        width, height = self._width, self._height
        per_pixel = self._seconds_per_pixel()
        iterations = int((width - 150.0) / 200.0) if self.options.show_grid else 1
        y = _round_half_away(height - 10.0)
        for i in range(iterations):
            x = width * 0.5 + i * 100
            mirrored = width - x
            color = _RED if i == 0 else _WHITE
            draw.line([(x, 0), (x, y - 15.0)], fill=color)
            if i:
                draw.line([(mirrored, 0), (mirrored, y - 15.0)], fill=_WHITE)

            seconds = float(self._smooth_offset) + per_pixel * (i * 100)
            self._text(draw, _seconds_label(seconds), math.floor(x), y, (0.5, 1.0), color)
            if i:
                earlier = float(self._smooth_offset) + per_pixel * (-i * 100)
                self._text(draw, _seconds_label(earlier), math.floor(mirrored), y, (0.5, 1.0), color)


def main(argv=None) -> int:
    """Render the spectrogram of a WAV file to an image file."""
    parser = argparse.ArgumentParser(
        prog="spectrascope",
        description="Render the spectrogram of a WAV file to an image.",
    )
    parser.add_argument("audio", type=Path, help="WAV file to analyse")
    parser.add_argument("-o", "--output", type=Path, default=Path("spectrogram.png"))
    parser.add_argument("--width", type=int, default=1280)
    parser.add_argument("--height", type=int, default=720)
    parser.add_argument("--threads", type=int, default=os.cpu_count() or 1)
    parser.add_argument("--library", choices=("cpp", "asm"), default="asm")
    parser.add_argument("--scale", choices=("linear", "log"), default="log")
    parser.add_argument("--high-frequency", type=int, default=20000)
    parser.add_argument("--saturation", type=float, default=1.0)
    parser.add_argument("--time-scale", type=float, default=10.0)
    parser.add_argument("--offset", type=float, default=0.0, help="position in seconds")
    parser.add_argument("--grid", action="store_true")
    parser.add_argument("--verify", action="store_true", help="check against the reference analysis")
    args = parser.parse_args(argv)

    if args.threads < 1:
        parser.error("--threads must be at least 1")
    if args.width < 1 or args.height < 1:
        parser.error("--width and --height must be positive")
    if args.time_scale <= 0:
        parser.error("--time-scale must be positive")

    options = Options(
        threads=args.threads,
        high_frequency=min(max(args.high_frequency, 100), 20000),
        saturation=args.saturation,
        library=LibraryOption.CPP if args.library == "cpp" else LibraryOption.ASSEMBLY,
        scale=ScaleOption.LINEAR if args.scale == "linear" else ScaleOption.LOGARITHMIC,
        paused=True,
        show_grid=args.grid,
        file_path=args.audio,
        time_scale=args.time_scale,
    )
    app = App(
        options,
        viewport_size=(args.width, args.height),
        console=Console(stream=sys.stderr),
        verify=args.verify,
    )
    if not app.reload_audio():
        return 1
    app.spectrogram.set_time_scale(options.time_scale)
    app.offset = args.offset
    app.update(0.0)
    app.render().save(args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())