# spectrascope

spectrascope turns a WAV file into a spectrogram image. The audio is mixed
down to mono and cut into overlapping blocks of 4096 samples, taken 512
samples apart. Each block is windowed with a Hann window and passed through a
radix-2 FFT. The magnitudes are then converted to decibels. The result is
drawn as a colour-mapped image with a linear or logarithmic frequency axis.

The numeric work is done by one of two interchangeable kernel sets, chosen
with `LibraryOption.CPP` or `LibraryOption.ASSEMBLY`. A built-in benchmark,
`Tester`, times each kernel set with 1 to 64 threads and writes the results to
a CSV file.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## Command line

```
spectrascope song.wav -o spectrogram.png
```

The command reads a PCM WAV file, analyses it and saves the visible part of
the spectrogram as an image. The playback position is at the horizontal
centre of the image, marked with a red line and a time label; frequency
labels run down the right edge.

Options:

- `-o`, `--output`: image file to write (default `spectrogram.png`).
- `--width`, `--height`: image size in pixels (default 1280 × 720).
- `--threads`: number of analysis threads (default: the number of CPUs).
- `--library {cpp,asm}`: kernel set to use (default `asm`).
- `--scale {linear,log}`: frequency axis (default `log`).
- `--high-frequency`: top of the frequency axis in Hz, clamped to 100–20000
  (default 20000).
- `--saturation`: colour intensity multiplier (default 1.0).
- `--time-scale`: seconds of sound across the image width (default 10.0).
- `--offset`: position in seconds shown at the centre (default 0.0).
- `--grid`: draw grid lines and extra time labels.
- `--verify`: also run the plain reference analysis and log whether the
  results agree within 0.01 dB.

Log messages go to standard error in the form
`[hh:mm:ss.mmm][LOG] message.` The command exits with status 1 if the file
cannot be read.

## Library use

```python
from spectrascope.audio import load_sound, extract_samples, process_samples
from spectrascope.kernels import load_library
from spectrascope.options import Options, LibraryOption, ScaleOption
from spectrascope.spectrogram import Spectrogram

options = Options(threads=4, library=LibraryOption.CPP)
kernels = load_library(options.library)
sound = load_sound("song.wav")

samples = extract_samples(sound, kernels)
frames = process_samples(samples, options, kernels)

spectrogram = Spectrogram(sound)
spectrogram.on_viewport_size_change(1280, 720)
spectrogram.set_scale(ScaleOption.LOGARITHMIC)
spectrogram.set_max_frequency(20000)
spectrogram.set_collection(frames)
spectrogram.set_time_scale(10.0)
spectrogram.set_offset(0.0)
spectrogram.update(0.0)
spectrogram.render().save("spectrogram.png")
```

- `load_sound(path)` returns a `SoundBuffer` of signed 16-bit samples; 8-,
  16-, 24- and 32-bit PCM are accepted. Anything that cannot be decoded
  raises `AudioFormatError`.
- `extract_samples` returns mono floats in [-1, 1], zero-padded to a
  multiple of 4096.
- `process_samples` returns one array of 2048 decibel magnitudes per hop.
- `Spectrogram.update` generates the image chunks around the current
  position; `render()` returns an RGBA Pillow image of the viewport.
- `calculate_color(t)` maps an intensity in [0, 1] to the palette colour.

The reference functions `reference_extract_samples`,
`reference_process_samples` and `reference_fft` in `spectrascope.audio` give
a plain implementation to check the kernels against.

## Application model

`spectrascope.app.App` ties the pieces together without a window:

- `reload_audio()` loads and analyses the file named by `options.file_path`.
- `update(delta_time)` advances a simulated playback position, applies option
  changes queued by its `OptionsView` and generates spectrogram chunks.
- `render()` draws the spectrogram with its time and frequency overlays, and a
  cross-hair at `cursor` when `options.show_cross` is set.
- `seek(delta_pixels)` drags the view; `toggle_pause()` starts or pauses
  playback.
- `open_tests_directory()` opens the benchmark directory in the system file
  manager.

`spectrascope.options_view.OptionsView` stages edits with `edit(**kwargs)`
(values clamped to their allowed ranges), waits 10 ms after the last edit, and
then publishes one `OptionChangeEvent` per changed field through
`poll_changes()`.

## Benchmark

`spectrascope.tester.Tester` runs one step per `update(console)` call after
`begin_test()`. For each kernel set and each thread count from 1 to 64 it
times extraction and analysis five times (after one warm-up run) and logs the
average. At the end it writes `test_YYYYMMDD_HHMMSS.csv` into its
`tests_dir` (default `tests`), creating the directory if needed.
`format_results_csv` builds the table: thread count, time for each kernel
set in milliseconds, and the speed-up.

## Helpers

- `spectrascope.util`: `make_time_string`, `pad_integer_to_string`,
  `get_linear_y`, `get_logarithmic_y`, `interpolate_color` and
  `draw_horizontal_line`.
- `spectrascope.smoothing.SmoothReal`: a value that eases exponentially
  towards a target, used for smooth scrolling.
- `spectrascope.console.Console`: keeps the last 100 timestamped log
  messages and can echo them to a stream.

## What it does not do

- There is no interactive window or graphical interface; the command renders
  a single image and exits.
- There is no audio output. Playback in `App` only moves a position in time.
- Only PCM WAV files can be loaded; MP3, OGG and FLAC are not decoded.