"""User options and the small state machines that act on them."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path


class LibraryOption(IntEnum):
    CPP = 0
    ASSEMBLY = 1


class ScaleOption(IntEnum):
    LINEAR = 0
    LOGARITHMIC = 1


class OptionsState(IntEnum):
    DEFAULT = 0
    WAIT = 1
    COMPARE = 2


class OptionChangeEvent(IntEnum):
    HIGH_FREQUENCY = 0
    THREADS = 1
    LIBRARY = 2
    PAUSE = 3
    GRID = 4
    CROSS = 5
    SCALE = 6
    FILE = 7
    STRENGTH = 8
    TIME_SCALE = 9
    VOLUME = 10
    BEGIN_TEST = 11
    OPEN_TESTS_DIRECTORY = 12


class SeekState(IntEnum):
    DEFAULT = 0
    SEEK_STARTING = 1
    SEEK = 2
    SEEK_ENDING = 3


class TestState(IntEnum):
    NOT_TESTING = 0
    BEGIN_TEST = 1
    TESTING = 2
    END_TEST = 3
    FAILED_TO_BEGIN = 4


@dataclass
class Options:
    """Settings that drive audio processing and display."""

    threads: int = 1
    high_frequency: int = 20000
    saturation: float = 1.0
    library: LibraryOption = LibraryOption.CPP
    scale: ScaleOption = ScaleOption.LOGARITHMIC
    paused: bool = False
    show_grid: bool = False
    show_cross: bool = False
    file_path: Path | None = None
    time_scale: float = 10.0
    volume: float = 100.0

    def copy(self) -> Options:
        """Return an independent copy."""
        return dataclasses.replace(self)