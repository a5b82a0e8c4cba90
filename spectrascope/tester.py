"""Benchmark of the kernel sets across thread counts, saved as CSV."""

from __future__ import annotations

import math
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from .audio import SoundBuffer, extract_samples, process_samples
from .console import Console
from .kernels import load_library
from .options import LibraryOption, Options, TestState
from .util import pad_integer_to_string

NUM_TESTS = 5
NUM_RESULTS = 7
MAX_THREADS = 1 << NUM_RESULTS

CSV_HEADER = "Threads,C++ [ms],asm [ms],Boost"


def _ratio(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a)
    return a / b


def format_results_csv(cpp_results: Sequence[float], asm_results: Sequence[float]) -> str:
    """Build the results table: one row per thread count with the speed-up."""
    if len(cpp_results) != NUM_RESULTS or len(asm_results) != NUM_RESULTS:
        raise ValueError(f"expected {NUM_RESULTS} results for each library")
    rows = [CSV_HEADER]
    for i, (cpp, asm) in enumerate(zip(cpp_results, asm_results)):
        rows.append(f"{1 << i},{cpp:g},{asm:g},{_ratio(cpp, asm):g}")
    return "\n".join(rows)


class Tester:
    """Times analysis of a sound with both kernel sets and 1 to 64 threads.

    Each call to :meth:`update` performs one step, so the work can be spread
    over frames of an interactive loop.
    """

    def __init__(
        self,
        sound: SoundBuffer,
        *,
        tests_dir="tests",
        clock: Callable[[], float] = time.perf_counter,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.sound = sound
        self.tests_dir = Path(tests_dir)
        self._clock = clock
        self._now = now
        self._state = TestState.NOT_TESTING
        self._threads = 1
        self._library = LibraryOption.CPP
        self._kernels = load_library(self._library)
        self._cpp_results = [0.0] * NUM_RESULTS
        self._asm_results = [0.0] * NUM_RESULTS
        self._index = 0
        self.last_report: Path | None = None

    @property
    def state(self) -> TestState:
        return self._state

    @property
    def is_testing(self) -> bool:
        return self._state is not TestState.NOT_TESTING

    @property
    def cpp_results(self) -> tuple[float, ...]:
        return tuple(self._cpp_results)

    @property
    def asm_results(self) -> tuple[float, ...]:
        return tuple(self._asm_results)

    def begin_test(self) -> None:
        """Request a test run; it fails to begin when no sound is loaded."""
        if int(self.sound.duration * 1000) > 0:
            self._state = TestState.BEGIN_TEST
        else:
            self._state = TestState.FAILED_TO_BEGIN

    def update(self, console: Console) -> None:
        """Advance the test by one step, logging progress to ``console``."""
        if self._state is TestState.FAILED_TO_BEGIN:
            self._state = TestState.NOT_TESTING
            console.log("Failed to begin the test")
        elif self._state is TestState.BEGIN_TEST:
            self._state = TestState.TESTING
            console.log("The test has started")
            self._threads = 1
            self._select(LibraryOption.CPP)
            self._index = 0
        elif self._state is TestState.TESTING:
            self._run_configuration(console)
        elif self._state is TestState.END_TEST:
            self._state = TestState.NOT_TESTING
            self._save(console)

    def _select(self, library: LibraryOption) -> None:
        self._library = library
        self._kernels = load_library(library)

    def _measure(self) -> float:
        options = Options(threads=self._threads, library=self._library)
        start = self._clock()
        samples = extract_samples(self.sound, self._kernels)
        process_samples(samples, options, self._kernels)
        return int((self._clock() - start) * 1_000_000) / 1000.0

    def _run_configuration(self, console: Console) -> None:
        self._measure()
        elapsed = sum(self._measure() for _ in range(NUM_TESTS)) / NUM_TESTS

        name = "C++" if self._library is LibraryOption.CPP else "asm"
        console.log(f"{name}, {self._threads} threads: {elapsed:g}ms")

        results = self._asm_results if self._library is LibraryOption.ASSEMBLY else self._cpp_results
        results[self._index] = elapsed
        self._index += 1
        self._threads <<= 1

        if self._threads == MAX_THREADS:
            if self._library is LibraryOption.ASSEMBLY:
                self._state = TestState.END_TEST
            else:
                self._index = 0
                self._threads = 1
                self._select(LibraryOption.ASSEMBLY)

    def _save(self, console: Console) -> None:
        t = self._now()
        name = (
            f"test_{pad_integer_to_string(t.year, 2)}{pad_integer_to_string(t.month, 2)}"
            f"{pad_integer_to_string(t.day, 2)}_{pad_integer_to_string(t.hour, 2)}"
            f"{pad_integer_to_string(t.minute, 2)}{pad_integer_to_string(t.second, 2)}.csv"
        )
        directory_name = self.tests_dir.as_posix()
        if not self.tests_dir.exists():
            try:
                self.tests_dir.mkdir()
                console.log(f'Created a directory "{directory_name}"')
            except OSError:
                console.log(f'Could not create a directory "{directory_name}"')

        path = self.tests_dir / name
        csv = format_results_csv(self._cpp_results, self._asm_results)
        try:
            with open(path, "w", encoding="utf-8", newline="") as handle:
                handle.write(csv)
        except OSError:
            self.last_report = None
            console.log("The test has finished. Could not create a test file")
            return
        self.last_report = path
        console.log(f'The test has finished. The results have been saved to "{path.as_posix()}" file')