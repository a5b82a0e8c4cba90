"""Staged editing of options with debounced change notification."""

from __future__ import annotations

import time
from dataclasses import fields
from pathlib import Path
from typing import Callable, Iterator

from .options import (
    LibraryOption,
    OptionChangeEvent,
    Options,
    OptionsState,
    ScaleOption,
)

WAIT_MICROSECONDS = 10_000

_LIMITS = {
    "threads": (1, 64),
    "high_frequency": (100, 20000),
    "saturation": (0.1, 10.0),
    "time_scale": (1.0, 100.0),
    "volume": (0.0, 100.0),
}

_WATCHED = (
    ("high_frequency", OptionChangeEvent.HIGH_FREQUENCY),
    ("threads", OptionChangeEvent.THREADS),
    ("library", OptionChangeEvent.LIBRARY),
    ("paused", OptionChangeEvent.PAUSE),
    ("show_grid", OptionChangeEvent.GRID),
    ("show_cross", OptionChangeEvent.CROSS),
    ("scale", OptionChangeEvent.SCALE),
    ("file_path", OptionChangeEvent.FILE),
    ("saturation", OptionChangeEvent.STRENGTH),
    ("time_scale", OptionChangeEvent.TIME_SCALE),
    ("volume", OptionChangeEvent.VOLUME),
)

_SKIP = object()


def _coerce(name: str, value):
    if name in ("threads", "high_frequency"):
        low, high = _LIMITS[name]
        return min(max(int(value), low), high)
    if name in _LIMITS:
        low, high = _LIMITS[name]
        return min(max(float(value), low), high)
    if name == "library":
        return LibraryOption(value)
    if name == "scale":
        return ScaleOption(value)
    if name == "file_path":
        return Path(value) if value else _SKIP
    return bool(value)


class OptionsView:
    """Collects edits to a private copy of the options and publishes them.

    Edits restart a short wait; once it has passed, :meth:`update` compares
    the copy with the shared options, queues one event per changed field and
    writes the copy back into the shared options.
    """

    def __init__(self, options: Options, clock: Callable[[], float] = time.monotonic) -> None:
        self._app = options
        self._internal = options.copy()
        self._state = OptionsState.DEFAULT
        self._clock = clock
        self._started = clock()
        self._changes: list[OptionChangeEvent] = []

    @property
    def options(self) -> Options:
        return self._app

    @property
    def internal_options(self) -> Options:
        return self._internal.copy()

    @property
    def state(self) -> OptionsState:
        return self._state

    def edit(self, **kwargs) -> None:
        """Change fields of the staged options, clamped to their allowed ranges.

        An empty ``file_path`` is ignored, as a cancelled file choice is.
        """
        known = {f.name for f in fields(Options)}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise TypeError(f"unknown option(s): {', '.join(unknown)}")
        updates = {name: _coerce(name, value) for name, value in kwargs.items()}
        updates = {name: value for name, value in updates.items() if value is not _SKIP}
        if not updates:
            return
        for name, value in updates.items():
            setattr(self._internal, name, value)
        self._restart_state()

    def request(self, event) -> None:
        """Queue an event directly, as the action buttons do."""
        self._changes.append(OptionChangeEvent(event))

    def refresh_internal_state(self) -> None:
        """Discard staged edits and take the shared options again."""
        self._internal = self._app.copy()

    def update(self) -> None:
        """Advance the wait/compare cycle by one step."""
        if self._state is OptionsState.WAIT:
            elapsed = int((self._clock() - self._started) * 1_000_000)
            if elapsed > WAIT_MICROSECONDS:
                self._state = OptionsState.COMPARE
        elif self._state is OptionsState.COMPARE:
            self._state = OptionsState.DEFAULT
            for name, event in _WATCHED:
                if getattr(self._internal, name) != getattr(self._app, name):
                    self._changes.append(event)
            for f in fields(Options):
                setattr(self._app, f.name, getattr(self._internal, f.name))

    def poll_changes(self) -> Iterator[OptionChangeEvent]:
        """Yield and remove queued events, most recent first."""
        while self._changes:
            yield self._changes.pop()

    def _restart_state(self) -> None:
        self._state = OptionsState.WAIT
        self._started = self._clock()