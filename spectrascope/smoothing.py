"""Exponential smoothing of a single real value towards a target."""

from __future__ import annotations


class SmoothReal:
    """A value that eases towards a target at a rate set by ``decay``.

    Each update halves the remaining distance every ``1 / decay`` seconds.
    Once the distance falls below 0.001 the value snaps to the target and
    stops changing.
    """

    __slots__ = ("_value", "_target", "_decay", "_changing")

    _SNAP_DISTANCE = 0.001

    def __init__(
        self,
        target: float | None = None,
        decay: float = 0.0,
        value: float = 0.0,
    ) -> None:
        self._target = 0.0 if target is None else float(target)
        self._decay = float(decay)
        self._value = float(value)
        self._changing = target is not None

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, x: float) -> None:
        self._changing = True
        self._value = float(x)

    @property
    def target(self) -> float:
        return self._target

    @target.setter
    def target(self, x: float) -> None:
        self._changing = True
        self._target = float(x)

    @property
    def decay(self) -> float:
        return self._decay

    @decay.setter
    def decay(self, x: float) -> None:
        self._decay = float(x)

    @property
    def is_changing(self) -> bool:
        return self._changing

    def update(self, delta_time: float) -> None:
        """Advance the value towards the target by ``delta_time`` seconds."""
        if not self._changing:
            return
        diff = self._value - self._target
        self._value = self._target + diff * 2.0 ** (-self._decay * delta_time)
        if -self._SNAP_DISTANCE < diff < self._SNAP_DISTANCE:
            self._value = self._target
            self._changing = False

    def finish(self) -> None:
        """Jump straight to the target."""
        self._changing = False
        self._value = self._target

    def __float__(self) -> float:
        return self._value

    def __repr__(self) -> str:
        return (
            f"SmoothReal(value={self._value!r}, target={self._target!r}, "
            f"decay={self._decay!r}, changing={self._changing!r})"
        )