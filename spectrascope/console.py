"""An in-memory log of timestamped messages."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, TextIO

from .util import pad_integer_to_string


@dataclass(frozen=True)
class LogMessage:
    content: str
    timestamp: datetime

    def make_time_string(self) -> str:
        """Return ``[hh:mm:ss.mmm]`` for the message's local time."""
        t = self.timestamp
        return (
            f"[{pad_integer_to_string(t.hour, 2)}"
            f":{pad_integer_to_string(t.minute, 2)}"
            f":{pad_integer_to_string(t.second, 2)}"
            f".{pad_integer_to_string(t.microsecond // 1000, 3)}]"
        )


class Console:
    """Keeps the most recent log messages, optionally echoing them to a stream."""

    MAX_MESSAGES = 100

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        stream: TextIO | None = None,
    ) -> None:
        self._clock = clock
        self._stream = stream
        self._messages: deque[LogMessage] = deque(maxlen=self.MAX_MESSAGES)

    def log(self, message: str) -> LogMessage:
        """Record ``message`` with a full stop appended and return the entry."""
        entry = LogMessage(message + ".", self._clock())
        self._messages.append(entry)
        if self._stream is not None:
            print(self._format(entry), file=self._stream, flush=True)
        return entry

    @property
    def messages(self) -> tuple[LogMessage, ...]:
        return tuple(self._messages)

    def lines(self) -> list[str]:
        """Return every kept message as a display line."""
        return [self._format(entry) for entry in self._messages]

    @staticmethod
    def _format(entry: LogMessage) -> str:
        return f"{entry.make_time_string()}[LOG] {entry.content}"

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[LogMessage]:
        return iter(self._messages)