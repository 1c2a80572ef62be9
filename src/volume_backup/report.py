from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Iterator, List

LOG = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class CycleEvent:
    """A single human-readable line produced while running a cycle.

    ``level`` only decides how the event is logged locally; the notification
    carries the rendered line alone.
    """

    message: str
    level: int = logging.INFO
    # Looked up per call so a frozen clock in tests applies.
    timestamp: datetime = field(default_factory=lambda: datetime.now())

    @property
    def line(self) -> str:
        return f"{self.timestamp.strftime(TIMESTAMP_FORMAT)} | {self.message}"


def info(message: str) -> CycleEvent:
    return CycleEvent(message=message, level=logging.INFO)


def warning(message: str) -> CycleEvent:
    return CycleEvent(message=message, level=logging.WARNING)


def error(message: str) -> CycleEvent:
    return CycleEvent(message=message, level=logging.ERROR)


class CycleReport:
    """Ordered events collected during one backup cycle."""

    def __init__(self) -> None:
        self._events: List[CycleEvent] = []
        self._lock = threading.Lock()

    def add(self, event: CycleEvent) -> None:
        self.extend([event])

    def extend(self, events: Iterable[CycleEvent]) -> None:
        with self._lock:
            for event in events:
                LOG.log(event.level, event.message)
                self._events.append(event)

    @property
    def events(self) -> List[CycleEvent]:
        return list(self._events)

    @property
    def lines(self) -> List[str]:
        return [event.line for event in self._events]

    @property
    def has_errors(self) -> bool:
        return any(event.level >= logging.ERROR for event in self._events)

    def render(self) -> str:
        return "\n".join(self.lines)

    def __iter__(self) -> Iterator[CycleEvent]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)
