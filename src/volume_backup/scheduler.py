from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Optional

from .notifier import Notifier
from .report import CycleReport

LOG = logging.getLogger(__name__)

Cycle = Callable[[], CycleReport]


class SchedulerState(enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    """Runs backup cycles back to back, ``interval`` seconds apart.

    The wait between cycles is an interruptible ``Event.wait``; ``stop()``
    wakes it immediately. A cycle already in flight is allowed to finish.
    """

    def __init__(
        self,
        cycle: Cycle,
        notifier: Notifier,
        interval: float,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self._cycle = cycle
        self._notifier = notifier
        self._interval = interval
        self._stop_event = stop_event or threading.Event()

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.STOPPED if self._stop_event.is_set() else SchedulerState.RUNNING

    def stop(self) -> None:
        self._stop_event.set()

    def run_once(self) -> CycleReport:
        report = self._cycle()
        if report:
            self._notifier.send(report.render())
        else:
            LOG.debug("Cycle produced no events; nothing to notify")
        return report

    def run(self) -> int:
        cycles = 0
        LOG.info("Scheduler started; interval %.3fs", self._interval)
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:  # noqa: BLE001
                LOG.exception("Backup cycle crashed; retrying on the next tick")
            cycles += 1
            self._stop_event.wait(self._interval)
        LOG.info("Scheduler stopped after %d cycle(s)", cycles)
        return cycles
