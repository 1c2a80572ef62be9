"""
Unit tests for the cycle scheduler (volume_backup/scheduler.py).
"""

import threading
from unittest.mock import MagicMock

from volume_backup.report import CycleReport, info
from volume_backup.scheduler import Scheduler, SchedulerState


def _report(*messages):
    report = CycleReport()
    report.extend(info(message) for message in messages)
    return report


class TestRunOnce:
    """Test a single tick."""

    def test_non_empty_report_is_sent(self):
        report = _report("Backup successfully created for volume v1 at /mnt/a", "second line")
        notifier = MagicMock()
        scheduler = Scheduler(cycle=lambda: report, notifier=notifier, interval=0)

        assert scheduler.run_once() is report
        notifier.send.assert_called_once_with(report.render())
        assert notifier.send.call_args.args[0].count("\n") == 1

    def test_empty_report_is_not_sent(self):
        notifier = MagicMock()
        scheduler = Scheduler(cycle=CycleReport, notifier=notifier, interval=0)

        scheduler.run_once()

        notifier.send.assert_not_called()


class TestRunLoop:
    """Test the interval loop and cancellation."""

    def test_stopped_before_start_runs_nothing(self):
        cycle = MagicMock(return_value=CycleReport())
        stop_event = threading.Event()
        stop_event.set()
        scheduler = Scheduler(cycle=cycle, notifier=MagicMock(), interval=0, stop_event=stop_event)

        assert scheduler.run() == 0
        cycle.assert_not_called()
        assert scheduler.state is SchedulerState.STOPPED

    def test_stop_during_wait_prevents_next_cycle(self):
        """Stopping while waiting wakes the loop and no further cycle starts."""
        first_cycle_done = threading.Event()
        calls = []

        def cycle():
            calls.append(1)
            first_cycle_done.set()
            return CycleReport()

        scheduler = Scheduler(cycle=cycle, notifier=MagicMock(), interval=3600)
        assert scheduler.state is SchedulerState.RUNNING
        worker = threading.Thread(target=scheduler.run)
        worker.start()

        assert first_cycle_done.wait(5)
        scheduler.stop()
        worker.join(5)

        assert not worker.is_alive()
        assert len(calls) == 1
        assert scheduler.state is SchedulerState.STOPPED

    def test_crashing_cycle_does_not_end_loop(self):
        """An escaped exception is logged and the next tick still runs."""
        stop_event = threading.Event()
        outcomes = [RuntimeError("boom"), _report("recovered")]
        notifier = MagicMock()

        def cycle():
            outcome = outcomes.pop(0)
            if not outcomes:
                stop_event.set()
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        scheduler = Scheduler(cycle=cycle, notifier=notifier, interval=0, stop_event=stop_event)

        assert scheduler.run() == 2
        notifier.send.assert_called_once()

    def test_notification_failure_does_not_end_loop(self):
        stop_event = threading.Event()
        notifier = MagicMock()
        notifier.send.return_value = False
        reports = [_report("a"), _report("b")]

        def cycle():
            report = reports.pop(0)
            if not reports:
                stop_event.set()
            return report

        scheduler = Scheduler(cycle=cycle, notifier=notifier, interval=0, stop_event=stop_event)

        assert scheduler.run() == 2
        assert notifier.send.call_count == 2
