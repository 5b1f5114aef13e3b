"""
Unit tests for foreground/background tracking.
"""
from crisp.interview.records import SessionStatus
from crisp.interview.visibility import VisibilityMonitor


def test_background_while_in_progress_counts_and_notifies(clock):
    signals = []
    monitor = VisibilityMonitor(on_background=signals.append, clock=clock)

    signal = monitor.on_activity_changed(False, SessionStatus.IN_PROGRESS)

    assert signal.is_foreground is False
    assert signal.switch_count == 1
    assert signal.last_switch_at == clock.now
    assert signals == [signal]


def test_background_outside_in_progress_is_ignored(clock):
    signals = []
    monitor = VisibilityMonitor(on_background=signals.append, clock=clock)

    for status in (SessionStatus.NOT_STARTED, SessionStatus.PAUSED, SessionStatus.COMPLETED):
        monitor.on_activity_changed(False, status)

    assert monitor.switch_count == 0
    assert signals == []


def test_foreground_never_notifies(clock):
    signals = []
    monitor = VisibilityMonitor(on_background=signals.append, clock=clock)
    monitor.on_activity_changed(False, SessionStatus.IN_PROGRESS)

    signal = monitor.on_activity_changed(True, SessionStatus.PAUSED)

    assert signal.is_foreground is True
    assert signal.switch_count == 1
    assert len(signals) == 1


def test_restore_keeps_highest_count():
    monitor = VisibilityMonitor()
    monitor.restore(3)
    monitor.restore(1)
    assert monitor.switch_count == 3
    monitor.on_activity_changed(False, SessionStatus.IN_PROGRESS)
    assert monitor.switch_count == 4
