from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from cablewrap.core.accumulator import RotationAccumulator
from cablewrap.models.rotation import RotationState, Settings, WrapEvent, utc_now


def notes(acc):
    return [e.note for e in acc.state.history]


def test_single_large_delta_logs_every_crossing(accumulator):
    accumulator.apply_delta(750.0)
    assert notes(accumulator) == ["Crossed +360°", "Crossed +720°"]
    assert accumulator.state.last_logged_wrap_count == 2


def test_crossing_logged_once_and_alert_fires_once(accumulator, alerts):
    for delta in (100.0, 150.0, 130.0):
        accumulator.apply_delta(delta)
    assert accumulator.total_degrees == pytest.approx(380.0)
    assert notes(accumulator) == ["Crossed +360°"]
    assert len(alerts) == 1
    assert "rotated 1.1 times" in alerts[0]
    assert accumulator.state.alert_fired

    accumulator.apply_delta(5.0)
    accumulator.apply_delta(-3.0)
    assert len(alerts) == 1
    assert notes(accumulator) == ["Crossed +360°"]


def test_negative_rotation_logs_negative_crossing(accumulator, alerts):
    accumulator.apply_delta(-400.0)
    assert notes(accumulator) == ["Crossed -360°"]
    assert len(alerts) == 1


def test_reset_clears_everything_and_logs_one_entry(accumulator):
    accumulator.apply_delta(750.0)
    before = len(accumulator.state.history)
    accumulator.state.last_known_azimuth = 12.0
    accumulator.reset()
    state = accumulator.state
    assert state.total_degrees == 0.0
    assert state.last_logged_wrap_count == 0
    assert not state.alert_fired
    assert state.last_known_azimuth is None
    assert len(state.history) == before + 1
    assert state.history[-1].note == "Manual reset: cable physically unwound"
    assert state.history[-1].cumulative_degrees == pytest.approx(750.0)


def test_snap_corrects_drift_to_whole_rotation(accumulator):
    accumulator.state.total_degrees = 355.4
    accumulator.state.last_known_azimuth = 3.0
    assert accumulator.snap()
    assert accumulator.total_degrees == pytest.approx(360.0)
    assert accumulator.state.history[-1].note == "Home: drift corrected +4.6° → snapped to 360°"
    assert accumulator.state.last_known_azimuth is None
    assert accumulator.state.last_logged_wrap_count == 1
    # already on a whole rotation
    assert not accumulator.snap()
    assert len(accumulator.state.history) == 1


def test_snap_ignores_drift_below_epsilon(accumulator):
    accumulator.state.total_degrees = 360.3
    assert not accumulator.snap()
    assert accumulator.total_degrees == pytest.approx(360.3)
    assert accumulator.state.history == []


def test_snap_back_under_threshold_clears_alert(accumulator):
    accumulator.apply_delta(362.0)
    assert accumulator.state.alert_fired
    accumulator.state.total_degrees = -2.0
    assert accumulator.snap(epsilon=1.0)
    assert accumulator.total_degrees == 0.0
    assert not accumulator.state.alert_fired


def test_suppressed_accumulator_ignores_deltas_and_snap(accumulator):
    accumulator.suppressed = True
    assert not accumulator.apply_delta(90.0)
    accumulator.state.total_degrees = 10.0
    assert not accumulator.snap()
    assert accumulator.total_degrees == 10.0


def test_on_change_called_for_crossing_and_reset():
    on_change = MagicMock()
    notify = MagicMock()
    acc = RotationAccumulator(RotationState(), Settings(), on_change=on_change, notify=notify)
    acc.apply_delta(10.0)
    on_change.assert_not_called()
    acc.apply_delta(360.0)
    assert on_change.call_count >= 1
    notify.assert_called_once()
    n = on_change.call_count
    acc.reset()
    assert on_change.call_count == n + 1


def test_history_older_than_an_hour_is_pruned(accumulator):
    now = utc_now()
    accumulator.state.history.extend([
        WrapEvent(now - timedelta(hours=2), 0.0, "old"),
        WrapEvent(now - timedelta(minutes=10), 0.0, "recent"),
    ])
    accumulator.prune_history(now)
    assert notes(accumulator) == ["recent"]


def test_history_timestamps_never_go_backwards(accumulator):
    future = utc_now() + timedelta(minutes=5)
    accumulator.state.history.append(WrapEvent(future, 0.0, "from the future"))
    event = accumulator.append_history(1.0, "next")
    assert event.timestamp >= future


def test_threshold_follows_settings():
    acc = RotationAccumulator(RotationState(), Settings(warning_threshold_rotations=2.0), notify=lambda m: None)
    acc.apply_delta(400.0)
    assert not acc.state.alert_fired
    acc.apply_delta(320.0)
    assert acc.state.alert_fired
