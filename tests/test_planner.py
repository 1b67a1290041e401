# tests/test_planner.py
import pytest
from still_marker.planner import (
    FRAME_STEP,
    MIN_INTERVAL,
    Step,
    choose_interval,
    clamp_timestamp,
    plan_timestamps,
)


@pytest.mark.parametrize("duration", [0, 0.5, 1, 10, 15, 29.99])
def test_short_videos_sample_every_second(duration):
    assert choose_interval(duration) == 1.0


@pytest.mark.parametrize("duration", [30, 45, 61, 120, 200, 299.5, 300])
def test_medium_videos_target_thirty_frames(duration):
    assert choose_interval(duration) == max(round(duration / 30, 1), MIN_INTERVAL)


@pytest.mark.parametrize("duration", [300.1, 600, 1234, 7200])
def test_long_videos_target_forty_frames(duration):
    assert choose_interval(duration) == max(round(duration / 40, 1), MIN_INTERVAL)


def test_interval_floor_is_configurable():
    assert choose_interval(30) == 1.0
    assert choose_interval(30, min_interval=2.5) == 2.5
    assert choose_interval(600, min_interval=20.0) == 20.0


def test_plan_short_video():
    timestamps = plan_timestamps(15.0, 0, choose_interval(15.0))
    assert timestamps == [float(i) for i in range(15)]


def test_plan_medium_video():
    interval = choose_interval(120.0)
    assert interval == 4.0
    timestamps = plan_timestamps(120.0, 0, interval)
    assert len(timestamps) == 30
    assert timestamps[0] == 0.0
    assert timestamps[-1] == 116.0


def test_plan_long_video():
    interval = choose_interval(600.0)
    assert interval == 15.0
    timestamps = plan_timestamps(600.0, 0, interval)
    assert len(timestamps) == 40
    assert timestamps[-1] == 585.0


@pytest.mark.parametrize("duration,offset", [(47.3, 0), (47.3, 2.0), (12.0, 0.5), (901.0, 3.0)])
def test_plan_bounds_and_spacing(duration, offset):
    interval = choose_interval(duration)
    timestamps = plan_timestamps(duration, offset, interval)

    assert timestamps
    assert all(offset <= t < duration for t in timestamps)
    for earlier, later in zip(timestamps, timestamps[1:]):
        assert later > earlier
        assert later - earlier == pytest.approx(interval)


def test_plan_is_deterministic():
    assert plan_timestamps(97.0, 1.0, 3.2) == plan_timestamps(97.0, 1.0, 3.2)


def test_plan_offset_beyond_duration_is_empty():
    assert plan_timestamps(10.0, 12.0, 1.0) == []
    assert plan_timestamps(10.0, 10.0, 1.0) == []


def test_plan_zero_duration_is_empty():
    assert plan_timestamps(0, 0, choose_interval(0)) == []


def test_plan_negative_offset_starts_at_zero():
    assert plan_timestamps(3.0, -5.0, 1.0) == [0.0, 1.0, 2.0]


def test_plan_non_positive_interval_is_empty():
    assert plan_timestamps(10.0, 0, 0) == []


def test_plan_does_not_drift_with_fractional_interval():
    timestamps = plan_timestamps(100.0, 0, 0.33)
    assert timestamps[-1] == 99.99
    assert len(timestamps) == 304


def test_clamp_timestamp():
    assert clamp_timestamp(-5.0, 10.0) == 0.0
    assert clamp_timestamp(4.2, 10.0) == 4.2
    assert clamp_timestamp(50.0, 10.0) == pytest.approx(10.0 - FRAME_STEP)
    assert clamp_timestamp(50.0, 10.0) < 10.0
    assert clamp_timestamp(1.0, 0.0) == 0.0


def test_steps_are_symmetric_seconds():
    assert Step.FINE == pytest.approx(1 / 30)
    assert Step.COARSE == 0.5
    assert Step.MEDIUM == 2.0
    assert Step.LARGE == 10.0
    assert -Step.LARGE == -10.0


def test_plan_starts_exactly_at_unrounded_offset():
    offset = 2.00000049
    timestamps = plan_timestamps(10.0, offset, 1.0)
    assert timestamps[0] == offset
    assert all(t >= offset for t in timestamps)
