"""Tests for proximity flags and ETA hints."""

from typing import Callable

from fletes.models.job import Job, JobStatus
from fletes.tracking.proximity import (
    distance_to_target,
    estimate_eta_minutes,
    update_proximity_flags,
)

from tests.conftest import DROPOFF, EXTRA_STOP, PICKUP

NEAR_M, ARRIVED_M = 500, 100

# About 300 m south of the pickup
APPROACH_LAT = PICKUP.lat - 0.0027


def test_arriving_raises_both_pickup_flags(make_job: Callable[..., Job]) -> None:
    job = make_job(status=JobStatus.TO_PICKUP)

    flags, raised = update_proximity_flags(job, PICKUP.lat, PICKUP.lng, NEAR_M, ARRIVED_M)

    assert raised == ["near_pickup_sent", "arrived_pickup_sent"]
    assert flags.near_pickup_sent and flags.arrived_pickup_sent
    assert job.flags.near_pickup_sent is False


def test_flags_are_raised_once(make_job: Callable[..., Job]) -> None:
    """A flag already sent is not raised again."""
    job = make_job(status=JobStatus.TO_PICKUP)
    job.flags, _ = update_proximity_flags(job, APPROACH_LAT, PICKUP.lng, NEAR_M, ARRIVED_M)

    flags, raised = update_proximity_flags(job, APPROACH_LAT, PICKUP.lng, NEAR_M, ARRIVED_M)

    assert raised == []
    assert flags.near_pickup_sent is True
    assert flags.arrived_pickup_sent is False


def test_approach_only_raises_near(make_job: Callable[..., Job]) -> None:
    job = make_job(status=JobStatus.TO_PICKUP)

    _, raised = update_proximity_flags(job, APPROACH_LAT, PICKUP.lng, NEAR_M, ARRIVED_M)

    assert raised == ["near_pickup_sent"]


def test_dropoff_flags_wait_for_last_stop(make_job: Callable[..., Job]) -> None:
    """Dropoff flags are only raised once extra stops are done."""
    job = make_job(status=JobStatus.TO_DROPOFF, extra_stops=[EXTRA_STOP])

    _, raised = update_proximity_flags(job, DROPOFF.lat, DROPOFF.lng, NEAR_M, ARRIVED_M)
    assert raised == []

    job.stop_index = 1
    _, raised = update_proximity_flags(job, DROPOFF.lat, DROPOFF.lng, NEAR_M, ARRIVED_M)
    assert raised == ["near_dropoff_sent", "arrived_dropoff_sent"]


def test_no_flags_while_loading(make_job: Callable[..., Job]) -> None:
    job = make_job(status=JobStatus.LOADING)

    _, raised = update_proximity_flags(job, PICKUP.lat, PICKUP.lng, NEAR_M, ARRIVED_M)

    assert raised == []


def test_distance_to_target(make_job: Callable[..., Job]) -> None:
    job = make_job(status=JobStatus.TO_PICKUP)

    assert distance_to_target(job, PICKUP.lat, PICKUP.lng) == 0
    assert 290 < distance_to_target(job, APPROACH_LAT, PICKUP.lng) < 310


def test_eta_uses_reported_speed_when_moving() -> None:
    assert estimate_eta_minutes(5_000, 20) == 4


def test_eta_falls_back_to_city_speed() -> None:
    """Stationary or missing speed uses 30 km/h."""
    assert estimate_eta_minutes(5_000, None) == 10
    assert estimate_eta_minutes(5_000, 0.5) == 10


def test_eta_is_at_least_one_minute() -> None:
    assert estimate_eta_minutes(0) == 1
