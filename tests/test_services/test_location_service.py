"""Tests for driver location ingestion and job distance tracking."""

import math
from typing import Awaitable, Callable

import pytest

from fletes.exceptions import ValidationError
from fletes.models.driver import Driver, DriverLocationReport
from fletes.models.job import Job, JobStatus
from fletes.services.locations import LocationService
from fletes.state.jobs import JobRepository
from fletes.state.manager import StateManager
from fletes.tracking.geo import haversine_m
from fletes.utils.clock import to_epoch_ms

from tests.conftest import PICKUP, FrozenClock

StoredJob = Callable[..., Awaitable[Job]]

T0 = 1_773_144_000_000

# About 300 m and 200 m south of the pickup
FAR_LAT = PICKUP.lat - 0.0027
MID_LAT = PICKUP.lat - 0.0018


@pytest.mark.asyncio
async def test_fixes_accumulate_distance(
    location_service: LocationService,
    stored_job: StoredJob,
    state_manager: StateManager,
) -> None:
    job = await stored_job(status=JobStatus.TO_PICKUP)

    first = await location_service.record_position_fix(job.id, FAR_LAT, PICKUP.lng, 10, T0)
    second = await location_service.record_position_fix(
        job.id, MID_LAT, PICKUP.lng, 10, T0 + 10_000
    )

    step = haversine_m(FAR_LAT, PICKUP.lng, MID_LAT, PICKUP.lng)
    assert first == {"distance_meters": 0}
    assert second == {"distance_meters": step}

    stored = await JobRepository(state_manager).get(job.id)
    assert stored.distance_meters == step
    assert stored.last_track_point.at == T0 + 10_000


@pytest.mark.asyncio
async def test_rejected_fix_reports_unchanged_distance(
    location_service: LocationService,
    stored_job: StoredJob,
) -> None:
    """Filter rejections are not errors."""
    job = await stored_job(status=JobStatus.TO_DROPOFF)
    await location_service.record_position_fix(job.id, FAR_LAT, PICKUP.lng, 10, T0)

    result = await location_service.record_position_fix(
        job.id, FAR_LAT + 0.05, PICKUP.lng, 10, T0 + 2_000
    )

    assert result == {"distance_meters": 0}


@pytest.mark.asyncio
async def test_fix_for_unknown_job_is_ignored(location_service: LocationService) -> None:
    assert await location_service.record_position_fix("missing", FAR_LAT, PICKUP.lng) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [JobStatus.PENDING, JobStatus.DONE])
async def test_fix_for_inactive_job_is_ignored(
    location_service: LocationService,
    stored_job: StoredJob,
    status: JobStatus,
) -> None:
    job = await stored_job(status=status)

    assert await location_service.record_position_fix(job.id, FAR_LAT, PICKUP.lng, 10, T0) is None


@pytest.mark.asyncio
async def test_non_finite_fix_is_ignored(
    location_service: LocationService,
    stored_job: StoredJob,
) -> None:
    job = await stored_job(status=JobStatus.TO_PICKUP)

    assert await location_service.record_position_fix(job.id, math.nan, PICKUP.lng) is None


@pytest.mark.asyncio
async def test_out_of_range_fix_does_not_freeze_tracking(
    location_service: LocationService,
    stored_job: StoredJob,
) -> None:
    """A fix off the globe is ignored and later fixes still count."""
    job = await stored_job(status=JobStatus.TO_PICKUP)

    assert await location_service.record_position_fix(job.id, 95.0, PICKUP.lng, 10, T0) is None

    await location_service.record_position_fix(job.id, FAR_LAT, PICKUP.lng, 10, T0 + 1_000)
    result = await location_service.record_position_fix(
        job.id, MID_LAT, PICKUP.lng, 10, T0 + 11_000
    )

    assert result == {"distance_meters": haversine_m(FAR_LAT, PICKUP.lng, MID_LAT, PICKUP.lng)}


@pytest.mark.asyncio
async def test_fractional_timestamp_is_truncated(
    location_service: LocationService,
    stored_job: StoredJob,
    state_manager: StateManager,
) -> None:
    job = await stored_job(status=JobStatus.TO_PICKUP)

    result = await location_service.record_position_fix(
        job.id, FAR_LAT, PICKUP.lng, 10, T0 + 0.5
    )

    assert result == {"distance_meters": 0}
    stored = await JobRepository(state_manager).get(job.id)
    assert stored.last_track_point.at == T0


@pytest.mark.asyncio
async def test_fix_defaults_to_server_clock(
    location_service: LocationService,
    stored_job: StoredJob,
    state_manager: StateManager,
    clock: FrozenClock,
) -> None:
    job = await stored_job(status=JobStatus.TO_PICKUP)

    await location_service.record_position_fix(job.id, FAR_LAT, PICKUP.lng)

    stored = await JobRepository(state_manager).get(job.id)
    assert stored.last_track_point.at == to_epoch_ms(clock())


@pytest.mark.asyncio
async def test_report_tracks_job_and_stores_snapshot(
    location_service: LocationService,
    stored_job: StoredJob,
    sample_driver: Driver,
    state_manager: StateManager,
) -> None:
    job = await stored_job(status=JobStatus.TO_PICKUP)

    update = await location_service.report_location(
        DriverLocationReport(
            driver_code="juan1",
            lat=FAR_LAT,
            lng=PICKUP.lng,
            accuracy=8,
            speed=0,
            job_id=job.id,
            recorded_at=T0,
        )
    )

    assert update.location.driver_id == sample_driver.id
    assert update.outcome == "reacquired"
    assert update.distance_meters == 0
    assert 290 < update.distance_to_target < 310
    assert update.eta_minutes == 1
    assert update.raised_flags == ["near_pickup_sent"]

    snapshot = await location_service.get_location(sample_driver.id)
    assert snapshot.lat == FAR_LAT
    assert snapshot.job_id == job.id

    stored = await JobRepository(state_manager).get(job.id)
    assert stored.flags.near_pickup_sent is True


@pytest.mark.asyncio
async def test_report_overwrites_previous_snapshot(
    location_service: LocationService,
    sample_driver: Driver,
) -> None:
    """One position per driver, never a log."""
    for lat in (FAR_LAT, MID_LAT):
        await location_service.report_location(
            DriverLocationReport(driver_id=sample_driver.id, lat=lat, lng=PICKUP.lng)
        )

    locations = await location_service.list_locations()

    assert len(locations) == 1
    assert locations[0].lat == MID_LAT
    assert locations[0].job_id is None


@pytest.mark.asyncio
async def test_report_for_unknown_driver(location_service: LocationService) -> None:
    with pytest.raises(ValidationError):
        await location_service.report_location(
            DriverLocationReport(driver_code="NOBODY", lat=FAR_LAT, lng=PICKUP.lng)
        )


@pytest.mark.asyncio
async def test_report_with_stale_id_falls_back_to_code(
    location_service: LocationService,
    sample_driver: Driver,
) -> None:
    """An id that no longer resolves does not hide a valid code."""
    update = await location_service.report_location(
        DriverLocationReport(
            driver_id="deleted-driver", driver_code="juan1", lat=FAR_LAT, lng=PICKUP.lng
        )
    )

    assert update.location.driver_id == sample_driver.id


@pytest.mark.asyncio
async def test_report_for_someone_elses_job(
    location_service: LocationService,
    stored_job: StoredJob,
    sample_driver: Driver,
    state_manager: StateManager,
) -> None:
    """The snapshot is stored but the job is not tracked."""
    job = await stored_job(status=JobStatus.TO_PICKUP, driver_id="another-driver")

    update = await location_service.report_location(
        DriverLocationReport(
            driver_id=sample_driver.id,
            lat=FAR_LAT,
            lng=PICKUP.lng,
            job_id=job.id,
            recorded_at=T0,
        )
    )

    assert update.outcome is None
    assert update.distance_meters is None
    assert (await JobRepository(state_manager).get(job.id)).last_track_point is None
    assert (await location_service.get_location(sample_driver.id)).job_id == job.id


def test_report_requires_a_driver_reference() -> None:
    with pytest.raises(ValueError):
        DriverLocationReport(lat=FAR_LAT, lng=PICKUP.lng)
