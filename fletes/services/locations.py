"""Location service - driver position ingestion and per-job distance tracking."""

import math
from dataclasses import dataclass, field

from fletes.config import Settings, get_settings
from fletes.exceptions import ValidationError
from fletes.models.driver import Driver, DriverLocation, DriverLocationReport, LocationUpdate
from fletes.models.job import Job
from fletes.state.drivers import DriverLocationRepository, DriverRepository
from fletes.state.jobs import JobRepository
from fletes.state.locks import KeyedLock, get_job_locks
from fletes.state.manager import StateManager
from fletes.tracking.filter import FilterResult, PositionFix, apply_fix
from fletes.tracking.proximity import (
    distance_to_target,
    estimate_eta_minutes,
    update_proximity_flags,
)
from fletes.utils.clock import Clock, to_epoch_ms, utcnow
from fletes.utils.logging import ServiceLogger


@dataclass
class TrackedFix:
    """A fix applied to a job, as stored."""

    job: Job
    result: FilterResult
    raised_flags: list[str] = field(default_factory=list)


class LocationService:
    """Accepts position fixes and keeps the latest position of each driver."""

    def __init__(
        self,
        state_manager: StateManager,
        locks: KeyedLock | None = None,
        clock: Clock = utcnow,
        settings: Settings | None = None,
    ):
        self.jobs = JobRepository(state_manager)
        self.drivers = DriverRepository(state_manager)
        self.locations = DriverLocationRepository(state_manager)
        self.locks = locks or get_job_locks()
        self.clock = clock
        self.settings = settings or get_settings()
        self.log = ServiceLogger("location_service")

    async def _track(
        self,
        job_id: str,
        fix: PositionFix,
        driver_id: str | None = None,
    ) -> TrackedFix | None:
        """Run a fix through the distance filter and proximity checks of a job.

        Returns None when the fix is ignored: unknown job, job owned by another
        driver, job not active or coordinates not finite.
        """
        async with self.locks.hold(job_id):
            job = await self.jobs.get(job_id)
            if job is None:
                return None
            if driver_id is not None and job.driver_id != driver_id:
                self.log.log_rejection(job_id, "WRONG_DRIVER", "Job not assigned to driver")
                return None

            result = apply_fix(job.status, job.last_track_point, job.distance_meters, fix)
            self.log.log_fix(job_id, result.outcome.value, result.distance_meters)
            if result.outcome.is_ignored:
                return None

            updated = job.model_copy(deep=True)
            updated.last_track_point = result.last_point
            updated.distance_meters = result.distance_meters

            raised: list[str] = []
            if result.changed:
                # Rejected fixes are not trusted for proximity either
                flags, raised = update_proximity_flags(
                    updated,
                    fix.lat,
                    fix.lng,
                    near_m=self.settings.proximity_near_m,
                    arrived_m=self.settings.proximity_arrived_m,
                )
                updated.flags = flags

            if result.changed:
                updated.updated_at = self.clock()
                await self.jobs.save(updated)

        if raised:
            self.log.logger.info("proximity_flags_raised", job_id=job_id, flags=raised)

        return TrackedFix(job=updated, result=result, raised_flags=raised)

    async def record_position_fix(
        self,
        job_id: str,
        lat: float,
        lng: float,
        accuracy: float | None = None,
        recorded_at: float | None = None,
    ) -> dict[str, int] | None:
        """
        Feed a fix into a job's distance tracking.

        Args:
            job_id: Job the fix belongs to
            lat: Latitude
            lng: Longitude
            accuracy: Reported accuracy radius in meters
            recorded_at: Epoch ms of the fix, defaults to now

        Returns:
            The job's distance after the fix, or None if the fix was ignored
        """
        fix = PositionFix(
            lat=lat,
            lng=lng,
            accuracy=accuracy,
            recorded_at=self._fix_time(recorded_at),
        )
        tracked = await self._track(job_id, fix)
        if tracked is None:
            return None
        return {"distance_meters": tracked.result.distance_meters}

    def _fix_time(self, recorded_at: float | None) -> int:
        """Whole epoch ms of a fix, the server clock when missing or unusable."""
        if recorded_at is None or not math.isfinite(recorded_at):
            return to_epoch_ms(self.clock())
        return int(recorded_at)

    async def _resolve_driver(self, report: DriverLocationReport) -> Driver:
        driver = None
        if report.driver_id:
            driver = await self.drivers.get(report.driver_id)
        # A stale id still resolves through the code
        if driver is None and report.driver_code:
            driver = await self.drivers.get_by_code(report.driver_code)

        if driver is None:
            raise ValidationError("Invalid driver")
        return driver

    async def report_location(self, report: DriverLocationReport) -> LocationUpdate:
        """
        Store a driver's position and track it against the reported job.

        The job is tracked before the snapshot is written, so a reader that
        sees the new position also sees the distance it produced.
        """
        driver = await self._resolve_driver(report)
        now = self.clock()
        update = LocationUpdate(
            location=DriverLocation(
                driver_id=driver.id,
                lat=report.lat,
                lng=report.lng,
                accuracy=report.accuracy,
                heading=report.heading,
                speed=report.speed,
                job_id=report.job_id,
                updated_at=now,
            ),
            job_id=report.job_id,
        )

        if report.job_id:
            fix = PositionFix(
                lat=report.lat,
                lng=report.lng,
                accuracy=report.accuracy,
                recorded_at=self._fix_time(report.recorded_at),
            )
            tracked = await self._track(report.job_id, fix, driver_id=driver.id)
            if tracked is not None:
                target_m = distance_to_target(tracked.job, report.lat, report.lng)
                update.outcome = tracked.result.outcome.value
                update.distance_meters = tracked.result.distance_meters
                update.distance_to_target = target_m
                update.eta_minutes = estimate_eta_minutes(target_m, report.speed)
                update.raised_flags = tracked.raised_flags

        await self.locations.upsert(update.location)
        return update

    async def list_locations(self) -> list[DriverLocation]:
        """Latest position of every driver."""
        return await self.locations.list()

    async def get_location(self, driver_id: str) -> DriverLocation | None:
        """Latest position of one driver."""
        return await self.locations.get(driver_id)
