"""Job service - lifecycle operations on stored jobs."""

from typing import Any

from fletes.exceptions import ConflictError, NotAvailableError, NotFoundError, ValidationError
from fletes.models.job import Job, JobCreate, JobPatch, JobStatus
from fletes.state.drivers import DriverRepository
from fletes.state.jobs import JobRepository
from fletes.state.locks import KeyedLock, get_job_locks
from fletes.state.manager import StateManager
from fletes.state.workflow import (
    INVALID_STATUS,
    NOT_YET_AVAILABLE,
    advance_stop,
    apply_patch,
    compute_scheduled_at,
    is_start_window_open,
    request_transition,
    start_window_opens_at,
)
from fletes.utils.clock import Clock, utcnow
from fletes.utils.logging import ServiceLogger


class JobService:
    """
    Job operations for operators and drivers.

    Every read-modify-write of a job runs under that job's lock, and the
    caller only ever sees a job after it was written to the store.
    """

    def __init__(
        self,
        state_manager: StateManager,
        locks: KeyedLock | None = None,
        clock: Clock = utcnow,
    ):
        self.jobs = JobRepository(state_manager)
        self.drivers = DriverRepository(state_manager)
        self.locks = locks or get_job_locks()
        self.clock = clock
        self.log = ServiceLogger("job_service")

    async def _require_job(self, job_id: str) -> Job:
        job = await self.jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    async def _check_driver(self, driver_id: str | None) -> None:
        if driver_id and await self.drivers.get(driver_id) is None:
            raise ValidationError("Invalid driver")

    async def _resolve_driver_id(
        self,
        driver_id: str | None,
        driver_code: str | None,
    ) -> str | None:
        if driver_id:
            return driver_id
        if driver_code:
            driver = await self.drivers.get_by_code(driver_code)
            if driver is None:
                raise NotFoundError("Driver not found")
            return driver.id
        return None

    async def create_job(self, payload: JobCreate) -> Job:
        """Create a PENDING job."""
        await self._check_driver(payload.driver_id)

        data = payload.model_dump(exclude_none=True)
        if payload.id and await self.jobs.exists(payload.id):
            raise ConflictError(f"Job {payload.id} already exists")

        now = self.clock()
        job = Job(
            **data,
            scheduled_at=compute_scheduled_at(payload.scheduled_date, payload.scheduled_time),
            created_at=now,
            updated_at=now,
        )
        await self.jobs.save(job)

        self.log.logger.info(
            "job_created",
            job_id=job.id,
            driver_id=job.driver_id,
            scheduled_at=job.scheduled_at,
        )
        return job

    async def get_job(
        self,
        job_id: str,
        driver_id: str | None = None,
        driver_code: str | None = None,
    ) -> Job:
        """Fetch a job. When a driver is given, only one of their jobs is returned."""
        job = await self._require_job(job_id)

        scoped_driver = await self._resolve_driver_id(driver_id, driver_code)
        if scoped_driver and job.driver_id != scoped_driver:
            raise NotFoundError(f"Job {job_id} not found")

        return job

    async def list_jobs(
        self,
        driver_id: str | None = None,
        driver_code: str | None = None,
        status: JobStatus | None = None,
    ) -> list[Job]:
        """List jobs, newest first."""
        scoped_driver = await self._resolve_driver_id(driver_id, driver_code)
        jobs = await self.jobs.list(driver_id=scoped_driver)

        if status is not None:
            jobs = [job for job in jobs if job.status == status]

        return jobs

    async def patch_job(self, job_id: str, patch: JobPatch) -> Job:
        """Apply operator edits to a job that is not DONE."""
        if "driver_id" in patch.model_fields_set:
            await self._check_driver(patch.driver_id)

        async with self.locks.hold(job_id):
            job = await self._require_job(job_id)
            updated = apply_patch(job, patch, self.clock())
            await self.jobs.save(updated)

        self.log.logger.info("job_patched", job_id=job_id, fields=sorted(patch.model_fields_set))
        return updated

    async def delete_job(self, job_id: str) -> None:
        """Delete a job, whatever its status."""
        async with self.locks.hold(job_id):
            if not await self.jobs.delete(job_id):
                raise NotFoundError(f"Job {job_id} not found")

    async def transition_job(self, job_id: str, target: Any) -> Job:
        """
        Move a job to ``target``.

        Raises:
            NotFoundError: Unknown job
            ValidationError: Unknown status, or a move that skips or goes back
            NotAvailableError: Start window not open yet
        """
        async with self.locks.hold(job_id):
            job = await self._require_job(job_id)
            result = request_transition(job, target, self.clock())

            if not result.success:
                self.log.log_rejection(job_id, result.error_code, result.error, target=str(target))
                if result.error_code == NOT_YET_AVAILABLE:
                    raise NotAvailableError(result.error, available_at=result.available_at)
                raise ValidationError(result.error, code=INVALID_STATUS)

            if result.changed:
                await self.jobs.save(result.job)

        self.log.log_transition(
            job_id,
            from_status=job.status.value,
            to_status=result.job.status.value,
            changed=result.changed,
        )
        return result.job

    async def advance_job_stop(self, job_id: str) -> Job:
        """Mark the active extra stop as visited."""
        async with self.locks.hold(job_id):
            job = await self._require_job(job_id)
            if not job.has_pending_stops:
                return job

            updated = advance_stop(job, self.clock())
            await self.jobs.save(updated)

        self.log.logger.info(
            "job_stop_advanced",
            job_id=job_id,
            stop_index=updated.stop_index,
            stops=len(updated.extra_stops),
        )
        return updated

    async def start_window(self, job_id: str) -> dict[str, Any]:
        """Whether a job may be started now, and from when."""
        job = await self._require_job(job_id)
        now = self.clock()

        return {
            "job_id": job.id,
            "status": job.status,
            "open": is_start_window_open(
                job.scheduled_date, job.scheduled_time, now, job.scheduled_at
            ),
            "available_at": start_window_opens_at(job),
            "server_time": now,
        }
