"""Job persistence."""

from fletes.models.job import Job
from fletes.state.manager import StateManager
from fletes.utils.logging import get_logger

logger = get_logger(__name__)

JOBS_INDEX = "jobs"


class JobRepository:
    """Stores jobs as JSON documents with a global and a per-driver index."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _job_key(self, job_id: str) -> str:
        """Generate Redis key for a job."""
        return f"job:{job_id}"

    def _driver_jobs_key(self, driver_id: str) -> str:
        """Generate Redis key for the jobs assigned to a driver."""
        return f"driver:{driver_id}:jobs"

    async def get(self, job_id: str) -> Job | None:
        """Retrieve a job by ID."""
        data = await self.state.get(self._job_key(job_id))

        if not data:
            return None

        return Job(**data)

    async def exists(self, job_id: str) -> bool:
        """Check if a job exists."""
        return await self.state.exists(self._job_key(job_id))

    async def save(self, job: Job) -> Job:
        """Write a job and keep the driver index in step."""
        previous = await self.get(job.id)

        await self.state.set(self._job_key(job.id), job.model_dump(mode="json"))
        await self.state.sadd(JOBS_INDEX, job.id)

        if previous and previous.driver_id and previous.driver_id != job.driver_id:
            await self.state.srem(self._driver_jobs_key(previous.driver_id), job.id)
        if job.driver_id:
            await self.state.sadd(self._driver_jobs_key(job.driver_id), job.id)

        logger.debug("job_saved", job_id=job.id, status=job.status.value)
        return job

    async def list(self, driver_id: str | None = None) -> list[Job]:
        """List jobs, newest first, optionally only those of one driver."""
        index = self._driver_jobs_key(driver_id) if driver_id else JOBS_INDEX
        job_ids = sorted(await self.state.smembers(index))

        documents = await self.state.mget([self._job_key(job_id) for job_id in job_ids])
        jobs = [Job(**data) for data in documents if data]

        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs

    async def delete(self, job_id: str) -> bool:
        """Delete a job. Returns whether it existed."""
        job = await self.get(job_id)
        if not job:
            return False

        await self.state.delete(self._job_key(job_id))
        await self.state.srem(JOBS_INDEX, job_id)
        if job.driver_id:
            await self.state.srem(self._driver_jobs_key(job.driver_id), job_id)

        logger.info("job_deleted", job_id=job_id)
        return True

    async def assigned_to(self, driver_id: str) -> set[str]:
        """IDs of the jobs assigned to a driver."""
        return await self.state.smembers(self._driver_jobs_key(driver_id))

    async def clear_driver_index(self, driver_id: str) -> None:
        """Forget the per-driver index once its jobs are unassigned."""
        await self.state.delete(self._driver_jobs_key(driver_id))
