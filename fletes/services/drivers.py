"""Driver service - driver profiles and code login."""

from fletes.exceptions import ConflictError, NotFoundError, ValidationError
from fletes.models.driver import Driver, DriverCreate, DriverPatch, normalize_code
from fletes.state.drivers import DriverLocationRepository, DriverRepository
from fletes.state.jobs import JobRepository
from fletes.state.locks import KeyedLock, get_job_locks
from fletes.state.manager import StateManager
from fletes.utils.clock import Clock, utcnow
from fletes.utils.logging import get_logger

logger = get_logger(__name__)


class DriverService:
    """Manages drivers. Deleting one unassigns its jobs, never deletes them."""

    def __init__(
        self,
        state_manager: StateManager,
        locks: KeyedLock | None = None,
        clock: Clock = utcnow,
    ):
        self.drivers = DriverRepository(state_manager)
        self.locations = DriverLocationRepository(state_manager)
        self.jobs = JobRepository(state_manager)
        self.locks = locks or get_job_locks()
        self.clock = clock

    async def _require_driver(self, driver_id: str) -> Driver:
        driver = await self.drivers.get(driver_id)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")
        return driver

    async def _check_code_free(self, code: str, driver_id: str | None = None) -> None:
        holder = await self.drivers.get_by_code(code)
        if holder is not None and holder.id != driver_id:
            raise ConflictError(f"Driver code {code} is already in use")

    async def create_driver(self, payload: DriverCreate) -> Driver:
        """Register a driver with a unique code."""
        code = normalize_code(payload.code)
        await self._check_code_free(code)
        if payload.id and await self.drivers.get(payload.id) is not None:
            raise ConflictError(f"Driver {payload.id} already exists")

        now = self.clock()
        driver = Driver(
            **payload.model_dump(exclude_none=True, exclude={"code"}),
            code=code,
            created_at=now,
            updated_at=now,
        )
        await self.drivers.save(driver)

        logger.info("driver_created", driver_id=driver.id, code=driver.code)
        return driver

    async def list_drivers(self) -> list[Driver]:
        """List drivers, newest first."""
        return await self.drivers.list()

    async def get_driver(self, driver_id: str) -> Driver:
        """Fetch a driver by id."""
        return await self._require_driver(driver_id)

    async def login(self, code: str) -> Driver:
        """Resolve a driver from a login code."""
        if not code or not code.strip():
            raise ValidationError("Driver code is required")

        driver = await self.drivers.get_by_code(code)
        if driver is None or not driver.active:
            raise NotFoundError("Driver not found")

        logger.info("driver_logged_in", driver_id=driver.id)
        return driver

    async def patch_driver(self, driver_id: str, patch: DriverPatch) -> Driver:
        """Edit a driver profile."""
        driver = await self._require_driver(driver_id)
        changes = patch.model_dump(exclude_unset=True)

        for name in ("name", "code", "active"):
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name} cannot be cleared")

        if "code" in changes:
            changes["code"] = normalize_code(changes["code"])
            await self._check_code_free(changes["code"], driver_id=driver_id)

        updated = driver.model_copy(update={**changes, "updated_at": self.clock()})
        await self.drivers.save(updated)

        logger.info("driver_patched", driver_id=driver_id, fields=sorted(changes))
        return updated

    async def delete_driver(self, driver_id: str) -> None:
        """Delete a driver, unassign its jobs and forget its last position."""
        await self._require_driver(driver_id)

        unassigned = 0
        for job_id in sorted(await self.jobs.assigned_to(driver_id)):
            async with self.locks.hold(job_id):
                job = await self.jobs.get(job_id)
                if job is None or job.driver_id != driver_id:
                    continue
                updated = job.model_copy(update={"driver_id": None, "updated_at": self.clock()})
                await self.jobs.save(updated)
                unassigned += 1

        await self.jobs.clear_driver_index(driver_id)
        await self.locations.delete(driver_id)
        await self.drivers.delete(driver_id)

        logger.info("driver_deleted", driver_id=driver_id, jobs_unassigned=unassigned)
