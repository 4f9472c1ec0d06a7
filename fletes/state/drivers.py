"""Driver and driver location persistence."""

from fletes.models.driver import Driver, DriverLocation, normalize_code
from fletes.state.manager import StateManager
from fletes.utils.logging import get_logger

logger = get_logger(__name__)

DRIVERS_INDEX = "drivers"
DRIVER_CODES = "driver_codes"
LOCATIONS_INDEX = "driver_locations"


class DriverRepository:
    """Stores driver profiles with a unique, case-insensitive code index."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _driver_key(self, driver_id: str) -> str:
        """Generate Redis key for a driver."""
        return f"driver:{driver_id}"

    async def get(self, driver_id: str) -> Driver | None:
        """Retrieve a driver by ID."""
        data = await self.state.get(self._driver_key(driver_id))

        if not data:
            return None

        return Driver(**data)

    async def get_by_code(self, code: str) -> Driver | None:
        """Retrieve a driver by login code."""
        codes = await self.state.hgetall(DRIVER_CODES)
        driver_id = codes.get(normalize_code(code))

        if not driver_id:
            return None

        return await self.get(str(driver_id))

    async def save(self, driver: Driver) -> Driver:
        """Write a driver and its code entry."""
        previous = await self.get(driver.id)

        await self.state.set(self._driver_key(driver.id), driver.model_dump(mode="json"))
        await self.state.sadd(DRIVERS_INDEX, driver.id)

        if previous and previous.code != driver.code:
            await self.state.hdel(DRIVER_CODES, previous.code)
        await self.state.hset(DRIVER_CODES, driver.code, driver.id)

        return driver

    async def list(self) -> list[Driver]:
        """List drivers, newest first."""
        driver_ids = sorted(await self.state.smembers(DRIVERS_INDEX))

        documents = await self.state.mget([self._driver_key(driver_id) for driver_id in driver_ids])
        drivers = [Driver(**data) for data in documents if data]

        drivers.sort(key=lambda driver: driver.created_at, reverse=True)
        return drivers

    async def delete(self, driver_id: str) -> bool:
        """Delete a driver. Returns whether it existed."""
        driver = await self.get(driver_id)
        if not driver:
            return False

        await self.state.delete(self._driver_key(driver_id))
        await self.state.srem(DRIVERS_INDEX, driver_id)
        await self.state.hdel(DRIVER_CODES, driver.code)

        logger.info("driver_deleted", driver_id=driver_id)
        return True


class DriverLocationRepository:
    """Latest-only driver positions. Upserted, never historized."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _location_key(self, driver_id: str) -> str:
        """Generate Redis key for a driver's position."""
        return f"driver_location:{driver_id}"

    async def upsert(self, location: DriverLocation) -> DriverLocation:
        """Replace the stored position of a driver."""
        await self.state.set(
            self._location_key(location.driver_id),
            location.model_dump(mode="json"),
        )
        await self.state.sadd(LOCATIONS_INDEX, location.driver_id)
        return location

    async def get(self, driver_id: str) -> DriverLocation | None:
        """Latest position of a driver."""
        data = await self.state.get(self._location_key(driver_id))

        if not data:
            return None

        return DriverLocation(**data)

    async def list(self) -> list[DriverLocation]:
        """Latest positions of all drivers, most recent first."""
        driver_ids = sorted(await self.state.smembers(LOCATIONS_INDEX))

        documents = await self.state.mget(
            [self._location_key(driver_id) for driver_id in driver_ids]
        )
        locations = [DriverLocation(**data) for data in documents if data]

        locations.sort(key=lambda location: location.updated_at, reverse=True)
        return locations

    async def delete(self, driver_id: str) -> None:
        """Forget the position of a driver."""
        await self.state.delete(self._location_key(driver_id))
        await self.state.srem(LOCATIONS_INDEX, driver_id)
