"""Remove every job, driver, location and rate from Redis."""

import asyncio
import sys

from fletes.state.drivers import DRIVER_CODES, DRIVERS_INDEX, LOCATIONS_INDEX
from fletes.state.jobs import JOBS_INDEX
from fletes.state.manager import StateManager
from fletes.state.rates import RATES_KEY

KEY_PATTERNS = ["job:*", "driver:*", "driver_location:*"]
FIXED_KEYS = [JOBS_INDEX, DRIVERS_INDEX, DRIVER_CODES, LOCATIONS_INDEX, RATES_KEY]


async def reset_all_state(keep_rates: bool = False) -> None:
    """Delete the dispatch keys, leaving unrelated keys in the database alone."""
    print("\n⚠️  WARNING: This will delete ALL jobs and drivers from Redis!")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print("Cancelled.")
        return

    print("\nResetting state...")

    state_manager = StateManager()
    await state_manager.connect()

    keys = [key for key in FIXED_KEYS if not (keep_rates and key == RATES_KEY)]
    if state_manager.redis_client:
        for pattern in KEY_PATTERNS:
            async for key in state_manager.redis_client.scan_iter(match=pattern):
                keys.append(key)
        if keys:
            await state_manager.redis_client.delete(*keys)

    await state_manager.disconnect()

    print(f"✓ Removed {len(keys)} keys from Redis\n")


if __name__ == "__main__":
    asyncio.run(reset_all_state(keep_rates="--keep-rates" in sys.argv[1:]))
