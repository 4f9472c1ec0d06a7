"""Rate settings service."""

from decimal import Decimal

from fletes.exceptions import NotFoundError
from fletes.models.rates import RateKey, RateSettings
from fletes.state.manager import StateManager
from fletes.state.rates import RateRepository
from fletes.utils.logging import get_logger

logger = get_logger(__name__)


class RateService:
    """Reads and writes the configured rates."""

    def __init__(self, state_manager: StateManager):
        self.rates = RateRepository(state_manager)

    @staticmethod
    def resolve_key(slug: str) -> RateKey:
        """Resolve a URL slug to a rate key."""
        key = RateKey.from_slug(slug)
        if key is None:
            raise NotFoundError(f"Unknown setting '{slug}'")
        return key

    async def get_rates(self) -> RateSettings:
        return await self.rates.get_all()

    async def get_rate(self, key: RateKey) -> Decimal | None:
        return await self.rates.get(key)

    async def set_rate(self, key: RateKey, value: Decimal | None) -> Decimal | None:
        """Store a rate; None clears it."""
        stored = await self.rates.set(key, value)
        logger.info("rate_updated", key=key.value, value=str(stored) if stored is not None else None)
        return stored
