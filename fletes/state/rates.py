"""Rate settings persistence."""

from decimal import Decimal

from fletes.models.rates import RateKey, RateSettings
from fletes.state.manager import StateManager

RATES_KEY = "settings:rates"


class RateRepository:
    """Flat key-value store of rates, kept in a single Redis hash."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    async def get_all(self) -> RateSettings:
        """All configured rates."""
        stored = await self.state.hgetall(RATES_KEY)

        values = {}
        for key in RateKey:
            raw = stored.get(key.value)
            if raw is not None and raw != "":
                values[key.value] = Decimal(raw)

        return RateSettings(**values)

    async def get(self, key: RateKey) -> Decimal | None:
        """A single rate, or None if unset."""
        rates = await self.get_all()
        return getattr(rates, key.value)

    async def set(self, key: RateKey, value: Decimal | None) -> Decimal | None:
        """Store a rate. None clears it."""
        if value is None:
            await self.state.hdel(RATES_KEY, key.value)
        else:
            await self.state.hset(RATES_KEY, key.value, str(value))

        return await self.get(key)
