"""Rate settings models."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class RateKey(str, Enum):
    """Keys of the rate settings store."""

    HOURLY_RATE = "hourly_rate"
    HELPER_HOURLY_RATE = "helper_hourly_rate"
    FIXED_MONTHLY_COST = "fixed_monthly_cost"
    TRIP_COST_PER_HOUR = "trip_cost_per_hour"
    TRIP_COST_PER_KM = "trip_cost_per_km"

    @property
    def slug(self) -> str:
        """URL form of the key."""
        return self.value.replace("_", "-")

    @classmethod
    def from_slug(cls, slug: str) -> "RateKey | None":
        """Resolve a URL slug, or None if unknown."""
        try:
            return cls(slug.replace("-", "_"))
        except ValueError:
            return None


class RateSettings(BaseModel):
    """Configured rates. A missing value means unset."""

    hourly_rate: Decimal | None = Field(default=None, ge=0)
    helper_hourly_rate: Decimal | None = Field(default=None, ge=0)
    fixed_monthly_cost: Decimal | None = Field(default=None, ge=0)
    trip_cost_per_hour: Decimal | None = Field(default=None, ge=0)
    trip_cost_per_km: Decimal | None = Field(default=None, ge=0)


class RateValue(BaseModel):
    """Body of a single rate update. Null clears the value."""

    value: Decimal | None = Field(default=None, ge=0)
