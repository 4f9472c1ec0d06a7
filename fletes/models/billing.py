"""Billing result model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class BillingResult(BaseModel):
    """Amounts derived from a job's active time and the configured rates."""

    job_id: str

    # Timing
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration_ms: int | None = None
    duration_minutes: int | None = None
    billed_hours: int | None = None

    # Rates
    hourly_rate: Decimal | None = None
    helper_hourly_rate: Decimal | None = None
    helpers_count: int = 0

    # Totals
    trip_total: Decimal | None = None
    helpers_total: Decimal | None = None
    grand_total: Decimal | None = None
    charged_amount: Decimal | None = None
    billed_total: Decimal | None = None
