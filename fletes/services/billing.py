"""Billing calculator.

A job is billed by the started hour: its active time runs from the first
lifecycle event that was stamped to the last one, and is rounded up to whole
hours before rates are applied. A manual ``charged_amount`` on the job wins
over the computed total, which is still reported for auditing.
"""

from datetime import datetime
from decimal import Decimal

from fletes.models.billing import BillingResult
from fletes.models.job import Job
from fletes.models.rates import RateSettings
from fletes.utils.clock import to_epoch_ms

MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000

START_EVENTS = ("start_job_at", "start_loading_at", "start_trip_at", "start_unloading_at")
END_EVENTS = ("end_unloading_at", "end_trip_at")


def _first_stamped(job: Job, events: tuple[str, ...]) -> datetime | None:
    for event in events:
        value = getattr(job.timestamps, event)
        if value is not None:
            return value
    return None


def billed_hours_for(duration_ms: int) -> int:
    """Whole hours billed for a duration. Any started hour counts."""
    if duration_ms <= 0:
        return 0
    return -(-duration_ms // MS_PER_HOUR)


def compute_billing(job: Job, rates: RateSettings) -> BillingResult:
    """
    Compute the bill of a job.

    Args:
        job: The job, normally DONE
        rates: Configured rate settings

    Returns:
        BillingResult. Every derived amount is None when the job lacks a start
        or an end stamp.
    """
    result = BillingResult(
        job_id=job.id,
        helpers_count=job.helpers_count,
        hourly_rate=rates.hourly_rate,
        helper_hourly_rate=rates.helper_hourly_rate,
        charged_amount=job.charged_amount,
        billed_total=job.charged_amount,
    )

    start_at = _first_stamped(job, START_EVENTS)
    end_at = _first_stamped(job, END_EVENTS)
    result.start_at = start_at
    result.end_at = end_at

    if start_at is None or end_at is None:
        return result

    duration_ms = max(0, to_epoch_ms(end_at) - to_epoch_ms(start_at))
    billed_hours = billed_hours_for(duration_ms)

    result.duration_ms = duration_ms
    result.duration_minutes = round(duration_ms / MS_PER_MINUTE)
    result.billed_hours = billed_hours

    if rates.hourly_rate is not None:
        result.trip_total = billed_hours * rates.hourly_rate

    if job.helpers_count > 0 and rates.helper_hourly_rate is not None:
        result.helpers_total = billed_hours * rates.helper_hourly_rate * job.helpers_count

    totals = [value for value in (result.trip_total, result.helpers_total) if value is not None]
    if totals:
        result.grand_total = sum(totals, Decimal(0))

    if job.charged_amount is None:
        result.billed_total = result.grand_total

    return result
