"""Report service - billing per job and the completed jobs export."""

import csv
import io
from datetime import datetime
from typing import Any

from fletes.exceptions import NotFoundError
from fletes.models.billing import BillingResult
from fletes.models.job import Job, JobStatus
from fletes.services.billing import compute_billing
from fletes.state.drivers import DriverRepository
from fletes.state.jobs import JobRepository
from fletes.state.manager import StateManager
from fletes.state.rates import RateRepository
from fletes.utils.logging import get_logger

logger = get_logger(__name__)

EXPORT_FILENAME = "historial-fletes.csv"

EXPORT_COLUMNS = [
    "job_id",
    "client_name",
    "driver_name",
    "description",
    "helpers_count",
    "pickup_address",
    "dropoff_address",
    "scheduled_date",
    "scheduled_time",
    "start_time",
    "end_time",
    "duration_minutes",
    "billed_hours",
    "hourly_rate",
    "total_value",
    "helper_hourly_rate",
    "helpers_total_value",
    "total_with_helpers",
    "charged_amount",
    "billed_total",
    "distance_meters",
    "created_at",
    "updated_at",
]


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ReportService:
    """Read-only reports over stored jobs."""

    def __init__(self, state_manager: StateManager):
        self.jobs = JobRepository(state_manager)
        self.drivers = DriverRepository(state_manager)
        self.rates = RateRepository(state_manager)

    async def billing_for_job(self, job_id: str) -> BillingResult:
        """Bill of a single job with the current rates."""
        job = await self.jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")

        return compute_billing(job, await self.rates.get_all())

    async def completed_jobs(self) -> list[Job]:
        """DONE jobs, newest first."""
        return [job for job in await self.jobs.list() if job.status == JobStatus.DONE]

    async def history(self) -> list[tuple[Job, BillingResult]]:
        """Completed jobs paired with their bill."""
        rates = await self.rates.get_all()
        return [(job, compute_billing(job, rates)) for job in await self.completed_jobs()]

    async def export_history_csv(self) -> str:
        """CSV of every completed job, billed by the started hour."""
        jobs = await self.completed_jobs()
        rates = await self.rates.get_all()
        driver_names = {driver.id: driver.name for driver in await self.drivers.list()}

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)

        for job in jobs:
            billing = compute_billing(job, rates)
            writer.writerow(
                _cell(value)
                for value in (
                    job.id,
                    job.client_name,
                    driver_names.get(job.driver_id, "") if job.driver_id else "",
                    job.description,
                    job.helpers_count,
                    job.pickup.address,
                    job.dropoff.address,
                    job.scheduled_date,
                    job.scheduled_time,
                    billing.start_at,
                    billing.end_at,
                    billing.duration_minutes,
                    billing.billed_hours,
                    billing.hourly_rate,
                    billing.trip_total,
                    billing.helper_hourly_rate,
                    billing.helpers_total,
                    billing.grand_total,
                    billing.charged_amount,
                    billing.billed_total,
                    job.distance_meters,
                    job.created_at,
                    job.updated_at,
                )
            )

        logger.info("history_exported", jobs=len(jobs))
        return buffer.getvalue()
