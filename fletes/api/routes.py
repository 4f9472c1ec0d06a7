"""API routes for the dispatch service."""

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from fletes.api.websocket import publish_location_update
from fletes.config import get_settings
from fletes.models.billing import BillingResult
from fletes.models.driver import (
    DriverCreate,
    DriverLocation,
    DriverLocationReport,
    DriverPatch,
    LocationUpdate,
)
from fletes.models.job import JobCreate, JobPatch, JobStatus
from fletes.models.rates import RateSettings, RateValue
from fletes.services import (
    DriverService,
    JobService,
    LocationService,
    RateService,
    ReportService,
)
from fletes.services.reports import EXPORT_FILENAME
from fletes.state.manager import get_state_manager
from fletes.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


# Request/Response Models


class TransitionRequest(BaseModel):
    """Request to move a job to another status."""

    status: str


class PositionFixRequest(BaseModel):
    """A raw position fix attributed to a job."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)
    recorded_at: int | None = None  # epoch ms


class PositionFixResponse(BaseModel):
    """Distance of a job after a fix."""

    job_id: str
    ignored: bool
    distance_meters: int | None = None


class RateResponse(BaseModel):
    """A single rate setting."""

    key: str
    value: Decimal | None


# Service dependencies


async def get_job_service() -> JobService:
    """Get job service instance."""
    return JobService(await get_state_manager())


async def get_driver_service() -> DriverService:
    """Get driver service instance."""
    return DriverService(await get_state_manager())


async def get_location_service() -> LocationService:
    """Get location service instance."""
    return LocationService(await get_state_manager())


async def get_rate_service() -> RateService:
    """Get rate service instance."""
    return RateService(await get_state_manager())


async def get_report_service() -> ReportService:
    """Get report service instance."""
    return ReportService(await get_state_manager())


# Jobs


@router.post("/jobs", status_code=status.HTTP_201_CREATED)
async def create_job(request: JobCreate) -> dict[str, Any]:
    """Create a job. New jobs start PENDING."""
    service = await get_job_service()
    job = await service.create_job(request)
    return job.public_dict()


@router.get("/jobs")
async def list_jobs(
    driver_id: str | None = None,
    driver_code: str | None = None,
    status: JobStatus | None = None,
) -> list[dict[str, Any]]:
    """
    List jobs, newest first.

    A driver app passes its ``driver_id`` or ``driver_code`` to only see its
    own jobs.
    """
    service = await get_job_service()
    jobs = await service.list_jobs(driver_id=driver_id, driver_code=driver_code, status=status)
    return [job.public_dict() for job in jobs]


@router.get("/jobs/history")
async def list_history() -> list[dict[str, Any]]:
    """Completed jobs with their bill."""
    service = await get_report_service()
    return [
        {**job.public_dict(), "billing": billing.model_dump(mode="json")}
        for job, billing in await service.history()
    ]


@router.get("/jobs/history/export")
async def export_history() -> Response:
    """Completed jobs as a CSV download."""
    service = await get_report_service()
    content = await service.export_history_csv()

    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    driver_id: str | None = None,
    driver_code: str | None = None,
) -> dict[str, Any]:
    """Get a job."""
    service = await get_job_service()
    job = await service.get_job(job_id, driver_id=driver_id, driver_code=driver_code)
    return job.public_dict()


@router.patch("/jobs/{job_id}")
async def patch_job(job_id: str, request: JobPatch) -> dict[str, Any]:
    """Edit a job. Completed jobs cannot be edited."""
    service = await get_job_service()
    job = await service.patch_job(job_id, request)
    return job.public_dict()


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(job_id: str) -> Response:
    """Delete a job."""
    service = await get_job_service()
    await service.delete_job(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/jobs/{job_id}/transition")
async def transition_job(job_id: str, request: TransitionRequest) -> dict[str, Any]:
    """
    Move a job to the next status.

    Answers 409 ``NOT_YET_AVAILABLE`` with ``available_at`` while the start
    window of a pending job is closed.
    """
    service = await get_job_service()
    job = await service.transition_job(job_id, request.status)
    return job.public_dict()


@router.post("/jobs/{job_id}/advance-stop")
async def advance_job_stop(job_id: str) -> dict[str, Any]:
    """Mark the current extra stop as visited."""
    service = await get_job_service()
    job = await service.advance_job_stop(job_id)
    return job.public_dict()


@router.post("/jobs/{job_id}/positions", response_model=PositionFixResponse)
async def record_position_fix(job_id: str, request: PositionFixRequest) -> PositionFixResponse:
    """Feed a raw fix into a job's distance tracking. Ignored fixes are not errors."""
    service = await get_location_service()
    result = await service.record_position_fix(
        job_id,
        lat=request.lat,
        lng=request.lng,
        accuracy=request.accuracy,
        recorded_at=request.recorded_at,
    )

    if result is None:
        return PositionFixResponse(job_id=job_id, ignored=True)

    return PositionFixResponse(
        job_id=job_id,
        ignored=False,
        distance_meters=result["distance_meters"],
    )


@router.get("/jobs/{job_id}/billing", response_model=BillingResult)
async def get_job_billing(job_id: str) -> BillingResult:
    """Bill of a job with the current rates."""
    service = await get_report_service()
    return await service.billing_for_job(job_id)


@router.get("/jobs/{job_id}/start-window")
async def get_start_window(job_id: str) -> dict[str, Any]:
    """Whether a job can be started now."""
    service = await get_job_service()
    return await service.start_window(job_id)


# Drivers


@router.post("/drivers", status_code=status.HTTP_201_CREATED)
async def create_driver(request: DriverCreate) -> dict[str, Any]:
    """Register a driver."""
    service = await get_driver_service()
    driver = await service.create_driver(request)
    return driver.model_dump(mode="json")


@router.get("/drivers")
async def list_drivers(code: str | None = None) -> Any:
    """List drivers, or log one in when ``code`` is given."""
    service = await get_driver_service()

    if code is not None:
        driver = await service.login(code)
        return driver.model_dump(mode="json")

    return [driver.model_dump(mode="json") for driver in await service.list_drivers()]


@router.get("/drivers/{driver_id}")
async def get_driver(driver_id: str) -> dict[str, Any]:
    """Get a driver."""
    service = await get_driver_service()
    driver = await service.get_driver(driver_id)
    return driver.model_dump(mode="json")


@router.patch("/drivers/{driver_id}")
async def patch_driver(driver_id: str, request: DriverPatch) -> dict[str, Any]:
    """Edit a driver."""
    service = await get_driver_service()
    driver = await service.patch_driver(driver_id, request)
    return driver.model_dump(mode="json")


@router.delete("/drivers/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_driver(driver_id: str) -> Response:
    """Delete a driver. Its jobs stay, unassigned."""
    service = await get_driver_service()
    await service.delete_driver(driver_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Driver locations


@router.get("/driver-locations", response_model=list[DriverLocation])
async def list_driver_locations() -> list[DriverLocation]:
    """Latest position of every driver."""
    service = await get_location_service()
    return await service.list_locations()


@router.post("/driver-locations", response_model=LocationUpdate)
async def report_driver_location(request: DriverLocationReport) -> LocationUpdate:
    """Store a driver's position and track it against the reported job."""
    state_manager = await get_state_manager()
    service = LocationService(state_manager)
    update = await service.report_location(request)
    logger.debug(
        "driver_location_reported",
        driver_id=update.location.driver_id,
        job_id=update.job_id,
        outcome=update.outcome,
    )

    if get_settings().broadcast_locations:
        await publish_location_update(update, state_manager)

    return update


# Rate settings


@router.get("/settings", response_model=RateSettings)
async def get_rates() -> RateSettings:
    """All rate settings."""
    service = await get_rate_service()
    return await service.get_rates()


@router.get("/settings/{slug}", response_model=RateResponse)
async def get_rate(slug: str) -> RateResponse:
    """A single rate setting."""
    service = await get_rate_service()
    key = service.resolve_key(slug)
    return RateResponse(key=key.value, value=await service.get_rate(key))


@router.put("/settings/{slug}", response_model=RateResponse)
async def set_rate(slug: str, request: RateValue) -> RateResponse:
    """Set a rate setting. A null value clears it."""
    service = await get_rate_service()
    key = service.resolve_key(slug)
    value = await service.set_rate(key, request.value)
    return RateResponse(key=key.value, value=value)
