"""Data models for the dispatch service."""

from fletes.models.billing import BillingResult
from fletes.models.driver import (
    Driver,
    DriverCreate,
    DriverLocation,
    DriverLocationReport,
    DriverPatch,
    LocationUpdate,
)
from fletes.models.job import (
    ACTIVE_STATUSES,
    Job,
    JobCreate,
    JobPatch,
    JobStatus,
    JobTimestamps,
    Location,
    ProximityFlags,
    TrackPoint,
)
from fletes.models.rates import RateKey, RateSettings, RateValue

__all__ = [
    # Job
    "ACTIVE_STATUSES",
    "Job",
    "JobCreate",
    "JobPatch",
    "JobStatus",
    "JobTimestamps",
    "Location",
    "ProximityFlags",
    "TrackPoint",
    # Driver
    "Driver",
    "DriverCreate",
    "DriverLocation",
    "DriverLocationReport",
    "DriverPatch",
    "LocationUpdate",
    # Rates
    "RateKey",
    "RateSettings",
    "RateValue",
    # Billing
    "BillingResult",
]
