"""Dispatch services operating on the stored jobs and drivers."""

from fletes.services.billing import compute_billing
from fletes.services.drivers import DriverService
from fletes.services.jobs import JobService
from fletes.services.locations import LocationService
from fletes.services.rates import RateService
from fletes.services.reports import ReportService

__all__ = [
    "compute_billing",
    "DriverService",
    "JobService",
    "LocationService",
    "RateService",
    "ReportService",
]
