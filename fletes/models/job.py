"""Job-related data models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from fletes.utils.clock import utcnow


class JobStatus(str, Enum):
    """Job lifecycle, in order."""

    PENDING = "PENDING"
    TO_PICKUP = "TO_PICKUP"
    LOADING = "LOADING"
    TO_DROPOFF = "TO_DROPOFF"
    UNLOADING = "UNLOADING"
    DONE = "DONE"

    @property
    def rank(self) -> int:
        """Position of the status in the lifecycle."""
        return STATUS_ORDER.index(self)

    @property
    def is_active(self) -> bool:
        """Check if position fixes count towards distance."""
        return self in ACTIVE_STATUSES

    @property
    def is_driving(self) -> bool:
        """Check if the driver is on the road towards a target."""
        return self in DRIVING_STATUSES


STATUS_ORDER: list[JobStatus] = list(JobStatus)

ACTIVE_STATUSES = frozenset(
    {JobStatus.TO_PICKUP, JobStatus.LOADING, JobStatus.TO_DROPOFF, JobStatus.UNLOADING}
)

DRIVING_STATUSES = frozenset({JobStatus.TO_PICKUP, JobStatus.TO_DROPOFF})


class Location(BaseModel):
    """Geographic location with a display address."""

    address: str
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class JobTimestamps(BaseModel):
    """Lifecycle event instants. Each is set once and never overwritten."""

    start_job_at: datetime | None = None
    start_loading_at: datetime | None = None
    end_loading_at: datetime | None = None
    start_trip_at: datetime | None = None
    end_trip_at: datetime | None = None
    start_unloading_at: datetime | None = None
    end_unloading_at: datetime | None = None


class ProximityFlags(BaseModel):
    """One-shot proximity notifications already raised for a job."""

    near_pickup_sent: bool = False
    arrived_pickup_sent: bool = False
    near_dropoff_sent: bool = False
    arrived_dropoff_sent: bool = False


class TrackPoint(BaseModel):
    """Reference point of the distance filter."""

    lat: float
    lng: float
    at: int  # epoch ms


class Job(BaseModel):
    """A freight job from scheduling to delivery."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    client_name: str
    client_phone: str | None = None
    description: str | None = None
    notes: str | None = None

    # Route
    pickup: Location
    dropoff: Location
    extra_stops: list[Location] = Field(default_factory=list)
    stop_index: int = Field(default=0, ge=0)

    # Assignment
    driver_id: str | None = None
    helpers_count: int = Field(default=0, ge=0)
    estimated_duration_minutes: int | None = Field(default=None, gt=0)

    # Scheduling
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    scheduled_at: int | None = None  # epoch ms

    # Lifecycle
    status: JobStatus = JobStatus.PENDING
    timestamps: JobTimestamps = Field(default_factory=JobTimestamps)
    flags: ProximityFlags = Field(default_factory=ProximityFlags)

    # Tracking
    distance_meters: int = Field(default=0, ge=0)
    last_track_point: TrackPoint | None = None

    # Billing
    charged_amount: Decimal | None = Field(default=None, ge=0)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def has_pending_stops(self) -> bool:
        """Check if extra stops remain while heading to the dropoff."""
        return self.status == JobStatus.TO_DROPOFF and self.stop_index < len(self.extra_stops)

    def public_dict(self) -> dict[str, Any]:
        """JSON form returned to API clients."""
        return self.model_dump(mode="json", exclude={"last_track_point"})


class JobCreate(BaseModel):
    """Payload for creating a job. New jobs always start PENDING."""

    id: str | None = None
    client_name: str
    client_phone: str | None = None
    description: str | None = None
    notes: str | None = None
    pickup: Location
    dropoff: Location
    extra_stops: list[Location] = Field(default_factory=list)
    driver_id: str | None = None
    helpers_count: int = Field(default=0, ge=0)
    estimated_duration_minutes: int | None = Field(default=None, gt=0)
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    charged_amount: Decimal | None = Field(default=None, ge=0)

    @field_validator("client_name")
    @classmethod
    def validate_client_name(cls, v: str) -> str:
        """Require a non-blank client name."""
        if not v.strip():
            raise ValueError("client_name must not be blank")
        return v.strip()


class JobPatch(BaseModel):
    """Operator edits. Lifecycle fields are only changed by transitions."""

    client_name: str | None = None
    client_phone: str | None = None
    description: str | None = None
    notes: str | None = None
    pickup: Location | None = None
    dropoff: Location | None = None
    extra_stops: list[Location] | None = None
    driver_id: str | None = None
    helpers_count: int | None = Field(default=None, ge=0)
    estimated_duration_minutes: int | None = Field(default=None, gt=0)
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    charged_amount: Decimal | None = Field(default=None, ge=0)

    # Fields that may not be cleared with an explicit null
    REQUIRED_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"client_name", "pickup", "dropoff", "extra_stops", "helpers_count"}
    )

    def changes(self) -> dict[str, Any]:
        """Fields explicitly sent by the client."""
        return {name: getattr(self, name) for name in self.model_fields_set}
