"""Driver and driver location models."""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from fletes.utils.clock import utcnow


def normalize_code(code: str) -> str:
    """Driver codes are case-insensitive and stored upper-case."""
    return code.strip().upper()


class Driver(BaseModel):
    """Driver profile."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    code: str
    phone: str | None = None
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DriverCreate(BaseModel):
    """Payload for registering a driver."""

    id: str | None = None
    name: str
    code: str
    phone: str | None = None
    active: bool = True

    @field_validator("name", "code")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject blank names and codes."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class DriverPatch(BaseModel):
    """Driver profile edits."""

    name: str | None = None
    code: str | None = None
    phone: str | None = None
    active: bool | None = None

    @field_validator("name", "code")
    @classmethod
    def validate_not_blank(cls, v: str | None) -> str | None:
        """Reject blank names and codes."""
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v.strip() if v is not None else None


class DriverLocation(BaseModel):
    """Latest known position of a driver. One per driver, overwritten on report."""

    driver_id: str
    lat: float
    lng: float
    accuracy: float | None = None
    heading: float | None = None
    speed: float | None = None
    job_id: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)


class DriverLocationReport(BaseModel):
    """Position report sent by the driver app."""

    driver_id: str | None = None
    driver_code: str | None = None
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)
    heading: float | None = None
    speed: float | None = None
    job_id: str | None = None
    recorded_at: int | None = None  # epoch ms, defaults to server clock

    @model_validator(mode="after")
    def validate_driver_reference(self) -> "DriverLocationReport":
        """A report must name its driver by id or code."""
        if not (self.driver_id or "").strip() and not (self.driver_code or "").strip():
            raise ValueError("driver_id or driver_code is required")
        return self


class LocationUpdate(BaseModel):
    """Result of a driver location report."""

    location: DriverLocation
    job_id: str | None = None
    outcome: str | None = None  # distance filter outcome, when a job was tracked
    distance_meters: int | None = None
    distance_to_target: int | None = None
    eta_minutes: int | None = None
    raised_flags: list[str] = Field(default_factory=list)
