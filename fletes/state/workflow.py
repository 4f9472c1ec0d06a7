"""Job lifecycle state machine.

A job moves strictly forward through ``JobStatus``. Every transition stamps
the lifecycle events it starts or ends, and a stamp already present is never
overwritten, so retrying a transition is harmless. The only gated transition
is ``PENDING -> TO_PICKUP``, which waits for the start window: one hour before
the scheduled instant, with no closing bound.

All functions here are pure: they return new ``Job`` objects and leave their
input untouched, so a failed store write never leaks a half-applied change.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel

from fletes.exceptions import ValidationError
from fletes.models.job import Job, JobPatch, JobStatus, Location
from fletes.utils.clock import from_epoch_ms, to_epoch_ms

# Schedules are entered in Argentina local time, which observes no DST.
SCHEDULE_TZ = timezone(timedelta(hours=-3))

START_WINDOW_LEAD_MS = 3_600_000

INVALID_STATUS = "INVALID_STATUS"
NOT_YET_AVAILABLE = "NOT_YET_AVAILABLE"


class JobTransitions:
    """Valid job status transitions and the events each one stamps."""

    TRANSITIONS = {
        JobStatus.PENDING: JobStatus.TO_PICKUP,
        JobStatus.TO_PICKUP: JobStatus.LOADING,
        JobStatus.LOADING: JobStatus.TO_DROPOFF,
        JobStatus.TO_DROPOFF: JobStatus.UNLOADING,
        JobStatus.UNLOADING: JobStatus.DONE,
    }

    EVENT_STAMPS = {
        JobStatus.TO_PICKUP: ("start_job_at",),
        JobStatus.LOADING: ("start_loading_at",),
        JobStatus.TO_DROPOFF: ("end_loading_at", "start_trip_at"),
        JobStatus.UNLOADING: ("end_trip_at", "start_unloading_at"),
        JobStatus.DONE: ("end_unloading_at",),
    }

    @classmethod
    def can_transition(cls, from_state: JobStatus, to_state: JobStatus) -> bool:
        """Check if a state transition is valid. Retries of the current state are."""
        return from_state == to_state or cls.TRANSITIONS.get(from_state) == to_state


class TransitionResult(BaseModel):
    """Outcome of a transition request."""

    success: bool
    job: Job | None = None
    changed: bool = False
    error_code: str | None = None
    error: str | None = None
    available_at: datetime | None = None


def parse_status(value: Any) -> JobStatus | None:
    """Resolve a status name, or None if unknown."""
    if isinstance(value, JobStatus):
        return value
    try:
        return JobStatus(str(value).strip().upper())
    except ValueError:
        return None


def compute_scheduled_at(
    scheduled_date: str | None,
    scheduled_time: str | None,
) -> int | None:
    """Epoch ms of a local schedule, or None when missing or malformed."""
    if not scheduled_date or not scheduled_time:
        return None

    date_parts = str(scheduled_date).split("-")
    time_parts = str(scheduled_time).split(":")
    if len(date_parts) != 3 or len(time_parts) < 2:
        return None

    try:
        year, month, day = (int(part) for part in date_parts)
        hour, minute = int(time_parts[0]), int(time_parts[1])
        scheduled = datetime(year, month, day, hour, minute, tzinfo=SCHEDULE_TZ)
    except ValueError:
        return None

    return to_epoch_ms(scheduled)


def _resolve_scheduled_at(
    scheduled_date: str | None,
    scheduled_time: str | None,
    scheduled_at: int | None,
) -> int | None:
    computed = compute_scheduled_at(scheduled_date, scheduled_time)
    return computed if computed is not None else scheduled_at


def is_start_window_open(
    scheduled_date: str | None,
    scheduled_time: str | None,
    now: datetime,
    scheduled_at: int | None = None,
) -> bool:
    """Check if a pending job may be started at ``now``."""
    scheduled_ms = _resolve_scheduled_at(scheduled_date, scheduled_time, scheduled_at)
    if scheduled_ms is None:
        return True
    return to_epoch_ms(now) >= scheduled_ms - START_WINDOW_LEAD_MS


def start_window_opens_at(job: Job) -> datetime | None:
    """Instant the start window opens, or None when the job is unscheduled."""
    scheduled_ms = _resolve_scheduled_at(job.scheduled_date, job.scheduled_time, job.scheduled_at)
    if scheduled_ms is None:
        return None
    return from_epoch_ms(scheduled_ms - START_WINDOW_LEAD_MS)


def _stamp_events(job: Job, status: JobStatus, now: datetime) -> None:
    for event in JobTransitions.EVENT_STAMPS.get(status, ()):
        if getattr(job.timestamps, event) is None:
            setattr(job.timestamps, event, now)


def request_transition(job: Job, target: Any, now: datetime) -> TransitionResult:
    """
    Move a job towards ``target``.

    Args:
        job: Current job record (not modified)
        target: Requested status, as a ``JobStatus`` or its name
        now: Instant used for the window check and the event stamps

    Returns:
        TransitionResult with the updated job, or the rejection code
    """
    target_status = parse_status(target)
    if target_status is None:
        return TransitionResult(
            success=False,
            error_code=INVALID_STATUS,
            error=f"Unknown status '{target}'",
        )

    if job.status == JobStatus.DONE and target_status != JobStatus.DONE:
        return TransitionResult(
            success=False,
            error_code=INVALID_STATUS,
            error="Job is already completed",
        )

    if not JobTransitions.can_transition(job.status, target_status):
        direction = "back" if target_status.rank < job.status.rank else "ahead"
        return TransitionResult(
            success=False,
            error_code=INVALID_STATUS,
            error=f"Cannot move {direction} from {job.status.value} to {target_status.value}",
        )

    if (
        job.status == JobStatus.PENDING
        and target_status == JobStatus.TO_PICKUP
        and not is_start_window_open(job.scheduled_date, job.scheduled_time, now, job.scheduled_at)
    ):
        return TransitionResult(
            success=False,
            error_code=NOT_YET_AVAILABLE,
            error="Job cannot be started yet",
            available_at=start_window_opens_at(job),
        )

    updated = job.model_copy(deep=True)
    _stamp_events(updated, target_status, now)

    if target_status == JobStatus.TO_DROPOFF and job.status != JobStatus.TO_DROPOFF:
        updated.stop_index = min(max(updated.stop_index, 0), len(updated.extra_stops))

    updated.status = target_status
    changed = updated.status != job.status or updated.timestamps != job.timestamps
    if changed:
        updated.updated_at = now

    return TransitionResult(success=True, job=updated, changed=changed)


def advance_stop(job: Job, now: datetime | None = None) -> Job:
    """Mark the active extra stop as visited. A no-op past the last stop."""
    if not job.has_pending_stops:
        return job.model_copy(deep=True)

    updated = job.model_copy(deep=True)
    updated.stop_index = min(job.stop_index + 1, len(job.extra_stops))
    if now is not None:
        updated.updated_at = now
    return updated


def apply_patch(job: Job, patch: JobPatch, now: datetime) -> Job:
    """Merge operator edits onto a job."""
    if job.status == JobStatus.DONE:
        raise ValidationError("Completed jobs cannot be edited")

    changes = patch.changes()
    for name in JobPatch.REQUIRED_FIELDS:
        if name in changes and changes[name] is None:
            raise ValidationError(f"{name} cannot be cleared")

    updated = job.model_copy(deep=True)
    for name, value in changes.items():
        setattr(updated, name, value)

    if "scheduled_date" in changes or "scheduled_time" in changes:
        updated.scheduled_at = compute_scheduled_at(updated.scheduled_date, updated.scheduled_time)

    if "extra_stops" in changes:
        updated.stop_index = min(updated.stop_index, len(updated.extra_stops))

    updated.updated_at = now
    return updated


def current_target(job: Job) -> Location:
    """Where the driver is headed next."""
    if job.status in (JobStatus.PENDING, JobStatus.TO_PICKUP, JobStatus.LOADING):
        return job.pickup
    if job.has_pending_stops:
        return job.extra_stops[job.stop_index]
    return job.dropoff
