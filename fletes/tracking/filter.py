"""Streaming filter that turns GPS fixes into a cumulative travel distance.

Mobile fixes are noisy: a phone at rest drifts a few meters, fixes with poor
accuracy jump around, and a resumed app may report a position kilometers
away from the last one. The filter keeps one reference point per job and only
credits a step when it looks like real movement:

1. Fixes without finite coordinates, or for a job that is not active, are ignored.
2. The first fix, or the first after a gap longer than ``MAX_GAP_MS``, only
   re-anchors the reference point. The jump across the gap is not travel.
3. Stale fixes (not newer than the reference) and inaccurate fixes are dropped
   and the reference is kept, waiting for a better one.
4. Steps shorter than ``MIN_STEP_M`` are jitter. The reference moves so drift
   does not pile up, but nothing is added.
5. Steps implying more than ``MAX_SPEED_MPS`` are teleports and are dropped.
6. Anything else is added to the distance and becomes the new reference.

Sub-threshold movement is dropped rather than carried over, so very slow,
fine-grained maneuvering undercounts slightly. That is intentional: noise
immunity matters more here than the last few meters.
"""

from enum import Enum

from pydantic import BaseModel

from fletes.models.job import JobStatus, TrackPoint
from fletes.tracking.geo import haversine_m, is_valid_coordinate

MAX_ACCURACY_M = 60
MIN_STEP_M = 6
MAX_SPEED_MPS = 45
MAX_GAP_MS = 300_000


class FixOutcome(str, Enum):
    """What the filter did with a fix."""

    ACCEPTED = "accepted"
    JITTER = "jitter"
    REACQUIRED = "reacquired"
    REJECTED_STALE = "rejected_stale"
    REJECTED_ACCURACY = "rejected_accuracy"
    REJECTED_SPEED = "rejected_speed"
    IGNORED_INACTIVE = "ignored_inactive"
    IGNORED_INVALID = "ignored_invalid"

    @property
    def is_ignored(self) -> bool:
        """Check if the fix was not considered at all."""
        return self in (FixOutcome.IGNORED_INACTIVE, FixOutcome.IGNORED_INVALID)


class PositionFix(BaseModel):
    """A single GPS sample."""

    lat: float
    lng: float
    accuracy: float | None = None
    recorded_at: int  # epoch ms


class FilterResult(BaseModel):
    """Filter state after a fix, and what happened to it."""

    outcome: FixOutcome
    last_point: TrackPoint | None
    distance_meters: int
    step_meters: int = 0

    @property
    def changed(self) -> bool:
        """Check if the reference point or the distance moved."""
        return self.outcome in (FixOutcome.ACCEPTED, FixOutcome.JITTER, FixOutcome.REACQUIRED)


def apply_fix(
    status: JobStatus,
    last_point: TrackPoint | None,
    distance_meters: int,
    fix: PositionFix,
) -> FilterResult:
    """
    Run one fix through the filter.

    Args:
        status: Current job status
        last_point: Reference point from the previous accepted fix
        distance_meters: Distance accumulated so far
        fix: The new sample

    Returns:
        FilterResult with the new reference point and distance
    """

    def unchanged(outcome: FixOutcome) -> FilterResult:
        return FilterResult(
            outcome=outcome,
            last_point=last_point,
            distance_meters=distance_meters,
        )

    if not is_valid_coordinate(fix.lat, fix.lng):
        return unchanged(FixOutcome.IGNORED_INVALID)

    if not status.is_active:
        return unchanged(FixOutcome.IGNORED_INACTIVE)

    point = TrackPoint(lat=fix.lat, lng=fix.lng, at=fix.recorded_at)

    if last_point is None or fix.recorded_at - last_point.at > MAX_GAP_MS:
        return FilterResult(
            outcome=FixOutcome.REACQUIRED,
            last_point=point,
            distance_meters=distance_meters,
        )

    elapsed_ms = fix.recorded_at - last_point.at
    if elapsed_ms <= 0:
        return unchanged(FixOutcome.REJECTED_STALE)

    if fix.accuracy is not None and fix.accuracy > MAX_ACCURACY_M:
        return unchanged(FixOutcome.REJECTED_ACCURACY)

    step = haversine_m(last_point.lat, last_point.lng, fix.lat, fix.lng)
    if step < MIN_STEP_M:
        return FilterResult(
            outcome=FixOutcome.JITTER,
            last_point=point,
            distance_meters=distance_meters,
        )

    speed_mps = step / (elapsed_ms / 1000)
    if speed_mps > MAX_SPEED_MPS:
        return unchanged(FixOutcome.REJECTED_SPEED)

    return FilterResult(
        outcome=FixOutcome.ACCEPTED,
        last_point=point,
        distance_meters=distance_meters + step,
        step_meters=step,
    )
