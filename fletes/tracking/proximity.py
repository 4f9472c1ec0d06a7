"""Proximity notifications and ETA hints for the driver's current target."""

from fletes.models.job import Job, JobStatus, ProximityFlags
from fletes.state.workflow import current_target
from fletes.tracking.geo import haversine_m

FALLBACK_SPEED_MPS = 30 / 3.6
MIN_MOVING_SPEED_MPS = 1.0


def distance_to_target(job: Job, lat: float, lng: float) -> int:
    """Meters from a position to where the driver is headed next."""
    target = current_target(job)
    return haversine_m(lat, lng, target.lat, target.lng)


def estimate_eta_minutes(distance_m: float, speed_mps: float | None = None) -> int:
    """Minutes to cover ``distance_m``, at least one.

    Uses the reported speed while the vehicle is moving, otherwise an urban
    average of 30 km/h.
    """
    speed = speed_mps if speed_mps and speed_mps > MIN_MOVING_SPEED_MPS else FALLBACK_SPEED_MPS
    return max(1, round(distance_m / speed / 60))


def update_proximity_flags(
    job: Job,
    lat: float,
    lng: float,
    near_m: int,
    arrived_m: int,
) -> tuple[ProximityFlags, list[str]]:
    """
    Raise the near/arrived flags a position earns.

    Pickup flags are raised while heading to the pickup, dropoff flags while
    heading to the final dropoff with no extra stop left. Flags are never
    cleared.

    Returns:
        The new flags and the names of the flags raised by this position
    """
    flags = job.flags.model_copy()

    if job.status == JobStatus.TO_PICKUP:
        near_flag, arrived_flag = "near_pickup_sent", "arrived_pickup_sent"
    elif job.status == JobStatus.TO_DROPOFF and not job.has_pending_stops:
        near_flag, arrived_flag = "near_dropoff_sent", "arrived_dropoff_sent"
    else:
        return flags, []

    distance = distance_to_target(job, lat, lng)
    raised = []

    if distance <= near_m and not getattr(flags, near_flag):
        setattr(flags, near_flag, True)
        raised.append(near_flag)
    if distance <= arrived_m and not getattr(flags, arrived_flag):
        setattr(flags, arrived_flag, True)
        raised.append(arrived_flag)

    return flags, raised
