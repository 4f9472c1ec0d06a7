"""Position tracking: distance filtering, proximity and display smoothing."""

from fletes.tracking.camera import CameraController, ViewMode
from fletes.tracking.filter import FilterResult, FixOutcome, PositionFix, apply_fix
from fletes.tracking.geo import haversine_m
from fletes.tracking.smoother import DisplayedPosition, PositionSmoother, SmoothingLoop
from fletes.tracking.sync import LocationReportThrottle

__all__ = [
    "CameraController",
    "ViewMode",
    "FilterResult",
    "FixOutcome",
    "PositionFix",
    "apply_fix",
    "haversine_m",
    "DisplayedPosition",
    "PositionSmoother",
    "SmoothingLoop",
    "LocationReportThrottle",
]
