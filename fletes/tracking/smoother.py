"""Client-side position smoothing for live map markers.

Raw fixes arrive every few seconds and jump. The smoother turns them into a
displayed position that glides from one fix to the next with an ease-out
curve, so a marker can be redrawn every frame without showing GPS jitter and
without trailing far behind a fast vehicle. Implausible jumps (app resume,
fix reacquisition) snap instead of animating across the map.

``PositionSmoother`` is the pure per-frame math. ``SmoothingLoop`` drives it
from an asyncio task and owns the start/cancel lifecycle, which follows the
selected job: switching jobs cancels whatever animation is in flight.
"""

import asyncio
import math
import time
from dataclasses import dataclass, replace
from typing import Callable

from fletes.tracking.geo import planar_distance_m
from fletes.utils.logging import get_logger

logger = get_logger(__name__)

SNAP_DISTANCE_M = 350
MS_PER_METER = 12
MIN_DURATION_MS = 300
MAX_DURATION_MS = 1200


@dataclass(frozen=True)
class DisplayedPosition:
    """A position as drawn on screen."""

    lat: float
    lng: float
    heading: float | None = None
    accuracy: float | None = None
    speed: float | None = None


@dataclass(frozen=True)
class Animation:
    """An in-flight glide between two positions."""

    start: DisplayedPosition
    target: DisplayedPosition
    start_time: float
    duration_ms: float


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def ease_out_cubic(t: float) -> float:
    return 1 - (1 - t) ** 3


def normalize_heading(value: float) -> float:
    """Fold a heading into [0, 360)."""
    return ((value % 360) + 360) % 360


def interpolate_heading(start: float, end: float, t: float) -> float:
    """Turn from ``start`` towards ``end`` along the shorter arc."""
    start = normalize_heading(start)
    end = normalize_heading(end)
    diff = end - start
    if diff > 180:
        diff -= 360
    if diff < -180:
        diff += 360
    return normalize_heading(start + diff * t)


class PositionSmoother:
    """Eases the displayed position towards each new raw fix."""

    def __init__(self) -> None:
        self.displayed: DisplayedPosition | None = None
        self.animation: Animation | None = None

    @property
    def is_animating(self) -> bool:
        """Check if a glide is in flight."""
        return self.animation is not None

    def push(self, fix: DisplayedPosition, now_ms: float) -> None:
        """Start gliding towards a new raw fix, or snap to it."""
        current = self.displayed
        if current is None:
            self._snap(fix)
            return

        distance = planar_distance_m(current.lat, current.lng, fix.lat, fix.lng)
        if not math.isfinite(distance) or distance > SNAP_DISTANCE_M:
            self._snap(fix)
            return

        if distance == 0 and current.heading == fix.heading:
            # Same spot; only refresh accuracy and speed
            self.displayed = replace(current, accuracy=fix.accuracy, speed=fix.speed)
            return

        duration = clamp(distance * MS_PER_METER, MIN_DURATION_MS, MAX_DURATION_MS)
        self.animation = Animation(
            start=current,
            target=fix,
            start_time=now_ms,
            duration_ms=duration,
        )

    def frame(self, now_ms: float) -> DisplayedPosition | None:
        """Advance the animation to ``now_ms`` and return what to draw."""
        state = self.animation
        if state is None:
            return self.displayed

        t = clamp((now_ms - state.start_time) / state.duration_ms, 0, 1)
        eased = ease_out_cubic(t)

        start, target = state.start, state.target
        if start.heading is not None and target.heading is not None:
            heading = interpolate_heading(start.heading, target.heading, eased)
        else:
            heading = target.heading if target.heading is not None else start.heading

        self.displayed = DisplayedPosition(
            lat=start.lat + (target.lat - start.lat) * eased,
            lng=start.lng + (target.lng - start.lng) * eased,
            heading=heading,
            accuracy=target.accuracy,
            speed=target.speed,
        )

        if t >= 1:
            self.animation = None

        return self.displayed

    def cancel(self) -> None:
        """Stop gliding and keep the marker where it is."""
        self.animation = None

    def reset(self) -> None:
        """Forget everything, e.g. when no fix is available."""
        self.displayed = None
        self.animation = None

    def _snap(self, fix: DisplayedPosition) -> None:
        self.displayed = fix
        self.animation = None


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class SmoothingLoop:
    """Per-client frame loop that drives a ``PositionSmoother``."""

    def __init__(
        self,
        on_frame: Callable[[DisplayedPosition], None],
        frame_interval_ms: int = 16,
        smoother: PositionSmoother | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.on_frame = on_frame
        self.frame_interval_ms = frame_interval_ms
        self.smoother = smoother or PositionSmoother()
        self.clock = clock
        self.job_id: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Check if a frame task is alive."""
        return self._task is not None and not self._task.done()

    def push(self, fix: DisplayedPosition) -> None:
        """Feed a raw fix and make sure frames are being produced."""
        self.smoother.push(fix, self.clock())
        if self.smoother.is_animating:
            self.start()
        elif self.smoother.displayed is not None:
            self.on_frame(self.smoother.displayed)

    def start(self) -> None:
        """Start ticking if not already."""
        if not self.is_running:
            self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        """Stop the frame task and any in-flight animation."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.smoother.cancel()

    def bind_job(self, job_id: str | None) -> None:
        """Follow a different job. The previous job's animation is dropped."""
        if job_id == self.job_id:
            return
        self.cancel()
        self.smoother.reset()
        logger.debug("smoothing_job_changed", previous=self.job_id, job_id=job_id)
        self.job_id = job_id

    async def aclose(self) -> None:
        """Cancel and wait for the frame task to finish."""
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        while True:
            position = self.smoother.frame(self.clock())
            if position is not None:
                self.on_frame(position)
            if not self.smoother.is_animating:
                return
            await asyncio.sleep(self.frame_interval_ms / 1000)
