"""Map camera view mode for the driver screen."""

from enum import Enum

from fletes.models.job import JobStatus

MANUAL_ROUTE_MS = 12_000


class ViewMode(str, Enum):
    """What the camera shows."""

    FOLLOW = "follow"  # re-centers on the displayed position
    ROUTE = "route"  # frames the whole remaining route


class CameraController:
    """
    Picks the camera mode for a job.

    While driving, the camera follows the vehicle. Asking for the route view
    overrides that for ``MANUAL_ROUTE_MS``; once it expires the camera goes
    back to following, as long as the job is still in a driving status.
    """

    def __init__(self, status: JobStatus = JobStatus.PENDING):
        self.mode = self._default_mode(status)
        self.manual_until: float | None = None

    @staticmethod
    def _default_mode(status: JobStatus) -> ViewMode:
        return ViewMode.FOLLOW if status.is_driving else ViewMode.ROUTE

    @property
    def is_manual(self) -> bool:
        """Check if the user picked the current mode."""
        return self.manual_until is not None

    def select_route(self, now_ms: float) -> ViewMode:
        """User asked to see the whole route."""
        self.mode = ViewMode.ROUTE
        self.manual_until = now_ms + MANUAL_ROUTE_MS
        return self.mode

    def select_follow(self) -> ViewMode:
        """User asked to re-center on the vehicle."""
        self.mode = ViewMode.FOLLOW
        self.manual_until = None
        return self.mode

    def tick(self, now_ms: float, status: JobStatus) -> ViewMode:
        """Re-evaluate the mode on a new fix or timer tick."""
        if self.manual_until is None:
            self.mode = self._default_mode(status)
        elif status.is_driving and now_ms >= self.manual_until:
            self.manual_until = None
            self.mode = ViewMode.FOLLOW
        return self.mode

    def on_job_changed(self, status: JobStatus) -> ViewMode:
        """A different job was selected; drop any manual choice."""
        self.manual_until = None
        self.mode = self._default_mode(status)
        return self.mode
