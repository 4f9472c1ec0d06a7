"""Client-side throttle for driver location reports."""

MIN_INTERVAL_MS = 8_000
MIN_MOVE_DEG = 0.0002


class LocationReportThrottle:
    """
    Decides which fixes a driver app actually uploads.

    A fix goes out when the driver moved more than ``MIN_MOVE_DEG`` in latitude
    or longitude since the last upload, or when ``MIN_INTERVAL_MS`` has passed.
    One throttle per driver session; it holds no process-wide state.
    """

    def __init__(
        self,
        min_interval_ms: int = MIN_INTERVAL_MS,
        min_move_deg: float = MIN_MOVE_DEG,
    ):
        self.min_interval_ms = min_interval_ms
        self.min_move_deg = min_move_deg
        self.last_sent_at: int | None = None
        self.last_lat: float | None = None
        self.last_lng: float | None = None

    def should_send(self, lat: float, lng: float, now_ms: int) -> bool:
        """Check a fix, and record it as sent when it passes."""
        if self.last_sent_at is not None and self.last_lat is not None:
            moved = (
                abs(lat - self.last_lat) > self.min_move_deg
                or abs(lng - self.last_lng) > self.min_move_deg
            )
            if not moved and now_ms - self.last_sent_at < self.min_interval_ms:
                return False

        self.last_sent_at = now_ms
        self.last_lat = lat
        self.last_lng = lng
        return True

    def reset(self) -> None:
        """Forget the last upload, e.g. on logout."""
        self.last_sent_at = None
        self.last_lat = None
        self.last_lng = None
