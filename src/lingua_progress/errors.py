"""Error taxonomy for the progress tracker."""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class SessionNotFound(TrackerError):
    """No session stored for a user. Always recovered by materializing defaults."""


class RateLimited(TrackerError):
    """User exceeded the admission limit for the current window."""

    def __init__(self, wait_seconds: int, message: str | None = None):
        self.wait_seconds = wait_seconds
        super().__init__(message or f"Rate limited, retry in {wait_seconds}s")


class UpstreamUnavailable(TrackerError):
    """The tutor completion call failed or returned nothing usable."""


class MalformedAnalysis(TrackerError):
    """The tutor reply carried no parseable analysis block."""


class StoreUnavailable(TrackerError):
    """A persistence operation failed; the interaction cannot proceed safely."""
