"""In-process counters for link resolutions, exposed by the stats endpoint."""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

RECENT_RESOLUTIONS = 50
RECENT_ERRORS = 20
REPORTED_RECENT = 10


@dataclass
class ResolutionMetrics:
    """One finished link resolution (all attempts)."""

    lid: int | str
    url: str
    timestamp: datetime
    success: bool
    elapsed_ms: float | None = None
    attempts: int = 1
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class ServerMetrics:
    """Resolution counters since server start."""

    start_time: datetime = field(default_factory=datetime.now)
    total_resolutions: int = 0
    successful_resolutions: int = 0
    failed_resolutions: int = 0
    total_retries: int = 0
    deferred_links: int = 0
    recent_resolutions: deque[ResolutionMetrics] = field(
        default_factory=lambda: deque(maxlen=RECENT_RESOLUTIONS)
    )
    recent_errors: deque[ResolutionMetrics] = field(
        default_factory=lambda: deque(maxlen=RECENT_ERRORS)
    )

    def record_resolution(
        self,
        lid: int | str,
        url: str,
        success: bool,
        elapsed_ms: float | None = None,
        attempts: int = 1,
        error: str | None = None,
    ) -> None:
        """Record the outcome of a link after its final attempt.

        Args:
            lid: Link id
            url: Original link URL
            success: Whether the link resolved to a final link
            elapsed_ms: Wall time across all attempts
            attempts: Chain attempts made (2 means one retry)
            error: Failure message of the last attempt
        """
        entry = ResolutionMetrics(
            lid=lid,
            url=url,
            timestamp=datetime.now(),
            success=success,
            elapsed_ms=elapsed_ms,
            attempts=attempts,
            error=error,
        )
        self.total_resolutions += 1
        self.total_retries += max(attempts - 1, 0)
        self.recent_resolutions.append(entry)

        if success:
            self.successful_resolutions += 1
        else:
            self.failed_resolutions += 1
            self.recent_errors.append(entry)

    def record_deferred(self, count: int) -> None:
        """Record links pushed to a later invocation by the time budget."""
        self.deferred_links += count

    @property
    def success_rate(self) -> float:
        if not self.total_resolutions:
            return 0.0
        return 100 * self.successful_resolutions / self.total_resolutions

    def to_dict(self) -> dict[str, Any]:
        """Snapshot for JSON serialization, newest entries first."""
        uptime = (datetime.now() - self.start_time).total_seconds()
        retries_per_link = (
            round(self.total_retries / self.total_resolutions, 2) if self.total_resolutions else 0.0
        )

        return {
            "status": "healthy",
            "uptime": {"seconds": uptime, "formatted": format_uptime(uptime)},
            "start_time": self.start_time.isoformat(),
            "resolutions": {
                "total": self.total_resolutions,
                "successful": self.successful_resolutions,
                "failed": self.failed_resolutions,
                "deferred": self.deferred_links,
                "success_rate": round(self.success_rate, 2),
            },
            "retries": {"total": self.total_retries, "average_per_link": retries_per_link},
            "recent_resolutions": [
                r.as_dict() for r in reversed(list(self.recent_resolutions)[-REPORTED_RECENT:])
            ],
            "recent_errors": [
                r.as_dict() for r in reversed(list(self.recent_errors)[-REPORTED_RECENT:])
            ],
        }


def format_uptime(seconds: float) -> str:
    """Render seconds as the two most significant units, e.g. "3h 12m"."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


# Global metrics instance
_metrics = ServerMetrics()


def get_metrics() -> ServerMetrics:
    """Get the global metrics instance."""
    return _metrics


def record_resolution(
    lid: int | str,
    url: str,
    success: bool,
    elapsed_ms: float | None = None,
    attempts: int = 1,
    error: str | None = None,
) -> None:
    """Record a link resolution in the global metrics."""
    _metrics.record_resolution(lid, url, success, elapsed_ms, attempts, error)
