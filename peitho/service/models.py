"""
Result types for service readiness probes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ServiceUnavailableError(RuntimeError):
    """The service under test never answered its health check."""

    def __init__(self, url: str, attempts: int, last_error: str | None = None):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        message = f"Health check at {url} did not succeed within {attempts} attempt(s)"
        if last_error:
            message += f" (last error: {last_error})"
        super().__init__(message)


@dataclass
class ProbeAttempt:
    """Outcome of a single GET against the service."""
    status: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    def describe(self) -> str:
        if self.error:
            return self.error
        return f"status {self.status}"


@dataclass
class ProbeResult:
    """Outcome of waiting for a service to become reachable."""
    url: str
    ready: bool
    attempts: int
    elapsed_ms: float
    status: int | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "ready": self.ready,
            "attempts": self.attempts,
            "elapsed_ms": self.elapsed_ms,
            "status": self.status,
            "last_error": self.last_error,
        }
