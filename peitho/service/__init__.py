"""
Service readiness checks.

Usage:
    import asyncio
    from peitho.service import wait_for_service

    result = asyncio.run(wait_for_service("http://localhost:8000/health"))
    if not result.ready:
        sys.exit(2)
"""

from .models import ProbeAttempt, ProbeResult, ServiceUnavailableError
from .probe import ensure_healthy, probe_once, wait_for_service

__all__ = [
    "ProbeAttempt",
    "ProbeResult",
    "ServiceUnavailableError",
    "ensure_healthy",
    "probe_once",
    "wait_for_service",
]
