"""
Readiness probes for the application under test.

Used before a run starts so the suite does not fail on a backend that
is still booting.
"""

from __future__ import annotations

import asyncio
import logging
import time

import aiohttp

from ..config import ServiceWaitConfig, settings_from_dict
from .models import ProbeAttempt, ProbeResult, ServiceUnavailableError

logger = logging.getLogger(__name__)


async def probe_once(
    session: aiohttp.ClientSession,
    url: str,
    timeout_ms: int,
) -> ProbeAttempt:
    """
    Issue one GET and classify the outcome.

    Network failures are returned, not raised, so callers can retry.
    """
    timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
    try:
        async with session.get(url, timeout=timeout) as resp:
            return ProbeAttempt(status=resp.status)
    except asyncio.TimeoutError:
        return ProbeAttempt(error=f"Request timed out after {timeout_ms}ms")
    except aiohttp.ClientConnectorError as e:
        return ProbeAttempt(error=f"Connection failed: {e}")
    except aiohttp.ClientError as e:
        return ProbeAttempt(error=f"HTTP error: {e}")


async def wait_for_service(
    url: str,
    timeout_ms: int = 120_000,
    interval_ms: int = 5_000,
) -> ProbeResult:
    """
    Poll ``url`` until it answers with a 2xx status or time runs out.

    Args:
        url: Endpoint to GET
        timeout_ms: Overall deadline in milliseconds
        interval_ms: Pause between attempts in milliseconds

    Returns:
        ProbeResult with ``ready`` set when the service answered in time
    """
    started = time.monotonic()
    attempts = 0
    last = ProbeAttempt()
    last_status: int | None = None

    def elapsed_ms() -> float:
        return (time.monotonic() - started) * 1000

    async with aiohttp.ClientSession() as session:
        while elapsed_ms() < timeout_ms:
            attempts += 1
            remaining = max(1, int(timeout_ms - elapsed_ms()))
            last = await probe_once(session, url, remaining)
            if last.status is not None:
                last_status = last.status
            if last.ok:
                logger.info(f"Service at {url} is reachable (status {last.status}).")
                return ProbeResult(url, True, attempts, elapsed_ms(), status=last.status)

            logger.warning(f"Service at {url} not ready: {last.describe()}. Retrying in {interval_ms}ms.")
            await asyncio.sleep(interval_ms / 1000)

    logger.error(f"Service at {url} did not become ready within {timeout_ms}ms.")
    return ProbeResult(
        url,
        False,
        attempts,
        elapsed_ms(),
        status=last_status,
        last_error=last.error,
    )


async def ensure_healthy(config: ServiceWaitConfig | None = None) -> ProbeResult:
    """
    Check the health endpoint a bounded number of times.

    With no ``config``, settings come from the environment.

    Raises:
        ServiceUnavailableError: If no attempt got a 2xx response
        ValueError: If the environment overrides are invalid
    """
    if config is None:
        settings, validation = settings_from_dict({})
        if settings is None:
            raise ValueError(str(validation))
        config = settings.service

    started = time.monotonic()
    last = ProbeAttempt()
    async with aiohttp.ClientSession() as session:
        for attempt in range(1, config.max_attempts + 1):
            last = await probe_once(session, config.healthcheck_url, config.interval_ms)
            if last.ok:
                logger.debug(f"Health check passed on attempt {attempt}")
                return ProbeResult(
                    config.healthcheck_url,
                    True,
                    attempt,
                    (time.monotonic() - started) * 1000,
                    status=last.status,
                )
            logger.debug(f"Health check attempt {attempt} failed: {last.describe()}")
            if attempt < config.max_attempts:
                await asyncio.sleep(config.interval_ms / 1000)

    raise ServiceUnavailableError(config.healthcheck_url, config.max_attempts, last.describe())
