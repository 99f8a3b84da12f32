"""Rebuild trigger for the static site after a successful ingestion run."""

from __future__ import annotations

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
RATE_LIMIT_WAIT = 10.0
RETRY_WAIT = 5.0


async def trigger_deploy(
    hook_url: str,
    attempts: int = DEFAULT_ATTEMPTS,
    rate_limit_wait: float = RATE_LIMIT_WAIT,
    retry_wait: float = RETRY_WAIT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    POST to the deploy hook, retrying on failure.

    A 429 response waits ``attempt * rate_limit_wait`` seconds before the
    next attempt; any other failure waits ``retry_wait`` seconds.

    Returns:
        True if the hook accepted the request. Exhausted retries are
        logged, never raised.
    """
    logger.info("Triggering deploy hook...")

    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        for attempt in range(1, attempts + 1):
            try:
                response = await client.post(hook_url)
            except httpx.HTTPError as e:
                logger.error(f"Deploy hook error: {e} (attempt {attempt}/{attempts})")
            else:
                if response.is_success:
                    logger.info("Deploy hook triggered successfully")
                    return True
                if response.status_code == 429:
                    wait = attempt * rate_limit_wait
                    logger.warning(f"Deploy hook rate limited (429). Retry {attempt}/{attempts} in {wait:.0f}s")
                    await asyncio.sleep(wait)
                    continue
                logger.error(f"Deploy hook failed: {response.status_code} (attempt {attempt}/{attempts})")

            if attempt < attempts:
                await asyncio.sleep(retry_wait)

    logger.error("Deploy hook failed after all retries; deploy manually if needed")
    return False
