"""
Reachability probes.

A probe is an async callable `probe(target) -> bool`. The monitor enforces
its own timeout around it, so the timeouts here are only a backstop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import httpx

from .monitor import ProbeFunc

logger = logging.getLogger(__name__)


class HttpProbe:
    """GET the target URL; any status below 400 means the target is alive."""

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.timeout = timeout
        self._client = client

    async def __call__(self, target: str) -> bool:
        if self._client is not None:
            return await self._get(self._client, target)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._get(client, target)

    async def _get(self, client: httpx.AsyncClient, target: str) -> bool:
        try:
            response = await client.get(target, follow_redirects=True)
        except httpx.TimeoutException:
            logger.debug("HTTP probe timed out for %s", target)
            return False
        except httpx.HTTPError as e:
            logger.debug("HTTP probe error for %s: %s", target, e)
            return False
        if response.status_code >= 400:
            logger.debug(
                "HTTP probe got %s %s from %s",
                response.status_code,
                response.reason_phrase,
                target,
            )
            return False
        return True


def blocking_probe(func: Callable[[str], bool]) -> ProbeFunc:
    """Adapt a synchronous `func(target) -> bool` by running it in a worker thread."""

    async def probe(target: str) -> bool:
        return bool(await asyncio.to_thread(func, target))

    probe.__name__ = getattr(func, "__name__", "blocking_probe")
    return probe


__all__ = ["HttpProbe", "blocking_probe"]
