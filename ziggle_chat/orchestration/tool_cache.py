from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .models import Tool

logger = logging.getLogger(__name__)

DEFAULT_TOOLS_CACHE_TTL = 5 * 60.0


@dataclass
class ToolCacheState:
    data: Optional[List[Tool]] = None
    fetched_at: float = 0.0


class ToolRegistryCache:
    """Caches the retrieval backend's tool list for ``ttl_seconds``.

    A refresh replaces the list wholesale. Fetch failures propagate; there is no
    stale fallback. Concurrent misses share a single fetch.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[List[Tool]]],
        *,
        ttl_seconds: float = DEFAULT_TOOLS_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        state: Optional[ToolCacheState] = None,
    ) -> None:
        self._fetch = fetch
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.state = state or ToolCacheState()
        self._lock = asyncio.Lock()

    def _is_fresh(self, now: float) -> bool:
        return self.state.data is not None and now - self.state.fetched_at < self.ttl_seconds

    async def get_tools(self) -> List[Tool]:
        if self._is_fresh(self._clock()):
            logger.debug("Using cached MCP tools")
            return list(self.state.data)

        async with self._lock:
            now = self._clock()
            if self._is_fresh(now):
                return list(self.state.data)

            logger.debug("Fetching MCP tools from server...")
            tools = list(await self._fetch())
            self.state = ToolCacheState(data=tools, fetched_at=now)
            logger.info("Cached %d MCP tool(s): %s", len(tools), ", ".join(t.name for t in tools))
            return list(tools)

    def invalidate(self) -> None:
        self.state = ToolCacheState()

    def info(self) -> Dict[str, Any]:
        cached = self.state.data is not None
        age = self._clock() - self.state.fetched_at if cached else None
        return {
            "cached": cached,
            "tool_count": len(self.state.data or []),
            "age_seconds": round(age, 1) if age is not None else None,
            "ttl_seconds": self.ttl_seconds,
        }
