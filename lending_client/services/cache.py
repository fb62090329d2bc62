"""Read-through query cache with explicit invalidation."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BANKS = "banks"
USERS = "users"


class QueryCache:
    """Cache keyed by (entity kind, scope).

    Entries never expire on their own; they are dropped by ``invalidate`` after
    a mutation. Readers may see stale data until then.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, tuple[Hashable, ...]], Any] = {}

    async def get_or_load(
        self,
        kind: str,
        scope: tuple[Hashable, ...],
        loader: Callable[[], Awaitable[T]],
    ) -> T:
        key = (kind, scope)
        if key in self._entries:
            return self._entries[key]
        value = await loader()
        self._entries[key] = value
        return value

    def invalidate(self, kind: str) -> int:
        """Drop every entry of ``kind``; returns how many were dropped."""
        stale = [key for key in self._entries if key[0] == kind]
        for key in stale:
            del self._entries[key]
        logger.debug("Invalidated %d cached %s queries", len(stale), kind)
        return len(stale)

    def __contains__(self, key: tuple[str, tuple[Hashable, ...]]) -> bool:
        return key in self._entries
