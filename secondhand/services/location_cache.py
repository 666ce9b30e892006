"""In-memory cache of resolved locations.

Free-text locations are normalized (lower-cased, trimmed) before lookup so
that "San Francisco" and " san francisco " share one entry. Entries never
expire within the process lifetime; unresolvable locations are not cached.
"""

import logging
from collections.abc import Awaitable, Callable

from ..models import LocationCoordinates

logger = logging.getLogger(__name__)

LocationResolver = Callable[[str], Awaitable[LocationCoordinates | None]]


class LocationCache:
    """Process-scoped map from normalized location text to coordinates.

    Concurrent misses for the same key may both hit the upstream resolver;
    the last writer wins, which is harmless because both resolve the same
    text.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LocationCoordinates] = {}
        self._stats = {"hits": 0, "misses": 0}

    @staticmethod
    def normalize(query: str) -> str:
        return query.strip().lower()

    def get(self, query: str) -> LocationCoordinates | None:
        return self._entries.get(self.normalize(query))

    def set(self, query: str, coords: LocationCoordinates) -> None:
        self._entries[self.normalize(query)] = coords

    async def get_or_resolve(
        self, query: str, resolver: LocationResolver
    ) -> LocationCoordinates | None:
        """Return cached coordinates or resolve and cache them.

        Args:
            query: Free-text location as typed by the caller.
            resolver: Upstream lookup, called with the normalized text.

        Returns:
            Coordinates, or None when the resolver cannot place the text.
        """
        key = self.normalize(query)
        cached = self._entries.get(key)
        if cached is not None:
            self._stats["hits"] += 1
            logger.debug(f"Location cache hit: {key!r}")
            return cached

        self._stats["misses"] += 1
        logger.debug(f"Location cache miss: {key!r}")
        coords = await resolver(key)
        if coords is not None:
            self._entries[key] = coords
        return coords

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), **self._stats}

    def __len__(self) -> int:
        return len(self._entries)
