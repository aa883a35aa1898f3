"""
In-memory cache of enriched place lists, keyed by a composite query signature.
"""
import asyncio
import json
import logging
from collections import OrderedDict
from typing import List, Optional, Sequence

from findora.models.place import Place

logger = logging.getLogger(__name__)


# Coordinates are rounded to this many decimals (about 0.1 m) before they are
# used in a key or sent upstream, so one key always means one queried point.
COORDINATE_DECIMALS = 6


def round_coordinate(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, COORDINATE_DECIMALS)


def _coord(value: Optional[float]) -> Optional[str]:
    return None if value is None else f"{value:.{COORDINATE_DECIMALS}f}"


def nearby_key(provider: str, lat: float, lng: float, radius: int, category: Optional[str] = None) -> str:
    """
    Key for a nearby search. An omitted category encodes as null, so it never
    collides with an explicit value such as "all".
    """
    normalized = category.strip().casefold() if category is not None else None
    return json.dumps(["nearby", provider, _coord(lat), _coord(lng), int(radius), normalized])


def search_key(provider: str, query: str, lat: Optional[float] = None, lng: Optional[float] = None) -> str:
    return json.dumps(["search", provider, " ".join(query.split()), _coord(lat), _coord(lng)])


class PlacesCache:
    """
    Whole-entry memoization of place lists.

    No expiry. With ``max_entries`` unset the cache grows for the lifetime of the
    process; when set, the oldest-inserted entries are dropped first.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, List[Place]]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[List[Place]]:
        async with self._lock:
            places = self._entries.get(key)
            return list(places) if places is not None else None

    async def set(self, key: str, places: Sequence[Place]) -> None:
        async with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = list(places)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug(f"Evicted places cache entry {evicted}")

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
