import logging
from typing import List, Optional

from findora.models.place import Place
from findora.services.enrichment import CategorizationEnricher
from findora.services.places_cache import PlacesCache, nearby_key, round_coordinate, search_key
from findora.services.places_provider import PlaceProvider

logger = logging.getLogger(__name__)


class PlacesService:
    """Cache -> provider -> enrichment -> cache, for nearby and free-text searches."""

    def __init__(self, provider: PlaceProvider, enricher: CategorizationEnricher, cache: PlacesCache):
        self.provider = provider
        self.enricher = enricher
        self.cache = cache

    async def nearby(self, lat: float, lng: float, radius: int, category: Optional[str] = None) -> List[Place]:
        lat, lng = round_coordinate(lat), round_coordinate(lng)
        key = nearby_key(self.provider.name, lat, lng, radius, category)
        places = await self.cache.get(key)
        if places is not None:
            logger.info(f"Serving cached nearby places for {key}")
            return places

        logger.info(f"Cache miss for {key}; querying {self.provider.name}")
        places = await self.provider.search_nearby(lat, lng, radius, category)
        places = await self.enricher.enrich(places)
        await self.cache.set(key, places)
        return places

    async def search(self, query: str, lat: Optional[float] = None, lng: Optional[float] = None) -> List[Place]:
        lat, lng = round_coordinate(lat), round_coordinate(lng)
        key = search_key(self.provider.name, query, lat, lng)
        places = await self.cache.get(key)
        if places is not None:
            logger.info(f"Serving cached search results for {key}")
            return places

        logger.info(f"Cache miss for {key}; querying {self.provider.name}")
        places = await self.provider.search_by_text(query, lat, lng)
        places = await self.enricher.enrich(places)
        await self.cache.set(key, places)
        return places
