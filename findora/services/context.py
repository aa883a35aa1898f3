import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status

from findora.config import Settings
from findora.services.enrichment import CategorizationEnricher
from findora.services.places_cache import PlacesCache
from findora.services.places_provider import create_place_provider
from findora.services.places_service import PlacesService
from findora.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    settings: Settings
    cache: PlacesCache
    enricher: CategorizationEnricher
    places: Optional[PlacesService] = None

    def require_places(self) -> PlacesService:
        if self.places is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Places search is not configured on the server.",
            )
        return self.places


def build_service_context(settings: Settings) -> ServiceContext:
    """Builds the process-wide services once at startup."""
    cache = PlacesCache(max_entries=settings.PLACES_CACHE_MAX_ENTRIES)
    enricher = CategorizationEnricher(
        api_key=settings.GOOGLE_GEMINI_API_KEY,
        model_name=settings.GEMINI_MODEL,
        timeout=settings.ENRICHMENT_TIMEOUT_SECONDS,
    )
    context = ServiceContext(settings=settings, cache=cache, enricher=enricher)

    try:
        provider = create_place_provider(settings)
    except ConfigurationError as e:
        logger.error(f"FATAL: places search unavailable: {e}")
        return context

    logger.info(f"Places provider: {provider.name}")
    context.places = PlacesService(provider=provider, enricher=enricher, cache=cache)
    return context


def get_services(request: Request) -> ServiceContext:
    return request.app.state.services
