from fastapi import APIRouter, HTTPException, Query, Depends, status
from typing import List, Optional
import logging
import math

from findora.database.models import User
from findora.models.place import PlacesResponse, SortBy
from findora.services.auth import get_current_user
from findora.services.context import ServiceContext, get_services
from findora.services.ranking import PlaceFilters, rank_places
from findora.utils.errors import PlacesProviderError

router = APIRouter()

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_M = 2000


def _coordinate(value: Optional[str], name: str) -> Optional[float]:
    """Blank query values count as absent; anything else must be a finite number."""
    if value is None or not value.strip():
        return None
    try:
        number = float(value)
    except ValueError:
        number = math.nan
    if not math.isfinite(number):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {name}")
    return number


def _ranking_requested(filters: PlaceFilters, sort_by: Optional[str]) -> bool:
    return bool(sort_by or filters.category or filters.min_rating or filters.price_levels)


@router.get("/nearby", response_model=PlacesResponse)
async def get_nearby_places(
        lat: Optional[str] = None,
        lng: Optional[str] = None,
        radius: int = Query(DEFAULT_RADIUS_M, gt=0),
        place_type: Optional[str] = Query(None, alias="type"),
        filterCategory: Optional[str] = None,
        minRating: Optional[float] = None,
        priceLevel: Optional[List[int]] = Query(None),
        sortBy: Optional[SortBy] = None,
        current_user: User = Depends(get_current_user),
        services: ServiceContext = Depends(get_services),
):
    lat, lng = _coordinate(lat, "latitude"), _coordinate(lng, "longitude")
    if lat is None or lng is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Latitude and longitude are required")

    places_service = services.require_places()
    logger.info(f"Nearby search by user {current_user.id}: ({lat}, {lng}) radius={radius} type={place_type}")
    try:
        places = await places_service.nearby(lat, lng, radius, place_type)
    except PlacesProviderError as e:
        logger.error(f"Nearby search failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    filters = PlaceFilters(category=filterCategory, min_rating=minRating, price_levels=priceLevel)
    if _ranking_requested(filters, sortBy):
        places = rank_places(places, filters, sortBy, reference=(lat, lng))
    return PlacesResponse(places=places)


@router.get("/search", response_model=PlacesResponse)
async def search_places(
        query: Optional[str] = None,
        lat: Optional[str] = None,
        lng: Optional[str] = None,
        filterCategory: Optional[str] = None,
        minRating: Optional[float] = None,
        priceLevel: Optional[List[int]] = Query(None),
        sortBy: Optional[SortBy] = None,
        current_user: User = Depends(get_current_user),
        services: ServiceContext = Depends(get_services),
):
    if not query or not query.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query is required")
    lat, lng = _coordinate(lat, "latitude"), _coordinate(lng, "longitude")

    places_service = services.require_places()
    logger.info(f"Text search by user {current_user.id}: '{query}' near ({lat}, {lng})")
    try:
        places = await places_service.search(query.strip(), lat, lng)
    except PlacesProviderError as e:
        logger.error(f"Text search failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    filters = PlaceFilters(category=filterCategory, min_rating=minRating, price_levels=priceLevel)
    if _ranking_requested(filters, sortBy):
        reference = (lat, lng) if lat is not None and lng is not None else None
        places = rank_places(places, filters, sortBy, reference=reference)
    return PlacesResponse(places=places)
