import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from findora.models.place import Place
from findora.utils.geo import Point, distance_to_place

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all categories"


@dataclass
class PlaceFilters:
    category: Optional[str] = None
    min_rating: Optional[float] = None
    price_levels: Optional[Sequence[int]] = None


def _rating_value(place: Place) -> Optional[float]:
    if place.rating is None:
        return None
    try:
        value = float(place.rating)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def filter_places(places: Iterable[Place], filters: Optional[PlaceFilters]) -> List[Place]:
    """Applies every active filter (AND-combined). Inactive filters are None or empty."""
    result = list(places)
    if filters is None:
        return result

    category = (filters.category or "").strip().lower()
    if category and category != ALL_CATEGORIES:
        result = [
            p for p in result
            if category in (p.aiCategory or p.category or "").lower()
        ]

    if filters.min_rating:
        threshold = filters.min_rating
        result = [
            p for p in result
            if (rating := _rating_value(p)) is not None and rating >= threshold
        ]

    if filters.price_levels:
        levels = set(filters.price_levels)
        result = [p for p in result if p.priceLevel is not None and p.priceLevel in levels]

    return result


def sort_places(places: Iterable[Place], sort_by: Optional[str], reference: Optional[Point] = None) -> List[Place]:
    # sorted() is stable, so equal keys keep their original relative order.
    result = list(places)
    if sort_by == "distance":
        if reference is not None:
            result = sorted(result, key=lambda p: distance_to_place(reference, p))
    elif sort_by == "rating":
        result = sorted(result, key=lambda p: _rating_value(p) or 0.0, reverse=True)
    elif sort_by in ("popularity", "reviews"):
        # Providers expose no popularity or review-count data to sort on.
        logger.debug(f"Sort '{sort_by}' has no backing data; keeping provider order")
    return result


def rank_places(
    places: Iterable[Place],
    filters: Optional[PlaceFilters] = None,
    sort_by: Optional[str] = None,
    reference: Optional[Point] = None,
) -> List[Place]:
    return sort_places(filter_places(places, filters), sort_by, reference)
