"""
Upstream place providers.

Two interchangeable sources are supported:
- Google Places ("rich"): rating, price level, photo, opening hours, business status.
- OpenTripMap + Nominatim ("sparse"): name, coordinates and category tags only.

Both normalize their records into the canonical ``Place`` so the rest of the
pipeline never sees a provider-specific shape.
"""
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from findora.config import Settings
from findora.models.place import Place
from findora.services.category_mapper import (
    CategoryMapper,
    google_category_mapper,
    opentripmap_category_mapper,
)
from findora.utils.errors import ConfigurationError, PlacesProviderError

logger = logging.getLogger(__name__)

GOOGLE_NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
GOOGLE_TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
GOOGLE_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"
OPENTRIPMAP_RADIUS_URL = "https://api.opentripmap.com/0.1/en/places/radius"
NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"

# Radius used to bias free-text searches around an optional location.
TEXT_SEARCH_BIAS_RADIUS_M = 50000
# Half-width, in degrees, of the Nominatim viewbox built around a location.
NOMINATIM_VIEWBOX_DEGREES = 0.1


def _decimal_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _price_level(value: Any) -> Optional[int]:
    # Google uses 0 for "free"; the canonical shape only knows 1-4.
    if isinstance(value, int) and 1 <= value <= 4:
        return value
    return None


def normalize_google_place(raw: Dict[str, Any], api_key: str = "") -> Place:
    location = (raw.get("geometry") or {}).get("location") or {}
    latitude = _decimal_text(location.get("lat"))
    longitude = _decimal_text(location.get("lng"))
    if latitude is None or longitude is None:
        latitude = longitude = None

    photo_url = None
    if raw.get("photos"):
        photo_ref = raw["photos"][0].get("photo_reference")
        if photo_ref:
            photo_url = f"{GOOGLE_PHOTO_URL}?maxwidth=400&photoreference={photo_ref}&key={api_key}"

    opening_hours = raw.get("opening_hours") or {}
    types = list(raw.get("types") or [])

    return Place(
        id=str(raw["place_id"]),
        name=raw["name"],
        address=raw.get("vicinity") or raw.get("formatted_address") or None,
        latitude=latitude,
        longitude=longitude,
        category=google_category_mapper.categorize(types),
        rating=_decimal_text(raw.get("rating")),
        priceLevel=_price_level(raw.get("price_level")),
        photoUrl=photo_url,
        isOpen=opening_hours.get("open_now"),
        businessStatus=raw.get("business_status"),
        types=types,
    )


def normalize_opentripmap_feature(raw: Dict[str, Any]) -> Place:
    properties = raw.get("properties") or {}
    coordinates = (raw.get("geometry") or {}).get("coordinates") or []
    latitude = longitude = None
    if len(coordinates) >= 2:
        # GeoJSON order is (lon, lat).
        longitude = _decimal_text(coordinates[0])
        latitude = _decimal_text(coordinates[1])
        if latitude is None or longitude is None:
            latitude = longitude = None

    kinds = properties.get("kinds") or ""
    types = [kind for kind in kinds.split(",") if kind]
    address = properties.get("address")
    if isinstance(address, dict):
        address = ", ".join(str(v) for v in address.values() if v) or None

    return Place(
        id=str(properties["xid"]),
        name=properties["name"],
        address=address or None,
        latitude=latitude,
        longitude=longitude,
        category=opentripmap_category_mapper.categorize(types, raw_label=kinds),
        types=types,
    )


def normalize_nominatim_result(raw: Dict[str, Any]) -> Place:
    place_type = raw.get("type") or ""
    types = [place_type] if place_type else []
    latitude = _decimal_text(raw.get("lat"))
    longitude = _decimal_text(raw.get("lon"))
    if latitude is None or longitude is None:
        latitude = longitude = None

    return Place(
        id=str(raw["place_id"]),
        name=raw.get("name") or raw["display_name"],
        address=raw.get("display_name") or None,
        latitude=latitude,
        longitude=longitude,
        category=opentripmap_category_mapper.categorize(types, raw_label=place_type),
        types=types,
    )


class PlaceProvider(ABC):
    """Common interface for the upstream places APIs."""

    name: str = ""
    category_mapper: CategoryMapper

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    async def search_nearby(
        self, lat: float, lng: float, radius: int, category: Optional[str] = None
    ) -> List[Place]:
        ...

    @abstractmethod
    async def search_by_text(
        self, query: str, lat: Optional[float] = None, lng: Optional[float] = None
    ) -> List[Place]:
        ...

    async def _get_json(
        self, url: str, params: Dict[str, Any], label: str, headers: Optional[Dict[str, str]] = None
    ) -> Any:
        # Only the bare URL is logged; params carry the API key.
        logger.info(f"[{label}] GET {url}")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"[{label}] HTTP {e.response.status_code} from {url}")
                raise PlacesProviderError(f"{label} error: {e.response.reason_phrase}") from e
            except httpx.RequestError as e:
                logger.error(f"[{label}] request to {url} failed: {type(e).__name__}")
                raise PlacesProviderError(f"Could not connect to {label}") from e

        try:
            # Decimal keeps coordinates and ratings exactly as the provider wrote them.
            return response.json(parse_float=Decimal)
        except ValueError as e:
            raise PlacesProviderError(f"{label} returned an invalid response") from e


class GooglePlacesProvider(PlaceProvider):
    name = "google"
    category_mapper = google_category_mapper

    def __init__(self, api_key: str, **kwargs):
        if not api_key:
            raise ConfigurationError("GOOGLE_PLACES_API_KEY is required for the Google Places provider")
        super().__init__(**kwargs)
        self.api_key = api_key

    async def search_nearby(
        self, lat: float, lng: float, radius: int, category: Optional[str] = None
    ) -> List[Place]:
        params = {"location": f"{lat},{lng}", "radius": str(radius), "key": self.api_key}
        if category and category.strip():
            params["type"] = self.category_mapper.to_provider_vocabulary(category)
        data = await self._get_json(GOOGLE_NEARBY_URL, params, "Google Places")
        return self._convert_results(data)

    async def search_by_text(
        self, query: str, lat: Optional[float] = None, lng: Optional[float] = None
    ) -> List[Place]:
        params = {"query": query, "key": self.api_key}
        if lat is not None and lng is not None:
            params["location"] = f"{lat},{lng}"
            params["radius"] = str(TEXT_SEARCH_BIAS_RADIUS_M)
        data = await self._get_json(GOOGLE_TEXT_SEARCH_URL, params, "Google Places")
        return self._convert_results(data)

    def _convert_results(self, data: Any) -> List[Place]:
        if not isinstance(data, dict):
            raise PlacesProviderError("Google Places returned an invalid response")
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.error(f"Google Places API error: {status} - {data.get('error_message', '')}")
            raise PlacesProviderError(f"Google Places API error: {status}")

        places = []
        for raw in data.get("results", []):
            if not raw.get("place_id") or not raw.get("name"):
                logger.debug(f"Skipping Google result without id or name: {raw.get('place_id')}")
                continue
            places.append(normalize_google_place(raw, self.api_key))
        logger.info(f"Google Places returned {len(places)} usable results")
        return places


class OpenTripMapProvider(PlaceProvider):
    name = "opentripmap"
    category_mapper = opentripmap_category_mapper

    def __init__(self, api_key: str, user_agent: str = "findora-backend/0.1", **kwargs):
        if not api_key:
            raise ConfigurationError(
                "OPENTRIPMAP_API_KEY is required for the OpenTripMap provider "
                "(free API key available from opentripmap.org)"
            )
        super().__init__(**kwargs)
        self.api_key = api_key
        self.user_agent = user_agent

    async def search_nearby(
        self, lat: float, lng: float, radius: int, category: Optional[str] = None
    ) -> List[Place]:
        params = {"radius": str(radius), "lon": str(lng), "lat": str(lat), "apikey": self.api_key}
        if category and category.strip():
            params["kinds"] = self.category_mapper.to_provider_vocabulary(category)
        data = await self._get_json(OPENTRIPMAP_RADIUS_URL, params, "OpenTripMap")

        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            logger.warning("[OpenTripMap] response contained no features")
            return []

        places = []
        for feature in features:
            properties = feature.get("properties") or {}
            if not properties.get("xid") or not properties.get("name"):
                continue
            places.append(normalize_opentripmap_feature(feature))
        logger.info(f"OpenTripMap returned {len(places)} named places out of {len(features)}")
        return places

    async def search_by_text(
        self, query: str, lat: Optional[float] = None, lng: Optional[float] = None
    ) -> List[Place]:
        params = {"format": "json", "q": query}
        if lat is not None and lng is not None:
            d = NOMINATIM_VIEWBOX_DEGREES
            params["viewbox"] = f"{lng - d},{lat + d},{lng + d},{lat - d}"
        data = await self._get_json(
            NOMINATIM_SEARCH_URL, params, "Nominatim", headers={"User-Agent": self.user_agent}
        )
        if not isinstance(data, list):
            raise PlacesProviderError("Nominatim returned an invalid response")

        return [
            normalize_nominatim_result(raw)
            for raw in data
            if raw.get("place_id") is not None and (raw.get("name") or raw.get("display_name"))
        ]


def create_place_provider(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> PlaceProvider:
    """
    Build the provider selected by PLACES_PROVIDER, or the first one with a key configured.
    Raises ConfigurationError when the selected provider cannot be used.
    """
    choice = (settings.PLACES_PROVIDER or "").strip().lower()
    if not choice:
        choice = "google" if settings.GOOGLE_PLACES_API_KEY else "opentripmap"

    if choice == "google":
        return GooglePlacesProvider(
            settings.GOOGLE_PLACES_API_KEY, timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport
        )
    if choice == "opentripmap":
        return OpenTripMapProvider(
            settings.OPENTRIPMAP_API_KEY,
            user_agent=settings.NOMINATIM_USER_AGENT,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
    raise ConfigurationError(f"Unknown PLACES_PROVIDER: {settings.PLACES_PROVIDER}")
