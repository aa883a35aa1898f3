from pydantic import BaseModel, Field, model_validator
from typing import List, Literal, Optional

SortBy = Literal["distance", "rating", "popularity", "reviews"]


class Place(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    # Decimal text at the provider's precision, never binary floats.
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    category: str = ""
    rating: Optional[str] = None
    priceLevel: Optional[int] = Field(default=None, ge=1, le=4)
    photoUrl: Optional[str] = None
    isOpen: Optional[bool] = None
    businessStatus: Optional[str] = None
    types: List[str] = []
    aiCategory: Optional[str] = None
    aiTags: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_coordinates_paired(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be set together")
        return self


class PlacesResponse(BaseModel):
    places: List[Place]
