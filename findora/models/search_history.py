from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime


class SearchHistoryCreate(BaseModel):
    query: str
    location: str
    radius: int
    filters: Optional[Dict[str, Any]] = None

    @field_validator('radius')
    def validate_radius(cls, v):
        if v <= 0:
            raise ValueError('Radius must be a positive number of meters')
        return v


class SearchHistoryResponse(BaseModel):
    id: int
    userId: int = Field(validation_alias="user_id")
    query: str
    location: str
    radius: int
    filters: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SearchHistoryEntryEnvelope(BaseModel):
    history: SearchHistoryResponse


class SearchHistoryListEnvelope(BaseModel):
    history: List[SearchHistoryResponse]
