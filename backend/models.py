"""Pydantic models shared by the discovery core and the API."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    @classmethod
    def of(cls, latitude: Any, longitude: Any) -> "Coordinates":
        """Build from raw provider values, raising the project ValidationError."""
        try:
            return cls(latitude=float(latitude), longitude=float(longitude))
        except (TypeError, ValueError, PydanticValidationError) as exc:
            raise ValidationError(f"Invalid coordinates ({latitude!r}, {longitude!r})") from exc


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    primary_name: str
    secondary_info: str
    coordinates: Coordinates
    type: str
    importance: float = 0.0


class CityInfo(BaseModel):
    city: str
    country: str
    state: str | None = None
    full_address: str
    latitude: float
    longitude: float


class Attraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    coordinates: Coordinates
    type: str
    distance: float
    rating: float
    description: str | None = None
    interest_score: float | None = None
    interest_reason: str | None = None


class AttractionScore(BaseModel):
    name: str
    score: float
    reason: str = ""


class CacheEntry(BaseModel):
    data: Any
    timestamp: float    # epoch milliseconds
    expires_in: float   # milliseconds


class GPSStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SEARCHING = "SEARCHING"
    UNAVAILABLE = "UNAVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    DISABLED = "DISABLED"


class RankingState(str, Enum):
    IDLE = "idle"
    RAW_READY = "raw_ready"
    RANKING = "ranking"
    RANKED = "ranked"


class DiscoveryResult(BaseModel):
    cache_key: str
    attractions: list[Attraction]
    from_cache: bool = False
    ranking: RankingState = RankingState.IDLE
    city: CityInfo | None = None


class WikiError(BaseModel):
    code: str           # NOT_FOUND | TIMEOUT | NETWORK_ERROR | API_ERROR
    message: str
    can_retry: bool = False


class WikiSummary(BaseModel):
    title: str
    extract: str
    coordinates: Coordinates | None = None
    error: WikiError | None = None


class WikiSearchHit(BaseModel):
    title: str
    description: str = ""
    url: str = ""


class PlaceDetails(BaseModel):
    name: str
    wiki: WikiSummary
    description: str | None = None
    description_from_cache: bool = False
