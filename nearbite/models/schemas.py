from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

MIN_RADIUS_KM = 0.2
MAX_RADIUS_KM = 5.0


def _current_time_string() -> str:
    return datetime.now().strftime("%H:%M")


class Location(BaseModel):
    """A searched-for location. Zero is a valid coordinate; unset means None."""
    address: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def is_set(self) -> bool:
        return self.lat is not None and self.lng is not None

    class Config:
        json_schema_extra = {
            "example": {"address": "Raffles Place, Singapore", "lat": 1.2840, "lng": 103.8514}
        }


class FilterSet(BaseModel):
    radius: List[float] = Field(default_factory=lambda: [0.5], description="Search radius in km (single value)")
    cuisines: List[str] = Field(default_factory=list, description="Any of these cuisines")
    dietary: List[str] = Field(default_factory=list, description="Any of these dietary options")
    price_level: int = Field(2, ge=1, le=4)
    history_days: Literal[0, 7, 14, 30] = Field(14, description="Hide places visited this many days back; 0 disables")
    exclude_chains: bool = False
    exclude_cafe: bool = False
    departure_time: str = Field(default_factory=_current_time_string, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")

    @field_validator("radius")
    @classmethod
    def radius_is_single_value_in_range(cls, value: List[float]) -> List[float]:
        if len(value) != 1:
            raise ValueError("radius must contain exactly one value")
        if not MIN_RADIUS_KM <= value[0] <= MAX_RADIUS_KM:
            raise ValueError(f"radius must be between {MIN_RADIUS_KM} and {MAX_RADIUS_KM} km")
        return value

    @property
    def radius_km(self) -> float:
        return self.radius[0]


@dataclass(frozen=True)
class SearchKey:
    """
    Identity of one paginated result set.

    Cuisines and dietary options are compared as sorted, de-duplicated tuples:
    the same choices picked in a different order are the same search.
    """
    address: str
    lat: float
    lng: float
    radius: float
    cuisines: Tuple[str, ...]
    dietary: Tuple[str, ...]
    price_level: int
    history_days: int
    exclude_chains: bool
    exclude_cafe: bool
    departure_time: str

    @classmethod
    def build(cls, location: Location, filters: FilterSet) -> "SearchKey":
        if not location.is_set:
            raise ValueError("Cannot build a search key for a location without coordinates")
        return cls(
            address=location.address,
            lat=location.lat,
            lng=location.lng,
            radius=filters.radius_km,
            cuisines=tuple(sorted(set(filters.cuisines))),
            dietary=tuple(sorted(set(filters.dietary))),
            price_level=filters.price_level,
            history_days=filters.history_days,
            exclude_chains=filters.exclude_chains,
            exclude_cafe=filters.exclude_cafe,
            departure_time=filters.departure_time,
        )

    def query_params(self) -> Dict[str, Any]:
        """Query parameters shared by the search and id-list endpoints."""
        return {
            "lat": self.lat,
            "lng": self.lng,
            "radius": self.radius,
            "cuisines": list(self.cuisines),
            "dietary": list(self.dietary),
            "priceLevel": self.price_level,
            "excludeChains": "true" if self.exclude_chains else "false",
            "excludeCafe": "true" if self.exclude_cafe else "false",
        }


class VisitRecord(BaseModel):
    id: str = Field(..., description="Restaurant identifier (place_id / fsq_id)")
    name: str = ""
    visit_date: datetime


# Crowd level schemas
class CrowdLevel(str, Enum):
    BUSY = "busy"
    MODERATE = "moderate"
    NOT_BUSY = "not_busy"
    UNKNOWN = "unknown"


class CrowdRecordCreate(BaseModel):
    restaurant_id: str = Field("", description="Restaurant identifier; derived from the name when blank")
    restaurant_name: str = Field(..., min_length=1)
    crowd_level: CrowdLevel
    crowd_percentage: Optional[int] = Field(None, ge=0, le=100)
    peak_hours: Optional[Dict[str, Any]] = None
    last_updated: Optional[datetime] = None
    source: str = "google"
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "restaurant_id": "4b0588f0f964a520a5d922e3",
                "restaurant_name": "Lau Pa Sat",
                "crowd_level": "busy",
                "crowd_percentage": 82,
                "source": "google",
            }
        }


class CrowdRecordResponse(BaseModel):
    id: int
    restaurant_id: str
    restaurant_name: str
    crowd_level: CrowdLevel
    crowd_percentage: Optional[int] = None
    peak_hours: Optional[Dict[str, Any]] = None
    last_updated: datetime
    expires_at: datetime
    source: str

    class Config:
        from_attributes = True


class CrowdBatchRequest(BaseModel):
    restaurant_ids: List[str] = Field(..., min_length=1)


class CrowdStatistics(BaseModel):
    total_records: int
    busy_count: int
    moderate_count: int
    not_busy_count: int
    unknown_count: int
    average_percentage: Optional[float] = None


# Places provider schemas
class ProviderSwitchRequest(BaseModel):
    provider_type: Literal["google", "foursquare", "hybrid"]


class ProviderStatusResponse(BaseModel):
    provider_type: str
    is_loaded: bool
    error: Optional[str] = None


class GeocodeResponse(BaseModel):
    address: str
    lat: float
    lng: float


class PhotoUrlResponse(BaseModel):
    url: str
