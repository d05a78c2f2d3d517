from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field


class TripPreferences(BaseModel):
    """Semantic inputs of a trip generation request.

    Wire names are camelCase; python names are accepted as well. Instances are
    frozen so the preferences used for the cache key are the ones sent.
    """

    destination: Optional[str] = None
    origin: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    travel_type: Optional[str] = Field(None, alias="travelType")
    interests: Tuple[str, ...] = ()
    season: Optional[str] = None
    duration: Optional[int] = None
    budget: Optional[float] = None
    budget_range: Optional[str] = Field(None, alias="budgetRange")
    budget_range_string: Optional[str] = Field(None, alias="budgetRangeString")
    travelers: int = 1
    currency: Optional[str] = None
    start_date_time: Optional[str] = Field(None, alias="startDateTime")
    end_date_time: Optional[str] = Field(None, alias="endDateTime")

    # Legacy fields still sent by older callers
    city: Optional[str] = None
    arrival_date_time: Optional[str] = Field(None, alias="arrivalDateTime")
    departure_date_time: Optional[str] = Field(None, alias="departureDateTime")

    class Config:
        populate_by_name = True
        frozen = True

    def to_payload(self) -> Dict[str, Any]:
        """Request body for the generation endpoint, with legacy fields folded in."""
        payload: Dict[str, Any] = {
            "travelType": self.travel_type,
            "interests": list(self.interests),
            "season": self.season,
            "duration": self.duration,
            "budgetRangeString": self.budget_range_string,
            "origin": self.origin,
            "country": self.country,
            "state": self.state,
            "destination": self.destination,
            "travelers": self.travelers,
            "currency": self.currency,
        }
        if self.start_date_time:
            payload["startDateTime"] = self.start_date_time
        if self.end_date_time:
            payload["endDateTime"] = self.end_date_time

        if not self.state:
            payload["state"] = self.destination or self.city
        if self.budget and not self.budget_range:
            if self.budget < 1000:
                payload["budgetRange"], payload["budgetRangeString"] = "budget", "$500-$1000"
            elif self.budget < 3000:
                payload["budgetRange"], payload["budgetRangeString"] = "moderate", "$1000-$3000"
            else:
                payload["budgetRange"], payload["budgetRangeString"] = "luxury", "$3000+"
        elif self.budget_range:
            payload["budgetRange"] = self.budget_range
        if self.arrival_date_time and not self.start_date_time:
            payload["startDateTime"] = self.arrival_date_time
        if self.departure_date_time and not self.end_date_time:
            payload["endDateTime"] = self.departure_date_time

        return {k: v for k, v in payload.items() if v is not None}


class ProgressUpdate(BaseModel):
    step: str
    status: str
    message: str


class SSEFrame(BaseModel):
    event: str
    data: str
    payload: Any = None


class CacheEntry(BaseModel):
    key: str
    preferences: Dict[str, Any]
    result: Any
    stored_at: float


class Success(BaseModel):
    success: Literal[True] = True
    data: Any = None
    message: Optional[str] = None
    cached: bool = False


class Failure(BaseModel):
    success: Literal[False] = False
    code: str
    message: str
    details: Any = None
    status: Optional[int] = None


ApiOutcome = Union[Success, Failure]
