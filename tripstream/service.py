from __future__ import annotations

from typing import Any, Dict, Union

from .api import ApiClient
from .models import ApiOutcome


TripId = Union[str, int]


class TripRoutes:
    base = "/trips"

    def list(self) -> str:
        return self.base

    def history(self) -> str:
        return f"{self.base}/history"

    def by_id(self, trip_id: TripId) -> str:
        return f"{self.base}/{trip_id}"


class TripService:
    """Stored trip records on the backend."""

    def __init__(self, api: ApiClient, routes: TripRoutes = TripRoutes()) -> None:
        self.api = api
        self.routes = routes

    async def get_trip(self, trip_id: TripId) -> ApiOutcome:
        return await self.api.get(self.routes.by_id(trip_id))

    async def get_history(self) -> ApiOutcome:
        return await self.api.get(self.routes.history())

    async def list_trips(self, page: int = 1, limit: int = 10) -> ApiOutcome:
        return await self.api.get(self.routes.list(), params={"page": page, "limit": limit})

    async def save_trip(self, trip: Dict[str, Any]) -> ApiOutcome:
        return await self.api.post(self.routes.list(), trip)

    async def update_trip(self, trip_id: TripId, updates: Dict[str, Any]) -> ApiOutcome:
        return await self.api.patch(self.routes.by_id(trip_id), updates)

    async def delete_trip(self, trip_id: TripId) -> ApiOutcome:
        return await self.api.delete(self.routes.by_id(trip_id))
