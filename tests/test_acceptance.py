import asyncio
from typing import Any, List, Tuple

import httpx
import pytest

from conftest import CountingTransport
from mock_backend import main as backend
from mock_backend.config import CONFIG as BACKEND_CONFIG
from tripstream import ApiClient, StreamingClient, TripPlanCache, TripPreferences, TripService
from tripstream.models import Failure, ProgressUpdate


BASE_URL = "http://testserver/api"


@pytest.fixture(autouse=True)
def fast_backend(monkeypatch):
    monkeypatch.setattr(BACKEND_CONFIG, "step_delay_sec", 0.0)
    monkeypatch.setattr(BACKEND_CONFIG, "api_token", None)
    backend.TRIPS.clear()
    yield
    backend.TRIPS.clear()


def _transport() -> CountingTransport:
    return CountingTransport(httpx.ASGITransport(app=backend.app))


def _plan(prefs: TripPreferences, cache: TripPlanCache, transport, token="traveler-1") -> Tuple[Any, List[ProgressUpdate], List[str]]:
    progress: List[ProgressUpdate] = []
    events: List[str] = []

    async def go():
        async with ApiClient(base_url=BASE_URL, auth_token=token, transport=transport) as api:
            client = StreamingClient(api, cache, cache_hit_delay=0)
            return await client.generate(prefs, on_progress=progress.append, on_event=lambda e, _: events.append(e))

    return asyncio.run(go()), progress, events


def _service_call(method: str, *args: Any, token="traveler-1") -> Any:
    async def go():
        async with ApiClient(base_url=BASE_URL, auth_token=token, transport=_transport()) as api:
            return await getattr(TripService(api), method)(*args)

    return asyncio.run(go())


def test_plan_streams_progress_and_is_cached():
    prefs = TripPreferences(destination="Paris", duration=3, travelers=2, interests=["museums", "food"])
    cache = TripPlanCache()
    transport = _transport()

    outcome, progress, events = _plan(prefs, cache, transport)
    assert outcome.success
    trip = outcome.data
    assert trip["destination"] == "Paris"
    assert len(trip["itinerary"]) == 3
    assert trip["itinerary"][0]["activities"][0]["type"] == "museums"
    assert "<h2>Day 3</h2>" in trip["itineraryHtml"]
    assert events[0] == "connected" and events[-1] == "complete"
    assert events.count("itinerary-day") == 3
    assert [p.step for p in progress if p.status == "completed"] == [
        "intent", "destination", "budget", "itinerary", "optimizer"
    ]

    again, again_progress, _ = _plan(prefs, cache, transport)
    assert again.cached and again.data == trip
    assert again_progress == []
    assert len(transport.requests) == 1


def test_missing_token_is_unauthorized():
    outcome, _, _ = _plan(TripPreferences(destination="Paris"), TripPlanCache(), _transport(), token=None)
    assert isinstance(outcome, Failure)
    assert (outcome.status, outcome.code) == (401, "UNAUTHORIZED")


def test_missing_destination_is_rejected_before_streaming():
    outcome, progress, events = _plan(TripPreferences(duration=2), TripPlanCache(), _transport())
    assert (outcome.status, outcome.code, outcome.message) == (400, "VALIDATION_ERROR", "Missing required fields")
    assert progress == [] and events == []


def test_non_streaming_generation_returns_envelope():
    async def go():
        async with ApiClient(base_url=BASE_URL, auth_token="traveler-1", transport=_transport()) as api:
            return await api.post("/trips/plan-trip-with-preferences", TripPreferences(state="Kyoto").to_payload())

    outcome = asyncio.run(go())
    assert outcome.success
    assert outcome.message == "Trip planned successfully"
    assert outcome.data["destination"] == "Kyoto"


def test_trip_crud_round_trip():
    outcome, _, _ = _plan(TripPreferences(destination="Lisbon", duration=2), TripPlanCache(), _transport())
    trip_id = outcome.data["id"]

    history = _service_call("get_history")
    assert [t["id"] for t in history.data] == [trip_id]
    assert _service_call("get_history", token="someone-else").data == []

    fetched = _service_call("get_trip", trip_id)
    assert fetched.data["title"] == outcome.data["title"]

    updated = _service_call("update_trip", trip_id, {"title": "Lisbon weekend", "id": "hijack"})
    assert updated.data["title"] == "Lisbon weekend"
    assert updated.data["id"] == trip_id

    saved = _service_call("save_trip", {"title": "Porto", "destination": "Porto"})
    listed = _service_call("list_trips", 1, 1)
    assert len(listed.data) == 1
    assert len(_service_call("list_trips", 1, 10).data) == 2

    assert _service_call("delete_trip", trip_id).success
    missing = _service_call("get_trip", trip_id)
    assert (missing.status, missing.code) == (404, "NOT_FOUND")
    assert _service_call("get_trip", saved.data["id"]).data["destination"] == "Porto"
