import asyncio
import json
import logging
import os
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from .config import CONFIG
from .deps import get_bearer_token
from .planner import STEPS, build_days, estimate_cost, render_budget_html, render_itinerary_html


# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler()  # Ensure logs go to stdout/stderr
    ]
)
# --------------------------

# In-memory trip records, keyed by trip id
TRIPS: Dict[str, Dict[str, Any]] = {}
HISTORY_LIMIT = 20

ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION_ERROR",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMITED",
}


class PlanTripRequest(BaseModel):
    destination: Optional[str] = None
    origin: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    travel_type: str = Field("leisure", alias="travelType")
    interests: List[str] = []
    season: Optional[str] = None
    duration: int = 1
    budget_range: Optional[str] = Field(None, alias="budgetRange")
    budget_range_string: Optional[str] = Field(None, alias="budgetRangeString")
    travelers: int = 1
    currency: str = "USD"
    start_date_time: Optional[str] = Field(None, alias="startDateTime")
    end_date_time: Optional[str] = Field(None, alias="endDateTime")

    class Config:
        populate_by_name = True


limiter = Limiter(key_func=get_remote_address, default_limits=[CONFIG.rate_limit])

app = FastAPI(title="Trip Planner - Mock Backend")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


def envelope(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "success", "data": data}
    if message:
        body["message"] = message
    return body


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_: Request, exc: StarletteHTTPException):
    code = ERROR_CODES.get(exc.status_code, "UNKNOWN_ERROR")
    return JSONResponse({"status": "error", "code": code, "message": str(exc.detail)}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError):
    details = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return JSONResponse(
        {"status": "error", "code": "VALIDATION_ERROR", "message": "Invalid request body", "details": details},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def resolve_destination(req: PlanTripRequest) -> str:
    destination = req.state or req.destination or req.country
    if not destination:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    return destination


def plan_trip(req: PlanTripRequest, owner: str) -> Dict[str, Any]:
    destination = resolve_destination(req)
    days = build_days(destination, req.duration, req.interests)
    cost = estimate_cost(req.duration, req.travelers, req.currency)
    title = f"{req.duration}-day {req.travel_type} trip to {destination}"
    trip = {
        "id": uuid.uuid4().hex[:12],
        "owner": owner,
        "title": title,
        "destination": destination,
        "duration": req.duration,
        "travelers": req.travelers,
        "itinerary": days,
        "estimatedCost": cost,
        "itineraryHtml": render_itinerary_html(title, days),
        "budgetHtml": render_budget_html(cost),
        "createdAt": datetime.utcnow().isoformat(),
    }
    TRIPS[trip["id"]] = trip
    return trip


def public(trip: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in trip.items() if k != "owner"}


def sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def stream_plan(req: PlanTripRequest, owner: str):
    t0 = time.monotonic()
    yield sse("connected", {"message": "Connected to trip planning stream"})
    for step, message in STEPS:
        yield sse("progress", {"step": step, "status": "in_progress", "message": message})
        await asyncio.sleep(CONFIG.step_delay_sec)
        if step == "itinerary":
            for day in build_days(resolve_destination(req), req.duration, req.interests):
                yield sse("itinerary-day", {"day": day["day"], "content": day})
        yield sse("progress", {"step": step, "status": "completed", "message": f"{message}: done"})
    trip = plan_trip(req, owner)
    duration_ms = (time.monotonic() - t0) * 1000
    logging.info(json.dumps({"ts": datetime.utcnow().isoformat(), "tool": "mock-backend", "fn": "plan", "duration_ms": f"{duration_ms:.2f}"}))
    yield sse(
        "complete",
        {
            "status": "success",
            "message": "Trip planned successfully",
            "data": {"trip": public(trip)},
        },
    )


@app.post("/api/trips/plan-trip-with-preferences")
async def plan_trip_with_preferences(
    req: PlanTripRequest,
    request: Request,
    stream: bool = False,
    token: str = Depends(get_bearer_token),
):
    resolve_destination(req)
    use_sse = stream or "text/event-stream" in request.headers.get("accept", "")
    if use_sse:
        return StreamingResponse(
            stream_plan(req, token),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
    trip = plan_trip(req, token)
    return envelope({"trip": public(trip)}, "Trip planned successfully")


def owned_trips(token: str) -> List[Dict[str, Any]]:
    trips = [t for t in TRIPS.values() if t["owner"] == token]
    return sorted(trips, key=lambda t: t["createdAt"], reverse=True)


def find_trip(trip_id: str, token: str) -> Dict[str, Any]:
    trip = TRIPS.get(trip_id)
    if trip is None or trip["owner"] != token:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


@app.get("/api/trips")
async def list_trips(page: int = 1, limit: int = 10, token: str = Depends(get_bearer_token)):
    start = max(page - 1, 0) * limit
    return envelope([public(t) for t in owned_trips(token)[start:start + limit]])


@app.get("/api/trips/history")
async def trip_history(token: str = Depends(get_bearer_token)):
    return envelope([public(t) for t in owned_trips(token)[:HISTORY_LIMIT]])


@app.post("/api/trips", status_code=status.HTTP_201_CREATED)
async def save_trip(trip: Dict[str, Any], token: str = Depends(get_bearer_token)):
    record = {**trip, "id": uuid.uuid4().hex[:12], "owner": token, "createdAt": datetime.utcnow().isoformat()}
    TRIPS[record["id"]] = record
    return envelope({"trip": public(record)}, "Trip saved")


@app.get("/api/trips/{trip_id}")
async def get_trip(trip_id: str, token: str = Depends(get_bearer_token)):
    return envelope({"trip": public(find_trip(trip_id, token))})


@app.patch("/api/trips/{trip_id}")
async def update_trip(trip_id: str, updates: Dict[str, Any], token: str = Depends(get_bearer_token)):
    trip = find_trip(trip_id, token)
    protected = {"id", "owner", "createdAt"}
    trip.update({k: v for k, v in updates.items() if k not in protected})
    return envelope({"trip": public(trip)}, "Trip updated")


@app.delete("/api/trips/{trip_id}")
async def delete_trip(trip_id: str, token: str = Depends(get_bearer_token)):
    find_trip(trip_id, token)
    del TRIPS[trip_id]
    return envelope(None, "Trip deleted")


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)
