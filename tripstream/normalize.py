"""Reconcile the backend's response shapes into one generation result."""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .models import ApiOutcome, Failure, SSEFrame, Success
from .sse import parse_sse_text


# Rendered fragments the backend may place beside the trip instead of inside it
AUXILIARY_FIELDS = ("itineraryHtml", "budgetHtml")


class PayloadShape(str, Enum):
    BARE = "bare"
    DATA = "data"
    DATA_TRIP = "data.trip"
    TRIP = "trip"
    CONTENT = "content"


def classify_payload(payload: Any) -> PayloadShape:
    if not isinstance(payload, dict):
        return PayloadShape.BARE
    if isinstance(payload.get("content"), str) and "data" not in payload:
        return PayloadShape.CONTENT
    if "data" in payload:
        inner = payload["data"]
        if isinstance(inner, dict) and "trip" in inner:
            return PayloadShape.DATA_TRIP
        return PayloadShape.DATA
    if "trip" in payload:
        return PayloadShape.TRIP
    return PayloadShape.BARE


def unwrap_payload(payload: Any) -> Any:
    """Strip the ``data`` then the ``trip`` wrapper, each at most once."""
    shape = classify_payload(payload)
    if shape is PayloadShape.DATA:
        result = payload["data"]
    elif shape is PayloadShape.DATA_TRIP:
        wrapper = payload["data"]
        result = _lift_auxiliary(wrapper["trip"], wrapper)
    elif shape is PayloadShape.TRIP:
        result = _lift_auxiliary(payload["trip"], payload)
    else:
        result = payload
    return payload if result is None else result


def _lift_auxiliary(trip: Any, wrapper: dict) -> Any:
    if not isinstance(trip, dict):
        return trip
    extra = {k: wrapper[k] for k in AUXILIARY_FIELDS if wrapper.get(k) and not trip.get(k)}
    return {**trip, **extra} if extra else trip


def select_frame(frames: Sequence[SSEFrame]) -> Optional[SSEFrame]:
    """The last ``complete`` frame wins; otherwise the last frame of any name."""
    complete = [f for f in frames if f.event == "complete"]
    if complete:
        return complete[-1]
    return frames[-1] if frames else None


def _terminal_failure(event: Optional[str], payload: Any) -> Optional[Failure]:
    is_error = event == "error" or (isinstance(payload, dict) and payload.get("status") == "error")
    if not is_error:
        return None
    body = payload if isinstance(payload, dict) else {}
    return Failure(
        code=str(body.get("code") or "GENERATION_FAILED"),
        message=str(body.get("message") or body.get("error") or "Trip generation failed"),
        details=body.get("details"),
    )


def _outcome(event: Optional[str], payload: Any) -> ApiOutcome:
    failure = _terminal_failure(event, payload)
    if failure is not None:
        return failure
    message = payload.get("message") if isinstance(payload, dict) else None
    return Success(data=unwrap_payload(payload), message=message)


def normalize_frames(frames: Sequence[SSEFrame]) -> Optional[ApiOutcome]:
    """Outcome of a parsed stream, or None when no frame was produced."""
    frame = select_frame(frames)
    if frame is None:
        return None
    return _outcome(frame.event, frame.payload)


def expand_document(document: Any) -> Tuple[Any, List[SSEFrame]]:
    """Unpack a ``content``-wrapped SSE document into its frames."""
    if classify_payload(document) is PayloadShape.CONTENT:
        return document, parse_sse_text(document["content"])
    return document, []


def normalize_document(document: Any, frames: Iterable[SSEFrame] = ()) -> ApiOutcome:
    frames = list(frames)
    if frames:
        return normalize_frames(frames)
    return _outcome(None, document)


def decode_body(text: str) -> Any:
    """Decode a non-streamed body; an undecodable body yields an empty document."""
    try:
        return json.loads(text) if text.strip() else {}
    except json.JSONDecodeError:
        return {}
