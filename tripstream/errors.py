from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx

from .models import Failure


TIMEOUT = "TIMEOUT"
NETWORK_ERROR = "NETWORK_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ApiException(Exception):
    """A well-formed response with a non-2xx status."""

    def __init__(self, status: int, code: str, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message
        self.details = details


def api_exception_from_body(status: int, body: bytes) -> ApiException:
    try:
        data = json.loads(body) if body else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = {}
    if not isinstance(data, dict):
        data = {}
    return ApiException(
        status,
        str(data.get("code") or UNKNOWN_ERROR),
        str(data.get("message") or data.get("error") or data.get("detail") or f"HTTP {status}"),
        data.get("details"),
    )


def timeout_failure(cancelled: bool = False) -> Failure:
    message = "Request cancelled." if cancelled else "Request timeout. Please try again."
    return Failure(code=TIMEOUT, message=message)


def classify_exception(exc: BaseException) -> Failure:
    if isinstance(exc, ApiException):
        return Failure(code=exc.code, message=exc.message, details=exc.details, status=exc.status)
    if isinstance(exc, (asyncio.TimeoutError, asyncio.CancelledError, httpx.TimeoutException)):
        return timeout_failure(cancelled=isinstance(exc, asyncio.CancelledError))
    message: Optional[str] = str(exc) or None
    return Failure(code=NETWORK_ERROR, message=message or "Network error occurred")


def failure_from_response(status: int, body: bytes) -> Failure:
    return classify_exception(api_exception_from_body(status, body))
