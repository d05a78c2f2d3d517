"""HTTP exchange with the trip backend: single-shot JSON calls and SSE streams."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from .config import CONFIG
from .errors import classify_exception, failure_from_response, timeout_failure
from .events import EventChannel
from .models import ApiOutcome, Failure, SSEFrame
from .normalize import decode_body, expand_document, normalize_document, normalize_frames
from .sse import SSEParser, aiter_frames


STREAM_CONTENT_TYPES = ("text/event-stream", "application/x-ndjson")


def is_stream_content_type(content_type: str) -> bool:
    return any(t in content_type for t in STREAM_CONTENT_TYPES)


class ClientState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    SINGLE_SHOT = "single-shot"
    COMPLETE = "complete"
    ERRORED = "errored"
    ABORTED = "aborted"


TERMINAL_STATES = {ClientState.COMPLETE, ClientState.ERRORED, ClientState.ABORTED}


class StreamSession:
    """State of one streamed exchange."""

    def __init__(self) -> None:
        self.state = ClientState.IDLE
        self.history: List[ClientState] = [ClientState.IDLE]
        self.frames: List[SSEFrame] = []

    def transition(self, state: ClientState) -> None:
        if self.state in TERMINAL_STATES:
            return
        self.state = state
        self.history.append(state)


class ApiClient:
    def __init__(
        self,
        base_url: str = CONFIG.api_base_url,
        auth_token: Optional[str] = CONFIG.auth_token,
        timeout: float = CONFIG.request_timeout_sec,
        stream_timeout: float = CONFIG.stream_timeout_sec,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.stream_timeout = stream_timeout
        self._http = httpx.AsyncClient(transport=transport, timeout=None)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _headers(self, accept: str, skip_auth: bool = False) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": accept,
            "User-Agent": CONFIG.user_agent,
        }
        if self.auth_token and not skip_auth:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @staticmethod
    def _log(fn: str, endpoint: str, start_time: float, outcome: ApiOutcome, **extra: Any) -> None:
        log_data = {
            "ts": datetime.utcnow().isoformat(),
            "tool": "tripstream",
            "fn": fn,
            "endpoint": endpoint,
            "latency_ms": f"{(time.monotonic() - start_time) * 1000:.2f}",
            "ok": outcome.success,
            **extra,
        }
        if isinstance(outcome, Failure):
            log_data["code"] = outcome.code
        logging.info(json.dumps(log_data))

    async def request(
        self,
        method: str,
        endpoint: str,
        json_body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        skip_auth: bool = False,
    ) -> ApiOutcome:
        """One request, one decoded body. Never raises."""
        start_time = time.monotonic()
        budget = timeout if timeout is not None else self.timeout
        try:
            resp = await asyncio.wait_for(
                self._http.request(
                    method,
                    self._url(endpoint),
                    json=json_body,
                    params=params,
                    headers=self._headers("application/json", skip_auth),
                ),
                timeout=budget,
            )
        except (asyncio.TimeoutError, httpx.HTTPError) as e:
            outcome = classify_exception(e)
            self._log("request", endpoint, start_time, outcome, method=method)
            return outcome

        if resp.status_code >= 400:
            outcome = failure_from_response(resp.status_code, resp.content)
        else:
            outcome = self._decode(resp.headers.get("content-type", ""), resp.text)
        self._log("request", endpoint, start_time, outcome, method=method, http_status=resp.status_code)
        return outcome

    @staticmethod
    def _decode(content_type: str, text: str, channel: Optional[EventChannel] = None) -> ApiOutcome:
        frames: List[SSEFrame] = []
        document: Any = decode_body(text)
        if is_stream_content_type(content_type) and not document:
            parser = SSEParser()
            frames = parser.feed(text) + parser.close()
        else:
            document, frames = expand_document(document)
        if channel is not None:
            for frame in frames:
                channel.publish(frame)
        return normalize_document(document, frames)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> ApiOutcome:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, body: Any = None, **kwargs: Any) -> ApiOutcome:
        return await self.request("POST", endpoint, json_body=body, **kwargs)

    async def put(self, endpoint: str, body: Any = None) -> ApiOutcome:
        return await self.request("PUT", endpoint, json_body=body)

    async def patch(self, endpoint: str, body: Any = None) -> ApiOutcome:
        return await self.request("PATCH", endpoint, json_body=body)

    async def delete(self, endpoint: str) -> ApiOutcome:
        return await self.request("DELETE", endpoint)

    async def stream(
        self,
        endpoint: str,
        body: Any = None,
        channel: Optional[EventChannel] = None,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
        session: Optional[StreamSession] = None,
    ) -> ApiOutcome:
        """POST and consume the response as it arrives.

        The exchange is raced against the deadline and the optional cancel
        event; whichever fires first aborts the pending read.
        """
        session = session or StreamSession()
        channel = channel or EventChannel()
        budget = timeout if timeout is not None else self.stream_timeout
        start_time = time.monotonic()

        session.transition(ClientState.CONNECTING)
        exchange = asyncio.ensure_future(self._exchange(endpoint, body, channel, session))
        waiters = {exchange}
        cancel_waiter = None
        if cancel is not None:
            cancel_waiter = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, timeout=budget, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # Our caller went away: the read must not outlive it.
            await self._abort(exchange)
            session.transition(ClientState.ABORTED)
            raise
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()

        if exchange in done:
            outcome = exchange.result()
        else:
            await self._abort(exchange)
            session.transition(ClientState.ABORTED)
            outcome = timeout_failure(cancelled=cancel_waiter is not None and cancel_waiter in done)

        self._log("stream", endpoint, start_time, outcome, state=session.state.value, frames=len(session.frames))
        return outcome

    @staticmethod
    async def _abort(exchange: asyncio.Future) -> None:
        if exchange.done():
            return
        exchange.cancel()
        try:
            await exchange
        except asyncio.CancelledError:
            pass

    async def _exchange(self, endpoint: str, body: Any, channel: EventChannel, session: StreamSession) -> ApiOutcome:
        try:
            async with self._http.stream(
                "POST",
                self._url(endpoint),
                json=body,
                headers=self._headers("text/event-stream"),
            ) as resp:
                if resp.status_code >= 400:
                    session.transition(ClientState.ERRORED)
                    return failure_from_response(resp.status_code, await resp.aread())

                content_type = resp.headers.get("content-type", "")
                if not is_stream_content_type(content_type):
                    session.transition(ClientState.SINGLE_SHOT)
                    await resp.aread()
                    outcome = self._decode(content_type, resp.text, channel)
                else:
                    session.transition(ClientState.STREAMING)
                    outcome = await self._consume(resp, channel, session)
        except httpx.HTTPError as e:
            session.transition(ClientState.ERRORED)
            return classify_exception(e)

        session.transition(ClientState.COMPLETE if outcome.success else ClientState.ERRORED)
        return outcome

    async def _consume(self, resp: httpx.Response, channel: EventChannel, session: StreamSession) -> ApiOutcome:
        raw: List[bytes] = []

        async def body():
            async for chunk in resp.aiter_bytes():
                raw.append(chunk)
                yield chunk

        async for frame in aiter_frames(body()):
            session.frames.append(frame)
            channel.publish(frame)

        outcome = normalize_frames(session.frames)
        if outcome is not None:
            return outcome
        # No frames at all: the stream may really be one JSON document.
        return self._decode("application/json", b"".join(raw).decode("utf-8", errors="replace"), channel)
