import asyncio
from typing import Callable, Iterable, List, Optional, Union

import httpx
import pytest

from tripstream import TripPreferences


class ChunkStream(httpx.AsyncByteStream):
    """Response body delivered chunk by chunk, optionally never finishing."""

    def __init__(self, chunks: Iterable[Union[str, bytes]], hang: bool = False) -> None:
        self.chunks = list(chunks)
        self.hang = hang

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
            await asyncio.sleep(0)
        if self.hang:
            await asyncio.sleep(3600)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def stream_transport(
    chunks: Iterable[Union[str, bytes]],
    calls: Optional[List[httpx.Request]] = None,
    content_type: str = "text/event-stream",
    status_code: int = 200,
    hang: bool = False,
) -> httpx.MockTransport:
    chunks = list(chunks)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status_code, headers={"content-type": content_type}, stream=ChunkStream(chunks, hang))

    return httpx.MockTransport(handler)


def failing_transport(exc_factory: Callable[[httpx.Request], Exception]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_factory(request)

    return httpx.MockTransport(handler)


class CountingTransport(httpx.AsyncBaseTransport):
    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.inner.handle_async_request(request)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def paris():
    return TripPreferences(destination="Paris", duration=3, travelers=2)
