from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from .api import ApiClient, StreamSession
from .cache import TripPlanCache
from .config import CONFIG
from .events import EventChannel, EventHandler, ProgressHandler
from .models import ApiOutcome, Success, TripPreferences


GENERATE_ENDPOINT = "/trips/plan-trip-with-preferences"


class StreamingClient:
    """Generates trip plans, serving repeats from the plan cache.

    The cache is passed in by reference so one store can back every client of
    a session.
    """

    def __init__(
        self,
        api: ApiClient,
        cache: TripPlanCache,
        cache_hit_delay: float = CONFIG.cache_hit_delay_sec,
    ) -> None:
        self.api = api
        self.cache = cache
        self.cache_hit_delay = cache_hit_delay
        self.last_session: Optional[StreamSession] = None

    async def generate(
        self,
        preferences: TripPreferences,
        on_progress: Optional[ProgressHandler] = None,
        on_event: Optional[EventHandler] = None,
        channel: Optional[EventChannel] = None,
        bypass_cache: bool = False,
        cancel: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> ApiOutcome:
        if not bypass_cache:
            entry = self.cache.get(preferences)
            if entry is not None:
                # Keep perceived latency consistent with a real call
                await asyncio.sleep(self.cache_hit_delay)
                return Success(data=entry.result, cached=True)

        channel = channel or EventChannel()
        channel.subscribe(on_event=on_event, on_progress=on_progress)
        session = StreamSession()
        self.last_session = session

        try:
            outcome = await self.api.stream(
                f"{GENERATE_ENDPOINT}?stream=true",
                body=preferences.to_payload(),
                channel=channel,
                timeout=timeout,
                cancel=cancel,
                session=session,
            )
        finally:
            # Per-call handlers must not stay attached to a shared channel
            for handler in (on_event, on_progress):
                if handler is not None:
                    channel.unsubscribe(handler)
        if isinstance(outcome, Success) and outcome.data:
            entry = self.cache.set(preferences, outcome.data)
            logging.info(json.dumps({"tool": "tripstream", "fn": "generate", "cached_as": entry.key}))
        return outcome
