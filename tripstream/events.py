from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Optional

from .models import ProgressUpdate, SSEFrame


EventHandler = Callable[[str, Any], None]
ProgressHandler = Callable[[ProgressUpdate], None]

PROGRESS_FIELDS = ("step", "status", "message")


def progress_from_frame(frame: SSEFrame) -> Optional[ProgressUpdate]:
    if frame.event != "progress" or not isinstance(frame.payload, dict):
        return None
    if not all(frame.payload.get(k) for k in PROGRESS_FIELDS):
        return None
    return ProgressUpdate(**{k: str(frame.payload[k]) for k in PROGRESS_FIELDS})


class EventChannel:
    """Ordered observer list for frames of one generation.

    Subscribers are called synchronously in frame order. A failing subscriber
    is logged and skipped so it cannot disturb parsing.
    """

    def __init__(self) -> None:
        self._event_handlers: List[EventHandler] = []
        self._progress_handlers: List[ProgressHandler] = []
        self.delivered = 0

    def subscribe(self, on_event: Optional[EventHandler] = None, on_progress: Optional[ProgressHandler] = None) -> None:
        if on_event is not None:
            self._event_handlers.append(on_event)
        if on_progress is not None:
            self._progress_handlers.append(on_progress)

    def unsubscribe(self, handler: Callable) -> None:
        if handler in self._event_handlers:
            self._event_handlers.remove(handler)
        if handler in self._progress_handlers:
            self._progress_handlers.remove(handler)

    def publish(self, frame: SSEFrame) -> None:
        self.delivered += 1
        for handler in list(self._event_handlers):
            self._call(handler, frame.event, frame.event, frame.payload)
        progress = progress_from_frame(frame)
        if progress is not None:
            for handler in list(self._progress_handlers):
                self._call(handler, frame.event, progress)

    @staticmethod
    def _call(handler: Callable, event: str, *args: Any) -> None:
        try:
            handler(*args)
        except Exception as e:
            logging.warning(json.dumps({"tool": "events", "fn": "publish", "event": event, "error": str(e)}))
