from .api import ApiClient, ClientState, StreamSession
from .cache import JsonFileStore, MemoryStore, TripPlanCache, cache_key
from .client import StreamingClient
from .events import EventChannel
from .models import ApiOutcome, CacheEntry, Failure, ProgressUpdate, SSEFrame, Success, TripPreferences
from .service import TripService
from .sse import SSEParser, parse_sse_text

__all__ = [
    "ApiClient",
    "ApiOutcome",
    "CacheEntry",
    "ClientState",
    "EventChannel",
    "Failure",
    "JsonFileStore",
    "MemoryStore",
    "ProgressUpdate",
    "SSEFrame",
    "SSEParser",
    "StreamSession",
    "StreamingClient",
    "Success",
    "TripPlanCache",
    "TripPreferences",
    "TripService",
    "cache_key",
    "parse_sse_text",
]
