"""Time-boxed cache of generated trip plans, keyed by normalized preferences."""
from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import MutableMapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError

from .config import CONFIG
from .models import CacheEntry, TripPreferences


CACHE_KEY_PREFIX = "trip-plan-cache-"


def _text(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


def _normalize_datetime(value: Optional[str]) -> str:
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return value.strip()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_preferences(prefs: TripPreferences) -> Dict[str, Any]:
    """Canonical form of the fields that decide whether two requests are the same."""
    return {
        "destination": _text(prefs.destination),
        "origin": _text(prefs.origin),
        "country": _text(prefs.country),
        "state": _text(prefs.state or prefs.city),
        "travelType": _text(prefs.travel_type),
        "interests": sorted(_text(i) for i in prefs.interests),
        "season": _text(prefs.season),
        "duration": int(prefs.duration) if prefs.duration is not None else None,
        "budget": round(prefs.budget) if prefs.budget is not None else None,
        "budgetRange": _text(prefs.budget_range),
        "budgetRangeString": (prefs.budget_range_string or "").strip(),
        "travelers": int(prefs.travelers),
        "currency": (prefs.currency or "").strip().upper(),
        "startDateTime": _normalize_datetime(prefs.start_date_time or prefs.arrival_date_time),
        "endDateTime": _normalize_datetime(prefs.end_date_time or prefs.departure_date_time),
    }


def cache_key(prefs: TripPreferences) -> str:
    canonical = json.dumps(normalize_preferences(prefs), sort_keys=True, separators=(",", ":"))
    return CACHE_KEY_PREFIX + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class MemoryStore(dict):
    """Process-local backing store."""


class JsonFileStore(MutableMapping):
    """Backing store persisted as one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logging.warning(json.dumps({"tool": "cache", "fn": "load", "path": str(self.path), "error": str(e)}))
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._data, f)
        tmp.replace(self.path)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)


class TripPlanCache:
    def __init__(
        self,
        store: Optional[MutableMapping] = None,
        clock: Callable[[], float] = time.time,
        ttl: float = CONFIG.cache_ttl_sec,
        max_entries: int = CONFIG.cache_max_entries,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.clock = clock
        self.ttl = ttl
        self.max_entries = max_entries

    def _read(self, key: str) -> Optional[CacheEntry]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError:
            del self.store[key]
            return None

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now >= entry.stored_at + self.ttl

    def get(self, prefs: TripPreferences) -> Optional[CacheEntry]:
        key = cache_key(prefs)
        entry = self._read(key)
        if entry is None:
            logging.info(json.dumps({"tool": "cache", "fn": "get", "key": key, "hit": False}))
            return None
        if self._expired(entry, self.clock()):
            del self.store[key]
            logging.info(json.dumps({"tool": "cache", "fn": "get", "key": key, "hit": False, "expired": True}))
            return None
        logging.info(json.dumps({"tool": "cache", "fn": "get", "key": key, "hit": True}))
        return entry

    def set(self, prefs: TripPreferences, result: Any) -> CacheEntry:
        key = cache_key(prefs)
        entry = CacheEntry(key=key, preferences=normalize_preferences(prefs), result=result, stored_at=self.clock())
        if key not in self.store:
            self._make_room()
        self.store[key] = entry.model_dump(mode="json")
        logging.info(json.dumps({"tool": "cache", "fn": "set", "key": key, "size": len(self.store)}))
        return entry

    def _make_room(self) -> None:
        # Oldest by stored_at goes first, regardless of how recently it was read.
        while len(self.store) >= max(self.max_entries, 1):
            stamps = {}
            for key in list(self.store):
                entry = self._read(key)
                if entry is not None:
                    stamps[key] = entry.stored_at
            if not stamps:
                break
            del self.store[min(stamps, key=stamps.get)]

    def evict_expired(self) -> int:
        now = self.clock()
        removed = 0
        for key in list(self.store):
            entry = self._read(key)
            if entry is None:
                removed += 1
            elif self._expired(entry, now):
                del self.store[key]
                removed += 1
        return removed

    def remove(self, prefs: TripPreferences) -> bool:
        key = cache_key(prefs)
        if key in self.store:
            del self.store[key]
            return True
        return False

    def clear(self) -> int:
        count = len(self.store)
        for key in list(self.store):
            del self.store[key]
        return count

    def keys(self) -> List[str]:
        return list(self.store)
