"""TTL cache for catalog reads, with key builders and invalidation intents."""
from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Pattern, Union

from ..constants import DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)

DayDate = Union[str, date, None]


def _day(day_date: DayDate) -> Optional[str]:
    if not day_date:
        return None
    return day_date.isoformat() if isinstance(day_date, date) else str(day_date)


# Key schema


def rates_key() -> str:
    return "rates_all"


def services_key(rate_id: str, number_of_people: Optional[int] = None) -> str:
    return f"services_rate_{rate_id}_people_{number_of_people or 0}"


def experiences_key(experience_type: str, day_date: DayDate = None) -> str:
    day = _day(day_date)
    return f"experiences_{experience_type}_day_{day}" if day else f"experiences_{experience_type}_all"


def tour_destinations_key(rate_id: str, day_date: DayDate = None) -> str:
    day = _day(day_date)
    return f"tour_destinations_{rate_id}_day_{day}" if day else f"tour_destinations_{rate_id}_all"


def tour_vehicles_key(
    rate_id: str, destination_id: str, number_of_people: Optional[int] = None, day_date: DayDate = None
) -> str:
    return (
        f"tour_vehicles_{rate_id}_{destination_id}_people_{number_of_people or 0}"
        f"_day_{_day(day_date) or 'all'}"
    )


def quote_key(quote_id: str) -> str:
    return f"quote_{quote_id}"


# Invalidation intents


class InvalidationIntent:
    """Base class for the finite set of reasons a cached read goes stale."""


@dataclass(frozen=True)
class ByPeople(InvalidationIntent):
    pass


@dataclass(frozen=True)
class ByDate(InvalidationIntent):
    day_date: DayDate = None


@dataclass(frozen=True)
class ByRate(InvalidationIntent):
    rate_id: Optional[str] = None


@dataclass(frozen=True)
class ByQuote(InvalidationIntent):
    quote_id: str


@dataclass(frozen=True)
class All(InvalidationIntent):
    pass


def pattern_for(intent: InvalidationIntent) -> Optional[Pattern[str]]:
    """Compiled pattern selecting the keys an intent invalidates; ``None`` means every key."""

    if isinstance(intent, All):
        return None
    if isinstance(intent, ByPeople):
        return re.compile(r"people_\d+")
    if isinstance(intent, ByDate):
        day = _day(intent.day_date)
        return re.compile(f"day_{re.escape(day)}" if day else r"day_\d{4}-\d{2}-\d{2}")
    if isinstance(intent, ByRate):
        if intent.rate_id is None:
            return re.compile(r"^(services_rate_|tour_)")
        rate = re.escape(intent.rate_id)
        return re.compile(f"^(services_rate_{rate}_|tour_destinations_{rate}_|tour_vehicles_{rate}_)")
    if isinstance(intent, ByQuote):
        return re.compile(f"^{re.escape(quote_key(intent.quote_id))}$")
    raise TypeError(f"Unknown invalidation intent: {intent!r}")


@dataclass
class CacheEntry:
    data: Any
    inserted_at: float
    ttl: float


class QuoteDataCache:
    """In-process TTL cache; durations are seconds measured on ``clock``."""

    def __init__(self, default_ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._pending: dict[str, asyncio.Future] = {}
        self.reset_stats()

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.inserted_at > entry.ttl

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        if self._is_expired(entry):
            del self._entries[key]
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(data, self._clock(), self.default_ttl if ttl is None else ttl)
        self._stats["sets"] += 1

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._is_expired(entry):
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries and return how many went."""

        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        """Remove every key matching ``pattern``; a plain string is a key prefix."""

        regex = pattern if isinstance(pattern, re.Pattern) else re.compile("^" + re.escape(pattern))
        matched = [key for key in self._entries if regex.search(key)]
        for key in matched:
            del self._entries[key]
        self._stats["invalidations"] += len(matched)
        logger.debug("Invalidated %d cache entries matching %s", len(matched), regex.pattern)
        return len(matched)

    def invalidate(self, intent: InvalidationIntent) -> int:
        pattern = pattern_for(intent)
        if pattern is None:
            count = len(self._entries)
            self._entries.clear()
            self._stats["invalidations"] += count
            logger.debug("Invalidated all %d cache entries", count)
            return count
        return self.invalidate_pattern(pattern)

    async def get_or_set(
        self, key: str, loader: Callable[[], Awaitable[Any]], ttl: Optional[float] = None
    ) -> Any:
        """Return the cached value or load it once, however many callers are waiting."""

        cached = self.get(key)
        if cached is not None:
            return cached
        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._load(key, loader, ttl))
            self._pending[key] = pending
        return await asyncio.shield(pending)

    async def _load(self, key: str, loader: Callable[[], Awaitable[Any]], ttl: Optional[float]) -> Any:
        try:
            data = await loader()
            self.set(key, data, ttl)
            return data
        finally:
            self._pending.pop(key, None)

    def get_stats(self) -> dict[str, Any]:
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = round(self._stats["hits"] / total * 100, 2) if total else 0.0
        return {**self._stats, "size": len(self._entries), "hit_rate": hit_rate}

    def reset_stats(self) -> None:
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "invalidations": 0}
