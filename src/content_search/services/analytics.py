"""Search analytics recorder.

Analytics sit off the ranking path: the search service reports events here
after a result is produced, and a failing recorder never fails a search.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter, deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any


logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 10_000


@dataclass(frozen=True, slots=True)
class QueryEvent:
    query: str
    result_count: int
    duration_ms: float
    recorded_at: float
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ClickEvent:
    query: str
    document_id: int
    position: int
    recorded_at: float


@dataclass(frozen=True, slots=True)
class SlowQueryEvent:
    query: str
    duration_ms: float
    recorded_at: float
    metadata: Mapping[str, Any] = field(default_factory=dict)


class AbstractSearchAnalytics(ABC):
    @abstractmethod
    def record_query(
        self,
        query: str,
        result_count: int,
        duration_ms: float,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_click(self, query: str, document_id: int, position: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_cache_hit(self, namespace: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_cache_miss(self, namespace: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_slow_query(
        self,
        query: str,
        duration_ms: float,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        raise NotImplementedError


class InMemorySearchAnalytics(AbstractSearchAnalytics):
    """Bounded in-process event log with simple aggregate reports."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._queries: deque[QueryEvent] = deque(maxlen=max_events)
        self._clicks: deque[ClickEvent] = deque(maxlen=max_events)
        self._slow_queries: deque[SlowQueryEvent] = deque(maxlen=max_events)
        self._cache_hits: Counter[str] = Counter()
        self._cache_misses: Counter[str] = Counter()
        self._lock = threading.Lock()

    def record_query(
        self,
        query: str,
        result_count: int,
        duration_ms: float,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        event = QueryEvent(
            query=_normalize(query),
            result_count=result_count,
            duration_ms=duration_ms,
            recorded_at=self._clock(),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._queries.append(event)

    def record_click(self, query: str, document_id: int, position: int) -> None:
        event = ClickEvent(
            query=_normalize(query),
            document_id=document_id,
            position=position,
            recorded_at=self._clock(),
        )
        with self._lock:
            self._clicks.append(event)

    def record_cache_hit(self, namespace: str) -> None:
        with self._lock:
            self._cache_hits[namespace] += 1

    def record_cache_miss(self, namespace: str) -> None:
        with self._lock:
            self._cache_misses[namespace] += 1

    def record_slow_query(
        self,
        query: str,
        duration_ms: float,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        event = SlowQueryEvent(
            query=_normalize(query),
            duration_ms=duration_ms,
            recorded_at=self._clock(),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._slow_queries.append(event)

    # -- reports ---------------------------------------------------------------

    def top_queries(self, limit: int = 10) -> list[tuple[str, int]]:
        """Most frequent non-empty queries, ties broken alphabetically."""
        with self._lock:
            counts = Counter(event.query for event in self._queries if event.query)
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]

    def no_result_queries(self, limit: int = 10) -> list[tuple[str, int]]:
        with self._lock:
            counts = Counter(event.query for event in self._queries if event.query and event.result_count == 0)
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]

    def performance_summary(self) -> dict[str, float | int]:
        with self._lock:
            durations = [event.duration_ms for event in self._queries]
            zero_results = sum(1 for event in self._queries if event.result_count == 0)
            slow = len(self._slow_queries)
            hits = sum(self._cache_hits.values())
            misses = sum(self._cache_misses.values())

        lookups = hits + misses
        return {
            "total_searches": len(durations),
            "avg_duration_ms": round(sum(durations) / len(durations), 2) if durations else 0.0,
            "max_duration_ms": round(max(durations), 2) if durations else 0.0,
            "min_duration_ms": round(min(durations), 2) if durations else 0.0,
            "zero_result_searches": zero_results,
            "slow_searches": slow,
            "cache_hit_rate": round(hits / lookups, 4) if lookups else 0.0,
        }

    def click_through_rate(self) -> float:
        """Share of recorded searches followed by at least one click on the same query."""
        with self._lock:
            searched = Counter(event.query for event in self._queries if event.query)
            clicked = {event.query for event in self._clicks}
        total = sum(searched.values())
        if not total:
            return 0.0
        converted = sum(count for query, count in searched.items() if query in clicked)
        return round(converted / total, 4)


def _normalize(query: str) -> str:
    return " ".join(query.lower().split())
