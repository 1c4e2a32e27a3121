from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from enum import Enum
import logging
import threading
import time
from typing import Any, Callable, Union

logger = logging.getLogger(__name__)


def _freeze(part: Any) -> Any:
    if isinstance(part, (list, tuple)):
        return tuple(_freeze(item) for item in part)
    return part


class QueryKey:
    __slots__ = ("_parts",)

    def __init__(self, *parts: Any):
        frozen = tuple(_freeze(part) for part in parts)
        hash(frozen)
        self._parts = frozen

    @property
    def parts(self) -> tuple[Any, ...]:
        return self._parts

    def starts_with(self, prefix: "QueryKey") -> bool:
        return self._parts[: len(prefix._parts)] == prefix._parts

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryKey):
            return NotImplemented
        return self._parts == other._parts

    def __hash__(self) -> int:
        return hash(self._parts)

    def __len__(self) -> int:
        return len(self._parts)

    def __copy__(self) -> "QueryKey":
        return self

    def __deepcopy__(self, memo: dict) -> "QueryKey":
        return self

    def __repr__(self) -> str:
        return f"QueryKey{self._parts!r}"


Selector = Union[QueryKey, Callable[[QueryKey], bool], None]


class CacheStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CacheEntry:
    key: QueryKey
    data: Any
    status: CacheStatus
    last_updated: float
    is_stale: bool = False
    error: str | None = None


@dataclass(frozen=True)
class _Fetch:
    generation: int
    previous_status: CacheStatus


def _matcher(selector: Selector) -> Callable[[QueryKey], bool]:
    if selector is None:
        return lambda key: True
    if isinstance(selector, QueryKey):
        return lambda key: key.starts_with(selector)
    return selector


class EntityCache:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._fetches: dict[QueryKey, _Fetch] = {}
        self._generation = 0
        self._listeners: list[Callable[[list[QueryKey]], None]] = []

    def get(self, key: QueryKey) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            return copy.deepcopy(entry) if entry is not None else None

    def get_data(self, key: QueryKey) -> Any:
        entry = self.get(key)
        return entry.data if entry is not None else None

    def keys(self) -> list[QueryKey]:
        with self._lock:
            return list(self._entries)

    def set(self, key: QueryKey, data: Any) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            data=copy.deepcopy(data),
            status=CacheStatus.SUCCESS,
            last_updated=self._clock(),
        )
        with self._lock:
            self._entries[key] = entry
        return copy.deepcopy(entry)

    def patch(self, key: QueryKey, updater: Callable[[Any], Any]) -> CacheEntry | None:
        """Replace the data under ``key`` with ``updater(copy_of_data)``.

        Returns the entry as it was before the patch, or ``None`` when there
        was no data to patch (in which case nothing is written).
        """
        with self._lock:
            previous = self._entries.get(key)
            if previous is None or previous.data is None:
                return None
            updated = updater(copy.deepcopy(previous.data))
            self._entries[key] = replace(
                previous,
                data=copy.deepcopy(updated),
                last_updated=self._clock(),
            )
            return copy.deepcopy(previous)

    def restore(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.key] = copy.deepcopy(entry)

    def invalidate(self, selector: Selector) -> list[QueryKey]:
        matches = _matcher(selector)
        with self._lock:
            keys = [key for key in self._entries if matches(key)]
            for key in keys:
                self._entries[key] = replace(self._entries[key], is_stale=True)
            listeners = list(self._listeners)

        if keys:
            for listener in listeners:
                listener(list(keys))
        return keys

    def evict(self, selector: Selector) -> int:
        matches = _matcher(selector)
        with self._lock:
            keys = [key for key in self._entries if matches(key)]
            for key in keys:
                del self._entries[key]
            for key in [key for key in self._fetches if matches(key)]:
                del self._fetches[key]

        if keys:
            logger.debug("Evicted %d cache entries", len(keys))
        return len(keys)

    def clear(self) -> int:
        return self.evict(None)

    def cancel(self, selector: Selector) -> list[QueryKey]:
        matches = _matcher(selector)
        with self._lock:
            keys = [key for key in self._fetches if matches(key)]
            for key in keys:
                fetch = self._fetches.pop(key)
                entry = self._entries.get(key)
                if entry is not None and entry.status == CacheStatus.LOADING:
                    self._entries[key] = replace(entry, status=fetch.previous_status)

        if keys:
            logger.debug("Cancelled in-flight fetches for %s", keys)
        return keys

    def is_fetching(self, key: QueryKey) -> bool:
        with self._lock:
            return key in self._fetches

    def begin_fetch(self, key: QueryKey) -> int:
        with self._lock:
            self._generation += 1
            entry = self._entries.get(key)
            running = self._fetches.get(key)
            if running is not None:
                previous_status = running.previous_status
            elif entry is not None:
                previous_status = entry.status
            else:
                previous_status = CacheStatus.IDLE

            self._fetches[key] = _Fetch(self._generation, previous_status)
            if entry is None:
                self._entries[key] = CacheEntry(
                    key=key,
                    data=None,
                    status=CacheStatus.LOADING,
                    last_updated=0.0,
                )
            else:
                self._entries[key] = replace(entry, status=CacheStatus.LOADING)
            return self._generation

    def complete_fetch(self, key: QueryKey, generation: int, data: Any) -> bool:
        with self._lock:
            if not self._owns_fetch(key, generation):
                logger.debug("Discarding superseded response for %r", key)
                return False
            del self._fetches[key]
            self._entries[key] = CacheEntry(
                key=key,
                data=copy.deepcopy(data),
                status=CacheStatus.SUCCESS,
                last_updated=self._clock(),
            )
            return True

    def fail_fetch(self, key: QueryKey, generation: int, error: str) -> bool:
        with self._lock:
            if not self._owns_fetch(key, generation):
                return False
            del self._fetches[key]
            entry = self._entries.get(key)
            if entry is not None:
                self._entries[key] = replace(entry, status=CacheStatus.ERROR, error=error)
            return True

    def subscribe(self, listener: Callable[[list[QueryKey]], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _owns_fetch(self, key: QueryKey, generation: int) -> bool:
        fetch = self._fetches.get(key)
        return fetch is not None and fetch.generation == generation
