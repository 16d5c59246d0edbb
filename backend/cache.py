"""Deterministic cache keys and a TTL layer over a plain key-value store."""

import json
import logging
import time
from typing import Any, Callable, Iterable, Protocol

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from models import CacheEntry, Coordinates

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "_"
INTEREST_SEPARATOR = ","


def normalize_interests(interests: Iterable[str]) -> list[str]:
    """Strip, drop blanks, de-duplicate and sort alphabetically."""
    return sorted({i.strip() for i in interests if i and i.strip()})


def _round_coord(value: float) -> str:
    # + 0.0 folds -0.0 into 0.0 so "-0.00" never appears in a key
    return f"{round(value, 2) + 0.0:.2f}"


def build_key(prefix: str, coords: Coordinates, interests: Iterable[str]) -> str:
    return KEY_SEPARATOR.join([
        prefix,
        _round_coord(coords.latitude),
        _round_coord(coords.longitude),
        INTEREST_SEPARATOR.join(normalize_interests(interests)),
    ])


def build_text_key(prefix: str, text: str, interests: Iterable[str] = ()) -> str:
    """Key for per-place entries: case-insensitive name plus normalized interests."""
    return KEY_SEPARATOR.join([
        prefix,
        " ".join(text.split()).lower(),
        INTEREST_SEPARATOR.join(normalize_interests(interests)),
    ])


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> bool:
        ...

    def remove(self, key: str) -> bool:
        ...

    def clear(self) -> bool:
        ...


class InMemoryStore:
    """Process-local store, used for tests and CACHE_BACKEND=memory."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        self._data[key] = value
        return True

    def remove(self, key: str) -> bool:
        self._data.pop(key, None)
        return True

    def clear(self) -> bool:
        self._data.clear()
        return True

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class TTLCache:
    """Wraps values in a CacheEntry and evicts them lazily on read."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self._clock = clock

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def get_cached(self, key: str, data_type: Any = None) -> Any:
        raw = self.store.get(key)
        if raw is None:
            logger.debug("cache miss %s", key)
            return None
        try:
            entry = CacheEntry.model_validate_json(raw)
        except PydanticValidationError as exc:
            logger.debug("cache entry for %s unreadable, dropping: %s", key, exc)
            self.store.remove(key)
            return None

        if self._now_ms() - entry.timestamp > entry.expires_in:
            logger.debug("cache expired %s", key)
            self.store.remove(key)
            return None

        if data_type is None:
            return entry.data
        try:
            return TypeAdapter(data_type).validate_python(entry.data)
        except PydanticValidationError as exc:
            logger.debug("cache entry for %s has unexpected shape, dropping: %s", key, exc)
            self.store.remove(key)
            return None

    def set_cached(self, key: str, data: Any, ttl_ms: float) -> bool:
        entry = {
            "data": to_jsonable_python(data),
            "timestamp": self._now_ms(),
            "expires_in": ttl_ms,
        }
        return self.store.set(key, json.dumps(entry))
