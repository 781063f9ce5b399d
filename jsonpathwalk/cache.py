import logging
import os
import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Protocol

from .compiler import CompiledPath

logger = logging.getLogger(__name__)

CACHE_ENV_VAR = "JSONPATHWALK_CACHE"
CACHE_SIZE_ENV_VAR = "JSONPATHWALK_CACHE_SIZE"
DEFAULT_CACHE_SIZE = 400
_VALID_CACHES = {"lru", "none"}


class PathCache(Protocol):
    def get(self, key: Hashable) -> CompiledPath | None: ...

    def put(self, key: Hashable, compiled: CompiledPath) -> CompiledPath: ...

    def clear(self) -> None: ...

    def get_or_compile(
        self, key: Hashable, compile_fn: Callable[[], CompiledPath]
    ) -> CompiledPath:
        cached = self.get(key)
        if cached is not None:
            return cached
        # Compile outside any lock; concurrent misses on one key may both
        # compile, and `put` keeps whichever entry landed first.
        return self.put(key, compile_fn())


class LRUPathCache(PathCache):
    """
    Bounded cache of compiled paths with least-recently-used eviction.

    Safe for concurrent use: the lock only guards dictionary bookkeeping, so
    compilations for different keys never wait on each other.
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size < 1:
            raise ValueError(f"Cache size must be positive, got {max_size}.")
        self._max_size = max_size
        self._entries: OrderedDict[Hashable, CompiledPath] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key):
        with self._lock:
            compiled = self._entries.get(key)
            if compiled is not None:
                self._entries.move_to_end(key)
        if compiled is None:
            logger.debug("Cache MISS: %r", key)
        else:
            logger.debug("Cache HIT: %r", key)
        return compiled

    def put(self, key, compiled):
        evicted = None
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                self._entries.move_to_end(key)
                return existing
            self._entries[key] = compiled
            if len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
        if evicted is not None:
            logger.debug("Cache EVICT: %r", evicted)
        return compiled

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries


class NoopPathCache(PathCache):
    """Cache that never stores anything: every lookup compiles afresh."""

    def get(self, key):
        return None

    def put(self, key, compiled):
        return compiled

    def clear(self):
        pass


def _cache_size_from_env(max_size: int | None) -> int:
    if max_size is not None:
        return max_size
    raw_size = os.getenv(CACHE_SIZE_ENV_VAR)
    if raw_size is None or not raw_size.strip():
        return DEFAULT_CACHE_SIZE
    try:
        return int(raw_size)
    except ValueError as ex:
        raise ValueError(
            f"Invalid cache size '{raw_size}' in {CACHE_SIZE_ENV_VAR}. Expected an integer."
        ) from ex


def resolve_cache(
    preference: str | None = None, max_size: int | None = None
) -> PathCache:
    requested = (preference or os.getenv(CACHE_ENV_VAR, "lru")).strip().lower()

    if requested not in _VALID_CACHES:
        valid_options = ", ".join(sorted(_VALID_CACHES))
        raise ValueError(
            f"Invalid cache '{requested}'. Expected one of: {valid_options}."
        )

    if requested == "none":
        return NoopPathCache()
    return LRUPathCache(_cache_size_from_env(max_size))


_shared_cache: PathCache | None = None
_shared_cache_lock = threading.Lock()


def shared_path_cache() -> PathCache:
    """Return the process-wide cache, creating it from the environment on first use."""
    global _shared_cache
    with _shared_cache_lock:
        if _shared_cache is None:
            _shared_cache = resolve_cache()
        return _shared_cache
