import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from cachetools import TLRUCache

logger = logging.getLogger(__name__)

CACHE_TTL = 10 * 60
CACHE_MAXSIZE = 1024


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float


def _entry_expiry(key:str, entry:CacheEntry, now:float) -> float:
    return entry.expires_at


class ResultCache():
    """TTL cache of resolved results on top of ``cachetools.TLRUCache``.

    Each entry carries its own expiry, so ``put`` can override the default
    ttl. Expired entries are dropped on every write and on a read of the
    expired key; the least recently used entry goes once ``maxsize`` is hit.
    Failed resolutions are never stored, and concurrent writers for the same
    key simply race: the last ``put`` wins.
    """

    def __init__(self, ttl:float=CACHE_TTL, clock:Callable[[], float]=time.monotonic, maxsize:int=CACHE_MAXSIZE) -> None:
        self.ttl : float = ttl
        self.clock : Callable[[], float] = clock
        self._entries : TLRUCache = TLRUCache(maxsize, ttu=_entry_expiry, timer=clock)

    def get(self, key:str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            for expired_key, _ in self._entries.expire():
                logger.debug(f"Cache entry expired: {expired_key}")
            return None
        return entry.value

    def put(self, key:str, value:Any, ttl:Optional[float]=None) -> CacheEntry:
        entry = CacheEntry(key, value, self.clock() + (self.ttl if ttl is None else ttl))
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key:str) -> bool:
        return self.get(key) is not None
