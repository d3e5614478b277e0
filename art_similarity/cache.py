"""
Content-addressed descriptor cache.

Stored artworks never change once saved, so a descriptor only depends on
the image bytes and the extraction parameters. Entries are keyed by the
SHA-1 of the encoded bytes plus those parameters and evicted least
recently used first.
"""

import os
import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from .descriptors import Descriptor

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = int(os.environ.get("CCV_CACHE_SIZE", "1024"))

CacheKey = Tuple[str, int, int, int]


class DescriptorCache:
    """
    Thread-safe LRU cache of descriptors keyed by image content.

    Entries are stored as tuples and handed out as fresh lists, so callers
    may modify what they get back.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, Descriptor]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(data: bytes, grid_size: int, canonical_size: int,
                 top_colors: int) -> CacheKey:
        digest = hashlib.sha1(data).hexdigest()
        return digest, grid_size, canonical_size, top_colors

    def get(self, key: CacheKey) -> Optional[Descriptor]:
        with self._lock:
            descriptor = self._entries.get(key)
            if descriptor is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return [list(cell) for cell in descriptor]

    def put(self, key: CacheKey, descriptor: Descriptor) -> None:
        with self._lock:
            self._entries[key] = tuple(tuple(cell) for cell in descriptor)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get_or_compute(self, key: CacheKey,
                       compute: Callable[[], Descriptor]) -> Descriptor:
        """
        Return the cached descriptor for key, computing and storing it on
        a miss. Errors raised by compute propagate and nothing is stored.
        """
        descriptor = self.get(key)
        if descriptor is not None:
            logger.debug(f"Descriptor cache hit {key[0][:12]}")
            return descriptor

        descriptor = compute()
        self.put(key, descriptor)
        return descriptor

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict:
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "size": len(self._entries),
                "max_entries": self.max_entries,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key) -> bool:
        with self._lock:
            return key in self._entries
