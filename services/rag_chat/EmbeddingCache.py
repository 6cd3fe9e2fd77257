"""Bounded in-memory cache of embedding results."""

import hashlib
import threading
from collections import OrderedDict

from shared.models.embedding import EmbeddingResult

DEFAULT_MAX_SIZE = 1000


class EmbeddingCache:
    """FIFO cache keyed by (provider id, normalised text).

    When full, the oldest inserted entry is evicted regardless of how often it
    was read. Re-putting an existing key replaces the value in place and keeps
    its original insertion position.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError("Embedding cache size must be at least 1, got %d." % max_size)
        self.max_size = max_size
        self._entries: OrderedDict[str, EmbeddingResult] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def make_key(provider_id: str, text: str) -> str:
        return hashlib.md5(f"{provider_id}:{text}".encode("utf-8")).hexdigest()

    def get(self, provider_id: str, text: str) -> EmbeddingResult | None:
        with self._lock:
            return self._entries.get(self.make_key(provider_id, text))

    def put(self, provider_id: str, text: str, result: EmbeddingResult) -> None:
        key = self.make_key(provider_id, text)
        with self._lock:
            if key in self._entries:
                self._entries[key] = result
                return
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
