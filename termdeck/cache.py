import hashlib
import logging
import os
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Generic, Hashable, Optional, TypeVar

from PIL import Image

LOG = logging.getLogger("termdeck.cache")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

CACHE_EXT = "png"


def cache_key(lookup_key: str) -> str:
    """Stable file-name stem for a lookup string (sha256 hex digest)."""
    return hashlib.sha256(lookup_key.encode("utf-8")).hexdigest()


class LruMap(Generic[K, V]):
    """Fixed-capacity LRU map. Every method holds the lock for one O(1) operation."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"LRU capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._od: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            value = self._od.get(key)
            if value is not None:
                self._od.move_to_end(key)
            return value

    def put(self, key: K, value: V) -> Optional[K]:
        """Insert or refresh ``key``; returns the evicted key, if any."""
        with self._lock:
            if key in self._od:
                self._od.move_to_end(key)
            self._od[key] = value
            if len(self._od) > self.capacity:
                evicted, _ = self._od.popitem(last=False)
                return evicted
            return None

    def __contains__(self, key: K) -> bool:
        with self._lock:
            return key in self._od

    def __len__(self) -> int:
        with self._lock:
            return len(self._od)


class ContentCache:
    """
    Two-tier artwork cache: decoded images in a memory LRU keyed by the raw
    lookup string, lossless PNGs on disk named by the sha256 of that string.

    Disk problems never reach the caller: an unreadable file is a miss and a
    failed write only costs a re-download next session. Both tiers are touched
    from background tasks, never from the render loop.
    """

    def __init__(self, cache_dir: Path, capacity: int):
        self.cache_dir = Path(cache_dir)
        self._memory: LruMap[str, Image.Image] = LruMap(capacity)

    def path_for(self, lookup_key: str) -> Path:
        return self.cache_dir / f"{cache_key(lookup_key)}.{CACHE_EXT}"

    def get(self, lookup_key: str) -> Optional[Image.Image]:
        img = self._memory.get(lookup_key)
        if img is not None:
            return img

        path = self.path_for(lookup_key)
        if not path.is_file():
            return None
        try:
            with Image.open(path) as opened:
                opened.load()
                img = opened.copy()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
            LOG.debug("Ignoring unreadable cache file %s: %s", path, exc)
            return None

        self._remember(lookup_key, img)
        LOG.debug("Disk cache hit for %s", path.name)
        return img

    def insert(self, lookup_key: str, img: Image.Image) -> None:
        path = self.path_for(lookup_key)
        # Write to a sibling and rename so a reader never sees half a PNG.
        tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            img.save(tmp, format="PNG")
            os.replace(tmp, path)
        except (OSError, ValueError) as exc:
            LOG.warning("Failed to write artwork cache file %s: %s", path, exc)
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                LOG.debug("Could not remove %s", tmp)

        self._remember(lookup_key, img)

    def _remember(self, lookup_key: str, img: Image.Image) -> None:
        evicted = self._memory.put(lookup_key, img)
        if evicted is not None:
            LOG.debug("Memory cache evicted %s", evicted)

    def __contains__(self, lookup_key: str) -> bool:
        return lookup_key in self._memory or self.path_for(lookup_key).is_file()
