import logging
import threading
from typing import Any, Callable, Generic, Hashable, Optional, Tuple, TypeVar

from PIL import Image

from .cache import ContentCache
from .imaging import recolor
from .lrc import LyricsDocument
from .net import download_image
from .providers import LyricsChain
from .state import FetchState, Theme, Track
from .tasks import BackgroundTask, TaskPool

LOG = logging.getLogger("termdeck.orchestrators")

T = TypeVar("T")

Fetcher = Callable[[str], Optional[Image.Image]]


class FetchOrchestrator(Generic[T]):
    """
    Keeps one asset slot (artwork or lyrics) in step with the current track.

    IDLE -> LOADING -> READY | FAILED, and back to LOADING whenever the
    identity changes. At most one task is active; it is cancelled and
    dropped before a new one is stored, and ``poll`` only ever reads the
    task it currently holds, so a late result for an old identity is lost.
    """

    kind = "fetch"

    def __init__(self, pool: TaskPool):
        self._pool = pool
        self._task: Optional[BackgroundTask[T]] = None
        self._identity: Optional[Hashable] = None
        self.state = FetchState.IDLE
        self.artifact: Optional[T] = None

    @property
    def identity(self) -> Optional[Hashable]:
        return self._identity

    @property
    def busy(self) -> bool:
        return self._task is not None

    def snapshot(self) -> Tuple[FetchState, Optional[T]]:
        return self.state, self.artifact

    def _cancel_active(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            LOG.debug("Cancelled %r", task)

    def _trigger(self, identity: Optional[Hashable], fn: Callable[..., Optional[T]], *args: Any) -> bool:
        if identity == self._identity:
            return False

        self._cancel_active()
        self._identity = identity
        self.artifact = None

        if identity is None:
            self.state = FetchState.IDLE
            return True

        self._task = self._pool.spawn(fn, *args, label=f"{self.kind} {identity!r}")
        self.state = FetchState.LOADING
        return True

    def poll(self) -> bool:
        """Install the active task's result if it has finished. True on a transition."""
        task = self._task
        if task is None or not task.done():
            return False
        self._task = None

        try:
            artifact = task.result()
        except Exception:
            LOG.warning("%s task for %r crashed", self.kind, self._identity, exc_info=True)
            artifact = None

        if artifact is None:
            self.state = FetchState.FAILED
            self.artifact = None
        else:
            self.state = FetchState.READY
            self.artifact = artifact
        LOG.debug("%s %r -> %s", self.kind, self._identity, self.state.value)
        return True

    def reset(self) -> None:
        self._cancel_active()
        self._identity = None
        self.artifact = None
        self.state = FetchState.IDLE


def load_artwork(
    cancelled: threading.Event,
    cache: ContentCache,
    url: str,
    theme: Theme,
    fetch: Fetcher = download_image,
) -> Optional[Image.Image]:
    """Cached (or freshly downloaded) cover, recolored for ``theme``."""
    img = cache.get(url)
    if img is None:
        if cancelled.is_set():
            return None
        img = fetch(url)
        if img is None:
            return None
        cache.insert(url, img)

    if cancelled.is_set():
        return None
    return recolor(img, theme)


class ArtworkOrchestrator(FetchOrchestrator[Image.Image]):
    # The cache is keyed by URL alone; the theme is only part of the slot
    # identity, so switching themes recolors the cached cover again.
    kind = "artwork"

    def __init__(self, pool: TaskPool, cache: ContentCache, fetch: Fetcher = download_image, enabled: bool = True):
        super().__init__(pool)
        self.cache = cache
        self.fetch = fetch
        self.enabled = enabled

    def update(self, url: Optional[str], theme: Theme) -> bool:
        identity = (url, theme) if url and self.enabled else None
        return self._trigger(identity, load_artwork, self.cache, url, theme, self.fetch)


def find_lyrics(cancelled: threading.Event, chain: LyricsChain, track: Track) -> Optional[LyricsDocument]:
    return chain.lookup(track, cancelled)


class LyricsOrchestrator(FetchOrchestrator[LyricsDocument]):
    kind = "lyrics"

    def __init__(self, pool: TaskPool, chain: LyricsChain):
        super().__init__(pool)
        self.chain = chain

    def update(self, track: Optional[Track]) -> bool:
        identity = track.lyrics_key if track is not None and track.name else None
        return self._trigger(identity, find_lyrics, self.chain, track)

    def current_index(self, position_ms: int) -> Optional[int]:
        if self.artifact is None:
            return None
        return self.artifact.find_index(position_ms)
