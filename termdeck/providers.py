import logging
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

import requests

from .cache import LruMap
from .config import LRCLIB_URL, LYRICS_CACHE_SIZE, NETWORK_TIMEOUT_S
from .lrc import LyricsDocument, parse_lrc
from .net import make_session
from .state import Track

LOG = logging.getLogger("termdeck.providers")

_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|]')


class LyricsNotFound(Exception):
    """Recoverable miss: nothing found, or the source was unreachable."""


class LyricsProvider(ABC):
    """
    One way of finding lyrics. Lower ``priority`` is tried first.

    ``attempt`` returns a document, or None / raises LyricsNotFound for a
    normal miss. Any other exception counts as a provider failure; the chain
    logs it and moves on.
    """

    name: str = "provider"
    priority: int = 100

    @abstractmethod
    def attempt(self, track: Track) -> Optional[LyricsDocument]:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} priority={self.priority}>"


def _safe_filename(text: str) -> str:
    return _UNSAFE_FILENAME.sub("_", text).strip()


class LocalLrcProvider(LyricsProvider):
    """``.lrc`` files in a folder, named ``Artist - Title.lrc`` or ``Title.lrc``."""

    name = "local"

    def __init__(self, directory: Path, priority: int = 0):
        self.directory = Path(directory)
        self.priority = priority

    def candidates(self, track: Track) -> List[Path]:
        title = _safe_filename(track.name)
        artist = _safe_filename(track.artist)
        names = []
        if artist:
            names.append(f"{artist} - {title}.lrc")
        names.append(f"{title}.lrc")
        return [self.directory / name for name in names]

    def attempt(self, track: Track) -> Optional[LyricsDocument]:
        if not track.name:
            raise LyricsNotFound("track has no title")
        for path in self.candidates(track):
            if path.is_file():
                LOG.info("Using local lyrics %s", path)
                return parse_lrc(path.read_text(encoding="utf-8-sig"))
        raise LyricsNotFound(f"no .lrc file in {self.directory}")


class LrclibProvider(LyricsProvider):
    """Synced lyrics from an LRCLIB instance (``/api/get``, then ``/api/search``)."""

    name = "lrclib"

    def __init__(
        self,
        base_url: str = LRCLIB_URL,
        timeout: float = NETWORK_TIMEOUT_S,
        priority: int = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.priority = priority
        self.session = session or make_session()

    def _params(self, track: Track) -> dict:
        params = {"track_name": track.name, "artist_name": track.artist}
        if track.album:
            params["album_name"] = track.album
        if track.duration_ms > 0:
            params["duration"] = int(round(track.duration_ms / 1000))
        return params

    def get_by_metadata(self, track: Track) -> Optional[dict]:
        r = self.session.get(f"{self.base_url}/api/get", params=self._params(track), timeout=self.timeout)
        if r.status_code == 404:
            return None
        r.raise_for_status()
        data = r.json()
        return data if isinstance(data, dict) else None

    def search(self, track: Track, limit: int = 10) -> List[dict]:
        params = {"query": f"{track.artist} {track.name}".strip(), "limit": int(limit)}
        if track.artist:
            params["artist_name"] = track.artist
        r = self.session.get(f"{self.base_url}/api/search", params=params, timeout=self.timeout)
        r.raise_for_status()
        data = r.json()
        return data if isinstance(data, list) else []

    @staticmethod
    def _synced(item: Optional[dict]) -> Optional[str]:
        if not isinstance(item, dict) or item.get("instrumental"):
            return None
        return (item.get("syncedLyrics") or "").strip() or None

    def attempt(self, track: Track) -> Optional[LyricsDocument]:
        if not track.name:
            raise LyricsNotFound("track has no title")
        try:
            synced = self._synced(self.get_by_metadata(track))
            if not synced:
                for item in self.search(track):
                    synced = self._synced(item)
                    if synced:
                        break
        except requests.RequestException as exc:
            raise LyricsNotFound(f"LRCLIB request failed: {exc}") from exc
        except ValueError as exc:
            # Body was not JSON.
            raise LyricsNotFound(f"LRCLIB returned an unreadable response: {exc}") from exc

        if not synced:
            raise LyricsNotFound("no synced lyrics on LRCLIB")
        return parse_lrc(synced)


class LyricsChain:
    """
    Tries registered providers in ascending priority and returns the first
    non-empty document. Found documents are memoized per (title, artist).
    """

    def __init__(self, providers: Iterable[LyricsProvider] = (), cache_size: int = LYRICS_CACHE_SIZE):
        self._providers: List[LyricsProvider] = []
        self._found: LruMap = LruMap(cache_size)
        for provider in providers:
            self.register(provider)

    @property
    def providers(self) -> List[LyricsProvider]:
        return list(self._providers)

    def register(self, provider: LyricsProvider) -> None:
        self._providers.append(provider)
        # sort() is stable, so equal priorities keep registration order
        self._providers.sort(key=lambda p: p.priority)

    def lookup(self, track: Track, cancelled: Optional[threading.Event] = None) -> Optional[LyricsDocument]:
        """First usable document for ``track``. Gives up with None once ``cancelled`` is set."""
        cached = self._found.get(track.lyrics_key)
        if cached is not None:
            return cached

        for provider in self._providers:
            if cancelled is not None and cancelled.is_set():
                LOG.debug("Lookup for %s - %s cancelled before %s", track.artist, track.name, provider.name)
                return None
            try:
                doc = provider.attempt(track)
            except LyricsNotFound as exc:
                LOG.debug("%s: no lyrics for %s - %s (%s)", provider.name, track.artist, track.name, exc)
                continue
            except Exception:
                LOG.exception("%s failed looking up %s - %s", provider.name, track.artist, track.name)
                continue

            if doc is None or doc.is_empty:
                LOG.debug("%s: nothing usable for %s - %s", provider.name, track.artist, track.name)
                continue

            if cancelled is not None and cancelled.is_set():
                return None
            LOG.info("Lyrics for %s - %s from %s (%d lines)", track.artist, track.name, provider.name, len(doc))
            self._found.put(track.lyrics_key, doc)
            return doc

        LOG.info("No lyrics for %s - %s", track.artist, track.name)
        return None
