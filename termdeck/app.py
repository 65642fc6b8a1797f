import logging
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

from .cache import ContentCache
from .config import (
    ARTWORK_CACHE_DIR,
    ARTWORK_CACHE_SIZE,
    DEFAULT_VOLUME,
    INPUT_TIMEOUT_S,
    LYRICS_DIR,
    MAX_WORKERS,
    POLL_INTERVAL_S,
    SEEK_STEP_S,
    THEMES,
    VOLUME_STEP,
    configure_logging,
)
from .net import download_image
from .orchestrators import ArtworkOrchestrator, Fetcher, LyricsOrchestrator
from .player import MediaPlayer, PlayerError
from .providers import LocalLrcProvider, LrclibProvider, LyricsChain
from .state import PlaybackState, RepeatMode, Theme, Track
from .tasks import TaskPool
from .ui import ScrollTextCache

LOG = logging.getLogger("termdeck.app")

_NEXT_REPEAT = {
    RepeatMode.OFF: RepeatMode.ALL,
    RepeatMode.ALL: RepeatMode.ONE,
    RepeatMode.ONE: RepeatMode.OFF,
}


class App:
    """Now-playing model polled by the UI loop; owns both asset orchestrators."""

    def __init__(
        self,
        player: MediaPlayer,
        artwork_cache: ContentCache,
        lyrics_chain: LyricsChain,
        pool: TaskPool,
        themes: Optional[Sequence[Theme]] = None,
        theme_index: int = 0,
        fetch: Fetcher = download_image,
        artwork_enabled: bool = True,
    ):
        self.themes = list(THEMES if themes is None else themes)
        if not self.themes:
            raise ValueError("at least one theme is required")
        self.theme_index = theme_index % len(self.themes)

        self.player = player
        self.pool = pool
        self.artwork = ArtworkOrchestrator(pool, artwork_cache, fetch, enabled=artwork_enabled)
        self.lyrics = LyricsOrchestrator(pool, lyrics_chain)
        self.scroll = ScrollTextCache()

        self.track: Optional[Track] = None
        self.playback_state = PlaybackState.STOPPED
        self.artwork_url: Optional[str] = None
        self._artwork_url_for: Optional[Tuple[str, str, str]] = None

        try:
            volume = player.get_volume()
        except PlayerError as exc:
            LOG.warning("Could not read initial volume: %s", exc)
            volume = DEFAULT_VOLUME
        self.volume = volume
        self.saved_volume = volume
        self.is_muted = False
        self.shuffle = False
        self.repeat_mode = RepeatMode.OFF
        self.show_help = False
        self.frame = 0

    @property
    def theme(self) -> Theme:
        return self.themes[self.theme_index]

    # ----------------------------
    # Tick
    # ----------------------------

    def update(self) -> None:
        self.frame += 1
        try:
            status = self.player.get_player_status()
        except PlayerError as exc:
            LOG.warning("Player status unavailable: %s", exc)
        else:
            self.track = status.track
            self.volume = status.volume
            self.playback_state = status.state

        self.artwork.update(self._resolve_artwork_url(), self.theme)
        self.lyrics.update(self.track)
        self.artwork.poll()
        self.lyrics.poll()

    def _resolve_artwork_url(self) -> Optional[str]:
        track = self.track
        if track is None:
            self._artwork_url_for = None
            self.artwork_url = None
            return None

        key = (track.name, track.artist, track.album)
        if key != self._artwork_url_for:
            try:
                url = self.player.get_artwork_url(track)
            except PlayerError as exc:
                # not remembered, so the next tick asks again
                LOG.warning("Artwork URL lookup failed for %s - %s: %s", track.artist, track.name, exc)
                return None
            self._artwork_url_for = key
            self.artwork_url = url or None
        return self.artwork_url

    # ----------------------------
    # Transport
    # ----------------------------

    def toggle_playback(self) -> None:
        self.player.toggle()

    def next_track(self) -> None:
        self.player.next()

    def previous_track(self) -> None:
        self.player.previous()

    def volume_up(self) -> None:
        self._set_volume(min(100, self.volume + VOLUME_STEP))

    def volume_down(self) -> None:
        self._set_volume(max(0, self.volume - VOLUME_STEP))

    def _set_volume(self, volume: int) -> None:
        self.player.set_volume(volume)
        self.volume = volume
        self.is_muted = False

    def toggle_mute(self) -> None:
        if self.is_muted:
            self.player.set_volume(self.saved_volume)
            self.volume = self.saved_volume
            self.is_muted = False
        else:
            self.player.set_volume(0)
            self.saved_volume = self.volume
            self.volume = 0
            self.is_muted = True

    def seek_forward(self) -> None:
        self.player.seek(SEEK_STEP_S)

    def seek_backward(self) -> None:
        self.player.seek(-SEEK_STEP_S)

    def toggle_shuffle(self) -> None:
        self.player.set_shuffle(not self.shuffle)
        self.shuffle = not self.shuffle

    def cycle_repeat(self) -> None:
        mode = _NEXT_REPEAT[self.repeat_mode]
        self.player.set_repeat(mode)
        self.repeat_mode = mode

    def next_theme(self) -> None:
        self.theme_index = (self.theme_index + 1) % len(self.themes)
        LOG.info("Theme -> %s", self.theme.name)
        self.artwork.update(self.artwork_url, self.theme)

    def toggle_help(self) -> None:
        self.show_help = not self.show_help

    def shutdown(self) -> None:
        self.artwork.reset()
        self.lyrics.reset()
        self.pool.shutdown()


KEY_BINDINGS = {
    " ": "toggle_playback",
    "]": "next_track",
    "[": "previous_track",
    "=": "volume_up",
    "+": "volume_up",
    "-": "volume_down",
    "_": "volume_down",
    "m": "toggle_mute",
    ".": "seek_forward",
    "right": "seek_forward",
    ",": "seek_backward",
    "left": "seek_backward",
    "s": "toggle_shuffle",
    "r": "cycle_repeat",
    "t": "next_theme",
    "?": "toggle_help",
}

QUIT_KEYS = {"q", "\x03"}


def dispatch(app: App, key: str) -> bool:
    """Run the operation bound to ``key``. Player failures are logged, not raised."""
    name = KEY_BINDINGS.get(key)
    if name is None:
        return False
    try:
        getattr(app, name)()
    except PlayerError as exc:
        LOG.warning("%s failed: %s", name, exc)
    return True


def build_app(player: MediaPlayer, cache_dir: Path = ARTWORK_CACHE_DIR, lyrics_dir: Path = LYRICS_DIR) -> App:
    pool = TaskPool(MAX_WORKERS)
    cache = ContentCache(cache_dir, ARTWORK_CACHE_SIZE)
    chain = LyricsChain([LocalLrcProvider(lyrics_dir), LrclibProvider()])
    return App(player, cache, chain, pool)


def run_app(
    app: App,
    draw: Callable[[App], None],
    read_key: Callable[[float], Optional[str]],
    interval_s: float = POLL_INTERVAL_S,
    input_timeout_s: float = INPUT_TIMEOUT_S,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Cooperative UI loop: draw, wait briefly for a key, and poll the player
    once per ``interval_s``. Background work never lengthens the key wait.
    """
    last_update: Optional[float] = None
    try:
        while True:
            draw(app)

            key = read_key(input_timeout_s)
            if key is not None:
                if key in QUIT_KEYS:
                    break
                dispatch(app, key)

            now = clock()
            if last_update is None or now - last_update >= interval_s:
                app.update()
                last_update = now
    finally:
        app.shutdown()


def main(player: MediaPlayer, draw: Callable[[App], None], read_key: Callable[[float], Optional[str]]) -> None:
    configure_logging()
    app = build_app(player)
    LOG.info("Starting with theme %s", app.theme.name)
    run_app(app, draw, read_key)
