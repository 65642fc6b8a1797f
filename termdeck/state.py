from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class Track:
    """Snapshot of what the player reports; replaced wholesale on every poll."""

    name: str
    artist: str
    album: str = ""
    duration_ms: int = 0
    position_ms: int = 0

    @property
    def lyrics_key(self) -> Tuple[str, str]:
        return (self.name, self.artist)


class PlaybackState(Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


class RepeatMode(Enum):
    OFF = "off"
    ONE = "one"
    ALL = "all"


@dataclass(frozen=True)
class PlayerStatus:
    track: Optional[Track]
    volume: int
    state: PlaybackState = PlaybackState.STOPPED


@dataclass(frozen=True)
class Theme:
    name: str
    primary: RGB
    dim: RGB
    accent: RGB = (120, 180, 255)
    bg: RGB = (12, 12, 12)
    retro: bool = False


class FetchState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
