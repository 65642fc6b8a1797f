from abc import ABC, abstractmethod
from typing import Optional

from .state import PlaybackState, PlayerStatus, RepeatMode, Track


class PlayerError(Exception):
    """The player could not be reached or refused a command."""


class MediaPlayer(ABC):
    """
    Bridge to the desktop player. Implementations talk to the OS (AppleScript,
    MPRIS, ...) and raise PlayerError when that fails.
    """

    def get_player_status(self) -> PlayerStatus:
        return PlayerStatus(
            track=self.get_current_track(),
            volume=self.get_volume(),
            state=self.get_playback_state(),
        )

    @abstractmethod
    def get_current_track(self) -> Optional[Track]:
        ...

    @abstractmethod
    def get_playback_state(self) -> PlaybackState:
        ...

    @abstractmethod
    def get_volume(self) -> int:
        ...

    @abstractmethod
    def set_volume(self, volume: int) -> None:
        ...

    @abstractmethod
    def get_artwork_url(self, track: Track) -> Optional[str]:
        ...

    @abstractmethod
    def play(self) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def toggle(self) -> None:
        ...

    @abstractmethod
    def next(self) -> None:
        ...

    @abstractmethod
    def previous(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def seek(self, seconds: int) -> None:
        """Relative seek; negative goes back."""

    @abstractmethod
    def set_shuffle(self, enabled: bool) -> None:
        ...

    @abstractmethod
    def set_repeat(self, mode: RepeatMode) -> None:
        ...
