from typing import Dict, Hashable, List, Optional, Tuple

from wcwidth import wcwidth

from .config import SCROLL_GAP
from .state import Track

NO_ARTWORK = "No artwork"
NO_LYRICS = "No lyrics available"
LOADING = "Loading…"


def _columns(text: str) -> List[str]:
    """One entry per terminal column; wide glyphs are followed by '' placeholders."""
    cols: List[str] = []
    for ch in text:
        w = wcwidth(ch)
        if w <= 0:
            # combining marks ride along with the previous glyph
            if cols:
                cols[-1] += ch
            continue
        cols.append(ch)
        cols.extend([""] * (w - 1))
    return cols


def display_width(text: str) -> int:
    return len(_columns(text))


def marquee(text: str, width: int, offset: int, gap: int = SCROLL_GAP) -> str:
    """``width`` columns of ``text`` scrolled left by ``offset`` columns, wrapping around."""
    cols = _columns(text) + [" "] * gap
    start = offset % len(cols)
    rotated = cols[start:] + cols[:start]
    while len(rotated) < width:
        rotated += cols
    window = rotated[:width]

    # Never show half of a wide glyph at either edge.
    if window[0] == "":
        window[0] = " "
    if len(rotated) > width and rotated[width] == "":
        window[-1] = " "
    return "".join(window)


class ScrollTextCache:
    """
    Per-frame memo of scrolled renderings, keyed by (field, width).

    Everything is dropped when the frame counter moves on; a single entry is
    redone when its source text changes within the same frame.
    """

    def __init__(self, gap: int = SCROLL_GAP):
        self.gap = gap
        self._frame: Optional[int] = None
        self._entries: Dict[Tuple[Hashable, int], Tuple[int, str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def render(self, field: Hashable, text: str, width: int, frame: int) -> str:
        if frame != self._frame:
            self._entries.clear()
            self._frame = frame
        if width <= 0:
            return ""

        key = (field, width)
        text_hash = hash(text)
        hit = self._entries.get(key)
        if hit is not None and hit[0] == text_hash:
            return hit[1]

        if display_width(text) <= width:
            self._entries.pop(key, None)
            return text

        rendered = marquee(text, width, frame, self.gap)
        self._entries[key] = (text_hash, rendered)
        return rendered


def format_duration(ms: int) -> str:
    total = max(0, int(ms)) // 1000
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def progress(track: Optional[Track]) -> float:
    if track is None or track.duration_ms <= 0:
        return 0.0
    return min(1.0, max(0.0, track.position_ms / track.duration_ms))
