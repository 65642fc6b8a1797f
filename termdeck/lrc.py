"""
Line-timed lyrics (LRC) parsing.

Each physical line may open with one or more ``[mm:ss.cc]`` / ``[mm:ss.ccc]``
timestamp tags followed by the lyric text, or with a ``[key:value]`` metadata
tag. Lines without a timestamp carry no lyric and are dropped.
"""

import bisect
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

LOG = logging.getLogger("termdeck.lrc")

# Anything shaped like a timestamp: digit first, then ':' and '.'.
_TIMESTAMP_SHAPE = re.compile(r"^\d[^:]*:[^.]*\..*$")
_TIMESTAMP = re.compile(r"^(\d+):(\d+)\.(\d{2,3})$")
_METADATA = re.compile(r"^([a-z]+):(.*)$")

OFFSET_KEY = "offset"


class LrcParseError(ValueError):
    """A timestamp tag had unusable numeric fields; the whole document is rejected."""


@dataclass(frozen=True)
class LyricLine:
    timestamp_ms: int
    text: str


@dataclass(frozen=True)
class LyricsDocument:
    lines: Tuple[LyricLine, ...] = ()
    offset_ms: int = 0
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Sorted by timestamp at all times; ties keep their input order.
        object.__setattr__(self, "lines", tuple(sorted(self.lines, key=lambda line: line.timestamp_ms)))
        object.__setattr__(self, "_stamps", [line.timestamp_ms for line in self.lines])

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find_index(self, position_ms: int) -> Optional[int]:
        """Index of the line being sung at ``position_ms`` (None before the first line)."""
        idx = bisect.bisect_right(self._stamps, position_ms) - 1
        return idx if idx >= 0 else None

    def line_at(self, position_ms: int) -> Optional[LyricLine]:
        idx = self.find_index(position_ms)
        return None if idx is None else self.lines[idx]

    def window(self, position_ms: int, before: int = 2, after: int = 2) -> Sequence[LyricLine]:
        """Lines around the current one, for a scrolling lyrics pane."""
        idx = self.find_index(position_ms)
        center = 0 if idx is None else idx
        return self.lines[max(0, center - before) : center + after + 1]


def _parse_timestamp(tag: str) -> Optional[int]:
    """Milliseconds for a timestamp tag body, None if the tag is not a timestamp."""
    if not _TIMESTAMP_SHAPE.match(tag):
        return None
    match = _TIMESTAMP.match(tag)
    if not match:
        raise LrcParseError(f"malformed timestamp tag [{tag}]")
    minutes, seconds, fraction = match.groups()
    ms = int(fraction)
    if len(fraction) == 2:
        ms *= 10
    return (int(minutes) * 60 + int(seconds)) * 1000 + ms


def _parse_offset(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        LOG.debug("Ignoring malformed offset %r", value)
        return 0


def _split_tags(line: str) -> Tuple[List[int], List[Tuple[str, str]], str]:
    stamps: List[int] = []
    meta: List[Tuple[str, str]] = []
    rest = line
    while rest.startswith("["):
        end = rest.find("]")
        if end < 0:
            break
        body = rest[1:end]
        stamp = _parse_timestamp(body)
        if stamp is not None:
            stamps.append(stamp)
        else:
            match = _METADATA.match(body)
            if not match or stamps:
                break
            meta.append((match.group(1), match.group(2).strip()))
        rest = rest[end + 1 :].lstrip()
    return stamps, meta, rest.strip()


def parse_lrc(content: str) -> LyricsDocument:
    """
    Parse LRC text into a document whose lines are sorted by timestamp and
    shifted by the declared ``[offset:...]`` (positive delays, negative
    advances, never below zero).

    Raises LrcParseError when a timestamp's numeric fields are malformed.
    """
    lines: List[LyricLine] = []
    metadata: Dict[str, str] = {}
    offset = 0

    for raw in content.splitlines():
        raw = raw.strip()
        if not raw:
            continue

        stamps, meta, text = _split_tags(raw)
        for key, value in meta:
            if key == OFFSET_KEY:
                offset = _parse_offset(value)
            else:
                metadata[key] = value

        if not stamps or not text:
            continue
        lines.extend(LyricLine(timestamp_ms=stamp, text=text) for stamp in stamps)

    lines.sort(key=lambda line: line.timestamp_ms)
    if offset:
        lines = [
            LyricLine(timestamp_ms=max(0, line.timestamp_ms + offset), text=line.text)
            for line in lines
        ]

    return LyricsDocument(lines=tuple(lines), offset_ms=offset, metadata=metadata)
