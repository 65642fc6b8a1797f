import logging
import os
from pathlib import Path

from .state import Theme

# -----------------------
# Config (tweak these)
# -----------------------
POLL_INTERVAL_S = 0.5      # how often the UI loop asks the player for status
INPUT_TIMEOUT_S = 0.05     # bounded wait for a key press per loop turn
NETWORK_TIMEOUT_S = 6

VOLUME_STEP = 5
SEEK_STEP_S = 5
DEFAULT_VOLUME = 50

MAX_WORKERS = 4            # background fetch/decode threads

# Cache
CACHE_HOME = Path(os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache")
CACHE_DIR = CACHE_HOME / "termdeck"
ARTWORK_CACHE_DIR = CACHE_DIR / "artwork"
ARTWORK_CACHE_SIZE = 100   # decoded covers kept in memory
LOG_PATH = CACHE_DIR / "termdeck.log"

# Artwork
ARTWORK_SIZE = 256         # covers are center-cropped to a square of this size
ARTWORK_MOSAIC = False     # blocky rendering for low-res terminals
MOSAIC_BLOCK = 8
RETRO_LEVELS = 4           # luminance bands for retro themes

# Lyrics
LYRICS_DIR = Path.home() / "Music" / "Lyrics"
LYRICS_CACHE_SIZE = 50
LRCLIB_URL = "https://lrclib.net"
USER_AGENT = "termdeck/0.1"

# Scrolling text
SCROLL_GAP = 4             # blank columns between marquee repetitions


# -----------------------
# Themes
# -----------------------
# (name, primary, dim, accent, bg, retro)
_PALETTE = [
    ("default", (235, 235, 235), (90, 90, 90), (120, 180, 255), (12, 12, 12), False),
    ("amber", (255, 176, 0), (92, 58, 0), (255, 210, 90), (10, 8, 0), True),
    ("phosphor", (51, 255, 102), (8, 70, 24), (160, 255, 180), (0, 10, 2), True),
    ("ocean", (150, 215, 255), (20, 60, 95), (80, 160, 230), (6, 14, 24), False),
    ("rose", (255, 170, 190), (95, 40, 55), (240, 110, 140), (20, 8, 12), False),
]


def _build_themes():
    return [
        Theme(name=name, primary=primary, dim=dim, accent=accent, bg=bg, retro=retro)
        for name, primary, dim, accent, bg, retro in _PALETTE
    ]


THEMES = _build_themes()


def configure_logging(level: int = logging.INFO) -> None:
    # Log to a file: stderr belongs to the terminal UI.
    CACHE_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        filename=str(LOG_PATH),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
