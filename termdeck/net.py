import logging
import threading
from typing import Optional

import requests
from PIL import Image

from .config import ARTWORK_SIZE, NETWORK_TIMEOUT_S, USER_AGENT
from .imaging import decode_image, fit_square

LOG = logging.getLogger("termdeck.net")

_session: Optional[requests.Session] = None
_session_lock = threading.Lock()


def make_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def shared_session() -> requests.Session:
    """Process-wide session for artwork downloads, created on first use."""
    global _session
    with _session_lock:
        if _session is None:
            _session = make_session()
        return _session


def download_image(url: str, session: Optional[requests.Session] = None) -> Optional[Image.Image]:
    """
    Fetch a cover and normalize it to a square RGB image.
    Timeouts, HTTP errors and undecodable payloads all return None.
    """
    http = session or shared_session()
    try:
        r = http.get(url, timeout=NETWORK_TIMEOUT_S)
        r.raise_for_status()
        return fit_square(decode_image(r.content), ARTWORK_SIZE)
    except requests.RequestException as exc:
        LOG.warning("Artwork download failed for %s: %s", url, exc)
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        LOG.warning("Artwork at %s is not a usable image: %s", url, exc)
    return None
