import io
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps

from .config import ARTWORK_MOSAIC, ARTWORK_SIZE, MOSAIC_BLOCK, RETRO_LEVELS
from .state import Theme

# Rec. 709 luma weights
_LUMA = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)


def decode_image(data: bytes) -> Image.Image:
    """Decode raw bytes into an RGB image. Raises OSError on junk."""
    img = Image.open(io.BytesIO(data))
    img.load()
    return img.convert("RGB")


def fit_square(img: Image.Image, size: int = ARTWORK_SIZE) -> Image.Image:
    """Center-crop to a square, then resize."""
    return ImageOps.fit(img.convert("RGB"), (size, size), method=Image.LANCZOS, centering=(0.5, 0.5))


def luminance(img: Image.Image) -> np.ndarray:
    """Per-pixel luma in [0, 1] as a float32 HxW array."""
    arr = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
    return arr @ _LUMA


def posterize(lum: np.ndarray, levels: int = RETRO_LEVELS) -> np.ndarray:
    if levels < 2:
        return np.zeros_like(lum)
    return np.round(lum * (levels - 1)) / (levels - 1)


def duotone(lum: np.ndarray, dark: Tuple[int, int, int], light: Tuple[int, int, int]) -> Image.Image:
    lo = np.array(dark, dtype=np.float32)
    hi = np.array(light, dtype=np.float32)
    rgb = lo + (hi - lo) * lum[..., None]
    return Image.fromarray(np.clip(np.rint(rgb), 0, 255).astype(np.uint8))


def mosaic(img: Image.Image, block: int = MOSAIC_BLOCK) -> Image.Image:
    w, h = img.size
    small = img.resize((max(1, w // block), max(1, h // block)), Image.Resampling.BOX)
    return small.resize((w, h), Image.Resampling.NEAREST)


def recolor(img: Image.Image, theme: Theme, blocky: bool = ARTWORK_MOSAIC) -> Image.Image:
    """
    Map a cover onto the theme's two colors: shadows become ``dim`` and
    highlights ``primary``. Retro themes band the luminance first.

    Returns a new image; the input (usually a cached bitmap) is not touched.
    """
    lum = luminance(img)
    if theme.retro:
        lum = posterize(lum)
    out = duotone(lum, theme.dim, theme.primary)
    if blocky:
        out = mosaic(out)
    return out
