"""
Pixel-level building blocks: Photoshop-style blend modes (vectorised
numpy), fit/crop helpers, masks and tone adjustments.
Every function takes and returns PIL images; RGBA unless noted.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from PIL import Image, ImageEnhance, ImageFilter

from utils.log_config import get_logger

log = get_logger(__name__)

RGBA = Tuple[int, int, int, int]
TRANSPARENT: RGBA = (0, 0, 0, 0)
WHITE: RGBA = (255, 255, 255, 255)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  BLEND MODES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

# B(Cb, Cs) on normalised float32 RGB arrays
def _normal(cb: np.ndarray, cs: np.ndarray) -> np.ndarray:
    return cs


def _multiply(cb: np.ndarray, cs: np.ndarray) -> np.ndarray:
    return cb * cs


def _screen(cb: np.ndarray, cs: np.ndarray) -> np.ndarray:
    return cb + cs - cb * cs


def _overlay(cb: np.ndarray, cs: np.ndarray) -> np.ndarray:
    # hard-light with the layers swapped
    return np.where(cb <= 0.5, 2.0 * cb * cs, 1.0 - 2.0 * (1.0 - cb) * (1.0 - cs))


BLEND_FUNCTIONS: Dict[str, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    "normal":   _normal,
    "multiply": _multiply,
    "screen":   _screen,
    "overlay":  _overlay,
}


def _to_float(image: Image.Image) -> np.ndarray:
    return np.asarray(image.convert("RGBA"), dtype=np.float32) / 255.0


def _from_float(arr: np.ndarray) -> Image.Image:
    out = np.clip(arr * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return Image.fromarray(out)


def blend(backdrop: Image.Image, source: Image.Image, mode: str = "normal") -> Image.Image:
    """
    Composite *source* over *backdrop* (same size) with a separable
    blend mode, using the W3C compositing formula:

        co = αs(1-αb)·Cs + αs·αb·B(Cb, Cs) + (1-αs)·αb·Cb
        αo = αs + αb(1-αs)
    """
    try:
        func = BLEND_FUNCTIONS[mode]
    except KeyError:
        raise ValueError(f"Unknown blend mode: {mode}") from None
    if backdrop.size != source.size:
        raise ValueError(f"Size mismatch: {backdrop.size} vs {source.size}")

    b = _to_float(backdrop)
    s = _to_float(source)
    cb, ab = b[..., :3], b[..., 3:4]
    cs, as_ = s[..., :3], s[..., 3:4]

    co = as_ * (1.0 - ab) * cs + as_ * ab * func(cb, cs) + (1.0 - as_) * ab * cb
    ao = as_ + ab * (1.0 - as_)
    with np.errstate(divide="ignore", invalid="ignore"):
        c = np.where(ao > 0, co / ao, 0.0)

    return _from_float(np.concatenate([c, ao], axis=-1))


def blend_at(
    backdrop: Image.Image,
    layer: Image.Image,
    origin: Tuple[int, int] = (0, 0),
    mode: str = "normal",
) -> Image.Image:
    """Blend *layer* onto *backdrop* with its top-left corner at *origin*."""
    backdrop = backdrop.convert("RGBA")
    placed = Image.new("RGBA", backdrop.size, TRANSPARENT)
    placed.paste(layer.convert("RGBA"), origin)
    return blend(backdrop, placed, mode)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  FIT / GRAVITY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

GRAVITY_ANCHORS: Dict[str, Tuple[float, float]] = {
    "northwest": (0.0, 0.0), "north":  (0.5, 0.0), "northeast": (1.0, 0.0),
    "west":      (0.0, 0.5), "center": (0.5, 0.5), "east":      (1.0, 0.5),
    "southwest": (0.0, 1.0), "south":  (0.5, 1.0), "southeast": (1.0, 1.0),
}


def gravity_for_focal(focal_x: float = 0.5, focal_y: float = 0.5) -> str:
    """Map a focal point (fractions) to one of nine anchors, split in thirds."""
    if focal_y < 0.33:
        vertical = "north"
    elif focal_y > 0.66:
        vertical = "south"
    else:
        vertical = ""
    if focal_x < 0.33:
        horizontal = "west"
    elif focal_x > 0.66:
        horizontal = "east"
    else:
        horizontal = ""
    return (vertical + horizontal) or "center"


def fit_contain(image: Image.Image, width: int, height: int) -> Image.Image:
    """Scale to fit inside ``width×height`` keeping aspect; pad transparent, centred."""
    image = image.convert("RGBA")
    scale = min(width / image.width, height / image.height)
    new_w = max(1, min(width, round(image.width * scale)))
    new_h = max(1, min(height, round(image.height * scale)))
    resized = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
    canvas = Image.new("RGBA", (width, height), TRANSPARENT)
    canvas.paste(resized, ((width - new_w) // 2, (height - new_h) // 2))
    return canvas


def fit_inside(
    image: Image.Image,
    width: int,
    height: int,
    background: RGBA = WHITE,
) -> Image.Image:
    """Like :func:`fit_contain` but padded with *background*."""
    fitted = fit_contain(image, width, height)
    canvas = Image.new("RGBA", (width, height), background)
    canvas.alpha_composite(fitted)
    return canvas


def fit_cover(image: Image.Image, width: int, height: int, gravity: str = "center") -> Image.Image:
    """Scale to cover ``width×height`` then crop around *gravity*."""
    ax, ay = GRAVITY_ANCHORS.get(gravity, GRAVITY_ANCHORS["center"])
    image = image.convert("RGBA")
    scale = max(width / image.width, height / image.height)
    new_w = max(width, math.ceil(image.width * scale))
    new_h = max(height, math.ceil(image.height * scale))
    resized = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
    left = round((new_w - width) * ax)
    top = round((new_h - height) * ay)
    return resized.crop((left, top, left + width, top + height))


def extend_canvas(
    image: Image.Image,
    width: int,
    height: int,
    origin: Tuple[int, int] = (0, 0),
    background: RGBA = TRANSPARENT,
) -> Image.Image:
    """Place *image* at *origin* on a ``width×height`` canvas (top-left anchored)."""
    canvas = Image.new("RGBA", (width, height), background)
    canvas.paste(image.convert("RGBA"), origin)
    return canvas


def resize_to(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    if image.size == tuple(size):
        return image
    return image.resize(tuple(size), Image.Resampling.LANCZOS)


def scale_to_width(image: Image.Image, width: int) -> Image.Image:
    if image.width == width:
        return image
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  MASKS & ADJUSTMENTS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def mask_channel(mask: Image.Image) -> Image.Image:
    """Coverage as an ``L`` image: alpha when present, else luminance."""
    if mask.mode in ("RGBA", "LA") or (mask.mode == "P" and "transparency" in mask.info):
        return mask.convert("RGBA").getchannel("A")
    return mask.convert("L")


def apply_mask(image: Image.Image, mask: Image.Image) -> Image.Image:
    """Destination-in: keep *image* only where *mask* has coverage."""
    image = image.convert("RGBA")
    coverage = resize_to(mask_channel(mask), image.size)
    alpha = np.asarray(image.getchannel("A"), dtype=np.uint16)
    cov = np.asarray(coverage, dtype=np.uint16)
    out = image.copy()
    out.putalpha(Image.fromarray(((alpha * cov + 127) // 255).astype(np.uint8)))
    return out


def scale_alpha(image: Image.Image, factor: float) -> Image.Image:
    image = image.convert("RGBA")
    alpha = np.asarray(image.getchannel("A"), dtype=np.float32) * factor
    out = image.copy()
    out.putalpha(Image.fromarray(np.clip(alpha + 0.5, 0, 255).astype(np.uint8)))
    return out


def clip_to_alpha(image: Image.Image, reference: Image.Image) -> Image.Image:
    """Replace *image*'s alpha with *reference*'s."""
    out = image.convert("RGBA").copy()
    out.putalpha(reference.convert("RGBA").getchannel("A"))
    return out


def feather(image: Image.Image, radius: float) -> Image.Image:
    """Soften the alpha edge with a Gaussian blur of *radius* px."""
    if radius <= 0:
        return image
    out = image.convert("RGBA").copy()
    out.putalpha(out.getchannel("A").filter(ImageFilter.GaussianBlur(radius)))
    return out


def _enhance_rgb(image: Image.Image, enhancer, factor: float) -> Image.Image:
    if factor == 1.0:
        return image
    alpha = image.getchannel("A")
    rgb = enhancer(image.convert("RGB")).enhance(factor)
    out = rgb.convert("RGBA")
    out.putalpha(alpha)
    return out


def adjust_design(
    image: Image.Image,
    brightness: float = 1.0,
    contrast: float = 1.0,
    saturation: float = 1.0,
) -> Image.Image:
    """Brightness, contrast and saturation on RGB; alpha is preserved."""
    image = image.convert("RGBA")
    image = _enhance_rgb(image, ImageEnhance.Brightness, brightness)
    image = _enhance_rgb(image, ImageEnhance.Contrast, contrast)
    image = _enhance_rgb(image, ImageEnhance.Color, saturation)
    return image


def lighten(image: Image.Image, factor: float) -> Image.Image:
    return _enhance_rgb(image.convert("RGBA"), ImageEnhance.Brightness, factor)


def rotate_within(image: Image.Image, degrees: Optional[float]) -> Image.Image:
    """Rotate about the centre without growing the canvas."""
    if not degrees:
        return image
    return image.convert("RGBA").rotate(
        -degrees, resample=Image.Resampling.BICUBIC, expand=False, fillcolor=TRANSPARENT
    )
