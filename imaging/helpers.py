"""Small image utilities shared by the generator, compositor and extractor."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from utils.exceptions import AssetUnavailableError, MissingInputError, SourceReadError
from utils.log_config import get_logger

log = get_logger(__name__)

ImageSource = Union[bytes, bytearray, Path, str, Image.Image]

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "jpg": "JPEG", "webp": "WEBP"}


def open_design(source: Optional[ImageSource]) -> Image.Image:
    """Decode the user's design into RGBA; empty input is a caller error."""
    if source is None or (isinstance(source, (bytes, bytearray)) and not source):
        raise MissingInputError("Design image is required")
    if isinstance(source, Image.Image):
        return source.convert("RGBA")
    try:
        if isinstance(source, (bytes, bytearray)):
            with Image.open(io.BytesIO(source)) as img:
                return img.convert("RGBA")
        with Image.open(source) as img:
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        raise SourceReadError(f"Cannot decode design image: {exc}") from exc


def load_required(path: Path) -> Image.Image:
    """Load a file the render cannot do without."""
    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        raise SourceReadError(f"Cannot read {path.name}: {exc}") from exc


def load_optional(path: Optional[Path]) -> Optional[Image.Image]:
    """Load an optional asset; missing or unreadable files give None with a warning."""
    if path is None:
        return None
    try:
        return load_asset(path)
    except AssetUnavailableError as exc:
        log.warning("%s — skipping", exc)
        return None


def load_asset(path: Path) -> Image.Image:
    """Load an optional asset, keeping its mode (alpha vs luminance matters)."""
    try:
        with Image.open(path) as img:
            img.load()
            return img.copy()
    except (UnidentifiedImageError, OSError) as exc:
        raise AssetUnavailableError(f"Asset unavailable: {path.name} ({exc})") from exc


def encode(image: Image.Image, fmt: str = "png", quality: int = 90) -> bytes:
    """Serialise *image*: PNG keeps alpha, JPEG flattens to RGB."""
    fmt = fmt.lower()
    try:
        pil_fmt = _PIL_FORMATS[fmt]
    except KeyError:
        raise ValueError(f"Unsupported output format: {fmt}") from None

    buf = io.BytesIO()
    if pil_fmt == "JPEG":
        flat = Image.new("RGB", image.size, (255, 255, 255))
        rgba = image.convert("RGBA")
        flat.paste(rgba, mask=rgba.getchannel("A"))
        flat.save(buf, format="JPEG", quality=quality)
    elif pil_fmt == "WEBP":
        image.convert("RGBA").save(buf, format="WEBP", quality=quality)
    else:
        image.convert("RGBA").save(buf, format="PNG")
    return buf.getvalue()


def has_visual_content(image: Image.Image, min_std: float = 1.0) -> bool:
    """Return False if the image is blank / a single flat colour."""
    arr = np.asarray(image.convert("RGBA"))
    if not arr[..., 3].any():
        return False
    return float(np.std(arr[..., :3])) >= min_std
