"""
Data model for mask-based templates, per-call render overrides and
batch results.  JSON uses the camelCase keys of the on-disk format.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from config.settings import RenderConfig

PRODUCT_TYPES = ("tshirt", "hoodie", "mug", "poster", "canvas", "framed-poster")
ANGLES        = ("front", "back", "side", "flat", "lifestyle")
CATEGORIES    = ("wall-art", "apparel", "drinkware")

_CATEGORY_BY_PRODUCT = {
    "tshirt":        "apparel",
    "t-shirt":       "apparel",
    "hoodie":        "apparel",
    "long-sleeve":   "apparel",
    "poster":        "wall-art",
    "canvas":        "wall-art",
    "framed-poster": "wall-art",
    "mug":           "drinkware",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


@dataclass(frozen=True)
class PrintArea:
    """Print rectangle as fractions (0-1) of the base image size."""

    x:        float
    y:        float
    width:    float
    height:   float
    rotation: Optional[float] = None

    def is_valid(self) -> bool:
        return (
            self.x >= 0 and self.y >= 0
            and self.width > 0 and self.height > 0
            and self.x + self.width <= 1.0 + 1e-9
            and self.y + self.height <= 1.0 + 1e-9
        )

    def clipped(self) -> "PrintArea":
        """Clamp into the unit square instead of rejecting."""
        x = _clamp(self.x)
        y = _clamp(self.y)
        return replace(
            self,
            x=x,
            y=y,
            width=_clamp(self.width, 0.0, 1.0 - x),
            height=_clamp(self.height, 0.0, 1.0 - y),
        )

    def to_pixels(self, base_width: int, base_height: int) -> Tuple[int, int, int, int]:
        """Return ``(left, top, width, height)`` in base-image pixels."""
        area = self.clipped()
        left = round(base_width * area.x)
        top = round(base_height * area.y)
        width = max(1, min(round(base_width * area.width), base_width - left))
        height = max(1, min(round(base_height * area.height), base_height - top))
        return left, top, width, height

    def to_dict(self) -> Dict[str, float]:
        data = {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
        if self.rotation is not None:
            data["rotation"] = self.rotation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrintArea":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            rotation=float(data["rotation"]) if data.get("rotation") is not None else None,
        )


# JSON key  ↔  attribute
_TEMPLATE_KEYS = (
    ("id", "id"),
    ("name", "name"),
    ("productType", "product_type"),
    ("color", "color"),
    ("angle", "angle"),
    ("category", "category"),
    ("size", "size"),
    ("basePath", "base_path"),
    ("displacementPath", "displacement_path"),
    ("maskPath", "mask_path"),
    ("shadowPath", "shadow_path"),
    ("highlightPath", "highlight_path"),
)


@dataclass(frozen=True)
class MockupTemplate:
    id:                str
    name:              str
    product_type:      str
    angle:             str
    base_path:         str
    print_area:        PrintArea
    color:             Optional[str] = None
    displacement_path: Optional[str] = None
    mask_path:         Optional[str] = None
    shadow_path:       Optional[str] = None
    highlight_path:    Optional[str] = None
    category:          Optional[str] = None
    size:              Optional[str] = None
    metadata:          Optional[Dict[str, Any]] = None

    @property
    def resolved_category(self) -> str:
        if self.category:
            return self.category
        return _CATEGORY_BY_PRODUCT.get(self.product_type, "unknown")

    def asset_paths(self) -> Dict[str, Optional[str]]:
        return {
            "base": self.base_path,
            "displacement": self.displacement_path,
            "mask": self.mask_path,
            "shadow": self.shadow_path,
            "highlight": self.highlight_path,
        }

    def qualified(self, folder: str) -> "MockupTemplate":
        """Prefix folder-relative asset paths with *folder*."""

        def q(path: Optional[str]) -> Optional[str]:
            if not path or path.startswith(f"{folder}/"):
                return path
            return f"{folder}/{path}"

        return replace(
            self,
            base_path=q(self.base_path),
            displacement_path=q(self.displacement_path),
            mask_path=q(self.mask_path),
            shadow_path=q(self.shadow_path),
            highlight_path=q(self.highlight_path),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key, attr in _TEMPLATE_KEYS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data["printArea"] = self.print_area.to_dict()
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MockupTemplate":
        """Build from JSON; raises KeyError/ValueError on incomplete entries."""
        kwargs: Dict[str, Any] = {}
        for key, attr in _TEMPLATE_KEYS:
            if data.get(key) is not None:
                kwargs[attr] = data[key]
        for required in ("id", "product_type", "base_path"):
            if required not in kwargs:
                raise KeyError(required)
        kwargs.setdefault("name", kwargs["id"])
        kwargs.setdefault("angle", "front")
        kwargs["print_area"] = PrintArea.from_dict(data["printArea"])
        if data.get("metadata"):
            kwargs["metadata"] = dict(data["metadata"])
        return cls(**kwargs)


@dataclass
class TemplateLibrary:
    templates:    List[MockupTemplate] = field(default_factory=list)
    version:      str                  = "1.0.0"
    last_updated: str                  = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "templates": [t.to_dict() for t in self.templates],
            "version": self.version,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateLibrary":
        templates: List[MockupTemplate] = []
        seen = set()
        for entry in data["templates"]:
            tpl = MockupTemplate.from_dict(entry)
            if tpl.id in seen:
                # later duplicates win, same as an upsert
                templates = [t for t in templates if t.id != tpl.id]
            seen.add(tpl.id)
            templates.append(tpl)
        return cls(
            templates=templates,
            version=str(data.get("version", "1.0.0")),
            last_updated=str(data.get("lastUpdated") or utc_now_iso()),
        )


_CONFIG_KEYS = {
    "intensity":       "intensity",
    "brightness":      "brightness",
    "contrast":        "contrast",
    "saturation":      "saturation",
    "blend_mode":      "blendMode",
    "smoothing":       "smoothing",
    "texture_overlay": "textureOverlay",
    "texture_opacity": "textureOpacity",
}


@dataclass(frozen=True)
class DisplacementConfig:
    """Per-call overrides.  ``None`` means "not set"."""

    intensity:       Optional[float] = None
    brightness:      Optional[float] = None
    contrast:        Optional[float] = None
    saturation:      Optional[float] = None
    blend_mode:      Optional[str]   = None
    smoothing:       Optional[float] = None
    texture_overlay: Optional[bool]  = None
    texture_opacity: Optional[float] = None

    @property
    def has_adjustments(self) -> bool:
        return any(
            v is not None for v in (self.brightness, self.contrast, self.saturation)
        )

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        """Explicitly-set fields only, camelCase keys."""
        return {
            _CONFIG_KEYS[f.name]: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DisplacementConfig":
        if not data:
            return cls()
        reverse = {v: k for k, v in _CONFIG_KEYS.items()}
        kwargs = {}
        for key, value in data.items():
            attr = reverse.get(key, key)
            if attr in _CONFIG_KEYS:
                kwargs[attr] = value
        return cls(**kwargs)

    def merged(self, defaults: RenderConfig) -> "EffectiveConfig":
        return EffectiveConfig(
            brightness=self.brightness if self.brightness is not None else 1.0,
            contrast=self.contrast if self.contrast is not None else 1.0,
            saturation=self.saturation if self.saturation is not None else 1.0,
            apply_adjustments=self.has_adjustments,
            blend_mode=self.blend_mode or defaults.blend_mode,
            smoothing=self.smoothing or 0.0,
            texture_overlay=bool(self.texture_overlay),
            texture_opacity=(
                self.texture_opacity if self.texture_opacity is not None
                else defaults.texture_opacity
            ),
            texture_lighten=defaults.texture_lighten,
        )

    @classmethod
    def preset(cls, defaults: RenderConfig, texture: bool) -> "DisplacementConfig":
        """Standard fabric look used for batch pre-generation."""
        return cls(
            brightness=defaults.brightness,
            blend_mode="multiply",
            texture_overlay=texture,
            texture_opacity=defaults.texture_opacity,
        )


@dataclass(frozen=True)
class EffectiveConfig:
    brightness:        float
    contrast:          float
    saturation:        float
    apply_adjustments: bool
    blend_mode:        str
    smoothing:         float
    texture_overlay:   bool
    texture_opacity:   float
    texture_lighten:   float


@dataclass
class GeneratedMockup:
    template_id:  str
    name:         str
    category:     str
    product_type: str
    buffer:       bytes
    cached:       bool
    render_time:  float          # milliseconds
    size:         Optional[str] = None
    url:          Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        data = asdict(self)
        data["buffer"] = len(self.buffer)
        return data
