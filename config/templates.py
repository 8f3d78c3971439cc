"""
Layered (PSD) preview templates.
Each descriptor names the layers to pull out of the file and the
pixel rectangle the user's design replaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple


class CompositeMethod(str, Enum):
    LAYER_BY_LAYER = "layerByLayer"
    DELETE_LAYER   = "deleteLayer"
    MASKED_LAYER   = "maskedLayer"


@dataclass(frozen=True)
class Bounds:
    """Absolute pixel rectangle inside a template's native canvas."""

    x:      int
    y:      int
    width:  int
    height: int

    @property
    def origin(self) -> Tuple[int, int]:
        return (self.x, self.y)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True)
class PsdTemplate:
    name:               str
    psd_path:           str                 # relative to PathConfig.psd_dir
    orientation:        str                 # portrait | landscape | square
    canvas_size:        Tuple[int, int]
    method:             CompositeMethod
    design_bounds:      Optional[Bounds]
    mask_bounds:        Optional[Bounds]
    base_layer_index:   int
    refl_layer_index:   Optional[int] = None
    design_layer_index: Optional[int] = None
    mask_layer_index:   Optional[int] = None
    shadow_layer_index: Optional[int] = None

    @property
    def placement(self) -> Optional[Bounds]:
        """Rectangle the design is fitted into: mask first, then design."""
        return self.mask_bounds or self.design_bounds

    def resolve(self, psd_dir: Path) -> Path:
        return psd_dir / self.psd_path


# ── ready-made templates ────────────────────────────────────

# [0]=Refl (full canvas), [1]=DESIGN (full canvas), [2]=Base (full canvas)
TEMPLATE_IPAD = PsdTemplate(
    name="iPad Mockup",
    psd_path="wall-art/ipad.psd",
    orientation="portrait",
    canvas_size=(5000, 3125),
    method=CompositeMethod.LAYER_BY_LAYER,
    design_bounds=Bounds(1551, 557, 2715, 1869),
    mask_bounds=Bounds(1551, 557, 2715, 1869),
    base_layer_index=2,
    refl_layer_index=0,
    design_layer_index=1,
)

# [0]=Refl (full canvas), [1]=DESIGN (full canvas), [2]=Base (cropped)
TEMPLATE_LANDSCAPE_CANVAS = PsdTemplate(
    name="Landscape Canvas",
    psd_path="wall-art/Poster/Landscape.psd",
    orientation="landscape",
    canvas_size=(5000, 3000),
    method=CompositeMethod.DELETE_LAYER,
    design_bounds=Bounds(1902, 323, 1274, 1063),
    mask_bounds=Bounds(1902, 323, 1274, 1063),
    base_layer_index=2,
    refl_layer_index=0,
    design_layer_index=1,
)

# [0]=Composite, [1]=Base, [2]=Design (masked), [3]=Shadow
TEMPLATE_LONG_SLEEVE = PsdTemplate(
    name="Long Sleeve Shirt",
    psd_path="wall-art/long-sleeve.psd",
    orientation="square",
    canvas_size=(625, 689),
    method=CompositeMethod.MASKED_LAYER,
    design_bounds=Bounds(258, 184, 240, 246),
    mask_bounds=Bounds(258, 184, 240, 246),
    base_layer_index=1,
    mask_layer_index=2,
    shadow_layer_index=3,
)

# [0]=Composite, [1]=Base, [2]=Design, [3]=Overlay/Shadow
TEMPLATE_CANVAS_ANGLED = PsdTemplate(
    name="24x36 Canvas Angled",
    psd_path="wall-art/24x36-blank-canvas-angled.psd",
    orientation="portrait",
    canvas_size=(2000, 2000),
    method=CompositeMethod.DELETE_LAYER,
    design_bounds=Bounds(297, 412, 1339, 1177),
    mask_bounds=Bounds(297, 412, 1339, 1177),
    base_layer_index=1,
    refl_layer_index=3,
    design_layer_index=2,
)


# ── registry ────────────────────────────────────────────────

ALL_PSD_TEMPLATES: Dict[str, PsdTemplate] = {
    "ipad":             TEMPLATE_IPAD,
    "landscape_canvas": TEMPLATE_LANDSCAPE_CANVAS,
    "long_sleeve":      TEMPLATE_LONG_SLEEVE,
    "canvas_angled":    TEMPLATE_CANVAS_ANGLED,
}

ORIENTATIONS = ("portrait", "landscape", "square", "both")


def templates_for_orientation(orientation: str = "both") -> Dict[str, PsdTemplate]:
    if orientation == "both":
        return dict(ALL_PSD_TEMPLATES)
    return {k: t for k, t in ALL_PSD_TEMPLATES.items() if t.orientation == orientation}
