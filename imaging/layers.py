"""
Generic layer tree for layered source documents.

``LayerNode`` is what the extractor works on; :class:`PsdDocument`
adapts a psd-tools ``PSDImage`` to it so everything above this module
can be tested with hand-built trees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from PIL import Image
from psd_tools import PSDImage

from utils.exceptions import SourceReadError
from utils.log_config import get_logger

log = get_logger(__name__)

BBox = Tuple[int, int, int, int]   # left, top, right, bottom

DESIGN_NAMES       = ("DESIGN",)
DISPLACEMENT_NAMES = ("DISPLACEMENT",)
MASK_NAMES         = ("MASK",)
SHADOW_NAMES       = ("SHADOW",)
HIGHLIGHT_NAMES    = ("HIGHLIGHT",)
BASE_NAMES         = ("BASE",)

SMART_OBJECT = "smartobject"
GROUP        = "group"


@dataclass
class LayerNode:
    name:     str
    bbox:     BBox
    kind:     str                                       = "pixel"
    children: List["LayerNode"]                         = field(default_factory=list)
    render:   Optional[Callable[[], Optional[Image.Image]]] = None

    @property
    def is_group(self) -> bool:
        return self.kind == GROUP or bool(self.children)

    @property
    def is_smart_object(self) -> bool:
        return self.kind == SMART_OBJECT

    @property
    def width(self) -> int:
        return max(0, self.bbox[2] - self.bbox[0])

    @property
    def height(self) -> int:
        return max(0, self.bbox[3] - self.bbox[1])

    def image(self) -> Optional[Image.Image]:
        """Pixels of the layer at bbox size, or None if it has none."""
        if self.render is None:
            return None
        img = self.render()
        return img.convert("RGBA") if img is not None else None

    def on_canvas(self, width: int, height: int) -> Optional[Image.Image]:
        """The layer placed at its bbox offset on a transparent full canvas."""
        img = self.image()
        if img is None:
            return None
        canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        canvas.paste(img, (self.bbox[0], self.bbox[1]), img)
        return canvas


def walk(nodes: Iterable[LayerNode]) -> Iterator[LayerNode]:
    """Depth-first, document order."""
    for node in nodes:
        yield node
        if node.is_group:
            yield from walk(node.children)


def find_layer_by_names(nodes: Iterable[LayerNode], names: Sequence[str]) -> Optional[LayerNode]:
    """First layer whose name contains any of *names* (case-insensitive)."""
    wanted = [n.lower() for n in names]
    for node in walk(nodes):
        lowered = node.name.lower()
        if any(w in lowered for w in wanted):
            return node
    return None


def find_smart_object(nodes: Iterable[LayerNode]) -> Optional[LayerNode]:
    for node in walk(nodes):
        if node.is_smart_object:
            return node
    return None


def _to_bbox(raw) -> BBox:
    left, top, right, bottom = (int(v) for v in raw)
    return left, top, right, bottom


# ── psd-tools adapter ───────────────────────────────────────

class PsdDocument:
    """A layered document opened through psd-tools."""

    def __init__(self, psd) -> None:
        self._psd = psd
        self.width = int(psd.width)
        self.height = int(psd.height)
        self.layers: List[LayerNode] = [self._node(layer) for layer in psd]

    @classmethod
    def open(cls, path: Path) -> "PsdDocument":
        try:
            psd = PSDImage.open(str(path))
        except (OSError, ValueError) as exc:
            raise SourceReadError(f"Cannot open layered file {path}: {exc}") from exc
        log.info("Opened %s (%dx%d, %d top-level layers)", Path(path).name, psd.width, psd.height, len(psd))
        return cls(psd)

    def composite(self) -> Image.Image:
        return self._psd.composite().convert("RGBA")

    def _node(self, layer) -> LayerNode:
        children = [self._node(child) for child in layer] if layer.is_group() else []
        return LayerNode(
            name=str(layer.name),
            bbox=_to_bbox(layer.bbox),
            kind=str(layer.kind),
            children=children,
            render=None if layer.is_group() else layer.composite,
        )
