"""
Turns a layered mockup file into a mask-based template folder.

Layer names are matched case-insensitively by substring:
DESIGN (or the first smart object), DISPLACEMENT, MASK, SHADOW,
HIGHLIGHT and BASE.  The DESIGN layer's bounds become the print area.
When no DISPLACEMENT layer is authored one is synthesised from the
base image with a vertical Sobel pass.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from PIL import Image, ImageFilter, ImageOps

from core.models import MockupTemplate, PrintArea
from core.template_manager import METADATA_FILE, TemplateManager
from imaging import layers
from imaging.helpers import has_visual_content
from imaging.layers import LayerNode, PsdDocument, find_layer_by_names, find_smart_object
from utils.exceptions import MissingInputError
from utils.log_config import get_logger

log = get_logger(__name__)

SOBEL_VERTICAL = (-1, -2, -1, 0, 0, 0, 1, 2, 1)
_LINEAR_LUT = [max(0, min(255, round(v * 1.5 - 50))) for v in range(256)]


class LayeredDocument(Protocol):
    width:  int
    height: int
    layers: List[LayerNode]

    def composite(self) -> Image.Image: ...


@dataclass
class ExtractionReport:
    template:       Optional[MockupTemplate]
    output_dir:     Path
    width:          int
    height:         int
    print_area:     PrintArea
    found_layers:   Dict[str, str]   = field(default_factory=dict)
    written:        List[str]        = field(default_factory=list)
    synthesized_displacement: bool   = False


def synthesize_displacement(base: Image.Image, box: Tuple[int, int, int, int]) -> Image.Image:
    """Grayscale wrinkle map from the print-area crop of *base*."""
    crop = base.convert("RGBA").crop(box)
    flat = Image.new("RGB", crop.size, (255, 255, 255))
    flat.paste(crop, mask=crop.getchannel("A"))
    gray = ImageOps.autocontrast(flat.convert("L"))
    edges = gray.filter(ImageFilter.Kernel((3, 3), SOBEL_VERTICAL, scale=1, offset=128))
    edges = ImageOps.autocontrast(edges)
    edges = edges.filter(ImageFilter.GaussianBlur(2))
    return edges.point(_LINEAR_LUT)


def _title(template_id: str) -> str:
    return " ".join(part.capitalize() for part in template_id.replace("_", "-").split("-") if part)


class TemplateExtractor:
    """Writes ``<templates_dir>/<id>/`` from a layered document and registers it."""

    def __init__(self, templates: TemplateManager) -> None:
        self._templates = templates

    def extract_file(self, path: Path, template_id: str, **kwargs) -> ExtractionReport:
        return self.extract(PsdDocument.open(Path(path)), template_id, **kwargs)

    def extract(
        self,
        document: LayeredDocument,
        template_id: str,
        product_type: str = "tshirt",
        color: str = "white",
        angle: str = "front",
        category: Optional[str] = None,
    ) -> ExtractionReport:
        width, height = document.width, document.height
        nodes = document.layers

        design = find_layer_by_names(nodes, layers.DESIGN_NAMES)
        if design is None:
            design = find_smart_object(nodes)
            if design is not None:
                log.info("No DESIGN layer, using smart object '%s'", design.name)
        if design is None or design.width <= 0 or design.height <= 0:
            raise MissingInputError("No DESIGN layer or smart object found")

        print_area = PrintArea(
            x=design.bbox[0] / width,
            y=design.bbox[1] / height,
            width=design.width / width,
            height=design.height / height,
        ).clipped()
        left, top, pw, ph = print_area.to_pixels(width, height)
        box = (left, top, left + pw, top + ph)

        out_dir = self._templates.templates_dir / template_id
        out_dir.mkdir(parents=True, exist_ok=True)
        report = ExtractionReport(
            template=None,
            output_dir=out_dir,
            width=width,
            height=height,
            print_area=print_area,
            found_layers={"design": design.name},
        )

        # base
        base_node = find_layer_by_names(nodes, layers.BASE_NAMES)
        base = base_node.on_canvas(width, height) if base_node else None
        if base is None:
            base = document.composite()
        else:
            report.found_layers["base"] = base_node.name
        self._save(base, out_dir, "base.png", report)

        # displacement
        disp_node = find_layer_by_names(nodes, layers.DISPLACEMENT_NAMES)
        disp = disp_node.on_canvas(width, height) if disp_node else None
        if disp is not None and has_visual_content(disp):
            report.found_layers["displacement"] = disp_node.name
            self._save(disp.crop(box), out_dir, "displacement.png", report)
        else:
            log.info("Synthesising displacement map from base image")
            self._save(synthesize_displacement(base, box), out_dir, "displacement.png", report)
            report.synthesized_displacement = True

        # optional layers
        metadata = {
            "id": template_id,
            "name": _title(template_id),
            "productType": product_type,
            "color": color,
            "angle": angle,
            "basePath": "base.png",
            "displacementPath": "displacement.png",
            "printArea": print_area.to_dict(),
        }
        if category:
            metadata["category"] = category

        optional = (
            ("mask", layers.MASK_NAMES, "mask.png", "maskPath", True),
            ("shadow", layers.SHADOW_NAMES, "shadow.png", "shadowPath", False),
            ("highlight", layers.HIGHLIGHT_NAMES, "highlight.png", "highlightPath", False),
        )
        for label, names, filename, key, crop in optional:
            node = find_layer_by_names(nodes, names)
            if node is None:
                log.debug("%s layer not found (optional)", label.upper())
                continue
            img = node.on_canvas(width, height)
            if img is None:
                log.warning("%s layer '%s' has no pixels, skipped", label.upper(), node.name)
                continue
            report.found_layers[label] = node.name
            self._save(img.crop(box) if crop else img, out_dir, filename, report)
            metadata[key] = filename

        (out_dir / METADATA_FILE).write_text(json.dumps(metadata, indent=2), encoding="utf-8")
        report.written.append(METADATA_FILE)

        template = MockupTemplate.from_dict(metadata).qualified(template_id)
        self._templates.add_template(template)
        report.template = template

        log.info(
            "Extracted %s (%dx%d, layers: %s)",
            template_id, width, height, ", ".join(sorted(report.found_layers)),
        )
        return report

    @staticmethod
    def _save(image: Image.Image, out_dir: Path, filename: str, report: ExtractionReport) -> None:
        image.save(out_dir / filename, format="PNG")
        report.written.append(filename)
