"""Tests for layer lookup and template extraction from layered documents."""

import json
from dataclasses import dataclass, field
from typing import List

import pytest
from PIL import Image

from core.extractor import synthesize_displacement
from core.template_manager import TemplateManager
from imaging.layers import LayerNode, find_layer_by_names, find_smart_object, walk
from utils.exceptions import MissingInputError

from conftest import decode, png_bytes


def solid_layer(name, bbox, color=(255, 0, 0, 255), kind="pixel"):
    size = (bbox[2] - bbox[0], bbox[3] - bbox[1])
    return LayerNode(name=name, bbox=bbox, kind=kind, render=lambda: Image.new("RGBA", size, color))


@dataclass
class FakeDocument:
    width:  int
    height: int
    layers: List[LayerNode] = field(default_factory=list)

    def composite(self):
        return Image.new("RGBA", (self.width, self.height), (90, 90, 90, 255))


@pytest.fixture
def shirt():
    return FakeDocument(200, 100, [
        solid_layer("Base", (0, 0, 200, 100), (230, 230, 230, 255)),
        LayerNode(name="Print group", bbox=(0, 0, 200, 100), kind="group", children=[
            solid_layer("DESIGN here", (50, 20, 150, 80)),
        ]),
        solid_layer("mask", (40, 10, 160, 90), (255, 255, 255, 255)),
        solid_layer("Shadow", (0, 0, 200, 100), (120, 120, 120, 255)),
    ])


@pytest.fixture
def extractor(service):
    return service.extractor


class TestLayerLookup:

    def test_walk_is_depth_first(self, shirt):
        names = [n.name for n in walk(shirt.layers)]
        assert names == ["Base", "Print group", "DESIGN here", "mask", "Shadow"]

    def test_find_is_case_insensitive_substring(self, shirt):
        assert find_layer_by_names(shirt.layers, ("design",)).name == "DESIGN here"
        assert find_layer_by_names(shirt.layers, ("MASK",)).name == "mask"
        assert find_layer_by_names(shirt.layers, ("HIGHLIGHT",)) is None

    def test_first_match_in_document_order(self):
        nodes = [solid_layer("shadow a", (0, 0, 1, 1)), solid_layer("shadow b", (0, 0, 1, 1))]
        assert find_layer_by_names(nodes, ("SHADOW",)).name == "shadow a"

    def test_find_smart_object(self):
        nodes = [solid_layer("Photo", (0, 0, 1, 1)), solid_layer("Artwork", (0, 0, 1, 1), kind="smartobject")]
        assert find_smart_object(nodes).name == "Artwork"
        assert find_smart_object(nodes[:1]) is None

    def test_on_canvas_places_at_offset(self):
        node = solid_layer("x", (10, 5, 20, 15))
        canvas = node.on_canvas(40, 30)
        assert canvas.size == (40, 30)
        assert canvas.getpixel((15, 10)) == (255, 0, 0, 255)
        assert canvas.getpixel((5, 5))[3] == 0
        assert node.width == 10 and node.height == 10


class TestExtract:

    def test_writes_template_folder(self, extractor, shirt, templates_dir):
        report = extractor.extract(shirt, "tshirt-white-front")
        folder = templates_dir / "tshirt-white-front"

        assert set(report.written) == {
            "base.png", "displacement.png", "mask.png", "shadow.png", "metadata.json",
        }
        assert Image.open(folder / "base.png").size == (200, 100)
        assert Image.open(folder / "mask.png").size == (100, 60)
        assert Image.open(folder / "shadow.png").size == (200, 100)
        assert Image.open(folder / "displacement.png").size == (100, 60)

        meta = json.loads((folder / "metadata.json").read_text())
        assert meta["basePath"] == "base.png"
        assert meta["maskPath"] == "mask.png"
        assert "highlightPath" not in meta
        assert meta["printArea"] == pytest.approx({"x": 0.25, "y": 0.2, "width": 0.5, "height": 0.6})

    def test_registers_qualified_template(self, extractor, shirt, templates_dir):
        report = extractor.extract(shirt, "tshirt-white-front", color="white")
        assert report.template.base_path == "tshirt-white-front/base.png"
        assert report.template.name == "Tshirt White Front"
        fresh = TemplateManager(templates_dir).require_template("tshirt-white-front")
        assert fresh.mask_path == "tshirt-white-front/mask.png"
        assert fresh.resolved_category == "apparel"

    def test_displacement_synthesised_when_absent(self, extractor, shirt):
        report = extractor.extract(shirt, "tee")
        assert report.synthesized_displacement
        assert "displacement" not in report.found_layers

    def test_authored_displacement_is_used(self, extractor, shirt, templates_dir):
        shirt.layers.append(solid_layer("Displacement", (0, 0, 200, 100), (10, 200, 60, 255)))
        report = extractor.extract(shirt, "tee")
        assert not report.synthesized_displacement
        disp = Image.open(templates_dir / "tee" / "displacement.png").convert("RGBA")
        assert disp.getpixel((5, 5)) == (10, 200, 60, 255)

    def test_blank_displacement_layer_is_ignored(self, extractor, shirt):
        shirt.layers.append(solid_layer("DISPLACEMENT", (0, 0, 200, 100), (128, 128, 128, 255)))
        assert extractor.extract(shirt, "tee").synthesized_displacement

    def test_smart_object_stands_in_for_design(self, extractor):
        doc = FakeDocument(100, 100, [
            solid_layer("Background", (0, 0, 100, 100), (250, 250, 250, 255)),
            solid_layer("Your art", (10, 10, 60, 60), kind="smartobject"),
        ])
        report = extractor.extract(doc, "mug-white-front", product_type="mug")
        assert report.found_layers["design"] == "Your art"
        assert report.print_area.width == pytest.approx(0.5)

    def test_missing_base_uses_document_composite(self, extractor, templates_dir):
        doc = FakeDocument(100, 100, [solid_layer("DESIGN", (10, 10, 60, 60))])
        report = extractor.extract(doc, "poster-front", product_type="poster")
        assert "base" not in report.found_layers
        base = Image.open(templates_dir / "poster-front" / "base.png").convert("RGBA")
        assert base.getpixel((0, 0)) == (90, 90, 90, 255)

    def test_no_design_layer(self, extractor):
        doc = FakeDocument(100, 100, [solid_layer("Base", (0, 0, 100, 100))])
        with pytest.raises(MissingInputError):
            extractor.extract(doc, "nothing")

    def test_extracted_template_renders(self, service, shirt):
        service.extractor.extract(shirt, "tshirt-white-front")
        out = decode(service.generator.generate("tshirt-white-front", png_bytes((100, 60))))
        assert out.size == (200, 100)
        assert out.getpixel((100, 50))[0] > out.getpixel((100, 50))[1]
        assert out.getpixel((5, 5))[:3] == pytest.approx((120, 120, 120), abs=30)


class TestDisplacementSynthesis:

    def test_output_is_grayscale_crop(self):
        base = Image.new("RGBA", (50, 40), (200, 200, 200, 255))
        base.paste((40, 40, 40, 255), (0, 20, 50, 40))
        disp = synthesize_displacement(base, (10, 10, 40, 30))
        assert disp.mode == "L"
        assert disp.size == (30, 20)
