"""Tests for the PSD preview compositor (no ImageMagick required)."""

from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from config.settings import PsdConfig
from config.templates import Bounds, CompositeMethod, PsdTemplate, templates_for_orientation
from core.psd_compositor import (
    PsdCompositor,
    compose_delete_layer,
    compose_layer_by_layer,
    compose_masked_layer,
)
from imaging.magick import MagickLayerSource, MagickTool
from utils.exceptions import MissingInputError, ToolExecutionError, ToolUnavailableError

from conftest import decode, png_bytes

WHITE = (255, 255, 255, 255)
GREY = (128, 128, 128, 255)
RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


class FakeLayerSource:
    """Serves canned layer images and records what was asked for."""

    def __init__(self, layers=None, alphas=None, flattened=None):
        self.layers = layers or {}
        self.alphas = alphas or {}
        self.flattened = flattened
        self.calls = []

    def layer(self, index, background=None, extent=None):
        self.calls.append(("layer", index, background))
        return self.layers[index]

    def alpha(self, index, extent=None):
        self.calls.append(("alpha", index))
        return self.alphas[index]

    def flatten_without(self, index):
        self.calls.append(("without", index))
        return self.flattened


def tiny(method=CompositeMethod.LAYER_BY_LAYER, bounds=Bounds(20, 20, 40, 40), **kwargs):
    fields = dict(
        name="Tiny",
        psd_path="tiny.psd",
        orientation="square",
        canvas_size=(100, 100),
        method=method,
        design_bounds=bounds,
        mask_bounds=bounds,
        base_layer_index=2,
        refl_layer_index=0,
        design_layer_index=1,
    )
    fields.update(kwargs)
    return PsdTemplate(**fields)


def near(pixel, expected, tol=12):
    return all(abs(a - b) <= tol for a, b in zip(pixel[:3], expected[:3]))


@pytest.fixture
def fitted():
    return Image.new("RGBA", (40, 40), RED)


@pytest.fixture
def psd_config():
    return PsdConfig(output_width=100)


class TestHandlers:

    def test_layer_by_layer_stacks_reflection_last(self, fitted):
        refl = Image.new("RGBA", (100, 100), (0, 0, 0, 0))
        refl.paste(BLUE, (25, 25, 30, 30))
        source = FakeLayerSource(layers={2: Image.new("RGBA", (100, 100), WHITE), 0: refl})

        out = compose_layer_by_layer(tiny(), fitted, source)
        assert out.getpixel((50, 50)) == RED
        assert out.getpixel((5, 5)) == WHITE
        assert out.getpixel((27, 27)) == BLUE
        assert source.calls[0] == ("layer", 2, "white")

    def test_layer_by_layer_without_reflection(self, fitted):
        source = FakeLayerSource(layers={2: Image.new("RGBA", (100, 100), WHITE)})
        out = compose_layer_by_layer(tiny(refl_layer_index=None), fitted, source)
        assert out.getpixel((50, 50)) == RED

    def test_delete_layer_uses_document_without_placeholder(self, fitted):
        source = FakeLayerSource(flattened=Image.new("RGBA", (100, 100), GREY))
        out = compose_delete_layer(tiny(CompositeMethod.DELETE_LAYER), fitted, source)
        assert source.calls == [("without", 1)]
        assert out.getpixel((50, 50)) == RED
        assert out.getpixel((5, 5)) == GREY

    def test_cropped_layer_is_extended_to_canvas(self, fitted):
        source = FakeLayerSource(flattened=Image.new("RGBA", (60, 60), GREY))
        out = compose_delete_layer(tiny(CompositeMethod.DELETE_LAYER), fitted, source)
        assert out.size == (100, 100)
        assert out.getpixel((90, 90))[3] == 0

    def test_masked_layer(self, fitted):
        mask = Image.new("L", (100, 100), 0)
        mask.paste(255, (0, 0, 40, 100))
        template = tiny(
            CompositeMethod.MASKED_LAYER,
            base_layer_index=1,
            refl_layer_index=None,
            design_layer_index=None,
            mask_layer_index=2,
            shadow_layer_index=3,
        )
        source = FakeLayerSource(
            layers={1: Image.new("RGBA", (100, 100), WHITE), 3: Image.new("RGBA", (100, 100), GREY)},
            alphas={2: mask},
        )
        out = compose_masked_layer(template, fitted, source)
        assert near(out.getpixel((30, 30)), (128, 0, 0), tol=2)
        assert near(out.getpixel((50, 30)), (128, 128, 128), tol=2)


class TestCompositor:

    def test_fit_cover_follows_focal_point(self, psd_config, tmp_dir):
        design = Image.new("RGBA", (200, 100), BLUE)
        design.paste(RED, (0, 0, 100, 100))
        comp = PsdCompositor(psd_config, tmp_dir)
        west = comp.fit_design(design, Bounds(0, 0, 40, 40), "cover", focal=(0.1, 0.5))
        east = comp.fit_design(design, Bounds(0, 0, 40, 40), "cover", focal=(0.9, 0.5))
        assert west.getpixel((20, 20)) == RED
        assert east.getpixel((20, 20)) == BLUE

    def test_fit_inside_pads_white(self, psd_config, tmp_dir):
        comp = PsdCompositor(psd_config, tmp_dir)
        out = comp.fit_design(Image.new("RGBA", (200, 100), RED), Bounds(0, 0, 40, 40), "inside")
        assert out.getpixel((20, 2)) == WHITE

    def test_unknown_fit(self, psd_config, tmp_dir):
        with pytest.raises(ValueError):
            PsdCompositor(psd_config, tmp_dir).fit_design(Image.new("RGBA", (4, 4)), Bounds(0, 0, 4, 4), "stretch")

    def test_render_produces_jpeg(self, psd_config, tmp_dir):
        source = FakeLayerSource(layers={2: Image.new("RGBA", (100, 100), WHITE), 0: Image.new("RGBA", (100, 100))})
        comp = PsdCompositor(psd_config, tmp_dir, temp_root=tmp_dir, source_factory=lambda psd, work: source)

        preview = comp.render(tiny(), png_bytes((40, 40)))
        assert preview.buffer[:2] == b"\xff\xd8"
        assert preview.method == "layerByLayer"
        assert not preview.fallback
        img = decode(preview.buffer)
        assert img.size == (100, 100)
        assert near(img.getpixel((40, 40)), RED)
        assert near(img.getpixel((5, 5)), WHITE)

    def test_output_scaled_to_width(self, tmp_dir):
        source = FakeLayerSource(layers={2: Image.new("RGBA", (100, 100), WHITE), 0: Image.new("RGBA", (100, 100))})
        comp = PsdCompositor(PsdConfig(output_width=50), tmp_dir, source_factory=lambda psd, work: source)
        assert decode(comp.render(tiny(), png_bytes()).buffer).size == (50, 50)

    def test_missing_tool_falls_back_to_flattened_document(self, psd_config, tmp_dir):
        def unavailable(psd, work):
            raise ToolUnavailableError("no magick")

        flattened = []

        def flatten(path):
            flattened.append(Path(path).name)
            return Image.new("RGBA", (100, 100), GREY)

        comp = PsdCompositor(psd_config, tmp_dir, source_factory=unavailable, flatten=flatten)
        preview = comp.render(tiny(), png_bytes((40, 40)))
        assert preview.fallback
        assert preview.method == "fallback"
        assert flattened == ["tiny.psd"]
        img = decode(preview.buffer)
        assert near(img.getpixel((40, 40)), RED)
        assert near(img.getpixel((5, 5)), GREY)

    def test_fallback_padding_shows_document(self, psd_config, tmp_dir):
        def unavailable(psd, work):
            raise ToolUnavailableError("no magick")

        comp = PsdCompositor(
            psd_config, tmp_dir,
            source_factory=unavailable,
            flatten=lambda path: Image.new("RGBA", (100, 100), GREY),
        )
        img = decode(comp.render(tiny(), png_bytes((40, 10))).buffer)
        assert near(img.getpixel((40, 25)), GREY)
        assert near(img.getpixel((40, 40)), RED)
        assert near(img.getpixel((40, 55)), GREY)

    def test_fallback_uses_margin_without_bounds(self, psd_config, tmp_dir):
        opened = []

        def factory(psd, work):
            opened.append(psd)
            return FakeLayerSource()

        comp = PsdCompositor(
            psd_config, tmp_dir,
            source_factory=factory,
            flatten=lambda path: Image.new("RGBA", (100, 100), GREY),
        )
        preview = comp.render(tiny(bounds=None), png_bytes((40, 40)))
        assert preview.fallback
        assert preview.method == "fallback"
        assert opened == []
        img = decode(preview.buffer)
        assert near(img.getpixel((50, 50)), RED)
        assert near(img.getpixel((8, 8)), GREY)

    def test_render_all_isolates_failures(self, psd_config, tmp_dir):
        good = FakeLayerSource(layers={2: Image.new("RGBA", (100, 100), WHITE), 0: Image.new("RGBA", (100, 100))})

        def factory(psd, work):
            if Path(psd).name == "bad.psd":
                raise RuntimeError("corrupt layer table")
            return good

        comp = PsdCompositor(psd_config, tmp_dir, source_factory=factory)
        batch = comp.render_all(
            png_bytes((40, 40)),
            templates={"good": tiny(), "bad": tiny(name="Bad", psd_path="bad.psd")},
        )
        assert [m.name for m in batch.mockups] == ["Tiny"]
        assert batch.errors == [{"template": "Bad", "error": "corrupt layer table"}]

    def test_render_all_requires_templates(self, psd_config, tmp_dir):
        with pytest.raises(MissingInputError):
            PsdCompositor(psd_config, tmp_dir).render_all(png_bytes(), templates={})

    def test_orientation_filter(self):
        assert {t.orientation for t in templates_for_orientation("landscape").values()} == {"landscape"}
        assert len(templates_for_orientation("both")) == 4


class TestMagick:

    def test_missing_binary(self):
        tool = MagickTool(commands=("definitely-not-imagemagick",))
        assert not tool.available
        with pytest.raises(ToolUnavailableError):
            tool.run(["in.psd", "out.png"])

    def test_non_zero_exit(self):
        tool = MagickTool()
        with patch("imaging.magick.shutil.which", return_value="/usr/bin/magick"), \
             patch("imaging.magick.subprocess.run") as run:
            run.return_value.returncode = 1
            run.return_value.stderr = b"no such layer"
            with pytest.raises(ToolExecutionError):
                tool.run(["in.psd[9]", "out.png"])

    def test_layer_source_arguments(self, tmp_dir):
        tool = MagickTool()
        seen = []

        def fake_run(args):
            seen.append(args)
            Image.new("RGBA", (10, 10), RED).save(args[-1])

        with patch.object(tool, "run", side_effect=fake_run):
            source = MagickLayerSource(tool, tmp_dir / "shirt.psd", tmp_dir)
            source.layer(2, background="white", extent=(10, 10))
            mask = source.alpha(1)
            source.flatten_without(1)

        assert seen[0][:5] == [f"{tmp_dir / 'shirt.psd'}[2]", "-background", "white", "-flatten", "-gravity"]
        assert "-extent" in seen[0]
        assert seen[1][-3:-1] == ["-alpha", "extract"]
        assert mask.mode == "L"
        assert seen[2][1:3] == ["-delete", "1"]
