"""Tests for the data model."""

import pytest

from config.settings import RenderConfig
from core.models import DisplacementConfig, MockupTemplate, PrintArea, TemplateLibrary


class TestPrintArea:

    def test_to_pixels_rounds(self):
        assert PrintArea(0.25, 0.2, 0.5, 0.5).to_pixels(1000, 1000) == (250, 200, 500, 500)
        assert PrintArea(0.333, 0.0, 0.333, 1.0).to_pixels(100, 10) == (33, 0, 33, 10)

    def test_clipped_clamps_into_unit_square(self):
        area = PrintArea(0.8, -0.1, 0.5, 0.5).clipped()
        assert area.x == 0.8
        assert area.y == 0.0
        assert area.width == pytest.approx(0.2)
        assert area.is_valid()

    def test_to_pixels_never_leaves_base(self):
        left, top, width, height = PrintArea(0.9, 0.9, 0.5, 0.5).to_pixels(100, 100)
        assert left + width <= 100
        assert top + height <= 100


class TestMockupTemplate:

    def _data(self, **extra):
        data = {
            "id": "tshirt-black-front",
            "name": "Black Tee",
            "productType": "tshirt",
            "color": "black",
            "angle": "front",
            "basePath": "base.png",
            "printArea": {"x": 0.3, "y": 0.25, "width": 0.4, "height": 0.5},
        }
        data.update(extra)
        return data

    def test_round_trip_keeps_camel_case_keys(self):
        tpl = MockupTemplate.from_dict(self._data(maskPath="mask.png"))
        out = tpl.to_dict()
        assert out["productType"] == "tshirt"
        assert out["maskPath"] == "mask.png"
        assert "displacementPath" not in out

    def test_missing_required_field(self):
        data = self._data()
        del data["basePath"]
        with pytest.raises(KeyError):
            MockupTemplate.from_dict(data)

    def test_qualified_prefixes_folder(self):
        tpl = MockupTemplate.from_dict(self._data(maskPath="mask.png")).qualified("tee")
        assert tpl.base_path == "tee/base.png"
        assert tpl.mask_path == "tee/mask.png"
        assert tpl.qualified("tee").base_path == "tee/base.png"

    def test_category_inferred_from_product(self):
        assert MockupTemplate.from_dict(self._data()).resolved_category == "apparel"
        poster = MockupTemplate.from_dict(self._data(productType="poster"))
        assert poster.resolved_category == "wall-art"
        explicit = MockupTemplate.from_dict(self._data(category="drinkware"))
        assert explicit.resolved_category == "drinkware"

    def test_library_later_duplicate_wins(self):
        lib = TemplateLibrary.from_dict({
            "templates": [self._data(name="First"), self._data(name="Second")],
            "version": "1.0.0",
        })
        assert len(lib.templates) == 1
        assert lib.templates[0].name == "Second"


class TestDisplacementConfig:

    def test_to_dict_only_set_fields(self):
        cfg = DisplacementConfig(brightness=0.9, blend_mode="overlay")
        assert cfg.to_dict() == {"brightness": 0.9, "blendMode": "overlay"}
        assert DisplacementConfig().is_empty()

    def test_from_dict_accepts_camel_case(self):
        cfg = DisplacementConfig.from_dict({"textureOverlay": True, "textureOpacity": 0.3})
        assert cfg.texture_overlay is True
        assert cfg.texture_opacity == 0.3

    def test_merged_fills_defaults(self):
        eff = DisplacementConfig(contrast=1.2).merged(RenderConfig())
        assert eff.apply_adjustments
        assert eff.brightness == 1.0
        assert eff.contrast == 1.2
        assert eff.blend_mode == "multiply"
        assert eff.texture_opacity == 0.15

    def test_merged_without_adjustments(self):
        assert not DisplacementConfig().merged(RenderConfig()).apply_adjustments

    def test_preset(self):
        preset = DisplacementConfig.preset(RenderConfig(), texture=True)
        assert preset.to_dict() == {
            "brightness": 0.92,
            "blendMode": "multiply",
            "textureOverlay": True,
            "textureOpacity": 0.15,
        }
