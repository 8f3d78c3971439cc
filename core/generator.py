"""
Mask-based mockup generator.

Places a design into a template's print area using blend modes and
alpha masks (no geometric displacement).  Layer order is fixed:

    base → design (blend mode) → shadow (multiply) → highlight (screen)

Results are memoised in :class:`MockupCache` under a key built from
the template id, the design hash and the canonical config hash.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageDraw

from config.settings import RenderConfig
from core.models import DisplacementConfig, EffectiveConfig, MockupTemplate
from core.template_manager import TemplateManager
from imaging import blending
from imaging.cache import MockupCache
from imaging.helpers import ImageSource, encode, load_optional, load_required, open_design
from utils.exceptions import MissingInputError
from utils.log_config import get_logger

log = get_logger(__name__)

CACHE_PREFIX = "mask-"


@dataclass
class RenderResult:
    buffer:      bytes
    cached:      bool
    cache_key:   str
    render_time: float     # ms


class MaskBasedGenerator:
    """Composites designs onto mask-based templates, with caching."""

    def __init__(
        self,
        templates: TemplateManager,
        cache: MockupCache,
        render_config: Optional[RenderConfig] = None,
    ) -> None:
        self._templates = templates
        self._cache = cache
        self._render = render_config or RenderConfig()

    # ── keys ────────────────────────────────────────────────
    def _output(self, output_format: Optional[str], output_quality: Optional[int]) -> Tuple[str, int]:
        fmt = (output_format or self._render.output_format).lower()
        if fmt == "jpg":
            fmt = "jpeg"
        quality = output_quality if output_quality is not None else self._render.output_quality
        return fmt, quality

    def cache_key(
        self,
        template_id: str,
        design_hash: str,
        config: Optional[DisplacementConfig] = None,
        output_format: Optional[str] = None,
        output_quality: Optional[int] = None,
    ) -> str:
        fmt, quality = self._output(output_format, output_quality)
        payload = (config or DisplacementConfig()).to_dict()
        if fmt != "png":
            # PNG is the historical default and stays out of the key
            payload["outputFormat"] = fmt
            payload["outputQuality"] = quality
        config_hash = self._cache.hash_object(payload) if payload else None
        return self._cache.generate_key(CACHE_PREFIX + template_id, design_hash, config_hash)

    # ── generation ──────────────────────────────────────────
    def generate(
        self,
        template_id: str,
        design: ImageSource,
        config: Optional[DisplacementConfig] = None,
        output_format: Optional[str] = None,
        output_quality: Optional[int] = None,
        design_hash: Optional[str] = None,
    ) -> bytes:
        return self.render(
            template_id, design, config, output_format, output_quality, design_hash
        ).buffer

    def render(
        self,
        template_id: str,
        design: ImageSource,
        config: Optional[DisplacementConfig] = None,
        output_format: Optional[str] = None,
        output_quality: Optional[int] = None,
        design_hash: Optional[str] = None,
    ) -> RenderResult:
        t0 = time.perf_counter()
        if design is None or (isinstance(design, (bytes, bytearray)) and not design):
            raise MissingInputError("Design image is required")

        config = config or DisplacementConfig()
        fmt, quality = self._output(output_format, output_quality)

        if design_hash is None:
            if isinstance(design, (bytes, bytearray)):
                design_hash = self._cache.hash_buffer(bytes(design))
            else:
                design_hash = self._cache.hash_buffer(encode(open_design(design), "png"))
        key = self.cache_key(template_id, design_hash, config, fmt, quality)

        hit = self._cache.get(key)
        if hit is not None:
            elapsed = (time.perf_counter() - t0) * 1000
            log.debug("%s served from cache", template_id)
            return RenderResult(buffer=hit, cached=True, cache_key=key, render_time=elapsed)

        template = self._templates.require_template(template_id)
        composed = self.compose(template, open_design(design), config)
        buffer = encode(composed, fmt, quality)
        self._cache.set(key, buffer)

        elapsed = (time.perf_counter() - t0) * 1000
        log.info("Rendered %s (%s, %d bytes) in %.0fms", template_id, fmt, len(buffer), elapsed)
        return RenderResult(buffer=buffer, cached=False, cache_key=key, render_time=elapsed)

    def compose(
        self,
        template: MockupTemplate,
        design: Image.Image,
        config: Optional[DisplacementConfig] = None,
    ) -> Image.Image:
        """Pure compositing pipeline; no cache involved."""
        eff: EffectiveConfig = (config or DisplacementConfig()).merged(self._render)
        base = load_required(self._templates.resolve(template.base_path))
        left, top, width, height = template.print_area.to_pixels(*base.size)

        fitted = blending.fit_contain(design, width, height)
        fitted = blending.rotate_within(fitted, template.print_area.rotation)

        if eff.apply_adjustments:
            fitted = blending.adjust_design(fitted, eff.brightness, eff.contrast, eff.saturation)

        if eff.smoothing > 0:
            fitted = blending.feather(fitted, eff.smoothing)

        if template.mask_path:
            mask = load_optional(self._templates.resolve(template.mask_path))
            if mask is not None:
                fitted = blending.apply_mask(fitted, mask)

        if template.displacement_path and eff.texture_overlay:
            fitted = self._apply_texture(fitted, template, eff)

        result = blending.blend_at(base, fitted, (left, top), eff.blend_mode)

        for path, mode in ((template.shadow_path, "multiply"), (template.highlight_path, "screen")):
            if not path:
                continue
            layer = load_optional(self._templates.resolve(path))
            if layer is not None:
                result = blending.blend(result, blending.resize_to(layer.convert("RGBA"), result.size), mode)

        return result

    def _apply_texture(
        self,
        design: Image.Image,
        template: MockupTemplate,
        eff: EffectiveConfig,
    ) -> Image.Image:
        texture = load_optional(self._templates.resolve(template.displacement_path))
        if texture is None:
            return design
        texture = blending.resize_to(texture.convert("RGBA"), design.size)
        texture = blending.lighten(texture, eff.texture_lighten)
        texture = blending.scale_alpha(texture, eff.texture_opacity)
        textured = blending.blend(design, texture, "overlay")
        return blending.clip_to_alpha(textured, design)

    # ── debug ───────────────────────────────────────────────
    def preview_template(self, template_id: str) -> bytes:
        """Base image with the print area shaded translucent red (PNG, uncached)."""
        template = self._templates.require_template(template_id)
        base = load_required(self._templates.resolve(template.base_path))
        left, top, width, height = template.print_area.to_pixels(*base.size)

        overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        draw.rectangle(
            (left, top, left + width - 1, top + height - 1),
            fill=self._render.preview_fill,
            outline=self._render.preview_fill[:3] + (255,),
            width=2,
        )
        base.alpha_composite(overlay)
        return encode(base, "png")
