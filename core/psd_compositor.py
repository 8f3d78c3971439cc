"""
PSD layered-template compositor (preview pipeline).

Each template names a ``CompositeMethod``; the matching handler pulls
layers through a :class:`LayerSource` and stacks them in a fixed order:

    layerByLayer : base → design → reflection
    deleteLayer  : (document minus placeholder) → design
    maskedLayer  : base → masked design → shadow (multiply)

When ImageMagick is missing or fails, the template is flattened with
psd-tools and the design is fitted into a generic canvas area instead.
"""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from PIL import Image

from config.settings import PsdConfig
from config.templates import Bounds, CompositeMethod, PsdTemplate, templates_for_orientation
from imaging import blending
from imaging.helpers import ImageSource, encode, open_design
from imaging.layers import PsdDocument
from imaging.magick import MagickLayerSource, MagickTool
from utils.exceptions import MissingInputError, ToolExecutionError, ToolUnavailableError
from utils.log_config import get_logger
from utils.scratch import scratch_dir

log = get_logger(__name__)

Focal = Tuple[float, float]


class LayerSource(Protocol):
    def layer(
        self,
        index: int,
        background: Optional[str] = None,
        extent: Optional[Tuple[int, int]] = None,
    ) -> Image.Image: ...

    def alpha(self, index: int, extent: Optional[Tuple[int, int]] = None) -> Image.Image: ...

    def flatten_without(self, index: int) -> Image.Image: ...


SourceFactory = Callable[[Path, Path], LayerSource]


@dataclass
class PsdPreview:
    name:        str
    orientation: str
    buffer:      bytes
    method:      str
    render_time: float     # ms
    fallback:    bool = False


@dataclass
class PsdPreviewBatch:
    mockups:    List[PsdPreview]       = field(default_factory=list)
    errors:     List[Dict[str, str]]   = field(default_factory=list)
    total_time: float                  = 0.0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  METHOD HANDLERS: (template, fitted_design, layers) -> Image
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _full_canvas(image: Image.Image, template: PsdTemplate) -> Image.Image:
    w, h = template.canvas_size
    if image.size == (w, h):
        return image.convert("RGBA")
    return blending.extend_canvas(image, w, h)


def compose_layer_by_layer(template: PsdTemplate, fitted: Image.Image, layers: LayerSource) -> Image.Image:
    bounds = template.placement
    base = _full_canvas(
        layers.layer(template.base_layer_index, background="white", extent=template.canvas_size),
        template,
    )
    base.alpha_composite(fitted, bounds.origin)
    if template.refl_layer_index is not None:
        refl = _full_canvas(
            layers.layer(template.refl_layer_index, extent=template.canvas_size), template
        )
        base.alpha_composite(refl)
    return base


def compose_delete_layer(template: PsdTemplate, fitted: Image.Image, layers: LayerSource) -> Image.Image:
    bounds = template.placement
    clean = _full_canvas(layers.flatten_without(template.design_layer_index), template)
    clean.alpha_composite(fitted, bounds.origin)
    return clean


def compose_masked_layer(template: PsdTemplate, fitted: Image.Image, layers: LayerSource) -> Image.Image:
    bounds = template.placement
    w, h = template.canvas_size
    base = _full_canvas(
        layers.layer(template.base_layer_index, background="white", extent=template.canvas_size),
        template,
    )

    mask = layers.alpha(template.mask_layer_index, extent=template.canvas_size).convert("L")
    if mask.size != (w, h):
        mask = _pad_l(mask, w, h)
    mask_crop = mask.crop((bounds.x, bounds.y, bounds.x + bounds.width, bounds.y + bounds.height))
    masked = blending.apply_mask(fitted, mask_crop)

    placed = blending.extend_canvas(masked, w, h, origin=bounds.origin)
    result = blending.blend(base, placed, "normal")

    if template.shadow_layer_index is not None:
        shadow = _full_canvas(
            layers.layer(template.shadow_layer_index, extent=template.canvas_size), template
        )
        result = blending.blend(result, shadow, "multiply")
    return result


def _pad_l(mask: Image.Image, width: int, height: int) -> Image.Image:
    canvas = Image.new("L", (width, height), 0)
    canvas.paste(mask.convert("L"), (0, 0))
    return canvas


METHOD_HANDLERS: Dict[CompositeMethod, Callable[[PsdTemplate, Image.Image, LayerSource], Image.Image]] = {
    CompositeMethod.LAYER_BY_LAYER: compose_layer_by_layer,
    CompositeMethod.DELETE_LAYER:   compose_delete_layer,
    CompositeMethod.MASKED_LAYER:   compose_masked_layer,
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  COMPOSITOR
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PsdCompositor:
    """Renders a design into every requested PSD template."""

    def __init__(
        self,
        psd_config: PsdConfig,
        psd_dir: Path,
        temp_root: Optional[Path] = None,
        max_workers: int = 4,
        tool: Optional[MagickTool] = None,
        source_factory: Optional[SourceFactory] = None,
        flatten: Optional[Callable[[Path], Image.Image]] = None,
    ) -> None:
        self._cfg = psd_config
        self._psd_dir = Path(psd_dir)
        self._temp_root = temp_root
        self._max_workers = max(1, max_workers)
        self._tool = tool or MagickTool(psd_config.magick_commands, psd_config.command_timeout)
        self._source_factory = source_factory or (
            lambda psd, work: MagickLayerSource(self._tool, psd, work)
        )
        self._flatten = flatten or (lambda path: PsdDocument.open(path).composite())

    @property
    def tool_available(self) -> bool:
        return self._tool.available

    # ── fit ─────────────────────────────────────────────────
    def fit_design(
        self,
        design: Image.Image,
        bounds: Bounds,
        fit_mode: Optional[str] = None,
        focal: Focal = (0.5, 0.5),
    ) -> Image.Image:
        mode = fit_mode or self._cfg.default_fit
        if mode == "inside":
            return blending.fit_inside(design, bounds.width, bounds.height)
        if mode != "cover":
            raise ValueError(f"Unknown fit mode: {mode}")
        gravity = blending.gravity_for_focal(*focal)
        return blending.fit_cover(design, bounds.width, bounds.height, gravity)

    # ── single template ─────────────────────────────────────
    def render(
        self,
        template: PsdTemplate,
        design: ImageSource,
        fit_mode: Optional[str] = None,
        focal: Focal = (0.5, 0.5),
    ) -> PsdPreview:
        t0 = time.perf_counter()
        design_img = open_design(design)
        psd_path = template.resolve(self._psd_dir)
        fallback = template.placement is None

        if fallback:
            log.warning("%s has no placement bounds, using flattened fallback", template.name)
        else:
            try:
                image = self._render_layers(template, design_img, psd_path, fit_mode, focal)
            except (ToolUnavailableError, ToolExecutionError) as exc:
                log.warning("%s: layer extraction failed (%s), using flattened fallback", template.name, exc)
                fallback = True
        if fallback:
            image = self.render_fallback(template, design_img, psd_path)
        method = "fallback" if fallback else template.method.value

        buffer = self._finish(image)
        elapsed = (time.perf_counter() - t0) * 1000
        log.info("PSD %s rendered via %s in %.0fms", template.name, method, elapsed)
        return PsdPreview(
            name=template.name,
            orientation=template.orientation,
            buffer=buffer,
            method=method,
            render_time=elapsed,
            fallback=fallback,
        )

    def _render_layers(
        self,
        template: PsdTemplate,
        design: Image.Image,
        psd_path: Path,
        fit_mode: Optional[str],
        focal: Focal,
    ) -> Image.Image:
        fitted = self.fit_design(design, template.placement, fit_mode, focal)
        handler = METHOD_HANDLERS[template.method]
        with scratch_dir(self._temp_root, prefix="psd-") as work:
            layers = self._source_factory(psd_path, work)
            return handler(template, fitted, layers)

    def render_fallback(self, template: PsdTemplate, design: Image.Image, psd_path: Path) -> Image.Image:
        """Flatten the whole file and contain-fit the design into a generic canvas area.

        Padding around the fitted design is transparent so the flattened
        document shows through it.
        """
        flat = self._flatten(psd_path).convert("RGBA")
        area = self._canvas_area(template, flat.size)
        fitted = blending.fit_contain(design, area.width, area.height)
        return blending.blend_at(flat, fitted, area.origin)

    def _canvas_area(self, template: PsdTemplate, size: Tuple[int, int]) -> Bounds:
        bounds = template.mask_bounds or template.design_bounds
        if bounds is not None:
            return bounds
        width, height = size
        mx = round(width * self._cfg.fallback_margin)
        my = round(height * self._cfg.fallback_margin)
        return Bounds(mx, my, max(1, width - 2 * mx), max(1, height - 2 * my))

    def _finish(self, image: Image.Image) -> bytes:
        return encode(blending.scale_to_width(image, self._cfg.output_width), "jpeg", self._cfg.jpeg_quality)

    # ── all templates ───────────────────────────────────────
    def render_all(
        self,
        design: ImageSource,
        templates: Optional[Dict[str, PsdTemplate]] = None,
        orientation: str = "both",
        fit_mode: Optional[str] = None,
        focal: Focal = (0.5, 0.5),
    ) -> PsdPreviewBatch:
        """Render every template concurrently; one failure never aborts the rest."""
        t0 = time.perf_counter()
        design_img = open_design(design)
        if templates is None:
            templates = templates_for_orientation(orientation)
        if not templates:
            raise MissingInputError(f"No PSD templates for orientation '{orientation}'")

        batch = PsdPreviewBatch()
        pending: Dict[Future, str] = {}
        pool = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="psd")
        try:
            for key, tpl in templates.items():
                pending[pool.submit(self.render, tpl, design_img, fit_mode, focal)] = key

            while pending:
                done_futures = [f for f in list(pending.keys()) if f.done()]
                if not done_futures:
                    time.sleep(0.05)
                    continue
                for fut in done_futures:
                    key = pending.pop(fut)
                    try:
                        batch.mockups.append(fut.result())
                    except Exception as exc:
                        log.error("PSD template %s failed: %s", key, exc)
                        batch.errors.append({"template": templates[key].name, "error": str(exc)})
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        batch.total_time = (time.perf_counter() - t0) * 1000
        log.info(
            "PSD batch: %d ok, %d failed in %.0fms",
            len(batch.mockups), len(batch.errors), batch.total_time,
        )
        return batch
