"""
Batch pre-generation: one design fanned out over many templates.

The design is hashed once and the hash reused in every cache key.
Renders run on a bounded thread pool; a failing template is logged and
omitted, never aborting the batch.
"""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from config.settings import BatchConfig, RenderConfig
from core.generator import MaskBasedGenerator
from core.metrics import RenderMonitor
from core.models import DisplacementConfig, GeneratedMockup, MockupTemplate
from core.template_manager import TemplateManager
from imaging.cache import MockupCache
from imaging.helpers import encode, open_design
from utils.concurrency import AtomicCounter
from utils.exceptions import MissingInputError
from utils.log_config import get_logger

log = get_logger(__name__)

ProgressCallback = Callable[[str, bool], None]

APPAREL = "apparel"
WALL_ART = "wall-art"


@dataclass
class BatchFailure:
    template_id: str
    reason:      str
    retryable:   bool = False


@dataclass
class BatchReport:
    mockups:   List[GeneratedMockup] = field(default_factory=list)
    requested: int                   = 0
    failures:  List[BatchFailure]    = field(default_factory=list)
    elapsed:   float                 = 0.0      # ms

    @property
    def succeeded(self) -> int:
        return len(self.mockups)

    @property
    def cached(self) -> int:
        return sum(1 for m in self.mockups if m.cached)


class MockupPreGenerator:
    """Renders a design into every matching template concurrently."""

    def __init__(
        self,
        templates: TemplateManager,
        generator: MaskBasedGenerator,
        cache: MockupCache,
        batch_config: Optional[BatchConfig] = None,
        render_config: Optional[RenderConfig] = None,
        monitor: Optional[RenderMonitor] = None,
    ) -> None:
        self._templates = templates
        self._generator = generator
        self._cache = cache
        self._batch = batch_config or BatchConfig()
        self._render = render_config or RenderConfig()
        self.monitor = monitor or RenderMonitor()
        self.batches_run = AtomicCounter()

    # ── selection ───────────────────────────────────────────
    def select_templates(
        self,
        category: str = "all",
        product_filters: Optional[Sequence[str]] = None,
    ) -> List[MockupTemplate]:
        selected = []
        for tpl in self._templates.load_library().templates:
            cat = tpl.resolved_category
            if category != "all" and cat != category:
                continue
            if product_filters and tpl.product_type not in product_filters:
                continue
            if cat == APPAREL and not self._apparel_allowed(tpl):
                continue
            selected.append(tpl)
        return selected

    def _apparel_allowed(self, tpl: MockupTemplate) -> bool:
        return tpl.angle == self._batch.apparel_angle and tpl.color in self._batch.apparel_colors

    def preset_for(self, tpl: MockupTemplate) -> DisplacementConfig:
        return DisplacementConfig.preset(self._render, texture=bool(tpl.displacement_path))

    # ── generation ──────────────────────────────────────────
    def generate_all(
        self,
        design: bytes,
        design_hash: Optional[str] = None,
        category: str = "all",
        product_filters: Optional[Sequence[str]] = None,
        output_format: Optional[str] = None,
        output_quality: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[GeneratedMockup]:
        """
        Render every selected template and return the successful mockups.

        A request filter of ``{category, productType}`` maps onto *category*
        (``"wall-art"``, ``"apparel"`` or ``"all"``) plus *product_filters*,
        the product types to keep within it.  Failures are only visible
        through :meth:`run`.
        """
        return self.run(
            design,
            design_hash=design_hash,
            category=category,
            product_filters=product_filters,
            output_format=output_format,
            output_quality=output_quality,
            on_progress=on_progress,
        ).mockups

    def generate_wall_art(self, design: bytes, **kwargs) -> List[GeneratedMockup]:
        return self.generate_all(design, category=WALL_ART, **kwargs)

    def generate_apparel(self, design: bytes, **kwargs) -> List[GeneratedMockup]:
        return self.generate_all(design, category=APPAREL, **kwargs)

    def run(
        self,
        design: bytes,
        design_hash: Optional[str] = None,
        category: str = "all",
        product_filters: Optional[Sequence[str]] = None,
        output_format: Optional[str] = None,
        output_quality: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchReport:
        """
        Render the selected templates on a thread pool under one deadline.

        Renders still pending at the deadline are reported as retryable
        ``"timed out"`` failures.  Python threads cannot be interrupted, so
        those renders keep running in the abandoned pool and may still
        write their result to the cache after this returns.
        """
        t0 = time.perf_counter()
        if not design:
            raise MissingInputError("Design image is required")
        if not isinstance(design, (bytes, bytearray)):
            design = encode(open_design(design), "png")
        design = bytes(design)

        if design_hash is None:
            design_hash = self._cache.hash_buffer(design)

        selected = self.select_templates(category, product_filters)
        report = BatchReport(requested=len(selected))
        self.batches_run.increment()
        if not selected:
            log.warning("No templates match category=%s products=%s", category, product_filters)
            return report

        log.info(
            "Batch: %d template(s), category=%s, workers=%d",
            len(selected), category, self._batch.max_workers,
        )

        deadline = time.monotonic() + self._batch.timeout
        pending: Dict[Future, MockupTemplate] = {}
        results: Dict[str, GeneratedMockup] = {}
        pool = ThreadPoolExecutor(max_workers=self._batch.max_workers, thread_name_prefix="pregen")

        try:
            for tpl in selected:
                fut = pool.submit(self._render_one, tpl, design, design_hash, output_format, output_quality)
                pending[fut] = tpl

            while pending:
                if time.monotonic() >= deadline:
                    for fut, tpl in pending.items():
                        fut.cancel()
                        report.failures.append(BatchFailure(tpl.id, "timed out", retryable=True))
                        self.monitor.record(tpl.id, success=False, error="timed out")
                        log.error("Template %s timed out after %.0fs", tpl.id, self._batch.timeout)
                    pending.clear()
                    break

                done_futures = [f for f in list(pending.keys()) if f.done()]
                if not done_futures:
                    time.sleep(0.05)
                    continue

                for fut in done_futures:
                    tpl = pending.pop(fut)
                    try:
                        mockup = fut.result()
                    except Exception as exc:
                        report.failures.append(BatchFailure(tpl.id, str(exc)))
                        self.monitor.record(tpl.id, success=False, error=str(exc))
                        log.error("Template %s failed: %s", tpl.id, exc)
                        if on_progress:
                            on_progress(tpl.id, False)
                        continue
                    results[tpl.id] = mockup
                    self.monitor.record(tpl.id, success=True, render_time=mockup.render_time, cached=mockup.cached)
                    if on_progress:
                        on_progress(tpl.id, True)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        # selection order, independent of completion order
        report.mockups = [results[t.id] for t in selected if t.id in results]
        report.elapsed = (time.perf_counter() - t0) * 1000
        log.info(
            "Batch done: %d/%d succeeded (%d cached) in %.0fms",
            report.succeeded, report.requested, report.cached, report.elapsed,
        )
        return report

    def _render_one(
        self,
        tpl: MockupTemplate,
        design: bytes,
        design_hash: str,
        output_format: Optional[str],
        output_quality: Optional[int],
    ) -> GeneratedMockup:
        result = self._generator.render(
            tpl.id,
            design,
            config=self.preset_for(tpl),
            output_format=output_format,
            output_quality=output_quality,
            design_hash=design_hash,
        )
        return GeneratedMockup(
            template_id=tpl.id,
            name=tpl.name,
            category=tpl.resolved_category,
            product_type=tpl.product_type,
            buffer=result.buffer,
            cached=result.cached,
            render_time=result.render_time,
            size=tpl.size,
        )

    def get_stats(self) -> Dict[str, object]:
        templates = self._templates.load_library().templates
        by_category: Dict[str, int] = {}
        for tpl in templates:
            by_category[tpl.resolved_category] = by_category.get(tpl.resolved_category, 0) + 1
        return {
            "total_templates": len(templates),
            "by_category":     by_category,
            "batches_run":     self.batches_run.value,
            "cache":           self._cache.stats(),
        }
