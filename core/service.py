"""Explicit wiring of every component from one ``AppConfig``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from config.settings import AppConfig
from core.extractor import TemplateExtractor
from core.generator import MaskBasedGenerator
from core.metrics import RenderMonitor
from core.pregenerate import MockupPreGenerator
from core.psd_compositor import PsdCompositor
from core.template_manager import TemplateManager
from imaging.cache import MockupCache
from imaging.magick import MagickTool
from utils.log_config import get_logger

log = get_logger(__name__)


@dataclass
class MockupService:
    cfg:          AppConfig
    templates:    TemplateManager
    cache:        MockupCache
    generator:    MaskBasedGenerator
    pregenerator: MockupPreGenerator
    compositor:   PsdCompositor
    extractor:    TemplateExtractor
    monitor:      RenderMonitor

    @classmethod
    def from_config(cls, cfg: AppConfig, tool: Optional[MagickTool] = None) -> "MockupService":
        cfg.validate()
        paths = cfg.paths

        templates = TemplateManager(paths.templates_dir)
        cache = MockupCache(paths.cache_dir, enabled=cfg.cache.enabled, suffix=cfg.cache.suffix)
        generator = MaskBasedGenerator(templates, cache, cfg.render)
        monitor = RenderMonitor()
        pregenerator = MockupPreGenerator(
            templates, generator, cache,
            batch_config=cfg.batch,
            render_config=cfg.render,
            monitor=monitor,
        )
        compositor = PsdCompositor(
            cfg.psd,
            psd_dir=paths.psd_dir,
            temp_root=paths.temp_dir,
            max_workers=cfg.batch.max_workers,
            tool=tool,
        )
        log.debug("Service wired (templates=%s, cache=%s)", paths.templates_dir, paths.cache_dir)
        return cls(
            cfg=cfg,
            templates=templates,
            cache=cache,
            generator=generator,
            pregenerator=pregenerator,
            compositor=compositor,
            extractor=TemplateExtractor(templates),
            monitor=monitor,
        )
