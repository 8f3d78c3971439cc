"""
All configuration — flags, knobs, feature toggles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  FLAGS: toggle without touching other files
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

VERBOSE_LOGGING         = False
ENABLE_MOCKUP_CACHE     = True
CACHE_MAX_AGE_DAYS      = 7
BATCH_MAX_WORKERS       = 4
BATCH_TIMEOUT_SECONDS   = 300

OUTPUT_FORMATS = ("png", "jpeg", "webp")
BLEND_MODES    = ("multiply", "overlay", "normal")
FIT_MODES      = ("cover", "inside")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DATACLASS CONFIGS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class PathConfig:
    """Every filesystem path the engine touches."""

    root:          Path = DATA_DIR
    templates_dir: Path = DATA_DIR / "templates"
    cache_dir:     Path = DATA_DIR / "cache" / "mockups"
    psd_dir:       Path = DATA_DIR / "psd"
    output_dir:    Path = DATA_DIR / "output"
    temp_dir:      Path = DATA_DIR / "temp"
    log_file:      Path = DATA_DIR / "logs" / "mockups.log"

    def ensure(self) -> None:
        for d in (
            self.templates_dir, self.cache_dir, self.psd_dir,
            self.output_dir, self.temp_dir, self.log_file.parent,
        ):
            d.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class RenderConfig:
    """
    System defaults merged under every per-call DisplacementConfig.

    brightness < 1 simulates ink soaking into fabric; the texture
    overlay is a lightened, low-opacity copy of the displacement map.
    """

    brightness:      float = 0.92
    contrast:        float = 1.0
    saturation:      float = 1.0
    blend_mode:      str   = "multiply"
    texture_opacity: float = 0.15
    texture_lighten: float = 1.2
    output_format:   str   = "png"
    output_quality:  int   = 90
    preview_fill:    Tuple[int, int, int, int] = (255, 0, 0, 77)


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool  = ENABLE_MOCKUP_CACHE
    max_age: float = CACHE_MAX_AGE_DAYS * 24 * 60 * 60
    suffix:  str   = ".png"


@dataclass(frozen=True)
class BatchConfig:
    max_workers:    int             = BATCH_MAX_WORKERS
    timeout:        float           = BATCH_TIMEOUT_SECONDS
    apparel_colors: Tuple[str, ...] = ("black", "white")
    apparel_angle:  str             = "front"


@dataclass(frozen=True)
class PsdConfig:
    output_width:    int             = 1600
    jpeg_quality:    int             = 92
    fallback_margin: float           = 0.15
    magick_commands: Tuple[str, ...] = ("magick", "convert")
    command_timeout: float           = 120.0
    default_fit:     str             = "cover"


@dataclass
class AppConfig:
    paths:   PathConfig   = field(default_factory=PathConfig)
    render:  RenderConfig = field(default_factory=RenderConfig)
    cache:   CacheConfig  = field(default_factory=CacheConfig)
    batch:   BatchConfig  = field(default_factory=BatchConfig)
    psd:     PsdConfig    = field(default_factory=PsdConfig)

    verbose: bool         = VERBOSE_LOGGING

    def validate(self) -> None:
        if self.batch.max_workers < 1:
            raise ConfigurationError("max_workers must be >= 1")
        if self.batch.timeout <= 0:
            raise ConfigurationError("batch timeout must be positive")
        if self.render.output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(f"Unknown output format: {self.render.output_format}")
        if not 1 <= self.render.output_quality <= 100:
            raise ConfigurationError("output_quality must be within 1-100")
        if self.render.blend_mode not in BLEND_MODES:
            raise ConfigurationError(f"Unknown blend mode: {self.render.blend_mode}")
        if not 0.0 <= self.render.texture_opacity <= 1.0:
            raise ConfigurationError("texture_opacity must be within 0-1")
        if self.psd.default_fit not in FIT_MODES:
            raise ConfigurationError(f"Unknown fit mode: {self.psd.default_fit}")
        if not 0.0 <= self.psd.fallback_margin < 0.5:
            raise ConfigurationError("fallback_margin must be within [0, 0.5)")


# ── CLI default ─────────────────────────────────────────────
cfg = AppConfig()
