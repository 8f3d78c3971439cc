"""
Typer callback validators.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from cli.console import console
from config.settings import BLEND_MODES, FIT_MODES, OUTPUT_FORMATS
from config.templates import ORIENTATIONS


def validate_image(path: Path) -> Path:
    """Validate that the design file exists and is not empty."""
    if not path.exists():
        console.print(f"[error]File not found: {path}[/]")
        raise typer.BadParameter(f"File not found: {path}")
    if path.stat().st_size == 0:
        raise typer.BadParameter(f"Empty file: {path}")
    return path


def validate_workers(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if value < 1:
        raise typer.BadParameter("Workers must be >= 1")
    if value > 32:
        console.print("[warning]Warning: >32 workers will mostly contend for CPU[/]")
    return value


def validate_format(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.lower()
    if value == "jpg":
        value = "jpeg"
    if value not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"Unknown format: {value}. Valid: {', '.join(OUTPUT_FORMATS)}")
    return value


def validate_blend_mode(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in BLEND_MODES:
        raise typer.BadParameter(f"Unknown blend mode: {value}. Valid: {', '.join(BLEND_MODES)}")
    return value


def validate_fit(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in FIT_MODES:
        raise typer.BadParameter(f"Unknown fit mode: {value}. Valid: {', '.join(FIT_MODES)}")
    return value


def validate_orientation(value: str) -> str:
    if value not in ORIENTATIONS:
        raise typer.BadParameter(f"Unknown orientation: {value}. Valid: {', '.join(ORIENTATIONS)}")
    return value


def validate_fraction(value: float) -> float:
    if not 0.0 <= value <= 1.0:
        raise typer.BadParameter("Focal point must be within 0-1")
    return value
