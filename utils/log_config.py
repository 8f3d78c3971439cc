"""
Centralised logging setup.
Every module does:  ``from utils.log_config import get_logger``
"""

from __future__ import annotations

import logging
import sys
import warnings
from pathlib import Path
from typing import Optional

_CONFIGURED = False

NOISY_LOGGERS = [
    # Image
    "PIL", "PIL.Image", "PIL.PngImagePlugin", "PIL.JpegImagePlugin",
    "PIL.PsdImagePlugin", "PIL.WebPImagePlugin",
    # Layered files
    "psd_tools", "psd_tools.api", "psd_tools.composite", "psd_tools.psd",
    # Other
    "asyncio", "concurrent", "filelock",
]


def setup_root(log_file: Path, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging once at startup."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    fmt = "%(asctime)s │ %(levelname)-7s │ %(threadName)-14s │ %(name)-22s │ %(message)s"
    datefmt = "%H:%M:%S"

    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt=datefmt,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(log_file), encoding="utf-8"),
        ],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)
        logging.getLogger(name).propagate = False

    # psd-tools warns on every unsupported adjustment layer
    warnings.filterwarnings("ignore", module="psd_tools")
    warnings.filterwarnings("ignore", message=".*Palette images.*")

    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a child logger.  Typical usage: ``log = get_logger(__name__)``."""
    return logging.getLogger(name or "mockups")
