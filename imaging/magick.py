"""
ImageMagick wrapper used to pull individual layers out of PSD files.

Only argument lists are passed to ``subprocess`` (no shell).  A missing
binary raises :class:`ToolUnavailableError`; a non-zero exit raises
:class:`ToolExecutionError`.  The compositor treats both as "use the
flattened fallback".
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image

from utils.exceptions import ToolExecutionError, ToolUnavailableError
from utils.log_config import get_logger

log = get_logger(__name__)


class MagickTool:
    """Locates and runs ``magick`` (IM7) or ``convert`` (IM6)."""

    def __init__(self, commands: Sequence[str] = ("magick", "convert"), timeout: float = 120.0) -> None:
        self._commands = tuple(commands)
        self._timeout = timeout
        self._binary: Optional[str] = None
        self._probed = False

    def detect(self) -> Optional[str]:
        if not self._probed:
            for name in self._commands:
                found = shutil.which(name)
                if found:
                    self._binary = found
                    if name == "convert":
                        log.warning("Using legacy 'convert' (ImageMagick 6)")
                    break
            self._probed = True
            if self._binary is None:
                log.warning("ImageMagick not found (tried %s)", ", ".join(self._commands))
        return self._binary

    @property
    def available(self) -> bool:
        return self.detect() is not None

    def run(self, args: List[str]) -> None:
        binary = self.detect()
        if binary is None:
            raise ToolUnavailableError("ImageMagick is not installed")
        cmd = [binary, *args]
        log.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=self._timeout, check=False)
        except FileNotFoundError as exc:
            raise ToolUnavailableError(f"ImageMagick vanished: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ToolExecutionError(f"ImageMagick timed out after {self._timeout:.0f}s") from exc
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise ToolExecutionError(f"ImageMagick exited {proc.returncode}: {stderr[:300]}")


class MagickLayerSource:
    """
    Layer access for one PSD file, with intermediates written under
    *work_dir* (a per-render scratch directory owned by the caller).
    """

    def __init__(self, tool: MagickTool, psd_path: Path, work_dir: Path) -> None:
        self._tool = tool
        self._psd = Path(psd_path)
        self._work = Path(work_dir)
        self._seq = 0

    def _out(self, label: str) -> Path:
        self._seq += 1
        return self._work / f"{self._seq:02d}-{label}.png"

    @staticmethod
    def _extent_args(extent: Optional[Tuple[int, int]]) -> List[str]:
        if extent is None:
            return []
        return ["-gravity", "northwest", "-extent", f"{extent[0]}x{extent[1]}"]

    @staticmethod
    def _read(path: Path, mode: str) -> Image.Image:
        with Image.open(path) as img:
            img.load()
            return img.convert(mode)

    def layer(
        self,
        index: int,
        background: Optional[str] = None,
        extent: Optional[Tuple[int, int]] = None,
    ) -> Image.Image:
        """Layer *index* flattened onto *background* (``None`` = transparent)."""
        out = self._out(f"layer{index}")
        self._tool.run([
            f"{self._psd}[{index}]",
            "-background", background or "transparent",
            "-flatten",
            *self._extent_args(extent),
            str(out),
        ])
        return self._read(out, "RGBA")

    def alpha(self, index: int, extent: Optional[Tuple[int, int]] = None) -> Image.Image:
        """Alpha channel of layer *index* as an ``L`` image."""
        out = self._out(f"alpha{index}")
        self._tool.run([
            f"{self._psd}[{index}]",
            "-background", "transparent",
            "-flatten",
            *self._extent_args(extent),
            "-alpha", "extract",
            str(out),
        ])
        return self._read(out, "L")

    def flatten_without(self, index: int) -> Image.Image:
        """Whole document flattened with layer *index* removed."""
        out = self._out(f"without{index}")
        self._tool.run([
            str(self._psd),
            "-delete", str(index),
            "-flatten",
            str(out),
        ])
        return self._read(out, "RGBA")
