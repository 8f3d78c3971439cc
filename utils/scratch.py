"""Per-request scratch directories."""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from utils.log_config import get_logger

log = get_logger(__name__)


@contextmanager
def scratch_dir(root: Optional[Path] = None, prefix: str = "mockup-") -> Iterator[Path]:
    """
    Yield a fresh directory that is removed, with everything in it,
    when the block exits — on success, early return or exception.
    """
    if root is not None:
        root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(root) if root else None))
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        log.debug("Removed scratch dir %s", path.name)
