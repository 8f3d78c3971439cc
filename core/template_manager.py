"""
Template catalogue: ``library.json`` index over per-template folders.

Layout::

    templates/
        library.json
        <id>/metadata.json
        <id>/base.png
        <id>/displacement.png   (optional)
        ...

A missing or corrupt index is rebuilt by scanning the folders.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.models import MockupTemplate, TemplateLibrary, utc_now_iso
from utils.exceptions import TemplateNotFoundError
from utils.log_config import get_logger
from utils.retry import retry

log = get_logger(__name__)

LIBRARY_FILE = "library.json"
METADATA_FILE = "metadata.json"


class TemplateManager:
    """
    Loads, scans and edits the template library.

    Thread-safe within one process: add/remove hold a lock across
    read-modify-write and the index is replaced atomically on disk.
    """

    def __init__(self, templates_dir: Path) -> None:
        self._dir = Path(templates_dir)
        self._library: Optional[TemplateLibrary] = None
        self._lock = threading.RLock()

    @property
    def templates_dir(self) -> Path:
        return self._dir

    @property
    def library_path(self) -> Path:
        return self._dir / LIBRARY_FILE

    def resolve(self, relative_path: str) -> Path:
        """Absolute path of a library-relative asset path."""
        return self._dir / relative_path

    # ── loading ─────────────────────────────────────────────
    def load_library(self, force_reload: bool = False) -> TemplateLibrary:
        with self._lock:
            if self._library is not None and not force_reload:
                return self._library

            library = self._read_index()
            if library is None:
                library = self._scan_directory()
                self._write_index(library)
            self._library = library
            return library

    def reload_library(self) -> TemplateLibrary:
        return self.load_library(force_reload=True)

    def clear_cache(self) -> None:
        with self._lock:
            self._library = None

    def _read_index(self) -> Optional[TemplateLibrary]:
        path = self.library_path
        if not path.is_file():
            log.info("No %s in %s — scanning folders", LIBRARY_FILE, self._dir)
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            library = TemplateLibrary.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            log.warning("Unreadable %s (%s) — rebuilding from folders", LIBRARY_FILE, exc)
            return None
        log.debug("Loaded %d templates from index", len(library.templates))
        return library

    def _scan_directory(self) -> TemplateLibrary:
        templates: List[MockupTemplate] = []
        if not self._dir.is_dir():
            log.warning("Templates directory missing: %s", self._dir)
            return TemplateLibrary(templates=templates)

        for folder in sorted(p for p in self._dir.iterdir() if p.is_dir()):
            tpl = self._load_folder(folder)
            if tpl is None:
                continue
            templates = [t for t in templates if t.id != tpl.id]
            templates.append(tpl)

        log.info("Scanned %d valid template folder(s) in %s", len(templates), self._dir)
        return TemplateLibrary(templates=templates)

    def _load_folder(self, folder: Path) -> Optional[MockupTemplate]:
        meta_path = folder / METADATA_FILE
        if not meta_path.is_file():
            log.debug("Skipping %s: no %s", folder.name, METADATA_FILE)
            return None
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
            tpl = MockupTemplate.from_dict(data).qualified(folder.name)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            log.warning("Skipping template folder %s: bad metadata (%s)", folder.name, exc)
            return None

        if not self.resolve(tpl.base_path).is_file():
            log.warning("Skipping template %s: base image missing", tpl.id)
            return None
        if tpl.displacement_path and not self.resolve(tpl.displacement_path).is_file():
            log.warning("Skipping template %s: displacement map missing", tpl.id)
            return None
        if not tpl.print_area.is_valid():
            log.warning("Template %s: print area leaves the base image, clamping", tpl.id)
        return tpl

    @retry(max_attempts=3, backoff_base=0.05, exceptions=(OSError,))
    def _write_index(self, library: TemplateLibrary) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(library.to_dict(), indent=2)
        fd, tmp = tempfile.mkstemp(dir=str(self._dir), prefix=".library-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, self.library_path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        log.debug("Wrote %s (%d templates)", LIBRARY_FILE, len(library.templates))

    # ── queries ─────────────────────────────────────────────
    def get_template(self, template_id: str) -> Optional[MockupTemplate]:
        for tpl in self.load_library().templates:
            if tpl.id == template_id:
                return tpl
        return None

    def require_template(self, template_id: str) -> MockupTemplate:
        tpl = self.get_template(template_id)
        if tpl is None:
            raise TemplateNotFoundError(template_id)
        return tpl

    def get_templates_by_product(self, product_type: str) -> List[MockupTemplate]:
        return [t for t in self.load_library().templates if t.product_type == product_type]

    def find_templates(
        self,
        product_type: Optional[str] = None,
        color: Optional[str] = None,
        angle: Optional[str] = None,
    ) -> List[MockupTemplate]:
        """Conjunctive filter; a ``None`` criterion matches everything."""
        return [
            t for t in self.load_library().templates
            if (product_type is None or t.product_type == product_type)
            and (color is None or t.color == color)
            and (angle is None or t.angle == angle)
        ]

    # ── edits ───────────────────────────────────────────────
    def add_template(self, template: MockupTemplate) -> None:
        """Insert or replace by id, then persist."""
        with self._lock:
            current = self.load_library(force_reload=True)
            templates = [t for t in current.templates if t.id != template.id]
            templates.append(template)
            library = TemplateLibrary(
                templates=templates,
                version=current.version,
                last_updated=utc_now_iso(),
            )
            self._write_index(library)
            self._library = library
        log.info("Template %s saved (%d total)", template.id, len(library.templates))

    def remove_template(self, template_id: str) -> bool:
        """Drop *template_id*; returns False when it was not present."""
        with self._lock:
            current = self.load_library(force_reload=True)
            templates = [t for t in current.templates if t.id != template_id]
            if len(templates) == len(current.templates):
                return False
            library = TemplateLibrary(
                templates=templates,
                version=current.version,
                last_updated=utc_now_iso(),
            )
            self._write_index(library)
            self._library = library
        log.info("Template %s removed", template_id)
        return True

    def get_stats(self) -> Dict[str, Any]:
        templates = self.load_library().templates
        return {
            "total_templates": len(templates),
            "by_product_type": dict(Counter(t.product_type for t in templates)),
            "by_angle":        dict(Counter(t.angle for t in templates)),
            "by_color":        dict(Counter(t.color for t in templates if t.color)),
            "by_category":     dict(Counter(t.resolved_category for t in templates)),
        }
