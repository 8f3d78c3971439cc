"""
Filesystem content-addressed cache for rendered mockups.
Entries are ``<key>.png`` files in one flat directory; the key is
derived from the inputs only, so the cache is pure memoisation.
Thread-safe: writes land through a temp file + ``os.replace``.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

from utils.concurrency import AtomicCounter
from utils.log_config import get_logger

log = get_logger(__name__)


class MockupCache:
    """
    Best-effort byte cache.

    Misses never raise and write failures are logged and absorbed: a
    generation that already succeeded must not fail because the disk
    did.  A disabled cache always misses and never writes.
    """

    def __init__(self, cache_dir: Path, enabled: bool = True, suffix: str = ".png") -> None:
        self._dir = Path(cache_dir)
        self._enabled = enabled
        self._suffix = suffix
        self.hits = AtomicCounter()
        self.misses = AtomicCounter()
        self.write_failures = AtomicCounter()
        if self._enabled:
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                log.warning("Cache dir unavailable (%s): %s", self._dir, exc)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def directory(self) -> Path:
        return self._dir

    # ── key helpers ─────────────────────────────────────────
    @staticmethod
    def generate_key(template_id: str, design_hash: str, config_hash: Optional[str] = None) -> str:
        parts = [template_id, design_hash]
        if config_hash:
            parts.append(config_hash)
        return hashlib.md5(":".join(parts).encode("utf-8")).hexdigest()

    @staticmethod
    def hash_buffer(buffer: bytes) -> str:
        return hashlib.md5(buffer).hexdigest()

    @staticmethod
    def hash_object(obj: Any) -> str:
        """Hash of the canonical JSON form; key order never changes it."""
        canonical = json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.md5(canonical.encode("utf-8")).hexdigest()

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}{self._suffix}"

    # ── public API ──────────────────────────────────────────
    def get(self, key: str) -> Optional[bytes]:
        """Return cached bytes or None."""
        if not self._enabled:
            return None
        try:
            data = self._path(key).read_bytes()
        except FileNotFoundError:
            self.misses.increment()
            return None
        except OSError as exc:
            log.warning("Cache read error for %s: %s", key[:12], exc)
            self.misses.increment()
            return None
        self.hits.increment()
        log.debug("Cache HIT %s (%d bytes)", key[:12], len(data))
        return data

    def set(self, key: str, buffer: bytes) -> bool:
        """Persist *buffer*; returns False (after logging) on failure."""
        if not self._enabled:
            return False
        tmp_name = None
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self._dir), prefix=".tmp-", suffix=self._suffix)
            with os.fdopen(fd, "wb") as fh:
                fh.write(buffer)
            os.replace(tmp_name, self._path(key))
            tmp_name = None
            log.debug("Cache PUT %s (%d bytes)", key[:12], len(buffer))
            return True
        except OSError as exc:
            self.write_failures.increment()
            log.warning("Cache write error for %s: %s", key[:12], exc)
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def has(self, key: str) -> bool:
        if not self._enabled:
            return False
        return self._path(key).is_file()

    def delete(self, key: str) -> bool:
        try:
            self._path(key).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            log.warning("Cache delete error for %s: %s", key[:12], exc)
            return False

    def _entries(self):
        if not self._dir.is_dir():
            return []
        return [
            p for p in self._dir.iterdir()
            if p.is_file() and p.suffix == self._suffix and not p.name.startswith(".tmp-")
        ]

    def clear(self) -> int:
        """Remove every entry; returns the count removed."""
        removed = 0
        for path in self._entries():
            try:
                path.unlink()
                removed += 1
            except OSError as exc:
                log.warning("Cache clear could not remove %s: %s", path.name, exc)
        log.info("Cache cleared (%d entries)", removed)
        return removed

    def stats(self) -> Dict[str, Any]:
        count = 0
        total_size = 0
        oldest: Optional[float] = None
        newest: Optional[float] = None
        for path in self._entries():
            try:
                st = path.stat()
            except OSError:
                continue
            count += 1
            total_size += st.st_size
            oldest = st.st_mtime if oldest is None else min(oldest, st.st_mtime)
            newest = st.st_mtime if newest is None else max(newest, st.st_mtime)
        return {
            "count":          count,
            "total_size":     total_size,
            "oldest_file":    oldest,
            "newest_file":    newest,
            "hits":           self.hits.value,
            "misses":         self.misses.value,
            "write_failures": self.write_failures.value,
        }

    def cleanup(self, max_age: float = 7 * 24 * 60 * 60) -> int:
        """Delete entries whose mtime is older than *max_age* seconds."""
        cutoff = time.time() - max_age
        removed = 0
        for path in self._entries():
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as exc:
                log.warning("Cache cleanup skipped %s: %s", path.name, exc)
        if removed:
            log.info("Cache cleanup removed %d stale entries", removed)
        return removed
