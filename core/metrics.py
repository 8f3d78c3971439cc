"""
Per-template render tracking.
Collects render time, success rate and cache answers.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict

from utils.log_config import get_logger

log = get_logger(__name__)


@dataclass
class TemplateMetrics:
    total_calls:  int   = 0
    successes:    int   = 0
    failures:     int   = 0
    cached:       int   = 0
    total_render: float = 0.0     # ms, successful renders only
    last_call:    float = 0.0
    last_error:   str   = ""

    @property
    def success_rate(self) -> float:
        return self.successes / max(self.total_calls, 1)

    @property
    def avg_render(self) -> float:
        return self.total_render / max(self.successes, 1)


class RenderMonitor:
    """Thread-safe render tracker."""

    def __init__(self) -> None:
        self._metrics: Dict[str, TemplateMetrics] = defaultdict(TemplateMetrics)
        self._lock = threading.Lock()

    def record(
        self,
        template_id: str,
        success: bool,
        render_time: float = 0.0,
        cached: bool = False,
        error: str = "",
    ) -> None:
        with self._lock:
            m = self._metrics[template_id]
            m.total_calls += 1
            m.last_call = time.monotonic()
            if success:
                m.successes += 1
                m.total_render += render_time
                if cached:
                    m.cached += 1
            else:
                m.failures += 1
                m.last_error = error

    def get_report(self) -> Dict[str, Dict]:
        with self._lock:
            report = {}
            for name, m in self._metrics.items():
                report[name] = {
                    "calls":        m.total_calls,
                    "success_rate": f"{m.success_rate:.1%}",
                    "avg_render":   f"{m.avg_render:.0f}ms",
                    "cached":       m.cached,
                    "failures":     m.failures,
                    "last_error":   m.last_error[:50] if m.last_error else "",
                }
            return report

    def log_report(self) -> None:
        report = self.get_report()
        log.info("─── Render Health ───")
        for name, data in report.items():
            log.info(
                "  %-24s │ calls=%-4d │ success=%-6s │ avg=%-7s │ cached=%-4d │ failures=%d",
                name,
                data["calls"],
                data["success_rate"],
                data["avg_render"],
                data["cached"],
                data["failures"],
            )
        log.info("─" * 60)
