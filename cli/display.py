"""
Rich display components — banners, tables, progress, panels.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from rich import box
from rich.align import Align
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from cli.console import console


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  BANNER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

BANNER = r"""
  __  __            _
 |  \/  | ___   ___| | ___   _ _ __  ___
 | |\/| |/ _ \ / __| |/ / | | | '_ \/ __|
 | |  | | (_) | (__|   <| |_| | |_) \__ \
 |_|  |_|\___/ \___|_|\_\\__,_| .__/|___/
                              |_|
"""


def show_banner() -> None:
    """Display the startup banner."""
    panel = Panel(
        Align.center(Text(BANNER, style="bold cyan")),
        border_style="bright_blue",
        padding=(0, 2),
    )
    console.print(panel)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CONFIG TABLE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_config_table(config: Dict[str, Any]) -> None:
    """Display configuration as a rich table."""
    table = Table(
        title="⚙️  Configuration",
        box=box.ROUNDED,
        border_style="bright_blue",
        show_header=True,
        header_style="bold white on blue",
        padding=(0, 1),
    )
    table.add_column("Setting", style="stat_key", min_width=20)
    table.add_column("Value", style="stat_val", min_width=30)

    for key, value in config.items():
        if isinstance(value, bool):
            val_str = "✅ Yes" if value else "❌ No"
            style = "success" if value else "muted"
        elif isinstance(value, (list, tuple)):
            val_str = ", ".join(str(v) for v in value)
            style = "template"
        elif isinstance(value, (int, float)):
            val_str = str(value)
            style = "highlight"
        else:
            val_str = str(value)
            style = "stat_val"

        table.add_row(key, Text(val_str, style=style))

    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  TEMPLATES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_templates(templates: List[Any]) -> None:
    table = Table(
        title=f"🧩 Templates ({len(templates)})",
        box=box.SIMPLE_HEAVY,
        border_style="bright_blue",
    )
    table.add_column("ID", style="template")
    table.add_column("Product")
    table.add_column("Category", style="category")
    table.add_column("Color")
    table.add_column("Angle")
    table.add_column("Layers", style="muted")

    for tpl in templates:
        layers = [
            name for name, path in tpl.asset_paths().items()
            if path and name != "base"
        ]
        table.add_row(
            tpl.id,
            tpl.product_type,
            tpl.resolved_category,
            tpl.color or "—",
            tpl.angle,
            ", ".join(layers) or "base only",
        )

    console.print(table)
    console.print()


def show_template_stats(stats: Dict[str, Any]) -> None:
    tree = Tree(f"📚 {stats.get('total_templates', 0)} template(s)", style="bold")
    for group in ("by_category", "by_product_type", "by_angle", "by_color"):
        counts = stats.get(group) or {}
        branch = tree.add(group.replace("_", " "))
        for name, count in sorted(counts.items()):
            branch.add(f"{name}: {count}")
    console.print(Panel(tree, border_style="cyan"))
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PROGRESS BAR
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def create_progress() -> Progress:
    """Create a rich progress bar for batch rendering."""
    return Progress(
        SpinnerColumn("dots", style="progress"),
        TextColumn("[progress]{task.description}[/]"),
        BarColumn(bar_width=40, complete_style="green", finished_style="bright_green"),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TextColumn("│"),
        TimeElapsedColumn(),
        console=console,
        expand=False,
    )


def format_template_status(template_id: str, ok: bool) -> str:
    icon = "✅" if ok else "❌"
    return f"{icon} {template_id[:40]}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  BATCH REPORT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_batch_report(report: Any, output_dir: Optional[str] = None) -> None:
    table = Table(
        title="📊 Batch Report",
        box=box.DOUBLE_EDGE,
        border_style="bright_green",
        show_header=True,
        header_style="bold white on green",
    )
    table.add_column("Template", style="template", min_width=22)
    table.add_column("Category", style="category")
    table.add_column("Size", justify="right", style="stat_val")
    table.add_column("Time", justify="right")
    table.add_column("", min_width=8)

    for m in report.mockups:
        table.add_row(
            m.template_id,
            m.category,
            f"{len(m.buffer) / 1024:.0f} KB",
            f"{m.render_time:.0f}ms",
            "[cached]💾 cached[/]" if m.cached else "[success]rendered[/]",
        )
    for f in report.failures:
        table.add_row(
            f.template_id, "", "", "",
            f"[warning]retry[/]" if f.retryable else f"[error]{f.reason[:40]}[/]",
        )

    table.add_section()
    rate = report.succeeded / report.requested * 100 if report.requested else 0
    table.add_row("✅ Succeeded", "", str(report.succeeded), "", f"[green]{rate:.1f}%[/]")
    table.add_row("❌ Failed", "", str(len(report.failures)), "", "")
    table.add_row("⏱️  Elapsed", "", f"{report.elapsed / 1000:.1f}s", "", "")

    console.print()
    console.print(table)
    if output_dir:
        console.print(f"[muted]Output: {output_dir}[/]")
    console.print()


def show_psd_report(batch: Any, output_dir: Optional[str] = None) -> None:
    table = Table(title="🖼️  PSD Previews", box=box.ROUNDED, border_style="cyan")
    table.add_column("Template", style="template")
    table.add_column("Orientation")
    table.add_column("Method")
    table.add_column("Time", justify="right")

    for p in batch.mockups:
        method = f"[warning]{p.method}[/]" if p.fallback else p.method
        table.add_row(p.name, p.orientation, method, f"{p.render_time:.0f}ms")
    for err in batch.errors:
        table.add_row(err["template"], "", "[error]failed[/]", err["error"][:50])

    console.print(table)
    console.print(f"[muted]{len(batch.mockups)} ok, {len(batch.errors)} failed in {batch.total_time:.0f}ms[/]")
    if output_dir:
        console.print(f"[muted]Output: {output_dir}[/]")
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CACHE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _ts(value: Optional[float]) -> str:
    if value is None:
        return "—"
    return datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M")


def show_cache_stats(stats: Dict[str, Any], enabled: bool = True) -> None:
    table = Table(title="💾 Mockup Cache", box=box.SIMPLE_HEAVY, border_style="bright_blue")
    table.add_column("Metric", style="stat_key")
    table.add_column("Value", style="stat_val", justify="right")

    table.add_row("Enabled", "✅ Yes" if enabled else "❌ No")
    table.add_row("Entries", str(stats.get("count", 0)))
    table.add_row("Total size", f"{stats.get('total_size', 0) / 1024 / 1024:.2f} MB")
    table.add_row("Oldest", _ts(stats.get("oldest_file")))
    table.add_row("Newest", _ts(stats.get("newest_file")))

    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  EXTRACTION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_extraction(report: Any) -> None:
    area = report.print_area
    tree = Tree(f"📦 {report.template.id}", style="bold")
    tree.add(f"Base image: {report.width}x{report.height}")
    tree.add(
        f"Print area: x={area.x:.3f} y={area.y:.3f} "
        f"({area.width * 100:.1f}% × {area.height * 100:.1f}%)"
    )
    layers = tree.add("Layers found")
    for role, name in sorted(report.found_layers.items()):
        layers.add(f"{role.upper()}: \"{name}\"")
    if report.synthesized_displacement:
        tree.add("[warning]displacement.png synthesised from base[/]")
    tree.add(f"Files: {', '.join(report.written)}")
    tree.add(f"[muted]{report.output_dir}[/]")

    console.print(Panel(tree, border_style="green", title="Extracted"))
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  GOODBYE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_saved(path: str, size: int) -> None:
    panel = Panel(
        Align.center(Text(f"✅ Saved {size / 1024:.0f} KB\n{path}", style="success")),
        border_style="green",
        title="Complete",
    )
    console.print(panel)
