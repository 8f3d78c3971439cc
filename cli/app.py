"""
Typer CLI application with Rich integration.

Commands:
    generate          — Mask-based mockup for one template
    preview-template  — Print-area debug overlay
    batch             — Pre-generate every matching template
    psd-preview       — Layered PSD previews
    extract           — Build a template folder from a layered file
    templates         — List / rescan templates
    cache             — Cache management (stats, clear, cleanup)
    config            — Show current configuration
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.prompt import Confirm

from cli.callbacks import (
    validate_blend_mode,
    validate_fit,
    validate_format,
    validate_fraction,
    validate_image,
    validate_orientation,
    validate_workers,
)
from cli.console import console
from cli.display import (
    create_progress,
    format_template_status,
    show_banner,
    show_batch_report,
    show_cache_stats,
    show_config_table,
    show_extraction,
    show_psd_report,
    show_saved,
    show_template_stats,
    show_templates,
)
from utils.exceptions import MockupError

app = typer.Typer(
    name="mockups",
    help="👕 Mockup Engine — print-on-demand mockup compositing and caching",
    rich_markup_mode="rich",
    add_completion=True,
    no_args_is_help=False,
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ENUMS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Category(str, Enum):
    all      = "all"
    wall_art = "wall-art"
    apparel  = "apparel"
    drinkware = "drinkware"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  HELPERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _service(verbose: bool = False, quiet: bool = False, **overrides):
    """Set up logging and wire the service from the (overridden) config."""
    from config import settings
    from core.service import MockupService
    from utils.log_config import setup_root

    cfg = settings.cfg
    if overrides.get("workers"):
        cfg.batch = replace(cfg.batch, max_workers=overrides["workers"])
    if overrides.get("no_cache"):
        cfg.cache = replace(cfg.cache, enabled=False)
    cfg.verbose = verbose or cfg.verbose

    cfg.paths.ensure()
    setup_root(cfg.paths.log_file, verbose=cfg.verbose, quiet=quiet)
    return MockupService.from_config(cfg)


def _fail(exc: Exception) -> None:
    console.print(f"[error]{exc}[/]")
    raise typer.Exit(code=1)


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _ext(fmt: Optional[str], svc) -> str:
    fmt = fmt or svc.cfg.render.output_format
    return "jpg" if fmt == "jpeg" else fmt


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  GENERATE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def generate(
    template_id: str = typer.Argument(..., help="Template id from the library"),
    design: Path = typer.Argument(..., help="Design image", callback=validate_image, dir_okay=False),

    # ── Look ──
    brightness: Optional[float] = typer.Option(None, "--brightness", help="Brightness factor (1.0 = unchanged)"),
    contrast: Optional[float] = typer.Option(None, "--contrast", help="Contrast factor"),
    saturation: Optional[float] = typer.Option(None, "--saturation", help="Saturation factor"),
    blend_mode: Optional[str] = typer.Option(
        None, "--blend", "-b", help="multiply | overlay | normal", callback=validate_blend_mode,
    ),
    smoothing: Optional[float] = typer.Option(None, "--smoothing", help="Edge feather radius (px)", min=0),
    intensity: Optional[float] = typer.Option(None, "--intensity", help="Displacement intensity"),
    texture: Optional[bool] = typer.Option(None, "--texture/--no-texture", help="Fabric texture overlay"),
    texture_opacity: Optional[float] = typer.Option(None, "--texture-opacity", min=0.0, max=1.0),

    # ── Output ──
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="png | jpeg | webp", callback=validate_format),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", min=1, max=100),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the mockup cache"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """
    🎨 [bold]Generate a mockup[/bold] from one mask-based template.

    [dim]Examples:[/dim]
        mockups generate poster-front art.png
        mockups generate tshirt-black-front art.png --texture --format jpeg -q 85
    """
    from core.models import DisplacementConfig

    svc = _service(verbose=verbose, no_cache=no_cache)
    config = DisplacementConfig(
        intensity=intensity,
        brightness=brightness,
        contrast=contrast,
        saturation=saturation,
        blend_mode=blend_mode,
        smoothing=smoothing,
        texture_overlay=texture,
        texture_opacity=texture_opacity,
    )

    try:
        with console.status(f"Rendering {template_id}...", spinner="dots"):
            result = svc.generator.render(
                template_id,
                design.read_bytes(),
                config=config,
                output_format=fmt,
                output_quality=quality,
            )
    except MockupError as exc:
        _fail(exc)

    target = output or svc.cfg.paths.output_dir / f"{template_id}.{_ext(fmt, svc)}"
    _write(target, result.buffer)
    if result.cached:
        console.print("[cached]💾 Served from cache[/]")
    show_saved(str(target), len(result.buffer))


@app.command()
def preview_template(
    template_id: str = typer.Argument(..., help="Template id from the library"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output PNG"),
) -> None:
    """
    📐 Render the template's base with its print area highlighted.
    """
    svc = _service()
    try:
        data = svc.generator.preview_template(template_id)
    except MockupError as exc:
        _fail(exc)
    target = output or svc.cfg.paths.output_dir / f"{template_id}-print-area.png"
    _write(target, data)
    show_saved(str(target), len(data))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  BATCH
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def batch(
    design: Path = typer.Argument(..., help="Design image", callback=validate_image, dir_okay=False),
    category: Category = typer.Option(Category.all, "--category", "-c", help="Template category"),
    product_type: Optional[List[str]] = typer.Option(
        None, "--product-type", "-p", help="Restrict to product type (repeatable)",
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", help="Concurrent renders", callback=validate_workers,
    ),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", callback=validate_format),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Write mockups here"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    quiet: bool = typer.Option(False, "--quiet", help="Errors only"),
) -> None:
    """
    📦 [bold]Pre-generate[/bold] a design across every matching template.

    [dim]Examples:[/dim]
        mockups batch art.png
        mockups batch art.png --category apparel -w 8 -o out/
    """
    svc = _service(verbose=verbose, quiet=quiet, workers=workers)
    if not quiet:
        show_banner()

    selected = svc.pregenerator.select_templates(category.value, product_type)
    if not selected:
        console.print("[warning]No templates match those filters[/]")
        raise typer.Exit()

    progress = create_progress()
    task = progress.add_task("Rendering mockups...", total=len(selected))

    def on_progress(template_id: str, ok: bool) -> None:
        progress.update(task, advance=1, description=format_template_status(template_id, ok))

    try:
        with progress:
            report = svc.pregenerator.run(
                design.read_bytes(),
                category=category.value,
                product_filters=product_type,
                output_format=fmt,
                on_progress=on_progress,
            )
    except MockupError as exc:
        _fail(exc)

    if output_dir:
        for m in report.mockups:
            _write(output_dir / f"{m.template_id}.{_ext(fmt, svc)}", m.buffer)

    if not quiet:
        show_batch_report(report, str(output_dir) if output_dir else None)
        svc.monitor.log_report()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PSD
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def psd_preview(
    design: Path = typer.Argument(..., help="Design image", callback=validate_image, dir_okay=False),
    orientation: str = typer.Option("both", "--orientation", help="portrait | landscape | square | both",
                                    callback=validate_orientation),
    fit: Optional[str] = typer.Option(None, "--fit", help="cover | inside", callback=validate_fit),
    focal_x: float = typer.Option(0.5, "--focal-x", callback=validate_fraction),
    focal_y: float = typer.Option(0.5, "--focal-y", callback=validate_fraction),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """
    🖼️  Render [bold]PSD layered previews[/bold] for a design.
    """
    svc = _service(verbose=verbose)
    if not svc.compositor.tool_available:
        console.print("[warning]ImageMagick not found — using flattened fallback renders[/]")

    try:
        with console.status("Compositing PSD templates...", spinner="dots"):
            result = svc.compositor.render_all(
                design.read_bytes(),
                orientation=orientation,
                fit_mode=fit,
                focal=(focal_x, focal_y),
            )
    except MockupError as exc:
        _fail(exc)

    target = output_dir or svc.cfg.paths.output_dir / "psd"
    for preview in result.mockups:
        slug = preview.name.lower().replace(" ", "-")
        _write(target / f"{slug}.jpg", preview.buffer)
    show_psd_report(result, str(target))
    if result.errors and not result.mockups:
        raise typer.Exit(code=1)


@app.command()
def extract(
    source: Path = typer.Argument(..., help="Layered PSD file", exists=True, dir_okay=False),
    template_id: str = typer.Argument(..., help="New template id (folder name)"),
    product_type: str = typer.Option("tshirt", "--product-type", "-p"),
    color: str = typer.Option("white", "--color"),
    angle: str = typer.Option("front", "--angle"),
    category: Optional[str] = typer.Option(None, "--category"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """
    🧰 [bold]Extract[/bold] a mask-based template from a layered file.

    Looks for layers named DESIGN, DISPLACEMENT, MASK, SHADOW,
    HIGHLIGHT and BASE.
    """
    svc = _service(verbose=verbose)
    if (svc.cfg.paths.templates_dir / template_id).exists():
        if not Confirm.ask(f"[warning]Template '{template_id}' exists. Overwrite?[/]", default=False):
            console.print("[muted]Cancelled[/]")
            raise typer.Exit()

    try:
        with console.status(f"Extracting {source.name}...", spinner="dots"):
            report = svc.extractor.extract_file(
                source, template_id,
                product_type=product_type, color=color, angle=angle, category=category,
            )
    except MockupError as exc:
        _fail(exc)
    show_extraction(report)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  TEMPLATES / CACHE / CONFIG
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def templates(
    product_type: Optional[str] = typer.Option(None, "--product-type", "-p"),
    color: Optional[str] = typer.Option(None, "--color"),
    angle: Optional[str] = typer.Option(None, "--angle"),
    rescan: bool = typer.Option(False, "--rescan", help="Rebuild library.json from folders"),
    stats: bool = typer.Option(False, "--stats", help="Show counts"),
) -> None:
    """
    🧩 List templates in the library.
    """
    svc = _service()
    if rescan:
        svc.templates.library_path.unlink(missing_ok=True)
        svc.templates.reload_library()
        console.print("[success]Library rebuilt from template folders[/]")

    show_templates(svc.templates.find_templates(product_type, color, angle))
    if stats:
        show_template_stats(svc.templates.get_stats())


@app.command("cache")
def cache_cmd(
    clear: bool = typer.Option(False, "--clear", help="Delete every cached mockup"),
    cleanup: Optional[float] = typer.Option(None, "--cleanup", help="Delete entries older than DAYS"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    💾 Manage the mockup cache.
    """
    svc = _service()

    if cleanup is not None:
        removed = svc.cache.cleanup(cleanup * 24 * 60 * 60)
        console.print(f"[success]Removed {removed} stale entr{'y' if removed == 1 else 'ies'}[/]")

    if clear:
        if yes or Confirm.ask("[warning]Clear the entire cache?[/]", default=False):
            removed = svc.cache.clear()
            console.print(f"[success]Cache cleared ({removed} entries)[/]")
        else:
            console.print("[muted]Cancelled[/]")

    show_cache_stats(svc.cache.stats(), enabled=svc.cache.enabled)


@app.command()
def config() -> None:
    """
    ⚙️  Show current configuration from settings.py.
    """
    from config.settings import cfg

    show_banner()
    show_config_table({
        "Templates Dir":    str(cfg.paths.templates_dir),
        "Cache Dir":        str(cfg.paths.cache_dir),
        "PSD Dir":          str(cfg.paths.psd_dir),
        "Output Dir":       str(cfg.paths.output_dir),
        "Cache":            cfg.cache.enabled,
        "Cache Max Age":    f"{cfg.cache.max_age / 86400:.0f} days",
        "Workers":          cfg.batch.max_workers,
        "Batch Timeout":    f"{cfg.batch.timeout:.0f}s",
        "Apparel Colors":   cfg.batch.apparel_colors,
        "Blend Mode":       cfg.render.blend_mode,
        "Brightness":       cfg.render.brightness,
        "Texture Opacity":  cfg.render.texture_opacity,
        "Output Format":    cfg.render.output_format,
        "Output Quality":   cfg.render.output_quality,
        "PSD Width":        cfg.psd.output_width,
        "PSD Fit":          cfg.psd.default_fit,
        "ImageMagick":      cfg.psd.magick_commands,
        "Verbose":          cfg.verbose,
    })


@app.callback(invoke_without_command=True)
def default(ctx: typer.Context) -> None:
    """
    👕 Mockup Engine — mask-based and PSD mockup rendering.

    Run [bold]mockups --help[/bold] to see all commands.
    """
    if ctx.invoked_subcommand is None:
        show_banner()
        console.print("Available commands:\n")
        console.print("  [bold cyan]generate[/]          Render one template")
        console.print("  [bold cyan]preview-template[/]  Show a template's print area")
        console.print("  [bold cyan]batch[/]             Pre-generate all matching templates")
        console.print("  [bold cyan]psd-preview[/]       Layered PSD previews")
        console.print("  [bold cyan]extract[/]           Build a template from a PSD")
        console.print("  [bold cyan]templates[/]         List templates")
        console.print("  [bold cyan]cache[/]             Manage the mockup cache")
        console.print("  [bold cyan]config[/]            Show current configuration")
        console.print()
        console.print("[muted]Run 'python main.py generate --help' for detailed options[/]")
