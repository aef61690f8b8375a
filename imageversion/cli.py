"""CLI commands for imageversion."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from PIL import Image
from rich.console import Console
from rich.table import Table

from imageversion.config import ImageVersionConfig
from imageversion.errors import ImageVersionError
from imageversion.geometry import plan_geometry
from imageversion.models import DerivativeSpec
from imageversion.service import ThumbnailService

console = Console()


def parse_size(value: str) -> tuple[int, int]:
    """Parse ``WxH`` (either side may be 0) into a size pair."""
    try:
        width, height = value.lower().split("x")
        return int(width or 0), int(height or 0)
    except ValueError:
        raise click.BadParameter(f"expected WIDTHxHEIGHT, got {value!r}")


def _size_option(ctx: click.Context, param: click.Parameter, value: str | None) -> tuple[int, int] | None:
    return None if value is None else parse_size(value)


def get_service(root: str | None, config_path: str | None) -> ThumbnailService:
    config = ImageVersionConfig.from_yaml(Path(config_path)) if config_path else ImageVersionConfig()
    if root:
        config = config.model_copy(update={"content_root": Path(root)})
    return ThumbnailService(config)


@click.group()
@click.option("--root", default=None, help="Content root that source paths are relative to")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True), help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline details")
@click.pass_context
def main(ctx: click.Context, root: str | None, config_path: str | None, verbose: bool) -> None:
    """imageversion - cached image derivatives."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj["service"] = get_service(root, config_path)


@main.command()
@click.argument("source")
@click.option("--size", "-s", default=None, callback=_size_option, help="Size as WxH, e.g. 150x75")
@click.option("--quality", "-q", default=None, type=float, help="Quality 0-100")
@click.option("--crop/--no-crop", default=None, help="Crop to fill the size")
@click.option("--letterbox", "-l", default=None, help="Letterbox colour, e.g. #ffffff")
@click.option("--force-letterbox-color", is_flag=True, help="Paint the letterbox on gif/png too")
@click.option("--sharpen/--no-sharpen", default=None, help="Sharpen jpeg derivatives")
@click.option("--deadline", default=None, type=float, help="Give up after this many seconds")
@click.pass_context
def generate(
    ctx: click.Context,
    source: str,
    size: tuple[int, int] | None,
    quality: float | None,
    crop: bool | None,
    letterbox: str | None,
    force_letterbox_color: bool,
    sharpen: bool | None,
    deadline: float | None,
) -> None:
    """Generate (or reuse) a derivative of SOURCE and print its path."""
    service: ThumbnailService = ctx.obj["service"]

    result = service.generate(
        source,
        size=size,
        quality=quality,
        crop=crop,
        letterbox=letterbox,
        force_letterbox_color=force_letterbox_color,
        sharpen=sharpen,
        deadline=deadline,
    )

    if not result.ok:
        console.print(f"[red]Error: {result.error}[/red]")
        sys.exit(1)

    status = "[dim]cached[/dim]" if result.cache_hit else "[green]generated[/green]"
    console.print(f"{result.path} {status}")


@main.command()
@click.argument("source")
@click.option("--size", "-s", default=None, callback=_size_option, help="Size as WxH")
@click.option("--all", "clear_all", is_flag=True, help="Remove the whole size directory")
@click.pass_context
def flush(ctx: click.Context, source: str, size: tuple[int, int] | None, clear_all: bool) -> None:
    """Delete the derivative of SOURCE at a size."""
    service: ThumbnailService = ctx.obj["service"]

    result = service.flush(source, size=size, clear_all=clear_all)
    if not result.ok:
        console.print(f"[red]Error: {result.error}[/red]")
        sys.exit(1)

    if result.removed:
        console.print("[green]Flushed[/green]")
    else:
        console.print("[yellow]Nothing to flush[/yellow]")


@main.command()
@click.argument("source")
@click.option("--size", "-s", default=None, callback=_size_option, help="Size as WxH")
@click.option("--crop/--no-crop", default=False, help="Crop to fill the size")
@click.option("--letterbox", "-l", default=None, help="Letterbox colour")
@click.pass_context
def plan(
    ctx: click.Context,
    source: str,
    size: tuple[int, int] | None,
    crop: bool,
    letterbox: str | None,
) -> None:
    """Show the crop/fit geometry for SOURCE without writing anything."""
    service: ThumbnailService = ctx.obj["service"]

    try:
        spec = DerivativeSpec.from_request(
            size=size or service.config.default_size, crop=crop, letterbox=letterbox
        )
        path = service.cache.resolve_source(source)
        with Image.open(path) as image:
            width, height = image.size
    except (ImageVersionError, OSError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    geometry = plan_geometry(width, height, spec)

    table = Table(title=f"{source} ({width}x{height}) -> {spec.bucket}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("source crop", str(geometry.source_crop))
    table.add_row("scaled size", str(geometry.scaled_size))
    table.add_row("crop offset", str(geometry.crop_offset))
    table.add_row("content size", str(geometry.content_size))
    table.add_row("canvas size", str(geometry.canvas_size))
    table.add_row("paste offset", str(geometry.paste_offset))
    table.add_row("crop", str(geometry.crop))
    console.print(table)


if __name__ == "__main__":
    main()
