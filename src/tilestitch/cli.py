"""Command-line interface for TileStitch.

Provides commands for merging maps, packaging bundles, running stitch
plans, and inspecting or recoloring tileset images.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from tilestitch.config import load_config, validate_config
from tilestitch.constants import DEFAULT_MAX_COLORS, DEFAULT_SAMPLE_STEP
from tilestitch.errors import (
    ConfigError,
    DecodeError,
    DimensionMismatchError,
    EmptyInputError,
    MissingContextError,
    NoInputError,
    UnsupportedInfiniteMapError,
)
from tilestitch.export import export_bundle, write_map_document, write_png
from tilestitch.library import TilesetLibrary
from tilestitch.loader import (
    load_bundle,
    load_map_files,
    load_raster,
    load_tileset_images,
)
from tilestitch.logging import setup_logging
from tilestitch.merge import merge_maps
from tilestitch.models import Color, MapChunk, PaletteChange
from tilestitch.palette import extract_palette
from tilestitch.pipeline import run_plan
from tilestitch.recolor import apply_changes
from tilestitch.renderer import render_map

console = Console()

# Checked in order; subclasses come before their bases.
_FAILURE_MESSAGES: tuple[tuple[type[Exception], str], ...] = (
    (NoInputError, "No maps to merge"),
    (EmptyInputError, "Nothing to process"),
    (DimensionMismatchError, "Maps use different tile sizes"),
    (UnsupportedInfiniteMapError, "Infinite maps cannot be merged"),
    (DecodeError, "Could not decode input"),
    (MissingContextError, "Could not create image surface"),
    (ConfigError, "Invalid stitch plan"),
    (ValidationError, "Stitch plan failed schema validation"),
    (FileNotFoundError, "File not found"),
)


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    if verbose:
        setup_logging(level=logging.DEBUG, verbose=True)
    else:
        setup_logging(level=logging.INFO)


def _fail(action: str, exc: Exception, verbose: bool) -> None:
    label = next(
        (msg for cls, msg in _FAILURE_MESSAGES if isinstance(exc, cls)),
        "Unexpected error",
    )
    console.print(f"[bold red]✗[/] {action} failed: {label}: {exc}")
    if verbose:
        console.print_exception()
    sys.exit(1)


def _parse_offset(
    ctx: click.Context, param: click.Parameter, values: Sequence[str]
) -> list[tuple[int, int]]:
    offsets = []
    for value in values:
        try:
            x, y = (int(part) for part in value.split(","))
        except ValueError:
            raise click.BadParameter(f"expected X,Y tile offset, got {value!r}")
        offsets.append((x, y))
    return offsets


def _parse_change(
    ctx: click.Context, param: click.Parameter, values: Sequence[str]
) -> list[PaletteChange]:
    changes = []
    for value in values:
        src, sep, dst = value.partition("=")
        if not sep:
            raise click.BadParameter(f"expected FROM=TO hex colors, got {value!r}")
        try:
            changes.append(
                PaletteChange(
                    from_color=Color.from_hex(src), to_color=Color.from_hex(dst)
                )
            )
        except ValueError as exc:
            raise click.BadParameter(str(exc))
    return changes


def _load_inputs(
    paths: Sequence[Path],
    offsets: Sequence[tuple[int, int]],
    tileset_images: Sequence[Path],
) -> tuple[list[MapChunk], TilesetLibrary]:
    """Load ``.tmj`` files and ``.zip`` bundles, then apply offsets in order.

    Offsets pair with maps, not arguments: a bundle holding several maps
    takes one offset per map, in archive order.
    """
    library = TilesetLibrary()
    chunks: list[MapChunk] = []
    for path in paths:
        if path.suffix.lower() == ".zip":
            loaded, _ = load_bundle(path, library)
        else:
            loaded, _ = load_map_files([path], library)
        chunks.extend(loaded)
    if len(offsets) > len(chunks):
        raise click.BadParameter(
            f"{len(offsets)} offsets given for {len(chunks)} map(s)",
            param_hint="--offset",
        )
    for chunk, (x, y) in zip(chunks, offsets):
        chunk.offset_x, chunk.offset_y = x, y
    if tileset_images:
        load_tileset_images(tileset_images, library, chunks)
    return chunks, library


_verbose_option = click.option(
    "--verbose", "-v", is_flag=True, help="Enable detailed logging"
)
_offset_option = click.option(
    "--offset",
    "-O",
    "offsets",
    multiple=True,
    callback=_parse_offset,
    help="Tile offset X,Y for each map, in order (default 0,0)",
)
_tileset_option = click.option(
    "--tileset",
    "-t",
    "tilesets",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Tileset image to use when a map's own image is missing",
)


@click.group()
@click.version_option()
def main() -> None:
    """TileStitch: merge Tiled maps and recolor their tilesets."""
    pass


@main.command()
@click.argument(
    "maps",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@_offset_option
@_tileset_option
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Merged map output path (.tmj)",
)
@click.option(
    "--preview",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also render the merged map to this PNG",
)
@_verbose_option
def merge(
    maps: tuple[Path, ...],
    offsets: list[tuple[int, int]],
    tilesets: tuple[Path, ...],
    output: Path,
    preview: Path | None,
    verbose: bool,
) -> None:
    """Merge maps placed at tile offsets into one map.

    MAPS: .tmj files or .zip bundles, merged in order

    Example:

        \b
        tilestitch merge west.tmj east.tmj -O 0,0 -O 20,0 -o merged.tmj
    """
    _setup_logging(verbose)

    try:
        chunks, library = _load_inputs(maps, offsets, tilesets)
        merged = merge_maps(chunks)
        write_map_document(merged, output)
        console.print(
            f"[bold green]✓[/] Merged {len(chunks)} map(s) into "
            f"{merged.width}x{merged.height} tiles: [bold]{output}[/]"
        )
        if preview is not None:
            write_png(render_map(merged, library.resolve), preview)
            console.print(f"[bold green]✓[/] Preview: [bold]{preview}[/]")
    except click.BadParameter:
        raise
    except Exception as e:
        _fail("Merge", e, verbose)


@main.command()
@click.argument(
    "maps",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@_offset_option
@_tileset_option
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Bundle output path (.zip)",
)
@_verbose_option
def bundle(
    maps: tuple[Path, ...],
    offsets: list[tuple[int, int]],
    tilesets: tuple[Path, ...],
    output: Path,
    verbose: bool,
) -> None:
    """Merge maps and package the result with its tileset images.

    The archive holds maps/merged.tmj and tilesets/*.png.

    Example:

        \b
        tilestitch bundle west.tmj east.tmj -O 0,0 -O 20,0 -o world.zip
    """
    _setup_logging(verbose)

    try:
        chunks, library = _load_inputs(maps, offsets, tilesets)
        merged = merge_maps(chunks)
        export_bundle(merged, library, output)
        console.print(f"[bold green]✓[/] Bundle written: [bold]{output}[/]")
    except click.BadParameter:
        raise
    except Exception as e:
        _fail("Bundle", e, verbose)


@main.command()
@click.argument(
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@_verbose_option
def run(config_path: Path, verbose: bool) -> None:
    """Run a YAML stitch plan.

    CONFIG_PATH: Path to the stitch plan (e.g., plans/world.yaml)
    """
    _setup_logging(verbose)

    try:
        config = load_config(config_path)
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("[cyan]Stitching...", total=4)

            def progress_callback(stage_name: str, current: int, total: int) -> None:
                progress.update(
                    task,
                    completed=current,
                    total=total,
                    description=f"[cyan]{stage_name}",
                )

            result = run_plan(config, progress_callback=progress_callback)

        console.print(
            f"[bold green]✓[/] Merged {len(result.chunks)} map(s) into "
            f"{result.merged.width}x{result.merged.height} tiles"
        )
        for path in result.written:
            console.print(f"  {path}")
        if result.unmatched_recolors:
            console.print()
            console.print(
                f"[bold yellow]⚠[/] {len(result.unmatched_recolors)} recolor "
                "target(s) matched no tileset:"
            )
            for key in result.unmatched_recolors:
                console.print(f"  • {key}")
    except Exception as e:
        _fail("Plan", e, verbose)


@main.command()
@click.argument(
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--no-check-images",
    is_flag=True,
    help="Skip tileset image existence checks",
)
@_verbose_option
def validate(config_path: Path, no_check_images: bool, verbose: bool) -> None:
    """Validate a stitch plan without writing anything.

    CONFIG_PATH: Path to the stitch plan

    Checks YAML structure, schema, map files and merge compatibility, and
    warns about overlapping maps, missing images and unmatched recolors.
    """
    _setup_logging(verbose)

    try:
        with console.status(f"[bold blue]Validating {config_path}..."):
            warnings = validate_config(config_path, check_images=not no_check_images)
            config = load_config(config_path)

        console.print("[bold green]✓[/] Stitch plan is valid")
        console.print(f"  Maps: {len(config.maps)}")
        console.print(f"  Recolored tilesets: {len(config.recolor.changes)}")

        if warnings:
            console.print()
            console.print(f"[bold yellow]⚠[/] {len(warnings)} warning(s):")
            for warning in warnings:
                console.print(f"  • {warning}")
    except Exception as e:
        _fail("Validation", e, verbose)


@main.command()
@click.argument(
    "image",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--max-colors",
    "-n",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_COLORS,
    show_default=True,
    help="Number of palette colors to report",
)
@click.option(
    "--sample-step",
    "-s",
    type=click.IntRange(min=1),
    default=DEFAULT_SAMPLE_STEP,
    show_default=True,
    help="Sample every Nth pixel in each direction",
)
@_verbose_option
def palette(image: Path, max_colors: int, sample_step: int, verbose: bool) -> None:
    """Print the dominant colors of an image."""
    _setup_logging(verbose)

    try:
        colors = extract_palette(load_raster(image), max_colors, sample_step)
    except Exception as e:
        _fail("Palette extraction", e, verbose)
        return

    table = Table(title=f"Palette of {image.name}")
    table.add_column("#", justify="right")
    table.add_column("Hex")
    table.add_column("RGBA")
    table.add_column("Swatch")
    for i, color in enumerate(colors):
        hex_value = color.to_hex()
        table.add_row(str(i), hex_value, str(color.rgba), f"[on {hex_value}]      [/]")
    console.print(table)


@main.command()
@click.argument(
    "image",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--change",
    "-c",
    "changes",
    multiple=True,
    required=True,
    callback=_parse_change,
    help="Color substitution FROM=TO as hex, e.g. '#ff0000=#00ff00'",
)
@click.option(
    "--tolerance",
    type=click.IntRange(min=0),
    default=None,
    help="Match nearest colors within this squared RGBA distance",
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Recolored image output path (.png)",
)
@_verbose_option
def recolor(
    image: Path,
    changes: list[PaletteChange],
    tolerance: int | None,
    output: Path,
    verbose: bool,
) -> None:
    """Replace colors in an image.

    Without --tolerance only exact color matches are replaced.

    Example:

        \b
        tilestitch recolor grass.png -c '#3a7d2c=#7d5a2c' -o autumn.png
    """
    _setup_logging(verbose)

    try:
        base = load_raster(image)
        if tolerance is None:
            result = apply_changes(base, changes)
        else:
            result = apply_changes(
                base, changes, use_tolerance=True, tolerance_sq=tolerance
            )
        write_png(result, output)
        console.print(f"[bold green]✓[/] Recolored image: [bold]{output}[/]")
    except Exception as e:
        _fail("Recolor", e, verbose)


@main.command()
@click.argument(
    "map_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@_tileset_option
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Rendered image output path (.png)",
)
@_verbose_option
def render(
    map_path: Path,
    tilesets: tuple[Path, ...],
    output: Path,
    verbose: bool,
) -> None:
    """Render a map to a PNG using its tileset images."""
    _setup_logging(verbose)

    try:
        chunks, library = load_map_files([map_path])
        if tilesets:
            load_tileset_images(tilesets, library, chunks)
        raster = render_map(chunks[0], library.resolve)
        write_png(raster, output)
        console.print(
            f"[bold green]✓[/] Rendered {raster.width}x{raster.height}px: "
            f"[bold]{output}[/]"
        )
    except Exception as e:
        _fail("Render", e, verbose)


if __name__ == "__main__":
    main()
