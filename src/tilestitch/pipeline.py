"""Plan runner: load, recolor, merge and write everything a stitch plan asks for.

Stages run in order: maps and tileset images are loaded, recolor changes
are applied to the matching library entries, the maps are merged, and the
outputs (map JSON, recolored tileset PNGs, preview PNG, zip bundle) are
written.  Rendering and bundling read the recolored rasters, so a recolor
shows up in every image output.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from tilestitch.export import (
    export_bundle,
    export_tilesets,
    write_map_document,
    write_png,
)
from tilestitch.library import TilesetEntry, TilesetLibrary
from tilestitch.loader import load_map_files, load_tileset_images
from tilestitch.logging import get_logger
from tilestitch.merge import merge_maps
from tilestitch.models import MapChunk, MapDocument, RecolorPlan, StitchConfig
from tilestitch.renderer import render_map

logger = get_logger("pipeline")

ProgressCallback = Callable[[str, int, int], None]


@dataclass
class PlanResult:
    """What a plan run produced.

    Attributes:
        merged: The merged map document.
        chunks: The positioned input chunks.
        library: Tileset images after recoloring.
        written: Files written, in the order they were written.
        unmatched_recolors: Recolor keys that matched no tileset.
    """

    merged: MapDocument
    chunks: list[MapChunk]
    library: TilesetLibrary
    written: list[Path] = field(default_factory=list)
    unmatched_recolors: list[str] = field(default_factory=list)


def build_chunks(config: StitchConfig) -> tuple[list[MapChunk], TilesetLibrary]:
    """Load the plan's maps at their offsets plus any loose tileset images."""
    chunks, library = load_map_files(placement.path for placement in config.maps)
    for chunk, placement in zip(chunks, config.maps):
        chunk.offset_x, chunk.offset_y = placement.offset
    if config.tilesets:
        load_tileset_images(config.tilesets, library, chunks)
    return chunks, library


def _find_target(library: TilesetLibrary, key: str) -> TilesetEntry | None:
    entry = library.find_by_file_name(key)
    if entry is not None:
        return entry
    return next((e for e in library if e.name == key), None)


def apply_recolor(library: TilesetLibrary, plan: RecolorPlan) -> list[str]:
    """Apply a plan's palette changes to the library in place.

    Keys are matched against image file names (ignoring case), then
    tileset names.

    Returns:
        The keys that matched no entry.
    """
    unmatched: list[str] = []
    for key, changes in plan.changes.items():
        entry = _find_target(library, key)
        if entry is None:
            logger.warning("Recolor target %r matches no loaded tileset", key)
            unmatched.append(key)
            continue
        updated = entry.with_changes(changes, plan.use_tolerance, plan.tolerance_sq)
        library.replace(updated)
        logger.info("Recolored %s with %d change(s)", entry.name, len(changes))
    return unmatched


def run_plan(
    config: StitchConfig,
    progress_callback: ProgressCallback | None = None,
) -> PlanResult:
    """Execute a stitch plan.

    Args:
        config: A loaded plan, paths already resolved.
        progress_callback: Called as ``(stage, current, total)`` after each
            stage; stages are ``"load"``, ``"recolor"``, ``"merge"`` and
            ``"write"``.

    Returns:
        The merged map, library and list of written files.

    Raises:
        FileNotFoundError: If a map or listed image is missing.
        DecodeError: If a map or image cannot be decoded.
        TileStitchError: Any merge or export failure.
    """
    stages = ("load", "recolor", "merge", "write")

    def report(stage: str) -> None:
        if progress_callback:
            progress_callback(stage, stages.index(stage) + 1, len(stages))

    chunks, library = build_chunks(config)
    report("load")

    unmatched = apply_recolor(library, config.recolor)
    report("recolor")

    merged = merge_maps(chunks)
    report("merge")

    result = PlanResult(
        merged=merged, chunks=chunks, library=library, unmatched_recolors=unmatched
    )
    output = config.output
    if output.map:
        result.written.append(write_map_document(merged, output.map))
    if output.tilesets_dir:
        result.written.extend(export_tilesets(library, output.tilesets_dir))
    if output.preview:
        preview = render_map(merged, library.resolve)
        result.written.append(write_png(preview, output.preview))
    if output.bundle:
        result.written.append(export_bundle(merged, library, output.bundle))
    report("write")

    logger.info("Plan finished: %d file(s) written", len(result.written))
    return result
