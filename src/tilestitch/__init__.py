"""TileStitch: merge Tiled JSON maps and recolor their tilesets."""

from tilestitch.config import load_config, validate_config
from tilestitch.errors import (
    ConfigError,
    DecodeError,
    DimensionMismatchError,
    EmptyInputError,
    MissingContextError,
    NoInputError,
    TileStitchError,
    UnsupportedInfiniteMapError,
)
from tilestitch.export import (
    dump_map_document,
    encode_png,
    export_bundle,
    export_tilesets,
    write_map_document,
)
from tilestitch.geometry import compute_bounds
from tilestitch.layers import merge_object_groups, merge_tile_layers
from tilestitch.library import TilesetEntry, TilesetLibrary
from tilestitch.loader import (
    load_bundle,
    load_map_document,
    load_map_files,
    load_raster,
    load_tileset_images,
    parse_map_document,
)
from tilestitch.logging import get_logger, setup_logging
from tilestitch.merge import merge_maps, validate_chunks
from tilestitch.models import (
    Bounds,
    Color,
    MapChunk,
    MapDocument,
    PaletteChange,
    RasterImage,
    StitchConfig,
    TilesetRef,
)
from tilestitch.palette import extract_palette
from tilestitch.pipeline import PlanResult, run_plan
from tilestitch.recolor import apply_changes
from tilestitch.renderer import render_chunk_previews, render_map
from tilestitch.tilesets import find_tileset_for_gid, merge_tilesets

__all__ = [
    "Bounds",
    "Color",
    "ConfigError",
    "DecodeError",
    "DimensionMismatchError",
    "EmptyInputError",
    "MapChunk",
    "MapDocument",
    "MissingContextError",
    "NoInputError",
    "PaletteChange",
    "PlanResult",
    "RasterImage",
    "StitchConfig",
    "TileStitchError",
    "TilesetEntry",
    "TilesetLibrary",
    "TilesetRef",
    "UnsupportedInfiniteMapError",
    "apply_changes",
    "compute_bounds",
    "dump_map_document",
    "encode_png",
    "export_bundle",
    "export_tilesets",
    "extract_palette",
    "find_tileset_for_gid",
    "get_logger",
    "load_bundle",
    "load_config",
    "load_map_document",
    "load_map_files",
    "load_raster",
    "load_tileset_images",
    "merge_maps",
    "merge_object_groups",
    "merge_tile_layers",
    "merge_tilesets",
    "parse_map_document",
    "render_chunk_previews",
    "render_map",
    "run_plan",
    "setup_logging",
    "validate_chunks",
    "validate_config",
    "write_map_document",
]
