"""Shared constants for the Tiled map format and the color engine."""

# ---------------------------------------------------------------------------
# Tiled GIDs
# ---------------------------------------------------------------------------

# High bits of a GID carry per-cell flip flags; the tile id lives below them.
FLIPPED_HORIZONTALLY_FLAG: int = 0x80000000
FLIPPED_VERTICALLY_FLAG: int = 0x40000000
FLIPPED_DIAGONALLY_FLAG: int = 0x20000000
GID_FLAGS_MASK: int = (
    FLIPPED_HORIZONTALLY_FLAG | FLIPPED_VERTICALLY_FLAG | FLIPPED_DIAGONALLY_FLAG
)

EMPTY_GID: int = 0
FIRST_GLOBAL_GID: int = 1

ORTHOGONAL: str = "orthogonal"

# ---------------------------------------------------------------------------
# Color engine
# ---------------------------------------------------------------------------

DEFAULT_MAX_COLORS: int = 16

# Palette size seeded for each tileset loaded into a library.
LIBRARY_PALETTE_COLORS: int = 8

DEFAULT_SAMPLE_STEP: int = 4

# 20 units of RGBA distance, squared.
DEFAULT_TOLERANCE_SQ: int = 20 * 20

# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

MAP_EXTENSION: str = ".tmj"
BUNDLE_MAP_PATH: str = "maps/merged.tmj"
BUNDLE_TILESET_DIR: str = "tilesets"
