"""Merging several positioned Tiled maps into a single map document."""

from __future__ import annotations

from collections.abc import Sequence

from tilestitch.constants import ORTHOGONAL
from tilestitch.errors import (
    DimensionMismatchError,
    NoInputError,
    UnsupportedInfiniteMapError,
)
from tilestitch.geometry import compute_bounds
from tilestitch.layers import MergeContext, merge_object_groups, merge_tile_layers
from tilestitch.logging import get_logger
from tilestitch.models import MapChunk, MapDocument
from tilestitch.tilesets import merge_tilesets

logger = get_logger("merge")


def validate_chunks(chunks: Sequence[MapChunk]) -> None:
    """Check that *chunks* can be merged.

    Chunks are checked in order; the first failing chunk decides the error.

    Raises:
        NoInputError: If *chunks* is empty.
        DimensionMismatchError: If a chunk's tile size differs from the
            first chunk's.
        UnsupportedInfiniteMapError: If a chunk is an infinite map.
    """
    if not chunks:
        raise NoInputError("No maps to merge")

    first = chunks[0].document
    for chunk in chunks:
        doc = chunk.document
        if doc.tile_width != first.tile_width or doc.tile_height != first.tile_height:
            raise DimensionMismatchError(
                f"Map {chunk.label} uses {doc.tile_width}x{doc.tile_height} tiles, "
                f"expected {first.tile_width}x{first.tile_height}; "
                "all maps must use the same tile size"
            )
        if doc.infinite:
            raise UnsupportedInfiniteMapError(
                f"Map {chunk.label} is an infinite map; infinite maps cannot be merged"
            )
        if doc.orientation and doc.orientation != ORTHOGONAL:
            logger.warning(
                "Map %s has %s orientation; merging it as orthogonal",
                chunk.label,
                doc.orientation,
            )


def merge_maps(chunks: Sequence[MapChunk]) -> MapDocument:
    """Stitch positioned map chunks into one map.

    The result is a copy of the first chunk's document (orientation, render
    order, properties and any other top-level keys) with ``width``,
    ``height``, ``layers``, ``tilesets``, ``nextlayerid`` and
    ``nextobjectid`` recomputed.  Document-level metadata of the other
    chunks is discarded.  Merged tile layers come first, then object
    groups; image and group layers are not carried over.

    Args:
        chunks: Chunks in merge order.  They are not modified.

    Returns:
        A new merged ``MapDocument``.

    Raises:
        NoInputError: If *chunks* is empty.
        DimensionMismatchError: If tile sizes differ between chunks.
        UnsupportedInfiniteMapError: If any chunk is an infinite map.
    """
    validate_chunks(chunks)

    template = chunks[0].document
    bounds = compute_bounds(chunks)
    global_tilesets, gid_remaps = merge_tilesets(chunks)

    context = MergeContext()
    tile_layers = merge_tile_layers(chunks, bounds, gid_remaps, context)
    object_groups = merge_object_groups(
        chunks,
        bounds,
        gid_remaps,
        template.tile_width,
        template.tile_height,
        context,
    )

    merged = template.model_copy(
        update={
            "width": bounds.width,
            "height": bounds.height,
            "layers": [*tile_layers, *object_groups],
            "tilesets": global_tilesets,
            "next_layer_id": context.next_layer_id,
            "next_object_id": context.next_object_id,
        },
        deep=True,
    )

    logger.info(
        "Merged %d maps into %dx%d tiles (%d layers, %d tilesets)",
        len(chunks),
        bounds.width,
        bounds.height,
        len(merged.layers),
        len(global_tilesets),
    )
    return merged
