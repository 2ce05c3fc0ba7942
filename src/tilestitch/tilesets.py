"""Tileset deduplication and global GID assignment across merged maps.

Each chunk numbers its tiles independently, so the same GID can mean
different tiles in different chunks.  :func:`merge_tilesets` collapses
structurally identical tilesets into one, gives every distinct tileset a
contiguous GID range in the merged map, and returns one old-to-new GID
table per chunk.
"""

from __future__ import annotations

from collections.abc import Sequence

from tilestitch.constants import FIRST_GLOBAL_GID, GID_FLAGS_MASK
from tilestitch.logging import get_logger
from tilestitch.models import (
    MapChunk,
    MapDocument,
    ObjectGroup,
    TileLayer,
    TilesetIdentity,
    TilesetRef,
    iter_layers,
)

logger = get_logger("tilesets")

GidRemap = dict[int, int]


def split_gid(gid: int) -> tuple[int, int]:
    """Split a raw GID into ``(tile_gid, flip_flags)``."""
    return gid & ~GID_FLAGS_MASK, gid & GID_FLAGS_MASK


def max_gid_used(document: MapDocument) -> int:
    """Largest flag-free GID referenced by any tile layer or tile object."""
    highest = 0
    for layer in iter_layers(document.layers):
        if isinstance(layer, TileLayer) and layer.data:
            highest = max(highest, max(split_gid(g)[0] for g in layer.data))
        elif isinstance(layer, ObjectGroup):
            for obj in layer.objects:
                if obj.gid:
                    highest = max(highest, split_gid(obj.gid)[0])
    return highest


def effective_tile_count(tileset: TilesetRef, document: MapDocument) -> tuple[int, str]:
    """Number of GIDs *tileset* occupies in *document*, and how it was found.

    The source is ``"declared"`` (``tilecount``), ``"image"`` (computed from
    the image and tile geometry) or ``"inferred"``: the gap up to the next
    tileset's ``firstgid``, or up to the highest GID the map uses when this
    is the last tileset.  An inferred count is never less than 1, so a
    tileset the map does not use still owns its ``firstgid``.
    """
    derived = tileset.derived_tile_count()
    if derived is not None:
        source = "declared" if tileset.tile_count is not None else "image"
        return derived, source

    later = [
        ts.first_gid for ts in document.tilesets if ts.first_gid > tileset.first_gid
    ]
    if later:
        return min(later) - tileset.first_gid, "inferred"
    return max(1, max_gid_used(document) - tileset.first_gid + 1), "inferred"


def merge_tilesets(
    chunks: Sequence[MapChunk],
) -> tuple[list[TilesetRef], list[GidRemap]]:
    """Deduplicate tilesets across chunks and renumber their GID ranges.

    Tilesets are visited chunk by chunk in the listed order.  The first
    occurrence of an identity is copied into the global list with a new
    ``first_gid``; ranges are packed contiguously starting at 1.  A tileset
    appearing in several chunks reserves the largest tile count any of them
    needs, and at least one GID, so ranges never overlap.

    Args:
        chunks: Chunks in merge order.

    Returns:
        ``(global_tilesets, gid_remaps)``: the merged tileset list in
        first-seen order and one ``{old_gid: new_gid}`` table per chunk, in
        input order.  GIDs absent from a table are left unchanged by callers.
    """
    first_seen: dict[TilesetIdentity, TilesetRef] = {}
    reserved: dict[TilesetIdentity, int] = {}
    chunk_counts: list[list[int]] = []

    for chunk in chunks:
        counts: list[int] = []
        for ts in chunk.document.tilesets:
            count, how = effective_tile_count(ts, chunk.document)
            if how == "inferred":
                logger.warning(
                    "Tileset %r (firstgid %d) in %s has no tilecount; reserving %d GIDs",
                    ts.name or ts.source or ts.image,
                    ts.first_gid,
                    chunk.label,
                    count,
                )
            key = ts.identity
            first_seen.setdefault(key, ts)
            reserved[key] = max(reserved.get(key, 1), count)
            counts.append(count)
        chunk_counts.append(counts)

    global_tilesets: list[TilesetRef] = []
    global_first_gid: dict[TilesetIdentity, int] = {}
    next_first_gid = FIRST_GLOBAL_GID
    for key, ts in first_seen.items():
        global_tilesets.append(
            ts.model_copy(update={"first_gid": next_first_gid}, deep=True)
        )
        global_first_gid[key] = next_first_gid
        next_first_gid += reserved[key]

    gid_remaps: list[GidRemap] = []
    for chunk, counts in zip(chunks, chunk_counts):
        remap: GidRemap = {}
        for ts, count in zip(chunk.document.tilesets, counts):
            new_first = global_first_gid[ts.identity]
            for local in range(count):
                remap[ts.first_gid + local] = new_first + local
        gid_remaps.append(remap)

    logger.debug(
        "Merged %d tileset references into %d tilesets (%d GIDs)",
        sum(len(c) for c in chunk_counts),
        len(global_tilesets),
        next_first_gid - FIRST_GLOBAL_GID,
    )
    return global_tilesets, gid_remaps


def find_tileset_for_gid(
    gid: int, tilesets: Sequence[TilesetRef]
) -> TilesetRef | None:
    """Return the tileset owning *gid*: the largest ``first_gid <= gid``.

    Flip flags must already be stripped from *gid*.  The upper end of the
    tileset's range is not checked here.
    """
    chosen: TilesetRef | None = None
    for ts in tilesets:
        if gid >= ts.first_gid and (chosen is None or ts.first_gid > chosen.first_gid):
            chosen = ts
    return chosen
