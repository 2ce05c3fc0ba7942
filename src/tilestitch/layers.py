"""Rewriting tile layers and object groups into the merged coordinate space.

Both functions are pure: source layers are deep-copied, never modified.
Layer and object ids are renumbered through a :class:`MergeContext` that
lives for a single merge call.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tilestitch.constants import EMPTY_GID
from tilestitch.logging import get_logger
from tilestitch.models import Bounds, MapChunk, MapObject, ObjectGroup, TileLayer
from tilestitch.tilesets import GidRemap, split_gid

logger = get_logger("layers")


@dataclass
class MergeContext:
    """Id counters for one merge invocation."""

    next_layer_id: int = 1
    next_object_id: int = 1

    def take_layer_id(self) -> int:
        layer_id = self.next_layer_id
        self.next_layer_id += 1
        return layer_id

    def take_object_id(self) -> int:
        object_id = self.next_object_id
        self.next_object_id += 1
        return object_id


def remap_gid(gid: int, remap: GidRemap) -> int:
    """Translate *gid* through *remap*, keeping its flip flags.

    GIDs without an entry are returned unchanged.
    """
    tile_gid, flags = split_gid(gid)
    return remap.get(tile_gid, tile_gid) | flags


def merge_tile_layers(
    chunks: Sequence[MapChunk],
    bounds: Bounds,
    gid_remaps: Sequence[GidRemap],
    context: MergeContext | None = None,
) -> list[TileLayer]:
    """Place every chunk's tile layers on full-size grids.

    Each source tile layer becomes its own ``bounds.width x bounds.height``
    layer; layers are stacked, never combined.  Cells that would land
    outside the bounds are dropped.

    Args:
        chunks: Chunks in merge order.
        bounds: Merged bounds (see :func:`tilestitch.geometry.compute_bounds`).
        gid_remaps: One GID table per chunk, aligned with *chunks*.
        context: Id counters shared with :func:`merge_object_groups`.

    Returns:
        The merged tile layers, chunk by chunk in document order.
    """
    ctx = context or MergeContext()
    width, height = bounds.width, bounds.height
    merged: list[TileLayer] = []

    for chunk, remap in zip(chunks, gid_remaps):
        shift_x = chunk.offset_x - bounds.min_x
        shift_y = chunk.offset_y - bounds.min_y

        for layer in chunk.document.layers:
            if not isinstance(layer, TileLayer):
                continue

            grid = [EMPTY_GID] * (width * height)
            src = layer.data or []
            rows = layer.height if src else 0
            dropped = 0
            for local_y in range(rows):
                dest_y = shift_y + local_y
                row_start = local_y * layer.width
                for local_x in range(layer.width):
                    gid = src[row_start + local_x]
                    if gid == EMPTY_GID:
                        continue
                    dest_x = shift_x + local_x
                    if not (0 <= dest_x < width and 0 <= dest_y < height):
                        dropped += 1
                        continue
                    grid[dest_y * width + dest_x] = remap_gid(gid, remap)

            if dropped:
                logger.debug(
                    "Dropped %d out-of-bounds cells of layer %r from %s",
                    dropped,
                    layer.name,
                    chunk.label,
                )

            merged.append(
                layer.model_copy(
                    update={
                        "id": ctx.take_layer_id(),
                        "x": 0,
                        "y": 0,
                        "width": width,
                        "height": height,
                        "data": grid,
                    },
                    deep=True,
                )
            )

    return merged


def merge_object_groups(
    chunks: Sequence[MapChunk],
    bounds: Bounds,
    gid_remaps: Sequence[GidRemap],
    tile_width: int,
    tile_height: int,
    context: MergeContext | None = None,
) -> list[ObjectGroup]:
    """Shift every chunk's object groups into the merged pixel space.

    Objects move by the chunk's tile offset times the tile size and are not
    clipped to the bounds.  Tile objects have their ``gid`` remapped.

    Args:
        chunks: Chunks in merge order.
        bounds: Merged bounds.
        gid_remaps: One GID table per chunk, aligned with *chunks*.
        tile_width: Tile width in pixels shared by all chunks.
        tile_height: Tile height in pixels shared by all chunks.
        context: Id counters shared with :func:`merge_tile_layers`.

    Returns:
        The merged object groups, chunk by chunk in document order.
    """
    ctx = context or MergeContext()
    merged: list[ObjectGroup] = []

    for chunk, remap in zip(chunks, gid_remaps):
        shift_px = (chunk.offset_x - bounds.min_x) * tile_width
        shift_py = (chunk.offset_y - bounds.min_y) * tile_height

        for layer in chunk.document.layers:
            if not isinstance(layer, ObjectGroup):
                continue

            group_id = ctx.take_layer_id()
            objects: list[MapObject] = []
            for obj in layer.objects:
                update: dict[str, object] = {
                    "id": ctx.take_object_id(),
                    "x": obj.x + shift_px,
                    "y": obj.y + shift_py,
                }
                if obj.gid is not None:
                    update["gid"] = remap_gid(obj.gid, remap)
                objects.append(obj.model_copy(update=update, deep=True))

            merged.append(
                layer.model_copy(update={"id": group_id, "objects": objects}, deep=True)
            )

    return merged
