"""Bounding rectangles of positioned map chunks, in tile units."""

from __future__ import annotations

from collections.abc import Sequence

from tilestitch.errors import EmptyInputError
from tilestitch.models import Bounds, MapChunk


def chunk_rect(chunk: MapChunk) -> Bounds:
    """Return the tile rectangle covered by a single chunk."""
    return Bounds(
        min_x=chunk.offset_x,
        min_y=chunk.offset_y,
        max_x=chunk.offset_x + chunk.document.width,
        max_y=chunk.offset_y + chunk.document.height,
    )


def compute_bounds(chunks: Sequence[MapChunk]) -> Bounds:
    """Compute the smallest rectangle containing every chunk.

    Args:
        chunks: Positioned chunks.

    Returns:
        Bounds whose ``width``/``height`` give the merged grid size.

    Raises:
        EmptyInputError: If *chunks* is empty.
    """
    if not chunks:
        raise EmptyInputError("Cannot compute bounds of zero map chunks")

    rects = [chunk_rect(c) for c in chunks]
    return Bounds(
        min_x=min(r.min_x for r in rects),
        min_y=min(r.min_y for r in rects),
        max_x=max(r.max_x for r in rects),
        max_y=max(r.max_y for r in rects),
    )


def overlapping_pairs(chunks: Sequence[MapChunk]) -> list[tuple[MapChunk, MapChunk]]:
    """Return every pair of chunks whose rectangles intersect."""
    rects = [chunk_rect(c) for c in chunks]
    pairs: list[tuple[MapChunk, MapChunk]] = []
    for i, a in enumerate(rects):
        for j in range(i + 1, len(rects)):
            b = rects[j]
            if (
                a.min_x < b.max_x
                and b.min_x < a.max_x
                and a.min_y < b.max_y
                and b.min_y < a.max_y
            ):
                pairs.append((chunks[i], chunks[j]))
    return pairs
