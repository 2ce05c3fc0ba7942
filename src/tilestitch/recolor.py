"""Applying palette substitutions to raster images."""

from __future__ import annotations

from collections.abc import Sequence

from tilestitch.constants import DEFAULT_TOLERANCE_SQ
from tilestitch.models import PaletteChange, RasterImage

Rgba = tuple[int, int, int, int]


def _exact_table(changes: Sequence[PaletteChange]) -> dict[Rgba, Rgba]:
    table: dict[Rgba, Rgba] = {}
    for change in changes:
        # First change listed for a color wins.
        table.setdefault(change.from_color.rgba, change.to_color.rgba)
    return table


def _nearest_target(
    pixel: Rgba, changes: Sequence[PaletteChange], tolerance_sq: int
) -> Rgba | None:
    best: Rgba | None = None
    best_dist = tolerance_sq + 1
    for change in changes:
        dist = sum((p - f) ** 2 for p, f in zip(pixel, change.from_color.rgba))
        if dist < best_dist:
            best_dist = dist
            best = change.to_color.rgba
    return best


def apply_changes(
    base: RasterImage,
    changes: Sequence[PaletteChange],
    use_tolerance: bool = False,
    tolerance_sq: int = DEFAULT_TOLERANCE_SQ,
) -> RasterImage:
    """Replace colors of *base* according to *changes*.

    Fully transparent pixels are never touched.  In exact mode a pixel is
    replaced by the ``to`` color of the first change whose ``from`` equals
    it.  In tolerance mode the change with the nearest ``from`` color
    (squared RGBA distance, earliest change on ties) applies when its
    distance is at most *tolerance_sq*.

    Args:
        base: Source image; left unmodified.
        changes: Ordered substitutions.
        use_tolerance: Match nearest colors instead of exact ones.
        tolerance_sq: Largest squared distance accepted in tolerance mode.

    Returns:
        A new image with the same dimensions.
    """
    out = bytearray(base.pixels)
    if not changes:
        return RasterImage(width=base.width, height=base.height, pixels=bytes(out))

    exact = None if use_tolerance else _exact_table(changes)
    resolved: dict[Rgba, Rgba | None] = {}

    for i in range(0, len(out), 4):
        if out[i + 3] == 0:
            continue
        pixel: Rgba = (out[i], out[i + 1], out[i + 2], out[i + 3])
        if exact is not None:
            target = exact.get(pixel)
        else:
            if pixel not in resolved:
                resolved[pixel] = _nearest_target(pixel, changes, tolerance_sq)
            target = resolved[pixel]
        if target is not None:
            out[i : i + 4] = bytes(target)

    return RasterImage(width=base.width, height=base.height, pixels=bytes(out))
