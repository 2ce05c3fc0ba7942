"""Map-to-image rendering from tileset rasters."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from PIL import Image

from tilestitch.constants import (
    FLIPPED_DIAGONALLY_FLAG,
    FLIPPED_HORIZONTALLY_FLAG,
    FLIPPED_VERTICALLY_FLAG,
)
from tilestitch.errors import MissingContextError
from tilestitch.logging import get_logger
from tilestitch.models import MapChunk, MapDocument, RasterImage, TilesetRef
from tilestitch.tilesets import find_tileset_for_gid, split_gid

logger = get_logger("renderer")

TilesetLookup = Callable[[TilesetRef], RasterImage | None]


def _new_canvas(width: int, height: int) -> Image.Image:
    try:
        return Image.new("RGBA", (width, height), (0, 0, 0, 0))
    except (ValueError, OverflowError, MemoryError) as exc:
        raise MissingContextError(
            f"Cannot allocate a {width}x{height} RGBA canvas: {exc}"
        ) from exc


def _apply_flips(tile: Image.Image, flags: int) -> Image.Image:
    # Tiled applies the diagonal flip first, then horizontal, then vertical.
    if flags & FLIPPED_DIAGONALLY_FLAG:
        tile = tile.transpose(Image.Transpose.TRANSPOSE)
    if flags & FLIPPED_HORIZONTALLY_FLAG:
        tile = tile.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if flags & FLIPPED_VERTICALLY_FLAG:
        tile = tile.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    return tile


class _TileCutter:
    """Cuts, scales and caches tiles out of tileset sheets for one render."""

    def __init__(self, lookup: TilesetLookup, tile_width: int, tile_height: int) -> None:
        self._lookup = lookup
        self._size = (tile_width, tile_height)
        self._sheets: dict[int, Image.Image | None] = {}
        self._tiles: dict[tuple[int, int, int], Image.Image | None] = {}

    def _sheet(self, tileset: TilesetRef) -> Image.Image | None:
        key = id(tileset)
        if key not in self._sheets:
            raster = self._lookup(tileset)
            self._sheets[key] = raster.to_image() if raster is not None else None
            if raster is None:
                logger.debug("No raster for tileset %r", tileset.name or tileset.image)
        return self._sheets[key]

    def tile(self, tileset: TilesetRef, tile_gid: int, flags: int) -> Image.Image | None:
        key = (id(tileset), tile_gid, flags)
        if key not in self._tiles:
            self._tiles[key] = self._cut(tileset, tile_gid, flags)
        return self._tiles[key]

    def _cut(self, tileset: TilesetRef, tile_gid: int, flags: int) -> Image.Image | None:
        src_w = tileset.tile_width or self._size[0]
        src_h = tileset.tile_height or self._size[1]
        columns = tileset.columns
        if not columns or not src_w or not src_h:
            return None

        index = tile_gid - tileset.first_gid
        if tileset.tile_count is not None and index >= tileset.tile_count:
            return None

        sheet = self._sheet(tileset)
        if sheet is None:
            return None

        margin = tileset.margin or 0
        spacing = tileset.spacing or 0
        sx = margin + (index % columns) * (src_w + spacing)
        sy = margin + (index // columns) * (src_h + spacing)
        tile = _apply_flips(sheet.crop((sx, sy, sx + src_w, sy + src_h)), flags)
        if tile.size != self._size:
            tile = tile.resize(self._size, resample=Image.Resampling.NEAREST)
        return tile


def render_map(source: MapChunk | MapDocument, lookup: TilesetLookup) -> RasterImage:
    """Paint the tile layers of a map using its tileset rasters.

    Tile layers, including those nested in groups, are drawn bottom to top.
    Each cell's tile is found in the tileset with the largest ``firstgid``
    not above its GID, cut from the raster returned by *lookup*, scaled
    (nearest neighbour) to the map tile size and alpha-composited onto the
    canvas.  Cells whose tileset, raster or tile geometry is missing, or
    whose index exceeds the tileset's declared ``tilecount``, are skipped.

    Args:
        source: A chunk or a map document; chunk offsets are ignored.
        lookup: Returns the raster for a tileset reference, or ``None``.

    Returns:
        An image of ``width * tilewidth`` by ``height * tileheight`` pixels.

    Raises:
        MissingContextError: If the canvas cannot be allocated.
    """
    document = source.document if isinstance(source, MapChunk) else source
    tw, th = document.tile_width, document.tile_height
    canvas = _new_canvas(*document.pixel_size)
    cutter = _TileCutter(lookup, tw, th)

    drawn = skipped = 0
    for layer in document.iter_tile_layers():
        if not layer.data:
            continue
        for y in range(layer.height):
            row_start = y * layer.width
            for x in range(layer.width):
                gid = layer.data[row_start + x]
                if not gid:
                    continue
                tile_gid, flags = split_gid(gid)
                tileset = find_tileset_for_gid(tile_gid, document.tilesets)
                tile = cutter.tile(tileset, tile_gid, flags) if tileset else None
                if tile is None:
                    skipped += 1
                    continue
                canvas.alpha_composite(tile, (x * tw, y * th))
                drawn += 1

    if skipped:
        logger.debug("Rendered %d cells, skipped %d unresolved cells", drawn, skipped)
    return RasterImage.from_image(canvas)


def render_chunk_previews(
    chunks: Sequence[MapChunk], lookup: TilesetLookup
) -> dict[str, RasterImage]:
    """Render every chunk on its own, keyed by chunk id."""
    return {chunk.id: render_map(chunk, lookup) for chunk in chunks}
