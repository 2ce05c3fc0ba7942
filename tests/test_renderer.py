"""Tests for tilestitch.renderer: painting maps from tileset rasters."""

from __future__ import annotations

import pytest

from map_factory import (
    BLUE,
    CLEAR,
    GREEN,
    RED,
    WHITE,
    make_chunk,
    make_document,
    tileset_json,
)
from tilestitch.constants import (
    FLIPPED_DIAGONALLY_FLAG,
    FLIPPED_HORIZONTALLY_FLAG,
    FLIPPED_VERTICALLY_FLAG,
)
from tilestitch.errors import MissingContextError
from tilestitch.models import MapDocument, RasterImage, TilesetRef
from tilestitch.renderer import render_chunk_previews, render_map


def _lookup(raster: RasterImage | None):
    return lambda ref: raster


# ---------------------------------------------------------------------------
# render_map
# ---------------------------------------------------------------------------


class TestRenderMap:
    """Tests for render_map."""

    def test_canvas_size(self, terrain: RasterImage) -> None:
        out = render_map(make_document(width=3, height=2), _lookup(terrain))
        assert (out.width, out.height) == (6, 4)

    def test_empty_cells_transparent(self, terrain: RasterImage) -> None:
        out = render_map(make_document(width=1, height=1, data=[0]), _lookup(terrain))
        assert out.pixel(0, 0) == CLEAR

    def test_tiles_cut_from_sheet(self, terrain: RasterImage) -> None:
        doc = make_document(width=4, height=1, data=[1, 2, 3, 4])
        out = render_map(doc, _lookup(terrain))
        assert [out.pixel(x * 2, 0) for x in range(4)] == [RED, GREEN, BLUE, WHITE]
        assert out.pixel(7, 1) == WHITE

    def test_accepts_chunk_ignoring_offset(self, terrain: RasterImage) -> None:
        chunk = make_chunk(offset=(10, 10), width=1, height=1, data=[2])
        out = render_map(chunk, _lookup(terrain))
        assert (out.width, out.height) == (2, 2)
        assert out.pixel(0, 0) == GREEN

    def test_missing_raster_skipped(self) -> None:
        out = render_map(make_document(width=1, height=1, data=[1]), _lookup(None))
        assert out.pixel(0, 0) == CLEAR

    def test_gid_without_tileset_skipped(self, terrain: RasterImage) -> None:
        doc = make_document(
            width=2, height=1, data=[1, 2], tilesets=[tileset_json(first_gid=2)]
        )
        out = render_map(doc, _lookup(terrain))
        assert out.pixel(0, 0) == CLEAR
        assert out.pixel(2, 0) == RED

    def test_gid_beyond_tile_count_skipped(self, terrain: RasterImage) -> None:
        doc = make_document(width=1, height=1, data=[5])
        assert render_map(doc, _lookup(terrain)).pixel(0, 0) == CLEAR

    def test_later_layers_drawn_on_top(self, terrain: RasterImage) -> None:
        raw = make_document(width=1, height=1, data=[1]).to_json_dict()
        raw["layers"].append(
            {"type": "tilelayer", "id": 2, "width": 1, "height": 1, "data": [3]}
        )
        out = render_map(MapDocument.model_validate(raw), _lookup(terrain))
        assert out.pixel(1, 1) == BLUE

    def test_transparent_tile_pixels_composite(self) -> None:
        sheet = RasterImage(
            width=4,
            height=2,
            pixels=bytes(RED) * 2 + bytes(CLEAR) * 2 + bytes(RED) * 2 + bytes(CLEAR) * 2,
        )
        doc = make_document(
            width=1,
            height=1,
            data=[1],
            tilesets=[tileset_json(tile_count=2, columns=2)],
        )
        raw = doc.to_json_dict()
        raw["layers"].append(
            {"type": "tilelayer", "id": 2, "width": 1, "height": 1, "data": [2]}
        )
        out = render_map(MapDocument.model_validate(raw), _lookup(sheet))
        assert out.pixel(0, 0) == RED

    def test_group_layers_rendered(self, terrain: RasterImage) -> None:
        raw = make_document(width=1, height=1, data=[0]).to_json_dict()
        raw["layers"].append(
            {
                "type": "group",
                "id": 2,
                "layers": [
                    {"type": "tilelayer", "id": 3, "width": 1, "height": 1, "data": [4]}
                ],
            }
        )
        out = render_map(MapDocument.model_validate(raw), _lookup(terrain))
        assert out.pixel(0, 0) == WHITE

    def test_scaled_to_map_tile_size(self, terrain: RasterImage) -> None:
        doc = make_document(width=1, height=1, data=[3], tile_size=4)
        out = render_map(doc, _lookup(terrain))
        assert (out.width, out.height) == (4, 4)
        assert {out.pixel(x, y) for x in range(4) for y in range(4)} == {BLUE}

    def test_margin_and_spacing(self) -> None:
        # 1px margin, 1px spacing, two 2x2 tiles in one row: 7x4 sheet
        row = [CLEAR, GREEN, GREEN, CLEAR, BLUE, BLUE, CLEAR]
        edge = [CLEAR] * 7
        pixels = b"".join(bytes(p) for p in edge + row + row + edge)
        sheet = RasterImage(width=7, height=4, pixels=pixels)
        ts = tileset_json(tile_count=2, columns=2, margin=1, spacing=1)
        doc = make_document(width=2, height=1, data=[1, 2], tilesets=[ts])
        out = render_map(doc, _lookup(sheet))
        assert out.pixel(0, 0) == GREEN
        assert out.pixel(3, 1) == BLUE

    def test_flips(self) -> None:
        # 2x2 tile: red top-left, green top-right, blue bottom-left, white bottom-right
        sheet = RasterImage(
            width=2, height=2, pixels=bytes(RED) + bytes(GREEN) + bytes(BLUE) + bytes(WHITE)
        )
        ts = tileset_json(tile_count=1, columns=1)
        gids = [
            1 | FLIPPED_HORIZONTALLY_FLAG,
            1 | FLIPPED_VERTICALLY_FLAG,
            1 | FLIPPED_DIAGONALLY_FLAG,
        ]
        doc = make_document(width=3, height=1, data=gids, tilesets=[ts])
        out = render_map(doc, _lookup(sheet))
        assert out.pixel(0, 0) == GREEN
        assert out.pixel(2, 0) == BLUE
        # diagonal flip swaps top-right and bottom-left
        assert out.pixel(5, 0) == BLUE
        assert out.pixel(4, 1) == GREEN

    def test_lookup_receives_owning_tileset(self, terrain: RasterImage) -> None:
        seen: list[TilesetRef] = []

        def lookup(ref: TilesetRef) -> RasterImage:
            seen.append(ref)
            return terrain

        forest = tileset_json(first_gid=5, name="forest", image="forest.png")
        doc = make_document(width=2, height=1, data=[1, 6], tilesets=[tileset_json(), forest])
        render_map(doc, lookup)
        assert sorted(ref.name for ref in seen) == ["forest", "terrain"]

    def test_canvas_allocation_failure(
        self, terrain: RasterImage, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def no_memory(*args, **kwargs):
            raise MemoryError

        monkeypatch.setattr("tilestitch.renderer.Image.new", no_memory)
        doc = make_document(width=1, height=1)
        with pytest.raises(MissingContextError):
            render_map(doc, _lookup(terrain))


class TestRenderChunkPreviews:
    """Tests for render_chunk_previews."""

    def test_keyed_by_chunk_id(self, terrain: RasterImage) -> None:
        chunks = [make_chunk(data=[1] * 16), make_chunk(offset=(4, 0), data=[2] * 16)]
        previews = render_chunk_previews(chunks, _lookup(terrain))
        assert set(previews) == {c.id for c in chunks}
        assert previews[chunks[1].id].pixel(0, 0) == GREEN
