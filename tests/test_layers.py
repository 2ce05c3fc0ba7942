"""Tests for tilestitch.layers: tile layer and object group placement."""

from __future__ import annotations

from map_factory import make_chunk, tileset_json
from tilestitch.constants import FLIPPED_DIAGONALLY_FLAG, FLIPPED_HORIZONTALLY_FLAG
from tilestitch.geometry import compute_bounds
from tilestitch.layers import (
    MergeContext,
    merge_object_groups,
    merge_tile_layers,
    remap_gid,
)
from tilestitch.models import Bounds


class TestRemapGid:
    """Tests for remap_gid."""

    def test_mapped(self) -> None:
        assert remap_gid(2, {2: 10}) == 10

    def test_unmapped_unchanged(self) -> None:
        assert remap_gid(3, {2: 10}) == 3

    def test_flags_preserved(self) -> None:
        flags = FLIPPED_HORIZONTALLY_FLAG | FLIPPED_DIAGONALLY_FLAG
        assert remap_gid(2 | flags, {2: 10}) == 10 | flags


class TestMergeTileLayers:
    """Tests for merge_tile_layers."""

    def test_places_chunk_at_offset(self) -> None:
        chunk = make_chunk(offset=(1, 1), width=2, height=2, data=[1, 2, 3, 4])
        bounds = Bounds(min_x=0, min_y=0, max_x=3, max_y=3)
        [layer] = merge_tile_layers([chunk], bounds, [{}])
        assert (layer.width, layer.height) == (3, 3)
        assert layer.data == [0, 0, 0, 0, 1, 2, 0, 3, 4]

    def test_negative_bounds_shift(self) -> None:
        chunk = make_chunk(offset=(-1, 0), width=1, height=1, data=[4])
        bounds = compute_bounds([chunk, make_chunk(offset=(0, 0), width=1, height=1)])
        layer = merge_tile_layers([chunk], bounds, [{}])[0]
        assert layer.data == [4, 0]

    def test_gids_remapped(self) -> None:
        chunk = make_chunk(width=2, height=1, data=[1, 2 | FLIPPED_HORIZONTALLY_FLAG])
        bounds = compute_bounds([chunk])
        [layer] = merge_tile_layers([chunk], bounds, [{1: 5, 2: 6}])
        assert layer.data == [5, 6 | FLIPPED_HORIZONTALLY_FLAG]

    def test_cells_outside_bounds_dropped(self) -> None:
        chunk = make_chunk(width=2, height=2, data=[1, 1, 1, 1])
        bounds = Bounds(min_x=0, min_y=0, max_x=1, max_y=1)
        [layer] = merge_tile_layers([chunk], bounds, [{}])
        assert layer.data == [1]

    def test_one_output_layer_per_input_layer(self) -> None:
        a, b = make_chunk(data=[1] * 16), make_chunk(offset=(4, 0), data=[2] * 16)
        layers = merge_tile_layers([a, b], compute_bounds([a, b]), [{}, {}])
        assert [layer.id for layer in layers] == [1, 2]
        assert layers[0].data[:8] == [1, 1, 1, 1, 0, 0, 0, 0]
        assert layers[1].data[:8] == [0, 0, 0, 0, 2, 2, 2, 2]

    def test_metadata_kept(self) -> None:
        chunk = make_chunk()
        layer = merge_tile_layers([chunk], compute_bounds([chunk]), [{}])[0]
        assert layer.name == "ground"
        assert layer.opacity == 1
        assert (layer.x, layer.y) == (0, 0)

    def test_source_not_mutated(self) -> None:
        chunk = make_chunk(data=[1] * 16)
        before = chunk.document.model_dump()
        merge_tile_layers([chunk], Bounds(min_x=0, min_y=0, max_x=8, max_y=8), [{1: 9}])
        assert chunk.document.model_dump() == before

    def test_non_zero_cells_conserved(self) -> None:
        chunks = [
            make_chunk(data=[1, 0, 2, 0] * 4),
            make_chunk(offset=(4, 2), data=[0, 3, 0, 4] * 4),
        ]
        layers = merge_tile_layers(chunks, compute_bounds(chunks), [{}, {}])
        merged_cells = sum(1 for layer in layers for g in layer.data if g)
        source_cells = sum(
            1 for c in chunks for g in c.document.layers[0].data if g
        )
        assert merged_cells == source_cells


class TestMergeObjectGroups:
    """Tests for merge_object_groups."""

    def test_objects_shifted_in_pixels(self) -> None:
        chunk = make_chunk(
            offset=(3, 1), objects=[{"id": 4, "x": 1.5, "y": 2, "name": "door"}]
        )
        bounds = Bounds(min_x=0, min_y=0, max_x=7, max_y=5)
        [group] = merge_object_groups([chunk], bounds, [{}], 16, 8)
        obj = group.objects[0]
        assert (obj.x, obj.y) == (3 * 16 + 1.5, 1 * 8 + 2)
        assert obj.name == "door"

    def test_tile_object_gid_remapped(self) -> None:
        chunk = make_chunk(objects=[{"id": 1, "x": 0, "y": 0, "gid": 2}])
        [group] = merge_object_groups([chunk], compute_bounds([chunk]), [{2: 7}], 2, 2)
        assert group.objects[0].gid == 7

    def test_ids_renumbered_across_chunks(self) -> None:
        a = make_chunk(objects=[{"id": 1, "x": 0, "y": 0}, {"id": 2, "x": 0, "y": 0}])
        b = make_chunk(offset=(4, 0), objects=[{"id": 1, "x": 0, "y": 0}])
        ctx = MergeContext(next_layer_id=3)
        groups = merge_object_groups([a, b], compute_bounds([a, b]), [{}, {}], 2, 2, ctx)
        assert [g.id for g in groups] == [3, 4]
        ids = [o.id for g in groups for o in g.objects]
        assert ids == [1, 2, 3]
        assert ctx.next_object_id == 4
        assert ctx.next_layer_id == 5

    def test_objects_not_clipped(self) -> None:
        chunk = make_chunk(objects=[{"id": 1, "x": 500, "y": -20}])
        [group] = merge_object_groups([chunk], compute_bounds([chunk]), [{}], 2, 2)
        assert (group.objects[0].x, group.objects[0].y) == (500, -20)

    def test_tile_layers_ignored(self) -> None:
        chunk = make_chunk(tilesets=[tileset_json()])
        assert merge_object_groups([chunk], compute_bounds([chunk]), [{}], 2, 2) == []
