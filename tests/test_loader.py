"""Tests for tilestitch.loader: maps, images and bundles from disk."""

from __future__ import annotations

import io
import json
import logging
import zipfile
from pathlib import Path

import pytest

from map_factory import GREEN, RED, map_json, terrain_image, tileset_json, write_map
from tilestitch.errors import DecodeError
from tilestitch.library import TilesetLibrary
from tilestitch.loader import (
    load_bundle,
    load_map_document,
    load_map_files,
    load_raster,
    load_tileset_images,
    parse_map_document,
)


def _png_bytes() -> bytes:
    buf = io.BytesIO()
    terrain_image().save(buf, format="PNG")
    return buf.getvalue()


def _zip(members: dict[str, bytes | str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestParseMapDocument:
    """Tests for parse_map_document and load_map_document."""

    def test_parses_text_and_bytes(self) -> None:
        text = json.dumps(map_json(width=2, height=2))
        assert parse_map_document(text).width == 2
        assert parse_map_document(text.encode()).height == 2

    def test_malformed_json(self) -> None:
        with pytest.raises(DecodeError, match="west.tmj"):
            parse_map_document("{not json", "west.tmj")

    def test_not_an_object(self) -> None:
        with pytest.raises(DecodeError):
            parse_map_document("[1, 2]")

    def test_schema_violation(self) -> None:
        raw = map_json()
        raw["layers"][0]["data"] = [1, 2]
        with pytest.raises(DecodeError):
            parse_map_document(json.dumps(raw))

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_map_document(tmp_path / "nope.tmj")

    def test_load_from_disk(self, map_workspace: Path) -> None:
        doc = load_map_document(map_workspace / "maps" / "west.tmj")
        assert doc.layers[0].data == [1] * 16


class TestLoadRaster:
    """Tests for load_raster."""

    def test_from_bytes(self) -> None:
        raster = load_raster(_png_bytes())
        assert (raster.width, raster.height) == (4, 4)
        assert raster.pixel(0, 0) == RED

    def test_from_path(self, map_workspace: Path) -> None:
        raster = load_raster(map_workspace / "tiles" / "terrain.png")
        assert raster.pixel(2, 0) == GREEN

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_raster(tmp_path / "nope.png")

    def test_undecodable(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"not an image")
        with pytest.raises(DecodeError):
            load_raster(bad)


# ---------------------------------------------------------------------------
# Map files
# ---------------------------------------------------------------------------


class TestLoadMapFiles:
    """Tests for load_map_files."""

    def test_chunks_at_origin_share_tileset(self, map_workspace: Path) -> None:
        maps = map_workspace / "maps"
        chunks, library = load_map_files([maps / "west.tmj", maps / "east.tmj"])
        assert [(c.offset_x, c.offset_y) for c in chunks] == [(0, 0), (0, 0)]
        assert chunks[0].id.startswith("west.tmj-")
        assert len(library) == 1
        entry = library[0]
        assert entry.image_file_name == "terrain.png"
        assert entry.name == "terrain"
        assert Path(entry.image_path) == map_workspace / "tiles" / "terrain.png"

    def test_missing_image_logged(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = write_map(tmp_path / "lonely.tmj", map_json())
        with caplog.at_level(logging.WARNING, logger="tilestitch"):
            chunks, library = load_map_files([path])
        assert len(chunks) == 1
        assert len(library) == 0
        assert "terrain.png" in caplog.text

    def test_existing_library_reused(self, map_workspace: Path) -> None:
        library = TilesetLibrary()
        _, returned = load_map_files([map_workspace / "maps" / "west.tmj"], library)
        assert returned is library
        assert len(library) == 1


class TestLoadTilesetImages:
    """Tests for load_tileset_images."""

    def test_linked_to_matching_ref(self, tmp_path: Path) -> None:
        path = write_map(
            tmp_path / "m.tmj",
            map_json(tilesets=[tileset_json(name="Ground", image="x/Terrain.PNG")]),
        )
        chunks, library = load_map_files([path])
        image = tmp_path / "terrain.png"
        terrain_image().save(image)

        [entry] = load_tileset_images([image], library, chunks)

        assert entry.name == "Ground"
        assert entry.tileset_ref is not None
        assert library.find(chunks[0].document.tilesets[0]) is entry

    def test_unreferenced_image_still_added(self, tmp_path: Path) -> None:
        image = tmp_path / "extra.png"
        terrain_image().save(image)
        library = TilesetLibrary()
        [entry] = load_tileset_images([image], library)
        assert entry.tileset_ref is None
        assert entry.name == "extra.png"
        assert len(library) == 1


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------


class TestLoadBundle:
    """Tests for load_bundle."""

    def test_maps_and_images_resolved(self) -> None:
        doc = map_json(tilesets=[tileset_json(image="../tilesets/terrain.png")])
        archive = _zip(
            {
                "maps/a.tmj": json.dumps(doc),
                "maps/b.tmj": json.dumps(doc),
                "tilesets/terrain.png": _png_bytes(),
                "readme.txt": "ignored",
            }
        )
        chunks, library = load_bundle(archive)
        assert len(chunks) == 2
        assert len(library) == 1
        assert library[0].image_path == "tilesets/terrain.png"

    def test_image_found_by_basename(self) -> None:
        doc = map_json(tilesets=[tileset_json(image="C:\\art\\Terrain.png")])
        archive = _zip({"world.tmj": json.dumps(doc), "assets/terrain.png": _png_bytes()})
        _, library = load_bundle(archive)
        assert library[0].base_raster.pixel(0, 0) == RED

    def test_missing_image_skipped(self) -> None:
        archive = _zip({"world.tmj": json.dumps(map_json())})
        chunks, library = load_bundle(archive)
        assert len(chunks) == 1
        assert len(library) == 0

    def test_from_path(self, tmp_path: Path) -> None:
        path = tmp_path / "bundle.zip"
        path.write_bytes(_zip({"w.tmj": json.dumps(map_json())}))
        chunks, _ = load_bundle(path)
        assert chunks[0].document.width == 4

    def test_not_a_zip(self) -> None:
        with pytest.raises(DecodeError):
            load_bundle(b"plain bytes")

    def test_bad_map_member(self) -> None:
        with pytest.raises(DecodeError, match="broken.tmj"):
            load_bundle(_zip({"broken.tmj": "{"}))
