"""Shared fixtures for tilestitch tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from map_factory import map_json, terrain_image, terrain_raster, tileset_json, write_map
from tilestitch.models import RasterImage

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_tilestitch_logger() -> Iterator[None]:
    """Leave the package logger as a library user would find it."""
    yield
    logger = logging.getLogger("tilestitch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Rasters
# ---------------------------------------------------------------------------


@pytest.fixture()
def terrain() -> RasterImage:
    """The 4x4 terrain sheet: red, green / blue, white 2x2 tiles."""
    return terrain_raster()


# ---------------------------------------------------------------------------
# Map files on disk
# ---------------------------------------------------------------------------


@pytest.fixture()
def map_workspace(tmp_path: Path) -> Path:
    """Two 4x4 maps in ``maps/`` sharing ``tiles/terrain.png``.

    ``west.tmj`` is filled with GID 1 (red), ``east.tmj`` with GID 2 (green)
    and carries one object at pixel (2, 2).
    """
    image = "../tiles/terrain.png"
    write_map(
        tmp_path / "maps" / "west.tmj",
        map_json(data=[1] * 16, tilesets=[tileset_json(image=image)]),
    )
    write_map(
        tmp_path / "maps" / "east.tmj",
        map_json(
            data=[2] * 16,
            tilesets=[tileset_json(image=image)],
            objects=[{"id": 1, "name": "spawn", "x": 2, "y": 2, "width": 0, "height": 0}],
        ),
    )
    (tmp_path / "tiles").mkdir()
    terrain_image().save(tmp_path / "tiles" / "terrain.png")
    return tmp_path
