"""Tests for tilestitch.palette: dominant color extraction."""

from __future__ import annotations

import pytest

from map_factory import BLUE, CLEAR, GREEN, RED, solid_raster
from tilestitch.models import Color, RasterImage
from tilestitch.palette import (
    color_distance_sq,
    count_buckets,
    dequantize,
    extract_palette,
    quantize,
)


def _raster(rows: list[list[tuple[int, int, int, int]]]) -> RasterImage:
    pixels = b"".join(bytes(px) for row in rows for px in row)
    return RasterImage(width=len(rows[0]), height=len(rows), pixels=pixels)


class TestQuantize:
    """Bucket arithmetic."""

    def test_quantize_keeps_high_nibble(self) -> None:
        assert quantize(0xAB, 0x10, 0x0F, 0xFF) == (0xA, 0x1, 0x0, 0xF)

    def test_dequantize_replicates_nibble(self) -> None:
        assert dequantize((0xA, 0x0, 0xF, 0xF)).rgba == (0xAA, 0x00, 0xFF, 0xFF)

    def test_pure_colors_survive(self) -> None:
        for color in (RED, GREEN, BLUE):
            assert dequantize(quantize(*color)).rgba == color

    def test_distance(self) -> None:
        assert color_distance_sq(Color(r=0, g=0, b=0), Color(r=3, g=4, b=0)) == 25


class TestCountBuckets:
    """Tests for count_buckets."""

    def test_transparent_skipped(self) -> None:
        assert count_buckets(solid_raster(4, 4, CLEAR)) == {}

    def test_sample_step(self) -> None:
        counts = count_buckets(solid_raster(8, 8, RED), sample_step=4)
        assert sum(counts.values()) == 4

    def test_invalid_step(self) -> None:
        with pytest.raises(ValueError):
            count_buckets(solid_raster(1, 1, RED), sample_step=0)


class TestExtractPalette:
    """Tests for extract_palette."""

    def test_most_frequent_first(self) -> None:
        img = _raster([[GREEN, RED, RED, RED], [GREEN, GREEN, BLUE, RED]])
        palette = extract_palette(img, max_colors=3, sample_step=1)
        assert [c.rgba for c in palette] == [RED, GREEN, BLUE]

    def test_ties_keep_first_seen_order(self) -> None:
        img = _raster([[BLUE, RED], [RED, BLUE]])
        palette = extract_palette(img, sample_step=1)
        assert [c.rgba for c in palette] == [BLUE, RED]

    def test_max_colors_limits(self) -> None:
        img = _raster([[RED, GREEN, BLUE]])
        assert len(extract_palette(img, max_colors=2, sample_step=1)) == 2

    def test_similar_colors_share_bucket(self) -> None:
        img = _raster([[(200, 10, 10, 255), (205, 12, 3, 255)]])
        palette = extract_palette(img, sample_step=1)
        assert palette == [Color(r=0xCC, g=0x00, b=0x00)]

    def test_transparent_image_empty(self) -> None:
        assert extract_palette(solid_raster(8, 8, CLEAR)) == []

    def test_at_most_max_colors_and_deterministic(self, terrain: RasterImage) -> None:
        first = extract_palette(terrain, max_colors=16, sample_step=1)
        assert len(first) == 4
        assert extract_palette(terrain, max_colors=16, sample_step=1) == first

    def test_invalid_max_colors(self) -> None:
        with pytest.raises(ValueError):
            extract_palette(solid_raster(1, 1, RED), max_colors=0)
