"""Palette extraction from raster images.

Colors are counted in coarse buckets (the high four bits of each RGBA
channel) over a sparse grid of sample pixels, which is enough to rank the
dominant colors of a tileset without visiting every pixel.
"""

from __future__ import annotations

from collections import Counter

from tilestitch.constants import DEFAULT_MAX_COLORS, DEFAULT_SAMPLE_STEP
from tilestitch.models import Color, RasterImage

Bucket = tuple[int, int, int, int]


def quantize(r: int, g: int, b: int, a: int) -> Bucket:
    """Reduce each channel to its high nibble (16 levels)."""
    return (r >> 4, g >> 4, b >> 4, a >> 4)


def dequantize(bucket: Bucket) -> Color:
    """Expand a bucket to a representative color near its center.

    The nibble is replicated into the low bits, so bucket ``0xA`` becomes
    ``0xAA``.
    """
    r, g, b, a = ((q << 4) | q for q in bucket)
    return Color(r=r, g=g, b=b, a=a)


def color_distance_sq(c1: Color, c2: Color) -> int:
    """Squared Euclidean distance over the four RGBA channels."""
    return sum((x - y) ** 2 for x, y in zip(c1.rgba, c2.rgba))


def count_buckets(
    image: RasterImage, sample_step: int = DEFAULT_SAMPLE_STEP
) -> Counter[Bucket]:
    """Count quantized colors of every *sample_step*-th pixel in both axes.

    Fully transparent pixels are skipped.  The counter preserves the order in
    which buckets were first seen (row-major scan).
    """
    if sample_step < 1:
        raise ValueError(f"sample_step must be >= 1, got {sample_step}")

    data = image.pixels
    counts: Counter[Bucket] = Counter()
    for y in range(0, image.height, sample_step):
        row = y * image.width
        for x in range(0, image.width, sample_step):
            i = (row + x) * 4
            a = data[i + 3]
            if a == 0:
                continue
            counts[quantize(data[i], data[i + 1], data[i + 2], a)] += 1
    return counts


def extract_palette(
    image: RasterImage,
    max_colors: int = DEFAULT_MAX_COLORS,
    sample_step: int = DEFAULT_SAMPLE_STEP,
) -> list[Color]:
    """Extract the dominant colors of an image.

    Args:
        image: The raster to sample.
        max_colors: Maximum number of colors returned.
        sample_step: Sampling stride in pixels along both axes.

    Returns:
        Up to *max_colors* colors, most frequent first.  Equal counts keep
        the order in which their buckets were first sampled.  An image with
        fewer distinct buckets yields a shorter list; a fully transparent one
        yields ``[]``.

    Raises:
        ValueError: If *max_colors* or *sample_step* is less than 1.
    """
    if max_colors < 1:
        raise ValueError(f"max_colors must be >= 1, got {max_colors}")

    counts = count_buckets(image, sample_step)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [dequantize(bucket) for bucket, _count in ranked[:max_colors]]
