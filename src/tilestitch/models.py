"""Pydantic data models for Tiled maps, tilesets, colors and raster images.

Document models accept both the Tiled JSON keys (``tilewidth``,
``firstgid``, ...) and their snake_case field names, and keep any key they
do not declare so that a load/merge/dump cycle does not lose data.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import struct
import uuid
import zlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, model_validator

from tilestitch.constants import DEFAULT_TOLERANCE_SQ

_DOCUMENT_CONFIG = ConfigDict(populate_by_name=True, extra="allow")


def new_chunk_id(prefix: str = "map") -> str:
    """Return a fresh opaque chunk identifier such as ``"west.tmj-3f9c..."``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def decode_tile_data(encoded: str, compression: str = "") -> list[int]:
    """Decode a base64 (optionally zlib/gzip compressed) Tiled layer payload.

    Args:
        encoded: The base64 ``data`` string of a tile layer.
        compression: ``""``, ``"zlib"`` or ``"gzip"``.

    Returns:
        The GIDs as a flat row-major list.

    Raises:
        ValueError: If the payload is not valid base64, cannot be
            decompressed, uses an unsupported compression, or is not a whole
            number of 32-bit GIDs.
    """
    try:
        raw = base64.b64decode(encoded.strip(), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 tile data: {exc}") from exc

    try:
        if compression == "zlib":
            raw = zlib.decompress(raw)
        elif compression == "gzip":
            raw = gzip.decompress(raw)
        elif compression:
            raise ValueError(f"Unsupported tile data compression: {compression!r}")
    except (zlib.error, OSError, EOFError) as exc:
        raise ValueError(f"Cannot decompress {compression} tile data: {exc}") from exc

    if len(raw) % 4:
        raise ValueError(f"Tile data length {len(raw)} is not a multiple of 4 bytes")
    return list(struct.unpack(f"<{len(raw) // 4}I", raw))


# ---------------------------------------------------------------------------
# Map document
# ---------------------------------------------------------------------------


class Property(BaseModel):
    """A Tiled custom property ``{name, type, value}``."""

    model_config = _DOCUMENT_CONFIG

    name: str
    type: str | None = None
    value: Any = None


class MapObject(BaseModel):
    """A single object of an object group.

    Attributes:
        id: Object id, unique within a map.
        x: Horizontal position in pixels.
        y: Vertical position in pixels.
        gid: Optional tile GID for tile objects.
    """

    model_config = _DOCUMENT_CONFIG

    id: int = 0
    x: int | float = 0
    y: int | float = 0
    gid: int | None = None
    name: str | None = None
    properties: list[Property] | None = None


class _LayerBase(BaseModel):
    model_config = _DOCUMENT_CONFIG

    id: int | None = None
    name: str | None = None
    opacity: int | float | None = None
    visible: bool | None = None
    x: int | float | None = None
    y: int | float | None = None
    properties: list[Property] | None = None


class TileLayer(_LayerBase):
    """A grid of GIDs stored row-major; ``0`` is an empty cell.

    ``data`` is ``None`` for layers of infinite maps, which store ``chunks``
    instead.
    """

    type: Literal["tilelayer"] = "tilelayer"
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    data: list[int] | None = None

    @model_validator(mode="before")
    @classmethod
    def _decode_encoded_data(cls, values: Any) -> Any:
        if not isinstance(values, dict) or not isinstance(values.get("data"), str):
            return values
        values = dict(values)
        compression = values.pop("compression", "") or ""
        values["data"] = decode_tile_data(values["data"], compression)
        values.pop("encoding", None)
        return values

    @model_validator(mode="after")
    def _data_matches_size(self) -> "TileLayer":
        if self.data is not None and len(self.data) != self.width * self.height:
            raise ValueError(
                f"Tile layer {self.name!r} has {len(self.data)} cells, "
                f"expected {self.width}x{self.height}={self.width * self.height}"
            )
        return self


class ObjectGroup(_LayerBase):
    """An ordered list of objects positioned in pixel coordinates."""

    type: Literal["objectgroup"] = "objectgroup"
    objects: list[MapObject] = Field(default_factory=list)


class ImageLayer(_LayerBase):
    type: Literal["imagelayer"] = "imagelayer"
    image: str | None = None


class GroupLayer(_LayerBase):
    type: Literal["group"] = "group"
    layers: list[Layer] = Field(default_factory=list)


Layer = Annotated[
    Union[TileLayer, ObjectGroup, ImageLayer, GroupLayer],
    Field(discriminator="type"),
]

GroupLayer.model_rebuild()


def iter_layers(layers: list[Layer]) -> Iterator[Layer]:
    """Yield every layer depth-first, descending into group layers."""
    for layer in layers:
        yield layer
        if isinstance(layer, GroupLayer):
            yield from iter_layers(layer.layers)


@dataclass(frozen=True)
class TilesetIdentity:
    """Structural key deciding whether two tileset references are the same.

    Empty strings are normalized to ``None`` so ``""`` and a missing value
    compare equal.
    """

    source: str | None
    name: str | None
    image: str | None
    tile_width: int | None
    tile_height: int | None
    tile_count: int | None
    columns: int | None


class TilesetRef(BaseModel):
    """A tileset entry of a map, embedded or referencing an external file.

    GIDs ``[first_gid, first_gid + tile_count)`` belong to this tileset and
    map to its tiles ``0..tile_count-1``, laid out row-major with
    ``columns`` tiles per row.
    """

    model_config = _DOCUMENT_CONFIG

    first_gid: int = Field(alias="firstgid")
    source: str | None = None
    name: str | None = None
    image: str | None = None
    tile_width: int | None = Field(default=None, alias="tilewidth")
    tile_height: int | None = Field(default=None, alias="tileheight")
    tile_count: int | None = Field(default=None, alias="tilecount")
    columns: int | None = None
    image_width: int | None = Field(default=None, alias="imagewidth")
    image_height: int | None = Field(default=None, alias="imageheight")
    margin: int | None = None
    spacing: int | None = None

    @property
    def identity(self) -> TilesetIdentity:
        """The deduplication key of this tileset."""
        return TilesetIdentity(
            source=self.source or None,
            name=self.name or None,
            image=self.image or None,
            tile_width=self.tile_width,
            tile_height=self.tile_height,
            tile_count=self.tile_count,
            columns=self.columns,
        )

    def derived_tile_count(self) -> int | None:
        """Return ``tile_count``, or compute it from the image geometry.

        Returns ``None`` when neither is available (typically an external
        tileset referenced only by ``source``).
        """
        if self.tile_count is not None:
            return self.tile_count
        dims = (self.image_width, self.image_height, self.tile_width, self.tile_height)
        if any(v is None for v in dims):
            return None
        image_w, image_h, tile_w, tile_h = dims
        margin = self.margin or 0
        spacing = self.spacing or 0
        if tile_w + spacing <= 0 or tile_h + spacing <= 0:
            return None
        cols = (image_w - 2 * margin + spacing) // (tile_w + spacing)
        rows = (image_h - 2 * margin + spacing) // (tile_h + spacing)
        return max(cols, 0) * max(rows, 0)


class MapDocument(BaseModel):
    """A Tiled JSON map (``.tmj``)."""

    model_config = _DOCUMENT_CONFIG

    width: int = Field(ge=0)
    height: int = Field(ge=0)
    tile_width: int = Field(alias="tilewidth", gt=0)
    tile_height: int = Field(alias="tileheight", gt=0)
    layers: list[Layer] = Field(default_factory=list)
    tilesets: list[TilesetRef] = Field(default_factory=list)
    orientation: str | None = None
    renderorder: str | None = None
    infinite: bool | None = None
    properties: list[Property] | None = None
    next_layer_id: int | None = Field(default=None, alias="nextlayerid")
    next_object_id: int | None = Field(default=None, alias="nextobjectid")

    @property
    def pixel_size(self) -> tuple[int, int]:
        """Return ``(width * tile_width, height * tile_height)``."""
        return (self.width * self.tile_width, self.height * self.tile_height)

    def iter_tile_layers(self) -> Iterator[TileLayer]:
        """Yield tile layers in drawing order, including those inside groups."""
        for layer in iter_layers(self.layers):
            if isinstance(layer, TileLayer):
                yield layer

    def property_value(self, name: str, default: Any = None) -> Any:
        """Return the value of the custom property *name*, or *default*."""
        for prop in self.properties or []:
            if prop.name == name:
                return prop.value
        return default

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize back to the Tiled JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MapChunk(BaseModel):
    """A map document placed at a tile offset in a shared coordinate space.

    Only the offsets are expected to change after construction.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_chunk_id)
    document: MapDocument
    offset_x: int = 0
    offset_y: int = 0

    @property
    def label(self) -> str:
        """A display name: the ``name`` property, a top-level ``name`` key, or the id."""
        extra = self.document.model_extra or {}
        return str(self.document.property_value("name") or extra.get("name") or self.id)


class Bounds(BaseModel):
    """Tile-unit rectangle ``[min_x, max_x) x [min_y, max_y)``."""

    model_config = ConfigDict(frozen=True)

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    def contains(self, x: int, y: int) -> bool:
        """Whether the tile ``(x, y)`` lies inside these bounds."""
        return self.min_x <= x < self.max_x and self.min_y <= y < self.max_y


# ---------------------------------------------------------------------------
# Colors and rasters
# ---------------------------------------------------------------------------


def _hex_channels(value: str, alpha: int) -> dict[str, int]:
    h = value.strip().removeprefix("#")
    if len(h) == 3:
        h = "".join(ch * 2 for ch in h)
    if len(h) not in (6, 8):
        raise ValueError(f"Invalid hex color: {value!r}")
    try:
        channels = [int(h[i : i + 2], 16) for i in range(0, len(h), 2)]
    except ValueError as exc:
        raise ValueError(f"Invalid hex color: {value!r}") from exc
    if len(channels) == 3:
        channels.append(alpha)
    return dict(zip("rgba", channels))


class Color(BaseModel):
    """An RGBA color with 0–255 integer channels.

    Besides a mapping, validation accepts a hex string (``"#rgb"``,
    ``"#rrggbb"``, ``"#rrggbbaa"``) or a 3/4-item channel list, which is
    what stitch plans use.
    """

    model_config = ConfigDict(frozen=True)

    r: int = Field(..., ge=0, le=255)
    g: int = Field(..., ge=0, le=255)
    b: int = Field(..., ge=0, le=255)
    a: int = Field(default=255, ge=0, le=255)

    @model_validator(mode="before")
    @classmethod
    def _coerce_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _hex_channels(value, 255)
        if isinstance(value, (list, tuple)):
            if len(value) not in (3, 4):
                raise ValueError(f"Color needs 3 or 4 channels, got {len(value)}")
            return dict(zip("rgba", value))
        return value

    @classmethod
    def from_rgba(cls, rgba: tuple[int, ...]) -> "Color":
        """Build from an ``(R, G, B)`` or ``(R, G, B, A)`` tuple."""
        return cls.model_validate(tuple(rgba))

    @classmethod
    def from_hex(cls, value: str, alpha: int = 255) -> "Color":
        """Parse ``#rgb``, ``#rrggbb`` or ``#rrggbbaa`` (``#`` optional).

        *alpha* applies when the string has no alpha digits.

        Raises:
            ValueError: If *value* is not a 3, 6 or 8 digit hex color.
        """
        return cls(**_hex_channels(value, alpha))

    @property
    def rgba(self) -> tuple[int, int, int, int]:
        """Return the color as an ``(R, G, B, A)`` tuple."""
        return (self.r, self.g, self.b, self.a)

    def to_hex(self) -> str:
        """Return ``#rrggbb``; alpha is not encoded."""
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"


class PaletteChange(BaseModel):
    """Substitution of one color by another; serialized as ``{from, to}``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_color: Color = Field(alias="from")
    to_color: Color = Field(alias="to")

    @property
    def is_identity(self) -> bool:
        return self.from_color == self.to_color


class RasterImage(BaseModel):
    """A row-major RGBA8 pixel buffer.

    Attributes:
        width: Width in pixels.
        height: Height in pixels.
        pixels: ``width * height * 4`` bytes, ``R, G, B, A`` per pixel.
    """

    model_config = ConfigDict(frozen=True)

    width: int = Field(ge=0)
    height: int = Field(ge=0)
    pixels: bytes

    @model_validator(mode="after")
    def _buffer_matches_size(self) -> "RasterImage":
        expected = self.width * self.height * 4
        if len(self.pixels) != expected:
            raise ValueError(
                f"Pixel buffer has {len(self.pixels)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )
        return self

    @classmethod
    def blank(cls, width: int, height: int) -> "RasterImage":
        """A fully transparent image."""
        return cls(width=width, height=height, pixels=bytes(width * height * 4))

    @classmethod
    def from_image(cls, image: Image.Image) -> "RasterImage":
        """Copy the pixels of a Pillow image (converted to RGBA)."""
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(width=image.width, height=image.height, pixels=image.tobytes())

    def to_image(self) -> Image.Image:
        """Return a new Pillow RGBA image with these pixels."""
        return Image.frombytes("RGBA", (self.width, self.height), self.pixels)

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        """Return the ``(R, G, B, A)`` value at ``(x, y)``."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height}")
        i = (y * self.width + x) * 4
        r, g, b, a = self.pixels[i : i + 4]
        return (r, g, b, a)


# ---------------------------------------------------------------------------
# Stitch plan
# ---------------------------------------------------------------------------


def _under(base_dir: Path, path: Path | None) -> Path | None:
    if path is None or path.is_absolute():
        return path
    return base_dir / path


class MapPlacement(BaseModel):
    """A map file and the tile offset it is stitched at."""

    path: Path
    offset: tuple[int, int] = (0, 0)


class RecolorPlan(BaseModel):
    """Palette changes to apply, keyed by tileset image file name or tileset name."""

    use_tolerance: bool = False
    tolerance_sq: int = Field(default=DEFAULT_TOLERANCE_SQ, ge=0)
    changes: dict[str, list[PaletteChange]] = Field(default_factory=dict)


class OutputPlan(BaseModel):
    """Where a stitch plan writes its results; at least one target is required."""

    map: Path | None = None
    bundle: Path | None = None
    preview: Path | None = None
    tilesets_dir: Path | None = None

    @model_validator(mode="after")
    def _has_target(self) -> "OutputPlan":
        if not any((self.map, self.bundle, self.preview, self.tilesets_dir)):
            raise ValueError(
                "output needs at least one of 'map', 'bundle', 'preview', 'tilesets_dir'"
            )
        return self


class StitchConfig(BaseModel):
    """Top-level stitch plan: the maps to merge, extra images, recolors, outputs.

    Attributes:
        maps: Map files with their tile offsets, in chunk order.
        tilesets: Loose tileset images loaded in addition to those the maps
            reference.
        recolor: Palette changes applied before rendering and export.
        output: Output targets.
    """

    maps: list[MapPlacement] = Field(..., min_length=1)
    tilesets: list[Path] = Field(default_factory=list)
    recolor: RecolorPlan = Field(default_factory=RecolorPlan)
    output: OutputPlan

    def with_base_dir(self, base_dir: Path) -> "StitchConfig":
        """Return a copy with relative paths anchored at *base_dir*."""
        out = self.output
        return self.model_copy(
            update={
                "maps": [
                    m.model_copy(update={"path": _under(base_dir, m.path)})
                    for m in self.maps
                ],
                "tilesets": [_under(base_dir, p) for p in self.tilesets],
                "output": out.model_copy(
                    update={
                        "map": _under(base_dir, out.map),
                        "bundle": _under(base_dir, out.bundle),
                        "preview": _under(base_dir, out.preview),
                        "tilesets_dir": _under(base_dir, out.tilesets_dir),
                    }
                ),
            }
        )
