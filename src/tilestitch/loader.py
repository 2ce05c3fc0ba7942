"""Reading map documents, tileset images and map bundles.

Maps are ``.tmj`` JSON files.  Tileset images referenced by a map are
looked up relative to the map file, on disk or inside a zip bundle, and
loaded into a :class:`~tilestitch.library.TilesetLibrary` keyed by image
file name so that maps sharing a tileset share one entry.
"""

from __future__ import annotations

import io
import json
import os
import zipfile
from collections.abc import Iterable, Sequence
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from tilestitch.constants import MAP_EXTENSION
from tilestitch.errors import DecodeError
from tilestitch.library import TilesetEntry, TilesetLibrary
from tilestitch.logging import get_logger
from tilestitch.models import (
    MapChunk,
    MapDocument,
    RasterImage,
    TilesetRef,
    new_chunk_id,
)
from tilestitch.paths import basename, resolve_relative_path

logger = get_logger("loader")


# ---------------------------------------------------------------------------
# Single documents and images
# ---------------------------------------------------------------------------


def parse_map_document(content: str | bytes, source: str = "<memory>") -> MapDocument:
    """Parse Tiled JSON text into a :class:`MapDocument`.

    Args:
        content: The ``.tmj`` file contents.
        source: Name used in error messages.

    Raises:
        DecodeError: If *content* is not JSON or not a valid Tiled map.
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"Malformed JSON in {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise DecodeError(f"{source} is not a Tiled map (top level is not an object)")
    try:
        return MapDocument.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(f"Invalid Tiled map {source}: {exc}") from exc


def load_map_document(path: str | Path) -> MapDocument:
    """Read and parse a ``.tmj`` file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        DecodeError: If the file is not a valid Tiled map.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Map file not found: {p}")
    return parse_map_document(p.read_bytes(), str(p))


def load_raster(source: bytes | str | Path) -> RasterImage:
    """Decode an image from raw bytes or a file path into RGBA pixels.

    Raises:
        FileNotFoundError: If *source* is a path that does not exist.
        DecodeError: If the data is not an image Pillow can read.
    """
    if isinstance(source, bytes):
        stream: io.BytesIO | Path = io.BytesIO(source)
        label = "<bytes>"
    else:
        stream = Path(source)
        label = str(stream)
        if not stream.is_file():
            raise FileNotFoundError(f"Image not found: {stream}")
    try:
        with Image.open(stream) as img:
            return RasterImage.from_image(img)
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError(f"Cannot decode image {label}: {exc}") from exc


def _disk_image_path(map_path: Path, image: str) -> Path:
    return Path(os.path.normpath(map_path.parent / image.replace("\\", "/")))


# ---------------------------------------------------------------------------
# Map files and loose tileset images
# ---------------------------------------------------------------------------


def load_map_files(
    paths: Iterable[str | Path], library: TilesetLibrary | None = None
) -> tuple[list[MapChunk], TilesetLibrary]:
    """Load maps from disk as chunks at offset ``(0, 0)``.

    Each embedded tileset image is loaded from the path the map gives,
    relative to the map file, unless an image with the same file name is
    already in the library.  Missing images are logged and skipped; the
    user can still supply them with :func:`load_tileset_images`.

    Args:
        paths: ``.tmj`` files, in chunk order.
        library: Library to add images to; a new one when omitted.

    Returns:
        The chunks and the library.

    Raises:
        FileNotFoundError: If a map file does not exist.
        DecodeError: If a map or an existing image cannot be decoded.
    """
    library = library if library is not None else TilesetLibrary()
    chunks: list[MapChunk] = []
    for path in paths:
        p = Path(path)
        document = load_map_document(p)
        chunks.append(MapChunk(id=new_chunk_id(p.name), document=document))
        logger.info("Loaded map %s (%dx%d tiles)", p, document.width, document.height)

        for tileset in document.tilesets:
            if not tileset.image or library.find_by_file_name(tileset.image):
                continue
            image_path = _disk_image_path(p, tileset.image)
            if not image_path.is_file():
                logger.warning(
                    "Tileset image %s referenced by %s not found", tileset.image, p
                )
                continue
            entry = TilesetEntry.from_raster(
                load_raster(image_path), str(image_path), tileset_ref=tileset
            )
            library.add(entry)
    return chunks, library


def _ref_for_image(file_name: str, chunks: Sequence[MapChunk]) -> TilesetRef | None:
    wanted = file_name.lower()
    for chunk in chunks:
        for tileset in chunk.document.tilesets:
            if tileset.image and basename(tileset.image).lower() == wanted:
                return tileset
    return None


def load_tileset_images(
    paths: Iterable[str | Path],
    library: TilesetLibrary,
    chunks: Sequence[MapChunk] = (),
) -> list[TilesetEntry]:
    """Add user-supplied tileset images to *library*.

    An image is linked to the first map tileset whose image file name
    matches its own, ignoring case, and takes that tileset's name.

    Returns:
        The library entries for *paths*, in order.  An image whose file
        name is already loaded yields the existing entry.
    """
    entries: list[TilesetEntry] = []
    for path in paths:
        p = Path(path)
        ref = _ref_for_image(p.name, chunks)
        if ref is None:
            logger.warning("No loaded map references tileset image %s", p.name)
        entry = TilesetEntry.from_raster(load_raster(p), str(p), tileset_ref=ref)
        entries.append(library.add(entry))
    return entries


# ---------------------------------------------------------------------------
# Zip bundles
# ---------------------------------------------------------------------------


def load_bundle(
    archive: bytes | str | Path, library: TilesetLibrary | None = None
) -> tuple[list[MapChunk], TilesetLibrary]:
    """Load every ``.tmj`` member of a zip archive and its tileset images.

    Image paths are resolved against the map's location inside the archive;
    when no member has that path, a member with the same file name (any
    directory, ignoring case) is used instead.

    Raises:
        FileNotFoundError: If *archive* is a path that does not exist.
        DecodeError: If the archive, a map or an image cannot be decoded.
    """
    library = library if library is not None else TilesetLibrary()
    if isinstance(archive, bytes):
        stream: io.BytesIO | Path = io.BytesIO(archive)
        label = "<bundle>"
    else:
        stream = Path(archive)
        label = stream.name
        if not stream.is_file():
            raise FileNotFoundError(f"Bundle not found: {stream}")

    try:
        zf = zipfile.ZipFile(stream)
    except zipfile.BadZipFile as exc:
        raise DecodeError(f"{label} is not a zip archive: {exc}") from exc

    chunks: list[MapChunk] = []
    with zf:
        members = [info.filename for info in zf.infolist() if not info.is_dir()]
        member_set = set(members)
        for member in members:
            if not member.lower().endswith(MAP_EXTENSION):
                continue
            document = parse_map_document(zf.read(member), f"{label}:{member}")
            chunks.append(MapChunk(id=new_chunk_id(basename(member)), document=document))

            for tileset in document.tilesets:
                if not tileset.image:
                    continue
                resolved = resolve_relative_path(member, tileset.image)
                file_name = basename(resolved)
                if library.find_by_file_name(file_name):
                    continue
                found = resolved if resolved in member_set else None
                if found is None:
                    found = next(
                        (m for m in members if basename(m).lower() == file_name.lower()),
                        None,
                    )
                if found is None:
                    logger.warning("Bundle %s has no image for %s", label, tileset.image)
                    continue
                raster = load_raster(zf.read(found))
                library.add(
                    TilesetEntry.from_raster(
                        raster,
                        resolved,
                        name=tileset.name or file_name,
                        tileset_ref=tileset,
                    )
                )

    logger.info(
        "Loaded %d map(s) and %d tileset(s) from %s", len(chunks), len(library), label
    )
    return chunks, library
