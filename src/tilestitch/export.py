"""Writing merged maps, recolored tilesets and zip bundles."""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path

from tilestitch.constants import BUNDLE_MAP_PATH, BUNDLE_TILESET_DIR
from tilestitch.errors import MissingContextError
from tilestitch.library import TilesetEntry, TilesetLibrary
from tilestitch.logging import get_logger
from tilestitch.models import MapDocument, RasterImage, TilesetRef
from tilestitch.paths import basename, strip_extension

logger = get_logger("export")


def dump_map_document(document: MapDocument) -> str:
    """Serialize a map to Tiled JSON, indented by two spaces."""
    return json.dumps(document.to_json_dict(), indent=2)


def write_map_document(document: MapDocument, path: str | Path) -> Path:
    """Write a map as a ``.tmj`` file, creating parent directories."""
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(dump_map_document(document), encoding="utf-8")
    logger.info("Wrote map %s", dest)
    return dest


def encode_png(raster: RasterImage) -> bytes:
    """Encode a raster as PNG bytes.

    Raises:
        MissingContextError: If the PNG encoder fails.
    """
    buf = io.BytesIO()
    try:
        raster.to_image().save(buf, format="PNG")
    except (OSError, ValueError) as exc:
        raise MissingContextError(f"PNG encoding failed: {exc}") from exc
    return buf.getvalue()


def write_png(raster: RasterImage, path: str | Path) -> Path:
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(encode_png(raster))
    return dest


def export_tilesets(library: TilesetLibrary, out_dir: str | Path) -> list[Path]:
    """Write each entry's current raster as ``<name>-recolored.png``.

    The extension of the entry name, if any, is dropped first.
    """
    out = Path(out_dir)
    written = []
    for entry in library:
        stem = strip_extension(basename(entry.name or entry.id))
        written.append(write_png(entry.current_raster, out / f"{stem}-recolored.png"))
    logger.info("Exported %d tileset image(s) to %s", len(written), out)
    return written


def _bundle_stem(tileset: TilesetRef, index: int) -> str:
    raw = basename(tileset.image or "") or tileset.name or f"tileset_{index}"
    return strip_extension(raw)


def _entry_for(
    tileset: TilesetRef, index: int, library: TilesetLibrary
) -> TilesetEntry | None:
    entry = library.find(tileset)
    if entry is None and index < len(library):
        entry = library[index]
    return entry


def export_bundle(
    merged: MapDocument, library: TilesetLibrary, path: str | Path
) -> Path:
    """Package a map and its tileset images as a zip archive.

    The archive holds ``maps/merged.tmj`` and one ``tilesets/<stem>.png``
    per tileset with a library entry, written from the entry's current
    raster.  Tilesets sharing an entry share a member; a different entry
    whose stem is taken is written as ``<stem>_<index>.png``.  Tileset
    ``image`` paths in the packaged map are rewritten to point at those
    files.  Tilesets without an entry keep their original ``image`` path.

    Args:
        merged: The map to package; left unmodified.
        library: Source of tileset rasters.
        path: Destination ``.zip`` file.

    Returns:
        The destination path.

    Raises:
        MissingContextError: If a tileset raster cannot be encoded.
    """
    document = merged.model_copy(deep=True)
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    written: dict[str, str] = {}
    with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for index, tileset in enumerate(document.tilesets):
            entry = _entry_for(tileset, index, library)
            if entry is None:
                logger.warning(
                    "No image for tileset %r; keeping its original path",
                    tileset.name or tileset.image or index,
                )
                continue
            stem = _bundle_stem(tileset, index)
            member = f"{BUNDLE_TILESET_DIR}/{stem}.png"
            if written.get(member, entry.id) != entry.id:
                renamed = f"{BUNDLE_TILESET_DIR}/{stem}_{index}.png"
                logger.warning(
                    "Bundle member %s already holds another tileset; writing %s",
                    member,
                    renamed,
                )
                member = renamed
            if member not in written:
                zf.writestr(member, encode_png(entry.current_raster))
                written[member] = entry.id
            tileset.image = f"../{member}"

        zf.writestr(BUNDLE_MAP_PATH, dump_map_document(document))

    logger.info("Wrote bundle %s with %d tileset image(s)", dest, len(written))
    return dest
