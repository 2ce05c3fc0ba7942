"""Loaded tileset images and their recolor state.

A :class:`TilesetEntry` keeps the image as loaded (``base_raster``), the
palette extracted from it, the user's palette changes and the result of
applying them (``current_raster``).  Entries are immutable: editing a color
returns a new entry recomputed from the base image, so changes never
compound.  :class:`TilesetLibrary` is the lookup the renderer and exporter
use to go from a map's tileset reference to a raster.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from pydantic import BaseModel, ConfigDict, Field

from tilestitch.constants import (
    DEFAULT_SAMPLE_STEP,
    DEFAULT_TOLERANCE_SQ,
    LIBRARY_PALETTE_COLORS,
)
from tilestitch.logging import get_logger
from tilestitch.models import (
    Color,
    PaletteChange,
    RasterImage,
    TilesetRef,
    new_chunk_id,
)
from tilestitch.palette import extract_palette
from tilestitch.paths import basename
from tilestitch.recolor import apply_changes

logger = get_logger("library")


class TilesetEntry(BaseModel):
    """A tileset image with its palette and recolor state.

    Attributes:
        id: Opaque identifier.
        name: Display name (tileset name, else the image file name).
        image_file_name: Base file name used to match map references.
        image_path: Path of the image relative to where it was loaded from.
        tileset_ref: The map tileset this image was loaded for, if known.
        base_raster: The image as loaded.
        current_raster: ``base_raster`` with ``palette_changes`` applied.
        palette: Dominant colors of ``base_raster``.
        palette_changes: One change per palette color, initially identity.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_chunk_id("tileset"))
    name: str
    image_file_name: str
    image_path: str | None = None
    tileset_ref: TilesetRef | None = None
    base_raster: RasterImage
    current_raster: RasterImage
    palette: list[Color] = []
    palette_changes: list[PaletteChange] = []

    @classmethod
    def from_raster(
        cls,
        raster: RasterImage,
        image_path: str,
        name: str | None = None,
        tileset_ref: TilesetRef | None = None,
        max_colors: int = LIBRARY_PALETTE_COLORS,
        sample_step: int = DEFAULT_SAMPLE_STEP,
    ) -> "TilesetEntry":
        """Create an entry and seed one identity change per palette color."""
        file_name = basename(image_path)
        palette = extract_palette(raster, max_colors, sample_step)
        return cls(
            name=name or (tileset_ref.name if tileset_ref else None) or file_name,
            image_file_name=file_name,
            image_path=image_path,
            tileset_ref=tileset_ref,
            base_raster=raster,
            current_raster=raster,
            palette=palette,
            palette_changes=[PaletteChange(from_color=c, to_color=c) for c in palette],
        )

    @property
    def is_modified(self) -> bool:
        return any(not change.is_identity for change in self.palette_changes)

    def with_change(self, index: int, to: Color | str) -> "TilesetEntry":
        """Retarget palette change *index* and recolor in exact mode.

        A hex string keeps the alpha of the change's current target.
        """
        changes = list(self.palette_changes)
        current = changes[index]
        if isinstance(to, str):
            to = Color.from_hex(to, alpha=current.to_color.a)
        changes[index] = current.model_copy(update={"to_color": to})
        return self.with_changes(changes)

    def with_changes(
        self,
        changes: Sequence[PaletteChange],
        use_tolerance: bool = False,
        tolerance_sq: int = DEFAULT_TOLERANCE_SQ,
    ) -> "TilesetEntry":
        """Replace all palette changes and recompute ``current_raster``."""
        recolored = apply_changes(self.base_raster, changes, use_tolerance, tolerance_sq)
        return self.model_copy(
            update={"palette_changes": list(changes), "current_raster": recolored}
        )


class TilesetLibrary:
    """Ordered collection of tileset entries, unique by image file name."""

    def __init__(self, entries: Iterable[TilesetEntry] = ()) -> None:
        self._entries: list[TilesetEntry] = []
        for entry in entries:
            self.add(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TilesetEntry]:
        return iter(list(self._entries))

    def __getitem__(self, index: int) -> TilesetEntry:
        return self._entries[index]

    def find_by_file_name(self, file_name: str) -> TilesetEntry | None:
        """Entry whose image file name matches *file_name*, ignoring case."""
        wanted = basename(file_name).lower()
        for entry in self._entries:
            if entry.image_file_name.lower() == wanted:
                return entry
        return None

    def add(self, entry: TilesetEntry) -> TilesetEntry:
        """Add *entry* unless an image with the same file name is present.

        Returns:
            The entry held by the library for that file name.
        """
        existing = self.find_by_file_name(entry.image_file_name)
        if existing is not None:
            logger.debug("Tileset image %s already loaded", entry.image_file_name)
            return existing
        self._entries.append(entry)
        return entry

    def replace(self, entry: TilesetEntry) -> None:
        """Swap in an updated entry with the same ``id``.

        Raises:
            KeyError: If no entry has that id.
        """
        for i, held in enumerate(self._entries):
            if held.id == entry.id:
                self._entries[i] = entry
                return
        raise KeyError(entry.id)

    def find(self, ref: TilesetRef) -> TilesetEntry | None:
        """Entry for a map tileset: by image file name, then by tileset name."""
        if ref.image:
            entry = self.find_by_file_name(ref.image)
            if entry is not None:
                return entry
        if ref.name:
            for entry in self._entries:
                if entry.name == ref.name:
                    return entry
        return None

    def resolve(self, ref: TilesetRef) -> RasterImage | None:
        """Current (recolored) raster for a map tileset, for the renderer."""
        entry = self.find(ref)
        return entry.current_raster if entry is not None else None
