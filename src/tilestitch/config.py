"""YAML stitch plan loading and validation."""

from __future__ import annotations

from pathlib import Path

import yaml

from tilestitch.errors import ConfigError
from tilestitch.geometry import overlapping_pairs
from tilestitch.loader import load_map_document
from tilestitch.logging import get_logger
from tilestitch.merge import validate_chunks
from tilestitch.models import MapChunk, StitchConfig, new_chunk_id
from tilestitch.paths import basename

logger = get_logger("config")


def validate_config_path(path: str | Path) -> Path:
    """Return *path* as a ``Path`` after checking the file exists.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    resolved = Path(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"Config file not found: {resolved}")
    return resolved


def _parse_yaml(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}"
        )
    return data


def load_config(path: str | Path) -> StitchConfig:
    """Load a stitch plan from a YAML file.

    Relative paths in the plan are resolved against the directory holding
    the plan file.

    Args:
        path: Path to the YAML stitch plan.

    Returns:
        A validated ``StitchConfig``.

    Raises:
        FileNotFoundError: If the YAML file doesn't exist.
        ConfigError: If the YAML is malformed or a required section is
            missing or of the wrong type.
        ValidationError: If the content fails Pydantic validation.
    """
    resolved = validate_config_path(path)
    data = _parse_yaml(resolved)

    for section, kind in (("maps", list), ("output", dict)):
        if section not in data:
            raise ConfigError(f"Missing required '{section}' section in {resolved}")
        if not isinstance(data[section], kind):
            raise ConfigError(
                f"'{section}' section must be a YAML "
                f"{'sequence' if kind is list else 'mapping'}, "
                f"got {type(data[section]).__name__}"
            )
    recolor = data.get("recolor")
    if recolor is not None and not isinstance(recolor, dict):
        raise ConfigError("'recolor' section must be a YAML mapping")

    config = StitchConfig.model_validate(data).with_base_dir(resolved.parent)
    logger.info(
        "Loaded stitch plan %s (%d maps, %d recolored tilesets)",
        resolved,
        len(config.maps),
        len(config.recolor.changes),
    )
    return config


def validate_config(path: str | Path, *, check_images: bool = True) -> list[str]:
    """Check a stitch plan without writing anything.

    Runs :func:`load_config`, loads every map and applies the merge's
    pre-flight checks, then looks for problems that do not stop a run:

    - chunks whose rectangles overlap (later maps overwrite earlier ones)
    - tileset images that are neither next to their map nor supplied
      under ``tilesets`` (when ``check_images=True``)
    - recolor entries that match no tileset

    Args:
        path: Path to the YAML stitch plan.
        check_images: Whether to verify tileset images exist on disk.

    Returns:
        Warning strings, empty when the plan looks clean.

    Raises:
        FileNotFoundError: If the plan, a map or a listed image is missing.
        ConfigError: If the plan is malformed.
        ValidationError: If the plan fails schema validation.
        DecodeError: If a map cannot be decoded.
        DimensionMismatchError: If the maps use different tile sizes.
        UnsupportedInfiniteMapError: If a map is infinite.
    """
    config = load_config(path)
    warnings: list[str] = []

    chunks = []
    for placement in config.maps:
        document = load_map_document(placement.path)
        chunks.append(
            MapChunk(
                id=new_chunk_id(placement.path.name),
                document=document,
                offset_x=placement.offset[0],
                offset_y=placement.offset[1],
            )
        )
    validate_chunks(chunks)

    labels = {
        chunk.id: str(placement.path) for chunk, placement in zip(chunks, config.maps)
    }
    for a, b in overlapping_pairs(chunks):
        warnings.append(f"Maps {labels[a.id]} and {labels[b.id]} overlap")

    for image in config.tilesets:
        if not image.is_file():
            raise FileNotFoundError(f"Tileset image not found: {image}")
    supplied = {p.name.lower() for p in config.tilesets}

    known_names: set[str] = set()
    for chunk, placement in zip(chunks, config.maps):
        for tileset in chunk.document.tilesets:
            if tileset.name:
                known_names.add(tileset.name)
            if not tileset.image:
                continue
            file_name = basename(tileset.image)
            known_names.add(file_name.lower())
            if not check_images or file_name.lower() in supplied:
                continue
            if not (placement.path.parent / tileset.image.replace("\\", "/")).is_file():
                warnings.append(
                    f"Tileset image {tileset.image} for {placement.path} not found"
                )

    for key in config.recolor.changes:
        if key not in known_names and key.lower() not in known_names | supplied:
            warnings.append(f"Recolor target {key!r} matches no tileset")

    return warnings
