"""POSIX-style path helpers for paths found inside map files and bundles.

Tiled writes tileset image paths relative to the map file, sometimes with
Windows separators.  These helpers work on plain strings so the same logic
applies to files on disk and to members of a zip archive.
"""

from __future__ import annotations

import posixpath


def _normalize_separators(path: str) -> str:
    return path.replace("\\", "/")


def basename(path: str) -> str:
    """Final path component, accepting ``/`` and ``\\`` separators."""
    return _normalize_separators(path).rsplit("/", 1)[-1]


def dirname(path: str) -> str:
    """Everything before the final component (``""`` for a bare name)."""
    normalized = _normalize_separators(path)
    return normalized.rsplit("/", 1)[0] if "/" in normalized else ""


def strip_extension(name: str) -> str:
    """Drop the last extension: ``"a.b.png"`` becomes ``"a.b"``."""
    return posixpath.splitext(name)[0]


def resolve_relative_path(base_file: str, relative: str) -> str:
    """Resolve *relative* against the directory containing *base_file*.

    A leading ``/`` marks a path already rooted at the archive/workspace
    root; it is stripped and the rest normalized.  ``.`` segments are
    ignored and ``..`` segments above the root are dropped.

    >>> resolve_relative_path("maps/town/town.tmj", "../../tiles/grass.png")
    'tiles/grass.png'
    """
    rel = _normalize_separators(relative)
    if rel.startswith("/"):
        stack: list[str] = []
        rel = rel.lstrip("/")
    else:
        base_dir = dirname(base_file)
        stack = base_dir.split("/") if base_dir else []

    for segment in rel.split("/"):
        if not segment or segment == ".":
            continue
        if segment == "..":
            if stack:
                stack.pop()
        else:
            stack.append(segment)
    return "/".join(stack)
