"""TileStitch error hierarchy.

All custom exceptions inherit from TileStitchError, enabling callers
to catch the base class for blanket error handling or specific
subclasses for targeted recovery.
"""


class TileStitchError(Exception):
    """Base exception for all TileStitch errors."""


class EmptyInputError(TileStitchError):
    """Raised when an operation that needs map chunks receives none."""


class NoInputError(EmptyInputError):
    """Raised when a merge is requested with no maps to merge."""


class DimensionMismatchError(TileStitchError):
    """Raised when maps being merged use different tile pixel sizes."""


class UnsupportedInfiniteMapError(TileStitchError):
    """Raised when a map declares an infinite (chunked) layout."""


class MissingContextError(TileStitchError):
    """Raised when a raster surface or image encoder cannot be created."""


class DecodeError(TileStitchError):
    """Raised when a map document or image cannot be decoded."""


class ConfigError(TileStitchError):
    """Raised when a stitch plan file is malformed."""
