"""Tests for tilestitch.errors: error hierarchy."""

from __future__ import annotations

import pytest

from tilestitch.errors import (
    ConfigError,
    DecodeError,
    DimensionMismatchError,
    EmptyInputError,
    MissingContextError,
    NoInputError,
    TileStitchError,
    UnsupportedInfiniteMapError,
)

ALL_ERRORS = (
    ConfigError,
    DecodeError,
    DimensionMismatchError,
    EmptyInputError,
    MissingContextError,
    NoInputError,
    UnsupportedInfiniteMapError,
)


class TestErrorHierarchy:
    """Verify the TileStitch error inheritance tree."""

    def test_base_is_exception(self) -> None:
        assert issubclass(TileStitchError, Exception)

    def test_all_errors_inherit_from_base(self) -> None:
        for cls in ALL_ERRORS:
            assert issubclass(cls, TileStitchError), f"{cls.__name__} missing base"

    def test_catch_base_catches_all(self) -> None:
        for cls in ALL_ERRORS:
            with pytest.raises(TileStitchError):
                raise cls("test")

    def test_no_input_is_empty_input(self) -> None:
        """Code catching EmptyInputError also sees an empty merge request."""
        assert issubclass(NoInputError, EmptyInputError)

    def test_merge_failures_distinguishable(self) -> None:
        assert not issubclass(DimensionMismatchError, UnsupportedInfiniteMapError)
        assert not issubclass(UnsupportedInfiniteMapError, DimensionMismatchError)
        assert not issubclass(DecodeError, ConfigError)

    def test_message_preserved(self) -> None:
        err = DecodeError("bad map")
        assert str(err) == "bad map"
