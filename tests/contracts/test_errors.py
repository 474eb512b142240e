# tests/contracts/test_errors.py
"""Tests for the error taxonomy and classification."""

import pytest

from dbsync.contracts.enums import ErrorKind
from dbsync.contracts.errors import (
    ConfigurationError,
    ExtractError,
    LoadFailedError,
    SyncError,
    TransientError,
    UnknownTableError,
    classify,
)


class TestClassify:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (ExtractError("x"), ErrorKind.TRANSIENT),
            (TransientError("x"), ErrorKind.TRANSIENT),
            (LoadFailedError(), ErrorKind.AGGREGATE),
            (ConfigurationError("x"), ErrorKind.FATAL),
            (UnknownTableError(["a"]), ErrorKind.FATAL),
            (SyncError("x"), ErrorKind.FATAL),
            (ValueError("x"), ErrorKind.FATAL),
        ],
    )
    def test_kinds(self, error: BaseException, kind: ErrorKind) -> None:
        assert classify(error) is kind

    def test_foreign_error_declaring_kind(self) -> None:
        """Any exception carrying an ErrorKind tag is classified by it."""

        class DriverTimeout(Exception):
            kind = ErrorKind.TRANSIENT

        assert classify(DriverTimeout()) is ErrorKind.TRANSIENT

    def test_non_enum_kind_is_fatal(self) -> None:
        error = ValueError("x")
        error.kind = "transient"  # type: ignore[attr-defined]

        assert classify(error) is ErrorKind.FATAL


class TestUnknownTableError:
    def test_lists_sorted_names(self) -> None:
        error = UnknownTableError({"zeta", "alpha"})

        assert error.tables == ["alpha", "zeta"]
        assert str(error) == "Unknown tables: ['alpha', 'zeta']"

    def test_is_configuration_error(self) -> None:
        assert isinstance(UnknownTableError([]), ConfigurationError)


class TestLoadFailedError:
    def test_fixed_message(self) -> None:
        error = LoadFailedError(["a", "b"])

        assert str(error) == "One or more loads failed, see other exceptions for details."
        assert error.failed_tables == ["a", "b"]

    def test_accepts_generator(self) -> None:
        assert LoadFailedError(name for name in ["a"]).failed_tables == ["a"]
