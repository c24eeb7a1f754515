"""Tests for path and parameter validation.

Test Categories:
1. Strict mode - errors name the failing path and reason
2. Silent mode - boolean results
3. Parameter presence checks
"""

from __future__ import annotations

from pathlib import Path

import pytest

from firma.core.errors import FirmaError
from firma.services.paths import (
    PathIssue,
    PathValidationError,
    require_paths,
    validate_parameters,
    validate_paths,
)


@pytest.fixture
def real_file(tmp_path: Path) -> Path:
    path = tmp_path / "real-file.txt"
    path.write_text("contents")
    return path


# =============================================================================
# TEST CLASS: Strict mode
# =============================================================================


class TestRequirePaths:
    """Tests for strict path validation."""

    def test_empty_string_rejected(self):
        """Verify an empty path fails with EMPTY."""
        with pytest.raises(PathValidationError) as exc_info:
            require_paths("")
        assert exc_info.value.issue == PathIssue.EMPTY

    def test_whitespace_rejected(self):
        with pytest.raises(PathValidationError) as exc_info:
            require_paths("   ")
        assert exc_info.value.issue == PathIssue.EMPTY

    def test_non_string_rejected(self):
        """Verify non-string values fail with EMPTY."""
        with pytest.raises(PathValidationError) as exc_info:
            require_paths(None)
        assert exc_info.value.issue == PathIssue.EMPTY

    def test_missing_path_rejected(self):
        """Verify a path that does not exist fails with NOT_FOUND."""
        with pytest.raises(PathValidationError, match="does not exist") as exc_info:
            require_paths("/nonexistent")
        assert exc_info.value.issue == PathIssue.NOT_FOUND

    def test_directory_rejected(self, tmp_path: Path):
        """Verify a directory fails with NOT_A_FILE."""
        with pytest.raises(PathValidationError, match="not a regular file") as exc_info:
            require_paths(str(tmp_path))
        assert exc_info.value.issue == PathIssue.NOT_A_FILE
        assert exc_info.value.path == tmp_path.resolve()

    def test_regular_file_accepted(self, real_file: Path):
        """Verify an existing file validates and resolves to an absolute path."""
        (resolved,) = require_paths(str(real_file))
        assert resolved == real_file.resolve()
        assert resolved.is_absolute()

    def test_relative_path_resolved(self, real_file: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(real_file.parent)
        (resolved,) = require_paths("real-file.txt")
        assert resolved == real_file.resolve()

    def test_short_circuits_on_first_failure(self, real_file: Path, tmp_path: Path):
        """Verify the first failing path is reported, later ones are not checked."""
        missing = tmp_path / "missing.pem"
        with pytest.raises(PathValidationError) as exc_info:
            require_paths(str(real_file), str(missing), "")
        assert exc_info.value.issue == PathIssue.NOT_FOUND
        assert exc_info.value.path == missing.resolve()

    def test_returns_paths_in_order(self, tmp_path: Path):
        first = tmp_path / "a.crt"
        second = tmp_path / "b.key"
        first.write_bytes(b"a")
        second.write_bytes(b"b")
        assert require_paths(str(first), str(second)) == [first.resolve(), second.resolve()]

    def test_error_is_firma_error(self):
        with pytest.raises(FirmaError):
            require_paths("")


# =============================================================================
# TEST CLASS: Silent mode
# =============================================================================


class TestValidatePaths:
    """Tests for boolean path validation."""

    def test_all_valid(self, real_file: Path):
        assert validate_paths(str(real_file), real_file) is True

    def test_any_invalid(self, real_file: Path, tmp_path: Path):
        assert validate_paths(str(real_file), str(tmp_path)) is False
        assert validate_paths(str(real_file), "/nonexistent") is False
        assert validate_paths("") is False

    def test_no_paths(self):
        assert validate_paths() is True


# =============================================================================
# TEST CLASS: Parameters
# =============================================================================


class TestValidateParameters:
    """Tests for construction parameter presence checks."""

    def test_all_present(self):
        assert validate_parameters("https://firma.test", "key", 0, False) is True

    @pytest.mark.parametrize("missing", [None, ""])
    def test_missing_value(self, missing):
        assert validate_parameters("https://firma.test", missing) is False
