"""Filesystem path and parameter validation.

Two modes are supported:
- validate_paths(): silent, returns a boolean.
- require_paths(): strict, raises PathValidationError naming the first path
  that failed and why.

Checks per path, in order: non-empty string, exists, regular file.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

from firma.core.errors import FirmaError

logger = logging.getLogger(__name__)


class PathIssue(str, Enum):
    """Reason a path failed validation."""

    EMPTY = "empty"
    NOT_FOUND = "not_found"
    NOT_A_FILE = "not_a_file"


class PathValidationError(FirmaError):
    """A path failed strict validation."""

    def __init__(self, path: object, issue: PathIssue) -> None:
        self.path = path
        self.issue = issue
        if issue == PathIssue.EMPTY:
            message = f"Path must be a non-empty string, got {path!r}"
        elif issue == PathIssue.NOT_FOUND:
            message = f"Path does not exist: {path}"
        else:
            message = f"Path is not a regular file: {path}"
        super().__init__(message)


def _check_path(path: object) -> tuple[Path | None, PathIssue | None]:
    """Resolve a single path and report the first failed check."""
    if not isinstance(path, (str, Path)) or not str(path).strip():
        return None, PathIssue.EMPTY

    resolved = Path(path).resolve()
    if not resolved.exists():
        return resolved, PathIssue.NOT_FOUND
    if not resolved.is_file():
        return resolved, PathIssue.NOT_A_FILE
    return resolved, None


def validate_paths(*paths: object) -> bool:
    """Return True only if every path references an existing regular file."""
    return all(_check_path(p)[1] is None for p in paths)


def require_paths(*paths: object) -> list[Path]:
    """Validate paths, raising on the first failure.

    Args:
        *paths: Path strings (or Path objects) to validate.

    Returns:
        The resolved absolute paths, in input order.

    Raises:
        PathValidationError: Identifying the failing path and the reason.
    """
    resolved_paths: list[Path] = []
    for path in paths:
        resolved, issue = _check_path(path)
        if issue is not None:
            logger.debug("Path validation failed for %r: %s", path, issue.value)
            raise PathValidationError(resolved if resolved is not None else path, issue)
        resolved_paths.append(resolved)
    return resolved_paths


def validate_parameters(*params: Any) -> bool:
    """Return True only if no parameter is None or an empty string."""
    return all(param is not None and param != "" for param in params)
