"""
Error taxonomy for the household report pipeline.

- LoadError    : input file missing, unreadable, or schema mismatch (fatal)
- SchemaError  : ambiguous pivot, missing expected column, duplicate keys (fatal)
- JoinWarning  : unmatched household ids during the join (non-fatal)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union


class LoadError(Exception):
    """Raised when an input table cannot be loaded or fails the minimal schema."""

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        missing: Sequence[str] = (),
    ):
        self.path = str(path) if path is not None else None
        self.missing = list(missing)
        super().__init__(message)


class SchemaError(ValueError):
    """Raised when a table cannot be reshaped or joined without guessing."""

    def __init__(self, message: str, table: Optional[str] = None, column: Optional[str] = None):
        self.table = table
        self.column = column
        super().__init__(message)


class JoinWarning(UserWarning):
    """Culture rows whose household id found no molecular match."""
