from __future__ import annotations

from typing import Any

"""Exception taxonomy for the ingestion pipeline.

Every failure raised by the loader derives from ``IngestError`` so that the
upload boundary can turn it into a JSON failure payload. Backend diagnostics
(SQLSTATE code, detail, column, constraint) ride along on the exception when
the database supplied them.
"""

__all__ = [
    "IngestError",
    "InputError",
    "UnsupportedFileError",
    "EmptyFileError",
    "NoDataError",
    "MappingError",
    "SchemaError",
    "ClearError",
    "RowInsertError",
    "ThresholdError",
    "TransactionStateError",
    "LoadCancelledError",
    "ConcurrentLoadError",
]


class IngestError(Exception):
    """Base class for every loader failure."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        detail: str | None = None,
        column: str | None = None,
        constraint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.detail = detail
        self.column = column
        self.constraint = constraint
        # LoadResult snapshot attached when a load aborts after it started
        self.result: Any = None

    def diagnostics(self) -> dict[str, Any]:
        """Backend diagnostic fields that are actually set."""
        fields = {
            "code": self.code,
            "detail": self.detail,
            "column": self.column,
            "constraint": self.constraint,
        }
        return {k: v for k, v in fields.items() if v is not None}


class InputError(IngestError):
    """User-fixable problem with the uploaded file. No database was touched."""


class UnsupportedFileError(InputError):
    pass


class EmptyFileError(InputError):
    pass


class NoDataError(InputError):
    pass


class MappingError(IngestError):
    """No spreadsheet column could be mapped onto the target table."""

    def __init__(
        self,
        message: str,
        *,
        headers: list[Any] | None = None,
        target_columns: list[str] | None = None,
        unmapped: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.headers = headers or []
        self.target_columns = target_columns or []
        self.unmapped = unmapped or []


class SchemaError(IngestError):
    """Target table is missing."""


class ClearError(IngestError):
    """The replace step failed or left rows behind."""


class RowInsertError(IngestError):
    """A row failed on insert and the active policy does not tolerate it."""

    def __init__(
        self,
        message: str,
        *,
        row: int,
        columns: list[str] | None = None,
        values: list[Any] | None = None,
        **diag: Any,
    ) -> None:
        super().__init__(message, **diag)
        self.row = row
        self.columns = columns or []
        self.values = values or []


class ThresholdError(IngestError):
    """Too many rows failed; the whole load was rolled back."""


class TransactionStateError(IngestError):
    """The transaction was already marked failed or a state transition is illegal."""


class LoadCancelledError(IngestError):
    pass


class ConcurrentLoadError(IngestError):
    """Another load already holds the table lock."""
