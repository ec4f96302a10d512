from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .load_state import LoadState

"""Result models for one replace-load run.

RowError carries the per-row diagnostic, LoadResult the aggregate outcome that
the upload boundary turns into its JSON payload, LoadProgress the event handed
to progress callbacks while rows are inserted.
"""

__all__ = [
    "RowError",
    "LoadResult",
    "LoadProgress",
]


@dataclass(frozen=True)
class RowError:
    """Row-level diagnostic for one failed insert."""
    row: int  # 1-based spreadsheet row number
    message: str
    code: str | None = None  # SQLSTATE when the backend supplied one
    detail: str | None = None
    column: str | None = None
    constraint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"row": self.row, "error": self.message}
        for key in ("code", "detail", "column", "constraint"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one ingestion run.

    Invariants: ``inserted_rows + error_rows <= total_rows``; when the clear
    step fails nothing is inserted. ``errors`` is already capped to the
    configured report limit while ``error_rows`` counts every failure.
    """
    table: str
    total_rows: int
    inserted_rows: int
    error_rows: int
    records_in_db: int | None
    errors: list[RowError]
    column_mapping: dict[int, str]
    state: LoadState
    start_time: datetime
    end_time: datetime
    unmapped_columns: list[dict[str, Any]] = field(default_factory=list)

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def throughput_rows_per_sec(self) -> float:
        elapsed = self.elapsed_seconds
        return self.inserted_rows / elapsed if elapsed > 0 else 0.0

    def to_payload(self) -> dict[str, Any]:
        """``data`` section of the upload success response."""
        return {
            "totalRows": self.total_rows,
            "insertedRows": self.inserted_rows,
            "errorRows": self.error_rows,
            "recordsInDB": self.records_in_db,
            "errors": [e.to_dict() for e in self.errors],
            "columnMapping": {str(i): self.column_mapping[i] for i in sorted(self.column_mapping)},
            "timestamp": self.end_time.isoformat().replace("+00:00", "Z"),
        }


@dataclass(frozen=True)
class LoadProgress:
    """Progress event emitted by BulkLoadTransaction."""
    state: LoadState
    total_rows: int
    processed_rows: int
    inserted_rows: int
    error_rows: int
