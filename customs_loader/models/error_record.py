from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Each record describes one failure of a load run. Row-level failures carry the
1-based spreadsheet row; load-level failures (schema, clear, threshold) use
row=-1 as a sentinel because no single row is to blame.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Spreadsheet filename being loaded
        table: Target table
        row: Row number (1-based). -1 for load-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        db_message: Database error message or description
        code: SQLSTATE when available
    """
    timestamp: str
    file: str
    table: str
    row: int
    error_type: str
    db_message: str
    code: str | None = None

    @staticmethod
    def create(
        file: str,
        table: str,
        row: int,
        error_type: str,
        db_message: str,
        code: str | None = None,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            table=table,
            row=row,
            error_type=error_type,
            db_message=db_message,
            code=code,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
