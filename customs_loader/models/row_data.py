from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RowData model for the customs spreadsheet loader.

RowData represents one data row of the first sheet after blank-row filtering.
Values keep the order (and the length) of the header row.
"""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """One spreadsheet data record.

    ``row_number`` is the 1-based row of the sheet (the header is row 1, so the
    first data row is 2). Blank rows are dropped by the reader, but the numbers
    of the surviving rows are not shifted, which keeps row-level diagnostics
    pointing at the row the user sees in the spreadsheet.
    """
    row_number: int
    values: list[Any]

    def cell(self, index: int) -> Any:
        """Value at a spreadsheet column index, None when the row is shorter."""
        if 0 <= index < len(self.values):
            return self.values[index]
        return None
