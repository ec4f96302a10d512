from __future__ import annotations

import asyncio
import io
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd

from ..errors import EmptyFileError, NoDataError
from ..models.row_data import RowData

"""Spreadsheet reader.

- Only the first sheet of the workbook is read; other sheets are ignored.
- Row 1 is the header row, unconditionally. Every later row is a data row.
- Rows whose cells are all None / NaN / empty strings are dropped.
- Cell values keep their natural scalar form (str, int, float, datetime, bool);
  no coercion to target types happens here.
"""


@dataclass
class SheetData:
    sheet_name: str
    headers: list[Any]  # raw header cells, None where empty
    rows: list[RowData]


def _na_options(keep_na_strings: Iterable[str] | None) -> dict[str, Any]:
    """Build pandas NA options that leave the given literal strings intact.

    pandas turns strings such as "NA" or "NULL" into NaN by default, which
    would silently erase e.g. the ISO country code of Namibia.
    """
    if not keep_na_strings:
        return {"keep_default_na": True, "na_values": None}
    import pandas._libs.parsers as parsers

    custom_na = set(parsers.STR_NA_VALUES) - set(keep_na_strings)
    return {"keep_default_na": False, "na_values": list(custom_na)}


def _natural_scalar(value: Any) -> Any:
    """Convert pandas/NumPy cell values to plain Python scalars."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float):
        if math.isnan(value):
            return None
        # integer cells come back as float when the column also has blanks
        if value.is_integer() and abs(value) < 2**53:
            return int(value)
    if isinstance(value, (datetime, date)):
        return value
    return value


def is_blank_cell(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value == ""


def read_workbook_frame(content: bytes, keep_na_strings: Iterable[str] | None = None) -> tuple[str, pd.DataFrame]:
    """Read the first sheet of a workbook into a raw header-less DataFrame."""
    if not content:
        raise EmptyFileError("the uploaded file is empty")
    try:
        xls = pd.ExcelFile(io.BytesIO(content))
    except Exception as e:  # unreadable bytes or unsupported container
        raise EmptyFileError(f"could not read spreadsheet: {e}") from e
    if not xls.sheet_names:
        raise EmptyFileError("the workbook has no sheets")
    sheet_name = str(xls.sheet_names[0])
    df = xls.parse(xls.sheet_names[0], header=None, **_na_options(keep_na_strings))
    return sheet_name, df


def normalize_sheet(df: pd.DataFrame, sheet_name: str) -> SheetData:
    """Split a raw DataFrame into the header row and the non-blank data rows.

    Steps:
    1. Validate at least one row exists (the header)
    2. Extract header from the first row (index=0)
    3. Remaining rows become RowData with their 1-based sheet row number
    4. Drop blank rows; fail if nothing is left
    """
    if df.shape[0] == 0:
        raise EmptyFileError(f"sheet '{sheet_name}' is empty")

    headers = [_natural_scalar(v) for v in df.iloc[0].tolist()]
    width = len(headers)
    rows: list[RowData] = []
    for offset, raw in enumerate(df.iloc[1:].itertuples(index=False, name=None)):
        values = [_natural_scalar(v) for v in raw]
        if all(is_blank_cell(v) for v in values):
            continue
        if len(values) < width:
            values.extend([None] * (width - len(values)))
        # offset 0 is sheet row 2 (row 1 holds the headers)
        rows.append(RowData(row_number=offset + 2, values=values[:width]))

    if not rows:
        raise NoDataError(f"sheet '{sheet_name}' has headers but no data rows")
    return SheetData(sheet_name=sheet_name, headers=headers, rows=rows)


def read_spreadsheet(content: bytes, keep_na_strings: Iterable[str] | None = None) -> SheetData:
    """Parse spreadsheet bytes into headers and data rows.

    Raises:
        EmptyFileError: no bytes, unreadable workbook, or a sheet with zero rows
        NoDataError: a header row but no non-blank data rows
    """
    sheet_name, df = read_workbook_frame(content, keep_na_strings=keep_na_strings)
    return normalize_sheet(df, sheet_name)


async def read_spreadsheet_async(content: bytes, keep_na_strings: Iterable[str] | None = None) -> SheetData:
    """Parse on a worker thread so request handling is not blocked."""
    return await asyncio.to_thread(read_spreadsheet, content, keep_na_strings)
