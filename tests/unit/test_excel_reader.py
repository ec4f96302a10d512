from __future__ import annotations

import asyncio
import io
from datetime import datetime

import openpyxl
import pandas as pd
import pytest

from conftest import build_workbook
from customs_loader.errors import EmptyFileError, NoDataError
from customs_loader.excel.reader import (
    is_blank_cell,
    normalize_sheet,
    read_spreadsheet,
    read_spreadsheet_async,
)


def test_reads_first_sheet_headers_and_rows():
    content = build_workbook(
        ["Country Code", "Value (USD)", "Fecha"],
        [["BO", 1500.5, datetime(2024, 1, 31)], ["PE", 200, None]],
    )
    sheet = read_spreadsheet(content)

    assert sheet.sheet_name == "Hoja1"
    assert sheet.headers == ["Country Code", "Value (USD)", "Fecha"]
    assert [r.row_number for r in sheet.rows] == [2, 3]
    assert sheet.rows[0].values == ["BO", 1500.5, datetime(2024, 1, 31)]
    assert sheet.rows[1].values == ["PE", 200, None]
    assert isinstance(sheet.rows[1].values[1], int)


def test_only_first_sheet_is_read():
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame([["a"], [1]]).to_excel(writer, sheet_name="First", index=False, header=False)
        pd.DataFrame([["b"], [2]]).to_excel(writer, sheet_name="Second", index=False, header=False)
    sheet = read_spreadsheet(buf.getvalue())
    assert sheet.sheet_name == "First"
    assert sheet.headers == ["a"]


def test_blank_rows_are_dropped_but_row_numbers_kept():
    content = build_workbook(["a", "b"], [["x", 1], [None, None], ["y", 2]])
    sheet = read_spreadsheet(content)
    assert [r.row_number for r in sheet.rows] == [2, 4]


def test_empty_header_cells_are_none():
    content = build_workbook(["a", None, "c"], [[1, 2, 3]])
    sheet = read_spreadsheet(content)
    assert sheet.headers == ["a", None, "c"]


def test_na_string_is_kept_by_default_list():
    content = build_workbook(["pais"], [["NA"], ["BO"]])
    sheet = read_spreadsheet(content, keep_na_strings=["NA"])
    assert [r.values[0] for r in sheet.rows] == ["NA", "BO"]


def test_empty_bytes_rejected():
    with pytest.raises(EmptyFileError, match="empty"):
        read_spreadsheet(b"")


def test_garbage_bytes_rejected():
    with pytest.raises(EmptyFileError, match="could not read"):
        read_spreadsheet(b"definitely not a workbook")


def test_sheet_without_rows_rejected():
    wb = openpyxl.Workbook()
    buf = io.BytesIO()
    wb.save(buf)
    with pytest.raises(EmptyFileError):
        read_spreadsheet(buf.getvalue())


def test_headers_only_rejected():
    content = build_workbook(["a", "b"], [])
    with pytest.raises(NoDataError, match="no data rows"):
        read_spreadsheet(content)


def test_normalize_sheet_keeps_trailing_empty_cells():
    df = pd.DataFrame([["a", "b", "c"], ["x", None, None]])
    sheet = normalize_sheet(df, "S")
    assert sheet.rows[0].values == ["x", None, None]


@pytest.mark.parametrize("value, expected", [(None, True), (float("nan"), True), ("", True), (" ", False), (0, False)])
def test_is_blank_cell(value, expected):
    assert is_blank_cell(value) is expected


def test_async_reader_matches_sync():
    content = build_workbook(["a"], [[1], [2]])
    sheet = asyncio.run(read_spreadsheet_async(content))
    assert [r.values for r in sheet.rows] == [[1], [2]]
