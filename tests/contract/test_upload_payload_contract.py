from __future__ import annotations

from pathlib import Path

from conftest import FakeCursor, FakeDbError, build_workbook
from customs_loader.models.config_models import IngestConfig, InsertPolicy
from customs_loader.services.upload import handle_upload

"""Upload response contract.

success: {success: true, message, data: {totalRows, insertedRows, errorRows,
          recordsInDB, errors[<=limit], columnMapping, timestamp}}
failure: {success: false, message, error, [code, detail, column, constraint],
          [row, insertColumns], [excelHeaders, dbColumns, unmappedColumns], [data]}
"""

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DATA_KEYS = {"totalRows", "insertedRows", "errorRows", "recordsInDB", "errors", "columnMapping", "timestamp"}


def _cfg(**kw) -> IngestConfig:
    return IngestConfig(table="hoja1", manual_mapping={"Country Code": "codigo_pais"}, **kw)


def test_success_payload_shape(temp_workdir: Path, fake_connect):
    content = build_workbook(["Country Code", "Unused"], [["BO", 1], ["XX", 2], ["PE", 3]])

    def reject(values):
        return FakeDbError("violates foreign key constraint", pgcode="23503", detail="Key (codigo_pais)=(XX) is not present.") if values[0] == "XX" else None

    payload = handle_upload("aduana.xlsx", content, XLSX, _cfg(), fake_connect(FakeCursor(fail_insert=reject)))
    assert set(payload) == {"success", "message", "data"}
    assert set(payload["data"]) == DATA_KEYS
    assert payload["data"]["errors"] == [
        {
            "row": 3,
            "error": "violates foreign key constraint",
            "code": "23503",
            "detail": "Key (codigo_pais)=(XX) is not present.",
        }
    ]
    data = payload["data"]
    assert data["insertedRows"] + data["errorRows"] <= data["totalRows"]


def test_errors_list_respects_report_limit(temp_workdir: Path, fake_connect):
    content = build_workbook(["Country Code"], [["XX"]] * 6 + [["BO"]])

    def reject(values):
        return FakeDbError("bad", pgcode="23503") if values[0] == "XX" else None

    payload = handle_upload("aduana.xlsx", content, XLSX, _cfg(error_report_limit=3), fake_connect(FakeCursor(fail_insert=reject)))
    assert payload["data"]["errorRows"] == 6
    assert len(payload["data"]["errors"]) == 3


def test_fail_fast_payload_carries_row_diagnostics(temp_workdir: Path, fake_connect):
    content = build_workbook(["Country Code"], [["XX"], ["BO"]])

    def reject(values):
        return FakeDbError("null value in column", pgcode="23502", column="codigo_pais") if values[0] == "XX" else None

    payload = handle_upload(
        "aduana.xlsx", content, XLSX, _cfg(insert_policy=InsertPolicy.FAIL_FAST),
        fake_connect(FakeCursor(fail_insert=reject)),
    )
    assert payload["success"] is False
    assert payload["error"] == "required field is empty: codigo_pais"
    assert payload["code"] == "23502"
    assert payload["row"] == 2
    assert payload["insertColumns"] == ["codigo_pais"]
    assert payload["data"]["insertedRows"] == 0
