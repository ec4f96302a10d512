from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import UTC, datetime
from pathlib import PurePath
from typing import Any

import psycopg2

from ..db import session
from ..db.row_insert import describe_db_error, is_failed_transaction
from ..db.schema import fetch_target_columns
from ..errors import (
    ClearError,
    IngestError,
    InputError,
    MappingError,
    RowInsertError,
    SchemaError,
    ThresholdError,
    UnsupportedFileError,
)
from ..models.config_models import DatabaseConfig, IngestConfig
from .bulk_load import ProgressCallback
from .pipeline import load_sheet, parse_upload

"""Upload and structure boundary.

Turns one uploaded file into the JSON-ready response of the loader: a success
payload with the LoadResult data, or a failure payload with a human readable
message and the backend diagnostics. Nothing here knows about HTTP.
"""

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".xlsx", ".xls", ".xlsm")
ALLOWED_CONTENT_TYPES = frozenset(
    {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
        "application/vnd.ms-excel.sheet.macroEnabled.12",
    }
)

Connect = Callable[[DatabaseConfig], AbstractContextManager[Any]]


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def check_upload(filename: str | None, content: bytes | None, content_type: str | None, config: IngestConfig) -> None:
    """Reject uploads that are not spreadsheets or exceed ``max_file_bytes``.

    A file passes when either its content type or its extension is a known
    spreadsheet one; browsers report .xlsm inconsistently.
    """
    if not filename or content is None:
        raise InputError("no file was provided")
    suffix = PurePath(filename).suffix.lower()
    if content_type not in ALLOWED_CONTENT_TYPES and suffix not in ALLOWED_EXTENSIONS:
        raise UnsupportedFileError("only spreadsheet files are allowed (.xlsx, .xls, .xlsm)")
    if len(content) > config.max_file_bytes:
        raise UnsupportedFileError(
            f"file is too large ({len(content)} bytes, limit {config.max_file_bytes})"
        )


def friendly_message(error: IngestError) -> str:
    """Human readable text for well-known SQLSTATE codes."""
    if isinstance(error, ThresholdError):
        return error.message
    code = error.code
    if code == "42703":
        return f"column does not exist in the table: {error.column or 'unknown'}"
    if code == "23502":
        return f"required field is empty: {error.column or 'unknown'}"
    if code == "23503":
        return f"foreign key violation: {error.detail or 'value does not exist in the referenced table'}"
    if code == "23505":
        return f"duplicate value: {error.detail or 'already exists in the table'}"
    if code == "22P02":
        return f"invalid data type: {error.detail or 'value does not match the column type'}"
    if code == "25P02" or is_failed_transaction(error):
        return f"the transaction was aborted; original error: {error.detail or error.message}"
    return error.message


def _headline(error: IngestError, table: str) -> str:
    if isinstance(error, InputError):
        return error.message
    if isinstance(error, MappingError):
        return "no spreadsheet column could be mapped onto the table structure"
    if isinstance(error, SchemaError):
        return f"table {table} does not exist in the database"
    if isinstance(error, ClearError):
        return f"failed to clear table {table}"
    return "failed to load the data"


def failure_payload(error: IngestError, config: IngestConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "message": _headline(error, config.table),
        "error": friendly_message(error),
    }
    payload.update(error.diagnostics())
    if isinstance(error, RowInsertError):
        payload["row"] = error.row
        payload["insertColumns"] = error.columns
    if isinstance(error, MappingError):
        payload["excelHeaders"] = error.headers
        payload["dbColumns"] = error.target_columns
        payload["unmappedColumns"] = error.unmapped
    if error.result is not None:
        payload["data"] = error.result.to_payload()
    return payload


def _driver_error(exc: psycopg2.Error) -> IngestError:
    info = describe_db_error(exc)
    return IngestError(info.pop("message"), **info)


def handle_upload(
    filename: str | None,
    content: bytes | None,
    content_type: str | None,
    config: IngestConfig,
    connect: Connect = session.connect,
    *,
    progress_callback: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> dict[str, Any]:
    """Validate, parse and replace-load one uploaded spreadsheet.

    The file is checked and parsed before a database session is opened, so
    user errors never touch the database.

    Returns:
        ``{"success": True, "message", "data": {...}}`` or a failure payload
    """
    try:
        check_upload(filename, content, content_type, config)
        sheet = parse_upload(content, config, file_name=filename or "<upload>")
        with connect(config.database) as cursor:
            result = load_sheet(
                sheet,
                config,
                cursor,
                file_name=filename or "<upload>",
                progress_callback=progress_callback,
                cancel_event=cancel_event,
            )
    except IngestError as e:
        logger.error("upload %s failed: %s", filename, e.message)
        return failure_payload(e, config)
    except psycopg2.Error as e:
        logger.error("upload %s failed on the database: %s", filename, e)
        return failure_payload(_driver_error(e), config)

    return {
        "success": True,
        "message": "data loaded successfully",
        "data": result.to_payload(),
    }


def describe_structure(cursor: Any, config: IngestConfig) -> dict[str, Any]:
    """Column list of the target table in ordinal order."""
    columns = fetch_target_columns(cursor, config.table, config.schema)
    return {
        "success": True,
        "table": config.table,
        "columns": [c.to_dict() for c in columns],
        "timestamp": _utc_timestamp(),
    }


def handle_structure(config: IngestConfig, connect: Connect = session.connect) -> dict[str, Any]:
    try:
        with connect(config.database) as cursor:
            return describe_structure(cursor, config)
    except psycopg2.Error as e:
        logger.error("structure lookup failed: %s", e)
        return {
            "success": False,
            "message": "failed to read the table structure",
            "error": describe_db_error(e)["message"],
        }
