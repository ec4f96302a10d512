from __future__ import annotations

import logging
import threading
from typing import Any

from ..coercion.type_coercer import RowCoercer
from ..db.schema import advisory_unlock, fetch_target_columns, try_advisory_lock
from ..errors import ConcurrentLoadError, MappingError
from ..excel.reader import SheetData, read_spreadsheet
from ..logging.error_log import ErrorLogBuffer
from ..mapping.column_mapper import ColumnMapper
from ..models.config_models import IngestConfig
from ..models.load_result import LoadResult
from ..models.target_column import TargetColumn
from .bulk_load import BulkLoadTransaction, ProgressCallback

"""Service orchestration for spreadsheet -> PostgreSQL replace-loads.

run_load() coordinates one upload end to end (parse_upload + load_sheet):

1. parse the workbook (first sheet, header row, data rows)
2. take the per-table advisory lock (optional)
3. validate the target table and introspect its columns
4. map headers onto columns; an empty mapping aborts before anything is cleared
5. clear the table, insert every row, commit
6. release the lock and flush the error log

The cursor is borrowed; connection lifecycle belongs to the caller.
"""

logger = logging.getLogger(__name__)


def resolve_target_columns(cursor: Any, config: IngestConfig) -> list[TargetColumn]:
    """Introspected columns, or the configured fallback list when introspection is empty."""
    columns = fetch_target_columns(cursor, config.table, config.schema)
    if columns:
        return columns
    fallback = config.fallback_target_columns()
    logger.warning(
        "no columns introspected for %s.%s; using %d configured fallback columns",
        config.schema, config.table, len(fallback),
    )
    return fallback


def _load_mapped_sheet(
    sheet: SheetData,
    config: IngestConfig,
    cursor: Any,
    *,
    file_name: str,
    progress_callback: ProgressCallback | None,
    cancel_event: threading.Event | None,
    error_log: ErrorLogBuffer,
) -> LoadResult:
    txn = BulkLoadTransaction(
        cursor,
        config,
        file_name=file_name,
        progress_callback=progress_callback,
        cancel_event=cancel_event,
        error_log=error_log,
    )
    txn.validate()

    target_columns = resolve_target_columns(cursor, config)
    mapping = ColumnMapper.from_config(config).map(sheet.headers, target_columns)
    txn.unmapped_columns = [u.to_dict() for u in mapping.unmapped]
    if mapping.is_empty:
        raise txn.abort(
            MappingError(
                "no spreadsheet column matches a column of the target table",
                headers=list(sheet.headers),
                target_columns=[c.name for c in target_columns],
                unmapped=txn.unmapped_columns,
            )
        )
    logger.info(
        "mapped %d of %d columns onto %s (unmapped=%d)",
        len(mapping), len(sheet.headers), config.table, len(mapping.unmapped),
    )
    logger.debug("match strategies: %s", mapping.strategies_dict())

    coercer = RowCoercer(mapping, target_columns, config.strict_numeric_columns)
    return txn.load(sheet.rows, coercer)


def parse_upload(content: bytes, config: IngestConfig, *, file_name: str = "<upload>") -> SheetData:
    """Parse workbook bytes; no database access.

    Raises:
        InputError: the file is empty, unreadable or has no data rows
    """
    sheet = read_spreadsheet(content, config.keep_na_strings)
    logger.info(
        "parsed file=%s sheet=%s headers=%d rows=%d",
        file_name, sheet.sheet_name, len(sheet.headers), len(sheet.rows),
    )
    return sheet


def load_sheet(
    sheet: SheetData,
    config: IngestConfig,
    cursor: Any,
    *,
    file_name: str = "<upload>",
    progress_callback: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> LoadResult:
    """Replace the contents of the configured table with the rows of ``sheet``.

    Args:
        sheet: parsed spreadsheet (see parse_upload)
        config: validated loader configuration
        cursor: cursor of an autocommit connection (see db/session.py)
        file_name: name recorded in the error log
        progress_callback: receives LoadProgress events
        cancel_event: when set, the insert phase stops and rolls back

    Returns:
        LoadResult of the committed load

    Raises:
        ConcurrentLoadError: another load holds the table lock
        IngestError: any failure after the lock; ``.result`` holds the ABORTED snapshot
    """
    errors = error_log if error_log is not None else ErrorLogBuffer()
    locked = False
    try:
        if config.advisory_lock:
            if not try_advisory_lock(cursor, config.table, config.schema):
                raise ConcurrentLoadError(
                    f"another load of {config.schema}.{config.table} is in progress"
                )
            locked = True
        return _load_mapped_sheet(
            sheet,
            config,
            cursor,
            file_name=file_name,
            progress_callback=progress_callback,
            cancel_event=cancel_event,
            error_log=errors,
        )
    finally:
        if locked:
            try:
                advisory_unlock(cursor, config.table, config.schema)
            except Exception as e:
                logger.warning("failed to release advisory lock on %s: %s", config.table, e)
        path = errors.flush()
        if path is not None:
            logger.info("error log written: %s", path)


def run_load(
    content: bytes,
    config: IngestConfig,
    cursor: Any,
    *,
    file_name: str = "<upload>",
    progress_callback: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> LoadResult:
    """parse_upload() followed by load_sheet() on an already open cursor."""
    sheet = parse_upload(content, config, file_name=file_name)
    return load_sheet(
        sheet,
        config,
        cursor,
        file_name=file_name,
        progress_callback=progress_callback,
        cancel_event=cancel_event,
        error_log=error_log,
    )
