from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from ..coercion.type_coercer import RowCoercer
from ..db.row_insert import build_insert_sql, describe_db_error, insert_row, is_failed_transaction
from ..db.schema import count_rows, table_exists, truncate_table
from ..errors import (
    ClearError,
    IngestError,
    LoadCancelledError,
    RowInsertError,
    SchemaError,
    ThresholdError,
    TransactionStateError,
)
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.config_models import IngestConfig, InsertPolicy
from ..models.load_result import LoadProgress, LoadResult, RowError
from ..models.load_state import ALLOWED_TRANSITIONS, LoadState
from ..models.row_data import RowData

"""Replace-load transaction: validate → clear → insert → commit.

The clear step is committed on its own before any row is inserted, so it is
irreversible: a failure after it leaves the table empty or, for tolerated row
failures, partially loaded. The insert step runs in one transaction with a
savepoint per row, which lets individual rows fail without poisoning the rest.
"""

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[LoadProgress], None]


def _error_type(error: Exception) -> str:
    """'ThresholdError' -> 'THRESHOLD_ERROR'"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(error).__name__).upper()


class BulkLoadTransaction:
    """State machine for one replace-load over a borrowed cursor.

    Typical use (see services/pipeline.py)::

        txn = BulkLoadTransaction(cursor, config)
        txn.validate()                # SchemaError if the table is missing
        ...                           # introspect + map columns
        result = txn.load(rows, RowCoercer(mapping, columns, strict_cols))
    """

    def __init__(
        self,
        cursor: Any,
        config: IngestConfig,
        *,
        file_name: str = "<upload>",
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.cursor = cursor
        self.table = config.table
        self.schema = config.schema
        self.policy = config.insert_policy
        self.max_row_errors = config.max_row_errors
        self.error_report_limit = config.error_report_limit
        self.progress_interval = max(1, config.progress_interval)
        self.file_name = file_name
        self.progress_callback = progress_callback
        self.cancel_event = cancel_event
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()

        self.state = LoadState.IDLE
        self.start_time = datetime.now(UTC)
        self.total_rows = 0
        self.processed_rows = 0
        self.inserted_rows = 0
        self.error_rows = 0
        self.errors: list[RowError] = []
        self.records_in_db: int | None = None
        self.column_mapping: dict[int, str] = {}
        self.unmapped_columns: list[dict[str, Any]] = []
        self._in_transaction = False

    # -- state handling -------------------------------------------------

    def _transition(self, new_state: LoadState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise TransactionStateError(
                f"illegal load state transition {self.state.value} -> {new_state.value}"
            )
        logger.debug("load table=%s state %s -> %s", self.table, self.state.value, new_state.value)
        self.state = new_state
        self._emit()

    def _emit(self) -> None:
        if self.progress_callback is None:
            return
        self.progress_callback(
            LoadProgress(
                state=self.state,
                total_rows=self.total_rows,
                processed_rows=self.processed_rows,
                inserted_rows=self.inserted_rows,
                error_rows=self.error_rows,
            )
        )

    def _record(self, row: int, error_type: str, message: str, code: str | None = None) -> None:
        self.error_log.append(
            ErrorRecord.create(
                file=self.file_name,
                table=self.table,
                row=row,
                error_type=error_type,
                db_message=message,
                code=code,
            )
        )

    def _rollback(self) -> None:
        if not self._in_transaction:
            return
        try:
            self.cursor.execute("ROLLBACK")
            logger.info("load table=%s transaction rolled back", self.table)
        except Exception as e:
            logger.error("load table=%s ROLLBACK failed: %s", self.table, e)
            self._record(-1, "TRANSACTION_ROLLBACK_ERROR", str(e))
        finally:
            self._in_transaction = False

    def abort(self, error: IngestError) -> IngestError:
        """Roll back anything open, move to ABORTED and attach the result snapshot."""
        self._rollback()
        if not self.state.is_terminal:
            self._transition(LoadState.ABORTED)
        if self.state is LoadState.ABORTED:
            # rolled back: nothing from the insert phase survives
            self.inserted_rows = 0
        self._record(getattr(error, "row", -1), _error_type(error), error.message, error.code)
        error.result = self.result()
        return error

    def result(self) -> LoadResult:
        return LoadResult(
            table=self.table,
            total_rows=self.total_rows,
            inserted_rows=self.inserted_rows,
            error_rows=self.error_rows,
            records_in_db=self.records_in_db,
            errors=list(self.errors),
            column_mapping=dict(self.column_mapping),
            state=self.state,
            start_time=self.start_time,
            end_time=datetime.now(UTC),
            unmapped_columns=list(self.unmapped_columns),
        )

    # -- phases -----------------------------------------------------------

    def validate(self) -> None:
        """IDLE → VALIDATING; abort with SchemaError when the target table is absent."""
        self._transition(LoadState.VALIDATING)
        try:
            exists = table_exists(self.cursor, self.table, self.schema)
        except Exception as e:
            info = describe_db_error(e)
            raise self.abort(
                SchemaError(f"could not check table {self.schema}.{self.table}: {info.pop('message')}", **info)
            ) from e
        if not exists:
            raise self.abort(SchemaError(f"table {self.schema}.{self.table} does not exist"))
        logger.info("load table=%s.%s exists", self.schema, self.table)

    def _clear(self) -> None:
        self._transition(LoadState.CLEARING)
        try:
            before = count_rows(self.cursor, self.table, self.schema)
            self.cursor.execute("BEGIN")
            self._in_transaction = True
            truncate_table(self.cursor, self.table, self.schema)
            self.cursor.execute("COMMIT")
            self._in_transaction = False
            remaining = count_rows(self.cursor, self.table, self.schema)
        except Exception as e:
            info = describe_db_error(e)
            raise self.abort(ClearError(f"clearing {self.table} failed: {info.pop('message')}", **info)) from e
        if remaining != 0:
            raise self.abort(ClearError(f"clearing {self.table} left {remaining} rows behind"))
        logger.info("load table=%s cleared (removed %d rows)", self.table, before)

    def _insert(self, rows: Sequence[RowData], coercer: RowCoercer) -> None:
        self._transition(LoadState.INSERTING)
        sql = build_insert_sql(self.table, coercer.columns, self.schema)
        logger.debug("insert sql: %s", sql)
        self.cursor.execute("BEGIN")
        self._in_transaction = True

        for position, row in enumerate(rows):
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise LoadCancelledError(
                    f"load cancelled after {self.processed_rows} of {self.total_rows} rows"
                )
            values = coercer.coerce_row(row)
            try:
                insert_row(self.cursor, sql, values, row=row.row_number, columns=coercer.columns)
            except RowInsertError as e:
                self._on_row_error(e, first_row=(position == 0))
            else:
                self.inserted_rows += 1
            self.processed_rows += 1
            if self.processed_rows % self.progress_interval == 0:
                logger.debug("load table=%s processed=%d inserted=%d failed=%d",
                             self.table, self.processed_rows, self.inserted_rows, self.error_rows)
                self._emit()

        try:
            self.cursor.execute("COMMIT")
        except Exception as e:
            info = describe_db_error(e)
            if is_failed_transaction(e):
                raise TransactionStateError(f"commit refused: {info.pop('message')}", **info) from e
            raise IngestError(f"commit failed: {info.pop('message')}", **info) from e
        self._in_transaction = False

    def _on_row_error(self, error: RowInsertError, *, first_row: bool) -> None:
        if error.code == "25P02" or is_failed_transaction(error):
            raise TransactionStateError(
                f"transaction already aborted at row {error.row}: {error.message}",
                code=error.code,
            ) from error
        if first_row and self.policy is InsertPolicy.FAIL_FAST:
            logger.error(
                "first row %d failed: %s code=%s detail=%s column=%s constraint=%s columns=%s values=%s",
                error.row, error.message, error.code, error.detail, error.column,
                error.constraint, error.columns, error.values,
            )
            self.error_rows += 1
            self.errors.append(self._row_error(error))
            raise error

        self.error_rows += 1
        if len(self.errors) < self.error_report_limit:
            self.errors.append(self._row_error(error))
        self._record(error.row, "ROW_INSERT_ERROR", error.message, error.code)
        if self.error_rows <= 5:
            logger.warning("row %d failed: %s", error.row, error.message)
        if self.error_rows > self.max_row_errors:
            first = self.errors[0] if self.errors else self._row_error(error)
            raise ThresholdError(
                f"too many row errors ({self.error_rows} > {self.max_row_errors}); "
                f"first error at row {first.row}: {first.message}",
                code=first.code,
                detail=first.detail,
                column=first.column,
                constraint=first.constraint,
            )

    @staticmethod
    def _row_error(error: RowInsertError) -> RowError:
        return RowError(
            row=error.row,
            message=error.message,
            code=error.code,
            detail=error.detail,
            column=error.column,
            constraint=error.constraint,
        )

    def _verify_committed(self) -> None:
        self._transition(LoadState.COMMITTED)
        try:
            self.records_in_db = count_rows(self.cursor, self.table, self.schema)
        except Exception as e:
            # committed data is authoritative; a failed recount is only reported
            logger.warning("load table=%s recount failed after commit: %s", self.table, e)
            return
        if self.records_in_db != self.inserted_rows:
            logger.warning(
                "load table=%s inserted %d rows but table holds %d",
                self.table, self.inserted_rows, self.records_in_db,
            )

    def load(self, rows: Sequence[RowData], coercer: RowCoercer) -> LoadResult:
        """VALIDATING → CLEARING → INSERTING → COMMITTED.

        Raises:
            ClearError: truncate failed or rows remained; nothing inserted
            RowInsertError: first row failed under FAIL_FAST
            ThresholdError: row failures exceeded ``max_row_errors``
            TransactionStateError: server reported an already aborted transaction
            LoadCancelledError: ``cancel_event`` was set
        All of them carry ``.result`` with the ABORTED snapshot.
        """
        if self.state is not LoadState.VALIDATING:
            raise TransactionStateError(f"load() requires state validating, got {self.state.value}")
        self.total_rows = len(rows)
        self.column_mapping = {i: c for i, c in zip(coercer.source_indexes, coercer.columns, strict=True)}

        self._clear()
        try:
            self._insert(rows, coercer)
        except IngestError as e:
            self.abort(e)
            raise
        except Exception as e:
            info = describe_db_error(e)
            raise self.abort(IngestError(f"insert phase failed: {info.pop('message')}", **info)) from e

        self._verify_committed()
        logger.info(
            "load table=%s committed total=%d inserted=%d failed=%d records_in_db=%s",
            self.table, self.total_rows, self.inserted_rows, self.error_rows, self.records_in_db,
        )
        return self.result()
