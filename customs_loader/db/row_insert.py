from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..errors import RowInsertError
from .schema import qualified_table, quote_ident

"""Single-row INSERT with savepoint isolation and backend diagnostics.

Each row runs inside ``SAVEPOINT row_insert`` so a failed row is undone on its
own and the surrounding transaction stays usable for the next row. psycopg2
errors are wrapped into RowInsertError carrying SQLSTATE, detail, column and
constraint when the server reported them.
"""

SAVEPOINT = "row_insert"
FAILED_TRANSACTION_SQLSTATE = "25P02"


def build_insert_sql(table: str, columns: Sequence[str], schema: str = "public") -> str:
    cols_sql = ", ".join(quote_ident(c) for c in columns)
    placeholders = ", ".join(["%s"] * len(columns))
    return f"INSERT INTO {qualified_table(table, schema)} ({cols_sql}) VALUES ({placeholders})"


def describe_db_error(exc: BaseException) -> dict[str, Any]:
    """Extract backend diagnostics from a (psycopg2) exception.

    Works with any exception: missing attributes simply yield None.
    """
    diag = getattr(exc, "diag", None)
    message = getattr(diag, "message_primary", None) or str(exc).strip() or type(exc).__name__
    return {
        "message": message,
        "code": getattr(exc, "pgcode", None),
        "detail": getattr(diag, "message_detail", None),
        "column": getattr(diag, "column_name", None),
        "constraint": getattr(diag, "constraint_name", None),
    }


def is_failed_transaction(exc: BaseException) -> bool:
    """True when the server refuses work because the transaction is already aborted."""
    if getattr(exc, "pgcode", None) == FAILED_TRANSACTION_SQLSTATE:
        return True
    return "current transaction is aborted" in str(exc)


def insert_row(
    cursor: Any,
    sql: str,
    values: Sequence[Any],
    *,
    row: int,
    columns: Sequence[str] = (),
) -> None:
    """Insert one row inside its own savepoint.

    Raises:
        RowInsertError: the INSERT failed; the savepoint was rolled back and
            the transaction can continue. ``__cause__`` holds the driver error.
    """
    cursor.execute(f"SAVEPOINT {SAVEPOINT}")
    try:
        cursor.execute(sql, list(values))
    except Exception as e:
        if not is_failed_transaction(e):
            cursor.execute(f"ROLLBACK TO SAVEPOINT {SAVEPOINT}")
        info = describe_db_error(e)
        raise RowInsertError(
            info.pop("message"),
            row=row,
            columns=list(columns),
            values=list(values),
            **info,
        ) from e
    else:
        cursor.execute(f"RELEASE SAVEPOINT {SAVEPOINT}")
