from __future__ import annotations

import logging
from typing import Any

from ..models.target_column import TargetColumn

"""Target table introspection and table-level statements.

All helpers take a DB-API cursor and quote identifiers themselves; table and
schema names come from validated configuration, never from the spreadsheet.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "quote_ident",
    "qualified_table",
    "table_exists",
    "fetch_target_columns",
    "count_rows",
    "truncate_table",
    "try_advisory_lock",
    "advisory_unlock",
]


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def qualified_table(table: str, schema: str = "public") -> str:
    return f"{quote_ident(schema)}.{quote_ident(table)}"


def table_exists(cursor: Any, table: str, schema: str = "public") -> bool:
    cursor.execute(
        "SELECT EXISTS (SELECT FROM information_schema.tables "
        "WHERE table_schema = %s AND table_name = %s)",
        (schema, table),
    )
    row = cursor.fetchone()
    return bool(row and row[0])


def fetch_target_columns(cursor: Any, table: str, schema: str = "public") -> list[TargetColumn]:
    """Columns of the target table in ordinal order."""
    cursor.execute(
        "SELECT column_name, data_type, is_nullable, column_default "
        "FROM information_schema.columns "
        "WHERE table_schema = %s AND table_name = %s "
        "ORDER BY ordinal_position",
        (schema, table),
    )
    columns = [
        TargetColumn.from_information_schema(name, data_type, is_nullable, default)
        for name, data_type, is_nullable, default in cursor.fetchall()
    ]
    logger.debug("introspected table=%s.%s columns=%d", schema, table, len(columns))
    return columns


def count_rows(cursor: Any, table: str, schema: str = "public") -> int:
    cursor.execute(f"SELECT COUNT(*) FROM {qualified_table(table, schema)}")
    row = cursor.fetchone()
    return int(row[0]) if row else 0


def truncate_table(cursor: Any, table: str, schema: str = "public") -> None:
    cursor.execute(f"TRUNCATE TABLE {qualified_table(table, schema)} RESTART IDENTITY CASCADE")


def _lock_key(table: str, schema: str) -> str:
    return f"customs_loader:{schema}.{table}"


def try_advisory_lock(cursor: Any, table: str, schema: str = "public") -> bool:
    """Session-level advisory lock keyed on the table name; False if someone holds it."""
    cursor.execute("SELECT pg_try_advisory_lock(hashtext(%s))", (_lock_key(table, schema),))
    row = cursor.fetchone()
    return bool(row and row[0])


def advisory_unlock(cursor: Any, table: str, schema: str = "public") -> None:
    cursor.execute("SELECT pg_advisory_unlock(hashtext(%s))", (_lock_key(table, schema),))
