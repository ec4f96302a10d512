from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extensions

from ..models.config_models import DatabaseConfig

"""Scoped database session.

One connection is borrowed per load and released exactly once, whatever the
exit path. Connection parameters resolve in this order:

1. DATABASE_URL / PGDSN environment variables (whole DSN)
2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE variables
3. the ``database`` section of the YAML config
"""

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[Any]:
    """Yield a cursor whose transactions are driven by explicit BEGIN/COMMIT/ROLLBACK.

    The connection runs in autocommit mode so that the statements issued by the
    load itself are the only transaction boundaries. A transaction still open
    on exit is rolled back before the connection is closed.
    """
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = True
    cur = None
    try:
        cur = conn.cursor()
        yield cur
    finally:
        try:
            if cur is not None and not conn.closed and (
                conn.get_transaction_status() != psycopg2.extensions.TRANSACTION_STATUS_IDLE
            ):
                # autocommit mode: conn.rollback() would be a no-op
                logger.warning("session closed with an open transaction -> ROLLBACK")
                cur.execute("ROLLBACK")
        finally:
            if cur is not None and not cur.closed:
                cur.close()
            conn.close()
            logger.debug("database session released")
