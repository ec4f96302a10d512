# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pandas as pd
import pytest

from customs_loader.logging.init import reset_logging
from customs_loader.models.config_models import IngestConfig


class FakeDbError(Exception):
    """Stand-in for a psycopg2 error: carries pgcode and a diag namespace."""

    def __init__(
        self,
        message: str,
        pgcode: str | None = None,
        detail: str | None = None,
        column: str | None = None,
        constraint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = SimpleNamespace(
            message_primary=message,
            message_detail=detail,
            column_name=column,
            constraint_name=constraint,
        )


DEFAULT_COLUMNS = [
    ("id", "integer", "NO", "nextval('hoja1_id_seq'::regclass)"),
    ("codigo_pais", "text", "YES", None),
    ("valor_usd", "numeric", "YES", None),
    ("fecha", "date", "YES", None),
]


class FakeCursor:
    """In-memory PostgreSQL emulation for the statements the loader issues.

    Autocommit semantics: outside BEGIN/COMMIT every statement is applied
    directly. Inside a transaction changes stay pending until COMMIT.

    Knobs:
        table_present: answer of the information_schema.tables probe
        columns: rows of information_schema.columns
        fail_insert: callable(params) -> exception or None, per INSERT
        truncate_residual: rows that "survive" TRUNCATE
        truncate_error / commit_error: raised on those statements
        lock_available: answer of pg_try_advisory_lock
    """

    def __init__(
        self,
        *,
        table_present: bool = True,
        columns: list[tuple[str, str, str, Any]] | None = None,
        existing_rows: int = 0,
        fail_insert: Callable[[list[Any]], Exception | None] | None = None,
        truncate_residual: int = 0,
        truncate_error: Exception | None = None,
        commit_error: Exception | None = None,
        lock_available: bool = True,
    ) -> None:
        self.table_present = table_present
        self.columns = list(DEFAULT_COLUMNS if columns is None else columns)
        self.committed: list[tuple[Any, ...]] = [("old",)] * existing_rows
        self.pending: list[tuple[Any, ...]] = []
        self.savepoint: list[tuple[Any, ...]] = []
        self.in_tx = False
        self.fail_insert = fail_insert
        self.truncate_residual = truncate_residual
        self.truncate_error = truncate_error
        self.commit_error = commit_error
        self.lock_available = lock_available
        self.lock_held = False
        self.executed: list[tuple[str, Any]] = []
        self.closed = False
        self._result: list[tuple[Any, ...]] = []

    # -- helpers for assertions ------------------------------------------

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]

    def inserted_params(self) -> list[tuple[Any, ...]]:
        return [tuple(p) for sql, p in self.executed if sql.startswith("INSERT INTO")]

    # -- DB-API surface ----------------------------------------------------

    def _rows(self) -> list[tuple[Any, ...]]:
        return self.pending if self.in_tx else self.committed

    def execute(self, sql: str, params: Any = None) -> None:
        self.executed.append((sql, params))
        self._result = []
        s = sql.strip()
        if s == "BEGIN":
            self.in_tx = True
            self.pending = list(self.committed)
        elif s == "COMMIT":
            if self.commit_error is not None:
                raise self.commit_error
            self.committed = list(self.pending)
            self.in_tx = False
        elif s.startswith("ROLLBACK TO SAVEPOINT"):
            self.pending = list(self.savepoint)
        elif s == "ROLLBACK":
            self.pending = []
            self.in_tx = False
        elif s.startswith("SAVEPOINT"):
            self.savepoint = list(self.pending)
        elif s.startswith("RELEASE SAVEPOINT"):
            pass
        elif "information_schema.tables" in s:
            self._result = [(self.table_present,)]
        elif "information_schema.columns" in s:
            self._result = list(self.columns)
        elif s.startswith("SELECT COUNT(*)"):
            self._result = [(len(self._rows()),)]
        elif s.startswith("TRUNCATE"):
            if self.truncate_error is not None:
                raise self.truncate_error
            residual = [("residual",)] * self.truncate_residual
            if self.in_tx:
                self.pending = residual
            else:
                self.committed = residual
        elif "pg_try_advisory_lock" in s:
            self._result = [(self.lock_available,)]
            self.lock_held = self.lock_available
        elif "pg_advisory_unlock" in s:
            self._result = [(self.lock_held,)]
            self.lock_held = False
        elif s.startswith("INSERT INTO"):
            values = list(params or [])
            if self.fail_insert is not None:
                error = self.fail_insert(values)
                if error is not None:
                    raise error
            self._rows().append(tuple(values))
        else:  # pragma: no cover
            raise AssertionError(f"unexpected SQL: {sql}")

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._result[0] if self._result else None

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self._result)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_cursor() -> FakeCursor:
    return FakeCursor()


@pytest.fixture()
def fake_connect() -> Callable[..., Any]:
    """Factory: fake_connect(cursor) -> connect(db_cfg) context manager yielding it."""

    def factory(cursor: FakeCursor) -> Callable[[Any], Any]:
        @contextmanager
        def connect(_db_cfg: Any) -> Iterator[FakeCursor]:
            try:
                yield cursor
            finally:
                cursor.close()

        return connect

    return factory


def build_workbook(headers: list[Any], rows: list[list[Any]], sheet_name: str = "Hoja1") -> bytes:
    """xlsx bytes with ``headers`` in row 1 and ``rows`` below (pandas + openpyxl)."""
    buf = io.BytesIO()
    frame = pd.DataFrame([headers, *rows])
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name, index=False, header=False)
    return buf.getvalue()


@pytest.fixture()
def make_workbook() -> Callable[..., bytes]:
    return build_workbook


@pytest.fixture()
def sample_workbook() -> bytes:
    return build_workbook(
        ["Country Code", "Value (USD)", None],
        [
            ["BO", 1500.5, "x"],
            ["NA", 200, None],
            ["PE", "1,000.25", "y"],
        ],
    )


@pytest.fixture()
def ingest_config(temp_workdir: Path) -> IngestConfig:
    return IngestConfig(
        table="hoja1",
        manual_mapping={"Country Code": "codigo_pais", "Value (USD)": "valor_usd"},
        strict_numeric_columns=frozenset({"valor_usd"}),
    )


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """table: hoja1
schema: public
manual_mapping:
  "Country Code": codigo_pais
  "Value (USD)": valor_usd
strict_numeric_columns: [valor_usd]
fallback_columns:
  - {name: codigo_pais, type: text}
  - {name: valor_usd, type: numeric}
  - {name: fecha, type: date}
insert_policy: tolerant
max_row_errors: 50
error_report_limit: 10
keep_na_strings: ["NA"]
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture(autouse=True)
def _fresh_logging() -> Iterator[None]:
    """Undo setup_logging() so caplog sees records of the next test."""
    yield
    reset_logging()
