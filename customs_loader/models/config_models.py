from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .target_column import TargetColumn, TypeClass

"""Config dataclasses for the customs spreadsheet loader.

The loader in customs_loader/config/loader.py validates the YAML document and
builds these frozen objects; everything downstream receives them explicitly.
"""

__all__ = [
    "InsertPolicy",
    "DatabaseConfig",
    "FallbackColumn",
    "IngestConfig",
    "DEFAULT_STOP_WORDS",
]

# Spanish function words that carry no meaning for header matching
DEFAULT_STOP_WORDS: frozenset[str] = frozenset(
    {"del", "de", "la", "las", "los", "en", "por", "segun", "según", "el", "y", "o", "para", "con"}
)


class InsertPolicy(Enum):
    """Partial-failure policy for the insert phase.

    - FAIL_FAST: the first data row is inserted alone; if it fails the whole
      load aborts with full diagnostics. Later rows are handled as TOLERANT.
    - TOLERANT: failed rows are counted and reported; the load aborts and
      rolls back only when failures exceed ``max_row_errors``.
    """
    FAIL_FAST = "fail_fast"
    TOLERANT = "tolerant"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback configuration.

    Environment variables (DATABASE_URL / PGDSN / PG*) take precedence.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class FallbackColumn:
    """Hard-coded description of a target column, used when introspection returns nothing."""
    name: str
    type: str = "text"
    nullable: bool = True

    def to_target_column(self) -> TargetColumn:
        return TargetColumn(
            name=self.name,
            data_type=self.type,
            type_class=TypeClass.from_data_type(self.type),
            nullable=self.nullable,
        )


@dataclass(frozen=True)
class IngestConfig:
    """Root configuration of one loader deployment."""
    table: str = "hoja1"
    schema: str = "public"
    manual_mapping: dict[str, str] = field(default_factory=dict)
    strict_numeric_columns: frozenset[str] = frozenset()
    fallback_columns: tuple[FallbackColumn, ...] = ()
    insert_policy: InsertPolicy = InsertPolicy.TOLERANT
    max_row_errors: int = 50
    error_report_limit: int = 10
    fuzzy_threshold: float = 0.7
    min_keyword_length: int = 3
    stop_words: frozenset[str] = DEFAULT_STOP_WORDS
    excluded_columns: frozenset[str] = frozenset({"id"})
    keep_na_strings: tuple[str, ...] = ("NA",)
    progress_interval: int = 100
    max_file_bytes: int = 50 * 1024 * 1024
    advisory_lock: bool = True
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def fallback_target_columns(self) -> list[TargetColumn]:
        return [c.to_target_column() for c in self.fallback_columns]
