"""Domain models for the customs spreadsheet loader.

This package contains the model classes shared across the pipeline: target
schema description, row data, column mapping and load results.
"""

from .column_mapping import ColumnMapping, MatchStrategy, UnmappedColumn
from .config_models import DatabaseConfig, FallbackColumn, IngestConfig, InsertPolicy
from .load_result import LoadProgress, LoadResult, RowError
from .load_state import LoadState
from .row_data import RowData
from .target_column import TargetColumn, TypeClass

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "FallbackColumn",
    "IngestConfig",
    "InsertPolicy",
    # Schema models
    "TargetColumn",
    "TypeClass",
    # Processing models
    "RowData",
    "ColumnMapping",
    "MatchStrategy",
    "UnmappedColumn",
    "LoadState",
    "LoadProgress",
    "LoadResult",
    "RowError",
]
