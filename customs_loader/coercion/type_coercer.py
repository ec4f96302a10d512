from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

import pandas as pd

from ..models.column_mapping import ColumnMapping
from ..models.row_data import RowData
from ..models.target_column import TargetColumn, TypeClass

"""Cell value coercion into the semantic type of the target column.

Every rule maps blank input (None, NaN, empty or whitespace-only strings) to
None. Values that cannot be converted also become None; the database then
applies its own nullability rules at insert time.
"""

__all__ = [
    "EXCEL_EPOCH",
    "TRUE_STRINGS",
    "coerce",
    "enforce_numeric",
    "RowCoercer",
]

# Day 0 of spreadsheet serial dates; absorbs the 1900 leap-year bug
EXCEL_EPOCH = datetime(1899, 12, 30)
TRUE_STRINGS = frozenset({"true", "1", "si", "sí", "yes"})

_NOT_NUMERIC_CHARS = re.compile(r"[^0-9.\-]")
# leading number of the cleaned text: "1.2.3" -> "1.2", "5-3" -> "5"
_NUMERIC_PREFIX = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and value.strip() == ""


def _is_number(value: Any) -> bool:
    # bool is an int subclass but not a spreadsheet number
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _coerce_numeric(value: Any) -> Any:
    if _is_number(value):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            number = None
        # "nan" and "inf" fall through and end up as None
        if number is not None and math.isfinite(number):
            return number
        # "1.234,56" -> "1.23456": separators are not interpreted
        match = _NUMERIC_PREFIX.match(_NOT_NUMERIC_CHARS.sub("", text))
        if match is None:
            return None
        return float(match.group())
    return None


def _coerce_temporal(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, (datetime, date)):
        return value
    if _is_number(value):
        try:
            return EXCEL_EPOCH + timedelta(days=float(value))
        except (OverflowError, ValueError):
            return None
    if isinstance(value, str):
        parsed = pd.to_datetime(value.strip(), errors="coerce")
        if parsed is pd.NaT or pd.isna(parsed):
            return None
        return parsed.to_pydatetime()
    return None


def _coerce_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    if _is_number(value):
        return value != 0
    return bool(value)


def _coerce_text(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return str(value)


_COERCERS: dict[TypeClass, Callable[[Any], Any]] = {
    TypeClass.NUMERIC: _coerce_numeric,
    TypeClass.TEMPORAL: _coerce_temporal,
    TypeClass.BOOLEAN: _coerce_boolean,
    TypeClass.TEXT: _coerce_text,
}


def coerce(value: Any, type_class: TypeClass) -> Any:
    """Convert a raw cell value to ``type_class`` or None.

    >>> coerce(" 1,500.25 USD", TypeClass.NUMERIC)
    1500.25
    >>> coerce("Sí", TypeClass.BOOLEAN)
    True
    >>> coerce("", TypeClass.TEXT) is None
    True
    """
    if _is_blank(value):
        return None
    return _COERCERS[type_class](value)


def enforce_numeric(value: Any) -> Any:
    """Strict post-filter for columns known to be numeric: anything else is None."""
    if _is_number(value):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        return value
    return None


class RowCoercer:
    """Turns RowData into the value list of an INSERT under a fixed mapping.

    Only mapped target columns are inserted, in spreadsheet column order;
    unmapped target columns are left to their database defaults.
    """

    def __init__(
        self,
        mapping: ColumnMapping,
        target_columns: Sequence[TargetColumn],
        strict_numeric_columns: Iterable[str] = (),
    ) -> None:
        by_name = {c.name: c for c in target_columns}
        self.source_indexes: list[int] = sorted(mapping.mapping)
        self.columns: list[str] = mapping.target_columns()
        self.type_classes: list[TypeClass] = [
            by_name[name].type_class if name in by_name else TypeClass.TEXT
            for name in self.columns
        ]
        strict = set(strict_numeric_columns)
        self.strict_flags: list[bool] = [name in strict for name in self.columns]

    def coerce_row(self, row: RowData) -> list[Any]:
        values: list[Any] = []
        for index, type_class, strict in zip(
            self.source_indexes, self.type_classes, self.strict_flags, strict=True
        ):
            value = coerce(row.cell(index), type_class)
            if strict:
                value = enforce_numeric(value)
            values.append(value)
        return values
