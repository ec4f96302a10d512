from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""TargetColumn domain model and the closed set of coercion type classes.

A TargetColumn is one column of the destination table as reported by
``information_schema.columns`` (or by the configured fallback list). Its
``type_class`` decides which coercion rule applies to incoming cell values.
"""

__all__ = [
    "TypeClass",
    "TargetColumn",
]

_NUMERIC_MARKERS = ("numeric", "integer", "double", "real", "decimal", "smallint", "bigint", "money")
_TEMPORAL_MARKERS = ("date", "timestamp")
_BOOLEAN_MARKERS = ("boolean", "bool")


class TypeClass(Enum):
    """Semantic type class of a target column.

    - NUMERIC: integer / numeric / floating point columns
    - TEMPORAL: date and timestamp columns
    - BOOLEAN: boolean columns
    - TEXT: everything else (varchar, text, char, json ...)
    """
    NUMERIC = "numeric"
    TEMPORAL = "temporal"
    BOOLEAN = "boolean"
    TEXT = "text"

    @classmethod
    def from_data_type(cls, data_type: str | None) -> TypeClass:
        """Classify a PostgreSQL ``data_type`` string (e.g. ``double precision``)."""
        if not data_type:
            return cls.TEXT
        lowered = data_type.lower()
        # "time" alone (time of day) is kept as text; only date/timestamp are temporal
        if any(m in lowered for m in _NUMERIC_MARKERS):
            return cls.NUMERIC
        if any(m in lowered for m in _TEMPORAL_MARKERS):
            return cls.TEMPORAL
        if any(m in lowered for m in _BOOLEAN_MARKERS):
            return cls.BOOLEAN
        return cls.TEXT


@dataclass(frozen=True)
class TargetColumn:
    """One column of the destination table."""
    name: str  # immutable once introspected
    data_type: str  # raw information_schema data_type
    type_class: TypeClass
    nullable: bool = True
    default: Any = None

    @classmethod
    def from_information_schema(
        cls, name: str, data_type: str, is_nullable: str | bool, default: Any = None
    ) -> TargetColumn:
        if isinstance(is_nullable, str):
            nullable = is_nullable.upper() == "YES"
        else:
            nullable = bool(is_nullable)
        return cls(
            name=name,
            data_type=data_type,
            type_class=TypeClass.from_data_type(data_type),
            nullable=nullable,
            default=default,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.data_type,
            "nullable": self.nullable,
            "default": self.default,
        }
