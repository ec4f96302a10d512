from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""ColumnMapping result model.

Produced once per upload by ColumnMapper and never persisted: the target schema
may change between uploads.
"""

__all__ = [
    "MatchStrategy",
    "UnmappedColumn",
    "ColumnMapping",
]

REASON_EMPTY_HEADER = "empty header"
REASON_NO_MATCH = "no match"
REASON_DUPLICATE_TARGET = "duplicate target"


class MatchStrategy(Enum):
    MANUAL = "manual"
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class UnmappedColumn:
    index: int
    header: Any
    reason: str

    def to_dict(self) -> dict[str, Any]:
        header = self.header if self.header not in (None, "") else "(empty)"
        return {"index": self.index, "header": header, "reason": self.reason}


@dataclass(frozen=True)
class ColumnMapping:
    """Spreadsheet column index -> target column name.

    Injective: a target column name appears at most once among the values.
    """
    mapping: dict[int, str]
    unmapped: list[UnmappedColumn] = field(default_factory=list)
    strategies: dict[int, MatchStrategy] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.mapping)

    @property
    def is_empty(self) -> bool:
        return not self.mapping

    def target_columns(self) -> list[str]:
        """Mapped target names ordered by spreadsheet column index."""
        return [self.mapping[i] for i in sorted(self.mapping)]

    def to_dict(self) -> dict[str, str]:
        # JSON object keys are strings
        return {str(i): self.mapping[i] for i in sorted(self.mapping)}

    def strategies_dict(self) -> dict[str, str]:
        """How each mapped column was matched, keyed like ``to_dict``."""
        return {str(i): self.strategies[i].value for i in sorted(self.strategies)}
