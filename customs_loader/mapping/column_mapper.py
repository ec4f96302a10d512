from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..models.column_mapping import (
    REASON_DUPLICATE_TARGET,
    REASON_EMPTY_HEADER,
    REASON_NO_MATCH,
    ColumnMapping,
    MatchStrategy,
    UnmappedColumn,
)
from ..models.config_models import DEFAULT_STOP_WORDS, IngestConfig
from ..models.target_column import TargetColumn
from .normalizer import normalize_header, tokenize

"""Spreadsheet header -> target column mapping.

Resolution order for each spreadsheet column (first hit wins):

1. manual dictionary (normalized header -> target column name)
2. exact match of the normalized header and the normalized column name
3. fuzzy keyword match against the target columns nobody claimed yet

A target column claimed by an earlier spreadsheet column is never assigned
again, so the mapping is injective. Manual or exact hits on an already
claimed column are dropped and reported, never overwritten.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ColumnMapper",
]


class ColumnMapper:
    """Layered header matcher.

    Args:
        manual_mapping: known header -> target column pairs. Keys may be raw
            headers; they are normalized once here.
        fuzzy_threshold: minimum partial-overlap ratio for the fuzzy rule
        min_keyword_length: tokens of this length or shorter are ignored
        stop_words: tokens ignored by the fuzzy rule
        excluded_columns: target columns that never take part in fuzzy matching
    """

    def __init__(
        self,
        manual_mapping: Mapping[str, str] | None = None,
        *,
        fuzzy_threshold: float = 0.7,
        min_keyword_length: int = 3,
        stop_words: Iterable[str] = DEFAULT_STOP_WORDS,
        excluded_columns: Iterable[str] = ("id",),
    ) -> None:
        if not 0 < fuzzy_threshold <= 1:
            raise ValueError(f"fuzzy_threshold must be in (0, 1], got {fuzzy_threshold}")
        self.fuzzy_threshold = fuzzy_threshold
        self.min_keyword_length = min_keyword_length
        self.stop_words = frozenset(normalize_header(w) or w for w in stop_words)
        self.excluded_columns = frozenset(excluded_columns)
        self.manual_mapping: dict[str, str] = {}
        for header, target in (manual_mapping or {}).items():
            key = normalize_header(header)
            if key is not None:
                self.manual_mapping[key] = target

    @classmethod
    def from_config(cls, config: IngestConfig) -> ColumnMapper:
        return cls(
            config.manual_mapping,
            fuzzy_threshold=config.fuzzy_threshold,
            min_keyword_length=config.min_keyword_length,
            stop_words=config.stop_words,
            excluded_columns=config.excluded_columns,
        )

    def keywords(self, normalized: str | None) -> list[str]:
        """Significant tokens of a normalized name (length and stop-word filtered)."""
        return [
            t for t in tokenize(normalized)
            if len(t) > self.min_keyword_length and t not in self.stop_words
        ]

    @staticmethod
    def _overlaps(token: str, other: str) -> bool:
        return token in other or other in token

    def fuzzy_score(self, header_tokens: Sequence[str], target_tokens: Sequence[str]) -> float:
        """Share of header tokens overlapping a target token, over the smaller token count."""
        if not header_tokens or not target_tokens:
            return 0.0
        matching = [h for h in header_tokens if any(self._overlaps(h, t) for t in target_tokens)]
        return len(matching) / min(len(header_tokens), len(target_tokens))

    def fuzzy_accepts(self, header_tokens: Sequence[str], target_tokens: Sequence[str]) -> bool:
        if not header_tokens or not target_tokens:
            return False
        all_keywords = all(
            any(self._overlaps(h, t) for t in target_tokens) for h in header_tokens
        )
        if all_keywords:
            return True
        return self.fuzzy_score(header_tokens, target_tokens) >= self.fuzzy_threshold

    def map(self, headers: Sequence[Any], target_columns: Sequence[TargetColumn | str]) -> ColumnMapping:
        """Map spreadsheet column indexes onto target column names."""
        names = [c.name if isinstance(c, TargetColumn) else str(c) for c in target_columns]
        known = set(names)
        normalized_targets = {name: normalize_header(name) for name in names}
        exact_index: dict[str, str] = {}
        for name in names:
            key = normalized_targets[name]
            # first column in schema order wins on normalized collisions
            if key is not None and key not in exact_index:
                exact_index[key] = name
        target_tokens = {
            name: self.keywords(normalized_targets[name])
            for name in names
            if name not in self.excluded_columns
        }

        mapping: dict[int, str] = {}
        strategies: dict[int, MatchStrategy] = {}
        unmapped: list[UnmappedColumn] = []
        claimed: dict[str, int] = {}

        for index, raw in enumerate(headers):
            normalized = normalize_header(raw)
            if normalized is None:
                unmapped.append(UnmappedColumn(index, raw, REASON_EMPTY_HEADER))
                continue

            target: str | None = None
            strategy: MatchStrategy | None = None

            manual = self.manual_mapping.get(normalized)
            if manual is not None and manual in known:
                target, strategy = manual, MatchStrategy.MANUAL
            elif normalized in exact_index:
                target, strategy = exact_index[normalized], MatchStrategy.EXACT

            if target is not None and target in claimed:
                logger.debug(
                    "column %d '%s' resolves to '%s' already claimed by column %d",
                    index, raw, target, claimed[target],
                )
                unmapped.append(UnmappedColumn(index, raw, REASON_DUPLICATE_TARGET))
                continue

            if target is None:
                header_tokens = self.keywords(normalized)
                for name in names:
                    if name in claimed or name not in target_tokens:
                        continue
                    if self.fuzzy_accepts(header_tokens, target_tokens[name]):
                        target, strategy = name, MatchStrategy.FUZZY
                        break

            if target is None or strategy is None:
                unmapped.append(UnmappedColumn(index, raw, REASON_NO_MATCH))
                continue

            mapping[index] = target
            strategies[index] = strategy
            claimed[target] = index
            logger.debug("mapped column %d '%s' -> '%s' (%s)", index, raw, target, strategy.value)

        logger.info("column mapping: mapped=%d of %d unmapped=%d", len(mapping), len(headers), len(unmapped))
        return ColumnMapping(mapping=mapping, unmapped=unmapped, strategies=strategies)
