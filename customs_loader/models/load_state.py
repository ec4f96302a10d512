from __future__ import annotations

from enum import Enum

"""LoadState enum for the replace-load lifecycle.

State transitions: idle → validating → clearing → inserting → committed,
with aborted reachable from validating, clearing or inserting.
"""

__all__ = [
    "LoadState",
    "ALLOWED_TRANSITIONS",
]


class LoadState(Enum):
    """Status of one BulkLoadTransaction.

    - IDLE: constructed, nothing executed
    - VALIDATING: checking the target table and mapping
    - CLEARING: removing every existing row (irreversible once committed)
    - INSERTING: inserting coerced rows inside one transaction
    - COMMITTED: insert transaction committed
    - ABORTED: stopped; insert transaction (if any) rolled back
    """
    IDLE = "idle"
    VALIDATING = "validating"
    CLEARING = "clearing"
    INSERTING = "inserting"
    COMMITTED = "committed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (LoadState.COMMITTED, LoadState.ABORTED)


ALLOWED_TRANSITIONS: dict[LoadState, frozenset[LoadState]] = {
    LoadState.IDLE: frozenset({LoadState.VALIDATING}),
    LoadState.VALIDATING: frozenset({LoadState.CLEARING, LoadState.ABORTED}),
    LoadState.CLEARING: frozenset({LoadState.INSERTING, LoadState.ABORTED}),
    LoadState.INSERTING: frozenset({LoadState.COMMITTED, LoadState.ABORTED}),
    LoadState.COMMITTED: frozenset(),
    LoadState.ABORTED: frozenset(),
}
