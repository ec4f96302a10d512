from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.load_result import LoadProgress
from ..models.load_state import LoadState

"""Progress display for the insert phase with tqdm (TTY only).

BulkLoadTransaction knows nothing about terminals: it emits LoadProgress
events to an optional callback. LoadProgressBar is such a callback. In non-TTY
environments (CI, HTTP workers) it stays silent to avoid control sequence spam.
"""

__all__ = [
    "LoadProgressBar",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class LoadProgressBar:
    """Callable progress sink rendering a single tqdm bar over data rows."""

    def __init__(self, *, description: str = "Loading rows") -> None:
        self.description = description
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        self.last_event: LoadProgress | None = None

    def _ensure_bar(self, total: int) -> None:
        if self.enabled and self.pbar is None:
            self.pbar = tqdm(
                total=total,
                desc=self.description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def __call__(self, event: LoadProgress) -> None:
        previous = self.last_event.processed_rows if self.last_event else 0
        self.last_event = event
        if event.state is LoadState.INSERTING:
            self._ensure_bar(event.total_rows)
        if self.pbar is None:
            return
        step = event.processed_rows - previous
        if step > 0:
            self.pbar.update(step)
        self.pbar.set_postfix(inserted=event.inserted_rows, failed=event.error_rows)
        if event.state.is_terminal:
            self.close()

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> LoadProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
