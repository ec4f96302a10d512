from __future__ import annotations

from unittest.mock import Mock, patch

from customs_loader.models.load_result import LoadProgress
from customs_loader.models.load_state import LoadState
from customs_loader.services.progress import LoadProgressBar, is_tty_enabled


def _event(state: LoadState, processed: int = 0, inserted: int = 0, failed: int = 0, total: int = 10) -> LoadProgress:
    return LoadProgress(state=state, total_rows=total, processed_rows=processed, inserted_rows=inserted, error_rows=failed)


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


class TestLoadProgressBar:
    def test_bar_created_when_inserting_starts(self):
        with patch("customs_loader.services.progress.is_tty_enabled", return_value=True), \
             patch("customs_loader.services.progress.tqdm") as mock_tqdm:
            bar = LoadProgressBar(description="Loading hoja1")
            bar(_event(LoadState.VALIDATING, total=0))
            bar(_event(LoadState.CLEARING))
            mock_tqdm.assert_not_called()

            bar(_event(LoadState.INSERTING))
            mock_tqdm.assert_called_once_with(
                total=10,
                desc="Loading hoja1",
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_updates_by_processed_delta(self):
        pbar = Mock()
        with patch("customs_loader.services.progress.is_tty_enabled", return_value=True), \
             patch("customs_loader.services.progress.tqdm", return_value=pbar):
            bar = LoadProgressBar()
            bar(_event(LoadState.INSERTING))
            bar(_event(LoadState.INSERTING, processed=4, inserted=3, failed=1))
            bar(_event(LoadState.INSERTING, processed=10, inserted=9, failed=1))

        assert [c.args for c in pbar.update.call_args_list] == [(4,), (6,)]
        pbar.set_postfix.assert_called_with(inserted=9, failed=1)

    def test_terminal_state_closes_bar(self):
        pbar = Mock()
        with patch("customs_loader.services.progress.is_tty_enabled", return_value=True), \
             patch("customs_loader.services.progress.tqdm", return_value=pbar):
            bar = LoadProgressBar()
            bar(_event(LoadState.INSERTING))
            bar(_event(LoadState.COMMITTED, processed=10, inserted=10))

        pbar.close.assert_called_once()
        assert bar.pbar is None
        assert bar.last_event.state is LoadState.COMMITTED

    def test_silent_without_tty(self):
        with patch("customs_loader.services.progress.is_tty_enabled", return_value=False), \
             patch("customs_loader.services.progress.tqdm") as mock_tqdm:
            bar = LoadProgressBar()
            bar(_event(LoadState.INSERTING))
            bar(_event(LoadState.ABORTED, processed=3))
            bar.close()

        mock_tqdm.assert_not_called()
        assert bar.enabled is False
        assert bar.last_event.processed_rows == 3

    def test_context_manager_closes(self):
        pbar = Mock()
        with patch("customs_loader.services.progress.is_tty_enabled", return_value=True), \
             patch("customs_loader.services.progress.tqdm", return_value=pbar):
            with LoadProgressBar() as bar:
                bar(_event(LoadState.INSERTING))
        pbar.close.assert_called_once()
