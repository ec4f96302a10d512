from __future__ import annotations

from ..models.load_result import LoadResult

"""SUMMARY line rendering for a finished load.

Format:
SUMMARY table={table} state={state} total={total} inserted={inserted}
failed={failed} records_in_db={count} elapsed_sec={elapsed} throughput_rps={rps}
"""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: LoadResult) -> str:
    """Render the SUMMARY line for ``result``.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from customs_loader.models.load_state import LoadState
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = LoadResult(
        ...     table="hoja1", total_rows=1000, inserted_rows=998, error_rows=2,
        ...     records_in_db=998, errors=[], column_mapping={}, state=LoadState.COMMITTED,
        ...     start_time=start, end_time=end,
        ... )
        >>> render_summary_line(result)
        'SUMMARY table=hoja1 state=committed total=1000 inserted=998 failed=2 records_in_db=998 elapsed_sec=2 throughput_rps=499'
    """
    records = "unknown" if result.records_in_db is None else str(result.records_in_db)
    return (
        f"SUMMARY table={result.table} "
        f"state={result.state.value} "
        f"total={result.total_rows} "
        f"inserted={result.inserted_rows} "
        f"failed={result.error_rows} "
        f"records_in_db={records} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )
