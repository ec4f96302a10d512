from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from customs_loader.models.load_result import LoadResult
from customs_loader.models.load_state import LoadState
from customs_loader.services.summary import render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY table=(\w+) state=(committed|aborted) total=([0-9]+) inserted=([0-9]+) "
    r"failed=([0-9]+) records_in_db=([0-9]+|unknown) elapsed_sec=([0-9]+\.?[0-9]*) "
    r"throughput_rps=([0-9]+\.?[0-9]*)$"
)

START = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)


def _result(seconds: float, **overrides) -> LoadResult:
    fields = dict(
        table="hoja1",
        total_rows=1000,
        inserted_rows=1000,
        error_rows=0,
        records_in_db=1000,
        errors=[],
        column_mapping={0: "codigo_pais"},
        state=LoadState.COMMITTED,
        start_time=START,
        end_time=START + timedelta(seconds=seconds),
    )
    fields.update(overrides)
    return LoadResult(**fields)


def test_committed_load():
    line = render_summary_line(_result(2))
    m = SUMMARY_PATTERN.match(line)
    assert m, line
    assert m.groups() == ("hoja1", "committed", "1000", "1000", "0", "1000", "2", "500")


def test_partial_failure_keeps_three_decimals():
    line = render_summary_line(_result(3, inserted_rows=500, error_rows=2, records_in_db=500))
    m = SUMMARY_PATTERN.match(line)
    assert m, line
    assert m.group(5) == "2"
    assert m.group(8) == "166.667"


def test_aborted_load_with_unknown_count():
    line = render_summary_line(
        _result(1.5, state=LoadState.ABORTED, inserted_rows=0, error_rows=51, records_in_db=None)
    )
    assert SUMMARY_PATTERN.match(line), line
    assert "state=aborted" in line
    assert "records_in_db=unknown" in line
    assert line.endswith("elapsed_sec=1.5 throughput_rps=0")


def test_zero_elapsed_time():
    line = render_summary_line(_result(0))
    assert line.endswith("elapsed_sec=0 throughput_rps=0")


def test_small_values_avoid_scientific_notation():
    line = render_summary_line(_result(0.001234, inserted_rows=0))
    assert "elapsed_sec=0.001234" in line
    assert "e-" not in line
