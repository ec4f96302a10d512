from __future__ import annotations

import argparse
import json
import mimetypes
import sys
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from customs_loader.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from customs_loader.db.session import connect
from customs_loader.errors import IngestError
from customs_loader.logging.init import enable_debug, log_summary, setup_logging
from customs_loader.mapping.column_mapper import ColumnMapper
from customs_loader.models.config_models import IngestConfig
from customs_loader.models.load_result import LoadResult
from customs_loader.services.pipeline import load_sheet, parse_upload
from customs_loader.services.progress import LoadProgressBar
from customs_loader.services.summary import render_summary_line
from customs_loader.services.upload import check_upload, failure_payload, handle_structure

"""CLI entrypoint.

Commands:
- load FILE       replace the target table with the rows of FILE
- structure       print the column list of the target table
- inspect FILE    print headers, first rows and a mapping preview (no database)

Exit codes: 0 success, 2 loaded with row errors, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="customs-loader", description="Spreadsheet -> PostgreSQL replace loader")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    load = sub.add_parser("load", help="Replace the target table with the rows of FILE")
    load.add_argument("file", type=Path)
    load.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    sub.add_parser("structure", help="Print the target table columns")

    inspect = sub.add_parser("inspect", help="Print headers, sample rows and a mapping preview")
    inspect.add_argument("file", type=Path)
    inspect.add_argument("--rows", type=int, default=3, help="Number of sample rows")
    return p.parse_args(argv)


def _emit_summary(result: LoadResult | None) -> None:
    if result is None:
        return
    log_summary(render_summary_line(result))


def _cmd_load(cfg: IngestConfig, path: Path, show_progress: bool, logger: Any) -> int:
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.error(f"cannot read {path}: {e}")
        return EXIT_FATAL
    content_type, _ = mimetypes.guess_type(path.name)

    progress = LoadProgressBar() if show_progress else None
    try:
        check_upload(path.name, content, content_type, cfg)
        sheet = parse_upload(content, cfg, file_name=path.name)
        with connect(cfg.database) as cur:
            result = load_sheet(sheet, cfg, cur, file_name=path.name, progress_callback=progress)
    except IngestError as e:
        logger.error(f"load: {e.message}")
        _print_json(failure_payload(e, cfg))
        _emit_summary(e.result)
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"load: database error: {e}")
        return EXIT_FATAL
    finally:
        if progress is not None:
            progress.close()

    _print_json({"success": True, "message": "data loaded successfully", "data": result.to_payload()})
    _emit_summary(result)
    return EXIT_PARTIAL_FAILURE if result.error_rows > 0 else EXIT_SUCCESS_ALL


def _cmd_structure(cfg: IngestConfig) -> int:
    payload = handle_structure(cfg, connect)
    _print_json(payload)
    return EXIT_SUCCESS_ALL if payload["success"] else EXIT_FATAL


def _cmd_inspect(cfg: IngestConfig, path: Path, rows: int, logger: Any) -> int:
    try:
        sheet = parse_upload(path.read_bytes(), cfg, file_name=path.name)
    except OSError as e:
        logger.error(f"inspect: cannot read {path}: {e}")
        return EXIT_FATAL
    except IngestError as e:
        logger.error(f"inspect: {e.message}")
        return EXIT_FATAL

    # preview only: mapped against the configured fallback column list
    mapping = ColumnMapper.from_config(cfg).map(sheet.headers, cfg.fallback_target_columns())
    _print_json(
        {
            "file": path.name,
            "sheet": sheet.sheet_name,
            "headers": sheet.headers,
            "rows": len(sheet.rows),
            "sample": [{"row": r.row_number, "values": r.values} for r in sheet.rows[: max(rows, 0)]],
            "columnMapping": mapping.to_dict(),
            "matchStrategies": mapping.strategies_dict(),
            "unmappedColumns": [u.to_dict() for u in mapping.unmapped],
        }
    )
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # an explicit empty list must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    if args.debug:
        enable_debug(logger)

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "load":
        return _cmd_load(cfg, args.file, not args.no_progress, logger)
    if args.command == "structure":
        return _cmd_structure(cfg)
    return _cmd_inspect(cfg, args.file, args.rows, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
