from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Sequence

from ..config import load_db_path
from ..logging import get_logger
from ..orchestrator.routesheet import RouteSheetDatabase, RouteSheetImportService
from ..orchestrator.routesheet.parser import PayloadParseError, coerce_row, load_ai_response
from ..orchestrator.routesheet.validator import (
    convert_ai_response_to_sql,
    detect_column_shift,
    format_coordinate_table,
)
from ..paths import expand_abs

LOG = get_logger("cli-main")

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_UNREADABLE = 2


def _open_service(ns: argparse.Namespace) -> RouteSheetImportService:
    db_path = ns.db or load_db_path(os.getcwd())
    return RouteSheetImportService(RouteSheetDatabase(root_dir=os.getcwd(), db_path=db_path))


def _load(source: str) -> dict | None:
    path = expand_abs(source)
    try:
        return load_ai_response(path)
    except OSError as exc:
        LOG.error(f"Cannot read {path}: {exc}")
    except PayloadParseError as exc:
        LOG.error(f"{path}: {exc}")
    return None


def _handle_validate(ns: argparse.Namespace) -> int:
    payload = _load(ns.source)
    if payload is None:
        return EXIT_UNREADABLE
    if ns.table or ns.check_shift:
        rows = payload.get("rows")
        for index, raw in enumerate(rows if isinstance(rows, list) else [], start=1):
            try:
                row = coerce_row(raw, index)
            except ValueError:
                continue
            if ns.table:
                print(format_coordinate_table(row), file=sys.stderr)
            if ns.check_shift:
                for notice in detect_column_shift(row):
                    LOG.warning(f"Row {row.row_number}: possible column shift: {notice}")
    result = convert_ai_response_to_sql(payload, log_mapping=not ns.table)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_OK if result.success else EXIT_REJECTED


def _handle_import(ns: argparse.Namespace) -> int:
    payload = _load(ns.source)
    if payload is None:
        return EXIT_UNREADABLE
    svc = _open_service(ns)
    summary = svc.import_payload(payload, source=os.path.basename(ns.source))
    print(json.dumps(summary, ensure_ascii=False))
    return EXIT_OK if summary["success"] else EXIT_REJECTED


def _handle_init_db(ns: argparse.Namespace) -> int:
    path = _open_service(ns).init_database()
    LOG.info(f"Route sheet DB ready at: {path}")
    print(path)
    return EXIT_OK


def _handle_serve(ns: argparse.Namespace) -> int:
    from ..orchestrator.routesheet.api import create_app
    import uvicorn

    allow_origins = ns.allow_origins
    if allow_origins and "*" in allow_origins:
        allow_origins = ["*"]

    app = create_app(root_dir=os.getcwd(), db_path=ns.db, allow_origins=allow_origins)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="routesheet-auto",
        description="Validate and store route-sheet tables extracted by a vision model.",
    )
    parser.add_argument("--db", help="SQLite file (defaults to ROUTESHEET_DB_PATH or var/routesheet/)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser(
        "validate",
        help="Validate an AI response file without storing anything.",
        description="Exit code 0 when every row is accepted, 1 when rows are rejected, 2 when the file is unreadable.",
    )
    validate.add_argument("--source", required=True, help="AI response (JSON or raw model text)")
    validate.add_argument("--table", action="store_true", help="Print the coordinate table of every row to stderr")
    validate.add_argument("--check-shift", action="store_true", help="Warn about rows that look shifted by one column")
    validate.set_defaults(handler=_handle_validate)

    imp = subparsers.add_parser("import", help="Validate an AI response file and store the result.")
    imp.add_argument("--source", required=True, help="AI response (JSON or raw model text)")
    imp.set_defaults(handler=_handle_import)

    init = subparsers.add_parser("init-db", help="Create/ensure the route sheet DB schema exists")
    init.set_defaults(handler=_handle_init_db)

    serve = subparsers.add_parser("serve", help="Run the route sheet JSON API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_handle_serve)

    args = parser.parse_args(provided)
    code = args.handler(args)
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
