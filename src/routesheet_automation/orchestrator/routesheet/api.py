from __future__ import annotations

import json
from typing import Any, List, Optional

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ...config import load_allow_origins, load_db_path
from ...logging import get_logger
from ...paths import find_project_root
from .db import RouteSheetDatabase
from .parser import PayloadParseError, parse_ai_response_text
from .service import RouteSheetImportService


LOG = get_logger("routesheet-api")


def _parse_int(value: Optional[str], *, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        parsed = default
    if parsed < minimum:
        return minimum
    if parsed > maximum:
        return maximum
    return parsed


async def _read_payload(request: Request) -> Any:
    """Accept a JSON body, or raw model text when sent as text/plain."""
    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Request body must be UTF-8") from exc
    if request.headers.get("content-type", "").startswith("text/plain"):
        try:
            return parse_ai_response_text(body)
        except PayloadParseError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Request body must be JSON") from exc


def create_app(
    root_dir: Optional[str] = None,
    *,
    db_path: Optional[str] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing validation, import and row review."""

    project_root = find_project_root(root_dir)
    db = RouteSheetDatabase(root_dir=project_root, db_path=db_path or load_db_path(project_root))
    service = RouteSheetImportService(db)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "db_path": db.db_path})

    async def validate(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        result = service.validate(payload)
        return JSONResponse(result.to_dict())

    async def create_import(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        source = request.query_params.get("source")
        summary = service.import_payload(payload, source=source)
        return JSONResponse(summary, status_code=201)

    async def imports(request: Request) -> JSONResponse:
        limit = _parse_int(request.query_params.get("limit"), default=50, minimum=1, maximum=500)
        return JSONResponse({"items": db.fetch_imports(limit=limit)})

    async def import_detail(request: Request) -> JSONResponse:
        import_id = int(request.path_params["import_id"])
        payload = db.fetch_import_detail(import_id)
        if payload is None:
            raise HTTPException(status_code=404, detail="Import not found")
        return JSONResponse(payload)

    async def delete_import(request: Request) -> JSONResponse:
        import_id = int(request.path_params["import_id"])
        if not db.delete_import(import_id):
            raise HTTPException(status_code=404, detail="Import not found")
        return JSONResponse({"deleted": import_id})

    async def rows(request: Request) -> JSONResponse:
        qp = request.query_params
        limit = _parse_int(qp.get("limit"), default=100, minimum=1, maximum=500)
        offset = _parse_int(qp.get("offset"), default=0, minimum=0, maximum=1_000_000)
        import_raw = qp.get("import_id")
        import_id = None
        if import_raw is not None:
            try:
                import_id = int(import_raw)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail="Invalid import_id") from exc
        flagged = (qp.get("flagged") or "").lower() in {"1", "true", "yes"}
        payload = db.fetch_rows(
            limit=limit,
            offset=offset,
            search=qp.get("search") or None,
            import_id=import_id,
            flagged_only=flagged,
        )
        return JSONResponse(payload)

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/validate", validate, methods=["POST"]),
        Route("/api/imports", create_import, methods=["POST"]),
        Route("/api/imports", imports, methods=["GET"]),
        Route("/api/imports/{import_id:int}", import_detail, methods=["GET"]),
        Route("/api/imports/{import_id:int}", delete_import, methods=["DELETE"]),
        Route("/api/rows", rows, methods=["GET"]),
    ]

    app = Starlette(debug=False, routes=routes)

    origins = allow_origins or load_allow_origins(project_root)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    LOG.info("Route sheet API ready (db=%s)", db.db_path)
    return app


__all__ = ["create_app"]
