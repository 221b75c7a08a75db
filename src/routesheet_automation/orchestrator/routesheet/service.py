from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ...domain.models import BatchResult
from ...logging import get_logger
from .db import RouteSheetDatabase
from .parser import load_ai_response
from .validator import convert_ai_response_to_sql


LOG = get_logger("routesheet-service")


def _import_status(result: BatchResult, flagged: int) -> str:
    if result.errors and not result.valid_rows:
        return "ERROR"
    if result.errors or flagged:
        return "WARN"
    return "OK"


class RouteSheetImportService:
    """Validate AI extraction payloads and persist the outcome.

    Accepted rows are written with their warnings (format problems and
    suspected column shifts); rejected rows are kept with their error list
    so an operator can correct the source document.
    """

    def __init__(self, db: Optional[RouteSheetDatabase] = None) -> None:
        self.db = db or RouteSheetDatabase()

    def init_database(self) -> str:
        LOG.info("Route sheet database initialized.")
        return self.db.db_path

    def validate(self, payload: Any) -> BatchResult:
        """Validate only; nothing is written."""
        return convert_ai_response_to_sql(payload)

    def import_payload(self, payload: Any, *, source: Optional[str] = None) -> Dict[str, Any]:
        result = convert_ai_response_to_sql(payload)

        rows: List[Tuple[int, Dict[str, Any], List[str]]] = list(
            zip(result.valid_row_numbers, result.valid_rows, result.valid_row_flags)
        )
        flagged = sum(1 for _, _, w in rows if w)
        status = _import_status(result, flagged)

        phase = payload.get("phase") if isinstance(payload, Mapping) else None
        import_id = self.db.insert_import(
            json.dumps(payload, ensure_ascii=False, default=str),
            source=source,
            phase=str(phase) if phase is not None else None,
            accepted_count=len(rows),
            rejected_count=len(result.errors),
            status=status,
        )
        inserted = self.db.insert_rows(import_id, rows)
        rejected = self.db.insert_rejections(import_id, [(e.row, e.messages) for e in result.errors])

        summary = {
            "db_path": self.db.db_path,
            "import_id": import_id,
            "status": status,
            "success": result.success,
            "accepted": inserted,
            "rejected": rejected,
            "flagged": flagged,
            "errors": [e.to_dict("errors") for e in result.errors],
        }
        LOG.info(
            "Persisted import %s: accepted=%s rejected=%s flagged=%s status=%s",
            import_id,
            inserted,
            rejected,
            flagged,
            status,
        )
        return summary

    def import_file(self, path: str) -> Dict[str, Any]:
        payload = load_ai_response(path)
        return self.import_payload(payload, source=os.path.basename(path))
