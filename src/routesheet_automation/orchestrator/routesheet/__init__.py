"""Route-sheet validation and storage.

Modules:
- constants: position → column and position → header tables
- parser: recover and shape AI extraction payloads
- validator: coordinate validation before storage
- db: SQLite store for accepted and rejected rows
- service: validate-then-persist orchestration
- api: Starlette app for validation, import and review
"""

from .db import RouteSheetDatabase
from .service import RouteSheetImportService
from .validator import (
    convert_ai_response_to_sql,
    validate_row_before_sql,
)
from .api import create_app

__all__ = [
    "RouteSheetDatabase",
    "RouteSheetImportService",
    "convert_ai_response_to_sql",
    "validate_row_before_sql",
    "create_app",
]
