"""High-level orchestration for the route-sheet digitization pipeline."""

from .routesheet import (
    RouteSheetDatabase,
    RouteSheetImportService,
    convert_ai_response_to_sql,
    create_app,
    validate_row_before_sql,
)

__all__ = [
    "RouteSheetDatabase",
    "RouteSheetImportService",
    "convert_ai_response_to_sql",
    "create_app",
    "validate_row_before_sql",
]
