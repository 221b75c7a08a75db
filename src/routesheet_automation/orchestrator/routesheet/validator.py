"""Strict coordinate validation of extracted route-sheet rows.

Every row coming back from the extraction model addresses its cells by the
column position printed on the sheet (1-17). Before a row may be stored it
must carry all 17 positions and each detected header must look like the
column expected at that position. Value formats are only checked for a few
columns and never block a row: extraction noise such as a dropped leading
zero is reported as a warning instead.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ...domain.models import (
    BatchResult,
    FormatCheck,
    FormatIssue,
    HeaderCheck,
    HeaderMismatch,
    PositionCheck,
    RowIssues,
    RowWithCoordinates,
    ValidationResult,
)
from ...domain.normalize import header_matches, is_blank
from ...logging import get_logger
from .constants import (
    APPROVED_MARKS,
    APPROVED_POSITION,
    EMPLOYEE_ID_POSITION,
    EXPECTED_HEADERS,
    FORMAT_RULES,
    POSITION_COUNT,
    POSITION_TO_SQL_COLUMN,
    REQUIRED_POSITIONS,
    VEHICLE_POSITION,
)
from .parser import PayloadValidationError, coerce_row, row_number_hint


LOG = get_logger("routesheet-validator")

INVALID_RESPONSE_MESSAGE = "Invalid AI response format (rows missing)"

_LETTERS = re.compile(r"[A-Za-z]")


def _position_of(key: str) -> Optional[int]:
    try:
        return int(key)
    except (TypeError, ValueError):
        return None


def _value_at(row: RowWithCoordinates, position: int) -> Any:
    cell = row.cells_by_position.get(str(position))
    return None if cell is None else cell.value


def validate_positions_present(row: RowWithCoordinates) -> PositionCheck:
    present = {p for p in (_position_of(k) for k in row.cells_by_position) if p is not None}
    missing = sorted(REQUIRED_POSITIONS - present)
    return PositionCheck(valid=not missing, missing=missing)


def validate_headers_at_positions(row: RowWithCoordinates) -> HeaderCheck:
    errors: List[HeaderMismatch] = []
    for key, cell in row.cells_by_position.items():
        position = _position_of(key)
        variants = EXPECTED_HEADERS.get(position) if position is not None else None
        if not variants:
            continue
        if not header_matches(cell.header, variants):
            errors.append(HeaderMismatch(position=position, expected=list(variants), got=cell.header))
    return HeaderCheck(valid=not errors, errors=errors)


def validate_data_types(row: RowWithCoordinates) -> FormatCheck:
    """Check the value format of the few columns that have one.

    Blank values are not checked. The result is advisory: callers turn it
    into warnings.
    """
    errors: List[FormatIssue] = []
    for rule in FORMAT_RULES:
        value = _value_at(row, rule.position)
        if is_blank(value):
            continue
        if not rule.pattern.fullmatch(str(value)):
            errors.append(
                FormatIssue(position=rule.position, field=rule.field, expected=rule.description, got=value)
            )
    return FormatCheck(valid=not errors, errors=errors)


def _map_to_columns(row: RowWithCoordinates) -> Dict[str, Any]:
    mapped: Dict[str, Any] = {}
    for key, cell in row.cells_by_position.items():
        position = _position_of(key)
        column = POSITION_TO_SQL_COLUMN.get(position) if position is not None else None
        if column is None:
            continue
        # Blank but present is stored as NULL
        mapped[column] = None if cell.value == "" else cell.value
    return mapped


def validate_row_before_sql(row: RowWithCoordinates) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    positions = validate_positions_present(row)
    if not positions.valid:
        errors.append("Missing positions: " + ", ".join(str(p) for p in positions.missing))
        LOG.error("Row %s: missing positions %s", row.row_number, positions.missing)

    headers = validate_headers_at_positions(row)
    if not headers.valid:
        for err in headers.errors:
            errors.append(f'Position {err.position}: expected {"/".join(err.expected)}, got "{err.got}"')
        LOG.error(
            "Row %s: unexpected headers at positions %s",
            row.row_number,
            [err.position for err in headers.errors],
        )

    formats = validate_data_types(row)
    if not formats.valid:
        for issue in formats.errors:
            warnings.append(f'Position {issue.position} ({issue.field}): expected {issue.expected}, got "{issue.got}"')
        LOG.warning(
            "Row %s: suspicious values at positions %s",
            row.row_number,
            [issue.position for issue in formats.errors],
        )

    if errors:
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    return ValidationResult(valid=True, errors=[], warnings=warnings, mapped_data=_map_to_columns(row))


def detect_column_shift(row: RowWithCoordinates) -> List[str]:
    """Flag values that suggest the model read the row one column off.

    Letters in the employee or vehicle number, or anything but a check mark in
    the approval column, usually mean a neighbouring cell slid over.
    """
    notices: List[str] = []
    employee = _value_at(row, EMPLOYEE_ID_POSITION)
    if isinstance(employee, str) and _LETTERS.search(employee):
        notices.append(f'Position {EMPLOYEE_ID_POSITION} (id_employe) holds "{employee}" instead of a number')
    vehicle = _value_at(row, VEHICLE_POSITION)
    if isinstance(vehicle, str) and _LETTERS.search(vehicle):
        notices.append(f'Position {VEHICLE_POSITION} (vehicule) holds "{vehicle}" instead of a number')
    approved = _value_at(row, APPROVED_POSITION)
    if approved is not None and str(approved) not in APPROVED_MARKS:
        notices.append(f'Position {APPROVED_POSITION} (approuve) holds "{approved}" instead of a check mark')
    return notices


def format_coordinate_table(row: RowWithCoordinates) -> str:
    y = row.y_position if row.y_position is not None else "N/A"
    lines = [
        f"Row {row.row_number} (y={y})",
        "| Pos | Detected header | Value | SQL column |",
        "|-----|-----------------|-------|------------|",
    ]
    for position in range(1, POSITION_COUNT + 1):
        column = POSITION_TO_SQL_COLUMN[position]
        cell = row.cells_by_position.get(str(position))
        if cell is None:
            lines.append(f"| {position:>3} | MISSING         | -     | {column} |")
            continue
        value = "(empty)" if cell.value == "" else cell.value
        lines.append(f"| {position:>3} | {cell.header:<15} | {value} | {column} |")
    return "\n".join(lines)


def log_coordinate_mapping(row: RowWithCoordinates, logger: Optional[logging.Logger] = None) -> None:
    (logger or LOG).info("Coordinate mapping\n%s", format_coordinate_table(row))


def _invalid_response() -> BatchResult:
    return BatchResult(success=False, errors=[RowIssues(row=0, messages=[INVALID_RESPONSE_MESSAGE])])


def convert_ai_response_to_sql(ai_response: Any, *, log_mapping: bool = True) -> BatchResult:
    """Validate every row of an extraction payload and split accepted/rejected.

    Never raises: a payload without a ``rows`` list yields a single error at
    row 0, and a broken row entry is reported as a rejected row.
    ``log_mapping=False`` skips the per-row coordinate table for callers that
    print it themselves.
    """
    if not isinstance(ai_response, Mapping):
        LOG.error("AI response is not an object: %s", type(ai_response).__name__)
        return _invalid_response()
    rows_in = ai_response.get("rows")
    if not isinstance(rows_in, Sequence) or isinstance(rows_in, (str, bytes)):
        LOG.error("AI response has no rows list")
        return _invalid_response()

    result = BatchResult(success=True)
    for index, raw in enumerate(rows_in, start=1):
        try:
            row = coerce_row(raw, index)
        except PayloadValidationError as exc:
            number = row_number_hint(raw, index)
            result.errors.append(RowIssues(row=number, messages=[str(exc)]))
            LOG.error("Row %s rejected: %s", number, exc)
            continue

        if log_mapping:
            log_coordinate_mapping(row)
        validation = validate_row_before_sql(row)
        if validation.valid and validation.mapped_data is not None:
            result.valid_rows.append(validation.mapped_data)
            result.valid_row_numbers.append(row.row_number)
            result.valid_row_flags.append(list(validation.warnings) + detect_column_shift(row))
            LOG.info("Row %s validated and mapped", row.row_number)
            if validation.warnings:
                result.warnings.append(RowIssues(row=row.row_number, messages=validation.warnings))
        else:
            result.errors.append(RowIssues(row=row.row_number, messages=validation.errors))
            LOG.error("Row %s rejected: %s", row.row_number, validation.errors)

    result.success = not result.errors
    return result
