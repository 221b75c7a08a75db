from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Cell:
    """One extracted value plus the header the model read above it."""

    position: int
    header: str
    value: Any
    x_read_from: Optional[float] = None


@dataclass(frozen=True)
class RowWithCoordinates:
    row_number: int
    cells_by_position: Dict[str, Cell]
    y_position: Optional[float] = None


@dataclass
class PositionCheck:
    valid: bool
    missing: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class HeaderMismatch:
    position: int
    expected: List[str]
    got: str


@dataclass
class HeaderCheck:
    valid: bool
    errors: List[HeaderMismatch] = field(default_factory=list)


@dataclass(frozen=True)
class FormatIssue:
    position: int
    field: str
    expected: str
    got: Any


@dataclass
class FormatCheck:
    valid: bool
    errors: List[FormatIssue] = field(default_factory=list)


@dataclass
class ValidationResult:
    """Outcome of validating one row before it may be written to storage.

    ``mapped_data`` is only set when the row passed the presence and header
    checks; format problems end up in ``warnings`` and never block a row.
    """

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    mapped_data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class RowIssues:
    row: int
    messages: List[str]

    def to_dict(self, key: str = "errors") -> Dict[str, Any]:
        return {"row": self.row, key: list(self.messages)}


@dataclass
class BatchResult:
    """Partition of an AI response into storable records and rejected rows.

    ``valid_row_numbers`` and ``valid_row_flags`` run parallel to ``valid_rows``:
    row numbers are informational and may repeat, so per-record data is kept
    by index. ``valid_row_flags`` holds the format warnings plus any suspected
    column shift of each accepted row.
    """

    success: bool
    valid_rows: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[RowIssues] = field(default_factory=list)
    warnings: List[RowIssues] = field(default_factory=list)
    valid_row_numbers: List[int] = field(default_factory=list)
    valid_row_flags: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "validRows": [dict(r) for r in self.valid_rows],
            "errors": [e.to_dict("errors") for e in self.errors],
            "warnings": [w.to_dict("warnings") for w in self.warnings],
        }
