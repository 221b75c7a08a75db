from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional

from ...domain.models import Cell, RowWithCoordinates
from ...logging import get_logger


LOG = get_logger("routesheet-parser")


class RouteSheetPayloadError(ValueError):
    pass


class PayloadParseError(RouteSheetPayloadError):
    """Raised when model output holds no recoverable JSON object."""


class PayloadValidationError(RouteSheetPayloadError):
    """Raised when a row entry does not have the coordinate row shape."""


def _json_candidates(s: str) -> List[str]:
    candidates: List[str] = []

    # 1) Fenced code blocks first (e.g., ```json ... ```)
    fenced = re.search(r"```(?:json)?\s*(.*?)```", s, re.DOTALL)
    if fenced and fenced.group(1):
        candidates.append(fenced.group(1).strip())

    # 2) Whole text, then the outermost object slice
    candidates.append(s.strip())
    start_obj = s.find("{")
    end_obj = s.rfind("}")
    if start_obj != -1 and end_obj > start_obj:
        candidates.append(s[start_obj : end_obj + 1])
    return candidates


def parse_ai_response_text(text: str) -> Dict[str, Any]:
    """Recover the extraction payload from raw model output.

    Accepts plain JSON, JSON wrapped in ``` fences, or JSON surrounded by prose.
    """
    if not isinstance(text, str) or not text.strip():
        raise PayloadParseError("AI response is empty")
    for candidate in _json_candidates(text):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    LOG.debug("No JSON object found in model output (%d chars)", len(text))
    raise PayloadParseError("AI response does not contain a JSON object")


def load_ai_response(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    payload = parse_ai_response_text(text)
    LOG.info("Loaded AI response from %s (phase=%s)", path, payload.get("phase"))
    return payload


def _int_or_none(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str) and v.strip():
        try:
            return int(v.strip())
        except ValueError:
            return None
    return None


def _float_or_none(v: Any) -> Optional[float]:
    if isinstance(v, bool) or v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _coerce_cell(key: str, raw: Any) -> Cell:
    if not isinstance(raw, Mapping):
        raise PayloadValidationError(f"cells_by_position[{key!r}] must be an object")
    position = _int_or_none(raw.get("position"))
    if position is None:
        position = _int_or_none(key) or 0
    header = raw.get("header")
    return Cell(
        position=position,
        header="" if header is None else str(header),
        value=raw.get("value"),
        x_read_from=_float_or_none(raw.get("x_read_from")),
    )


def coerce_row(raw: Any, index: int) -> RowWithCoordinates:
    """Build a typed row from one entry of the payload's ``rows`` list.

    ``index`` is the 1-based position of the entry and stands in for a missing
    or unreadable ``row_number``.
    """
    if not isinstance(raw, Mapping):
        raise PayloadValidationError(f"rows[{index - 1}] must be an object")
    row_number = _int_or_none(raw.get("row_number"))
    if row_number is None:
        row_number = index
    cells_in = raw.get("cells_by_position")
    if not isinstance(cells_in, Mapping):
        raise PayloadValidationError(f"row {row_number}: cells_by_position must be an object")
    cells = {str(k): _coerce_cell(str(k), v) for k, v in cells_in.items()}
    return RowWithCoordinates(
        row_number=row_number,
        cells_by_position=cells,
        y_position=_float_or_none(raw.get("y_position")),
    )


def row_number_hint(raw: Any, index: int) -> int:
    if isinstance(raw, Mapping):
        n = _int_or_none(raw.get("row_number"))
        if n is not None:
            return n
    return index
