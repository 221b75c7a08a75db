from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

import pytest

# Ensure the repository's src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))


# Headers and values as read on a clean TCT route sheet line.
SHEET_LINE = {
    1: ("Tournée", "TCT0046"),
    2: ("Nom", "TAXI COOP TERREBONNE"),
    3: ("Déb tour", "9:18"),
    4: ("Fin tour", "9:54"),
    5: ("Cl véh", "TAXI"),
    6: ("Employé", "0450"),
    7: ("Nom employé", "Rezali, Karim"),
    8: ("Employé", "0450"),
    9: ("Véhicule", "232"),
    10: ("Cl véh aff", "MINIVAN"),
    11: ("Autoris", ""),
    12: ("Approuvé", "✓"),
    13: ("Retour", ""),
    14: ("Adresse debut", "3365 du Moulin RUE Terrebonne J6X 4C1"),
    15: ("Adresse de fin", "3099 de Mascouche BOUL Mascouche J7K 3B7"),
    16: ("Changement", ""),
    17: ("Changement par", ""),
}


def build_raw_row(
    row_number: int = 1,
    *,
    values: Optional[Dict[int, Any]] = None,
    headers: Optional[Dict[int, str]] = None,
    drop: Iterable[int] = (),
) -> Dict[str, Any]:
    values = values or {}
    headers = headers or {}
    dropped = set(drop)
    cells = {}
    for position, (header, value) in SHEET_LINE.items():
        if position in dropped:
            continue
        cells[str(position)] = {
            "position": position,
            "header": headers.get(position, header),
            "value": values.get(position, value),
            "x_read_from": 40.0 * position,
        }
    return {"row_number": row_number, "y_position": 310 + 22 * row_number, "cells_by_position": cells}


@pytest.fixture
def make_raw_row() -> Callable[..., Dict[str, Any]]:
    return build_raw_row


@pytest.fixture
def make_row(make_raw_row):
    from routesheet_automation.orchestrator.routesheet.parser import coerce_row

    def _make(row_number: int = 1, **kwargs):
        return coerce_row(make_raw_row(row_number, **kwargs), row_number)

    return _make


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    (tmp_path / "README.md").write_text("test marker", encoding="utf-8")
    return tmp_path
