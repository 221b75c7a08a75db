import unicodedata
from typing import Any, Iterable


def normalize_header(value: Any) -> str:
    """Fold a detected column header for fuzzy comparison.

    Lowercases, decomposes (NFD), drops combining marks, then trims:
    ``"  Déb Tour "`` becomes ``"deb tour"``.
    """
    if value is None:
        return ""
    s = str(value).lower()
    s = unicodedata.normalize("NFD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return s.strip()


def header_matches(detected: Any, variants: Iterable[str]) -> bool:
    """Two-way substring test of a detected header against accepted variants.

    Only the detected side is stripped of diacritics; variants are compared
    lowercased as written, so ``"tournee"`` matches ``"Tournee"`` but not
    ``"Tournée"``.
    """
    norm = normalize_header(detected)
    for variant in variants:
        expected = variant.lower()
        if expected in norm or norm in expected:
            return True
    return False


def is_blank(value: Any) -> bool:
    return value is None or value == ""
