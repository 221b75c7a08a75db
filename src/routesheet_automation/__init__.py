"""
Route sheet automation – coordinate validation toolkit.

Checks route-sheet rows extracted by a vision model against the fixed column
layout of the printed sheet before they are stored.
"""

__all__ = [
    "config",
    "logging",
    "paths",
]
