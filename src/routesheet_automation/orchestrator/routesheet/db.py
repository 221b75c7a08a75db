from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ...logging import get_logger
from ...paths import find_project_root, var_dir
from .constants import SQL_COLUMNS


LOG = get_logger("routesheet-db")


DEFAULT_DB_FOLDER = "routesheet"
DEFAULT_DB_FILENAME = "routesheets.sqlite3"

IMPORT_STATUSES = ("OK", "WARN", "ERROR")

_ROW_COLUMNS_SQL = ",\n  ".join(f"{col:<24} TEXT" for col in SQL_COLUMNS)
_STATUS_ENUM_SQL = ", ".join(f"'{s}'" for s in IMPORT_STATUSES)

SCHEMA_SQL = f"""
PRAGMA foreign_keys = ON;

-- 1) One record per AI response handed to the importer
CREATE TABLE IF NOT EXISTS imports (
  import_id      INTEGER PRIMARY KEY,
  source         TEXT,
  phase          TEXT,
  raw_content    TEXT NOT NULL,          -- AI response as JSON
  accepted_count INTEGER NOT NULL DEFAULT 0,
  rejected_count INTEGER NOT NULL DEFAULT 0,
  status         TEXT NOT NULL CHECK (status IN ({_STATUS_ENUM_SQL})) DEFAULT 'OK',
  created_at     TEXT DEFAULT (datetime('now'))
);

-- 2) Accepted rows, one column per sheet position
CREATE TABLE IF NOT EXISTS route_sheet_rows (
  row_id      INTEGER PRIMARY KEY,
  import_id   INTEGER REFERENCES imports(import_id) ON DELETE CASCADE,
  row_number  INTEGER,
  {_ROW_COLUMNS_SQL},
  warnings    TEXT,                      -- JSON list; NULL when clean
  created_at  TEXT DEFAULT (datetime('now'))
);

-- 3) Rejected rows kept for operator review
CREATE TABLE IF NOT EXISTS rejected_rows (
  rejection_id INTEGER PRIMARY KEY,
  import_id    INTEGER NOT NULL REFERENCES imports(import_id) ON DELETE CASCADE,
  row_number   INTEGER NOT NULL,
  errors       TEXT NOT NULL,            -- JSON list
  created_at   TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_rows_import    ON route_sheet_rows(import_id);
CREATE INDEX IF NOT EXISTS idx_rows_tournee   ON route_sheet_rows(tournee);
CREATE INDEX IF NOT EXISTS idx_rejected_import ON rejected_rows(import_id);
"""

# Columns matched by the free-text row search
SEARCH_COLUMNS = ("tournee", "nom_compagnie", "nom_employe_complet", "id_employe", "vehicule")


def _like_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class RouteSheetDatabase:
    """SQLite-backed store for validated route-sheet rows.

    - Places DB under `<repo-root>/var/routesheet/routesheets.sqlite3` unless
      an explicit `db_path` is given.
    - Ensures schema on first use.
    - Provides a context-managed connection method.
    """

    def __init__(self, root_dir: Optional[str] = None, *, db_path: Optional[str] = None) -> None:
        if db_path:
            self.db_path = os.path.abspath(db_path)
        else:
            root = find_project_root(root_dir)
            self.db_path = os.path.join(var_dir(root), DEFAULT_DB_FOLDER, DEFAULT_DB_FILENAME)
        os.makedirs(os.path.dirname(self.db_path), exist_ok=True)
        LOG.info(f"Route sheet DB path: {self.db_path}")
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.OperationalError:
                LOG.debug("WAL journal mode unavailable; keeping default journal")
            cur.executescript(SCHEMA_SQL)
            conn.commit()
            LOG.debug("Route sheet DB schema ensured.")

    @staticmethod
    def _rows_to_dicts(rows: Sequence[sqlite3.Row]) -> List[Dict[str, Any]]:
        return [dict(row) for row in rows]

    @staticmethod
    def _decode_json_list(record: Dict[str, Any], key: str) -> Dict[str, Any]:
        raw = record.get(key)
        record[key] = json.loads(raw) if raw else []
        return record

    # ---- writes ---------------------------------------------------------------

    def insert_import(
        self,
        raw_content: str,
        *,
        source: Optional[str] = None,
        phase: Optional[str] = None,
        accepted_count: int = 0,
        rejected_count: int = 0,
        status: str = "OK",
    ) -> int:
        if status not in IMPORT_STATUSES:
            raise ValueError(f"Unsupported import status: {status}")
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO imports (source, phase, raw_content, accepted_count, rejected_count, status)
                VALUES (?, ?, ?, ?, ?, ?)
                RETURNING import_id;
                """,
                (source, phase, raw_content, int(accepted_count), int(rejected_count), status),
            )
            row = cur.fetchone()
            conn.commit()
            return int(row[0])

    def insert_rows(
        self,
        import_id: Optional[int],
        rows: Sequence[Tuple[int, Dict[str, Any], List[str]]],
    ) -> int:
        """Insert mapped records as ``(row_number, record, warnings)`` triples."""
        if not rows:
            return 0
        columns = ("import_id", "row_number", *SQL_COLUMNS, "warnings")
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO route_sheet_rows ({', '.join(columns)}) VALUES ({placeholders});"
        params = [
            (
                import_id,
                row_number,
                *(_as_text(record.get(col)) for col in SQL_COLUMNS),
                json.dumps(warnings, ensure_ascii=False) if warnings else None,
            )
            for row_number, record, warnings in rows
        ]
        with self.connect() as conn:
            conn.executemany(sql, params)
            conn.commit()
        return len(params)

    def insert_rejections(self, import_id: int, rejections: Sequence[Tuple[int, List[str]]]) -> int:
        if not rejections:
            return 0
        params = [
            (import_id, row_number, json.dumps(list(errors), ensure_ascii=False))
            for row_number, errors in rejections
        ]
        with self.connect() as conn:
            conn.executemany(
                "INSERT INTO rejected_rows (import_id, row_number, errors) VALUES (?, ?, ?);",
                params,
            )
            conn.commit()
        return len(params)

    def delete_import(self, import_id: int) -> bool:
        """Remove an import together with its stored and rejected rows."""
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM imports WHERE import_id = ?;", (int(import_id),))
            conn.commit()
            deleted = cur.rowcount > 0
        if deleted:
            LOG.info("Deleted import %s", import_id)
        return deleted

    # ---- reads ----------------------------------------------------------------

    def fetch_rows(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        search: Optional[str] = None,
        import_id: Optional[int] = None,
        flagged_only: bool = False,
    ) -> Dict[str, Any]:
        """Return paginated stored rows, optionally filtered."""
        where_clauses: List[str] = []
        params: List[Any] = []
        if import_id is not None:
            where_clauses.append("import_id = ?")
            params.append(int(import_id))
        if flagged_only:
            where_clauses.append("warnings IS NOT NULL")
        if search:
            like = _like_pattern(search)
            where_clauses.append(
                "(" + " OR ".join(f"LOWER({col}) LIKE ? ESCAPE '\\'" for col in SEARCH_COLUMNS) + ")"
            )
            params.extend([like] * len(SEARCH_COLUMNS))

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT COUNT(*) AS total FROM route_sheet_rows {where_sql};", params)
            total = int(cur.fetchone()["total"])

            cur.execute(
                f"SELECT * FROM route_sheet_rows {where_sql} ORDER BY import_id DESC, row_number ASC, row_id ASC LIMIT ? OFFSET ?;",
                (*params, int(limit), int(offset)),
            )
            rows = [self._decode_json_list(r, "warnings") for r in self._rows_to_dicts(cur.fetchall())]

        return {"total": total, "items": rows, "limit": limit, "offset": offset}

    def fetch_imports(self, *, limit: int = 50) -> List[Dict[str, Any]]:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT import_id, source, phase, accepted_count, rejected_count, status, created_at
                FROM imports
                ORDER BY import_id DESC
                LIMIT ?;
                """,
                (int(limit),),
            )
            return self._rows_to_dicts(cur.fetchall())

    def fetch_import_detail(self, import_id: int) -> Optional[Dict[str, Any]]:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT import_id, source, phase, accepted_count, rejected_count, status, created_at
                FROM imports WHERE import_id = ?;
                """,
                (int(import_id),),
            )
            header = cur.fetchone()
            if header is None:
                return None
            detail = dict(header)

            cur.execute(
                "SELECT row_number, errors FROM rejected_rows WHERE import_id = ? ORDER BY rejection_id;",
                (int(import_id),),
            )
            detail["rejected"] = [self._decode_json_list(r, "errors") for r in self._rows_to_dicts(cur.fetchall())]

            cur.execute(
                "SELECT * FROM route_sheet_rows WHERE import_id = ? ORDER BY row_id;",
                (int(import_id),),
            )
            detail["rows"] = [self._decode_json_list(r, "warnings") for r in self._rows_to_dicts(cur.fetchall())]
        return detail
