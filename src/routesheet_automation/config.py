import os
from typing import Dict, List, Optional

from dotenv import dotenv_values

from .logging import get_logger

log = get_logger("config")

DEFAULT_ALLOW_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running tools from subdirectories (e.g., `src/`) still find
    the repository-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Return key/value pairs of the nearest .env without touching os.environ."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    values = dotenv_values(path)
    env = {k: v.strip() for k, v in values.items() if v is not None}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(dotenv_dir: str, key: str) -> Optional[str]:
    v = os.environ.get(key)
    if v and v.strip():
        return v.strip()
    v = _read_dotenv(dotenv_dir).get(key)
    return v or None


def load_db_path(dotenv_dir: str) -> Optional[str]:
    """Return an explicit SQLite path from ROUTESHEET_DB_PATH, if configured."""
    v = _lookup(dotenv_dir, "ROUTESHEET_DB_PATH")
    if v:
        log.info("Using ROUTESHEET_DB_PATH override")
        return os.path.abspath(os.path.expanduser(v))
    return None


def load_allow_origins(dotenv_dir: str) -> List[str]:
    """Return CORS origins from ROUTESHEET_ALLOW_ORIGINS (comma separated)."""
    v = _lookup(dotenv_dir, "ROUTESHEET_ALLOW_ORIGINS")
    if not v:
        return list(DEFAULT_ALLOW_ORIGINS)
    origins = [o.strip() for o in v.split(",") if o.strip()]
    return origins or list(DEFAULT_ALLOW_ORIGINS)
