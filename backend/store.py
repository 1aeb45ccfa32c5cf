"""SQLite storage for tabs, projects and a small TTL cache."""

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

from models import Project, Tab

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tabs (
    tab_id INTEGER PRIMARY KEY,
    window_id INTEGER NOT NULL,
    project_id TEXT,
    host TEXT NOT NULL,
    last_active_at INTEGER NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tabs_window ON tabs (window_id);
CREATE INDEX IF NOT EXISTS idx_tabs_project ON tabs (project_id);
CREATE INDEX IF NOT EXISTS idx_tabs_host ON tabs (host);
CREATE INDEX IF NOT EXISTS idx_tabs_last_active ON tabs (last_active_at);

CREATE TABLE IF NOT EXISTS projects (
    project_id TEXT PRIMARY KEY,
    created_at INTEGER NOT NULL,
    last_active_at INTEGER NOT NULL,
    pinned INTEGER NOT NULL DEFAULT 0,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_projects_last_active ON projects (last_active_at);

CREATE TABLE IF NOT EXISTS cache (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL
);
"""


class TabStore:
    """Key-value style store over SQLite.

    Every write commits before returning, so a later read in the same
    process sees it. Lookup misses return None or an empty list.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._initialized = False

    @contextmanager
    def _db(self):
        if not self._initialized:
            self._init_db()
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        try:
            conn.executescript(_SCHEMA)
            conn.commit()
        finally:
            conn.close()
        self._initialized = True
        log.info("Store ready: %s", self.db_path)

    # ── Tabs ─────────────────────────────────────────────────

    def put_tab(self, tab: Tab):
        with self._db() as db:
            db.execute(
                """INSERT OR REPLACE INTO tabs (tab_id, window_id, project_id, host, last_active_at, data)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (tab.tab_id, tab.window_id, tab.project_id, tab.host, tab.last_active_at, tab.model_dump_json()),
            )

    def get_tab(self, tab_id: int) -> Optional[Tab]:
        with self._db() as db:
            row = db.execute("SELECT data FROM tabs WHERE tab_id = ?", (tab_id,)).fetchone()
        return Tab.model_validate_json(row["data"]) if row else None

    def delete_tab(self, tab_id: int):
        with self._db() as db:
            db.execute("DELETE FROM tabs WHERE tab_id = ?", (tab_id,))

    def get_all_tabs(self) -> list[Tab]:
        return self._tabs_where("1=1", ())

    def get_tabs_by_project(self, project_id: str) -> list[Tab]:
        return self._tabs_where("project_id = ?", (project_id,))

    def get_tabs_by_host(self, host: str) -> list[Tab]:
        return self._tabs_where("host = ?", (host,))

    def get_tabs_by_window(self, window_id: int) -> list[Tab]:
        return self._tabs_where("window_id = ?", (window_id,))

    def _tabs_where(self, condition: str, params: tuple) -> list[Tab]:
        with self._db() as db:
            rows = db.execute(f"SELECT data FROM tabs WHERE {condition} ORDER BY tab_id", params).fetchall()
        return [Tab.model_validate_json(r["data"]) for r in rows]

    # ── Projects ─────────────────────────────────────────────

    def put_project(self, project: Project):
        with self._db() as db:
            db.execute(
                """INSERT OR REPLACE INTO projects (project_id, created_at, last_active_at, pinned, data)
                   VALUES (?, ?, ?, ?, ?)""",
                (project.project_id, project.created_at, project.last_active_at,
                 1 if project.pinned else 0, project.model_dump_json()),
            )

    def get_project(self, project_id: str) -> Optional[Project]:
        with self._db() as db:
            row = db.execute("SELECT data FROM projects WHERE project_id = ?", (project_id,)).fetchone()
        return Project.model_validate_json(row["data"]) if row else None

    def delete_project(self, project_id: str):
        with self._db() as db:
            db.execute("DELETE FROM projects WHERE project_id = ?", (project_id,))

    def get_all_projects(self) -> list[Project]:
        """All projects in creation order."""
        with self._db() as db:
            rows = db.execute("SELECT data FROM projects ORDER BY created_at, rowid").fetchall()
        return [Project.model_validate_json(r["data"]) for r in rows]

    # ── Cache ────────────────────────────────────────────────

    def put_cache(self, key: str, value: Any, ttl: Optional[float] = None):
        """Store a JSON-serializable value; ttl in seconds."""
        expires_at = time.time() + ttl if ttl else None
        with self._db() as db:
            db.execute(
                "INSERT OR REPLACE INTO cache (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), expires_at),
            )

    def get_cache(self, key: str) -> Any:
        with self._db() as db:
            row = db.execute("SELECT value, expires_at FROM cache WHERE key = ?", (key,)).fetchone()
            if not row:
                return None
            if row["expires_at"] is not None and row["expires_at"] < time.time():
                db.execute("DELETE FROM cache WHERE key = ?", (key,))
                return None
            return json.loads(row["value"])

    def delete_cache(self, key: str):
        with self._db() as db:
            db.execute("DELETE FROM cache WHERE key = ?", (key,))

    def clear_expired_cache(self) -> int:
        with self._db() as db:
            cur = db.execute(
                "DELETE FROM cache WHERE expires_at IS NOT NULL AND expires_at < ?", (time.time(),)
            )
            removed = cur.rowcount
        if removed:
            log.info("Cleared %d expired cache entries", removed)
        return removed
