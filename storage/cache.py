"""
Dashboard cache rows: one JSON payload per (project, range), overwritten on
every refresh.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from storage.db import db_conn

logger = logging.getLogger(__name__)


class CacheStore:

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path

    def get(self, project_id: str, range_key: str) -> Optional[dict]:
        """Return ``{"payload": dict, "last_fetched": datetime}`` or None."""
        with db_conn(self.db_path) as conn:
            row = conn.execute(
                "SELECT payload, last_fetched FROM dashboard_cache WHERE project_id = ? AND range_key = ?",
                (project_id, range_key),
            ).fetchone()
        if not row:
            return None
        return {
            "payload":      json.loads(row["payload"]),
            "last_fetched": datetime.fromisoformat(row["last_fetched"]),
        }

    def upsert(self, project_id: str, range_key: str, payload: dict, fetched_at: datetime) -> None:
        with db_conn(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO dashboard_cache (project_id, range_key, payload, last_fetched)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(project_id, range_key) DO UPDATE SET
                    payload      = excluded.payload,
                    last_fetched = excluded.last_fetched
                """,
                (project_id, range_key, json.dumps(payload, default=str), fetched_at.isoformat()),
            )
        logger.info("[Cache WRITE] %s (%s)", project_id, range_key)

    def clear(self, project_id: Optional[str] = None, range_key: Optional[str] = None) -> int:
        """Delete cache rows, optionally narrowed by project and/or range. Returns rows deleted."""
        clauses, params = [], []
        if project_id:
            clauses.append("project_id = ?")
            params.append(project_id)
        if range_key:
            clauses.append("range_key = ?")
            params.append(range_key)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        with db_conn(self.db_path) as conn:
            deleted = conn.execute(f"DELETE FROM dashboard_cache{where}", params).rowcount
        logger.info(
            "[Cache CLEAR] project=%s range=%s — %d rows deleted",
            project_id or "ALL", range_key or "ALL", deleted,
        )
        return deleted

    def entries(self, project_id: Optional[str] = None, now: Optional[datetime] = None) -> list[dict]:
        now = now or datetime.now(timezone.utc)
        with db_conn(self.db_path) as conn:
            if project_id:
                rows = conn.execute(
                    "SELECT project_id, range_key, last_fetched FROM dashboard_cache "
                    "WHERE project_id = ? ORDER BY range_key",
                    (project_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT project_id, range_key, last_fetched FROM dashboard_cache "
                    "ORDER BY project_id, range_key"
                ).fetchall()
        results = []
        for r in rows:
            fetched = datetime.fromisoformat(r["last_fetched"])
            results.append({
                "project_id":   r["project_id"],
                "range_key":    r["range_key"],
                "last_fetched": r["last_fetched"],
                "age_hours":    round((now - fetched).total_seconds() / 3600, 2),
            })
        return results
