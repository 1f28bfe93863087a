"""
Projects and their landing pages.

Projects are seeded from config; the gateway reads landing-page URLs and
writes the cached Search Console metric fields back.
"""

import logging
from datetime import datetime
from typing import Optional

from storage.db import db_conn

logger = logging.getLogger(__name__)


class ProjectStore:

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path

    # ── Projects ──────────────────────────────────────────────────────────────

    def get_project(self, project_id: str) -> Optional[dict]:
        with db_conn(self.db_path) as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
            return dict(row) if row else None

    def projects_for_refresh(self) -> list[str]:
        """Ids of projects with at least one source configured, in random order."""
        with db_conn(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT id FROM projects
                WHERE COALESCE(gsc_site_url, '') != '' OR COALESCE(ga4_property_id, '') != ''
                ORDER BY RANDOM()
                """
            ).fetchall()
            return [r["id"] for r in rows]

    def seed_projects(self, projects_config: list) -> None:
        """Upsert project records and their landing pages from config."""
        with db_conn(self.db_path) as conn:
            for entry in projects_config:
                conn.execute(
                    """
                    INSERT INTO projects (id, email, domain, gsc_site_url, ga4_property_id)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        email           = excluded.email,
                        domain          = excluded.domain,
                        gsc_site_url    = excluded.gsc_site_url,
                        ga4_property_id = excluded.ga4_property_id
                    """,
                    (
                        str(entry["id"]),
                        entry.get("email"),
                        entry.get("domain"),
                        entry.get("gsc_site_url"),
                        str(entry["ga4_property_id"]) if entry.get("ga4_property_id") else None,
                    ),
                )
                for url in entry.get("landing_pages", []):
                    conn.execute(
                        "INSERT OR IGNORE INTO landingpages (project_id, url) VALUES (?, ?)",
                        (str(entry["id"]), url),
                    )
        logger.info("Seeded %d projects into DB", len(projects_config))

    # ── Landing pages ─────────────────────────────────────────────────────────

    def get_landingpages(self, project_id: str) -> list[dict]:
        with db_conn(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM landingpages WHERE project_id = ? ORDER BY id ASC",
                (project_id,),
            ).fetchall()
            return [dict(r) for r in rows]

    def update_landingpage_metrics(self, updates: list[dict], range_key: str, updated_at: datetime) -> None:
        """
        Write cached GSC fields for a batch of landing pages in one transaction.
        Each update is ``{id, clicks, clicks_change, impressions,
        impressions_change, position, position_change}``.
        """
        if not updates:
            return
        with db_conn(self.db_path) as conn:
            conn.executemany(
                """
                UPDATE landingpages SET
                    gsc_clicks             = :clicks,
                    gsc_clicks_change      = :clicks_change,
                    gsc_impressions        = :impressions,
                    gsc_impressions_change = :impressions_change,
                    gsc_position           = :position,
                    gsc_position_change    = :position_change,
                    gsc_last_updated       = :updated_at,
                    gsc_last_range         = :range_key
                WHERE id = :id
                """,
                [{**u, "updated_at": updated_at.isoformat(), "range_key": range_key} for u in updates],
            )
        logger.debug("Updated GSC fields for %d landing pages", len(updates))
