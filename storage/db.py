"""
SQLite database setup and connection management.
"""

import sqlite3
import os
import logging
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DB_PATH", "dashboard_cache.db")


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path or DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def db_conn(db_path: Optional[str] = None):
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None) -> None:
    """Create all tables if they don't exist."""
    with db_conn(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS projects (
                id               TEXT    PRIMARY KEY,
                email            TEXT,
                domain           TEXT,
                gsc_site_url     TEXT,
                ga4_property_id  TEXT,
                created_at       TEXT    NOT NULL DEFAULT (datetime('now'))
            );

            CREATE TABLE IF NOT EXISTS landingpages (
                id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                project_id           TEXT    NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
                url                  TEXT    NOT NULL,
                gsc_clicks           REAL,
                gsc_clicks_change    REAL,
                gsc_impressions      REAL,
                gsc_impressions_change REAL,
                gsc_position         REAL,
                gsc_position_change  REAL,
                gsc_last_updated     TEXT,
                gsc_last_range       TEXT,
                UNIQUE (project_id, url)
            );

            CREATE TABLE IF NOT EXISTS dashboard_cache (
                project_id    TEXT    NOT NULL,
                range_key     TEXT    NOT NULL,
                payload       TEXT    NOT NULL,   -- JSON
                last_fetched  TEXT    NOT NULL,   -- ISO-8601 UTC
                PRIMARY KEY (project_id, range_key)
            );

            CREATE INDEX IF NOT EXISTS idx_landingpages_project ON landingpages(project_id, id);
        """)
    logger.info("Database initialised at %s", db_path or DB_PATH)
