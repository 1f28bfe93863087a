"""Shared fixtures: a seeded sqlite database, fake sources and a settable clock."""

import time
from datetime import datetime, timezone

import pytest

from matching.matcher import MetricRow
from storage.cache import CacheStore
from storage.db import init_db
from storage.projects import ProjectStore

PROJECTS = [
    {
        "id": "shop",
        "email": "marketing@shop.example",
        "domain": "shop.example",
        "gsc_site_url": "sc-domain:shop.example",
        "ga4_property_id": "123",
        "landing_pages": [
            "https://www.shop.example/de/schuhe/",
            "https://shop.example/taschen",
        ],
    },
    {
        "id": "ga-only",
        "gsc_site_url": None,
        "ga4_property_id": "456",
    },
    {
        "id": "empty",
        "gsc_site_url": "",
        "ga4_property_id": "",
    },
]


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSearchConsole:
    name = "gsc"

    def __init__(self, error: Exception = None, delay: float = 0):
        self.error = error
        self.delay = delay
        self.calls = []

    def fetch(self, site_url, windows):
        self.calls.append((site_url, windows))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return {
            "current":  {"clicks": 120, "impressions": 4000, "position": 8.4},
            "previous": {"clicks": 100, "impressions": 0, "position": 9.0},
            "daily": {
                "clicks":      [{"date": "2026-10-14", "value": 120}],
                "impressions": [{"date": "2026-10-14", "value": 4000}],
            },
            "top_queries": [{"query": "schuhe", "clicks": 50, "impressions": 900, "ctr": 5.56, "position": 3.2}],
            "pages": {
                "current": [
                    MetricRow("https://shop.example/schuhe", clicks=80, impressions=2000, position=4.0),
                    MetricRow("https://shop.example/unrelated", clicks=5, impressions=10, position=30.0),
                ],
                "previous": [
                    MetricRow("https://shop.example/schuhe/", clicks=40, impressions=1000, position=6.0),
                ],
            },
        }


class FakeAnalytics:
    name = "ga4"

    def __init__(self, error: Exception = None):
        self.error = error
        self.calls = []

    def fetch(self, property_id, windows):
        self.calls.append((property_id, windows))
        if self.error:
            raise self.error
        return {
            "current":  {"sessions": 500, "total_users": 300},
            "previous": {"sessions": 400, "total_users": 300},
            "daily": {
                "sessions":    [{"date": "2026-10-15", "value": 500}],
                "total_users": [{"date": "2026-10-15", "value": 300}],
            },
            "ai_traffic": {
                "total_sessions": 25, "total_users": 20,
                "top_sources": [{"source": "chatgpt.com", "sessions": 25, "users": 20, "percentage": 100.0}],
                "total_sessions_change": 25.0, "total_users_change": 0,
            },
        }


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "test.db")
    init_db(path)
    ProjectStore(path).seed_projects(PROJECTS)
    return path


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache(db_path):
    return CacheStore(db_path)


@pytest.fixture
def projects(db_path):
    return ProjectStore(db_path)
