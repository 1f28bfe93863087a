"""
Google Analytics 4 fetcher — the property-keyed source.

Sessions and users for both comparison windows, the daily series of the
current window, and traffic referred by AI assistants (ChatGPT, Claude,
Perplexity, ...) grouped by assistant.
"""

import logging
from functools import partial

from analysis.compare import delta
from analysis.dates import ComparisonWindows, DateWindow
from analysis.google_client import ThreadLocalService, build_service

logger = logging.getLogger(__name__)

AI_SOURCES = [
    "chatgpt.com", "chat.openai.com", "openai.com",
    "claude.ai", "anthropic.com",
    "gemini.google.com", "bard.google.com",
    "perplexity.ai",
    "bing.com/chat", "copilot.microsoft.com",
    "you.com",
    "poe.com",
    "character.ai",
]

# (substrings, canonical source); first hit wins
_SOURCE_GROUPS = [
    (("chatgpt", "openai"),  "chatgpt.com"),
    (("claude", "anthropic"), "claude.ai"),
    (("perplexity",),        "perplexity.ai"),
    (("gemini", "bard"),     "gemini.google.com"),
    (("copilot", "bing"),    "copilot.microsoft.com"),
    (("you.com",),           "you.com"),
    (("poe",),               "poe.com"),
    (("character",),         "character.ai"),
]


def canonical_ai_source(source: str) -> str:
    lower = source.lower()
    for needles, canonical in _SOURCE_GROUPS:
        if any(n in lower for n in needles):
            return canonical
    return source


def _ga4_date(value: str) -> str:
    """20260131 -> 2026-01-31"""
    return f"{value[0:4]}-{value[4:6]}-{value[6:8]}"


def _ai_filter() -> dict:
    return {"orGroup": {"expressions": [
        {"filter": {"fieldName": "sessionSource", "stringFilter": {
            "matchType": "CONTAINS", "value": source, "caseSensitive": False,
        }}}
        for source in AI_SOURCES
    ]}}


def _metric_ints(row: dict) -> list:
    return [int(float(m.get("value", 0) or 0)) for m in row.get("metricValues", [])]


class AnalyticsSource:
    """Blocking GA4 Data API client with one API service per worker thread."""

    name = "ga4"

    def __init__(self, service_factory=None):
        self._services = ThreadLocalService(service_factory or partial(build_service, "analyticsdata", "v1beta"))

    @property
    def service(self):
        return self._services.get()

    def _report(self, property_id: str, window: DateWindow, dimensions: list,
                dimension_filter: dict = None) -> list:
        prop = property_id if property_id.startswith("properties/") else f"properties/{property_id}"
        body = {
            "dateRanges": [{
                "startDate": window.start_date.isoformat(),
                "endDate":   window.end_date.isoformat(),
            }],
            "dimensions": [{"name": d} for d in dimensions],
            "metrics":    [{"name": "sessions"}, {"name": "totalUsers"}],
        }
        if dimension_filter:
            body["dimensionFilter"] = dimension_filter
        resp = self.service.properties().runReport(property=prop, body=body).execute()
        return resp.get("rows", [])

    def _totals(self, property_id: str, window: DateWindow) -> dict:
        rows = self._report(property_id, window, [])
        sessions, users = _metric_ints(rows[0]) if rows else (0, 0)
        return {"sessions": sessions, "total_users": users}

    def _ai_traffic(self, property_id: str, window: DateWindow) -> dict:
        rows = self._report(property_id, window, ["sessionSource"], _ai_filter())
        by_source: dict[str, dict] = {}
        for row in rows:
            source = canonical_ai_source(row["dimensionValues"][0]["value"])
            sessions, users = _metric_ints(row)
            entry = by_source.setdefault(source, {"source": source, "sessions": 0, "users": 0})
            entry["sessions"] += sessions
            entry["users"] += users

        total_sessions = sum(e["sessions"] for e in by_source.values())
        total_users = sum(e["users"] for e in by_source.values())
        top = sorted(by_source.values(), key=lambda e: e["sessions"], reverse=True)
        for entry in top:
            entry["percentage"] = round(entry["sessions"] / total_sessions * 100, 1) if total_sessions else 0
        return {"total_sessions": total_sessions, "total_users": total_users, "top_sources": top}

    def fetch(self, property_id: str, windows: ComparisonWindows) -> dict:
        cur, prev = windows.current, windows.previous
        logger.info("Fetching GA4 for %s (%s → %s)", property_id, cur.start_date, cur.end_date)

        current = self._totals(property_id, cur)
        previous = self._totals(property_id, prev)
        day_rows = sorted(self._report(property_id, cur, ["date"]),
                          key=lambda r: r["dimensionValues"][0]["value"])
        ai_current = self._ai_traffic(property_id, cur)
        ai_previous = self._ai_traffic(property_id, prev)

        ai_current["total_sessions_change"] = delta(
            ai_current["total_sessions"], ai_previous["total_sessions"]).change
        ai_current["total_users_change"] = delta(
            ai_current["total_users"], ai_previous["total_users"]).change

        daily = [(_ga4_date(r["dimensionValues"][0]["value"]), _metric_ints(r)) for r in day_rows]
        return {
            "current":  current,
            "previous": previous,
            "daily": {
                "sessions":    [{"date": d, "value": m[0]} for d, m in daily],
                "total_users": [{"date": d, "value": m[1]} for d, m in daily],
            },
            "ai_traffic": ai_current,
        }
