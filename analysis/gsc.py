"""
Google Search Console fetcher — the URL-keyed source.

For one site and a pair of comparison windows it returns daily clicks and
impressions, window totals, the top queries of the current window and the
per-page rows of both windows. Page rows carry the URL exactly as Google
reports it; lining them up with stored landing pages is the matcher's job.

API errors are not caught here. The caller settles each source on its own.
"""

import logging
from functools import partial
from typing import Callable, Optional

from analysis.dates import ComparisonWindows, DateWindow
from analysis.google_client import ThreadLocalService, build_service
from matching.matcher import MetricRow

logger = logging.getLogger(__name__)

PAGE_ROW_LIMIT = 5000
TOP_QUERY_LIMIT = 10


# ── GSC API queries ───────────────────────────────────────────────────────────

def _query(service, site_url: str, window: DateWindow, dimensions: list,
           limit: Optional[int] = None, order_by_clicks: bool = False) -> list:
    body = {
        "startDate":  window.start_date.isoformat(),
        "endDate":    window.end_date.isoformat(),
        "dimensions": dimensions,
    }
    if limit:
        body["rowLimit"] = limit
    if order_by_clicks:
        body["orderBy"] = [{"fieldName": "clicks", "sortOrder": "DESCENDING"}]
    resp = service.searchanalytics().query(siteUrl=site_url, body=body).execute()
    return resp.get("rows", [])


# ── Aggregation ───────────────────────────────────────────────────────────────

def _totals(date_rows: list) -> dict:
    clicks = sum(r.get("clicks", 0) for r in date_rows)
    impressions = sum(r.get("impressions", 0) for r in date_rows)
    position = round(
        sum(r.get("position", 0) * r.get("impressions", 0) for r in date_rows) / max(impressions, 1), 1
    ) if date_rows else 0.0
    return {"clicks": clicks, "impressions": impressions, "position": position}


def _daily(date_rows: list, metric: str) -> list:
    points = [{"date": r["keys"][0], "value": r.get(metric, 0)} for r in date_rows]
    return sorted(points, key=lambda p: p["date"])


def _top_queries(rows: list) -> list:
    return [
        {
            "query":       r["keys"][0],
            "clicks":      r.get("clicks", 0),
            "impressions": r.get("impressions", 0),
            "ctr":         round(r.get("ctr", 0) * 100, 2),
            "position":    round(r.get("position", 0), 1),
        }
        for r in rows
    ]


# ── Source ────────────────────────────────────────────────────────────────────

class SearchConsoleSource:
    """
    Blocking Search Console client. Each worker thread builds its own API
    service on first use; ``service_factory`` replaces the default builder.
    """

    name = "gsc"

    def __init__(self, service_factory: Optional[Callable] = None):
        self._services = ThreadLocalService(service_factory or partial(build_service, "searchconsole", "v1"))

    @property
    def service(self):
        return self._services.get()

    def fetch(self, site_url: str, windows: ComparisonWindows) -> dict:
        cur, prev = windows.current, windows.previous
        logger.info(
            "Fetching GSC for %s (%s → %s vs %s → %s)",
            site_url, cur.start_date, cur.end_date, prev.start_date, prev.end_date,
        )

        current_days  = _query(self.service, site_url, cur,  ["date"])
        previous_days = _query(self.service, site_url, prev, ["date"])
        top_rows      = _query(self.service, site_url, cur,  ["query"], TOP_QUERY_LIMIT, order_by_clicks=True)
        current_pages = _query(self.service, site_url, cur,  ["page"], PAGE_ROW_LIMIT)
        previous_pages = _query(self.service, site_url, prev, ["page"], PAGE_ROW_LIMIT)

        logger.info(
            "GSC %s: %d days, %d page rows (current), %d page rows (previous)",
            site_url, len(current_days), len(current_pages), len(previous_pages),
        )

        return {
            "current":  _totals(current_days),
            "previous": _totals(previous_days),
            "daily": {
                "clicks":      _daily(current_days, "clicks"),
                "impressions": _daily(current_days, "impressions"),
            },
            "top_queries": _top_queries(top_rows),
            "pages": {
                "current":  [MetricRow.from_api(r) for r in current_pages],
                "previous": [MetricRow.from_api(r) for r in previous_pages],
            },
        }
