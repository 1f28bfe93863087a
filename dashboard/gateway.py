"""
Fetch-or-cache loader in front of the Google reporting APIs.

``get_or_fetch(project_id, range_key, force_refresh)`` serves a cached
dashboard payload while it is younger than the staleness window, and
otherwise fetches both sources concurrently, merges them, writes the
landing-page metrics back and overwrites the cache row.

A failing source never takes the other one down: its metrics are zeroed and
the failure is reported under ``api_errors.<source>``. Database errors are
not caught and reach the caller.

Concurrent misses for the same (project, range) share one refresh. Store calls
run in worker threads like the source fetches; each opens its own connection.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from analysis.compare import compare_totals, delta, position_change
from analysis.dates import (
    GA4_DATA_DELAY_DAYS,
    GSC_DATA_DELAY_DAYS,
    RANGE_DAYS,
    ComparisonWindows,
    compute_windows,
)
from dashboard.results import Err, Ok, SourceResult, settle, skipped
from matching.matcher import match_external_rows

logger = logging.getLogger(__name__)

CACHE_DURATION_HOURS = 48

_ZERO_GSC = {"clicks": 0, "impressions": 0, "position": 0}
_ZERO_GA4 = {"sessions": 0, "total_users": 0}
_ZERO_AI_TRAFFIC = {
    "total_sessions": 0, "total_users": 0, "top_sources": [],
    "total_sessions_change": 0, "total_users_change": 0,
}


class ProjectNotConfigured(LookupError):
    """Unknown project, or one with neither Search Console nor Analytics set up."""


@dataclass
class FetchResult:
    payload: dict
    from_cache: bool

    def as_dict(self) -> dict:
        return {**self.payload, "from_cache": self.from_cache}


# ── Merge ─────────────────────────────────────────────────────────────────────

def _status(result: SourceResult) -> str:
    if isinstance(result, Ok):
        return "ok"
    if isinstance(result, Err):
        return "error"
    return "skipped"


def landing_page_metrics(landingpages: list[dict], gsc: SourceResult) -> list[dict]:
    """
    Per stored landing page: the matched provider URL and its metrics with
    changes. Pages without a provider row in either window are zeroed.
    """
    urls = [lp["url"] for lp in landingpages]
    if isinstance(gsc, Ok):
        current = match_external_rows(urls, gsc.value["pages"]["current"])
        previous = match_external_rows(urls, gsc.value["pages"]["previous"])
    else:
        current = previous = {u: None for u in urls}

    results = []
    for lp in landingpages:
        cur, prev = current.get(lp["url"]), previous.get(lp["url"])
        if cur is None and prev is None:
            results.append({
                "id": lp["id"], "url": lp["url"], "matched_url": None,
                "clicks": 0, "clicks_change": 0,
                "impressions": 0, "impressions_change": 0,
                "position": None, "position_change": 0,
            })
            continue

        cur_clicks, cur_impr, cur_pos = (cur.clicks, cur.impressions, cur.position) if cur else (0, 0, 0)
        prev_clicks, prev_impr, prev_pos = (prev.clicks, prev.impressions, prev.position) if prev else (0, 0, 0)
        results.append({
            "id":                 lp["id"],
            "url":                lp["url"],
            "matched_url":        (cur or prev).raw_url,
            "clicks":             cur_clicks,
            "clicks_change":      delta(cur_clicks, prev_clicks).change,
            "impressions":        cur_impr,
            "impressions_change": delta(cur_impr, prev_impr).change,
            "position":           round(cur_pos, 1) if cur_pos else None,
            "position_change":    position_change(cur_pos, prev_pos),
        })
    return results


def merge_payload(
    project_id: str,
    range_key: str,
    gsc: SourceResult,
    ga4: SourceResult,
    gsc_windows: ComparisonWindows,
    ga4_windows: ComparisonWindows,
    landing_pages: list[dict],
    fetched_at: datetime,
) -> dict:
    """Combine both source results into one dashboard payload."""
    gsc_data = gsc.value if isinstance(gsc, Ok) else {}
    ga4_data = ga4.value if isinstance(ga4, Ok) else {}

    gsc_kpis = compare_totals(gsc_data.get("current", _ZERO_GSC), gsc_data.get("previous", _ZERO_GSC))
    ga4_kpis = compare_totals(ga4_data.get("current", _ZERO_GA4), ga4_data.get("previous", _ZERO_GA4))
    ai_traffic = ga4_data.get("ai_traffic") or {**_ZERO_AI_TRAFFIC, "top_sources": []}

    sessions = ga4_kpis["sessions"].value
    ai_share = round(ai_traffic["total_sessions"] / sessions * 100, 1) if sessions > 0 else 0

    kpis = {name: d.as_dict() for name, d in {**gsc_kpis, **ga4_kpis}.items()}
    kpis["sessions"]["ai_traffic"] = {
        "value":      ai_traffic["total_sessions"],
        "percentage": ai_share,
        "change":     ai_traffic["total_sessions_change"],
    }

    gsc_daily = gsc_data.get("daily", {})
    ga4_daily = ga4_data.get("daily", {})
    api_errors = {
        name: result.message
        for name, result in (("gsc", gsc), ("ga4", ga4))
        if isinstance(result, Err)
    }

    matched = sum(1 for lp in landing_pages if lp["matched_url"])
    return {
        "project_id": project_id,
        "range":      range_key,
        "fetched_at": fetched_at.isoformat(),
        "windows": {
            "gsc": gsc_windows.as_dict(),
            "ga4": ga4_windows.as_dict(),
        },
        "kpis": kpis,
        "charts": {
            "clicks":      gsc_daily.get("clicks", []),
            "impressions": gsc_daily.get("impressions", []),
            "sessions":    ga4_daily.get("sessions", []),
            "total_users": ga4_daily.get("total_users", []),
        },
        "top_queries":   gsc_data.get("top_queries", []),
        "ai_traffic":    ai_traffic,
        "landing_pages": landing_pages,
        "landing_page_summary": {
            "total":     len(landing_pages),
            "matched":   matched,
            "unmatched": len(landing_pages) - matched,
        },
        "sources":    {"gsc": _status(gsc), "ga4": _status(ga4)},
        "api_errors": api_errors,
    }


# ── Gateway ───────────────────────────────────────────────────────────────────

class DashboardGateway:
    """
    Entry point for dashboard data. Stores and sources are injected so the
    gateway can run against fakes; ``clock`` returns an aware UTC datetime.
    """

    def __init__(
        self,
        cache,
        projects,
        search_console,
        analytics,
        staleness_hours: float = CACHE_DURATION_HOURS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.cache = cache
        self.projects = projects
        self.search_console = search_console
        self.analytics = analytics
        self.staleness = timedelta(hours=staleness_hours)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._inflight: dict[tuple, asyncio.Task] = {}

    async def get_or_fetch(self, project_id: str, range_key: str = "30d",
                           force_refresh: bool = False) -> FetchResult:
        if range_key not in RANGE_DAYS:
            raise ValueError(f"Unknown range {range_key!r}")

        entry = await asyncio.to_thread(self.cache.get, project_id, range_key)
        if entry and not force_refresh:
            age = self.clock() - entry["last_fetched"]
            if age < self.staleness:
                logger.info("[Cache HIT] %s (%s)", project_id, range_key)
                return FetchResult(entry["payload"], from_cache=True)
            logger.info("[Cache STALE] %s (%s) — age %.2fh", project_id, range_key, age.total_seconds() / 3600)
        elif entry:
            logger.info("[Cache FORCE] %s (%s)", project_id, range_key)
        else:
            logger.info("[Cache MISS] %s (%s)", project_id, range_key)

        payload = await self._refresh_once(project_id, range_key)
        return FetchResult(payload, from_cache=False)

    async def _refresh_once(self, project_id: str, range_key: str) -> dict:
        key = (project_id, range_key)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(project_id, range_key))
            self._inflight[key] = task

            def _forget(t, key=key):
                if self._inflight.get(key) is t:
                    del self._inflight[key]

            task.add_done_callback(_forget)
        else:
            logger.info("[Cache JOIN] %s (%s) — refresh already in flight", project_id, range_key)
        return await asyncio.shield(task)

    async def _refresh(self, project_id: str, range_key: str) -> dict:
        project = await asyncio.to_thread(self.projects.get_project, project_id)
        if not project:
            raise ProjectNotConfigured(f"Unknown project {project_id}")

        site_url = project.get("gsc_site_url")
        property_id = project.get("ga4_property_id")
        if not site_url and not property_id:
            raise ProjectNotConfigured(f"Project {project_id} has neither GSC nor GA4 configured")

        today = self.clock().date()
        gsc_windows = compute_windows(range_key, GSC_DATA_DELAY_DAYS, today)
        ga4_windows = compute_windows(range_key, GA4_DATA_DELAY_DAYS, today)
        landingpages = await asyncio.to_thread(self.projects.get_landingpages, project_id)

        logger.info("[Cache FETCH] %s (%s)", project_id, range_key)
        gsc, ga4 = await asyncio.gather(
            settle("gsc", self.search_console.fetch, site_url, gsc_windows) if site_url else skipped(),
            settle("ga4", self.analytics.fetch, property_id, ga4_windows) if property_id else skipped(),
        )

        now = self.clock()
        pages = landing_page_metrics(landingpages, gsc)
        if isinstance(gsc, Ok) and pages:
            matched = sum(1 for p in pages if p["matched_url"])
            logger.info(
                "%s: %d/%d landing pages matched (%.1f%%)",
                project_id, matched, len(pages), matched / len(pages) * 100,
            )
            await asyncio.to_thread(self.projects.update_landingpage_metrics, pages, range_key, now)

        payload = merge_payload(project_id, range_key, gsc, ga4, gsc_windows, ga4_windows, pages, now)
        await asyncio.to_thread(self.cache.upsert, project_id, range_key, payload, now)
        return payload
