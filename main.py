"""
main.py — CLI entry point for the dashboard data loader.

Usage:
  python main.py --show PROJECT [--range 30d] [--force] [--summary]
                                   Print the dashboard payload for a project
  python main.py --refresh-now     Force-refresh the cache for all projects
  python main.py --schedule        Start the daily refresh scheduler (blocks)
  python main.py --init-db         Initialise the database and seed projects
  python main.py --clear-cache [--project ID] [--range 30d]
  python main.py --list-cache [--project ID]
  python main.py --debug-url URL   Show how a URL is normalised and expanded
"""

import argparse
import asyncio
import json
import logging
import sys

import yaml
from dotenv import load_dotenv

from analysis.dates import RANGE_DAYS

load_dotenv()

# ── Logging setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("dashboard.log", encoding="utf-8"),
    ],
)
logger = logging.getLogger("main")


# ── Config loader ─────────────────────────────────────────────────────────────

def load_config(path: str = "config.yaml") -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def build_gateway(settings: dict):
    """Construct stores, sources and the gateway once per process."""
    from analysis.ga4 import AnalyticsSource
    from analysis.gsc import SearchConsoleSource
    from dashboard.gateway import DashboardGateway
    from storage.cache import CacheStore
    from storage.projects import ProjectStore

    return DashboardGateway(
        cache=CacheStore(),
        projects=ProjectStore(),
        search_console=SearchConsoleSource(),
        analytics=AnalyticsSource(),
        staleness_hours=settings.get("staleness_hours", 48),
    )


# ── Commands ──────────────────────────────────────────────────────────────────

def init_db_and_seed(config: dict) -> None:
    from storage.db import init_db
    from storage.projects import ProjectStore

    init_db()
    ProjectStore().seed_projects(config.get("projects", []))


def run_refresh():
    """Entry point called by the scheduler and --refresh-now."""
    from dashboard.batch import deadline_in, refresh_all
    from notifications.alerts import send_refresh_summary

    config   = load_config()
    settings = config.get("settings", {})
    init_db_and_seed(config)

    gateway = build_gateway(settings)
    project_ids = gateway.projects.projects_for_refresh()

    logger.info("=== Starting cache refresh ===")
    report = asyncio.run(refresh_all(
        gateway,
        project_ids,
        deadline=deadline_in(settings.get("batch_budget_seconds", 50)),
        ranges=tuple(settings.get("prefill_ranges", ["30d"])),
        batch_size=settings.get("batch_size", 3),
    ))
    send_refresh_summary(report.as_dict())
    return report


def show_project(project_id: str, range_key: str, force: bool, summary: bool) -> None:
    config = load_config()
    init_db_and_seed(config)
    gateway = build_gateway(config.get("settings", {}))

    result = asyncio.run(gateway.get_or_fetch(project_id, range_key, force_refresh=force))
    print(json.dumps(result.as_dict(), indent=2, ensure_ascii=False))

    if summary:
        from analysis.ai_summary import summarise_dashboard
        print(f"\n{'='*60}\n{summarise_dashboard(result.payload)}\n")


def clear_cache(project_id, range_key) -> None:
    from storage.cache import CacheStore
    from storage.db import init_db

    init_db()
    deleted = CacheStore().clear(project_id=project_id, range_key=range_key)
    print(f"{deleted} cache entries deleted")


def list_cache(project_id) -> None:
    from storage.cache import CacheStore
    from storage.db import init_db

    init_db()
    for e in CacheStore().entries(project_id=project_id):
        print(f"  {e['project_id']:<24} {e['range_key']:<5} {e['last_fetched']}  ({e['age_hours']:.1f}h old)")


# ── CLI ───────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(
        description="Dashboard data loader — Search Console + Analytics with a per-project cache"
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--show", metavar="PROJECT", help="Print the dashboard payload for a project")
    group.add_argument(
        "--refresh-now",
        action="store_true",
        help="Force-refresh the cache for all configured projects",
    )
    group.add_argument(
        "--schedule",
        action="store_true",
        help="Start the daily refresh scheduler (blocks until interrupted)",
    )
    group.add_argument(
        "--init-db",
        action="store_true",
        help="Initialise the database and seed projects and landing pages only",
    )
    group.add_argument("--clear-cache", action="store_true", help="Delete cache entries")
    group.add_argument("--list-cache", action="store_true", help="List cache entries and their age")
    group.add_argument("--debug-url", metavar="URL", help="Show the normalised key and variants of a URL")

    parser.add_argument("--range", choices=list(RANGE_DAYS), default=None,
                        help="Reporting range (default 30d for --show)")
    parser.add_argument("--project", help="Limit --clear-cache / --list-cache to one project")
    parser.add_argument("--force", action="store_true", help="Bypass the cache for --show")
    parser.add_argument("--summary", action="store_true", help="Add an AI-written summary to --show")

    args = parser.parse_args()

    if args.show:
        show_project(args.show, args.range or "30d", args.force, args.summary)

    elif args.refresh_now:
        run_refresh()

    elif args.schedule:
        config   = load_config()
        settings = config.get("settings", {})
        hour     = settings.get("schedule_hour", 4)
        from scheduler import start_scheduler
        start_scheduler(run_refresh, schedule_hour=hour)

    elif args.init_db:
        init_db_and_seed(load_config())
        logger.info("Database initialised and projects seeded.")

    elif args.clear_cache:
        clear_cache(args.project, args.range)

    elif args.list_cache:
        list_cache(args.project)

    elif args.debug_url:
        from matching.urls import debug_url_matching
        print(json.dumps(debug_url_matching(args.debug_url), indent=2))


if __name__ == "__main__":
    main()
