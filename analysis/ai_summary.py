"""
Claude-powered narrative summary of a dashboard payload: what moved between
the two comparison windows and which landing pages drove it.
"""

import json
import logging
import os

import anthropic

logger = logging.getLogger(__name__)

MODEL = "claude-sonnet-4-6"
MAX_LANDING_PAGES = 15


def _client() -> anthropic.Anthropic:
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise EnvironmentError("ANTHROPIC_API_KEY is not set")
    return anthropic.Anthropic(api_key=api_key)


def _kpi_lines(kpis: dict) -> str:
    lines = []
    for name, kpi in kpis.items():
        lines.append(f"- {name}: {kpi.get('value', 0):,} ({kpi.get('change', 0):+.1f}% vs previous period)")
        ai = kpi.get("ai_traffic")
        if ai:
            lines.append(
                f"  - from AI assistants: {ai.get('value', 0):,} sessions "
                f"({ai.get('percentage', 0):.1f}% of all, {ai.get('change', 0):+.1f}%)"
            )
    return "\n".join(lines)


def _top_movers(landing_pages: list) -> list:
    matched = [lp for lp in landing_pages if lp.get("matched_url")]
    return sorted(matched, key=lambda lp: abs(lp.get("clicks_change") or 0), reverse=True)[:MAX_LANDING_PAGES]


def build_prompt(payload: dict) -> str:
    windows = payload.get("windows", {}).get("gsc", {})
    current = windows.get("current", {})
    previous = windows.get("previous", {})
    errors = payload.get("api_errors") or {}

    unavailable = ""
    if errors:
        unavailable = (
            "\nSome data sources were unavailable for this refresh, so treat their "
            f"metrics as missing rather than zero: {', '.join(sorted(errors))}\n"
        )

    movers = [
        {k: lp.get(k) for k in ("url", "clicks", "clicks_change", "impressions", "position", "position_change")}
        for lp in _top_movers(payload.get("landing_pages", []))
    ]

    return f"""You are an SEO analyst writing for a client dashboard.

Reporting period: {current.get('start')} to {current.get('end')}
Compared with: {previous.get('start')} to {previous.get('end')}
{unavailable}
--- KPIs ---
{_kpi_lines(payload.get('kpis', {}))}

--- TOP QUERIES ---
{json.dumps(payload.get('top_queries', [])[:10], indent=2)}

--- LANDING PAGES WITH THE LARGEST CLICK CHANGES ---
{json.dumps(movers, indent=2)}

Write 3-5 sentences in plain language covering:
1. The overall direction of search and site traffic
2. Which queries or landing pages explain the change
3. One concrete next step

Do not invent numbers that are not in the data above."""


def summarise_dashboard(payload: dict) -> str:
    """Ask Claude for a short narrative of the KPI changes in a payload."""
    try:
        client = _client()
        message = client.messages.create(
            model=MODEL,
            max_tokens=400,
            messages=[{"role": "user", "content": build_prompt(payload)}],
        )
        return message.content[0].text.strip()
    except Exception as exc:
        logger.error("Claude dashboard summary failed for %s: %s", payload.get("project_id"), exc)
        return f"[AI summary unavailable: {exc}]"
