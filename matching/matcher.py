"""
Lines up stored landing-page URLs with the page rows Search Console reports.

Two passes per provider row:
  1. direct   — normalize(row.raw_url) equals normalize(target)
  2. expanded — normalize(row.raw_url) equals a normalized variant of a target

The direct pass always runs first so the locale-insertion heuristic in the
variant generator can't steal a row that matches a stored URL exactly.
When two targets expand to the same normalized variant, the target listed
first claims it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from matching.urls import generate_variants, normalize_url

logger = logging.getLogger(__name__)


@dataclass
class MetricRow:
    """One page row as reported by Search Console."""
    raw_url: str
    clicks: float = 0
    impressions: float = 0
    position: float = 0

    @classmethod
    def from_api(cls, row: dict) -> "MetricRow":
        keys = row.get("keys") or [""]
        return cls(
            raw_url=str(keys[0]),
            clicks=row.get("clicks", 0) or 0,
            impressions=row.get("impressions", 0) or 0,
            position=row.get("position", 0) or 0,
        )


def _build_indexes(target_urls: list[str]) -> tuple[dict, dict]:
    direct: dict[str, str] = {}
    expanded: dict[str, str] = {}
    for target in target_urls:
        direct.setdefault(normalize_url(target), target)
        for variant in generate_variants(target):
            # first-registered target wins on collision
            expanded.setdefault(normalize_url(variant), target)
    return direct, expanded


def match_external_rows(
    target_urls: list[str],
    rows: list[MetricRow],
) -> dict[str, Optional[MetricRow]]:
    """
    Map every target URL to the provider row that reports it, or None.

    A direct match replaces an earlier expanded match for the same target;
    otherwise the first row to resolve to a target keeps it.
    """
    result: dict[str, Optional[MetricRow]] = {t: None for t in target_urls}
    direct_hits: set[str] = set()
    direct, expanded = _build_indexes(target_urls)

    for row in rows:
        key = normalize_url(row.raw_url)
        if not key:
            continue

        target = direct.get(key)
        if target is not None:
            if target not in direct_hits:
                result[target] = row
                direct_hits.add(target)
            continue

        target = expanded.get(key)
        if target is not None and result[target] is None:
            result[target] = row

    matched = sum(1 for r in result.values() if r is not None)
    logger.debug(
        "Matched %d/%d targets against %d provider rows (%d direct)",
        matched, len(result), len(rows), len(direct_hits),
    )
    return result


def find_matching_url(raw_url: str, target_urls: list[str]) -> Optional[str]:
    """Return the stored URL a single provider URL belongs to, or None."""
    key = normalize_url(raw_url)
    if not key:
        return None
    direct, expanded = _build_indexes(target_urls)
    return direct.get(key) or expanded.get(key)
