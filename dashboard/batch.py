"""
Scheduled cache prefill: force-refresh every configured project in small
concurrent groups until a wall-clock deadline passes.

The deadline is only checked between groups. A group that has started runs
to completion; groups that haven't started when the deadline passes are
skipped and picked up by the next run.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

BATCH_SIZE = 3
MAX_EXECUTION_SECONDS = 50
RANGES_TO_PREFILL = ("30d",)


@dataclass
class BatchReport:
    total: int = 0
    processed: int = 0
    refreshes: int = 0
    failures: list = field(default_factory=list)
    timed_out: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


def deadline_in(seconds: float, clock: Callable[[], float] = time.monotonic) -> float:
    return clock() + seconds


async def _refresh_project(gateway, project_id: str, ranges, report: BatchReport) -> None:
    for range_key in ranges:
        try:
            result = await gateway.get_or_fetch(project_id, range_key, force_refresh=True)
        except Exception as exc:
            logger.error("[Batch] %s (%s) failed: %s", project_id, range_key, exc)
            report.failures.append({"project_id": project_id, "range": range_key, "error": str(exc)})
            continue
        report.refreshes += 1
        errors = result.payload.get("api_errors") or {}
        if errors:
            logger.warning("[Batch] %s (%s) refreshed with source errors: %s", project_id, range_key, errors)


async def refresh_all(
    gateway,
    project_ids: list[str],
    deadline: float,
    ranges=RANGES_TO_PREFILL,
    batch_size: int = BATCH_SIZE,
    clock: Callable[[], float] = time.monotonic,
) -> BatchReport:
    """
    Force-refresh ``ranges`` for every project, ``batch_size`` projects at a
    time. ``deadline`` is a ``clock()`` value after which no new group starts.
    """
    report = BatchReport(total=len(project_ids))
    logger.info("[Batch] Starting refresh for %d projects", len(project_ids))

    for i in range(0, len(project_ids), batch_size):
        if clock() > deadline:
            logger.warning(
                "[Batch] Time budget exhausted — %d/%d projects processed, stopping",
                report.processed, report.total,
            )
            report.timed_out = True
            break

        group = project_ids[i:i + batch_size]
        await asyncio.gather(*(_refresh_project(gateway, pid, ranges, report) for pid in group))
        report.processed += len(group)

    logger.info(
        "[Batch] Done — %d/%d projects, %d refreshes, %d failures%s",
        report.processed, report.total, report.refreshes, len(report.failures),
        " (timed out)" if report.timed_out else "",
    )
    return report
