"""
Notifications: Slack webhook summary after a scheduled cache refresh.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

import requests

logger = logging.getLogger(__name__)

MAX_LISTED_FAILURES = 10


def _slack_webhook_url() -> Optional[str]:
    return os.getenv("SLACK_WEBHOOK_URL")


def build_refresh_message(report: dict) -> dict:
    ok = not report["failures"] and not report["timed_out"]
    emoji = "✅" if ok else "⚠️"

    lines = [
        f"{emoji} *Dashboard cache refresh*",
        f"Projects: {report['processed']}/{report['total']} processed | "
        f"Refreshes: {report['refreshes']} | Failures: {len(report['failures'])}",
    ]
    if report["timed_out"]:
        lines.append("Time budget exhausted — remaining projects will be refreshed on the next run.")
    for failure in report["failures"][:MAX_LISTED_FAILURES]:
        lines.append(f"• `{failure['project_id']}` ({failure['range']}): {failure['error']}")

    text = "\n".join(lines)
    return {
        "text": text,
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": text}},
            {
                "type": "context",
                "elements": [{
                    "type": "mrkdwn",
                    "text": f"Finished at {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
                }],
            },
        ],
    }


def send_refresh_summary(report: dict) -> bool:
    """
    Post a batch-refresh summary to Slack.
    Returns True on success, False on failure or when no webhook is configured.
    """
    webhook_url = _slack_webhook_url()
    if not webhook_url:
        logger.warning("SLACK_WEBHOOK_URL not set — skipping Slack notification")
        return False

    try:
        resp = requests.post(webhook_url, json=build_refresh_message(report), timeout=10)
        if resp.status_code == 200:
            logger.info("Slack refresh summary sent")
            return True
        logger.error("Slack webhook returned %d: %s", resp.status_code, resp.text)
        return False
    except Exception as exc:
        logger.error("Failed to send Slack refresh summary: %s", exc)
        return False
