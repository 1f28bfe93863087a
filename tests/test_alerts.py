"""Slack summary after a batch refresh."""

from unittest.mock import MagicMock, patch

from notifications.alerts import build_refresh_message, send_refresh_summary

REPORT = {
    "total": 4, "processed": 3, "refreshes": 2, "timed_out": True,
    "failures": [{"project_id": "p1", "range": "30d", "error": "Unknown project p1"}],
}


class TestBuildRefreshMessage:
    def test_counts_and_failures(self):
        text = build_refresh_message(REPORT)["text"]
        assert "3/4 processed" in text
        assert "Failures: 1" in text
        assert "`p1` (30d): Unknown project p1" in text
        assert "Time budget exhausted" in text
        assert text.startswith("⚠️")

    def test_clean_run(self):
        report = {**REPORT, "processed": 4, "refreshes": 4, "timed_out": False, "failures": []}
        assert build_refresh_message(report)["text"].startswith("✅")


class TestSendRefreshSummary:
    """Webhook delivery."""

    def test_no_webhook(self, monkeypatch):
        monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
        with patch("notifications.alerts.requests.post") as post:
            assert send_refresh_summary(REPORT) is False
        post.assert_not_called()

    def test_posts(self, monkeypatch):
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.example/x")
        with patch("notifications.alerts.requests.post", return_value=MagicMock(status_code=200)) as post:
            assert send_refresh_summary(REPORT) is True
        assert post.call_args.args[0] == "https://hooks.slack.example/x"
        assert "blocks" in post.call_args.kwargs["json"]

    def test_non_200(self, monkeypatch):
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.example/x")
        with patch("notifications.alerts.requests.post", return_value=MagicMock(status_code=500, text="err")):
            assert send_refresh_summary(REPORT) is False
