"""Analytics fetcher against a mocked Data API client."""

from datetime import date
from unittest.mock import MagicMock

from analysis.dates import GA4_DATA_DELAY_DAYS, compute_windows
from analysis.ga4 import AI_SOURCES, AnalyticsSource, canonical_ai_source

WINDOWS = compute_windows("30d", GA4_DATA_DELAY_DAYS, date(2026, 10, 17))


def _row(dims, sessions, users):
    return {
        "dimensionValues": [{"value": d} for d in dims],
        "metricValues": [{"value": str(sessions)}, {"value": str(users)}],
    }


def _service(*responses):
    service = MagicMock()
    service.properties.return_value.runReport.return_value.execute.side_effect = list(responses)
    return service


def _responses():
    totals_current = {"rows": [_row([], 500, 300)]}
    totals_previous = {"rows": [_row([], 400, 300)]}
    daily = {"rows": [_row(["20261016"], 20, 15), _row(["20261015"], 30, 25)]}
    ai_current = {"rows": [
        _row(["chatgpt.com"], 10, 8),
        _row(["chat.openai.com"], 5, 4),
        _row(["perplexity.ai"], 10, 9),
    ]}
    ai_previous = {"rows": [_row(["claude.ai"], 20, 16)]}
    return totals_current, totals_previous, daily, ai_current, ai_previous


class TestAnalyticsSource:
    """Totals, daily series and AI-referred traffic."""

    def test_totals(self):
        data = AnalyticsSource(lambda: _service(*_responses())).fetch("123", WINDOWS)
        assert data["current"] == {"sessions": 500, "total_users": 300}
        assert data["previous"] == {"sessions": 400, "total_users": 300}

    def test_daily_sorted_and_reformatted(self):
        data = AnalyticsSource(lambda: _service(*_responses())).fetch("123", WINDOWS)
        assert data["daily"]["sessions"] == [
            {"date": "2026-10-15", "value": 30},
            {"date": "2026-10-16", "value": 20},
        ]
        assert [p["value"] for p in data["daily"]["total_users"]] == [25, 15]

    def test_ai_traffic_grouped(self):
        ai = AnalyticsSource(lambda: _service(*_responses())).fetch("123", WINDOWS)["ai_traffic"]
        assert ai["total_sessions"] == 25
        assert ai["total_users"] == 21
        assert ai["top_sources"][0] == {"source": "chatgpt.com", "sessions": 15, "users": 12, "percentage": 60.0}
        assert ai["top_sources"][1]["source"] == "perplexity.ai"
        assert ai["total_sessions_change"] == 25.0
        assert ai["total_users_change"] == 31.3

    def test_report_requests(self):
        service = _service(*_responses())
        AnalyticsSource(lambda: service).fetch("123", WINDOWS)

        calls = service.properties.return_value.runReport.call_args_list
        assert len(calls) == 5
        assert all(c.kwargs["property"] == "properties/123" for c in calls)

        body = calls[0].kwargs["body"]
        assert body["dateRanges"] == [{"startDate": "2026-09-17", "endDate": "2026-10-16"}]
        assert body["metrics"] == [{"name": "sessions"}, {"name": "totalUsers"}]
        assert calls[2].kwargs["body"]["dimensions"] == [{"name": "date"}]

        ai_filter = calls[3].kwargs["body"]["dimensionFilter"]["orGroup"]["expressions"]
        assert len(ai_filter) == len(AI_SOURCES)

    def test_prefixed_property_kept(self):
        service = _service(*_responses())
        AnalyticsSource(lambda: service).fetch("properties/123", WINDOWS)
        assert service.properties.return_value.runReport.call_args.kwargs["property"] == "properties/123"

    def test_empty_property(self):
        data = AnalyticsSource(lambda: _service({}, {}, {}, {}, {})).fetch("123", WINDOWS)
        assert data["current"] == {"sessions": 0, "total_users": 0}
        assert data["ai_traffic"]["top_sources"] == []
        assert data["ai_traffic"]["total_sessions_change"] == 0


class TestCanonicalAiSource:
    def test_groups(self):
        assert canonical_ai_source("chat.openai.com") == "chatgpt.com"
        assert canonical_ai_source("Claude.ai") == "claude.ai"
        assert canonical_ai_source("bard.google.com") == "gemini.google.com"

    def test_unknown_kept(self):
        assert canonical_ai_source("example.org") == "example.org"
