"""Prompt construction and graceful degradation of the Claude summary."""

from unittest.mock import MagicMock, patch

from analysis.ai_summary import build_prompt, summarise_dashboard

PAYLOAD = {
    "project_id": "shop",
    "windows": {"gsc": {
        "current":  {"start": "2026-09-16", "end": "2026-10-15"},
        "previous": {"start": "2026-08-17", "end": "2026-09-15"},
    }},
    "kpis": {
        "clicks":   {"value": 1200, "change": 20.0},
        "sessions": {"value": 500, "change": -4.5,
                     "ai_traffic": {"value": 25, "percentage": 5.0, "change": 25.0}},
    },
    "top_queries": [{"query": "schuhe", "clicks": 50}],
    "landing_pages": [
        {"url": "https://shop.example/a", "matched_url": "https://shop.example/a", "clicks_change": 10.0},
        {"url": "https://shop.example/b", "matched_url": "https://shop.example/b", "clicks_change": -80.0},
        {"url": "https://shop.example/c", "matched_url": None, "clicks_change": 0},
    ],
    "api_errors": {},
}


class TestBuildPrompt:
    """Prompt contents."""

    def test_period_and_kpis(self):
        prompt = build_prompt(PAYLOAD)
        assert "2026-09-16 to 2026-10-15" in prompt
        assert "- clicks: 1,200 (+20.0% vs previous period)" in prompt
        assert "from AI assistants: 25 sessions (5.0% of all, +25.0%)" in prompt
        assert "schuhe" in prompt

    def test_movers_ordered_by_absolute_change(self):
        prompt = build_prompt(PAYLOAD)
        assert prompt.index("shop.example/b") < prompt.index("shop.example/a")
        assert "shop.example/c" not in prompt

    def test_unavailable_sources_mentioned(self):
        prompt = build_prompt({**PAYLOAD, "api_errors": {"gsc": "quota"}})
        assert "unavailable" in prompt
        assert "gsc" in prompt


class TestSummariseDashboard:
    """Claude call and fallback text."""

    def test_no_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        assert summarise_dashboard(PAYLOAD).startswith("[AI summary unavailable:")

    def test_returns_text(self):
        client = MagicMock()
        client.messages.create.return_value.content = [MagicMock(text="  Traffic is up.  ")]
        with patch("analysis.ai_summary._client", return_value=client):
            assert summarise_dashboard(PAYLOAD) == "Traffic is up."
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["messages"][0]["role"] == "user"

    def test_api_error(self):
        client = MagicMock()
        client.messages.create.side_effect = RuntimeError("overloaded")
        with patch("analysis.ai_summary._client", return_value=client):
            assert summarise_dashboard(PAYLOAD) == "[AI summary unavailable: overloaded]"
