"""Deadline-bounded batch refresh."""

import asyncio

from dashboard.batch import BatchReport, deadline_in, refresh_all
from dashboard.gateway import FetchResult, ProjectNotConfigured


class FakeGateway:
    def __init__(self, failing=(), api_errors=None):
        self.failing = set(failing)
        self.api_errors = api_errors or {}
        self.calls = []

    async def get_or_fetch(self, project_id, range_key="30d", force_refresh=False):
        self.calls.append((project_id, range_key, force_refresh))
        if project_id in self.failing:
            raise ProjectNotConfigured(f"Unknown project {project_id}")
        return FetchResult({"api_errors": self.api_errors.get(project_id, {})}, from_cache=False)


def _ids(n):
    return [f"p{i}" for i in range(n)]


class TestRefreshAll:
    """Grouping, deadline and failure isolation."""

    def test_all_projects_refreshed(self):
        gateway = FakeGateway()
        report = asyncio.run(refresh_all(gateway, _ids(7), deadline=float("inf")))

        assert report.total == 7
        assert report.processed == 7
        assert report.refreshes == 7
        assert report.timed_out is False
        assert {c[0] for c in gateway.calls} == set(_ids(7))

    def test_always_force_refresh(self):
        gateway = FakeGateway()
        asyncio.run(refresh_all(gateway, _ids(2), deadline=float("inf")))
        assert all(force for _, _, force in gateway.calls)

    def test_every_range_refreshed(self):
        gateway = FakeGateway()
        report = asyncio.run(refresh_all(gateway, _ids(2), deadline=float("inf"), ranges=("30d", "7d")))
        assert report.refreshes == 4
        assert sorted(c[1] for c in gateway.calls) == ["30d", "30d", "7d", "7d"]

    def test_deadline_stops_before_next_group(self):
        gateway = FakeGateway()
        clock = iter([0, 0, 100]).__next__

        report = asyncio.run(refresh_all(gateway, _ids(9), deadline=50, batch_size=3, clock=clock))

        assert report.processed == 6
        assert report.timed_out is True
        assert len(gateway.calls) == 6

    def test_deadline_already_passed(self):
        gateway = FakeGateway()
        report = asyncio.run(refresh_all(gateway, _ids(3), deadline=-1))
        assert report.processed == 0
        assert report.timed_out is True
        assert gateway.calls == []

    def test_failure_does_not_stop_others(self):
        gateway = FakeGateway(failing={"p1"})
        report = asyncio.run(refresh_all(gateway, _ids(3), deadline=float("inf")))

        assert report.processed == 3
        assert report.refreshes == 2
        assert report.failures == [{"project_id": "p1", "range": "30d", "error": "Unknown project p1"}]

    def test_source_errors_count_as_refreshed(self):
        gateway = FakeGateway(api_errors={"p0": {"gsc": "quota"}})
        report = asyncio.run(refresh_all(gateway, _ids(1), deadline=float("inf")))
        assert report.refreshes == 1
        assert report.failures == []

    def test_empty_project_list(self):
        report = asyncio.run(refresh_all(FakeGateway(), [], deadline=float("inf")))
        assert report.as_dict() == BatchReport().as_dict()


class TestDeadlineIn:
    def test_offsets_clock(self):
        assert deadline_in(50, clock=lambda: 10.0) == 60.0
