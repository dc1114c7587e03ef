"""Tests for the health registry: failure streaks, snapshots, unknown targets."""

import pytest

from production_monitor.core.models import TargetStatus
from production_monitor.core.registry import HealthRegistry
from tests.helpers import fail, make_target, ok


@pytest.fixture
def registry():
    return HealthRegistry([make_target("api"), make_target("db")])


class TestFailureStreak:
    def test_failures_increment_by_one(self, registry) -> None:
        for expected in range(1, 5):
            registry.apply_results({"api": fail()})
            assert registry.get("api").consecutive_failures == expected

    def test_success_resets_streak(self, registry) -> None:
        registry.apply_results({"api": fail()})
        registry.apply_results({"api": fail()})
        registry.apply_results({"api": ok()})
        entry = registry.get("api")
        assert entry.consecutive_failures == 0
        assert entry.last_error is None
        assert entry.status == TargetStatus.HEALTHY

    def test_last_error_tracks_latest_failure(self, registry) -> None:
        registry.apply_results({"api": fail("Request timeout")})
        registry.apply_results({"api": fail("HTTP 500: Internal Server Error")})
        assert registry.get("api").last_error == "HTTP 500: Internal Server Error"

    def test_apply_single_result(self, registry) -> None:
        entry = registry.apply_result("db", fail())
        assert entry.consecutive_failures == 1
        assert registry.cycle == 0


class TestSnapshots:
    def test_cycle_counter(self, registry) -> None:
        snapshot = registry.apply_results({"api": ok(), "db": ok()})
        assert snapshot.cycle == 1
        assert registry.apply_results({"api": ok()}).cycle == 2

    def test_snapshot_is_not_affected_by_later_cycles(self, registry) -> None:
        first = registry.apply_results({"api": ok(), "db": ok()})
        registry.apply_results({"api": fail(), "db": fail()})
        assert first.get("api").healthy
        assert first.get("db").consecutive_failures == 0

    def test_initial_entries_unknown(self, registry) -> None:
        snapshot = registry.snapshot()
        assert [e.status for e in snapshot.values()] == [TargetStatus.UNKNOWN] * 2
        assert registry.target_names == ["api", "db"]

    def test_unknown_target_rejected_without_partial_apply(self, registry) -> None:
        with pytest.raises(KeyError):
            registry.apply_results({"api": fail(), "ghost": ok()})
        assert registry.get("api").consecutive_failures == 0
        assert registry.cycle == 0
