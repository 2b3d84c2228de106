"""Tests for TriageCache staleness bookkeeping."""

from __future__ import annotations

import pytest

from mail_triage.cache import TriageCache
from mail_triage.models import TriageEmail, Window

from conftest import NOW


def _email(msg_id: str) -> TriageEmail:
    return TriageEmail.model_validate(
        {"id": msg_id, "receivedAt": NOW, "category": "ACTIONABLE", "summary": msg_id}
    )


class TestTriageCache:
    def test_empty_cache(self) -> None:
        cache = TriageCache()
        for window in Window:
            assert not cache.is_populated(window)
            assert cache.get(window) == []
            assert cache.is_stale(window, "2026-10-19")

    def test_today_is_always_stale(self) -> None:
        cache = TriageCache()
        cache.store(Window.TODAY, [_email("a")])
        assert cache.is_populated(Window.TODAY)
        assert cache.is_stale(Window.TODAY, "2026-10-19")
        assert cache.last_refreshed(Window.TODAY) is None

    def test_daily_window_fresh_until_day_changes(self) -> None:
        cache = TriageCache()
        cache.store(Window.YESTERDAY, [_email("a")], day="2026-10-19")

        assert not cache.is_stale(Window.YESTERDAY, "2026-10-19")
        assert cache.is_stale(Window.YESTERDAY, "2026-10-20")
        assert cache.is_stale(Window.WEEK, "2026-10-19")
        assert cache.last_refreshed(Window.YESTERDAY) == "2026-10-19"

    def test_empty_result_counts_as_refreshed(self) -> None:
        cache = TriageCache()
        cache.store(Window.WEEK, [], day="2026-10-19")
        assert cache.is_populated(Window.WEEK)
        assert not cache.is_stale(Window.WEEK, "2026-10-19")

    def test_daily_window_requires_day(self) -> None:
        with pytest.raises(ValueError):
            TriageCache().store(Window.WEEK, [])

    def test_get_returns_a_copy(self) -> None:
        cache = TriageCache()
        cache.store(Window.TODAY, [_email("a")])
        cache.get(Window.TODAY).clear()
        assert [e.id for e in cache.get(Window.TODAY)] == ["a"]
