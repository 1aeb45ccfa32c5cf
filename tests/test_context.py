"""Tests for context.py — rolling window and freshness cache."""

import pytest

from conftest import MINUTE, make_tab
from context import ContextCache, ContextTracker


@pytest.fixture
def tracker(store, clock):
    return ContextTracker(store, clock=clock)


class TestUpdateContext:
    def test_weights_and_order(self, store, clock, tracker):
        now = clock()
        # 10 min old, 2 min dwell: dwell saturates
        store.put_tab(make_tab(tab_id=1, last_active_at=now - 10 * MINUTE, active_score=120000, project_id="p1"))
        # just active, 30s dwell
        store.put_tab(make_tab(tab_id=2, last_active_at=now, active_score=30000, project_id="p2"))
        # outside the 30 min window
        store.put_tab(make_tab(tab_id=3, last_active_at=now - 31 * MINUTE, active_score=999999))
        # other window
        store.put_tab(make_tab(tab_id=4, window_id=2, last_active_at=now))

        activated = make_tab(tab_id=2, project_id="p2", subproject_id="s2")
        ctx = tracker.update_context(1, activated)

        assert [r.tab_id for r in ctx.recent_tabs] == [1, 2]
        assert ctx.recent_tabs[0].weight == pytest.approx(0.7 * 1.0 + 0.3 * (1 - 10 / 30))
        assert ctx.recent_tabs[1].weight == pytest.approx(0.7 * 0.5 + 0.3 * 1.0)
        assert ctx.recent_tabs[0].dwell_time == 120000
        assert ctx.active_project_id == "p2"
        assert ctx.active_subproject_id == "s2"
        assert ctx.computed_at == now

    def test_window_edge_excluded(self, store, clock, tracker):
        store.put_tab(make_tab(tab_id=1, last_active_at=clock() - 30 * MINUTE))
        ctx = tracker.update_context(1, make_tab(tab_id=1))
        assert ctx.recent_tabs == []

    def test_configurable_window(self, store, clock):
        tracker = ContextTracker(store, window_ms=5 * MINUTE, clock=clock)
        store.put_tab(make_tab(tab_id=1, last_active_at=clock() - 10 * MINUTE))
        assert tracker.update_context(1, make_tab(tab_id=1)).recent_tabs == []

    def test_empty_window(self, tracker):
        ctx = tracker.update_context(9, make_tab(tab_id=1, window_id=9))
        assert ctx.recent_tabs == []
        assert ctx.active_project_id is None


class TestGetContext:
    def test_fresh_then_stale(self, clock, tracker):
        ctx = tracker.update_context(1, make_tab())
        clock.advance(4999)
        assert tracker.get_context(1) == ctx
        clock.advance(1)
        assert tracker.get_context(1) is None

    def test_unknown_window(self, tracker):
        assert tracker.get_context(123) is None

    def test_clear(self, tracker):
        tracker.update_context(1, make_tab())
        tracker.clear_context(1)
        assert tracker.get_context(1) is None


class TestContextCache:
    def test_get_if_fresh_respects_max_age(self, clock, tracker):
        cache = ContextCache(clock)
        ctx = tracker.update_context(1, make_tab())
        cache.put(ctx)
        clock.advance(100)
        assert cache.get_if_fresh(1, 200) == ctx
        assert cache.get_if_fresh(1, 100) is None
