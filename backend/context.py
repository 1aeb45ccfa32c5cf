"""Active context tracking: rolling window of recent activity per browser window."""

import logging
from typing import Callable, Optional

from models import ActiveContext, RecentTabActivity, Tab, now_ms
from store import TabStore

log = logging.getLogger(__name__)

CONTEXT_WINDOW_MS = 30 * 60 * 1000
CONTEXT_FRESHNESS_MS = 5000
DWELL_SATURATION_MS = 60000
DWELL_TIME_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3


class ContextCache:
    """Latest ActiveContext per window, keyed by window id."""

    def __init__(self, clock: Callable[[], int] = now_ms):
        self._clock = clock
        self._entries: dict[int, tuple[ActiveContext, int]] = {}

    def put(self, context: ActiveContext):
        self._entries[context.window_id] = (context, context.computed_at)

    def get_if_fresh(self, window_id: int, max_age_ms: int) -> Optional[ActiveContext]:
        entry = self._entries.get(window_id)
        if entry is None:
            return None
        context, computed_at = entry
        if self._clock() - computed_at < max_age_ms:
            return context
        return None

    def clear(self, window_id: int):
        self._entries.pop(window_id, None)


class ContextTracker:
    def __init__(
        self,
        store: TabStore,
        window_ms: int = CONTEXT_WINDOW_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.window_ms = window_ms
        self._clock = clock
        self.cache = ContextCache(clock)

    def update_context(self, window_id: int, activated_tab: Tab) -> ActiveContext:
        """Recompute the window's snapshot from its tabs and cache it."""
        now = self._clock()
        recent: list[RecentTabActivity] = []

        for tab in self.store.get_tabs_by_window(window_id):
            age = now - tab.last_active_at
            if age >= self.window_ms:
                continue
            recency_score = 1 - age / self.window_ms
            dwell_score = min(1.0, tab.active_score / DWELL_SATURATION_MS)
            recent.append(RecentTabActivity(
                tab_id=tab.tab_id,
                project_id=tab.project_id,
                subproject_id=tab.subproject_id,
                last_active_at=tab.last_active_at,
                dwell_time=tab.active_score,
                weight=DWELL_TIME_WEIGHT * dwell_score + RECENCY_WEIGHT * recency_score,
            ))

        recent.sort(key=lambda r: r.weight, reverse=True)

        context = ActiveContext(
            window_id=window_id,
            active_project_id=activated_tab.project_id,
            active_subproject_id=activated_tab.subproject_id,
            recent_tabs=recent,
            computed_at=now,
        )
        self.cache.put(context)
        log.debug("Context for window %d: %d recent tabs, active=%s",
                  window_id, len(recent), context.active_project_id)
        return context

    def get_context(self, window_id: int) -> Optional[ActiveContext]:
        return self.cache.get_if_fresh(window_id, CONTEXT_FRESHNESS_MS)

    def clear_context(self, window_id: int):
        self.cache.clear(window_id)
