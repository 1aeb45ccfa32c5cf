"""Tab lifecycle pipeline, project commands and change notifications."""

import logging
import threading
from collections import deque
from typing import Callable, Optional

from assigner import TabAssigner
from context import ContextTracker
from exceptions import InvalidInput
from models import PageSignals, Project, RawTab, Tab, TabAssignment, now_ms
from store import TabStore
from tokens import features_hash, tokenize
from urls import parse_url

log = logging.getLogger(__name__)

CONTEXT_UPDATED = "CONTEXT_UPDATED"
TAB_UPDATED = "TAB_UPDATED"


class EventBroadcaster:
    """Fire-and-forget change log. Readers poll with the last seq they saw."""

    def __init__(self, maxlen: int = 500):
        self._events: deque[dict] = deque(maxlen=maxlen)
        self._seq = 0
        self._lock = threading.Lock()

    def publish(self, event_type: str, **payload) -> int:
        with self._lock:
            self._seq += 1
            self._events.append({"seq": self._seq, "type": event_type, **payload})
            return self._seq

    def since(self, seq: int = 0) -> list[dict]:
        with self._lock:
            return [e for e in self._events if e["seq"] > seq]

    @property
    def last_seq(self) -> int:
        return self._seq


class TabEvents:
    """Handles browser tab events end to end.

    Callers must deliver one event at a time; nothing in here locks.
    """

    def __init__(
        self,
        store: TabStore,
        assigner: TabAssigner,
        tracker: ContextTracker,
        broadcaster: Optional[EventBroadcaster] = None,
        disabled_sites: Optional[list[str]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.assigner = assigner
        self.tracker = tracker
        self.broadcaster = broadcaster or EventBroadcaster()
        self.disabled_sites = disabled_sites if disabled_sites is not None else ["chrome://", "chrome-extension://"]
        self._clock = clock
        self._last_activation: Optional[tuple[int, int]] = None  # (tab_id, activated_at)

    def is_disabled(self, url: str) -> bool:
        return not url or any(url.startswith(prefix) for prefix in self.disabled_sites)

    # ── Tab metadata ─────────────────────────────────────────

    def upsert_tab(self, raw: RawTab) -> Tab:
        """Create or refresh a Tab from the browser's view of it.

        Raises InvalidInput for URLs that cannot be parsed; nothing is stored then.
        """
        host, path_tokens, query_keys = parse_url(raw.url)
        existing = self.store.get_tab(raw.tab_id)
        now = self._clock()
        title = raw.title or ""

        tab = Tab(
            tab_id=raw.tab_id,
            window_id=raw.window_id,
            url=raw.url,
            title=title,
            host=host,
            path_tokens=path_tokens,
            query_keys=query_keys,
            page_signals=existing.page_signals if existing else None,
            created_at=existing.created_at if existing else now,
            last_active_at=existing.last_active_at if existing else now,
            active_score=existing.active_score if existing else 0,
            project_id=existing.project_id if existing else None,
            subproject_id=existing.subproject_id if existing else None,
            features_hash=features_hash(tokenize(host=host, path_tokens=path_tokens, title=title)),
            opener_tab_id=raw.opener_tab_id,
            manually_assigned=existing.manually_assigned if existing else False,
        )
        if existing and existing.features_hash != tab.features_hash:
            log.debug("Tab %d features changed", tab.tab_id)
        self.store.put_tab(tab)
        return tab

    def update_tab_activity(self, tab_id: int, dwell_ms: float = 0):
        tab = self.store.get_tab(tab_id)
        if tab is None:
            return
        tab.last_active_at = self._clock()
        tab.active_score += dwell_ms
        self.store.put_tab(tab)

    # ── Lifecycle events ─────────────────────────────────────

    def on_created(self, raw: RawTab) -> Optional[Tab]:
        if self.is_disabled(raw.url):
            log.debug("Ignoring tab %d on disabled site", raw.tab_id)
            return None
        return self.upsert_tab(raw)

    def on_updated(self, raw: RawTab) -> Optional[Tab]:
        if self.is_disabled(raw.url):
            return None
        tab = self.upsert_tab(raw)
        self.broadcaster.publish(TAB_UPDATED, tab_id=tab.tab_id, window_id=tab.window_id)
        return tab

    def on_activated(self, tab_id: int, window_id: int, raw: RawTab) -> Optional[TabAssignment]:
        """Raises InvalidInput when the event ids disagree with the tab's own."""
        if (raw.tab_id, raw.window_id) != (tab_id, window_id):
            raise InvalidInput(
                f"Activation for tab {tab_id}/window {window_id} carries tab {raw.tab_id}/window {raw.window_id}"
            )
        now = self._clock()
        if self._last_activation and self._last_activation[0] != tab_id:
            prev_id, activated_at = self._last_activation
            self.update_tab_activity(prev_id, now - activated_at)
        self._last_activation = (tab_id, now)

        if self.is_disabled(raw.url):
            return None

        tab = self.upsert_tab(raw)
        assignment = self.assigner.assign(tab, window_id)
        self.broadcaster.publish(
            CONTEXT_UPDATED, window_id=window_id, tab_id=tab_id, assignment=assignment.model_dump()
        )
        return assignment

    def on_removed(self, tab_id: int):
        self.store.delete_tab(tab_id)
        if self._last_activation and self._last_activation[0] == tab_id:
            self._last_activation = None
        self.broadcaster.publish(TAB_UPDATED, tab_id=tab_id)

    def on_window_removed(self, window_id: int):
        self.tracker.clear_context(window_id)

    def record_page_signals(self, tab_id: int, signals: PageSignals) -> bool:
        tab = self.store.get_tab(tab_id)
        if tab is None:
            return False
        tab.page_signals = signals
        self.store.put_tab(tab)
        return True

    # ── Commands ─────────────────────────────────────────────

    def move_tab_to_project(self, tab_id: int, project_id: str, subproject_id: Optional[str] = None) -> bool:
        tab = self.store.get_tab(tab_id)
        project = self.store.get_project(project_id)
        if tab is None or project is None:
            return False
        if subproject_id is not None and all(sp.subproject_id != subproject_id for sp in project.subprojects):
            return False
        tab.project_id = project_id
        tab.subproject_id = subproject_id
        tab.manually_assigned = True
        self.store.put_tab(tab)
        log.info("Tab %d manually moved to %s", tab_id, project_id)
        self.broadcaster.publish(TAB_UPDATED, tab_id=tab_id, project_id=project_id)
        return True

    def rename_project(self, project_id: str, name: str) -> bool:
        return self._edit_project(project_id, lambda p: setattr(p, "name", name))

    def pin_project(self, project_id: str) -> bool:
        return self._edit_project(project_id, lambda p: setattr(p, "pinned", not p.pinned))

    def lock_project(self, project_id: str) -> bool:
        return self._edit_project(project_id, lambda p: setattr(p, "locked", not p.locked))

    def delete_project(self, project_id: str) -> bool:
        if self.store.get_project(project_id) is None:
            return False
        self.store.delete_project(project_id)
        for tab in self.store.get_tabs_by_project(project_id):
            tab.project_id = None
            tab.subproject_id = None
            tab.manually_assigned = False
            self.store.put_tab(tab)
        log.info("Deleted project %s", project_id)
        self.broadcaster.publish(TAB_UPDATED, project_id=project_id)
        return True

    def _edit_project(self, project_id: str, edit: Callable[[Project], None]) -> bool:
        project = self.store.get_project(project_id)
        if project is None:
            return False
        edit(project)
        self.store.put_project(project)
        self.broadcaster.publish(TAB_UPDATED, project_id=project_id)
        return True

    # ── Reads ────────────────────────────────────────────────

    def state(self, window_id: Optional[int] = None) -> dict:
        projects = self.store.get_all_projects()
        tabs = self.store.get_tabs_by_window(window_id) if window_id is not None else self.store.get_all_tabs()
        return {
            "projects": [p.model_dump() for p in projects],
            "tabs": [t.model_dump() for t in tabs],
        }
