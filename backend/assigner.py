"""Assignment decisions: manual / deterministic / semantic / default.

The assigner takes one tab and its window, decides where the tab belongs
and writes the outcome back: the tab's project fields, and on a match the
project's activity timestamp and centroids.
"""

import logging
import uuid
from typing import Callable, Optional

from context import ContextTracker
from matcher import TabMatcher
from models import COLORS, Project, ProjectRule, Subproject, SubprojectSignature, Tab, TabAssignment, now_ms
from store import TabStore
from tokens import create_centroid, tokenize, update_centroid
from urls import get_path_prefix, strip_www

log = logging.getLogger(__name__)

ASSIGN_THRESHOLD = 0.5
DETERMINISTIC_THRESHOLD = 0.8
PROJECT_CENTROID_RATE = 0.1
SUBPROJECT_CENTROID_RATE = 0.2
SUBPROJECT_DEPTH = 2


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class TabAssigner:
    def __init__(
        self,
        store: TabStore,
        matcher: TabMatcher,
        tracker: ContextTracker,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.matcher = matcher
        self.tracker = tracker
        self._clock = clock

    def assign(self, tab: Tab, window_id: int) -> TabAssignment:
        if tab.manually_assigned and tab.project_id:
            return TabAssignment(
                tab_id=tab.tab_id,
                project_id=tab.project_id,
                subproject_id=tab.subproject_id,
                confidence=1.0,
                method="manual",
            )

        projects = self.store.get_all_projects()
        if not projects:
            return self._assign_new_project(tab, len(projects))

        context = self.tracker.update_context(window_id, tab)
        best = self.matcher.get_best_match(tab, projects, context)

        if best is None or best.score <= ASSIGN_THRESHOLD:
            return self._assign_new_project(tab, len(projects))

        tab.project_id = best.project_id
        tab.subproject_id = best.subproject_id
        self.store.put_tab(tab)

        method = "deterministic" if best.score > DETERMINISTIC_THRESHOLD else "semantic"
        log.info("Tab %d -> %s/%s (%s, %.2f)", tab.tab_id, best.project_id, best.subproject_id, method, best.score)

        try:
            self._feed_back(best.project_id, tab)
        except Exception as e:
            log.error("Centroid update failed for project %s: %s", best.project_id, e)

        return TabAssignment(
            tab_id=tab.tab_id,
            project_id=best.project_id,
            subproject_id=best.subproject_id,
            confidence=best.score,
            method=method,
        )

    def _assign_new_project(self, tab: Tab, project_count: int) -> TabAssignment:
        project = self.create_project_for_tab(tab, project_count)
        tab.project_id = project.project_id
        tab.subproject_id = project.subprojects[0].subproject_id if project.subprojects else None
        self.store.put_tab(tab)
        log.info("Tab %d -> new project %s (%s)", tab.tab_id, project.project_id, project.name)
        return TabAssignment(
            tab_id=tab.tab_id,
            project_id=project.project_id,
            subproject_id=tab.subproject_id,
            confidence=1.0,
            method="default",
        )

    def create_project_for_tab(self, tab: Tab, project_count: Optional[int] = None) -> Project:
        """Seed a project and its first subproject from the tab itself."""
        now = self._clock()
        if project_count is None:
            project_count = len(self.store.get_all_projects())

        tokens = tokenize(host=tab.host, path_tokens=tab.path_tokens, title=tab.title)
        centroid = create_centroid([tokens])
        prefix = get_path_prefix(tab.path_tokens, SUBPROJECT_DEPTH)

        subproject = Subproject(
            subproject_id=_new_id("sub"),
            name=prefix or tab.host,
            signature=SubprojectSignature(host=tab.host, path_prefix=prefix, token_centroid=centroid),
            created_at=now,
            last_active_at=now,
        )
        project = Project(
            project_id=_new_id("proj"),
            name=strip_www(tab.host),
            color=COLORS[project_count % len(COLORS)],
            created_at=now,
            last_active_at=now,
            centroid=centroid,
            rules=[ProjectRule(type="host", value=tab.host, weight=1.0)],
            subprojects=[subproject],
        )
        self.store.put_project(project)
        return project

    def _feed_back(self, project_id: str, tab: Tab):
        project = self.store.get_project(project_id)
        if project is None:
            log.warning("Project %s vanished before feedback", project_id)
            return

        now = self._clock()
        signals = tab.page_signals
        tokens = tokenize(
            host=tab.host,
            path_tokens=tab.path_tokens,
            title=tab.title,
            h1=signals.h1 if signals else None,
        )

        project.last_active_at = now
        project.centroid = update_centroid(project.centroid, tokens, PROJECT_CENTROID_RATE)
        for subproject in project.subprojects:
            if subproject.subproject_id == tab.subproject_id:
                sig = subproject.signature
                sig.token_centroid = update_centroid(sig.token_centroid, tokens, SUBPROJECT_CENTROID_RATE)
                subproject.last_active_at = now
                break

        self.store.put_project(project)
