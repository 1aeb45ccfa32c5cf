"""Hybrid tab classifier: Tier A (host/path rules) + Tier B (token similarity).

TabMatcher narrows the project universe to a few candidates, scores each
on five sub-scores and resolves the best subproject inside the winner.
Scores are weighted sums and are not normalized; with default weights the
maximum is 9.5.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from models import ActiveContext, Project, ScoreBreakdown, ScoringResult, Subproject, Tab, now_ms
from tokens import tokenize, weighted_similarity
from urls import extract_domain, subproject_key

log = logging.getLogger(__name__)

RECENT_PROJECT_MS = 30 * 60 * 1000
MAX_RECENT_CANDIDATES = 15
MAX_FALLBACK_CANDIDATES = 20
SUBPROJECT_MIN_SCORE = 0.3


@dataclass
class MatcherConfig:
    host_match_weight: float = 3.0
    path_match_weight: float = 2.0
    token_weight: float = 1.5
    chain_weight: float = 2.0
    recency_weight: float = 1.0
    min_threshold: float = 0.3


def _prefix_depth_score(tab_path: str, prefix: str) -> float:
    if not tab_path.startswith(prefix):
        return 0.0
    return min(1.0, len(prefix.split("/")) * 0.25)


class TabMatcher:
    def __init__(self, config: Optional[MatcherConfig] = None, clock: Callable[[], int] = now_ms):
        self.config = config or MatcherConfig()
        self._clock = clock

    def score_tab_for_project(
        self, tab: Tab, project: Project, context: Optional[ActiveContext] = None
    ) -> ScoringResult:
        breakdown = ScoreBreakdown(
            host_match=self.score_host_match(tab, project),
            path_match=self.score_path_match(tab, project),
            token_similarity=self.score_token_similarity(tab, project),
            chain_proximity=self.score_chain_proximity(project, context),
            recency_boost=self.score_recency_boost(project, context),
        )
        subproject = self.find_best_subproject(tab, project)
        return ScoringResult(
            project_id=project.project_id,
            subproject_id=subproject.subproject_id if subproject else None,
            score=self.total_score(breakdown),
            breakdown=breakdown,
        )

    def total_score(self, breakdown: ScoreBreakdown) -> float:
        c = self.config
        return (
            c.host_match_weight * breakdown.host_match
            + c.path_match_weight * breakdown.path_match
            + c.token_weight * breakdown.token_similarity
            + c.chain_weight * breakdown.chain_proximity
            + c.recency_weight * breakdown.recency_boost
        )

    # ── Sub-scores ───────────────────────────────────────────

    def score_host_match(self, tab: Tab, project: Project) -> float:
        tab_domain = extract_domain(tab.host)
        for rule in project.rules:
            if rule.type == "host" and rule.value == tab.host:
                return 1.0
            if rule.type == "domain" and rule.value == tab_domain:
                return 0.8

        for subproject in project.subprojects:
            if subproject.signature.host == tab.host:
                return 0.9
        return 0.0

    def score_path_match(self, tab: Tab, project: Project) -> float:
        tab_path = "/".join(tab.path_tokens)
        best = 0.0
        for rule in project.rules:
            if rule.type == "path_prefix":
                best = max(best, _prefix_depth_score(tab_path, rule.value))
        for subproject in project.subprojects:
            best = max(best, _prefix_depth_score(tab_path, subproject.signature.path_prefix))
        return best

    def score_token_similarity(self, tab: Tab, project: Project) -> float:
        signals = tab.page_signals
        tokens = tokenize(
            host=tab.host,
            path_tokens=tab.path_tokens,
            title=tab.title,
            h1=signals.h1 if signals else None,
            meta=signals.meta_description if signals else None,
        )
        return weighted_similarity(project.centroid, tokens)

    def score_chain_proximity(self, project: Project, context: Optional[ActiveContext]) -> float:
        if context is None:
            return 0.0
        if context.active_project_id == project.project_id:
            return 1.0
        for activity in context.recent_tabs:
            if activity.project_id == project.project_id:
                return activity.weight * 0.8
        return 0.0

    def score_recency_boost(self, project: Project, context: Optional[ActiveContext]) -> float:
        if context is None:
            return 0.0
        if context.active_project_id == project.project_id:
            return 1.0

        minutes = (self._clock() - project.last_active_at) / 60000
        if minutes < 5:
            return 0.9
        if minutes < 15:
            return 0.6
        if minutes < 30:
            return 0.3
        return 0.0

    # ── Subprojects ──────────────────────────────────────────

    def find_best_subproject(self, tab: Tab, project: Project) -> Optional[Subproject]:
        if not project.subprojects:
            return None

        key = subproject_key(tab.host, tab.path_tokens, 2)
        for subproject in project.subprojects:
            sig = subproject.signature
            if f"{sig.host}:{sig.path_prefix}" == key:
                return subproject

        tokens = tokenize(host=tab.host, path_tokens=tab.path_tokens, title=tab.title)
        tab_path = "/".join(tab.path_tokens)
        best, best_score = None, -1.0
        for subproject in project.subprojects:
            sig = subproject.signature
            score = 0.0
            if sig.host == tab.host:
                score += 0.5
            if tab_path.startswith(sig.path_prefix):
                score += 0.3
            score += weighted_similarity(sig.token_centroid, tokens) * 0.2
            if score > best_score:
                best, best_score = subproject, score

        return best if best_score > SUBPROJECT_MIN_SCORE else None

    # ── Ranking ──────────────────────────────────────────────

    def narrow_candidates(self, tab: Tab, projects: list[Project]) -> list[Project]:
        """Cut the project universe down by host, then domain, then recency."""
        same_host = [
            p for p in projects
            if any(sp.signature.host == tab.host for sp in p.subprojects)
            or any(r.type == "host" and r.value == tab.host for r in p.rules)
        ]
        if same_host:
            return same_host

        tab_domain = extract_domain(tab.host)
        same_domain = [
            p for p in projects
            if any(r.type == "domain" and r.value == tab_domain for r in p.rules)
        ]
        if same_domain:
            return same_domain

        now = self._clock()
        recent = sorted(
            (p for p in projects if now - p.last_active_at < RECENT_PROJECT_MS),
            key=lambda p: p.last_active_at,
            reverse=True,
        )[:MAX_RECENT_CANDIDATES]
        if recent:
            return recent

        return projects[:MAX_FALLBACK_CANDIDATES]

    def score_all_projects(
        self, tab: Tab, projects: list[Project], context: Optional[ActiveContext] = None
    ) -> list[ScoringResult]:
        results = [self.score_tab_for_project(tab, p, context) for p in projects]
        results = [r for r in results if r.score >= self.config.min_threshold]
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def get_best_match(
        self, tab: Tab, projects: list[Project], context: Optional[ActiveContext] = None
    ) -> Optional[ScoringResult]:
        candidates = self.narrow_candidates(tab, projects)
        results = self.score_all_projects(tab, candidates, context)
        log.debug("Tab %d: %d candidates, %d above threshold", tab.tab_id, len(candidates), len(results))
        return results[0] if results else None
