"""Pydantic models for TabRail entities and API payloads."""

import time
from typing import Literal, Optional

from pydantic import BaseModel, Field

RuleType = Literal["domain", "host", "path_prefix", "keyword_include", "keyword_exclude"]
AssignmentMethod = Literal["manual", "deterministic", "semantic", "default"]

COLORS = [
    "#ef4444",  # red
    "#f97316",  # orange
    "#f59e0b",  # amber
    "#84cc16",  # lime
    "#10b981",  # emerald
    "#06b6d4",  # cyan
    "#3b82f6",  # blue
    "#6366f1",  # indigo
    "#8b5cf6",  # violet
    "#ec4899",  # pink
]


def now_ms() -> int:
    return int(time.time() * 1000)


# ── Entities ─────────────────────────────────────────────────

class PageSignals(BaseModel):
    h1: Optional[str] = None
    meta_description: Optional[str] = None
    og_title: Optional[str] = None
    extracted_at: int


class Tab(BaseModel):
    tab_id: int
    window_id: int
    url: str
    title: str = ""
    host: str
    path_tokens: list[str] = Field(default_factory=list)
    query_keys: list[str] = Field(default_factory=list)
    page_signals: Optional[PageSignals] = None
    created_at: int
    last_active_at: int
    active_score: float = 0  # accumulated dwell, ms
    project_id: Optional[str] = None
    subproject_id: Optional[str] = None
    features_hash: str = ""
    opener_tab_id: Optional[int] = None
    manually_assigned: bool = False


class TokenCentroid(BaseModel):
    """Token -> accumulated weight. Treated as immutable; see tokens.update_centroid."""
    tokens: dict[str, float] = Field(default_factory=dict)
    total_weight: float = 0


class ProjectRule(BaseModel):
    type: RuleType
    value: str
    weight: float = 1.0


class SubprojectSignature(BaseModel):
    host: str
    path_prefix: str
    token_centroid: TokenCentroid = Field(default_factory=TokenCentroid)


class Subproject(BaseModel):
    subproject_id: str
    name: str
    signature: SubprojectSignature
    rules: list[ProjectRule] = Field(default_factory=list)
    created_at: int
    last_active_at: int


class Project(BaseModel):
    project_id: str
    name: str
    color: str = COLORS[0]
    pinned: bool = False
    locked: bool = False
    created_at: int
    last_active_at: int
    active_score: float = 0
    centroid: TokenCentroid = Field(default_factory=TokenCentroid)
    rules: list[ProjectRule] = Field(default_factory=list)
    subprojects: list[Subproject] = Field(default_factory=list)


class RecentTabActivity(BaseModel):
    tab_id: int
    project_id: Optional[str] = None
    subproject_id: Optional[str] = None
    last_active_at: int
    dwell_time: float
    weight: float


class ActiveContext(BaseModel):
    window_id: int
    active_project_id: Optional[str] = None
    active_subproject_id: Optional[str] = None
    recent_tabs: list[RecentTabActivity] = Field(default_factory=list)
    computed_at: int


class ScoreBreakdown(BaseModel):
    host_match: float
    path_match: float
    token_similarity: float
    chain_proximity: float
    recency_boost: float


class ScoringResult(BaseModel):
    project_id: str
    subproject_id: Optional[str] = None
    score: float
    breakdown: ScoreBreakdown


class TabAssignment(BaseModel):
    tab_id: int
    project_id: str
    subproject_id: Optional[str] = None
    confidence: float
    method: AssignmentMethod


# ── API payloads ─────────────────────────────────────────────

class RawTab(BaseModel):
    """Tab as reported by the browser extension."""
    tab_id: int
    window_id: int
    url: str
    title: Optional[str] = None
    opener_tab_id: Optional[int] = None


class ActivatedEvent(BaseModel):
    tab_id: int
    window_id: int
    tab: RawTab


class SignalsRequest(BaseModel):
    h1: Optional[str] = None
    meta_description: Optional[str] = None
    og_title: Optional[str] = None


class ActionRequest(BaseModel):
    action: Literal[
        "move_tab_to_project", "rename_project", "pin_project",
        "lock_project", "delete_project",
    ]
    tab_id: Optional[int] = None
    project_id: Optional[str] = None
    subproject_id: Optional[str] = None
    value: Optional[str] = None
