"""Shared fixtures for TabRail tests."""

import sys
from pathlib import Path

import pytest

# Add backend to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from models import Project, ProjectRule, Subproject, SubprojectSignature, Tab, TokenCentroid  # noqa: E402
from store import TabStore  # noqa: E402

T0 = 1_700_000_000_000
MINUTE = 60 * 1000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """Store backed by a fresh SQLite file."""
    return TabStore(str(tmp_path / "test.db"))


def make_tab(tab_id=1, window_id=1, host="github.com", path=None, title="", **kwargs) -> Tab:
    path = path if path is not None else []
    fields = {
        "tab_id": tab_id,
        "window_id": window_id,
        "url": f"https://{host}/" + "/".join(path),
        "title": title,
        "host": host,
        "path_tokens": path,
        "created_at": T0,
        "last_active_at": T0,
    }
    fields.update(kwargs)
    return Tab(**fields)


def make_project(project_id="p1", rules=None, subprojects=None, centroid=None,
                 last_active_at=T0 - 120 * MINUTE, created_at=T0 - 240 * MINUTE, **kwargs) -> Project:
    return Project(
        project_id=project_id,
        name=kwargs.pop("name", project_id),
        created_at=created_at,
        last_active_at=last_active_at,
        centroid=centroid or TokenCentroid(),
        rules=rules or [],
        subprojects=subprojects or [],
        **kwargs,
    )


def make_subproject(subproject_id="s1", host="github.com", path_prefix="", centroid=None) -> Subproject:
    return Subproject(
        subproject_id=subproject_id,
        name=path_prefix or host,
        signature=SubprojectSignature(host=host, path_prefix=path_prefix, token_centroid=centroid or TokenCentroid()),
        created_at=T0 - 240 * MINUTE,
        last_active_at=T0 - 240 * MINUTE,
    )


def host_rule(value, weight=1.0) -> ProjectRule:
    return ProjectRule(type="host", value=value, weight=weight)
