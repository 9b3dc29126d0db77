"""Shared fixtures: an in-memory issue tracker and work item builders."""

import re
from typing import Dict, List, Optional, Sequence

import pytest

from cycle_planner.clients.base import IssueQueryClient
from cycle_planner.config import reset_config
from cycle_planner.exceptions import NetworkError, QueryError
from cycle_planner.models import IssueKind, LinkRelation, WorkItem

LINK = "Polaris work item link"

CONTAINER_QUERY = re.compile(r'^"Epic Link" = (\S+)$')
PARENT_QUERY = re.compile(r"^parent = (\S+)$")


def make_item(key: str, kind: IssueKind = IssueKind.STORY, effort: Optional[float] = None, **kwargs) -> WorkItem:
    return WorkItem(key=key, kind=kind, title=kwargs.pop("title", f"{key} title"), effort=effort, **kwargs)


def link_to(*keys: str, relation: str = LINK, direction: str = "outward") -> List[LinkRelation]:
    return [LinkRelation(relation_type=relation, direction=direction, target_key=key) for key in keys]


class FakeIssueClient(IssueQueryClient):
    """Tracker backed by dicts.

    ``epic_children`` answers container-field queries, ``parent_children``
    parent queries and ``hierarchy_children`` the hierarchy API. Keys in
    ``failing`` make every lookup about that key raise.
    """

    def __init__(
        self,
        items: Sequence[WorkItem] = (),
        epic_children: Optional[Dict[str, List[str]]] = None,
        parent_children: Optional[Dict[str, List[str]]] = None,
        hierarchy_children: Optional[Dict[str, List[str]]] = None,
        failing: Sequence[str] = (),
    ):
        self.items = {item.key: item for item in items}
        self.epic_children = epic_children or {}
        self.parent_children = parent_children or {}
        self.hierarchy_children = hierarchy_children or {}
        self.failing = set(failing)
        self.queries: List[str] = []

    def add(self, *items: WorkItem):
        for item in items:
            self.items[item.key] = item

    def _check(self, key: str):
        if key in self.failing:
            raise NetworkError(f"Timed out on {key}", service="Jira")

    def fetch_by_query(self, query: str, fields=None) -> List[WorkItem]:
        self.queries.append(query)
        for pattern, table in ((CONTAINER_QUERY, self.epic_children), (PARENT_QUERY, self.parent_children)):
            match = pattern.match(query)
            if match:
                self._check(match.group(1))
                return [self.items[key] for key in table.get(match.group(1), [])]
        raise QueryError(f"Unsupported query {query}", query=query)

    def fetch_by_id(self, key: str, fields=None) -> WorkItem:
        self._check(key)
        if key not in self.items:
            raise QueryError(f"Issue {key} not found", query=key)
        return self.items[key]

    def fetch_children_via_hierarchy_api(self, container_key: str, fields=None) -> List[WorkItem]:
        self.queries.append(f"hierarchy {container_key}")
        self._check(container_key)
        return [self.items[key] for key in self.hierarchy_children.get(container_key, [])]


@pytest.fixture
def rd1_client():
    """RD-1 links to EPIC-1; EPIC-1 holds ST-1 (5 SP) and ST-2 (8 SP, resolved)."""
    root = make_item("RD-1", IssueKind.IDEA, links=link_to("EPIC-1"), committed_in=["26'Q1.C1"])
    epic = make_item("EPIC-1", IssueKind.EPIC)
    st1 = make_item("ST-1", effort=5)
    st2 = make_item("ST-2", effort=8, resolved=True, resolution="Done")
    return FakeIssueClient([root, epic, st1, st2], epic_children={"EPIC-1": ["ST-1", "ST-2"]})


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from a real config.yaml, .env and credentials."""
    for var in (
        "CYCLE_PLANNER_CONFIG", "CYCLE_PLANNER_DEBUG", "JIRA_URL", "JIRA_BASE_URL", "JIRA_EMAIL",
        "JIRA_USERNAME", "JIRA_API_TOKEN", "GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO",
        "BAMBOOHR_SUBDOMAIN", "BAMBOOHR_API_KEY", "ANTHROPIC_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()
