"""
Jira access for the planner.

Wraps atlassian-python-api's ``Jira`` client: paginated JQL search, single
issue lookup, the agile epic endpoint, comments and board velocity. Raw
payloads are turned into WorkItems by ``IssueAdapter``; nothing past this
module looks at Jira JSON.
"""

import logging
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import requests
from atlassian import Jira
from atlassian.errors import ApiError, ApiPermissionError

from cycle_planner.clients.base import IssueQueryClient
from cycle_planner.config import ConfigLoader, JiraFields, get_jira_config
from cycle_planner.exceptions import CredentialError, NetworkError, QueryError, ValidationError
from cycle_planner.models import (
    Comment,
    IssueKind,
    LinkRelation,
    StatusTransition,
    WorkItem,
)

logger = logging.getLogger(__name__)

BASE_FIELDS = [
    "summary", "description", "issuetype", "status", "priority",
    "resolution", "resolutiondate", "assignee", "reporter", "project",
    "parent", "issuelinks", "subtasks", "components", "labels",
    "created", "updated",
]

SEARCH_PATH = "rest/api/3/search/jql"
EPIC_ISSUES_PATH = "rest/agile/1.0/epic/{key}/issue"
COMMENTS_PATH = "rest/api/3/issue/{key}/comment"
VELOCITY_PATH = "rest/greenhopper/1.0/rapid/charts/velocity"

ISSUE_KEY_PATTERN = re.compile(r"\b([A-Z][A-Z0-9_]+-\d+)\b")

TeamResolver = Callable[[Optional[str], str], Optional[str]]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse Jira/GitHub timestamps (``2025-01-02T10:00:00.000+0100``, ``...Z``)."""
    if not value:
        return None
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable timestamp: %s", value)
        return None


def option_values(value: Any) -> List[str]:
    """Values of a select/multi-select custom field as plain strings."""
    if value is None:
        return []
    if isinstance(value, list):
        values: List[str] = []
        for entry in value:
            values.extend(option_values(entry))
        return values
    if isinstance(value, dict):
        for attr in ("value", "name", "displayName"):
            if value.get(attr):
                return [str(value[attr])]
        return []
    return [str(value)]


def parse_issue_reference(reference: str, default_prefix: str = "RD") -> str:
    """Issue key from a key, a bare number, or a Jira/Polaris URL."""
    ref = (reference or "").strip()
    if ref.isdigit():
        return f"{default_prefix}-{ref}"

    selected = re.search(r"selectedIssue=([A-Za-z][A-Za-z0-9_]+-\d+)", ref)
    if selected:
        return selected.group(1).upper()

    keys = ISSUE_KEY_PATTERN.findall(ref.upper())
    if keys:
        return keys[-1]

    raise ValidationError(
        f"Not an issue reference: {reference}",
        field="idea",
        expected_format="RD-123, 123 or a Jira issue URL",
    )


class IssueAdapter:
    """Turns Jira issue JSON into WorkItems."""

    def __init__(
        self,
        fields: Optional[JiraFields] = None,
        base_url: str = "",
        team_resolver: Optional[TeamResolver] = None,
    ):
        self.fields = fields or JiraFields()
        self.base_url = base_url.rstrip("/")
        self.team_resolver = team_resolver

    def field_names(self) -> List[str]:
        custom = [
            self.fields.story_points,
            self.fields.lead_team,
            self.fields.committed_in,
            self.fields.roadmap_cycle,
            self.fields.discovery_ballpark,
        ]
        return BASE_FIELDS + custom

    def to_work_item(self, issue: Dict[str, Any]) -> WorkItem:
        """WorkItem for one issue.

        Raises:
            QueryError: when the payload does not have the shape Jira documents
        """
        if not isinstance(issue, dict) or not issue.get("key"):
            raise QueryError("Malformed issue payload", details=repr(issue)[:200])
        try:
            return self._build_work_item(issue)
        except (AttributeError, TypeError, KeyError) as e:
            raise QueryError(
                f"Malformed issue payload for {issue['key']}",
                query=str(issue["key"]),
                details=f"{type(e).__name__}: {e}",
            ) from e

    def _build_work_item(self, issue: Dict[str, Any]) -> WorkItem:
        key = issue["key"]
        fields = issue.get("fields") or {}
        type_name = (fields.get("issuetype") or {}).get("name", "")
        project_key = (fields.get("project") or {}).get("key") or key.rsplit("-", 1)[0]
        lead_team = next(iter(option_values(fields.get(self.fields.lead_team))), None)
        resolution = fields.get("resolution")

        return WorkItem(
            key=key,
            kind=IssueKind.from_type_name(type_name),
            title=fields.get("summary") or "",
            description=fields.get("description"),
            effort=_number(fields.get(self.fields.story_points)),
            resolved=bool(resolution or fields.get("resolutiondate")),
            resolved_at=parse_timestamp(fields.get("resolutiondate")),
            team=self._resolve_team(lead_team, project_key),
            parent_key=(fields.get("parent") or {}).get("key"),
            links=self._links(fields.get("issuelinks") or []),
            subtasks=[self._subtask(st) for st in fields.get("subtasks") or [] if st.get("key")],
            type_name=type_name,
            status=(fields.get("status") or {}).get("name", ""),
            priority=(fields.get("priority") or {}).get("name", "None"),
            resolution=(resolution or {}).get("name", "Unresolved") if isinstance(resolution, dict) else "Unresolved",
            assignee=(fields.get("assignee") or {}).get("displayName", "Unassigned"),
            reporter=(fields.get("reporter") or {}).get("displayName", "Unknown"),
            project_key=project_key,
            components=[c.get("name", "") for c in fields.get("components") or []],
            labels=list(fields.get("labels") or []),
            created=parse_timestamp(fields.get("created")),
            updated=parse_timestamp(fields.get("updated")),
            url=f"{self.base_url}/browse/{key}" if self.base_url else "",
            committed_in=option_values(fields.get(self.fields.committed_in)),
            roadmap_cycles=option_values(fields.get(self.fields.roadmap_cycle)),
            discovery_ballpark=next(iter(option_values(fields.get(self.fields.discovery_ballpark))), None),
            rendered_description=(issue.get("renderedFields") or {}).get("description"),
            comments=[self.to_comment(c) for c in (fields.get("comment") or {}).get("comments", [])],
            transitions=self._transitions(issue.get("changelog") or {}),
        )

    def to_comment(self, comment: Dict[str, Any]) -> Comment:
        try:
            return Comment(
                author=(comment.get("author") or {}).get("displayName", "Unknown"),
                body=comment.get("body"),
                created=parse_timestamp(comment.get("created")),
            )
        except (AttributeError, TypeError) as e:
            raise QueryError("Malformed comment payload", details=f"{type(e).__name__}: {e}") from e

    def _resolve_team(self, lead_team: Optional[str], project_key: str) -> Optional[str]:
        if self.team_resolver:
            return self.team_resolver(lead_team, project_key)
        return lead_team

    def _links(self, issue_links: List[Dict[str, Any]]) -> List[LinkRelation]:
        links = []
        for link in issue_links:
            link_type = link.get("type") or {}
            for direction in ("inward", "outward"):
                target = link.get(f"{direction}Issue")
                if not target or not target.get("key"):
                    continue
                links.append(LinkRelation(
                    relation_type=link_type.get("name", ""),
                    direction=direction,
                    target_key=target["key"],
                    description=link_type.get(direction, ""),
                    target_title=(target.get("fields") or {}).get("summary", ""),
                ))
        return links

    def _subtask(self, subtask: Dict[str, Any]) -> WorkItem:
        fields = subtask.get("fields") or {}
        return WorkItem(
            key=subtask["key"],
            kind=IssueKind.SUBTASK,
            title=fields.get("summary", ""),
            status=(fields.get("status") or {}).get("name", ""),
        )

    def _transitions(self, changelog: Dict[str, Any]) -> List[StatusTransition]:
        transitions = []
        for history in changelog.get("histories") or []:
            at = parse_timestamp(history.get("created"))
            if at is None:
                continue
            for item in history.get("items") or []:
                if item.get("field") == "status" and item.get("toString"):
                    transitions.append(StatusTransition(to_status=item["toString"], at=at))
        return sorted(transitions, key=lambda t: t.at)


class JiraIssueClient(IssueQueryClient):
    """IssueQueryClient backed by Jira Cloud."""

    def __init__(
        self,
        url: str,
        username: str,
        api_token: str,
        fields: Optional[JiraFields] = None,
        page_size: int = 100,
        request_delay: float = 0.1,
        team_resolver: Optional[TeamResolver] = None,
        jira: Optional[Jira] = None,
    ):
        self.url = url.rstrip("/")
        self.page_size = page_size
        self.request_delay = request_delay
        self.adapter = IssueAdapter(fields, base_url=self.url, team_resolver=team_resolver)
        self.jira = jira or Jira(
            url=self.url,
            username=username,
            password=api_token,
            cloud=True,
        )

    @classmethod
    def from_config(cls, config: ConfigLoader) -> "JiraIssueClient":
        """Build a client from config.yaml/.env, resolving teams through config aliases."""
        conf = get_jira_config()
        if not conf["url"] or not conf["username"]:
            raise CredentialError(
                "Jira configuration missing",
                credential_type="Jira",
                remediation="Set jira.url/jira.username in config.yaml or JIRA_URL/JIRA_EMAIL in .env",
            )
        if not conf["api_token"]:
            raise CredentialError(
                "JIRA_API_TOKEN is not set",
                credential_type="Jira",
                remediation="Create an API token at id.atlassian.com and add JIRA_API_TOKEN to .env",
            )
        settings = config.settings.jira

        def resolve(lead_team: Optional[str], project_key: str) -> Optional[str]:
            return config.resolve_team(lead_team) or config.team_for_project(project_key) or lead_team

        return cls(
            url=conf["url"],
            username=conf["username"],
            api_token=conf["api_token"],
            fields=settings.fields,
            page_size=settings.page_size,
            request_delay=settings.request_delay,
            team_resolver=resolve,
        )

    def _call(self, what: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Invoke the Jira client, translating failures into planner errors."""
        try:
            return func(*args, **kwargs)
        except ApiPermissionError as e:
            raise CredentialError(f"Jira refused {what}", credential_type="Jira", details=str(e))
        except ApiError as e:
            raise QueryError(f"Jira rejected {what}", query=what, details=str(e))
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in (401, 403):
                raise CredentialError(f"Jira refused {what}", credential_type="Jira", details=str(e))
            if status is not None and status >= 500:
                raise NetworkError(f"Jira failed on {what}", service="Jira", status_code=status, details=str(e))
            raise QueryError(f"Jira rejected {what}", query=what, details=str(e))
        except requests.RequestException as e:
            raise NetworkError(f"Could not reach Jira for {what}", service="Jira", details=str(e))
        except ValueError as e:
            raise QueryError(f"Malformed Jira response for {what}", query=what, details=str(e))

    def _get_page(self, what: str, path: str, **kwargs) -> Dict[str, Any]:
        """GET a REST path that answers with a JSON object."""
        page = self._call(what, self.jira.get, path, **kwargs) or {}
        if not isinstance(page, dict):
            raise QueryError(f"Malformed Jira response for {what}", query=what, details=repr(page)[:200])
        return page

    def _fields_param(self, fields: Optional[Sequence[str]]) -> str:
        return ",".join(fields or self.adapter.field_names())

    def search(
        self,
        jql: str,
        fields: Optional[Sequence[str]] = None,
        expand: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Yield raw issues matching a JQL query, following nextPageToken."""
        params: Dict[str, Any] = {
            "jql": jql,
            "fields": self._fields_param(fields),
            "maxResults": self.page_size,
        }
        if expand:
            params["expand"] = expand

        seen = 0
        while True:
            page = self._get_page(f"search '{jql}'", SEARCH_PATH, params=params)
            issues = page.get("issues") or []
            for issue in issues:
                yield issue
                seen += 1
                if max_results is not None and seen >= max_results:
                    return

            token = page.get("nextPageToken")
            if not issues or page.get("isLast", True) or not token:
                return
            params["nextPageToken"] = token
            if self.request_delay:
                time.sleep(self.request_delay)

    def fetch_by_query(self, query: str, fields: Optional[Sequence[str]] = None) -> List[WorkItem]:
        return [self.adapter.to_work_item(issue) for issue in self.search(query, fields)]

    def fetch_by_id(
        self,
        key: str,
        fields: Optional[Sequence[str]] = None,
        expand: Optional[str] = None,
    ) -> WorkItem:
        issue = self._call(f"issue {key}", self.jira.issue, key, fields=self._fields_param(fields), expand=expand)
        return self.adapter.to_work_item(issue)

    def fetch_children_via_hierarchy_api(
        self,
        container_key: str,
        fields: Optional[Sequence[str]] = None,
    ) -> List[WorkItem]:
        path = EPIC_ISSUES_PATH.format(key=container_key)
        items: List[WorkItem] = []
        start = 0
        while True:
            params = {"startAt": start, "maxResults": self.page_size, "fields": self._fields_param(fields)}
            page = self._get_page(f"epic issues of {container_key}", path, params=params)
            issues = page.get("issues") or []
            items.extend(self.adapter.to_work_item(issue) for issue in issues)
            start += len(issues)
            if not issues or start >= page.get("total", 0):
                return items
            if self.request_delay:
                time.sleep(self.request_delay)

    def fetch_comments(self, key: str) -> List[Comment]:
        page = self._get_page(f"comments of {key}", COMMENTS_PATH.format(key=key))
        return [self.adapter.to_comment(c) for c in page.get("comments") or []]

    def fetch_velocity_history(self, board_id: int) -> List[float]:
        """Completed story points per closed sprint of a board, oldest first."""
        page = self._get_page(f"velocity of board {board_id}", VELOCITY_PATH, params={"rapidViewId": board_id})
        entries = page.get("velocityStatEntries") or {}
        try:
            ordered = sorted(entries.items(), key=lambda kv: int(kv[0]) if str(kv[0]).isdigit() else 0)
            return [
                float((entry.get("completed") or {}).get("value") or 0)
                for _, entry in ordered
            ]
        except (AttributeError, TypeError, ValueError) as e:
            raise QueryError(
                f"Malformed velocity chart for board {board_id}",
                query=f"velocity of board {board_id}",
                details=f"{type(e).__name__}: {e}",
            ) from e


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
