"""
Data model shared by the planning core, the API adapters and the reports.

Everything here is created fresh per job run from API payloads; nothing is
persisted between runs.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class IssueKind(str, Enum):
    """Closed set of work item kinds the planner distinguishes."""

    IDEA = "Idea"
    EPIC = "Epic"
    STORY = "Story"
    SUBTASK = "Subtask"
    BUG = "Bug"
    TICKET = "Ticket"

    @classmethod
    def from_type_name(cls, type_name: Optional[str]) -> "IssueKind":
        """Map a tracker issue type name onto a kind; unknown types are tickets."""
        name = (type_name or "").strip().lower()
        return _TYPE_NAME_KINDS.get(name, cls.TICKET)


_TYPE_NAME_KINDS = {
    "idea": IssueKind.IDEA,
    "epic": IssueKind.EPIC,
    "story": IssueKind.STORY,
    "task": IssueKind.STORY,
    "sub-task": IssueKind.SUBTASK,
    "subtask": IssueKind.SUBTASK,
    "bug": IssueKind.BUG,
    "ticket": IssueKind.TICKET,
}

# Kinds whose effort is normally the sum of their children
CONTAINER_KINDS = frozenset({IssueKind.EPIC, IssueKind.STORY})


@dataclass
class LinkRelation:
    """Typed link from one work item to another."""
    relation_type: str
    direction: str  # "inward" or "outward"
    target_key: str
    description: str = ""
    target_title: str = ""


@dataclass
class Comment:
    """Comment attached to a work item; body may be a rich-text document."""
    author: str
    body: Any
    created: Optional[datetime] = None


@dataclass
class StatusTransition:
    """One status change taken from an issue changelog."""
    to_status: str
    at: datetime


@dataclass
class WorkItem:
    """A trackable unit of work, already adapted from the tracker payload."""
    key: str
    kind: IssueKind
    title: str = ""
    description: Any = None
    effort: Optional[float] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    team: Optional[str] = None
    parent_key: Optional[str] = None
    links: List[LinkRelation] = field(default_factory=list)
    subtasks: List["WorkItem"] = field(default_factory=list)
    type_name: str = ""
    status: str = ""
    priority: str = ""
    resolution: str = "Unresolved"
    assignee: str = "Unassigned"
    reporter: str = ""
    project_key: str = ""
    components: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    url: str = ""
    committed_in: List[str] = field(default_factory=list)
    roadmap_cycles: List[str] = field(default_factory=list)
    discovery_ballpark: Optional[str] = None
    rendered_description: Optional[str] = None
    comments: List[Comment] = field(default_factory=list)
    transitions: List[StatusTransition] = field(default_factory=list)

    @property
    def own_effort(self) -> float:
        """Effort carried by the item itself, missing or negative counting as zero."""
        if self.effort is None or self.effort <= 0:
            return 0.0
        return float(self.effort)

    @property
    def is_container(self) -> bool:
        return self.kind in CONTAINER_KINDS


@dataclass
class ExtractedSection:
    """Technical and dependency notes pulled out of free text."""
    technical_complexity: str = ""
    dependencies: str = ""
    has_explicit_marker: bool = False
    raw_content: str = ""


@dataclass
class SectionFinding:
    """An extracted section together with where it was found."""
    source_key: str
    source_label: str
    kind: IssueKind
    section: ExtractedSection
    from_comment: bool = False


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""
    start: date
    end: date


@dataclass
class TimeOffRecord:
    """Approved absence of one team member."""
    member: str
    start: date
    end: date
    category: str = ""


@dataclass(frozen=True)
class TeamCapacityProfile:
    """Read-only capacity facts about one team, loaded once per run."""
    name: str
    headcount: Optional[int] = None
    velocity_samples: Tuple[float, ...] = ()
    roster: Tuple[str, ...] = ()
    periods: Dict[str, DateRange] = field(default_factory=dict)
    project_key: Optional[str] = None
    board_id: Optional[int] = None

    def period_range(self, period_key: str) -> Optional[DateRange]:
        return self.periods.get(period_key)


@dataclass
class CapacityEstimate:
    """Scheduling numbers for a given amount of effort and a team."""
    velocity: float
    periods_needed: float
    person_periods: Optional[float]
    target_person_periods: Optional[float]
    buffer_percent: Optional[float]
    pto_reduction: float = 0.0

    @property
    def periods_needed_rounded(self) -> int:
        return math.ceil(self.periods_needed)


@dataclass
class EstimateResult:
    """Planning outcome for one root item."""
    root: WorkItem
    team: str
    total_effort: float
    item_count: int
    excluded_count: int
    linked_keys: List[str]
    capacity: CapacityEstimate
    sections: List[SectionFinding] = field(default_factory=list)
    summary: Optional[str] = None
    period_labels: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into a dict for CSV/JSON sinks."""
        return {
            "key": self.root.key,
            "title": self.root.title,
            "team": self.team,
            "periods": ", ".join(self.period_labels),
            "total_effort": self.total_effort,
            "item_count": self.item_count,
            "excluded_count": self.excluded_count,
            "linked_keys": ", ".join(self.linked_keys),
            "velocity": self.capacity.velocity,
            "periods_needed": round(self.capacity.periods_needed, 2),
            "person_periods": _round_or_na(self.capacity.person_periods),
            "target_person_periods": _round_or_na(self.capacity.target_person_periods),
            "buffer_percent": _round_or_na(self.capacity.buffer_percent),
        }


@dataclass
class GroupSummary:
    """Totals for all root items sharing a (team, planning period) key."""
    team: str
    period: str
    keys: List[str]
    total_effort: float
    capacity: CapacityEstimate

    @property
    def root_count(self) -> int:
        return len(self.keys)


@dataclass
class RootFailure:
    """A root item that could not be processed."""
    key: str
    error: str


@dataclass
class PlanReport:
    """Everything one planning run produced."""
    results: List[EstimateResult] = field(default_factory=list)
    groups: List[GroupSummary] = field(default_factory=list)
    failures: List[RootFailure] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.results)

    @property
    def failed_count(self) -> int:
        return len(self.failures)


def _round_or_na(value: Optional[float]) -> Any:
    return "n/a" if value is None else round(value, 2)
