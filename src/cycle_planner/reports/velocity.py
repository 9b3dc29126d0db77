"""
Hours per story point.

For resolved issues with an estimate, measures the time from the first move
to "In Progress" until resolution and averages it per story-point value.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from cycle_planner.clients.jira import JiraIssueClient
from cycle_planner.models import WorkItem

logger = logging.getLogger(__name__)

IN_PROGRESS = "In Progress"
MIN_HOURS = 1
MAX_HOURS = 24 * 7 * 3


@dataclass
class CycleTime:
    key: str
    url: str
    story_points: float
    assignee: str
    in_progress_at: datetime
    resolved_at: datetime
    hours: int


@dataclass
class PointAverage:
    story_points: float
    count: int
    average_hours: float


def first_in_progress(item: WorkItem, status: str = IN_PROGRESS) -> Optional[datetime]:
    times = [t.at for t in item.transitions if t.to_status == status]
    return min(times) if times else None


def cycle_times(
    items: Sequence[WorkItem],
    min_hours: int = MIN_HOURS,
    max_hours: int = MAX_HOURS,
) -> List[CycleTime]:
    """Cycle times of estimated, resolved items; outliers outside the hour bounds dropped."""
    rows = []
    for item in items:
        started = first_in_progress(item)
        if not item.own_effort or started is None or item.resolved_at is None:
            continue
        hours = int((item.resolved_at - started).total_seconds() // 3600)
        if hours < min_hours or hours > max_hours:
            continue
        rows.append(CycleTime(
            key=item.key,
            url=item.url,
            story_points=item.own_effort,
            assignee=item.assignee,
            in_progress_at=started,
            resolved_at=item.resolved_at,
            hours=hours,
        ))
    return rows


def average_hours_per_point(rows: Sequence[CycleTime], assignee: Optional[str] = None) -> List[PointAverage]:
    buckets: Dict[float, List[int]] = {}
    for row in rows:
        if assignee is not None and row.assignee != assignee:
            continue
        buckets.setdefault(row.story_points, []).append(row.hours)
    return [
        PointAverage(points, len(hours), round(sum(hours) / len(hours), 2))
        for points, hours in sorted(buckets.items())
    ]


def velocity_query(project_key: str, resolved_since: str) -> str:
    return f'project = "{project_key}" AND resolved >= {resolved_since} ORDER BY created DESC'


def run_velocity_report(client: JiraIssueClient, project_key: str, resolved_since: str) -> List[CycleTime]:
    items = [
        client.adapter.to_work_item(issue)
        for issue in client.search(velocity_query(project_key, resolved_since), expand="changelog")
    ]
    rows = cycle_times(items)
    logger.info("%d of %d issue(s) have a usable cycle time", len(rows), len(items))
    return rows
