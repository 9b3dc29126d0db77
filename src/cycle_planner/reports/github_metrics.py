"""
Pull request metrics: time to first review and merged-PR throughput.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from cycle_planner.clients.github import GitHubClient
from cycle_planner.clients.jira import parse_timestamp

logger = logging.getLogger(__name__)

MAX_REVIEW_HOURS = 24


@dataclass
class ReviewLatency:
    number: int
    title: str
    url: str
    hours: float


@dataclass
class ReviewLatencyReport:
    entries: List[ReviewLatency] = field(default_factory=list)
    outliers: int = 0
    unreviewed: int = 0

    @property
    def average_hours(self) -> Optional[float]:
        if not self.entries:
            return None
        return sum(e.hours for e in self.entries) / len(self.entries)


@dataclass
class MergedPullRequest:
    repo: str
    number: int
    title: str


@dataclass
class EngineerThroughput:
    engineer: str
    days: int
    pull_requests: List[MergedPullRequest] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.pull_requests)

    @property
    def per_day(self) -> float:
        return self.total / self.days if self.days else 0.0


def first_review_at(reviews: List[Dict[str, Any]]) -> Optional[datetime]:
    times = [parse_timestamp(r.get("submitted_at")) for r in reviews]
    times = [t for t in times if t is not None]
    return min(times) if times else None


def review_latency(
    client: GitHubClient,
    owner: str,
    repo: str,
    year: int,
    max_hours: float = MAX_REVIEW_HOURS,
) -> ReviewLatencyReport:
    """Time from opening to first review for PRs closed in ``year``; slower ones count as outliers."""
    report = ReviewLatencyReport()
    for pr in client.closed_pulls(owner, repo):
        closed = parse_timestamp(pr.get("closed_at"))
        if closed is None or closed.year != year:
            continue
        created = parse_timestamp(pr.get("created_at"))
        reviewed = first_review_at(client.reviews(owner, repo, pr["number"]))
        if created is None or reviewed is None:
            report.unreviewed += 1
            continue
        hours = (reviewed - created).total_seconds() / 3600
        if hours > max_hours:
            report.outliers += 1
            continue
        report.entries.append(ReviewLatency(
            number=pr["number"],
            title=pr.get("title", ""),
            url=pr.get("html_url") or f"https://github.com/{owner}/{repo}/pull/{pr['number']}",
            hours=hours,
        ))
    return report


def throughput(
    client: GitHubClient,
    org: str,
    days: int = 7,
    now: Optional[datetime] = None,
) -> List[EngineerThroughput]:
    """Merged PRs per author across all repositories of an organisation, busiest first."""
    since = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    stats: Dict[str, EngineerThroughput] = {}

    def older_than_window(batch: List[Dict[str, Any]]) -> bool:
        updated = parse_timestamp(batch[-1].get("updated_at"))
        return updated is not None and updated < since

    for repo in client.org_repos(org):
        name = repo["name"]
        logger.info("Fetching PRs for %s", name)
        pulls = client.paginate(
            f"/repos/{org}/{name}/pulls",
            {"state": "closed", "sort": "updated", "direction": "desc"},
            stop=older_than_window,
        )
        for pr in pulls:
            merged = parse_timestamp(pr.get("merged_at"))
            if merged is None or merged < since:
                continue
            author = (pr.get("user") or {}).get("login", "unknown")
            stats.setdefault(author, EngineerThroughput(author, days)).pull_requests.append(
                MergedPullRequest(repo=name, number=pr["number"], title=pr.get("title", ""))
            )

    return sorted(stats.values(), key=lambda s: s.total, reverse=True)
