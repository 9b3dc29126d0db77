"""
Cycle planning orchestration.

For each root item: discover the work beneath it, roll up effort, estimate
capacity for the owning team, and collect engineering notes from every
discovered item and its comments. Root items are processed one at a time,
to completion, in the order given.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from cycle_planner.clients.base import IssueQueryClient, Summarizer, TimeOffSource
from cycle_planner.core.capacity import CapacitySettings, estimate, pto_reduction_factor
from cycle_planner.core.effort import rollup_effort
from cycle_planner.core.hierarchy import (
    DEFAULT_CONTAINER_FIELD,
    DEFAULT_MAX_DEPTH,
    DEFAULT_RELATION,
    HierarchyWalker,
    default_strategies,
)
from cycle_planner.core.richtext import normalize
from cycle_planner.core.sections import extract_sections
from cycle_planner.exceptions import PlannerError, RootFetchError
from cycle_planner.models import (
    EstimateResult,
    GroupSummary,
    PlanReport,
    RootFailure,
    SectionFinding,
    TeamCapacityProfile,
    WorkItem,
)

logger = logging.getLogger(__name__)

UNSCHEDULED = "Unscheduled"


@dataclass
class PlanningOptions:
    """Knobs for one planning run."""
    exclude_resolved: bool = True
    include_comments: bool = True
    relation_filter: str = DEFAULT_RELATION
    max_depth: int = DEFAULT_MAX_DEPTH
    container_field: str = DEFAULT_CONTAINER_FIELD
    capacity: CapacitySettings = field(default_factory=CapacitySettings)
    time_off_subdomain: Optional[str] = None


class CyclePlanner:
    """Runs discovery, roll-up and estimation for a batch of root items."""

    def __init__(
        self,
        client: IssueQueryClient,
        options: Optional[PlanningOptions] = None,
        summarizer: Optional[Summarizer] = None,
        time_off: Optional[TimeOffSource] = None,
        walker: Optional[HierarchyWalker] = None,
    ):
        self.client = client
        self.options = options or PlanningOptions()
        self.summarizer = summarizer
        self.time_off = time_off
        self.walker = walker or HierarchyWalker(
            client,
            strategies=default_strategies(self.options.container_field),
            relation_filter=self.options.relation_filter,
            max_depth=self.options.max_depth,
            exclude_resolved=self.options.exclude_resolved,
        )

    def plan(
        self,
        root_items: Sequence[Union[str, WorkItem]],
        team: TeamCapacityProfile,
        period_key: Optional[str] = None,
        period_labels: Optional[Sequence[str]] = None,
    ) -> PlanReport:
        """Plan every root item for one team.

        Args:
            root_items: Keys or already fetched root items
            team: Capacity profile of the owning team
            period_key: Config key of the planning period, used for time off
            period_labels: Period labels to group by (e.g. "25'Q4.C2")

        Returns:
            PlanReport with one result per processed root, group totals and
            the roots that could not be fetched
        """
        pto = self._pto_reduction(team, period_key)
        report = PlanReport()

        for position, ref in enumerate(root_items, 1):
            key = ref if isinstance(ref, str) else ref.key
            try:
                result = self.plan_root(ref, team, pto, period_labels)
            except RootFetchError as e:
                logger.warning("Skipping %s: %s", key, e.message)
                report.failures.append(RootFailure(key=key, error=e.message))
                continue
            logger.info("[%d/%d] %s: %.1f SP over %d item(s)", position, len(root_items), key, result.total_effort, result.item_count)
            report.results.append(result)

        report.groups = self.group(report.results, team, pto)
        return report

    def plan_root(
        self,
        ref: Union[str, WorkItem],
        team: TeamCapacityProfile,
        pto_reduction: float = 0.0,
        period_labels: Optional[Sequence[str]] = None,
    ) -> EstimateResult:
        root = self._resolve_root(ref)
        discovery = self.walker.walk(root)
        total = rollup_effort(discovery)
        sections = self.collect_sections([root] + discovery.items)

        return EstimateResult(
            root=root,
            team=team.name,
            total_effort=total,
            item_count=len(discovery.items),
            excluded_count=discovery.excluded_count,
            linked_keys=list(discovery.linked_keys),
            capacity=estimate(total, team, pto_reduction, self.options.capacity),
            sections=sections,
            summary=self._summarize(sections),
            period_labels=labels_for(root, period_labels),
        )

    def group(
        self,
        results: Sequence[EstimateResult],
        team: TeamCapacityProfile,
        pto_reduction: float = 0.0,
    ) -> List[GroupSummary]:
        """Sum results per (team, period label) and estimate each group once."""
        buckets: Dict[Tuple[str, str], List[EstimateResult]] = {}
        for result in results:
            for label in result.period_labels or [UNSCHEDULED]:
                buckets.setdefault((result.team, label), []).append(result)

        groups = []
        for (team_name, label), members in buckets.items():
            total = sum(member.total_effort for member in members)
            groups.append(GroupSummary(
                team=team_name,
                period=label,
                keys=[member.root.key for member in members],
                total_effort=total,
                capacity=estimate(total, team, pto_reduction, self.options.capacity),
            ))
        return groups

    def collect_sections(self, items: Sequence[WorkItem]) -> List[SectionFinding]:
        """Engineering notes from descriptions and comments of the given items."""
        findings: List[SectionFinding] = []
        for item in items:
            section = extract_sections(normalize(item.description))
            if section:
                findings.append(SectionFinding(
                    source_key=item.key,
                    source_label=f"{item.key}: {item.title}",
                    kind=item.kind,
                    section=section,
                ))

            if not self.options.include_comments:
                continue
            for comment in self._comments(item):
                section = extract_sections(normalize(comment.body))
                if section:
                    findings.append(SectionFinding(
                        source_key=item.key,
                        source_label=f"{item.key} (comment by {comment.author})",
                        kind=item.kind,
                        section=section,
                        from_comment=True,
                    ))
        return findings

    def _resolve_root(self, ref: Union[str, WorkItem]) -> WorkItem:
        if isinstance(ref, WorkItem):
            return ref
        try:
            return self.client.fetch_by_id(ref)
        except PlannerError as e:
            raise RootFetchError(f"Could not fetch root item {ref}", key=ref, details=e.message) from e

    def _comments(self, item: WorkItem):
        if item.comments:
            return item.comments
        try:
            return self.client.fetch_comments(item.key)
        except PlannerError as e:
            logger.debug("No comments for %s: %s", item.key, e.message)
            return []

    def _summarize(self, sections: List[SectionFinding]) -> Optional[str]:
        if not self.summarizer or not sections:
            return None
        try:
            return self.summarizer.summarize(sections_as_text(sections))
        except PlannerError as e:
            logger.warning("Summary unavailable: %s", e.message)
            return None

    def _pto_reduction(self, team: TeamCapacityProfile, period_key: Optional[str]) -> float:
        period = team.period_range(period_key) if period_key else None
        if not (self.time_off and self.options.time_off_subdomain and period):
            return 0.0
        try:
            records = self.time_off.fetch_time_off(self.options.time_off_subdomain, period.start, period.end)
        except PlannerError as e:
            logger.warning("Time off unavailable, assuming none: %s", e.message)
            return 0.0
        factor = pto_reduction_factor(records, period, team.headcount, team.roster)
        logger.info("%s: time off reduces capacity by %.1f%%", team.name, factor * 100)
        return factor


def plan_cycle(
    root_items: Sequence[Union[str, WorkItem]],
    team: TeamCapacityProfile,
    options: PlanningOptions,
    client: IssueQueryClient,
    summarizer: Optional[Summarizer] = None,
    time_off: Optional[TimeOffSource] = None,
    period_key: Optional[str] = None,
) -> List[EstimateResult]:
    """Plan root items for one team and return the per-root results."""
    planner = CyclePlanner(client, options=options, summarizer=summarizer, time_off=time_off)
    return planner.plan(root_items, team, period_key=period_key).results


def labels_for(root: WorkItem, periods: Optional[Sequence[str]] = None) -> List[str]:
    """Planning-period labels a root item belongs to.

    With explicit periods, only those the item is committed to or on the
    roadmap for are returned; otherwise every period on the item.
    """
    candidates = list(periods) if periods else list(dict.fromkeys(root.committed_in + root.roadmap_cycles))
    labels = []
    for period in candidates:
        if period in root.committed_in:
            labels.append(f"{period} Committed")
        if period in root.roadmap_cycles:
            labels.append(f"{period} Roadmap")
    return labels


def sections_as_text(sections: Sequence[SectionFinding]) -> str:
    """Flatten findings into one prompt-friendly block of text."""
    blocks = []
    for finding in sections:
        lines = [f"Source: {finding.source_label}"]
        if finding.section.technical_complexity:
            lines.append(f"Technical Complexity:\n{finding.section.technical_complexity}")
        if finding.section.dependencies:
            lines.append(f"Dependencies:\n{finding.section.dependencies}")
        blocks.append("\n".join(lines))
    return "\n\n---\n\n".join(blocks)
