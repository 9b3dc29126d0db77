"""
Idea analysis job.

Sizes product ideas for one or more planning periods (or an explicit list of
ideas) and totals them per team and period.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from cycle_planner.clients.base import Summarizer
from cycle_planner.clients.jira import JiraIssueClient, parse_issue_reference
from cycle_planner.config import ConfigLoader
from cycle_planner.core.assembler import CyclePlanner, PlanningOptions
from cycle_planner.exceptions import PlannerError
from cycle_planner.models import PlanReport, RootFailure, WorkItem
from cycle_planner.reports.cycle_planning import find_root_items, load_team_profile, planning_options

logger = logging.getLogger(__name__)

UNASSIGNED_TEAM = "Unassigned"


def fetch_ideas_by_reference(
    client: JiraIssueClient,
    references: Sequence[str],
    default_prefix: str = "RD",
) -> Tuple[List[WorkItem], List[RootFailure]]:
    """Fetch ideas given as keys, numbers or URLs. Unfetchable ones become failures."""
    items: List[WorkItem] = []
    failures: List[RootFailure] = []
    for reference in references:
        try:
            key = parse_issue_reference(reference, default_prefix)
            items.append(client.fetch_by_id(key))
        except PlannerError as e:
            logger.warning("Skipping %s: %s", reference, e.message)
            failures.append(RootFailure(key=reference, error=e.message))
    return items, failures


def run_idea_analysis(
    config: ConfigLoader,
    client: JiraIssueClient,
    period_labels: Sequence[str] = (),
    references: Sequence[str] = (),
    teams: Sequence[str] = (),
    options: Optional[PlanningOptions] = None,
    summarizer: Optional[Summarizer] = None,
) -> PlanReport:
    """Plan ideas team by team and merge everything into one report.

    Args:
        period_labels: Jira period values such as "26'Q1.C1"; used for the
            query when no references are given, and for grouping
        references: Explicit ideas (keys, numbers or URLs)
        teams: Only keep ideas led by these teams (names or aliases)
    """
    combined = PlanReport()
    if references:
        ideas, combined.failures = fetch_ideas_by_reference(client, references, config.settings.jira.default_prefix)
    else:
        ideas = find_root_items(client, config, period_labels)

    wanted = {config.resolve_team(team) or team for team in teams}
    by_team: Dict[str, List[WorkItem]] = {}
    for idea in ideas:
        team = idea.team or UNASSIGNED_TEAM
        if wanted and team not in wanted:
            continue
        by_team.setdefault(team, []).append(idea)

    planner = CyclePlanner(
        client,
        options=options or planning_options(config, include_comments=False),
        summarizer=summarizer,
    )
    for team, team_ideas in sorted(by_team.items()):
        profile = load_team_profile(config, client, team)
        report = planner.plan(team_ideas, profile, period_labels=period_labels or None)
        combined.results.extend(report.results)
        combined.groups.extend(report.groups)
        combined.failures.extend(report.failures)

    logger.info("Analysed %d idea(s) across %d team(s)", combined.processed_count, len(by_team))
    return combined
