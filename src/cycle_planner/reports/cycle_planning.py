"""
Cycle planning job.

Finds the ideas committed to (or on the roadmap for) a cycle, plans them for
one team, estimates when each would ship if worked on in order, and writes
one markdown document per idea plus a CSV summary.
"""

import csv
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from cycle_planner.clients.base import Summarizer, TimeOffSource
from cycle_planner.clients.jira import JiraIssueClient
from cycle_planner.config import ConfigLoader, JiraSettings, canonical_cycle_key
from cycle_planner.core.assembler import CyclePlanner, PlanningOptions
from cycle_planner.core.richtext import normalize
from cycle_planner.exceptions import PlannerError
from cycle_planner.models import EstimateResult, PlanReport, TeamCapacityProfile, WorkItem

logger = logging.getLogger(__name__)

SUMMARY_PREVIEW_CHARS = 500
MAX_SLUG_LENGTH = 50


@dataclass
class ReleaseEta:
    """When a root item would ship if the team worked through items in order."""
    key: str
    sprints_needed: int
    sprints_before: int
    eta: Optional[date]


def jql_field(field_id: str) -> str:
    """JQL reference for a field id (``customfield_10620`` -> ``cf[10620]``)."""
    match = re.match(r"^customfield_(\d+)$", field_id)
    if match:
        return f"cf[{match.group(1)}]"
    return f'"{field_id}"'


def idea_query(labels: Sequence[str], settings: JiraSettings) -> str:
    """JQL for ideas committed to, or on the roadmap for, any of the labels."""
    quoted = ", ".join(f'"{label}"' for label in labels)
    committed = jql_field(settings.fields.committed_in)
    roadmap = jql_field(settings.fields.roadmap_cycle)
    return (
        f'issuetype = "{settings.idea_type}" AND '
        f"({committed} in ({quoted}) OR {roadmap} in ({quoted}))"
    )


def planning_options(config: ConfigLoader, **overrides) -> PlanningOptions:
    """PlanningOptions from config; keyword overrides win when not None."""
    settings = config.settings
    options = PlanningOptions(
        exclude_resolved=settings.planning.exclude_resolved,
        include_comments=settings.planning.include_comments,
        relation_filter=settings.jira.link_type,
        container_field=settings.jira.fields.container,
        max_depth=settings.planning.max_depth,
        capacity=settings.planning.capacity_settings(),
        time_off_subdomain=settings.timeoff.subdomain,
    )
    for name, value in overrides.items():
        if value is not None:
            setattr(options, name, value)
    return options


def load_team_profile(config: ConfigLoader, client: JiraIssueClient, team_name: str) -> TeamCapacityProfile:
    """Team profile from config, with velocity from the team's board when none is configured."""
    profile = config.team_profile(team_name)
    if profile.velocity_samples or profile.board_id is None:
        return profile

    try:
        samples = client.fetch_velocity_history(profile.board_id)
    except PlannerError as e:
        logger.warning("No velocity history for %s, using the default: %s", profile.name, e.message)
        return profile
    return config.team_profile(profile.name, velocity_samples=samples)


def find_root_items(
    client: JiraIssueClient,
    config: ConfigLoader,
    labels: Sequence[str],
    team: Optional[str] = None,
) -> List[WorkItem]:
    """Ideas for the given period labels, optionally only those led by one team."""
    items = client.fetch_by_query(idea_query(labels, config.settings.jira))
    if team:
        items = [item for item in items if item.team == team]
    logger.info("Found %d idea(s) for %s%s", len(items), ", ".join(labels), f" ({team})" if team else "")
    return items


def release_schedule(
    results: Sequence[EstimateResult],
    start: Optional[date],
    sprint_weeks: int = 2,
) -> Dict[str, ReleaseEta]:
    """Sequential release dates: each item starts when the previous ones are done."""
    schedule: Dict[str, ReleaseEta] = {}
    elapsed = 0
    for result in results:
        needed = result.capacity.periods_needed_rounded
        before = elapsed
        elapsed += needed
        schedule[result.root.key] = ReleaseEta(
            key=result.root.key,
            sprints_needed=needed,
            sprints_before=before,
            eta=start + timedelta(weeks=elapsed * sprint_weeks) if start else None,
        )
    return schedule


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug[:max_length].rstrip("-") or "untitled"


def _fmt(value: Optional[float], suffix: str = "") -> str:
    return "n/a" if value is None else f"{value:.1f}{suffix}"


def render_markdown(result: EstimateResult, eta: Optional[ReleaseEta] = None, cycle_label: str = "") -> str:
    """Markdown planning document for one root item."""
    root = result.root
    capacity = result.capacity
    lines = [f"# {root.key}: {root.title}", ""]

    header = [f"**Team:** {result.team}"]
    if cycle_label:
        header.append(f"**Cycle:** {cycle_label}")
    if root.url:
        header.append(f"[View in Jira]({root.url})")
    lines += [" | ".join(header), ""]

    description = normalize(root.description).strip()
    preview = description[:SUMMARY_PREVIEW_CHARS]
    if len(description) > SUMMARY_PREVIEW_CHARS:
        preview += "..."
    lines += ["## Summary", "", preview or "_No description._", ""]

    excluded = f", {result.excluded_count} resolved item(s) excluded" if result.excluded_count else ""
    lines += [
        "## Effort",
        "",
        f"- **Story points:** {result.total_effort:g} (from {result.item_count} item(s){excluded})",
        f"- **Linked delivery items:** {', '.join(result.linked_keys) or 'none'}",
        f"- **Velocity:** {capacity.velocity:.1f} SP/sprint",
        f"- **Sprints needed:** {capacity.periods_needed:.2f} ({capacity.periods_needed_rounded} rounded up)",
        f"- **Person-sprints:** {_fmt(capacity.person_periods)}",
        f"- **Capacity buffer:** {_fmt(capacity.buffer_percent, '%')} of {_fmt(capacity.target_person_periods)} person-sprints",
        "",
        "## Discovery Ballpark",
        "",
        root.discovery_ballpark or "_Not set._",
        "",
        "## Release ETA",
        "",
    ]
    if eta is None or eta.eta is None:
        lines.append("_No cycle start date configured._")
    else:
        lines.append(
            f"Starts after {eta.sprints_before} sprint(s), needs {eta.sprints_needed}, "
            f"ships around **{eta.eta.isoformat()}**."
        )
    lines.append("")

    lines += ["## Technical Complexity", ""]
    technical = [f for f in result.sections if f.section.technical_complexity]
    notes = [f"### {f.source_label}\n\n{f.section.technical_complexity}\n" for f in technical]
    if result.summary:
        lines += [result.summary, ""]
        if notes:
            lines += ["<details>", "<summary>Extracted notes</summary>", "", *notes, "</details>", ""]
    elif notes:
        lines += notes
    else:
        lines += ["_No engineering discovery notes found._", ""]

    lines += ["## Dependencies", ""]
    dependencies = [f for f in result.sections if f.section.dependencies]
    if dependencies:
        for finding in dependencies:
            lines += [f"### {finding.source_label}", "", finding.section.dependencies, ""]
    else:
        lines += ["_None recorded._", ""]

    return "\n".join(lines)


def write_reports(
    report: PlanReport,
    output_dir: Path,
    schedule: Optional[Dict[str, ReleaseEta]] = None,
    cycle_label: str = "",
) -> List[Path]:
    """Write one markdown file per result and a summary.csv into output_dir."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for result in report.results:
        path = output_dir / f"{result.root.key}-{slugify(result.root.title)}.md"
        eta = (schedule or {}).get(result.root.key)
        path.write_text(render_markdown(result, eta, cycle_label), encoding="utf-8")
        written.append(path)

    if report.results:
        summary_path = output_dir / "summary.csv"
        rows = [result.to_dict() for result in report.results]
        with open(summary_path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
        written.append(summary_path)
    return written


def run_cycle_planning(
    config: ConfigLoader,
    client: JiraIssueClient,
    cycle_key: str,
    team_name: str,
    options: Optional[PlanningOptions] = None,
    summarizer: Optional[Summarizer] = None,
    time_off: Optional[TimeOffSource] = None,
    output_dir: Optional[Path] = None,
) -> Tuple[PlanReport, List[Path]]:
    """Plan one cycle for one team and write its documents.

    Raises:
        PlannerError: when the ideas for the cycle cannot be listed at all
    """
    planning = config.settings.planning
    period_key = canonical_cycle_key(cycle_key, planning.default_year)
    label = config.cycle_label(cycle_key)
    profile = load_team_profile(config, client, team_name)

    roots = find_root_items(client, config, [label], team=profile.name)
    planner = CyclePlanner(client, options=options or planning_options(config), summarizer=summarizer, time_off=time_off)
    report = planner.plan(roots, profile, period_key=period_key, period_labels=[label])

    period = profile.period_range(period_key)
    schedule = release_schedule(report.results, period.start if period else None, planning.sprint_length_weeks)
    target_dir = (output_dir or Path(planning.output_dir)) / period_key / slugify(profile.name)
    written = write_reports(report, target_dir, schedule, label)
    return report, written
