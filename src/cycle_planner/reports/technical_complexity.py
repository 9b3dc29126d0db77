"""
Technical complexity explanations for a handful of issues.

Pulls the description (preferring Jira's rendered HTML), acceptance criteria,
technical notes, subtasks and links of each issue, then points out how the
issues relate to each other.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from cycle_planner.clients.jira import JiraIssueClient
from cycle_planner.core.richtext import html_to_text, normalize
from cycle_planner.core.sections import extract_acceptance_criteria, extract_technical_notes
from cycle_planner.models import WorkItem

logger = logging.getLogger(__name__)


@dataclass
class ComplexityAnalysis:
    item: WorkItem
    description: str
    acceptance_criteria: Optional[str] = None
    technical_notes: Optional[str] = None


@dataclass
class Correlation:
    keys: List[str]
    relationship: str
    description: str


@dataclass
class ComplexityReport:
    analyses: List[ComplexityAnalysis] = field(default_factory=list)
    correlations: List[Correlation] = field(default_factory=list)


def analyze_item(item: WorkItem) -> ComplexityAnalysis:
    plain = normalize(item.description)
    readable = html_to_text(item.rendered_description) if item.rendered_description else plain
    return ComplexityAnalysis(
        item=item,
        description=readable,
        acceptance_criteria=extract_acceptance_criteria(plain),
        technical_notes=extract_technical_notes(plain),
    )


def find_correlations(analyses: Sequence[ComplexityAnalysis]) -> List[Correlation]:
    """Pairwise relations: direct links, shared components/labels, parent-subtask."""
    correlations = []
    for i, first in enumerate(analyses):
        for second in analyses[i + 1:]:
            a, b = first.item, second.item
            pair = [a.key, b.key]

            link = next((l for l in a.links if l.target_key == b.key), None) or \
                next((l for l in b.links if l.target_key == a.key), None)
            if link:
                correlations.append(Correlation(pair, link.relation_type, link.description))

            shared_components = [c for c in a.components if c in b.components]
            if shared_components:
                correlations.append(Correlation(
                    pair, "shared-components", f"Both affect: {', '.join(shared_components)}"
                ))

            shared_labels = [label for label in a.labels if label in b.labels]
            if shared_labels:
                correlations.append(Correlation(
                    pair, "shared-labels", f"Both tagged: {', '.join(shared_labels)}"
                ))

            if any(st.key == b.key for st in a.subtasks) or any(st.key == a.key for st in b.subtasks):
                correlations.append(Correlation(pair, "parent-subtask", "One is a subtask of the other"))
    return correlations


def render_explanation(analysis: ComplexityAnalysis) -> str:
    item = analysis.item
    effort = f"{item.effort:g}" if item.effort else "N/A"
    parts = [
        f"## {item.key}: {item.title}\n",
        f"**Status:** {item.status} | **Priority:** {item.priority} | **Story Points:** {effort}\n",
    ]
    if item.components:
        parts.append(f"**Affected Components:** {', '.join(item.components)}\n")
    if analysis.description.strip():
        parts.append(analysis.description.strip() + "\n")
    if analysis.acceptance_criteria:
        parts.append(f"### Acceptance Criteria\n\n{analysis.acceptance_criteria}\n")
    if analysis.technical_notes:
        parts.append(f"### Technical Notes\n\n{analysis.technical_notes}\n")
    if item.subtasks:
        subtasks = "\n".join(f"- [{st.status}] {st.key}: {st.title}" for st in item.subtasks)
        parts.append(f"### Subtasks ({len(item.subtasks)})\n\n{subtasks}\n")
    if item.links:
        links = "\n".join(f"- {l.description or l.relation_type}: {l.target_key} - {l.target_title}" for l in item.links)
        parts.append(f"### Related Issues\n\n{links}\n")
    if item.url:
        parts.append(f"[View in Jira]({item.url})\n")
    parts.append("---\n")
    return "\n".join(parts)


def render_report(report: ComplexityReport) -> str:
    lines = ["# Technical Complexity Analysis", ""]
    lines += [render_explanation(analysis) for analysis in report.analyses]
    if len(report.analyses) > 1:
        lines += ["## How They Relate", ""]
        if report.correlations:
            lines += [
                f"- **{' <-> '.join(c.keys)}** ({c.relationship}): {c.description}"
                for c in report.correlations
            ]
        else:
            lines.append("_No direct relationships found._")
        lines.append("")
    return "\n".join(lines)


def run_complexity_analysis(client: JiraIssueClient, keys: Sequence[str]) -> ComplexityReport:
    """Fetch the issues with rendered fields and analyse them together."""
    fields = client.adapter.field_names() + ["comment"]
    analyses = [analyze_item(client.fetch_by_id(key, fields=fields, expand="renderedFields")) for key in keys]
    return ComplexityReport(analyses=analyses, correlations=find_correlations(analyses))
