"""
Support ticket export to CSV.
"""

import csv
import logging
import re
from pathlib import Path
from typing import List, Sequence

from cycle_planner.clients.jira import JiraIssueClient
from cycle_planner.core.richtext import normalize
from cycle_planner.models import WorkItem

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Issue Type",
    "Key",
    "Created",
    "Summary",
    "Assignee",
    "Reporter",
    "Priority",
    "Status",
    "Resolution",
    "Updated",
    "Description",
]


def ticket_row(item: WorkItem) -> List[str]:
    description = re.sub(r"[\r\n]{3,}", "\n\n", normalize(item.description)).strip()
    return [
        item.type_name,
        item.key,
        item.created.isoformat() if item.created else "",
        item.title,
        item.assignee,
        item.reporter,
        item.priority,
        item.status,
        item.resolution,
        item.updated.isoformat() if item.updated else "",
        description,
    ]


def write_tickets_csv(items: Sequence[WorkItem], output_path: Path) -> Path:
    """Write tickets with every field quoted, so multi-line descriptions survive."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_HEADERS)
        for item in items:
            writer.writerow(ticket_row(item))
    logger.info("Saved %d ticket(s) to %s", len(items), output_path)
    return output_path


def run_ticket_export(client: JiraIssueClient, jql: str, output_path: Path) -> Path:
    return write_tickets_csv(client.fetch_by_query(jql), output_path)
