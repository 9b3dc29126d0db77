"""
Keyword classification of tickets.

Each keyword group (e.g. voice, analytics) counts the tickets mentioning any
of its keywords in the summary, description or comments, and remembers
where the first mention was found.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from cycle_planner.clients.jira import JiraIssueClient
from cycle_planner.core.richtext import collapse_whitespace, normalize
from cycle_planner.models import WorkItem

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 30
CONTEXT_MAX_LENGTH = 80
KEYWORD_FIELDS = ["summary", "description", "issuetype", "status", "resolution", "resolutiondate", "comment"]


@dataclass
class TicketText:
    """Searchable text of one ticket."""
    key: str
    summary: str
    description: str
    comments: str
    url: str = ""

    @classmethod
    def from_item(cls, item: WorkItem) -> "TicketText":
        return cls(
            key=item.key,
            summary=item.title,
            description=collapse_whitespace(normalize(item.description, hard_break=" ")),
            comments=" ".join(
                collapse_whitespace(normalize(c.body, hard_break=" ")) for c in item.comments
            ).strip(),
            url=item.url,
        )

    def sources(self) -> List[Tuple[str, str]]:
        return [("Summary", self.summary), ("Description", self.description), ("Comments", self.comments)]


@dataclass
class KeywordHit:
    ticket: TicketText
    keyword: str
    source: str
    context: str


@dataclass
class KeywordGroupResult:
    name: str
    keywords: List[str]
    hits: List[KeywordHit] = field(default_factory=list)
    total: int = 0

    @property
    def count(self) -> int:
        return len(self.hits)

    @property
    def percentage(self) -> float:
        return self.count / self.total * 100 if self.total else 0.0


def keyword_context(
    text: str,
    keyword: str,
    radius: int = CONTEXT_RADIUS,
    max_length: int = CONTEXT_MAX_LENGTH,
) -> str:
    """Snippet around the first case-insensitive occurrence of keyword."""
    index = text.lower().find(keyword.lower())
    if index == -1:
        return ""
    start = max(0, index - radius)
    end = min(len(text), index + len(keyword) + radius)
    context = text[start:end]
    if start > 0:
        context = "..." + context
    if end < len(text):
        context = context + "..."
    if len(context) > max_length:
        context = context[:max_length - 3] + "..."
    return context


def find_first_hit(ticket: TicketText, keywords: Sequence[str]) -> Optional[KeywordHit]:
    """First keyword (in group order) found in summary, then description, then comments."""
    for keyword in keywords:
        needle = keyword.lower()
        for source, text in ticket.sources():
            if needle in text.lower():
                return KeywordHit(ticket, keyword, source, keyword_context(text, keyword))
    return None


def analyze_keywords(tickets: Sequence[TicketText], groups: Dict[str, List[str]]) -> List[KeywordGroupResult]:
    results = []
    for name, keywords in groups.items():
        result = KeywordGroupResult(name=name, keywords=list(keywords), total=len(tickets))
        for ticket in tickets:
            hit = find_first_hit(ticket, keywords)
            if hit:
                result.hits.append(hit)
        logger.debug("%s: %d of %d ticket(s)", name, result.count, result.total)
        results.append(result)
    return results


def run_keyword_analysis(
    client: JiraIssueClient,
    jql: str,
    groups: Dict[str, List[str]],
) -> List[KeywordGroupResult]:
    tickets = [TicketText.from_item(item) for item in client.fetch_by_query(jql, KEYWORD_FIELDS)]
    logger.info("Fetched %d ticket(s) for keyword analysis", len(tickets))
    return analyze_keywords(tickets, groups)
