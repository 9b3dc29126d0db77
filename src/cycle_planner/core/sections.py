"""
Engineering-discovery section extraction.

Product ideas and their delivery epics carry engineering notes in free text:
sometimes under an explicit heading ("## Engineering Discovery", "**ED**"),
sometimes just as technical-sounding prose. This module pulls those notes out
and splits them into technical complexity and dependency text. It is a
heuristic over semi-structured prose, so results are approximate.
"""

import re
from typing import List, Optional

from cycle_planner.models import ExtractedSection


# Explicit markers, highest priority first. The first one that matches wins.
EXPLICIT_MARKERS = [
    re.compile(r"## ED\s*\n([\s\S]*?)(?=\n##|\n---|\Z)", re.IGNORECASE),
    re.compile(r"## Engineering Discovery\s*\n([\s\S]*?)(?=\n##|\n---|\Z)", re.IGNORECASE),
    re.compile(r"\*\*ED\*\*\s*\n([\s\S]*?)(?=\n\*\*|\n---|\Z)", re.IGNORECASE),
    re.compile(r"Engineering Discovery:?\s*\n([\s\S]*?)(?=\n##|\n\*\*|\n---|\Z)", re.IGNORECASE),
    re.compile(r"ED Section:?\s*\n([\s\S]*?)(?=\n##|\n\*\*|\n---|\Z)", re.IGNORECASE),
    # Bare "ED ...:" label; case-sensitive so the word "ed" in prose does not count
    re.compile(r"\bED\b[^\n]*?:([\s\S]*?)(?=\n\n|\Z)"),
]

TECHNICAL_KEYWORDS = [
    "tbd", "todo", "rough estimate", "sp:", "story points",
    "be:", "fe:", "backend", "frontend", "api", "endpoint",
    "database", "mongodb", "redis", "postgresql", "mysql",
    "service", "microservice", "implementation", "architecture",
    "schema", "validation", "query", "index",
    "test", "unit test", "e2e test", "integration test",
    "dependency", "dependencies", "blocker", "blocked by",
    "technical", "performance", "scalability", "security",
    "migration", "refactor", "optimization",
]

MIN_TECHNICAL_LENGTH = 50

DEPENDENCY_PATTERNS = [
    re.compile(
        r"^[ \t]*(?:Dependencies|Dependency|Depends on|Blocked by|Blockers):?[ \t]*\n([\s\S]*?)"
        r"(?=\n(?:Technical|Implementation|Test|BE:|FE:)|\n\n|\Z)",
        re.IGNORECASE | re.MULTILINE,
    ),
    # Inline "Blocker: ..." needs the colon and text on the same line
    re.compile(r"\bblockers?:[ \t]*(\S[^\n]*)", re.IGNORECASE),
]

TECHNICAL_PATTERNS = [
    re.compile(
        r"\b(?:BE|Backend)\b:?\s*(?:\(rough estimate[^)]*\):?)?\s*\n([\s\S]*?)"
        r"(?=\n(?:FE|Frontend|Dependencies|Test)\b|\Z)",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:FE|Frontend)\b:?\s*(?:\(rough estimate[^)]*\):?)?\s*\n([\s\S]*?)"
        r"(?=\n(?:BE|Backend|Dependencies|Test)\b|\Z)",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:Technical|Implementation|Architecture)\b:?\s*\n([\s\S]*?)"
        r"(?=\n(?:Dependencies|Test)\b|\Z)",
        re.IGNORECASE,
    ),
]


def is_technical(text: str) -> bool:
    """True when the text mentions any technical keyword (case-insensitive)."""
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in TECHNICAL_KEYWORDS)


def find_explicit_section(text: str) -> Optional[str]:
    """Return the body under the highest-priority explicit marker, if any."""
    for pattern in EXPLICIT_MARKERS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None


def extract_sections(text: Optional[str]) -> Optional[ExtractedSection]:
    """Extract engineering-discovery notes from plain text.

    Returns None when the text has no explicit marker and does not look
    technical, or when nothing could be extracted.
    """
    if not text:
        return None

    raw = find_explicit_section(text)
    explicit = raw is not None
    if not explicit:
        if is_technical(text) and len(text) > MIN_TECHNICAL_LENGTH:
            raw = text

    if not raw:
        return None

    dependencies = "\n".join(_all_matches(DEPENDENCY_PATTERNS, raw))
    technical = "\n\n".join(_first_matches(TECHNICAL_PATTERNS, raw))
    if not dependencies and not technical:
        technical = raw

    return ExtractedSection(
        technical_complexity=technical,
        dependencies=dependencies,
        has_explicit_marker=explicit,
        raw_content=raw,
    )


def _all_matches(patterns: List["re.Pattern"], text: str) -> List[str]:
    found: List[str] = []
    for pattern in patterns:
        for match in pattern.finditer(text):
            body = match.group(1).strip()
            if body and body not in found:
                found.append(body)
    return found


def _first_matches(patterns: List["re.Pattern"], text: str) -> List[str]:
    found: List[str] = []
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            body = match.group(1).strip()
            if body:
                found.append(body)
    return found


ACCEPTANCE_CRITERIA = re.compile(r"acceptance criteria:?\s*([\s\S]*?)(?=\n\n|\n#|\Z)", re.IGNORECASE)
TECHNICAL_NOTES = re.compile(r"technical notes?:?\s*([\s\S]*?)(?=\n\n|\n#|\Z)", re.IGNORECASE)


def extract_acceptance_criteria(text: str) -> Optional[str]:
    """Body of an "Acceptance criteria" block, up to the next blank line or heading."""
    match = ACCEPTANCE_CRITERIA.search(text or "")
    return match.group(1).strip() if match else None


def extract_technical_notes(text: str) -> Optional[str]:
    """Body of a "Technical notes" block, up to the next blank line or heading."""
    match = TECHNICAL_NOTES.search(text or "")
    return match.group(1).strip() if match else None
