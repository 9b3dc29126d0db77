"""
Rich text to plain text.

Jira Cloud returns descriptions and comments as Atlassian Document Format
trees; older fields and some integrations still return plain strings or
rendered HTML. Everything downstream (section extraction, keyword search,
markdown reports) works on plain text produced here.
"""

import html
import re
from typing import Any, Dict


def normalize(document: Any, hard_break: str = "\n") -> str:
    """Convert a rich-text document into plain text.

    Plain strings are returned unchanged. Documents are dicts with a ``type``
    and optional ``content`` list. Unrecognised nodes contribute the text of
    their children, or nothing when they have none.

    Args:
        document: String, document dict, or None
        hard_break: Text emitted for hard line breaks

    Returns:
        Plain text, never None
    """
    if document is None:
        return ""
    if isinstance(document, str):
        return document
    if not isinstance(document, dict):
        return ""
    return _render_node(document, hard_break)


def _render_children(node: Dict[str, Any], hard_break: str) -> str:
    children = node.get("content")
    if not isinstance(children, list):
        return ""
    return "".join(_render_node(child, hard_break) for child in children if isinstance(child, dict))


def _render_node(node: Dict[str, Any], hard_break: str) -> str:
    node_type = node.get("type")

    if node_type == "text":
        text = node.get("text")
        return text if isinstance(text, str) else ""
    if node_type == "hardBreak":
        return hard_break
    if node_type == "paragraph":
        return _render_children(node, hard_break) + "\n"
    if node_type == "heading":
        level = (node.get("attrs") or {}).get("level", 1)
        if not isinstance(level, int) or not 1 <= level <= 6:
            level = 1
        return "#" * level + " " + _render_children(node, hard_break) + "\n"
    if node_type in ("bulletList", "orderedList"):
        return _render_children(node, hard_break)
    if node_type == "listItem":
        return "- " + _render_children(node, hard_break)

    return _render_children(node, hard_break)


def collapse_whitespace(text: str) -> str:
    """Squash runs of whitespace into single spaces, for keyword search."""
    return re.sub(r"\s+", " ", text or "").strip()


_HTML_REPLACEMENTS = [
    (r"<h[1-6][^>]*>", "\n### "),
    (r"</h[1-6]>", "\n"),
    (r"<br\s*/?>", "\n"),
    (r"</p>", "\n"),
    (r"<p[^>]*>", "\n"),
    (r"<li[^>]*>", "\n• "),
    (r"</li>", ""),
    (r"<hr\s*/?>", "\n---\n"),
    (r"</?(?:strong|b)>", "**"),
    (r"</?(?:em|i)>", "_"),
    (r"<[^>]+>", ""),
]


def html_to_text(markup: str) -> str:
    """Strip rendered HTML down to readable markdown-ish text.

    Headings become ``###`` lines, list items bullets, bold/italic keep their
    markdown markers; remaining tags are dropped and entities unescaped.
    """
    if not markup:
        return ""
    text = markup
    for pattern, replacement in _HTML_REPLACEMENTS:
        text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
    text = html.unescape(text).replace("\xa0", " ")
    text = re.sub(r"\n\s*\n\s*\n", "\n\n", text)
    return text.strip()
