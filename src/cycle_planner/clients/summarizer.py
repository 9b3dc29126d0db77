"""
Optional plain-language summary of engineering notes, via Claude.
"""

import logging
from typing import Optional

import anthropic

from cycle_planner.clients.base import Summarizer

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-5-haiku-20241022"
MAX_INPUT_CHARS = 20000

SUMMARY_PROMPT = """You are helping a product manager plan an engineering cycle.
Below are engineering discovery notes collected from a product idea and the
epics, stories and comments linked to it.

Write a short summary (at most 5 bullet points) a non-technical stakeholder can
follow: what has to be built, the main technical risks, and anything the work
depends on or is blocked by. Do not invent details that are not in the notes.

## NOTES

"""


class AnthropicSummarizer(Summarizer):
    """Summarizer backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        client: Optional[anthropic.Anthropic] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or anthropic.Anthropic(api_key=api_key)

    def summarize(self, content: str) -> Optional[str]:
        if not content or not content.strip():
            return None

        truncated = content[:MAX_INPUT_CHARS]
        if len(content) > MAX_INPUT_CHARS:
            truncated += f"\n\n[... truncated {len(content) - MAX_INPUT_CHARS} chars ...]"

        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": SUMMARY_PROMPT + truncated}],
            )
        except anthropic.APIError as e:
            logger.warning("Claude API error, falling back to raw sections: %s", e)
            return None

        if not message.content:
            return None
        text = getattr(message.content[0], "text", "") or ""
        return text.strip() or None
