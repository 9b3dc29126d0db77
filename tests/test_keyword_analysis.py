"""Tests for keyword classification."""

from cycle_planner.models import Comment, IssueKind, WorkItem
from cycle_planner.reports.keyword_analysis import (
    TicketText,
    analyze_keywords,
    find_first_hit,
    keyword_context,
)


def ticket(key, summary="", description="", comments=""):
    return TicketText(key=key, summary=summary, description=description, comments=comments)


class TestKeywordContext:
    """Test snippets around a keyword."""

    def test_short_text(self):
        """Test no ellipses when the whole text fits."""
        assert keyword_context("voice bot broken", "voice") == "voice bot broken"

    def test_ellipses(self):
        """Test clipped text is marked on both sides."""
        text = "x" * 50 + " analytics " + "y" * 50
        context = keyword_context(text, "ANALYTICS")
        assert context.startswith("...")
        assert context.endswith("...")
        assert "analytics" in context

    def test_missing_keyword(self):
        """Test an absent keyword gives an empty snippet."""
        assert keyword_context("nothing", "voice") == ""


class TestFindFirstHit:
    """Test hit location."""

    def test_summary_before_description(self):
        """Test the summary is searched before the description."""
        hit = find_first_hit(ticket("T-1", summary="Voice menu", description="voice again"), ["voice"])
        assert hit.source == "Summary"

    def test_keyword_order(self):
        """Test keywords are tried in group order."""
        hit = find_first_hit(ticket("T-2", comments="cip numbers off, analytics fine"), ["analytics", "cip"])
        assert hit.keyword == "analytics"
        assert hit.source == "Comments"

    def test_no_hit(self):
        """Test tickets without keywords give None."""
        assert find_first_hit(ticket("T-3", summary="Login"), ["voice"]) is None


class TestAnalyzeKeywords:
    """Test group counts."""

    def test_counts_and_percentages(self):
        """Test each ticket counts once per group."""
        tickets = [
            ticket("T-1", summary="Voice broken", description="voice voice"),
            ticket("T-2", description="[AN] dashboard"),
            ticket("T-3", summary="Login"),
            ticket("T-4", summary="voice analytics"),
        ]
        results = analyze_keywords(tickets, {"voice": ["voice"], "analytics": ["analytics", "[AN]"]})

        voice, analytics = results
        assert voice.count == 2
        assert voice.percentage == 50.0
        assert [hit.ticket.key for hit in analytics.hits] == ["T-2", "T-4"]

    def test_empty(self):
        """Test no tickets means zero percent."""
        assert analyze_keywords([], {"voice": ["voice"]})[0].percentage == 0.0


class TestTicketText:
    """Test conversion from work items."""

    def test_from_item(self):
        """Test rich-text description and comments become single-line text."""
        description = {"type": "doc", "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": "Line one"}]},
            {"type": "paragraph", "content": [{"type": "text", "text": "Line two"}]},
        ]}
        item = WorkItem(key="T-9", kind=IssueKind.TICKET, title="Voice", description=description,
                        comments=[Comment(author="A", body="first"), Comment(author="B", body="second")])
        text = TicketText.from_item(item)
        assert text.description == "Line one Line two"
        assert text.comments == "first second"
