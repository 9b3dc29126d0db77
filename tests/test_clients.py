"""Tests for the BambooHR, Anthropic and shared HTTP helpers."""

from datetime import date
from unittest.mock import MagicMock, patch

import anthropic
import pytest
import requests

from cycle_planner.clients.http import check_response, retry_with_backoff
from cycle_planner.clients.summarizer import MAX_INPUT_CHARS, AnthropicSummarizer
from cycle_planner.clients.timeoff import TimeOffClient
from cycle_planner.exceptions import CredentialError, NetworkError, QueryError


def response(status, headers=None, body=""):
    resp = requests.Response()
    resp.status_code = status
    resp.headers.update(headers or {})
    resp._content = body.encode()
    resp.url = "https://api.example.com/thing"
    return resp


class TestCheckResponse:
    """Test status code mapping."""

    def test_ok(self):
        """Test successful responses pass through."""
        resp = response(200)
        assert check_response(resp, "GitHub") is resp

    @pytest.mark.parametrize("status,headers,error", [
        (401, {}, CredentialError),
        (403, {}, CredentialError),
        (403, {"X-RateLimit-Remaining": "0"}, NetworkError),
        (429, {}, NetworkError),
        (502, {}, NetworkError),
        (404, {}, QueryError),
    ])
    def test_errors(self, status, headers, error):
        """Test failures map onto planner errors."""
        with pytest.raises(error):
            check_response(response(status, headers), "GitHub")


class TestRetry:
    """Test retry with backoff."""

    @patch("cycle_planner.clients.http.time.sleep")
    def test_retries_network_errors(self, sleep):
        """Test transient failures are retried with doubling delays."""
        calls = MagicMock(side_effect=[NetworkError("a"), NetworkError("b"), "ok"])
        calls.__name__ = "calls"
        wrapped = retry_with_backoff(max_retries=3, base_delay=1.0)(calls)
        assert wrapped() == "ok"
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    @patch("cycle_planner.clients.http.time.sleep")
    def test_gives_up(self, sleep):
        """Test the last failure is raised."""
        func = MagicMock(side_effect=NetworkError("down"))
        func.__name__ = "func"
        wrapped = retry_with_backoff(max_retries=2)(func)
        with pytest.raises(NetworkError):
            wrapped()

    def test_other_errors_not_retried(self):
        """Test non-retryable errors propagate at once."""
        func = MagicMock(side_effect=CredentialError("bad token"))
        with pytest.raises(CredentialError):
            retry_with_backoff()(func)()
        assert func.call_count == 1


class TestTimeOffClient:
    """Test BambooHR time off."""

    def test_parses_approved_requests(self):
        """Test approved entries become records and others are skipped."""
        session = MagicMock()
        session.get.return_value = response(200, body="""[
            {"name": "Alice", "start": "2026-01-05", "end": "2026-01-06",
             "status": {"status": "approved"}, "type": {"name": "Vacation"}},
            {"name": "Bob", "start": "2026-01-07", "end": "2026-01-07", "status": {"status": "requested"}},
            {"name": "Carol", "start": "soon", "end": "2026-01-07"}
        ]""")
        client = TimeOffClient("key", session=session)

        records = client.fetch_time_off("acme", date(2026, 1, 5), date(2026, 1, 16))

        assert [(r.member, r.start, r.category) for r in records] == [("Alice", date(2026, 1, 5), "Vacation")]
        url = session.get.call_args.args[0]
        assert url == "https://api.bamboohr.com/api/gateway.php/acme/v1/time_off/requests/"
        assert session.get.call_args.kwargs["params"]["status"] == "approved"

    def test_failure_gives_empty_list(self):
        """Test an auth failure yields no records instead of an error."""
        session = MagicMock()
        session.get.return_value = response(401)
        assert TimeOffClient("key", session=session).fetch_time_off("acme", date(2026, 1, 5), date(2026, 1, 16)) == []


class TestAnthropicSummarizer:
    """Test the Claude summarizer."""

    def test_summarize(self):
        """Test the summary text is returned and long input truncated."""
        client = MagicMock()
        client.messages.create.return_value = MagicMock(content=[MagicMock(text="- Build the export")])
        summarizer = AnthropicSummarizer("key", client=client)

        assert summarizer.summarize("x" * (MAX_INPUT_CHARS + 10)) == "- Build the export"
        prompt = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "[... truncated 10 chars ...]" in prompt

    def test_empty_input(self):
        """Test blank content skips the API."""
        client = MagicMock()
        assert AnthropicSummarizer("key", client=client).summarize("  ") is None
        client.messages.create.assert_not_called()

    def test_api_error_degrades(self):
        """Test API failures give None."""
        client = MagicMock()
        client.messages.create.side_effect = anthropic.APIConnectionError(request=MagicMock())
        assert AnthropicSummarizer("key", client=client).summarize("notes") is None
