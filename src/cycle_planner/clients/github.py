"""
GitHub REST client for pull request metrics.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from cycle_planner.clients.http import get_json, retry_with_backoff

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
PAGE_SIZE = 100


class GitHubClient:
    """Minimal read-only GitHub client using a token."""

    def __init__(self, token: str, api_url: str = API_BASE, session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

    @retry_with_backoff(max_retries=3, base_delay=1.0)
    def _api_call(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return get_json(self._session, f"{self.api_url}{endpoint}", "GitHub", params=params or {})

    def paginate(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        stop: Optional[Callable[[List[Dict[str, Any]]], bool]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Yield items page by page until an empty page, or until ``stop(batch)`` is true."""
        page = 1
        while True:
            batch = self._api_call(endpoint, {**(params or {}), "per_page": PAGE_SIZE, "page": page})
            if not batch:
                return
            yield from batch
            if stop is not None and stop(batch):
                return
            page += 1

    def closed_pulls(self, owner: str, repo: str, **params) -> Iterator[Dict[str, Any]]:
        return self.paginate(f"/repos/{owner}/{repo}/pulls", {"state": "closed", **params})

    def reviews(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        return list(self.paginate(f"/repos/{owner}/{repo}/pulls/{number}/reviews"))

    def org_repos(self, org: str) -> Iterator[Dict[str, Any]]:
        return self.paginate(f"/orgs/{org}/repos")
