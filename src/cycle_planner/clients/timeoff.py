"""
BambooHR time-off client.

Only approved requests are fetched; they feed the capacity reduction factor.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from cycle_planner.clients.base import TimeOffSource
from cycle_planner.clients.http import get_json, retry_with_backoff
from cycle_planner.exceptions import PlannerError
from cycle_planner.models import TimeOffRecord

logger = logging.getLogger(__name__)

API_BASE = "https://api.bamboohr.com/api/gateway.php"


class TimeOffClient(TimeOffSource):
    """Reads approved time off from BambooHR.

    Failures are logged and produce an empty list, so planning continues
    with no capacity reduction.
    """

    def __init__(self, api_key: str, session: Optional[requests.Session] = None, api_base: str = API_BASE):
        self.api_base = api_base.rstrip("/")
        self._session = session or requests.Session()
        self._session.auth = HTTPBasicAuth(api_key, "x")
        self._session.headers.update({"Accept": "application/json"})

    def fetch_time_off(self, subdomain: str, start: date, end: date) -> List[TimeOffRecord]:
        try:
            payload = self._requests(subdomain, start, end)
        except PlannerError as e:
            logger.warning("Could not load time off from BambooHR: %s", e.message)
            return []

        records = []
        for entry in payload if isinstance(payload, list) else []:
            record = self._to_record(entry)
            if record is not None:
                records.append(record)
        logger.debug("Loaded %d time-off record(s) for %s..%s", len(records), start, end)
        return records

    @retry_with_backoff(max_retries=3, base_delay=1.0)
    def _requests(self, subdomain: str, start: date, end: date) -> Any:
        url = f"{self.api_base}/{subdomain}/v1/time_off/requests/"
        params = {"start": start.isoformat(), "end": end.isoformat(), "status": "approved"}
        return get_json(self._session, url, "BambooHR", params=params)

    @staticmethod
    def _to_record(entry: Dict[str, Any]) -> Optional[TimeOffRecord]:
        status = (entry.get("status") or {}).get("status", "approved")
        if status != "approved":
            return None
        try:
            start = datetime.strptime(entry["start"], "%Y-%m-%d").date()
            end = datetime.strptime(entry["end"], "%Y-%m-%d").date()
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed time-off entry: %r", entry)
            return None
        return TimeOffRecord(
            member=entry.get("name", ""),
            start=start,
            end=end,
            category=(entry.get("type") or {}).get("name", ""),
        )
