"""
Shared HTTP helpers for the requests-based clients.
"""

import logging
import time
from functools import wraps
from typing import Tuple, Type

import requests

from cycle_planner.exceptions import CredentialError, NetworkError, QueryError

logger = logging.getLogger(__name__)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[Exception], ...] = (NetworkError,),
):
    """Decorator for retry with exponential backoff.

    Args:
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds (doubles each retry)
        retry_on: Exception types worth retrying; anything else propagates at once
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    if attempt == max_retries - 1:
                        raise
                    delay = base_delay * (2 ** attempt)
                    logger.debug("%s failed (%s), retrying in %.1fs", func.__name__, e, delay)
                    time.sleep(delay)
        return wrapper
    return decorator


def check_response(response: requests.Response, service: str) -> requests.Response:
    """Raise the matching planner error for an unsuccessful response."""
    if response.status_code == 401:
        raise CredentialError(
            f"{service} authentication failed: invalid or expired credentials",
            credential_type=service,
        )
    if response.status_code == 403:
        if response.headers.get("X-RateLimit-Remaining") == "0":
            raise NetworkError(
                f"{service} rate limit exhausted",
                service=service,
                status_code=403,
                remediation="Wait for the rate limit window to reset and run again",
                details=f"Resets at {response.headers.get('X-RateLimit-Reset', 'unknown')}",
            )
        raise CredentialError(
            f"{service} access denied: credentials may lack required permissions",
            credential_type=service,
        )
    if response.status_code == 429 or response.status_code >= 500:
        raise NetworkError(
            f"{service} API error: {response.status_code}",
            service=service,
            status_code=response.status_code,
            details=response.text[:200],
        )
    if response.status_code >= 400:
        raise QueryError(
            f"{service} API error: {response.status_code}",
            query=response.url,
            details=response.text[:200],
        )
    return response


def get_json(session: requests.Session, url: str, service: str, **kwargs):
    """GET a URL and return its JSON body, mapping transport errors to NetworkError."""
    try:
        response = session.get(url, timeout=kwargs.pop("timeout", 30), **kwargs)
    except requests.RequestException as e:
        raise NetworkError(f"Could not reach {service}", service=service, details=str(e))
    check_response(response, service)
    try:
        return response.json()
    except ValueError as e:
        raise QueryError(f"Malformed {service} response", query=url, details=str(e))
