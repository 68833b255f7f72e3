"""
Shared HTTP plumbing for taste sources.

Maps transport failures and status codes onto the retry_helper / taste error
hierarchy so callers can tell "try again" apart from "reconnect" apart from
"provider said no".
"""
import logging
from typing import Any, Dict, Optional

import requests

from tunedin.logging_utils import redact
from tunedin.retry_helper import NetworkError, RateLimitError, ServerError, retry_with_backoff
from tunedin.taste.errors import NotConnectedError, ProviderAPIError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _retry_after(response: requests.Response) -> float:
    try:
        return float(response.headers.get("Retry-After", 0))
    except (TypeError, ValueError):
        return 0.0


def request_json(
    http: requests.Session,
    method: str,
    url: str,
    *,
    provider: str,
    endpoint: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """
    Perform one request and return the decoded JSON body.

    Raises:
        NotConnectedError: 401 (credential rejected or expired)
        RateLimitError: 429
        ServerError: 5xx
        NetworkError: connection failure or timeout
        ProviderAPIError: any other non-2xx status, or a 2xx body that is not JSON
    """
    logger.debug("%s %s %s params=%s headers=%s", provider, method, endpoint, params, redact(headers))
    try:
        response = http.request(method, url, headers=headers, params=params, data=data, timeout=timeout)
    except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
        raise NetworkError(f"{provider} {endpoint}: {e}") from e

    status = response.status_code
    if status == 401:
        raise NotConnectedError(f"{provider} rejected the credential for {endpoint}; reconnect required.")
    if status == 429:
        raise RateLimitError(f"{provider} {endpoint}: rate limited", retry_after=_retry_after(response))
    if status >= 500:
        raise ServerError(f"{provider} {endpoint}: {status}")
    if not 200 <= status < 300:
        raise ProviderAPIError(provider, endpoint, status, response.text)
    try:
        return response.json()
    except ValueError as e:
        # requests raises a ValueError subclass for a body that is not JSON
        raise ProviderAPIError(provider, endpoint, status, f"invalid JSON body: {e}") from e


def request_json_with_retry(
    http: requests.Session,
    method: str,
    url: str,
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    **kwargs,
) -> Any:
    """request_json retried with exponential backoff on RetryableError."""
    wrapped = retry_with_backoff(max_retries=max_retries, initial_delay=initial_delay)(request_json)
    return wrapped(http, method, url, **kwargs)
