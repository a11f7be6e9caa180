"""
Integration HTTP Client.

Thin httpx wrapper shared by every outbound collaborator. It owns the
mapping from transport outcomes to the orchestrator's exception types:

    timeout / connection error / HTTP 429 / HTTP 5xx -> TransientIntegrationError
    any other HTTP 4xx                              -> TaskFailureError

Callers decide whether to retry; this client makes exactly one request.

Exports:
    IntegrationHttpClient: JSON-over-HTTP client for collaborator APIs
"""

from typing import Any, Dict, Optional

import httpx

from exceptions import TaskFailureError, TransientIntegrationError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "IntegrationHttpClient")


class IntegrationHttpClient:
    """
    JSON client bound to one collaborator base URL.

    A new httpx.Client is opened per request so instances are safe to
    share across the scheduler's worker threads.
    """

    def __init__(self, base_url: str, timeout_seconds: float,
                 api_key: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.api_key = api_key
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def request(self, method: str, path: str,
                json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one request and return the decoded JSON body ({} when empty).

        Raises:
            TransientIntegrationError: Timeout, connection failure, 429 or 5xx
            TaskFailureError: Any other non-2xx response
        """
        url = f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.request(method, url, json=json, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.warning(f"⚠️ {method} {url} timed out: {e}")
            raise TransientIntegrationError(f"Timeout calling {url}") from e
        except httpx.RequestError as e:
            logger.warning(f"⚠️ {method} {url} failed: {e}")
            raise TransientIntegrationError(f"Request to {url} failed: {e}") from e

        status = response.status_code
        if status == 429 or status >= 500:
            logger.warning(f"⚠️ {method} {url} returned {status}")
            raise TransientIntegrationError(
                f"{url} returned HTTP {status}", status_code=status
            )
        if status >= 400:
            logger.error(f"❌ {method} {url} returned {status}: {response.text[:200]}")
            raise TaskFailureError(
                f"{url} rejected the request with HTTP {status}",
                details={"status_code": status, "body": response.text[:500]},
            )

        if not response.content:
            return {}
        return response.json()


__all__ = ['IntegrationHttpClient']
