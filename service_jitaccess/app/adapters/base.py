"""
Common HTTP plumbing for Google API clients.
"""

from typing import Any, Dict, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import AccessDenied, IOFailure
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception


class GoogleApiClient:
    """Issues authenticated JSON requests and maps failures to domain errors."""

    def __init__(self,
                 service: str,
                 base_url: str,
                 access_token: Optional[str] = None,
                 timeout: float = 10.0,
                 http_client: Optional[httpx.AsyncClient] = None,
                 retry_config: Optional[RetryConfig] = None):
        self.service = service
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger(f"jitaccess.adapters.{service}")

        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = http_client or httpx.AsyncClient(timeout=timeout, headers=headers)

        self.circuit_breaker = CircuitBreaker(
            service,
            failure_threshold=5,
            recovery_timeout=30.0,
            expected_exception=IOFailure
        )
        self._send = retry_on_exception(
            (httpx.TransportError,),
            config=retry_config or RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0)
        )(self._send_once)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _send_once(self, path: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        return await self._client.get(f"{self.base_url}/{path.lstrip('/')}", params=params)

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        async def _call():
            try:
                response = await self._send(path, params)
            except RetryError as e:
                raise IOFailure(self.service, f"Request failed: {e.last_exception}") from e

            if response.status_code == 403:
                raise AccessDenied(
                    f"{self.service}: access to {path} denied",
                    details={"path": path}
                )
            if response.status_code >= 400:
                raise IOFailure(
                    self.service,
                    f"Request to {path} failed with status {response.status_code}",
                    details={"status_code": response.status_code}
                )
            return response.json()

        try:
            return await self.circuit_breaker.call(_call)
        except CircuitBreakerOpenException as e:
            self.logger.error("API unavailable", error=str(e))
            raise IOFailure(self.service, str(e)) from e
