"""
Shared HTTP plumbing for the hosted model API

Both the embedding and the completion clients talk to an OpenAI-compatible
REST API. This module holds the request loop they share:
- Bearer authentication
- Configurable timeout
- Pluggable retry policy with exponential backoff
- Translation of transport/status failures into a caller-chosen error type
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from optiassist.errors import ServiceError

logger = logging.getLogger(__name__)

# Status codes worth retrying: rate limiting and server-side failures
RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt an upstream call and how long to wait between tries.

    The default is a single attempt; callers opt in to retries.
    """

    max_attempts: int = 1
    backoff_base: float = 2.0

    def delay(self, attempt: int) -> float:
        """Seconds to sleep after the given zero-based failed attempt."""
        return self.backoff_base**attempt


NO_RETRY = RetryPolicy()


class ModelAPIClient:
    """Base class for clients of an OpenAI-compatible model API."""

    error_class: type[ServiceError] = ServiceError
    service_name: str = "model API"

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        timeout: float,
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST a JSON payload and return the decoded JSON body.

        Retries transient failures according to the retry policy.

        Raises:
            error_class: When every attempt fails or the failure is not retryable.
        """
        attempts = max(1, self.retry_policy.max_attempts)
        last_error: Exception | None = None

        for attempt in range(attempts):
            retryable = True
            try:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout)
                ) as client:
                    response = await client.post(
                        f"{self.base_url}{path}",
                        json=payload,
                        headers=self._headers(),
                    )
                    response.raise_for_status()
                    return response.json()

            except (httpx.ConnectTimeout, httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout) as e:
                logger.warning(
                    "%s timeout (attempt %d/%d): %s",
                    self.service_name,
                    attempt + 1,
                    attempts,
                    e,
                )
                last_error = e
            except httpx.ConnectError as e:
                logger.warning(
                    "%s connection error (attempt %d/%d): %s",
                    self.service_name,
                    attempt + 1,
                    attempts,
                    e,
                )
                last_error = e
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                logger.warning(
                    "%s HTTP error %d (attempt %d/%d)",
                    self.service_name,
                    status_code,
                    attempt + 1,
                    attempts,
                )
                last_error = e
                retryable = status_code in RETRYABLE_STATUS
            except (httpx.HTTPError, ValueError) as e:
                # ValueError covers an undecodable JSON body
                logger.error(
                    "Unexpected %s error (attempt %d/%d): %s",
                    self.service_name,
                    attempt + 1,
                    attempts,
                    e,
                )
                last_error = e

            if not retryable:
                break
            if attempt < attempts - 1:
                wait = self.retry_policy.delay(attempt)
                logger.info("Retrying %s in %.1fs...", self.service_name, wait)
                await asyncio.sleep(wait)

        raise self.error_class(
            f"{self.service_name} request to {path} failed: {last_error}"
        ) from last_error

    async def health_check(self) -> bool:
        """Return True if the API answers the model listing endpoint."""
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(10)) as client:
                response = await client.get(
                    f"{self.base_url}/models", headers=self._headers()
                )
                return response.status_code == 200
        except Exception as e:
            logger.warning("%s health check failed: %s", self.service_name, e)
            return False
