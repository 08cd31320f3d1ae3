"""HTTP client service with retry logic and request spacing."""

import asyncio
import time
from typing import Any

import httpx
import structlog

log = structlog.stdlib.get_logger()


class HttpClientService:
    """Thin httpx wrapper used by the BoardGameGeek gateway.

    Transport errors and 5xx responses are retried with exponential backoff.
    202 (accepted, not ready) is returned as a normal response and 429
    (throttled) is raised straight away: both are signals the caller turns
    into a longer-lived retry, so they are not retried here.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 2,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        rate_limit_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client service.

        Args:
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts for transport/5xx errors
            base_delay: Base delay for exponential backoff in seconds
            max_delay: Maximum delay between retries in seconds
            rate_limit_delay: Minimum delay between requests in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.rate_limit_delay = rate_limit_delay
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": "bgg-collections/0.1.0"
            },
            follow_redirects=True,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            transport=transport,
        )

        log.info(
            "HTTP client service initialized",
            timeout=timeout,
            max_retries=max_retries,
            rate_limit_delay=rate_limit_delay,
        )

    async def get(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make a GET request with retry logic and request spacing.

        Args:
            url: The URL to request
            params: Optional query parameters

        Returns:
            HTTP response object (2xx, including 202)

        Raises:
            httpx.HTTPStatusError: On 429, on 4xx, or on 5xx after all retries
            httpx.RequestError: If the transport fails after all retries
        """
        for attempt in range(self.max_retries + 1):
            await self._enforce_rate_limit()
            try:
                log.debug(
                    "Making HTTP GET request",
                    url=url,
                    params=params,
                    attempt=attempt + 1,
                    max_attempts=self.max_retries + 1
                )

                response = await self._client.get(url, params=params)
                response.raise_for_status()

                log.debug(
                    "HTTP GET request completed",
                    url=url,
                    status_code=response.status_code,
                    content_length=len(response.content)
                )
                return response

            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                log.warning(
                    "HTTP GET request failed",
                    url=url,
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__
                )

                if isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500:
                    if e.response.status_code == 429:
                        log.info("Throttled by server", url=url)
                    else:
                        log.error("Client error, not retrying", status_code=e.response.status_code)
                    raise

                if attempt == self.max_retries:
                    log.error(
                        "HTTP GET request failed after all retries",
                        url=url,
                        total_attempts=self.max_retries + 1
                    )
                    raise

                delay = min(self.base_delay * (2 ** attempt), self.max_delay)
                log.info("Retrying after delay", delay=delay)
                await asyncio.sleep(delay)

        raise RuntimeError("Unexpected end of retry loop")

    async def _enforce_rate_limit(self) -> None:
        """Space requests at least ``rate_limit_delay`` apart."""
        async with self._rate_limit_lock:
            time_since_last = time.monotonic() - self._last_request_time
            if time_since_last < self.rate_limit_delay:
                sleep_time = self.rate_limit_delay - time_since_last
                log.debug("Rate limiting: sleeping", sleep_time=sleep_time)
                await asyncio.sleep(sleep_time)
            self._last_request_time = time.monotonic()

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._client.aclose()
        log.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClientService":
        return self

    async def __aexit__(self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: Any) -> None:
        await self.close()
