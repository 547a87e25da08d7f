"""
HTTP infrastructure layer with retry logic and API key rotation.

Provides:
- APIKeyRotator: Round-robin rotation for comma-separated API keys
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client with automatic retry and key rotation

This layer separates HTTP concerns (retries, backoff, key rotation) from
domain logic (feeds, search, content store) in the callers. Every request
is bounded by the client timeout, so a stuck collaborator surfaces as an
HTTPClientError instead of stalling a cycle.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class APIKeyRotator:
    """
    Round-robin API key rotation from comma-separated environment variable.

    Example:
        rotator = APIKeyRotator.from_env_var("key1,key2,key3")
        key = await rotator.get_key()  # Returns keys in round-robin order
    """

    keys: list[str]
    _current_index: int = field(default=0, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_env_var(cls, value: str | None) -> "APIKeyRotator | None":
        """
        Create rotator from comma-separated environment variable value.

        Args:
            value: Comma-separated API keys or single key, or None

        Returns:
            APIKeyRotator instance or None if no keys provided
        """
        if not value:
            return None

        keys = [k.strip() for k in value.split(",") if k.strip()]

        if not keys:
            return None

        return cls(keys=keys)

    async def get_key(self) -> str:
        """
        Get the next API key in round-robin rotation.

        Returns:
            The next API key in rotation
        """
        async with self._lock:
            key = self.keys[self._current_index]
            self._current_index = (self._current_index + 1) % len(self.keys)
            return key

    @property
    def key_count(self) -> int:
        """Return the number of available keys."""
        return len(self.keys)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 2
    max_backoff_seconds: float = 30.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = self.base_delay * (2**attempt)
        delay = min(delay, self.max_backoff_seconds)

        jitter = delay * self.jitter_factor * random.random()
        return delay + jitter

    def is_retryable_status(self, status_code: int) -> bool:
        """Check if an HTTP status code should trigger a retry (429 and 5xx gateway errors)."""
        return status_code in {429, 500, 502, 503, 504}

    def is_retryable_exception(self, exc: Exception) -> bool:
        """Check if an exception should trigger a retry (timeouts and transport errors)."""
        return isinstance(
            exc,
            (
                httpx.TimeoutException,
                httpx.ConnectError,
                httpx.ReadError,
            ),
        )


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""

    pass


class HTTPClient:
    """
    Async HTTP client with retry logic and API key rotation.

    Features:
    - Exponential backoff with jitter on retryable errors
    - Automatic retry on 429, 5xx status codes
    - Automatic retry on timeout/connection errors
    - Optional API key rotation for each request
    - Context manager for proper resource cleanup

    Example:
        async with HTTPClient(RetryConfig(max_retries=2), timeout=10.0) as client:
            response = await client.get(
                "https://www.googleapis.com/youtube/v3/search",
                params={"q": "Thai Culture"},
                api_key_rotator=rotator,
                api_key_param="key",
            )
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            retry_config: Configuration for retry behavior. Uses defaults if None.
            timeout: Request timeout in seconds.
            headers: Headers sent with every request.
        """
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._headers = dict(headers) if headers else {}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        """Enter async context manager, create client."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        await self.close()

    async def open(self) -> None:
        """Create the underlying client if it is not open yet."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers,
                follow_redirects=True,
            )

    async def close(self) -> None:
        """Close the underlying client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform GET request with retry logic."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform POST request with retry logic."""
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform PUT request with retry logic."""
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform DELETE request with retry logic."""
        return await self.request("DELETE", url, **kwargs)

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_header: str | None = None,
        api_key_prefix: str = "",
        api_key_param: str | None = None,
    ) -> httpx.Response:
        """
        Execute HTTP request with retry logic.

        Implements exponential backoff with jitter on retryable errors.
        Rotates API keys on each retry if rotator is provided.

        Raises:
            HTTPClientError: On non-retryable errors or after retries exhausted
            RateLimitError: When rate limited and retries exhausted
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be opened before use")

        last_status_code: int | None = None
        last_response_body: str | None = None

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                request_headers = dict(headers) if headers else {}
                request_params = dict(params) if params else {}

                if api_key_rotator:
                    api_key = await api_key_rotator.get_key()

                    if api_key_header:
                        request_headers[api_key_header] = f"{api_key_prefix}{api_key}"
                    elif api_key_param:
                        request_params[api_key_param] = api_key

                response = await self._client.request(
                    method,
                    url,
                    params=request_params or None,
                    headers=request_headers or None,
                    json=json_body,
                )

                if self.retry_config.is_retryable_status(response.status_code):
                    last_status_code = response.status_code
                    last_response_body = response.text

                    if attempt < self.retry_config.max_retries:
                        backoff = self.retry_config.calculate_backoff(attempt)
                        logger.warning(
                            f"Retryable status {response.status_code} from {url}, "
                            f"attempt {attempt + 1}/{self.retry_config.max_retries + 1}, "
                            f"backing off {backoff:.2f}s"
                        )
                        await asyncio.sleep(backoff)
                        continue

                    if response.status_code == 429:
                        raise RateLimitError(
                            f"Rate limit exceeded for {url} after {attempt + 1} attempts",
                            status_code=response.status_code,
                            response_body=last_response_body,
                        )
                    raise HTTPClientError(
                        f"Request failed with status {response.status_code} after {attempt + 1} attempts",
                        status_code=response.status_code,
                        response_body=last_response_body,
                    )

                if response.status_code >= 400:
                    raise HTTPClientError(
                        f"Request failed with status {response.status_code}",
                        status_code=response.status_code,
                        response_body=response.text,
                    )

                return response

            except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as e:
                if attempt < self.retry_config.max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable error {type(e).__name__} for {url}, "
                        f"attempt {attempt + 1}/{self.retry_config.max_retries + 1}, "
                        f"backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue

                raise HTTPClientError(
                    f"Request failed after {attempt + 1} attempts: {e}",
                    status_code=last_status_code,
                ) from e

        raise HTTPClientError(
            f"Request failed after {self.retry_config.max_retries + 1} attempts",
            status_code=last_status_code,
            response_body=last_response_body,
        )
