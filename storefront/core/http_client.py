"""
Resilient HTTP Client for the hosted database

- Exponential backoff with jitter on transient failures
- 429 detection with Retry-After header respect
- RateLimitExceeded for fail-fast on long waits
- Per-host 429 block tracking

Catalog reads go through a client with retries; order inserts use
max_retries=0.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

MAX_RATE_LIMIT_WAIT = 60.0  # Maximum seconds we'll wait on a 429


class RateLimitExceeded(Exception):
    """
    Raised when a host is rate-limited for longer than MAX_RATE_LIMIT_WAIT.
    """
    def __init__(self, host: str, wait_time: float):
        self.host = host
        self.wait_time = wait_time
        super().__init__(f"Rate limited by {host} for {wait_time:.0f}s")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 2
    base_delay: float = 0.5           # Base delay in seconds
    max_delay: float = 10.0           # Maximum delay cap
    exponential_base: float = 2.0     # Exponential backoff multiplier
    jitter_factor: float = 0.5        # Random jitter (0-1)

    # Status codes that should trigger retry
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


@dataclass
class HostState:
    """Tracks state for a specific host."""
    # Set when we receive a 429; requests wait or fail fast until then
    blocked_until: Optional[float] = None


class ResilientHTTPClient:
    """
    Async HTTP client with retry and backoff.

    Usage:
        async with ResilientHTTPClient(base_url=url) as client:
            response = await client.get("/rest/v1/products")
    """

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 10.0,
        default_headers: Optional[Dict[str, str]] = None,
        base_url: str = "",
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.default_headers = default_headers or {}
        self.base_url = base_url

        self._client: Optional[httpx.AsyncClient] = None
        self._host_states: Dict[str, HostState] = {}

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.default_headers,
                follow_redirects=True,
            )
        return self

    async def close(self):
        """Close the client. Use this when not using context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_host(self, url: str) -> str:
        """Extract host from URL for per-host tracking."""
        return urlparse(url).netloc or urlparse(self.base_url).netloc

    def _get_host_state(self, host: str) -> HostState:
        """Get or create state for a host."""
        if host not in self._host_states:
            self._host_states[host] = HostState()
        return self._host_states[host]

    def _calculate_backoff(self, attempt: int) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Formula: min(base * (exp_base ^ attempt) + jitter, max_delay)
        """
        cfg = self.retry_config
        delay = cfg.base_delay * (cfg.exponential_base ** attempt)
        jitter = delay * cfg.jitter_factor * (2 * random.random() - 1)
        delay += jitter
        return max(0.0, min(delay, cfg.max_delay))

    def _parse_retry_after(self, response: httpx.Response) -> Optional[float]:
        """Parse Retry-After header, returns absolute timestamp."""
        retry_after = response.headers.get("Retry-After")
        if not retry_after:
            return None

        try:
            return time.time() + int(retry_after)
        except ValueError:
            pass

        try:
            from email.utils import parsedate_to_datetime
            return parsedate_to_datetime(retry_after).timestamp()
        except (ValueError, TypeError):
            pass

        return None

    async def _check_preflight_block(self, host: str) -> None:
        """Fail fast if the host is blocked for too long, otherwise wait it out."""
        state = self._get_host_state(host)
        now = time.time()

        if state.blocked_until and now < state.blocked_until:
            wait_time = state.blocked_until - now
            if wait_time > MAX_RATE_LIMIT_WAIT:
                logger.warning(f"[PRE-FLIGHT] {host}: Blocked for {wait_time:.0f}s - failing fast")
                raise RateLimitExceeded(host, wait_time)

            logger.info(f"[PRE-FLIGHT] {host}: Waiting {wait_time:.1f}s for block to clear")
            await asyncio.sleep(wait_time)
            state.blocked_until = None

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request with retries.

        Raises:
            httpx.HTTPStatusError: On a non-retryable error status, or when
                retries are exhausted on a retryable one
            httpx.TransportError: When the last attempt failed to connect
            RateLimitExceeded: On a Retry-After longer than MAX_RATE_LIMIT_WAIT
        """
        if not self._client:
            await self.init()

        host = self._get_host(url)
        cfg = self.retry_config

        await self._check_preflight_block(host)

        last_exception: Optional[Exception] = None

        for attempt in range(cfg.max_retries + 1):
            try:
                logger.debug(f"[HTTP] {method} {url} (attempt {attempt + 1}/{cfg.max_retries + 1})")
                response = await self._client.request(method, url, **kwargs)

                if response.status_code == 429:
                    retry_after = self._parse_retry_after(response)
                    state = self._get_host_state(host)

                    if retry_after:
                        wait_time = retry_after - time.time()
                        state.blocked_until = retry_after
                    else:
                        wait_time = self._calculate_backoff(attempt)
                        state.blocked_until = time.time() + wait_time
                    logger.warning(f"[429] {host}: Rate limited, backing off {wait_time:.1f}s")

                    if wait_time > MAX_RATE_LIMIT_WAIT:
                        raise RateLimitExceeded(host, wait_time)

                    if attempt < cfg.max_retries:
                        await asyncio.sleep(max(0.0, wait_time))
                        state.blocked_until = None
                        continue

                if response.status_code in cfg.retryable_status_codes:
                    if attempt < cfg.max_retries:
                        delay = self._calculate_backoff(attempt)
                        logger.warning(
                            f"[HTTP] {host}: Status {response.status_code}, "
                            f"retrying in {delay:.1f}s (attempt {attempt + 1})"
                        )
                        await asyncio.sleep(delay)
                        continue

                response.raise_for_status()
                return response

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_exception = e
                if attempt < cfg.max_retries:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(f"[HTTP] {host}: {type(e).__name__}, retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue

        logger.error(f"[HTTP] {host}: All {cfg.max_retries + 1} attempts failed")
        raise last_exception

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def patch(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)


def get_supabase_client(url: str, anon_key: str, max_retries: int = 2, timeout: float = 10.0) -> ResilientHTTPClient:
    """
    Client for the Supabase REST endpoint.

    PostgREST authenticates with the anon key both as apikey and bearer token.
    """
    return ResilientHTTPClient(
        retry_config=RetryConfig(max_retries=max_retries),
        timeout=timeout,
        default_headers={
            "apikey": anon_key,
            "Authorization": f"Bearer {anon_key}",
            "Accept": "application/json",
        },
        base_url=f"{url.rstrip('/')}/rest/v1",
    )
