"""
backend/netprophet/providers/http_client.py

Purpose:
    Shared async HTTP client for the remote ledger. Wraps httpx.AsyncClient
    with a per-call retry budget (zero unless the caller opts in), exponential
    backoff that honours Retry-After, and a circuit breaker whose state is
    reported by /health.

Dependencies:
    - httpx
"""

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger("netprophet.http_client")

_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}
_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError)
_MAX_DELAY_SECONDS = 30.0


class CircuitOpenError(RuntimeError):
    """Raised instead of calling a service whose circuit is open."""


class CircuitBreaker:
    """Opens after `failure_threshold` exhausted calls; one trial call is let through after `recovery_timeout`."""

    def __init__(self, failure_threshold: int = 3, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return "closed"
        if time.monotonic() - self._opened_at >= self.recovery_timeout:
            return "half_open"
        return "open"

    def allows_request(self) -> bool:
        return self.state != "open"

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit closed after a successful trial call")
        self.failure_count = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.failure_count >= self.failure_threshold:
            self._opened_at = time.monotonic()
            logger.warning("Circuit open after %d failed calls", self.failure_count)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _backoff(attempt: int, base_delay: float, response: Optional[httpx.Response] = None) -> float:
    delay = _retry_after(response) if response is not None else None
    if delay is None:
        delay = base_delay * (2 ** attempt)
    return min(delay, _MAX_DELAY_SECONDS)


def _safe_url(url: str) -> str:
    """Drop the query string (action names, occasionally tokens) for logging."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """httpx.AsyncClient wrapper with opt-in retry and a circuit breaker.

    A request is only repeated when the caller passes `retries`; money-moving
    ledger actions never do. When every attempt fails the last response is
    returned (so the caller can read the server's error body) or the last
    transport error is re-raised.
    """

    def __init__(
        self,
        name: str,
        timeout: float = 15.0,
        base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.circuit = CircuitBreaker()
        self._base_delay = base_delay
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def request(self, method: str, url: str, retries: int = 0, **kwargs) -> httpx.Response:
        if not self.circuit.allows_request():
            raise CircuitOpenError(f"[{self.name}] circuit open, not calling {_safe_url(url)}")

        attempts = retries + 1
        last_response: Optional[httpx.Response] = None
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            if attempt:
                await asyncio.sleep(_backoff(attempt - 1, self._base_delay, last_response))
            try:
                response = await self._client.request(method, url, **kwargs)
            except _TRANSIENT_ERRORS as exc:
                last_error, last_response = exc, None
                logger.warning(
                    "[%s] %s %s failed (attempt %d/%d): %s",
                    self.name, method, _safe_url(url), attempt + 1, attempts, exc,
                )
                continue

            if response.status_code not in _RETRYABLE_STATUSES:
                self.circuit.record_success()
                return response
            last_response = response
            logger.warning(
                "[%s] %s %s returned %d (attempt %d/%d)",
                self.name, method, _safe_url(url), response.status_code, attempt + 1, attempts,
            )

        self.circuit.record_failure()
        if last_response is not None:
            return last_response
        logger.error("[%s] %s %s unreachable after %d attempts", self.name, method, _safe_url(url), attempts)
        raise last_error  # type: ignore[misc]

    async def aclose(self) -> None:
        await self._client.aclose()
