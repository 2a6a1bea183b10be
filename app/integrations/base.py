"""Shared HTTP plumbing for the external catalog clients."""
from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Mapping

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {500, 502, 503, 504}


class IntegrationError(RuntimeError):
    """Base exception raised for external catalog failures."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class IntegrationNotConfigured(IntegrationError):
    """Raised when a client is used without its credentials."""


class IntegrationTimeoutError(IntegrationError):
    def __init__(self, message: str = "request timed out") -> None:
        super().__init__(message, retryable=True)


class IntegrationHTTPStatusError(IntegrationError):
    """Raised when the upstream service returned an unexpected status code."""

    def __init__(self, status_code: int, message: str, *, body: str | None = None, retryable: bool = False) -> None:
        super().__init__(message, retryable=retryable)
        self.status_code = status_code
        self.body = body


class RateLimitedError(IntegrationHTTPStatusError):
    """HTTP 429 that persisted through every retry."""

    def __init__(self, service: str, *, retry_after_ms: int | None = None) -> None:
        super().__init__(429, f"{service} rate limited the request", retryable=True)
        self.retry_after_ms = retry_after_ms


class InvalidResponseError(IntegrationError):
    """Raised when the upstream payload cannot be decoded as JSON."""


def parse_retry_after_ms(headers: Mapping[str, str]) -> int | None:
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0, int(float(value) * 1000))
    except ValueError:
        return None


class BaseClient:
    """Synchronous httpx client with bounded retries and pacing.

    429, 5xx and timeouts are retried with incremental backoff (or the
    server's ``Retry-After``). ``sleep`` is injectable so tests never wait.
    """

    service = "external"

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        max_attempts: int = 3,
        backoff_base_ms: int = 500,
        pacing_ms: int = 0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self.backoff_base_ms = backoff_base_ms
        self.pacing_ms = pacing_ms
        self._sleep = sleep
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)

    def close(self) -> None:
        self._client.close()

    def pause(self, ms: int | None = None) -> None:
        """Short fixed pause between calls to a rate-limited API."""

        delay = self.pacing_ms if ms is None else ms
        if delay > 0:
            self._sleep(delay / 1000)

    def _backoff_ms(self, attempt: int, retry_after_ms: int | None) -> int:
        if retry_after_ms is not None:
            return retry_after_ms
        return self.backoff_base_ms * attempt

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        data: Mapping[str, Any] | None = None,
        allow_statuses: frozenset[int] = frozenset(),
    ) -> httpx.Response:
        target = url if url.startswith("http") else f"{self.base_url}/{url.lstrip('/')}"
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._client.request(method, target, params=params, headers=headers, data=data)
            except httpx.TimeoutException as exc:
                if attempt >= self.max_attempts:
                    raise IntegrationTimeoutError(f"{self.service} request timed out") from exc
                self._sleep(self._backoff_ms(attempt, None) / 1000)
                continue
            except httpx.HTTPError as exc:
                raise IntegrationError(f"{self.service} request failed: {exc}") from exc

            code = response.status_code
            if code in allow_statuses or 200 <= code < 300:
                return response

            if code == 429:
                retry_after_ms = parse_retry_after_ms(response.headers)
                if attempt >= self.max_attempts:
                    raise RateLimitedError(self.service, retry_after_ms=retry_after_ms)
                logger.warning(
                    "Rate limited; backing off",
                    extra={"service": self.service, "attempt": attempt, "retry_after_ms": retry_after_ms},
                )
                self._sleep(self._backoff_ms(attempt, retry_after_ms) / 1000)
                continue

            if code in RETRYABLE_STATUS and attempt < self.max_attempts:
                self._sleep(self._backoff_ms(attempt, None) / 1000)
                continue

            raise IntegrationHTTPStatusError(
                code,
                f"{self.service} returned HTTP {code}",
                body=response.text[:500],
                retryable=code in RETRYABLE_STATUS,
            )

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError("response was not valid JSON") from exc


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return None


def as_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = [
    "IntegrationError",
    "IntegrationNotConfigured",
    "IntegrationTimeoutError",
    "IntegrationHTTPStatusError",
    "RateLimitedError",
    "InvalidResponseError",
    "BaseClient",
    "as_dict",
    "as_list",
    "as_int",
    "as_str",
]
