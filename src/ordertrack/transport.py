"""JSON-over-HTTPS transport with timeout and exponential-backoff retry.

This is the only place retries happen.  Gateways call
:meth:`JsonTransport.request` once per logical operation and never loop
around it.

Retry policy
------------
* HTTP 429 and 5xx, connection errors and timeouts are retried up to
  ``max_attempts`` total attempts, sleeping ``backoff_base * 2**attempt``
  seconds between attempts (0.5 s, 1 s, ... by default).
* 401/403 raise :class:`~ordertrack.errors.AuthError` immediately so a bad
  credential is never hidden behind retry delay.
* Any other 4xx (including 404) raises
  :class:`~ordertrack.errors.UpstreamError` immediately; callers decide
  whether 404 means "empty".
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests
from requests.exceptions import ConnectionError as ReqConnectionError
from requests.exceptions import RequestException, Timeout

from ordertrack.errors import AuthError, InvalidResponseError, UpstreamError

logger = logging.getLogger(__name__)


class JsonTransport:
    """Thin wrapper over a :class:`requests.Session` for JSON APIs.

    Args:
        name: Upstream name used in log lines and error messages.
        timeout: Per-attempt request timeout in seconds.
        max_attempts: Total attempts for retryable failures.
        backoff_base: Base delay in seconds for exponential backoff.
        session: Optional pre-built session (tests, connection reuse).
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        name: str,
        *,
        timeout: float = 15.0,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.name = name
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        self._sleep = sleep

    @staticmethod
    def _is_retryable(status: int) -> bool:
        return status == 429 or 500 <= status < 600

    def _backoff(self, attempt: int) -> float:
        return self.backoff_base * (2**attempt)

    def _parse_body(self, response: requests.Response, method: str, url: str) -> Any:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError(
                f"{self.name} returned non-JSON body for {method} {url}",
                code="INVALID_RESPONSE",
                status_code=response.status_code,
            ) from exc

    def _raise_for_status(self, response: requests.Response, method: str, url: str) -> None:
        status = response.status_code
        if status in (401, 403):
            logger.error("%s rejected credentials (HTTP %d) for %s %s", self.name, status, method, url)
            raise AuthError(
                f"{self.name} returned HTTP {status} for {method} {url}",
                code="AUTH_ERROR",
                status_code=status,
            )
        raise UpstreamError(
            f"{self.name} returned HTTP {status} for {method} {url}: {response.text[:300]}",
            code=f"HTTP_{status}",
            status_code=status,
        )

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> Any:
        """Execute a request and return the parsed JSON body.

        Args:
            method: HTTP method (``"GET"``, ``"POST"``).
            url: Absolute URL.
            headers: Extra headers for this call (auth, content type).
            params: Query parameters.
            json: JSON body.

        Returns:
            The decoded JSON document (``{}`` for an empty body).

        Raises:
            AuthError: On HTTP 401/403.
            InvalidResponseError: If a 2xx body is not valid JSON.
            UpstreamError: On any other failure once retries are exhausted.
        """
        attempt = 0
        while True:
            try:
                response = self._session.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json,
                    timeout=self.timeout,
                )
            except Timeout as exc:
                last_error = UpstreamError(
                    f"Request to {self.name} timed out after {self.timeout}s "
                    f"(attempt {attempt + 1}/{self.max_attempts})",
                    code="TIMEOUT",
                )
                last_error.__cause__ = exc
            except ReqConnectionError as exc:
                last_error = UpstreamError(
                    f"Could not connect to {self.name} "
                    f"(attempt {attempt + 1}/{self.max_attempts})",
                    code="CONNECTION_ERROR",
                )
                last_error.__cause__ = exc
            except RequestException as exc:
                raise UpstreamError(
                    f"Request error for {method} {url}: {exc}",
                    code="REQUEST_ERROR",
                ) from exc
            else:
                if response.ok:
                    return self._parse_body(response, method, url)
                if not self._is_retryable(response.status_code):
                    self._raise_for_status(response, method, url)
                last_error = UpstreamError(
                    f"{self.name} returned HTTP {response.status_code} for {method} {url} "
                    f"(attempt {attempt + 1}/{self.max_attempts})",
                    code=f"HTTP_{response.status_code}",
                    status_code=response.status_code,
                )

            logger.warning("%s", last_error)
            if attempt + 1 >= self.max_attempts:
                raise last_error
            self._sleep(self._backoff(attempt))
            attempt += 1

    def close(self) -> None:
        self._session.close()

    def __repr__(self) -> str:
        return f"<JsonTransport {self.name} timeout={self.timeout} attempts={self.max_attempts}>"
