"""Exception hierarchy for order lookups.

Every error carries a machine-readable ``code`` so the request handler can
pick a response status without parsing messages::

    OrderTrackError
    ├── ValidationError       (400, bad caller input)
    ├── ConfigurationError    (500, missing credentials)
    ├── NotFoundError         (404, no matching order)
    ├── UpstreamError         (502, ShipStation / 17TRACK failure)
    │   ├── AuthError         (401/403 from an upstream, never retried)
    │   └── InvalidResponseError (2xx body that is not JSON)
    └── VerificationError     (one shipment's tracking check failed)
"""

from __future__ import annotations


class OrderTrackError(Exception):
    """Base exception for order lookup errors."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ValidationError(OrderTrackError):
    """The caller's request body or fields are invalid."""

    def __init__(self, message: str, *, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message, code=code)


class ConfigurationError(OrderTrackError):
    """Mandatory deployment configuration (credentials) is missing."""

    def __init__(self, message: str, *, code: str = "CONFIG_ERROR") -> None:
        super().__init__(message, code=code)


class NotFoundError(OrderTrackError):
    """No order matched the order number and email."""

    def __init__(self, message: str, *, code: str = "NOT_FOUND") -> None:
        super().__init__(message, code=code)


class UpstreamError(OrderTrackError):
    """An upstream API call failed (timeout, network, or non-2xx).

    Args:
        message: Human-readable description, for logs only.
        code: Machine-readable code (``"TIMEOUT"``, ``"HTTP_503"``, ...).
        status_code: HTTP status of the final response, if one was received.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code


class AuthError(UpstreamError):
    """The upstream rejected our credentials (HTTP 401/403)."""


class InvalidResponseError(UpstreamError):
    """The upstream answered 2xx but the body was not valid JSON."""


class VerificationError(OrderTrackError):
    """Tracking verification for a single shipment failed.

    Recovered locally by failing open; never surfaces as a request error.
    """
