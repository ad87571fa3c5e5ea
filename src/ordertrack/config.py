"""Deployment configuration for the order lookup endpoint.

All settings come from environment variables, read once when a
:class:`LookupConfig` is built.  Gateways and the handler receive the
config object explicitly and never read the environment themselves, so
tests can construct configs with any credential combination.

Environment variables
---------------------
``SHIPSTATION_API_KEY`` / ``SHIPSTATION_API_SECRET``
    ShipStation v1 credential pair (mandatory).
``SEVENTEEN_TRACK_API_KEY``
    17TRACK API key.  Optional: when unset, tracking verification is
    skipped and shipment status comes from ShipStation alone.
``ORDERTRACK_ALLOWED_ORIGIN``
    Value of ``Access-Control-Allow-Origin`` (default ``*``).
``ORDERTRACK_DEBUG``
    ``1``/``true`` to include a ``debug`` block in lookup responses.
``ORDERTRACK_HTTP_TIMEOUT``
    Per-request upstream timeout in seconds (default 15).
``ORDERTRACK_POLL_ATTEMPTS`` / ``ORDERTRACK_POLL_INTERVAL``
    17TRACK polling budget per shipment (default 3 attempts, 3 s apart).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_SHIPSTATION_URL = "https://ssapi.shipstation.com"
_DEFAULT_SEVENTEEN_TRACK_URL = "https://api.17track.net/track/v2.2"

_TRUTHY = {"1", "true", "yes", "y", "on"}


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------


def _env_str(name: str, default: str = "") -> str:
    return (os.environ.get(name, default) or "").strip()


def parse_int_env(name: str, default: int) -> int:
    """Parse an integer from an environment variable with safe fallback.

    Logs a warning and returns *default* if the value is not a valid integer.
    """
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using default %d", name, raw, default)
        return default


def parse_float_env(name: str, default: float) -> float:
    """Parse a float from an environment variable with safe fallback."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number for %s=%r, using default %s", name, raw, default)
        return default


def parse_bool_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class LookupConfig:
    """Credentials and tuning for one deployment of the lookup endpoint."""

    shipstation_api_key: str = field(default_factory=lambda: _env_str("SHIPSTATION_API_KEY"))
    shipstation_api_secret: str = field(default_factory=lambda: _env_str("SHIPSTATION_API_SECRET"))
    seventeen_track_api_key: str = field(default_factory=lambda: _env_str("SEVENTEEN_TRACK_API_KEY"))
    shipstation_base_url: str = field(
        default_factory=lambda: _env_str("ORDERTRACK_SHIPSTATION_URL", _DEFAULT_SHIPSTATION_URL)
    )
    seventeen_track_base_url: str = field(
        default_factory=lambda: _env_str("ORDERTRACK_SEVENTEEN_TRACK_URL", _DEFAULT_SEVENTEEN_TRACK_URL)
    )
    allowed_origin: str = field(default_factory=lambda: _env_str("ORDERTRACK_ALLOWED_ORIGIN", "*"))
    debug: bool = field(default_factory=lambda: parse_bool_env("ORDERTRACK_DEBUG"))
    http_timeout: float = field(default_factory=lambda: parse_float_env("ORDERTRACK_HTTP_TIMEOUT", 15.0))
    max_attempts: int = 3
    backoff_base: float = 0.5
    poll_attempts: int = field(default_factory=lambda: parse_int_env("ORDERTRACK_POLL_ATTEMPTS", 3))
    poll_interval: float = field(default_factory=lambda: parse_float_env("ORDERTRACK_POLL_INTERVAL", 3.0))
    max_concurrency: int = 2

    def __post_init__(self) -> None:
        if self.poll_attempts < 1:
            self.poll_attempts = 1
        if self.poll_interval < 0:
            self.poll_interval = 0.0
        if self.max_concurrency < 1:
            self.max_concurrency = 1

    @property
    def has_fulfillment_credentials(self) -> bool:
        return bool(self.shipstation_api_key and self.shipstation_api_secret)

    @property
    def tracking_enabled(self) -> bool:
        """Whether 17TRACK verification is switched on for this deployment."""
        return bool(self.seventeen_track_api_key)

    def worst_case_poll_seconds(self) -> float:
        """Upper bound on time spent sleeping between polls for one shipment."""
        return (self.poll_attempts - 1) * self.poll_interval

    def worst_case_call_seconds(self) -> float:
        """Upper bound on one upstream call, counting every retry and backoff."""
        attempts = max(1, self.max_attempts)
        backoff = sum(self.backoff_base * 2**n for n in range(attempts - 1))
        return attempts * self.http_timeout + backoff

    def worst_case_tracking_seconds(self) -> float:
        """Upper bound on verifying one tracking number.

        At most ``poll_attempts + 2`` 17TRACK calls (query, register, polls)
        plus the sleep between polls.
        """
        calls = self.poll_attempts + 2
        return calls * self.worst_case_call_seconds() + self.worst_case_poll_seconds()

    def __repr__(self) -> str:
        return (
            f"<LookupConfig shipstation={'set' if self.has_fulfillment_credentials else 'missing'} "
            f"tracking={'on' if self.tracking_enabled else 'off'} origin={self.allowed_origin!r}>"
        )


def load_config(env_file: str | os.PathLike[str] | None = None) -> LookupConfig:
    """Load ``.env`` files (if present) and build a :class:`LookupConfig`.

    Reads *env_file* when given, otherwise ``.env`` in the working directory
    and ``~/.ordertrack/.env``.  Existing environment variables win.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()
        load_dotenv(Path.home() / ".ordertrack" / ".env")
    return LookupConfig()
