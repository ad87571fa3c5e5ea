"""17TRACK gateway and tracking-number polling.

ShipStation only knows that a label was bought.  17TRACK knows whether a
carrier has actually scanned the parcel, so each tracking number goes
through a small state machine::

    QUERYING ──status found──────────────────────────────▶ DONE
        │
        └─nothing yet─▶ REGISTERING ─▶ POLLING(1..N) ─────▶ DONE
                                                  any transport error ─▶ FAILED

* QUERYING calls ``/gettrackinfo`` once.
* REGISTERING calls ``/register``.  A rejection (a ``rejected`` entry or
  a non-zero API code, e.g. "already registered") is logged and polling
  continues, since some carriers only publish data after registration.
  Only a transport failure ends the run as FAILED.
* POLLING re-queries up to ``poll_attempts`` times, sleeping
  ``poll_interval`` seconds between attempts and stopping at the first
  concrete status.

Latency per tracking number
---------------------------
A healthy 17TRACK answers each call in well under a second, so the typical
cost is the poll sleep: ``(poll_attempts - 1) * poll_interval``, 6 s with
the defaults (3 attempts, 3 s).

The hard upper bound also counts the transport's retries.  One call can
take ``max_attempts * http_timeout`` plus backoff (3 x 15 s + 1.5 s), and
one tracking number makes at most ``poll_attempts + 2`` calls, so a
shipment against a hanging upstream can take
:meth:`LookupConfig.worst_case_tracking_seconds` (238.5 s with the
defaults).  Lower ``ORDERTRACK_HTTP_TIMEOUT`` to tighten it.

Environment variables
---------------------
``SEVENTEEN_TRACK_API_KEY``
    Sent as the ``17token`` header.  See :mod:`ordertrack.config`.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from ordertrack.carriers import AUTO_DETECT_CARRIER, translate_carrier
from ordertrack.config import LookupConfig
from ordertrack.errors import ConfigurationError, OrderTrackError, VerificationError
from ordertrack.models import TrackingEvent, TrackingEvidence, VerificationOutcome
from ordertrack.transport import JsonTransport

logger = logging.getLogger(__name__)

# Normalized 17TRACK main statuses.  Keys have case and separators removed.
_DELIVERED_STATUSES = frozenset({"delivered"})
_MOVING_STATUSES = frozenset({
    "intransit",
    "pickup",
    "pickedup",
    "outfordelivery",
    "availableforpickup",
})
# The carrier touched the parcel even though something went wrong.
_PROBLEM_STATUSES = frozenset({
    "undelivered",
    "exception",
    "alert",
    "deliveryfailure",
})
_NO_DATA_STATUSES = frozenset({"", "notfound"})


def _normalize(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return "".join(ch for ch in value.lower() if ch.isalnum())


def classify_status(status: str | None, sub_status: str | None = None) -> tuple[bool, bool]:
    """Map a 17TRACK status to ``(carrier_has_scanned, is_delivered)``.

    ``pending``, ``inforeceived``, ``notfound``, ``expired`` and anything
    unrecognized count as not scanned.  A sub-status mentioning a pickup
    forces ``carrier_has_scanned``.
    """
    key = _normalize(status)
    if key in _DELIVERED_STATUSES:
        return True, True
    scanned = key in _MOVING_STATUSES or key in _PROBLEM_STATUSES
    if not scanned and "pickedup" in _normalize(sub_status):
        scanned = True
    return scanned, False


def has_concrete_status(track_info: dict[str, Any] | None) -> bool:
    """True if *track_info* carries a latest status other than "not found"."""
    if not track_info:
        return False
    latest = track_info.get("latest_status") or {}
    if not isinstance(latest, dict):
        return False
    return _normalize(latest.get("status")) not in _NO_DATA_STATUSES


def evidence_from_track_info(track_info: dict[str, Any] | None) -> TrackingEvidence:
    """Build :class:`TrackingEvidence` from a ``track_info`` object."""
    if track_info is None or not has_concrete_status(track_info):
        return TrackingEvidence(False, False, VerificationOutcome.NOT_FOUND)

    latest = track_info.get("latest_status") or {}
    status = latest.get("status")
    scanned, delivered = classify_status(status, latest.get("sub_status"))

    latest_event: TrackingEvent | None = None
    event = track_info.get("latest_event")
    if isinstance(event, dict) and event:
        location = event.get("location")
        latest_event = TrackingEvent(
            status=str(event.get("description") or ""),
            location=location if isinstance(location, str) else "",
            time=str(event.get("time_iso") or event.get("time_utc") or ""),
        )

    delivery_date = None
    if delivered and latest_event is not None and latest_event.time:
        delivery_date = latest_event.time

    return TrackingEvidence(
        carrier_has_scanned=scanned,
        is_delivered=delivered,
        outcome=VerificationOutcome.VERIFIED,
        delivery_date=delivery_date,
        latest_event=latest_event,
        raw_status=str(status),
    )


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class SeventeenTrackGateway:
    """Authenticated access to the 17TRACK v2.2 API.

    Args:
        config: Deployment config holding ``seventeen_track_api_key``.
        transport: Optional pre-built transport (tests).

    Raises:
        ConfigurationError: If no API key is configured.
    """

    def __init__(self, config: LookupConfig, *, transport: JsonTransport | None = None) -> None:
        if not config.tracking_enabled:
            raise ConfigurationError(
                "17TRACK API key required. Set SEVENTEEN_TRACK_API_KEY.",
                code="MISSING_TRACKING_KEY",
            )
        self._base_url = config.seventeen_track_base_url.rstrip("/")
        self._headers = {
            "Content-Type": "application/json",
            "17token": config.seventeen_track_api_key,
        }
        self._transport = transport or JsonTransport(
            "17TRACK",
            timeout=config.http_timeout,
            max_attempts=config.max_attempts,
            backoff_base=config.backoff_base,
        )

    @property
    def name(self) -> str:
        return "17track"

    @staticmethod
    def _payload(number: str, carrier: int) -> list[dict[str, Any]]:
        item: dict[str, Any] = {"number": number}
        if carrier != AUTO_DETECT_CARRIER:
            item["carrier"] = carrier
        return [item]

    def _post(self, endpoint: str, number: str, carrier: int) -> dict[str, Any]:
        data = self._transport.request(
            "POST",
            f"{self._base_url}/{endpoint}",
            headers=self._headers,
            json=self._payload(number, carrier),
        )
        if not isinstance(data, dict):
            raise VerificationError(
                f"17TRACK {endpoint} returned unexpected response type {type(data).__name__}",
                code="INVALID_RESPONSE",
            )
        code = data.get("code", 0)
        if code != 0:
            raise VerificationError(
                f"17TRACK {endpoint} failed with code {code}",
                code=f"TRACKING_API_{code}",
            )
        body = data.get("data")
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _find(entries: Any, number: str) -> dict[str, Any] | None:
        if not isinstance(entries, list):
            return None
        for entry in entries:
            if isinstance(entry, dict) and entry.get("number") == number:
                return entry
        return None

    def register(self, number: str, carrier: int = AUTO_DETECT_CARRIER) -> bool:
        """Register *number* for tracking.  Returns ``False`` if rejected.

        A non-zero API ``code`` counts as a rejection.  Transport failures
        still raise.
        """
        try:
            body = self._post("register", number, carrier)
        except VerificationError as exc:
            logger.info("17TRACK rejected registration of %s: %s", number, exc)
            return False
        rejected = self._find(body.get("rejected"), number)
        if rejected is not None:
            error = rejected.get("error") or {}
            logger.info(
                "17TRACK rejected registration of %s: %s",
                number,
                error.get("message", "no reason given") if isinstance(error, dict) else error,
            )
            return False
        return True

    def get_track_info(self, number: str, carrier: int = AUTO_DETECT_CARRIER) -> dict[str, Any] | None:
        """Return the ``track_info`` object for *number*, or ``None`` if unknown."""
        body = self._post("gettrackinfo", number, carrier)
        accepted = self._find(body.get("accepted"), number)
        if accepted is None:
            return None
        info = accepted.get("track_info")
        return info if isinstance(info, dict) else None

    def close(self) -> None:
        self._transport.close()

    def __repr__(self) -> str:
        return f"<SeventeenTrackGateway base_url={self._base_url!r}>"


# ---------------------------------------------------------------------------
# Polling state machine
# ---------------------------------------------------------------------------


class PollState(enum.Enum):
    QUERYING = "querying"
    REGISTERING = "registering"
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PollResult:
    """Outcome of one :meth:`TrackingPoller.run`."""

    evidence: TrackingEvidence
    history: list[PollState] = field(default_factory=list)
    poll_attempts: int = 0
    registered: bool | None = None


class TrackingPoller:
    """Drives one tracking number through query → register → poll.

    Args:
        gateway: The 17TRACK gateway.
        attempts: Maximum re-queries after registration.
        interval: Seconds to wait between re-queries.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        gateway: SeventeenTrackGateway,
        *,
        attempts: int = 3,
        interval: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._gateway = gateway
        self._attempts = max(1, attempts)
        self._interval = interval
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: LookupConfig, **kwargs: Any) -> TrackingPoller:
        return cls(
            SeventeenTrackGateway(config),
            attempts=config.poll_attempts,
            interval=config.poll_interval,
            **kwargs,
        )

    def run(self, tracking_number: str | None, carrier_code: str | None = None) -> PollResult:
        """Run the state machine for one tracking number."""
        if not tracking_number:
            return PollResult(evidence=TrackingEvidence.no_tracking_number())

        carrier = translate_carrier(carrier_code)
        result = PollResult(evidence=TrackingEvidence.error())
        state = PollState.QUERYING
        info: dict[str, Any] | None = None

        while True:
            result.history.append(state)
            if state in (PollState.DONE, PollState.FAILED):
                break
            try:
                if state is PollState.QUERYING:
                    info = self._gateway.get_track_info(tracking_number, carrier)
                    state = PollState.DONE if has_concrete_status(info) else PollState.REGISTERING
                elif state is PollState.REGISTERING:
                    logger.debug("No 17TRACK data for %s yet, registering", tracking_number)
                    result.registered = self._gateway.register(tracking_number, carrier)
                    state = PollState.POLLING
                else:
                    if result.poll_attempts > 0:
                        self._sleep(self._interval)
                    result.poll_attempts += 1
                    info = self._gateway.get_track_info(tracking_number, carrier)
                    if has_concrete_status(info) or result.poll_attempts >= self._attempts:
                        state = PollState.DONE
                    else:
                        logger.debug(
                            "No 17TRACK data for %s (attempt %d/%d)",
                            tracking_number,
                            result.poll_attempts,
                            self._attempts,
                        )
            except OrderTrackError as exc:
                logger.warning("Tracking verification failed for %s: %s", tracking_number, exc)
                state = PollState.FAILED

        if state is PollState.DONE:
            result.evidence = evidence_from_track_info(info)
        return result

    def fetch(self, tracking_number: str | None, carrier_code: str | None = None) -> TrackingEvidence:
        """Return tracking evidence for one shipment's tracking number."""
        return self.run(tracking_number, carrier_code).evidence

    def close(self) -> None:
        self._gateway.close()
