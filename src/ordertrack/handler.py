"""Order lookup request handler.

Framework-agnostic: :meth:`OrderLookupHandler.handle` takes an HTTP method
and raw body and returns a :class:`HandlerResponse`.  The FastAPI app in
:mod:`ordertrack.rest_api` and the CLI both sit on top of it.

One request runs through these steps and stops at the first exit:

1. ``OPTIONS`` → 200 preflight; anything but ``POST`` → 405.
2. Body is not a JSON object → 400.
3. Field validation fails → 400 (no upstream call).
4. ShipStation credentials missing → 500 (no upstream call).
5. No exact order match → 404.
6. Shipments fetched (none is fine).
7. 17TRACK verification (only with a tracking key), then reconciliation.
8. 200 with the status payload.

Upstream failures map to 502 and anything unexpected to 500, both with a
generic message.  Details only go to the log.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack, closing
from dataclasses import dataclass, field
from typing import Any, Protocol

from ordertrack.config import LookupConfig
from ordertrack.errors import (
    ConfigurationError,
    NotFoundError,
    OrderTrackError,
    UpstreamError,
    ValidationError,
)
from ordertrack.fulfillment import ShipStationGateway
from ordertrack.log_config import mask_secret
from ordertrack.models import (
    Order,
    OrderQuery,
    OrderStatusResponse,
    RawShipment,
    TrackingEvidence,
)
from ordertrack.reconciler import reconcile
from ordertrack.tracking import TrackingPoller

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = (
    "Order not found. Please check your order number and email address and try again."
)
RETRY_MESSAGE = "Unable to retrieve order information. Please try again."
CONFIG_ERROR_MESSAGE = "Server configuration error"

_STATUS_FOR_ERROR: dict[type[OrderTrackError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConfigurationError: 500,
    UpstreamError: 502,
}


class FulfillmentSource(Protocol):
    def find_orders(self, order_number: str, email: str) -> list[Order]: ...

    def list_shipments(self, order_number: str) -> list[RawShipment]: ...


class EvidenceSource(Protocol):
    def fetch(self, tracking_number: str | None, carrier_code: str | None = None) -> TrackingEvidence: ...


@dataclass
class HandlerResponse:
    """HTTP-shaped handler result."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


def cors_headers(config: LookupConfig) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": config.allowed_origin,
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Content-Type": "application/json",
    }


class OrderLookupHandler:
    """Answers "where is my order?" for one order number + email.

    Args:
        config: Deployment configuration.  ``config.tracking_enabled``
            decides whether 17TRACK verification runs.
        fulfillment: ShipStation gateway override (tests).  When omitted,
            each lookup builds its own gateway from *config* and closes it
            afterwards, so concurrent requests never share a session.
        tracker: Tracking evidence source override (tests).  When omitted
            and a tracking key is set, each lookup builds and closes its
            own :class:`TrackingPoller`.

    Injected overrides are shared across lookups and never closed here.
    """

    def __init__(
        self,
        config: LookupConfig | None = None,
        *,
        fulfillment: FulfillmentSource | None = None,
        tracker: EvidenceSource | None = None,
    ) -> None:
        self.config = config or LookupConfig()
        self._fulfillment = fulfillment
        self._tracker = tracker

    # -- collaborators -------------------------------------------------------

    def _fulfillment_gateway(self, stack: ExitStack) -> FulfillmentSource:
        if self._fulfillment is not None:
            return self._fulfillment
        return stack.enter_context(closing(ShipStationGateway(self.config)))

    def _evidence_source(self, stack: ExitStack) -> EvidenceSource | None:
        if not self.config.tracking_enabled:
            return None
        if self._tracker is not None:
            return self._tracker
        return stack.enter_context(closing(TrackingPoller.from_config(self.config)))

    # -- lookup --------------------------------------------------------------

    def _check_credentials(self) -> None:
        if not self.config.has_fulfillment_credentials:
            logger.error("Missing ShipStation API credentials")
            raise ConfigurationError(CONFIG_ERROR_MESSAGE, code="MISSING_SHIPSTATION_CREDENTIALS")
        if self.config.tracking_enabled:
            logger.debug(
                "17TRACK verification enabled (key %s)",
                mask_secret(self.config.seventeen_track_api_key),
            )
        else:
            logger.info("17TRACK key not configured, using ShipStation data only")

    def _find_order(self, fulfillment: FulfillmentSource, query: OrderQuery) -> Order:
        candidates = fulfillment.find_orders(query.order_number, query.email)
        if not candidates:
            logger.info("No orders returned for %r", query.order_number)
            raise NotFoundError(NOT_FOUND_MESSAGE)
        for order in candidates:
            if order.matches(query):
                return order
        logger.info(
            "No exact match for %r among %d candidate(s)",
            query.order_number,
            len(candidates),
        )
        raise NotFoundError(NOT_FOUND_MESSAGE)

    def _list_shipments(self, fulfillment: FulfillmentSource, order_number: str) -> list[RawShipment]:
        try:
            return fulfillment.list_shipments(order_number)
        except UpstreamError as exc:
            logger.warning("Could not fetch shipments for %r: %s", order_number, exc)
            return []

    def _verify_one(self, tracker: EvidenceSource, shipment: RawShipment) -> TrackingEvidence:
        try:
            return tracker.fetch(shipment.tracking_number, shipment.carrier_code)
        except OrderTrackError as exc:
            logger.warning("Verification of shipment %s failed: %s", shipment.shipment_id, exc)
            return TrackingEvidence.error()

    def _verify(self, tracker: EvidenceSource, shipments: list[RawShipment]) -> list[TrackingEvidence]:
        if not shipments:
            return []
        workers = min(self.config.max_concurrency, len(shipments))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ordertrack-verify") as pool:
            return list(pool.map(lambda s: self._verify_one(tracker, s), shipments))

    def lookup(self, query: OrderQuery) -> OrderStatusResponse:
        """Run the lookup for an already-validated query.

        Raises:
            ConfigurationError: ShipStation credentials are missing.
            NotFoundError: No order matches exactly.
            UpstreamError: ShipStation could not be queried.
        """
        self._check_credentials()
        with ExitStack() as stack:
            fulfillment = self._fulfillment_gateway(stack)
            order = self._find_order(fulfillment, query)
            logger.info("Found order %s (status %r)", order.order_number, order.order_status)

            shipments = self._list_shipments(fulfillment, order.order_number)
            tracker = self._evidence_source(stack)
            evidence = self._verify(tracker, shipments) if tracker is not None else None

        return reconcile(order, shipments, evidence, debug=self.config.debug)

    # -- HTTP surface --------------------------------------------------------

    def _respond(self, status_code: int, payload: dict[str, Any] | None) -> HandlerResponse:
        body = "" if payload is None else json.dumps(payload)
        return HandlerResponse(status_code=status_code, headers=cors_headers(self.config), body=body)

    def _error_response(self, exc: OrderTrackError) -> HandlerResponse:
        status = 500
        for error_type, code in _STATUS_FOR_ERROR.items():
            if isinstance(exc, error_type):
                status = code
                break
        if isinstance(exc, ValidationError):
            message = str(exc)
        elif isinstance(exc, NotFoundError):
            message = NOT_FOUND_MESSAGE
        elif isinstance(exc, ConfigurationError):
            message = CONFIG_ERROR_MESSAGE
        else:
            message = RETRY_MESSAGE
        return self._respond(status, {"error": message})

    @staticmethod
    def _parse_body(body: str | bytes | None) -> Any:
        if isinstance(body, bytes):
            try:
                body = body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ValidationError("Invalid request format", code="INVALID_FORMAT") from exc
        try:
            return json.loads(body or "{}")
        except ValueError as exc:
            raise ValidationError("Invalid request format", code="INVALID_FORMAT") from exc

    def handle(self, method: str, body: str | bytes | None = None) -> HandlerResponse:
        """Process one inbound request."""
        method = (method or "").upper()
        if method == "OPTIONS":
            return self._respond(200, None)
        if method != "POST":
            return self._respond(405, {"error": "Method not allowed"})

        try:
            query = OrderQuery.parse(self._parse_body(body))
            result = self.lookup(query)
        except OrderTrackError as exc:
            if isinstance(exc, UpstreamError):
                logger.error("Upstream failure during order lookup: %s", exc)
            return self._error_response(exc)
        except Exception:
            logger.exception("Unexpected error during order lookup")
            return self._respond(500, {"error": RETRY_MESSAGE})

        return self._respond(200, result.to_dict())
