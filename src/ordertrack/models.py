"""Data types for order lookups.

Workflow::

    1. OrderQuery.parse(body)          → validated caller input
    2. Order.from_api / RawShipment.from_api  → ShipStation records
    3. TrackingEvidence                → per-shipment 17TRACK verdict
    4. EnrichedShipment / OrderStatusResponse → what the storefront receives

Nothing here is persisted; every object lives for one request.
"""

from __future__ import annotations

import enum
import re
from dataclasses import asdict, dataclass, field
from typing import Any

from ordertrack.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_ORDER_NUMBER_LENGTH = 3


def _text(value: Any) -> str | None:
    """Normalize an optional upstream string: blank becomes ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderQuery:
    """A validated lookup request: order number plus customer email."""

    order_number: str
    email: str

    @classmethod
    def parse(cls, payload: Any) -> OrderQuery:
        """Validate a decoded request body.

        Raises:
            ValidationError: With the client-facing message for the first
                failing check.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Invalid request format", code="INVALID_FORMAT")

        order_number = payload.get("orderNumber")
        email = payload.get("email")
        if not order_number or not email:
            raise ValidationError("Order number and email are required", code="MISSING_FIELDS")
        if not isinstance(order_number, (str, int)) or not isinstance(email, str):
            raise ValidationError("Invalid request format", code="INVALID_FORMAT")

        clean_number = str(order_number).strip()
        clean_email = email.strip()
        if not clean_number or not clean_email:
            raise ValidationError("Order number and email cannot be empty", code="EMPTY_FIELDS")
        if not _EMAIL_RE.match(clean_email):
            raise ValidationError("Invalid email format", code="INVALID_EMAIL")
        if len(clean_number) < MIN_ORDER_NUMBER_LENGTH:
            raise ValidationError(
                f"Order number must be at least {MIN_ORDER_NUMBER_LENGTH} characters",
                code="ORDER_NUMBER_TOO_SHORT",
            )
        return cls(order_number=clean_number, email=clean_email)


# ---------------------------------------------------------------------------
# ShipStation records
# ---------------------------------------------------------------------------


@dataclass
class Order:
    """An order as reported by ShipStation.

    ``order_status`` is the raw upstream value (``awaiting_shipment``,
    ``shipped``, ``on_hold``, ...).  It is advisory: the reconciler may
    replace it with an effective status derived from tracking data.
    """

    order_number: str
    customer_email: str
    order_date: str | None = None
    order_status: str = ""
    order_id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Order:
        return cls(
            order_number=str(data.get("orderNumber") or ""),
            customer_email=str(data.get("customerEmail") or ""),
            order_date=_text(data.get("orderDate")),
            order_status=str(data.get("orderStatus") or ""),
            order_id=data.get("orderId"),
        )

    def matches(self, query: OrderQuery) -> bool:
        """Exact match: case-sensitive order number, case-insensitive email."""
        return (
            self.order_number == query.order_number
            and self.customer_email.lower() == query.email.lower()
        )


@dataclass
class RawShipment:
    """A shipment (shipping label) record from ShipStation."""

    shipment_id: Any
    tracking_number: str | None = None
    carrier_code: str | None = None
    ship_date: str | None = None
    delivery_date: str | None = None
    void_date: str | None = None
    shipment_status: str | None = None
    tracking_status: str | None = None
    items: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RawShipment:
        items = data.get("shipmentItems")
        return cls(
            shipment_id=data.get("shipmentId"),
            tracking_number=_text(data.get("trackingNumber")),
            carrier_code=_text(data.get("carrierCode")),
            ship_date=_text(data.get("shipDate")),
            delivery_date=_text(data.get("deliveryDate")),
            void_date=_text(data.get("voidDate")),
            shipment_status=_text(data.get("shipmentStatus")),
            tracking_status=_text(data.get("trackingStatus")),
            items=list(items) if isinstance(items, list) else [],
        )


# ---------------------------------------------------------------------------
# Tracking evidence
# ---------------------------------------------------------------------------


class VerificationOutcome(enum.Enum):
    """How a tracking number's 17TRACK check ended."""

    VERIFIED = "verified"
    NOT_FOUND = "not_found"
    ERROR = "error"
    NO_TRACKING_NUMBER = "no_tracking_number"


@dataclass
class TrackingEvent:
    """Most recent carrier scan event."""

    status: str = ""
    location: str = ""
    time: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["description"] = self.status
        return data


@dataclass
class TrackingEvidence:
    """What 17TRACK says about one tracking number."""

    carrier_has_scanned: bool
    is_delivered: bool
    outcome: VerificationOutcome
    delivery_date: str | None = None
    latest_event: TrackingEvent | None = None
    raw_status: str | None = None

    @classmethod
    def no_tracking_number(cls) -> TrackingEvidence:
        return cls(False, False, VerificationOutcome.NO_TRACKING_NUMBER)

    @classmethod
    def error(cls) -> TrackingEvidence:
        return cls(False, False, VerificationOutcome.ERROR)


class ShipmentState(enum.Enum):
    """Reconciled state of one shipment."""

    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


@dataclass
class EnrichedShipment:
    """A shipment as returned to the storefront."""

    shipment_id: Any
    tracking_number: str | None
    tracking_url: str | None
    carrier_code: str | None
    carrier_name: str
    ship_date: str | None
    delivery_date: str | None
    is_delivered: bool
    state: ShipmentState
    items: list[dict[str, Any]] = field(default_factory=list)
    latest_activity: TrackingEvent | None = None
    verification: VerificationOutcome | None = None
    shipment_number: int = 0
    total_shipments: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "shipmentId": self.shipment_id,
            "trackingNumber": self.tracking_number,
            "trackingUrl": self.tracking_url,
            "carrierCode": self.carrier_code,
            "carrierName": self.carrier_name,
            "shipDate": self.ship_date,
            "deliveryDate": self.delivery_date,
            "isDelivered": self.is_delivered,
            "status": self.state.value,
            "shipmentNumber": self.shipment_number,
            "totalShipments": self.total_shipments,
            "items": self.items,
        }
        if self.verification is not None:
            data["latestActivity"] = self.latest_activity.to_dict() if self.latest_activity else None
            data["verification"] = self.verification.value
        return data


@dataclass
class OrderStatusResponse:
    """Top-level lookup result."""

    order_number: str
    customer_email: str
    order_date: str | None
    order_status: str
    shipments: list[EnrichedShipment] = field(default_factory=list)
    debug: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "orderNumber": self.order_number,
            "customerEmail": self.customer_email,
            "orderDate": self.order_date,
            "orderStatus": self.order_status,
            "shipments": [s.to_dict() for s in self.shipments],
        }
        if self.debug is not None:
            data["debug"] = self.debug
        return data
