"""Shipment status reconciliation.

Fuses ShipStation's view of an order (labels bought, maybe a delivery
date) with 17TRACK's carrier scans into the status a customer sees.

Per shipment, with tracking evidence:

* ``delivered`` if 17TRACK says delivered OR ShipStation reports delivery;
* else ``shipped`` if a carrier has scanned the parcel;
* else ``processing`` (label only).

When verification itself failed (outcome ``error``) the shipment is
assumed shipped, see :data:`FAIL_OPEN_EVIDENCE`.  Without a tracking key
only ShipStation's delivery signal is used and nothing is filtered.

With tracking active, ``processing`` shipments are hidden and the
survivors are renumbered 1..N.  The order status is then recomputed:

1. all survivors delivered → ``delivered``
2. some delivered → ``partially_delivered``
3. some shipped → ``shipped``
4. labels existed, none scanned, ShipStation says ``shipped`` →
   ``awaiting_fulfillment``
5. otherwise ShipStation's status unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from ordertrack.carriers import carrier_display_name, tracking_url
from ordertrack.models import (
    EnrichedShipment,
    Order,
    OrderStatusResponse,
    RawShipment,
    ShipmentState,
    TrackingEvidence,
    VerificationOutcome,
)

logger = logging.getLogger(__name__)

# Verification failures fail open: the shipment counts as shipped and its
# delivery state comes from ShipStation alone.
FAIL_OPEN_EVIDENCE = True

# Upstream statuses overridden to ``awaiting_fulfillment`` when no label
# has been scanned by a carrier.
_UNSCANNED_OVERRIDE_STATUSES = frozenset({"shipped"})
AWAITING_FULFILLMENT = "awaiting_fulfillment"

_VISIBLE_STATES = frozenset({ShipmentState.SHIPPED, ShipmentState.DELIVERED})


def platform_reports_delivered(shipment: RawShipment) -> bool:
    """ShipStation-only delivery heuristic.

    A delivery date wins; otherwise a void date means not delivered;
    otherwise an explicit ``delivered`` shipment status or a tracking
    status mentioning "delivered" counts.  No signal means not delivered.
    """
    if shipment.delivery_date:
        return True
    if shipment.void_date:
        return False
    if shipment.shipment_status and shipment.shipment_status.lower() == "delivered":
        return True
    if shipment.tracking_status and "delivered" in shipment.tracking_status.lower():
        return True
    return False


def classify_shipment(shipment: RawShipment, evidence: TrackingEvidence | None) -> ShipmentState:
    """Reconciled state of one shipment.

    Args:
        shipment: The ShipStation record.
        evidence: 17TRACK evidence, or ``None`` when tracking is not
            configured.
    """
    platform_delivered = platform_reports_delivered(shipment)

    if evidence is None:
        return ShipmentState.DELIVERED if platform_delivered else ShipmentState.SHIPPED

    if evidence.outcome is VerificationOutcome.ERROR and FAIL_OPEN_EVIDENCE:
        return ShipmentState.DELIVERED if platform_delivered else ShipmentState.SHIPPED

    if evidence.is_delivered or platform_delivered:
        return ShipmentState.DELIVERED
    if evidence.carrier_has_scanned:
        return ShipmentState.SHIPPED
    return ShipmentState.PROCESSING


def aggregate_status(
    raw_status: str,
    states: Sequence[ShipmentState],
    *,
    total_before_filter: int,
) -> str:
    """Effective order status from the surviving shipment states."""
    raw = (raw_status or "").lower()
    delivered = sum(1 for s in states if s is ShipmentState.DELIVERED)
    shipped = sum(1 for s in states if s is ShipmentState.SHIPPED)

    if states and delivered == len(states):
        return "delivered"
    if delivered:
        return "partially_delivered"
    if shipped:
        return "shipped"
    if total_before_filter > 0 and raw in _UNSCANNED_OVERRIDE_STATUSES:
        return AWAITING_FULFILLMENT
    return raw


def _enrich(
    shipment: RawShipment,
    state: ShipmentState,
    evidence: TrackingEvidence | None,
) -> EnrichedShipment:
    delivery_date = shipment.delivery_date
    if delivery_date is None and evidence is not None and state is ShipmentState.DELIVERED:
        delivery_date = evidence.delivery_date
    return EnrichedShipment(
        shipment_id=shipment.shipment_id,
        tracking_number=shipment.tracking_number,
        tracking_url=tracking_url(shipment.carrier_code, shipment.tracking_number),
        carrier_code=shipment.carrier_code,
        carrier_name=carrier_display_name(shipment.carrier_code),
        ship_date=shipment.ship_date,
        delivery_date=delivery_date,
        is_delivered=state is ShipmentState.DELIVERED,
        state=state,
        items=shipment.items,
        latest_activity=evidence.latest_event if evidence else None,
        verification=evidence.outcome if evidence else None,
    )


def reconcile(
    order: Order,
    shipments: Sequence[RawShipment],
    evidence: Sequence[TrackingEvidence] | None = None,
    *,
    debug: bool = False,
) -> OrderStatusResponse:
    """Build the customer-facing response for *order*.

    Args:
        order: The exactly-matched ShipStation order.
        shipments: Its shipments, in ShipStation order.
        evidence: One :class:`TrackingEvidence` per shipment (same order),
            or ``None`` when tracking verification is not configured.
        debug: Attach a ``debug`` diagnostics block.

    Raises:
        ValueError: If *evidence* and *shipments* differ in length.
    """
    tracking_active = evidence is not None
    if evidence is not None and len(evidence) != len(shipments):
        raise ValueError(
            f"Expected {len(shipments)} evidence entries, got {len(evidence)}"
        )

    enriched: list[EnrichedShipment] = []
    for index, shipment in enumerate(shipments):
        ev = evidence[index] if evidence is not None else None
        state = classify_shipment(shipment, ev)
        if tracking_active and state not in _VISIBLE_STATES:
            logger.info(
                "Hiding label-only shipment %s (%s) for order %s",
                shipment.shipment_id,
                shipment.tracking_number or "no tracking number",
                order.order_number,
            )
            continue
        enriched.append(_enrich(shipment, state, ev))

    total = len(enriched)
    for number, item in enumerate(enriched, start=1):
        item.shipment_number = number
        item.total_shipments = total

    if tracking_active:
        status = aggregate_status(
            order.order_status,
            [s.state for s in enriched],
            total_before_filter=len(shipments),
        )
    else:
        status = (order.order_status or "").lower()

    if status != (order.order_status or "").lower():
        logger.info(
            "Order %s status %r reconciled to %r",
            order.order_number,
            order.order_status,
            status,
        )

    diagnostics: dict[str, Any] | None = None
    if debug:
        diagnostics = {
            "originalOrderStatus": order.order_status,
            "totalShipmentsFound": len(shipments),
            "shipmentsInResponse": total,
            "trackingEnabled": tracking_active,
            "verification": [ev.outcome.value for ev in evidence] if evidence is not None else [],
        }

    return OrderStatusResponse(
        order_number=order.order_number,
        customer_email=order.customer_email,
        order_date=order.order_date,
        order_status=status,
        shipments=enriched,
        debug=diagnostics,
    )
