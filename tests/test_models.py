"""Tests for ordertrack.models: request validation and payload shapes."""

from __future__ import annotations

import pytest

from ordertrack.errors import ValidationError
from ordertrack.models import (
    EnrichedShipment,
    Order,
    OrderQuery,
    OrderStatusResponse,
    RawShipment,
    ShipmentState,
    TrackingEvent,
    TrackingEvidence,
    VerificationOutcome,
)

from conftest import order_payload, shipment_payload


class TestOrderQueryParse:
    def test_valid(self):
        query = OrderQuery.parse({"orderNumber": " ABC123 ", "email": " a@b.com "})
        assert query == OrderQuery(order_number="ABC123", email="a@b.com")

    def test_numeric_order_number(self):
        assert OrderQuery.parse({"orderNumber": 10042, "email": "a@b.com"}).order_number == "10042"

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "a@b.com"},
            {"orderNumber": "ABC123"},
            {"orderNumber": "", "email": "a@b.com"},
            {"orderNumber": "ABC123", "email": None},
        ],
    )
    def test_missing_fields(self, payload):
        with pytest.raises(ValidationError, match="Order number and email are required"):
            OrderQuery.parse(payload)

    def test_whitespace_only(self):
        with pytest.raises(ValidationError, match="cannot be empty"):
            OrderQuery.parse({"orderNumber": "   ", "email": "a@b.com"})

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@c.com", "@b.com"])
    def test_bad_email(self, email):
        with pytest.raises(ValidationError, match="Invalid email format"):
            OrderQuery.parse({"orderNumber": "ABC123", "email": email})

    def test_short_order_number(self):
        with pytest.raises(ValidationError, match="at least 3 characters"):
            OrderQuery.parse({"orderNumber": "AB", "email": "a@b.com"})

    def test_three_characters_ok(self):
        assert OrderQuery.parse({"orderNumber": "ABC", "email": "a@b.com"}).order_number == "ABC"

    @pytest.mark.parametrize("payload", [[], "ABC123", None, 42])
    def test_not_an_object(self, payload):
        with pytest.raises(ValidationError, match="Invalid request format"):
            OrderQuery.parse(payload)

    def test_wrong_field_types(self):
        with pytest.raises(ValidationError, match="Invalid request format"):
            OrderQuery.parse({"orderNumber": ["ABC123"], "email": "a@b.com"})


class TestOrder:
    def test_from_api(self):
        order = Order.from_api(order_payload(status="awaiting_shipment"))
        assert order.order_number == "ABC123"
        assert order.order_status == "awaiting_shipment"
        assert order.order_date == "2024-05-01T10:00:00.0000000"

    def test_matches_is_case_insensitive_on_email(self):
        order = Order.from_api(order_payload(email="Jane.Doe@Example.com"))
        assert order.matches(OrderQuery("ABC123", "jane.doe@example.COM"))

    def test_order_number_is_exact(self):
        order = Order.from_api(order_payload(order_number="abc123"))
        assert not order.matches(OrderQuery("ABC123", "a@b.com"))

    def test_different_email(self):
        order = Order.from_api(order_payload())
        assert not order.matches(OrderQuery("ABC123", "x@b.com"))


class TestRawShipment:
    def test_from_api(self):
        shipment = RawShipment.from_api(
            shipment_payload("1Z9", void_date="2024-05-03", shipmentStatus="label_voided")
        )
        assert shipment.tracking_number == "1Z9"
        assert shipment.void_date == "2024-05-03"
        assert shipment.shipment_status == "label_voided"
        assert shipment.delivery_date is None

    def test_items_default_to_empty(self):
        shipment = RawShipment.from_api({"shipmentId": 5, "shipmentItems": None})
        assert shipment.items == []
        assert shipment.tracking_number is None


class TestTrackingEvidence:
    def test_factories(self):
        assert TrackingEvidence.error().outcome is VerificationOutcome.ERROR
        none = TrackingEvidence.no_tracking_number()
        assert none.outcome is VerificationOutcome.NO_TRACKING_NUMBER
        assert none.carrier_has_scanned is False


class TestPayloads:
    def _shipment(self, **kwargs) -> EnrichedShipment:
        defaults = dict(
            shipment_id=1,
            tracking_number="1Z9",
            tracking_url="https://www.ups.com/track?track=yes&trackNums=1Z9",
            carrier_code="ups",
            carrier_name="UPS",
            ship_date="2024-05-02",
            delivery_date=None,
            is_delivered=False,
            state=ShipmentState.SHIPPED,
            shipment_number=1,
            total_shipments=1,
        )
        defaults.update(kwargs)
        return EnrichedShipment(**defaults)

    def test_shipment_without_verification(self):
        data = self._shipment().to_dict()
        assert data["status"] == "shipped"
        assert data["carrierName"] == "UPS"
        assert "latestActivity" not in data
        assert "verification" not in data

    def test_shipment_with_verification(self):
        event = TrackingEvent(status="Departed", location="Louisville, KY", time="2024-05-03")
        data = self._shipment(latest_activity=event, verification=VerificationOutcome.VERIFIED).to_dict()
        assert data["verification"] == "verified"
        assert data["latestActivity"] == {
            "status": "Departed",
            "location": "Louisville, KY",
            "time": "2024-05-03",
            "description": "Departed",
        }

    def test_response_debug_optional(self):
        response = OrderStatusResponse("ABC123", "a@b.com", None, "shipped", [self._shipment()])
        data = response.to_dict()
        assert set(data) == {"orderNumber", "customerEmail", "orderDate", "orderStatus", "shipments"}
        response.debug = {"trackingEnabled": True}
        assert response.to_dict()["debug"] == {"trackingEnabled": True}
