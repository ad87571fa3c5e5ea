"""Shared fixtures for the ordertrack test suite.

Provides ShipStation / 17TRACK payload builders, configs with and without
a tracking key, and in-memory fakes for the gateways so handler tests can
count upstream calls without touching the network.
"""

from __future__ import annotations

from typing import Any

import pytest

from ordertrack.config import LookupConfig
from ordertrack.errors import OrderTrackError
from ordertrack.models import Order, RawShipment, TrackingEvidence, VerificationOutcome

_ENV_VARS = (
    "SHIPSTATION_API_KEY",
    "SHIPSTATION_API_SECRET",
    "SEVENTEEN_TRACK_API_KEY",
    "ORDERTRACK_SHIPSTATION_URL",
    "ORDERTRACK_SEVENTEEN_TRACK_URL",
    "ORDERTRACK_ALLOWED_ORIGIN",
    "ORDERTRACK_DEBUG",
    "ORDERTRACK_HTTP_TIMEOUT",
    "ORDERTRACK_POLL_ATTEMPTS",
    "ORDERTRACK_POLL_INTERVAL",
    "ORDERTRACK_REST_HOST",
    "ORDERTRACK_REST_PORT",
    "ORDERTRACK_LOG_LEVEL",
    "ORDERTRACK_LOG_DIR",
)

SHIPSTATION_URL = "https://ssapi.shipstation.com"
SEVENTEEN_TRACK_URL = "https://api.17track.net/track/v2.2"
ALLOWED_ORIGIN = "https://shop.example.com"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep tests independent of the developer's real credentials."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Configs
# ---------------------------------------------------------------------------


def make_config(**overrides: Any) -> LookupConfig:
    defaults: dict[str, Any] = {
        "shipstation_api_key": "ss-key",
        "shipstation_api_secret": "ss-secret",
        "seventeen_track_api_key": "17-key-abcdef",
        "allowed_origin": ALLOWED_ORIGIN,
        "poll_attempts": 3,
        "poll_interval": 0.0,
    }
    defaults.update(overrides)
    return LookupConfig(**defaults)


@pytest.fixture()
def config() -> LookupConfig:
    """Config with ShipStation credentials and a 17TRACK key."""
    return make_config()


@pytest.fixture()
def config_no_tracking() -> LookupConfig:
    """Config with ShipStation credentials only."""
    return make_config(seventeen_track_api_key="")


# ---------------------------------------------------------------------------
# ShipStation payloads
# ---------------------------------------------------------------------------


def order_payload(
    order_number: str = "ABC123",
    email: str = "a@b.com",
    status: str = "shipped",
    **extra: Any,
) -> dict[str, Any]:
    data = {
        "orderId": 987654,
        "orderNumber": order_number,
        "customerEmail": email,
        "orderDate": "2024-05-01T10:00:00.0000000",
        "orderStatus": status,
    }
    data.update(extra)
    return data


def shipment_payload(
    tracking_number: str | None = "T1",
    *,
    shipment_id: int = 1,
    carrier_code: str | None = "ups_ground",
    delivery_date: str | None = None,
    void_date: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    data = {
        "shipmentId": shipment_id,
        "trackingNumber": tracking_number,
        "carrierCode": carrier_code,
        "shipDate": "2024-05-02",
        "deliveryDate": delivery_date,
        "voidDate": void_date,
        "shipmentItems": [{"sku": "TEE-BLK-M", "name": "Tee", "quantity": 1}],
    }
    data.update(extra)
    return data


def make_order(**kwargs: Any) -> Order:
    return Order.from_api(order_payload(**kwargs))


def make_shipment(tracking_number: str | None = "T1", **kwargs: Any) -> RawShipment:
    return RawShipment.from_api(shipment_payload(tracking_number, **kwargs))


# ---------------------------------------------------------------------------
# 17TRACK payloads
# ---------------------------------------------------------------------------


def track_info(
    status: str | None,
    *,
    sub_status: str | None = None,
    description: str = "Departed facility",
    location: str = "Louisville, KY",
    time_iso: str = "2024-05-03T08:15:00-04:00",
) -> dict[str, Any]:
    info: dict[str, Any] = {
        "latest_status": {"status": status, "sub_status": sub_status},
        "latest_event": None,
    }
    if status:
        info["latest_event"] = {
            "time_iso": time_iso,
            "description": description,
            "location": location,
        }
    return info


def gettrackinfo_response(number: str, info: dict[str, Any] | None) -> dict[str, Any]:
    if info is None:
        return {
            "code": 0,
            "data": {
                "accepted": [],
                "rejected": [
                    {
                        "number": number,
                        "error": {"code": -18019902, "message": "The tracking number does not register."},
                    }
                ],
            },
        }
    return {"code": 0, "data": {"accepted": [{"number": number, "track_info": info}], "rejected": []}}


def register_response(number: str, *, rejected: bool = False) -> dict[str, Any]:
    if rejected:
        return {
            "code": 0,
            "data": {
                "accepted": [],
                "rejected": [
                    {"number": number, "error": {"code": -18019901, "message": "Already registered."}}
                ],
            },
        }
    return {"code": 0, "data": {"accepted": [{"number": number, "carrier": 100002}], "rejected": []}}


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFulfillment:
    """In-memory stand-in for :class:`ShipStationGateway`."""

    def __init__(
        self,
        orders: list[Order] | None = None,
        shipments: list[RawShipment] | None = None,
        *,
        order_error: Exception | None = None,
        shipment_error: Exception | None = None,
    ) -> None:
        self.orders = orders or []
        self.shipments = shipments or []
        self.order_error = order_error
        self.shipment_error = shipment_error
        self.find_calls: list[tuple[str, str]] = []
        self.shipment_calls: list[str] = []

    def find_orders(self, order_number: str, email: str) -> list[Order]:
        self.find_calls.append((order_number, email))
        if self.order_error is not None:
            raise self.order_error
        return list(self.orders)

    def list_shipments(self, order_number: str) -> list[RawShipment]:
        self.shipment_calls.append(order_number)
        if self.shipment_error is not None:
            raise self.shipment_error
        return list(self.shipments)


class FakeTracker:
    """Evidence source keyed by tracking number."""

    def __init__(self, evidence: dict[str, TrackingEvidence | Exception] | None = None) -> None:
        self.evidence = evidence or {}
        self.calls: list[tuple[str | None, str | None]] = []

    def fetch(self, tracking_number: str | None, carrier_code: str | None = None) -> TrackingEvidence:
        self.calls.append((tracking_number, carrier_code))
        if not tracking_number:
            return TrackingEvidence.no_tracking_number()
        value = self.evidence.get(tracking_number)
        if isinstance(value, OrderTrackError):
            raise value
        if value is None:
            return TrackingEvidence(False, False, VerificationOutcome.NOT_FOUND)
        return value


class FakeSeventeenTrack:
    """Scripted stand-in for :class:`SeventeenTrackGateway`.

    ``infos`` is consumed one entry per ``get_track_info`` call; the last
    entry repeats.  Entries may be exceptions to raise.
    """

    def __init__(self, infos: list[Any], *, register_result: Any = True) -> None:
        self.infos = list(infos)
        self.register_result = register_result
        self.query_calls = 0
        self.register_calls = 0

    def get_track_info(self, number: str, carrier: int = 0) -> dict[str, Any] | None:
        self.query_calls += 1
        value = self.infos.pop(0) if len(self.infos) > 1 else self.infos[0]
        if isinstance(value, Exception):
            raise value
        return value

    def register(self, number: str, carrier: int = 0) -> bool:
        self.register_calls += 1
        if isinstance(self.register_result, Exception):
            raise self.register_result
        return self.register_result
