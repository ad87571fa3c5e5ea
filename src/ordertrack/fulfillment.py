"""ShipStation v1 gateway.

Wraps the two ShipStation calls an order lookup needs:

1. Search orders → ``GET /orders?orderNumber=...&customerEmail=...``
2. List shipments → ``GET /shipments?orderNumber=...``

ShipStation's order search is loose (it can return rows that only match on
order number), so :meth:`ShipStationGateway.find_orders` returns every
candidate and leaves exact matching to the caller.  A 404 from either call
means "nothing yet" and is returned as an empty list.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from ordertrack import __version__
from ordertrack.config import LookupConfig
from ordertrack.errors import ConfigurationError, UpstreamError
from ordertrack.models import Order, RawShipment
from ordertrack.transport import JsonTransport

logger = logging.getLogger(__name__)


class ShipStationGateway:
    """Authenticated access to the ShipStation v1 REST API.

    Args:
        config: Deployment config holding the API key/secret pair.
        transport: Optional pre-built transport (tests).

    Raises:
        ConfigurationError: If the key or secret is missing.
    """

    def __init__(self, config: LookupConfig, *, transport: JsonTransport | None = None) -> None:
        if not config.has_fulfillment_credentials:
            raise ConfigurationError(
                "ShipStation credentials required. "
                "Set SHIPSTATION_API_KEY and SHIPSTATION_API_SECRET.",
                code="MISSING_SHIPSTATION_CREDENTIALS",
            )
        self._base_url = config.shipstation_base_url.rstrip("/")
        token = base64.b64encode(
            f"{config.shipstation_api_key}:{config.shipstation_api_secret}".encode("utf-8")
        ).decode("ascii")
        self._headers = {
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json",
            "User-Agent": f"ordertrack/{__version__}",
        }
        self._transport = transport or JsonTransport(
            "ShipStation",
            timeout=config.http_timeout,
            max_attempts=config.max_attempts,
            backoff_base=config.backoff_base,
        )

    @property
    def name(self) -> str:
        return "shipstation"

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET *path*, mapping 404 to an empty document."""
        try:
            data = self._transport.request(
                "GET",
                f"{self._base_url}{path}",
                headers=self._headers,
                params=params,
            )
        except UpstreamError as exc:
            if exc.status_code == 404:
                logger.info("ShipStation returned 404 for %s, treating as empty", path)
                return {}
            raise
        return data if isinstance(data, dict) else {}

    def find_orders(self, order_number: str, email: str) -> list[Order]:
        """Return every order ShipStation considers a match for the search.

        Raises:
            UpstreamError: If ShipStation cannot be reached or rejects the call.
        """
        data = self._get("/orders", {"orderNumber": order_number, "customerEmail": email})
        rows = data.get("orders") or []
        orders = [Order.from_api(row) for row in rows if isinstance(row, dict)]
        logger.debug("ShipStation order search for %r returned %d candidate(s)", order_number, len(orders))
        return orders

    def list_shipments(self, order_number: str) -> list[RawShipment]:
        """Return the shipments (labels) created for *order_number*."""
        data = self._get("/shipments", {"orderNumber": order_number})
        rows = data.get("shipments") or []
        return [RawShipment.from_api(row) for row in rows if isinstance(row, dict)]

    def close(self) -> None:
        self._transport.close()

    def __repr__(self) -> str:
        return f"<ShipStationGateway base_url={self._base_url!r}>"
