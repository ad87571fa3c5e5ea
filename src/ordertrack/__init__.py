"""ordertrack - order status lookups backed by ShipStation and 17TRACK.

Re-exports the public API so consumers can write::

    from ordertrack import LookupConfig, OrderLookupHandler

    handler = OrderLookupHandler(LookupConfig())
    response = handler.handle("POST", '{"orderNumber": "1001", "email": "a@b.com"}')
"""

from __future__ import annotations

import logging

from importlib.metadata import PackageNotFoundError, version

_logger = logging.getLogger(__name__)


def _resolve_version() -> str:
    """Resolve the installed package version."""
    try:
        return version("ordertrack")
    except PackageNotFoundError:
        return "unknown"
    except Exception as exc:
        _logger.debug("Package version lookup failed: %s", exc)
        return "unknown"


__version__ = _resolve_version()

from ordertrack.config import LookupConfig, load_config  # noqa: E402
from ordertrack.errors import (  # noqa: E402
    AuthError,
    ConfigurationError,
    InvalidResponseError,
    NotFoundError,
    OrderTrackError,
    UpstreamError,
    ValidationError,
    VerificationError,
)
from ordertrack.handler import HandlerResponse, OrderLookupHandler  # noqa: E402
from ordertrack.models import (  # noqa: E402
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
from ordertrack.reconciler import reconcile  # noqa: E402

__all__ = [
    "AuthError",
    "ConfigurationError",
    "EnrichedShipment",
    "HandlerResponse",
    "InvalidResponseError",
    "LookupConfig",
    "NotFoundError",
    "Order",
    "OrderLookupHandler",
    "OrderQuery",
    "OrderStatusResponse",
    "OrderTrackError",
    "RawShipment",
    "ShipmentState",
    "TrackingEvent",
    "TrackingEvidence",
    "UpstreamError",
    "ValidationError",
    "VerificationError",
    "VerificationOutcome",
    "__version__",
    "load_config",
    "reconcile",
]
