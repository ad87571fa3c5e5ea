"""Carrier lookup tables.

ShipStation reports carriers as vendor strings (``"ups_ground"``,
``"stamps_com"``, ...).  These tables translate them into the numeric
carrier ids 17TRACK expects, customer-facing display names, and public
tracking page URLs.  Unknown codes never raise: they map to
:data:`AUTO_DETECT_CARRIER`, the upper-cased code, or ``None``.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping
from urllib.parse import quote

# 17TRACK auto-detects the carrier when the id is 0 / omitted.
AUTO_DETECT_CARRIER = 0

_UPS = 100002
_FEDEX = 100003
_DHL_EXPRESS = 100001
_DHL_ECOMMERCE = 7047
_USPS = 21051
_ONTRAC = 100049
_LASERSHIP = 100052
_AMAZON = 100308

TRACKING_CARRIER_IDS: Mapping[str, int] = MappingProxyType({
    "ups": _UPS,
    "ups_ground": _UPS,
    "ups_walleted": _UPS,
    "fedex": _FEDEX,
    "fedex_express": _FEDEX,
    "fedex_ground": _FEDEX,
    "fedex_walleted": _FEDEX,
    "usps": _USPS,
    "stamps_com": _USPS,
    "endicia": _USPS,
    "dhl": _DHL_EXPRESS,
    "dhl_express": _DHL_EXPRESS,
    "dhl_express_worldwide": _DHL_EXPRESS,
    "dhl_global_mail": _DHL_ECOMMERCE,
    "dhl_ecommerce": _DHL_ECOMMERCE,
    "ontrac": _ONTRAC,
    "lasership": _LASERSHIP,
    "amazon": _AMAZON,
    "amazon_shipping": _AMAZON,
})

CARRIER_DISPLAY_NAMES: Mapping[str, str] = MappingProxyType({
    "ups": "UPS",
    "ups_ground": "UPS",
    "ups_walleted": "UPS",
    "fedex": "FedEx",
    "fedex_express": "FedEx",
    "fedex_ground": "FedEx",
    "fedex_walleted": "FedEx",
    "usps": "USPS",
    "stamps_com": "USPS",
    "endicia": "USPS",
    "dhl": "DHL",
    "dhl_express": "DHL",
    "dhl_express_worldwide": "DHL",
    "dhl_global_mail": "DHL",
    "dhl_ecommerce": "DHL",
    "ontrac": "OnTrac",
    "lasership": "LaserShip",
    "amazon": "Amazon",
    "amazon_shipping": "Amazon",
    "newgistics": "Newgistics",
})

_UPS_URL = "https://www.ups.com/track?track=yes&trackNums={number}"
_FEDEX_URL = "https://www.fedex.com/fedextrack/?tracknumbers={number}"
_USPS_URL = "https://tools.usps.com/go/TrackConfirmAction?tLabels={number}"
_DHL_URL = "https://www.dhl.com/en/express/tracking.html?AWB={number}"

TRACKING_URL_TEMPLATES: Mapping[str, str] = MappingProxyType({
    "ups": _UPS_URL,
    "ups_ground": _UPS_URL,
    "ups_walleted": _UPS_URL,
    "fedex": _FEDEX_URL,
    "fedex_express": _FEDEX_URL,
    "fedex_ground": _FEDEX_URL,
    "fedex_walleted": _FEDEX_URL,
    "usps": _USPS_URL,
    "stamps_com": _USPS_URL,
    "endicia": _USPS_URL,
    "dhl": _DHL_URL,
    "dhl_express": _DHL_URL,
    "dhl_express_worldwide": _DHL_URL,
    "ontrac": "https://www.ontrac.com/tracking/?number={number}",
    "lasership": "https://www.lasership.com/track/{number}",
    "amazon": "https://track.amazon.com/tracking/{number}",
    "amazon_shipping": "https://track.amazon.com/tracking/{number}",
})

DEFAULT_CARRIER_NAME = "CARRIER"


def _key(carrier_code: str | None) -> str:
    return (carrier_code or "").strip().lower()


def translate_carrier(carrier_code: str | None) -> int:
    """Return the 17TRACK carrier id for a ShipStation carrier code."""
    return TRACKING_CARRIER_IDS.get(_key(carrier_code), AUTO_DETECT_CARRIER)


def carrier_display_name(carrier_code: str | None) -> str:
    """Return the customer-facing carrier name (``"ups_ground"`` → ``"UPS"``)."""
    key = _key(carrier_code)
    if not key:
        return DEFAULT_CARRIER_NAME
    return CARRIER_DISPLAY_NAMES.get(key, carrier_code.strip().upper())


def tracking_url(carrier_code: str | None, tracking_number: str | None) -> str | None:
    """Return the carrier's public tracking page for *tracking_number*."""
    if not tracking_number or not carrier_code:
        return None
    template = TRACKING_URL_TEMPLATES.get(_key(carrier_code))
    if template is None:
        return None
    return template.format(number=quote(tracking_number, safe=""))
