"""Output formatting for the ordertrack CLI.

Each public formatter accepts a ``json_mode`` flag:
    - ``True``  → ``{status, data, error}`` JSON envelope for scripts
    - ``False`` → Rich-formatted text for humans
"""

from __future__ import annotations

import json
from io import StringIO
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

_STATUS_STYLES: Dict[str, str] = {
    "delivered": "green",
    "partially_delivered": "cyan",
    "shipped": "blue",
    "awaiting_fulfillment": "yellow",
    "awaiting_shipment": "yellow",
    "on_hold": "magenta",
    "cancelled": "red",
}


def _render(renderable: Any) -> str:
    """Render a Rich object to string."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=100)
    console.print(renderable)
    return buf.getvalue().rstrip("\n")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


def format_response(
    status: str,
    data: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
) -> str:
    """Serialize a standard ``{status, data, error}`` JSON envelope."""
    envelope: Dict[str, Any] = {"status": status}
    if data is not None:
        envelope["data"] = data
    if error is not None:
        envelope["error"] = error
    return json.dumps(envelope, indent=2, sort_keys=False)


def format_error(
    message: str,
    code: str = "ERROR",
    *,
    json_mode: bool = False,
) -> str:
    """Format an error as a JSON envelope or a red Rich panel."""
    if json_mode:
        return format_response("error", error={"code": code, "message": message})

    t = Text()
    t.append("Error", style="bold red")
    t.append(f" [{code}]: ", style="red")
    t.append(message)
    return _render(Panel(t, title="Error", border_style="red"))


# ---------------------------------------------------------------------------
# Lookup result
# ---------------------------------------------------------------------------


def format_lookup(result: Dict[str, Any], *, json_mode: bool = False) -> str:
    """Format an order status payload (``OrderStatusResponse.to_dict()``)."""
    if json_mode:
        return format_response("success", data=result)

    status = result.get("orderStatus", "")
    style = _STATUS_STYLES.get(status, "white")
    header = Text()
    header.append(f"Order {result.get('orderNumber', '')}", style="bold")
    header.append("  ")
    header.append(status.replace("_", " ") or "unknown", style=f"bold {style}")
    header.append(f"\nPlaced {result.get('orderDate') or 'N/A'} by {result.get('customerEmail', '')}")

    shipments = result.get("shipments") or []
    if not shipments:
        return _render(Panel(Text.assemble(header, "\nNo shipments yet."), border_style=style))

    table = Table(border_style="blue")
    table.add_column("#", justify="right")
    table.add_column("Carrier")
    table.add_column("Tracking")
    table.add_column("Status")
    table.add_column("Latest activity")
    for s in shipments:
        activity = s.get("latestActivity") or {}
        activity_text = " ".join(
            part for part in (activity.get("time", ""), activity.get("status", ""), activity.get("location", ""))
            if part
        )
        table.add_row(
            f"{s.get('shipmentNumber')}/{s.get('totalShipments')}",
            s.get("carrierName", ""),
            s.get("trackingNumber") or "",
            s.get("status", ""),
            activity_text,
        )
    return _render(Panel(header, border_style=style)) + "\n" + _render(table)
