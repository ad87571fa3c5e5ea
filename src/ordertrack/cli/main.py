"""Command-line entry point: ``ordertrack``.

Commands::

    ordertrack lookup ORDER_NUMBER EMAIL [--json]
    ordertrack serve [--host HOST] [--port PORT]

Both read credentials from the environment (and ``.env`` files); see
:mod:`ordertrack.config`.
"""

from __future__ import annotations

import logging
import sys

import click

from ordertrack.cli.output import format_error, format_lookup
from ordertrack.config import load_config
from ordertrack.errors import (
    ConfigurationError,
    NotFoundError,
    OrderTrackError,
    UpstreamError,
    ValidationError,
)
from ordertrack.handler import OrderLookupHandler
from ordertrack.log_config import configure_logging
from ordertrack.models import OrderQuery

logger = logging.getLogger(__name__)

# Process exit codes, one per failure category.
EXIT_NOT_FOUND = 1
EXIT_INVALID_INPUT = 2
EXIT_UPSTREAM = 3
EXIT_CONFIG = 4
EXIT_OTHER = 5

_EXIT_CODES: dict[type[OrderTrackError], int] = {
    NotFoundError: EXIT_NOT_FOUND,
    ValidationError: EXIT_INVALID_INPUT,
    UpstreamError: EXIT_UPSTREAM,
    ConfigurationError: EXIT_CONFIG,
}


def exit_code_for(exc: OrderTrackError) -> int:
    """Map an error to a CLI exit code."""
    for error_type, code in _EXIT_CODES.items():
        if isinstance(exc, error_type):
            return code
    return EXIT_OTHER


@click.group()
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Load settings from this .env file.")
@click.option("--log-level", default=None, envvar="ORDERTRACK_LOG_LEVEL", help="Log level (default INFO).")
@click.version_option(package_name="ordertrack")
@click.pass_context
def cli(ctx: click.Context, env_file: str | None, log_level: str | None) -> None:
    """ordertrack: order status lookups backed by ShipStation and 17TRACK."""
    ctx.ensure_object(dict)
    configure_logging(log_level)
    ctx.obj["config"] = load_config(env_file)


# ---------------------------------------------------------------------------
# lookup
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("order_number")
@click.argument("email")
@click.option("--json", "json_mode", is_flag=True, help="Output JSON.")
@click.pass_context
def lookup(ctx: click.Context, order_number: str, email: str, json_mode: bool) -> None:
    """Look up ORDER_NUMBER for the customer EMAIL."""
    handler = OrderLookupHandler(ctx.obj["config"])
    try:
        query = OrderQuery.parse({"orderNumber": order_number, "email": email})
        result = handler.lookup(query)
    except OrderTrackError as exc:
        click.echo(format_error(str(exc), code=exc.code or "ERROR", json_mode=json_mode))
        sys.exit(exit_code_for(exc))

    click.echo(format_lookup(result.to_dict(), json_mode=json_mode))


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", default=None, help="Bind address (default ORDERTRACK_REST_HOST or 127.0.0.1).")
@click.option("--port", default=None, type=int, help="Bind port (default ORDERTRACK_REST_PORT or 8430).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the REST API with uvicorn."""
    from ordertrack.rest_api import RestApiConfig, run_rest_server

    rest_config = RestApiConfig()
    if host:
        rest_config.host = host
    if port:
        rest_config.port = port
    run_rest_server(ctx.obj["config"], rest_config)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
