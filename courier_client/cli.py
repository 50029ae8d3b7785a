"""
Console entry-point for the courier client.

Run ``courier login --phone 9876543210`` once; every later command restores
the saved session from the credentials file before talking to the backend.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

import click

from courier_client.client import CourierClient
from courier_client.config import DEFAULT_CREDENTIALS_PATH, ClientConfig
from courier_client.errors import CourierError
from courier_client.gateway import DEFAULT_BASE_URL
from courier_client.literals import Period
from courier_client.models import GeoPoint, Order
from courier_client.session import AuthResult

# ---------------------------------------------------------------------------
# Logging setup --------------------------------------------------------------
# ---------------------------------------------------------------------------

logging.basicConfig(
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    level=logging.WARNING,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger("cli")


# ---------------------------------------------------------------------------
# Helpers --------------------------------------------------------------------
# ---------------------------------------------------------------------------


def _run[T](config: ClientConfig, body: Callable[[CourierClient], Awaitable[T]]) -> T:
    """Open a client, restore the session, run *body* and close everything."""

    async def _main() -> T:
        async with CourierClient.from_config(config) as client:
            return await body(client)

    try:
        return asyncio.run(_main())
    except CourierError as exc:
        raise click.ClickException(str(exc)) from exc


def _check(result: AuthResult) -> None:
    if not result.ok:
        raise click.ClickException(result.message or "Login failed. Please try again.")


def _location(lat: float | None, lng: float | None) -> GeoPoint | None:
    if lat is None or lng is None:
        return None
    return GeoPoint(latitude=lat, longitude=lng)


def _order_line(order: Order) -> str:
    status = order.status.replace("_", " ").upper()
    return f"{order.order_id:<12} {status:<11} {order.amount:>9}  {order.customer.name} ({order.customer.address})"


def _order_details(order: Order) -> str:
    lines = [
        f"Order {order.order_id} [{order.id}]  {order.status.replace('_', ' ').upper()}",
        f"Placed:   {order.created_at:%Y-%m-%d %H:%M}",
        f"Customer: {order.customer.name}, {order.customer.phone}",
        f"Address:  {order.customer.address}",
    ]
    lines += [f"  {item.name} x {item.quantity}  {item.price}" for item in order.items]
    lines += [
        f"Subtotal:     {order.subtotal}",
        f"Delivery fee: {order.delivery_fee}",
        f"Total:        {order.amount}",
    ]
    if order.completed_at is not None:
        lines.append(f"Completed: {order.completed_at:%Y-%m-%d %H:%M}")
    return "\n".join(lines)


location_options = [
    click.option("--lat", type=float, default=None, help="Current latitude."),
    click.option("--lng", type=float, default=None, help="Current longitude."),
]


def _with_location[F: Callable[..., object]](fn: F) -> F:
    for option in reversed(location_options):
        fn = option(fn)
    return fn


# ---------------------------------------------------------------------------
# Click commands -------------------------------------------------------------
# ---------------------------------------------------------------------------


@click.group()
@click.option("--api-url", envvar="COURIER_API_URL", default=DEFAULT_BASE_URL, show_default=True, help="API root.")
@click.option("--timeout", envvar="COURIER_TIMEOUT", type=float, default=10.0, show_default=True, help="Seconds.")
@click.option(
    "--credentials",
    envvar="COURIER_CREDENTIALS",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CREDENTIALS_PATH,
    show_default=True,
    help="Where the session token is kept.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level.")
@click.pass_context
def cli(ctx: click.Context, api_url: str, timeout: float, credentials: Path, verbose: bool) -> None:  # noqa: D401
    """Delivery partner command-line tools."""
    if verbose:
        logging.getLogger().setLevel(logging.INFO)
    ctx.obj = ClientConfig(base_url=api_url, timeout_s=timeout, credentials_path=credentials)


@cli.command("login", help="Sign in with phone number and PIN.")
@click.option("--phone", prompt="Phone number", help="10-digit phone number.")
@click.option("--pin", prompt="PIN", hide_input=True, help="6-digit PIN.")
@click.pass_obj
def login(config: ClientConfig, phone: str, pin: str) -> None:
    async def body(client: CourierClient) -> AuthResult:
        return await client.session.login_with_pin(phone, pin)

    _check(_run(config, body))
    click.echo("Signed in.")


@cli.command("otp-request", help="Text a one-time code to PHONE (repeat to resend).")
@click.argument("phone")
@click.pass_obj
def otp_request(config: ClientConfig, phone: str) -> None:
    async def body(client: CourierClient) -> AuthResult:
        return await client.session.request_otp(phone)

    _check(_run(config, body))
    click.echo(f"Code sent to +91 {phone}")


@cli.command("otp-verify", help="Sign in with the one-time CODE sent to PHONE.")
@click.argument("phone")
@click.argument("code")
@click.pass_obj
def otp_verify(config: ClientConfig, phone: str, code: str) -> None:
    async def body(client: CourierClient) -> AuthResult:
        return await client.session.verify_otp(phone, code)

    _check(_run(config, body))
    click.echo("Signed in.")


@cli.command("logout", help="Forget the saved session.")
@click.pass_obj
def logout(config: ClientConfig) -> None:
    async def body(client: CourierClient) -> None:
        await client.session.logout()

    _run(config, body)
    click.echo("Signed out.")


@cli.command("whoami", help="Show the signed-in courier (no network).")
@click.pass_obj
def whoami(config: ClientConfig) -> None:
    async def body(client: CourierClient) -> str:
        profile = client.session.profile
        if profile is None:
            raise click.ClickException("Not signed in.")
        return f"{profile.name} ({profile.phone_number or profile.id})"

    click.echo(_run(config, body))


@cli.command("orders", help="List active orders, or delivered/cancelled ones with --history.")
@click.option("--history", is_flag=True, help="Show past orders instead.")
@click.option("--limit", type=int, default=None, help="History page size.")
@click.pass_obj
def orders(config: ClientConfig, history: bool, limit: int | None) -> None:
    async def body(client: CourierClient) -> tuple[Order, ...]:
        if history:
            return await client.orders.refresh_history(limit)
        return await client.orders.refresh_active()

    listed = _run(config, body)
    if not listed:
        click.echo("No orders.")
    for order in listed:
        click.echo(_order_line(order))


@cli.command("show", help="Show one order in full.")
@click.argument("order_id")
@click.pass_obj
def show(config: ClientConfig, order_id: str) -> None:
    async def body(client: CourierClient) -> Order:
        return await client.orders.load_details(order_id)

    click.echo(_order_details(_run(config, body)))


@cli.command("accept", help="Accept a pending order.")
@click.argument("order_id")
@click.pass_obj
def accept(config: ClientConfig, order_id: str) -> None:
    async def body(client: CourierClient) -> Order:
        await client.orders.load_details(order_id)
        return await client.machine.accept(order_id)

    click.echo(_order_line(_run(config, body)))


@cli.command("start", help="Mark a picked-up order as in transit.")
@click.argument("order_id")
@_with_location
@click.pass_obj
def start(config: ClientConfig, order_id: str, lat: float | None, lng: float | None) -> None:
    async def body(client: CourierClient) -> Order:
        await client.orders.load_details(order_id)
        return await client.machine.start_delivery(order_id, _location(lat, lng))

    click.echo(_order_line(_run(config, body)))


@cli.command("complete", help="Confirm an in-transit order as delivered.")
@click.argument("order_id")
@_with_location
@click.option("--signature", default=None, help="Recipient signature payload.")
@click.confirmation_option(prompt="Mark this delivery as completed?")
@click.pass_obj
def complete(
    config: ClientConfig, order_id: str, lat: float | None, lng: float | None, signature: str | None
) -> None:
    async def body(client: CourierClient) -> Order:
        await client.orders.load_details(order_id)
        return await client.machine.complete(order_id, _location(lat, lng), signature)

    click.echo(_order_line(_run(config, body)))


@cli.command("earnings", help="Show earnings for a period.")
@click.option("--period", type=click.Choice(["today", "week", "month"]), default="week", show_default=True)
@click.option("--local", is_flag=True, help="Compute from order history instead of asking the backend.")
@click.pass_obj
def earnings(config: ClientConfig, period: Period, local: bool) -> None:
    async def body(client: CourierClient) -> list[str]:
        if local:
            summary = await client.earnings.collect_summary(period)
            return [
                f"Total:      {summary.total_earnings}",
                f"Deliveries: {summary.deliveries_count}",
                f"Average:    {summary.avg_per_delivery}",
            ]
        remote, payouts = await asyncio.gather(client.earnings.fetch_summary(period), client.earnings.fetch_history())
        lines = [
            f"Total:      {remote.total_earnings}",
            f"Deliveries: {remote.deliveries_count}",
            f"Average:    {remote.avg_per_delivery}",
            "",
            "Recent:",
        ]
        lines += [f"  {p.order_id:<12} {p.completed_at:%Y-%m-%d %H:%M}  +{p.amount}" for p in payouts]
        return lines

    for line in _run(config, body):
        click.echo(line)


@cli.command("dashboard", help="Today's numbers and active order count.")
@click.pass_obj
def dashboard(config: ClientConfig) -> None:
    async def body(client: CourierClient) -> list[str]:
        stats = await client.dashboard()
        return [
            f"Today's deliveries: {stats.today_deliveries}",
            f"Today's earnings:   {stats.today_earnings}",
            f"Active orders:      {stats.active_orders}",
            f"This week:          {stats.weekly_deliveries}",
        ]

    for line in _run(config, body):
        click.echo(line)


@cli.command("availability", help="Go on duty (on) or off duty (off).")
@click.argument("state", type=click.Choice(["on", "off"]))
@click.pass_obj
def availability(config: ClientConfig, state: str) -> None:
    async def body(client: CourierClient) -> bool:
        return await client.availability.set(state == "on")

    click.echo("Available" if _run(config, body) else "Offline")


if __name__ == "__main__":
    cli()
