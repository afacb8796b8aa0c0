"""Momentum CLI — poke the household backends from a terminal.

Usage:
    momentum health                              # Wake both backends, report status
    momentum snapshot --email a@b.c --password x # Sign in, load everything, print counts
    momentum snapshot --json                     # ...or dump the whole cache
    momentum watch                               # Print push events as they arrive
    momentum purchase ITEM_ID --member MEMBER_ID # Buy a store item (optimistic)

Credentials come from --email/--password, MOMENTUM_EMAIL/MOMENTUM_PASSWORD,
or an existing token in MOMENTUM_TOKEN.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import sys
from typing import Optional

import click

from momentum.client import MomentumClient
from momentum.config import settings
from momentum.gateway import GatewayError
from momentum.log import configure_logging
from momentum.realtime import ChannelState, events
from momentum.services import ServiceError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Inside an already running loop (CliRunner in async tests) the coroutine
    runs on a worker thread instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _pretty_json(data) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table. columns: (header, dict_key, width)."""
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        click.echo("  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns))


async def _sign_in(
    client: MomentumClient,
    email: Optional[str],
    password: Optional[str],
    token: Optional[str],
) -> None:
    if token:
        await client.session.start_with_token(token)
    elif email and password:
        await client.session.login(email, password)
    else:
        _fail("provide --email and --password, or set MOMENTUM_TOKEN")


def credential_options(fn):
    fn = click.option("--token", envvar="MOMENTUM_TOKEN", help="Existing session token")(fn)
    fn = click.option("--password", envvar="MOMENTUM_PASSWORD", help="Account password")(fn)
    fn = click.option("--email", envvar="MOMENTUM_EMAIL", help="Account email")(fn)
    return fn


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="momentum")
@click.option("--log-level", default=None, help="Override MOMENTUM_LOG_LEVEL")
def main(log_level: Optional[str]):
    """Momentum — household chores and rewards client."""
    configure_logging(level=log_level or settings.log_level, json=settings.log_json)


# ---------------------------------------------------------------------------
# momentum health
# ---------------------------------------------------------------------------


@main.command()
def health():
    """Wake up both backends and report whether they answered."""
    _run(_health_impl())


async def _health_impl():
    async with MomentumClient() as client:
        results = await asyncio.gather(*(gw.wake_up() for gw in client.api.gateways))
        for gateway, ok in zip(client.api.gateways, results):
            click.echo(
                f"{gateway.name:<6} {gateway.health_url}  "
                + click.style("up" if ok else "down", fg="green" if ok else "red")
            )
    if not all(results):
        sys.exit(1)


# ---------------------------------------------------------------------------
# momentum snapshot
# ---------------------------------------------------------------------------


@main.command()
@credential_options
@click.option("--json", "as_json", is_flag=True, help="Dump every collection as JSON")
def snapshot(email: Optional[str], password: Optional[str], token: Optional[str], as_json: bool):
    """Sign in, run one aggregated load, and print what came back."""
    _run(_snapshot_impl(email, password, token, as_json))


async def _snapshot_impl(email, password, token, as_json: bool):
    async with MomentumClient() as client:
        try:
            await _sign_in(client, email, password, token)
        except GatewayError as e:
            _fail(str(e))
        if as_json:
            click.echo(_pretty_json(client.store.snapshot()))
            return
        click.secho(f"Household {client.store.household_id or '-'}", bold=True)
        rows = [{"collection": name, "count": n} for name, n in client.store.counts().items()]
        _print_table(rows, [("COLLECTION", "collection", 14), ("COUNT", "count", 6)])


# ---------------------------------------------------------------------------
# momentum watch
# ---------------------------------------------------------------------------


@main.command()
@credential_options
def watch(email: Optional[str], password: Optional[str], token: Optional[str]):
    """Print push events and cache counts until interrupted (Ctrl-C)."""
    try:
        _run(_watch_impl(email, password, token))
    except KeyboardInterrupt:
        click.echo("\nStopped.")


async def _watch_impl(email, password, token):
    async with MomentumClient() as client:
        client.channel.add_state_listener(
            lambda state: click.secho(
                f"[channel] {state.value}",
                fg="green" if state is ChannelState.CONNECTED else "yellow",
            )
        )

        def show(event: str):
            def handler(data):
                click.echo(f"[{event}] {_pretty_json(data)}")

            return handler

        for event in events.INVALIDATION_EVENTS + (events.NOTIFICATION,):
            client.registry.on(event, show(event))
        client.store.subscribe(
            lambda store: click.echo(
                "[cache] " + " ".join(f"{k}={v}" for k, v in store.counts().items())
            )
        )

        try:
            await _sign_in(client, email, password, token)
        except GatewayError as e:
            _fail(str(e))
        while True:
            await asyncio.sleep(3600)


# ---------------------------------------------------------------------------
# momentum purchase
# ---------------------------------------------------------------------------


@main.command()
@click.argument("item_id")
@click.option("--member", "member_id", required=True, help="Member buying the item")
@credential_options
def purchase(item_id: str, member_id: str, email, password, token):
    """Buy a store item for a member, with optimistic point deduction."""
    _run(_purchase_impl(item_id, member_id, email, password, token))


async def _purchase_impl(item_id, member_id, email, password, token):
    async with MomentumClient() as client:
        try:
            await _sign_in(client, email, password, token)
            balance = await client.rewards.purchase_item(member_id, item_id)
        except (GatewayError, ServiceError) as e:
            _fail(str(e))
        click.secho(f"Purchased {item_id}. New balance: {balance} pts", fg="green")
