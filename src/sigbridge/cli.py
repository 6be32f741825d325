"""CLI for sigbridge: run the Signal monitor and approve pairing requests."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import httpx

from sigbridge import __version__
from sigbridge.config import DEFAULT_HEALTH_PORT, ConfigError

DEFAULT_ADMIN_URL = f"http://127.0.0.1:{DEFAULT_HEALTH_PORT}"


def _admin_client(admin_url: str) -> httpx.Client:
    return httpx.Client(base_url=admin_url, timeout=10.0)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """sigbridge: Signal inbound bridge."""


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to sigbridge.toml",
)
def run(config_path: Path | None) -> None:
    """Run the Signal monitor until interrupted."""
    from sigbridge.connectors.signal_monitor import run_signal_monitor

    try:
        asyncio.run(run_signal_monitor(config_path))
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}")
        sys.exit(1)


admin_url_option = click.option(
    "--url",
    "admin_url",
    envvar="SIGBRIDGE_ADMIN_URL",
    default=DEFAULT_ADMIN_URL,
    show_default=True,
    help="Health/admin endpoint of the running monitor",
)


@cli.group()
def pairing() -> None:
    """Inspect and approve pending pairing requests."""


@pairing.command("list")
@click.option("--provider", default="signal", show_default=True)
@admin_url_option
def list_cmd(provider: str, admin_url: str) -> None:
    """List pending pairing requests."""
    try:
        with _admin_client(admin_url) as client:
            response = client.get(f"/pairing/{provider}")
            response.raise_for_status()
    except httpx.HTTPError as exc:
        click.echo(f"Could not reach the monitor at {admin_url}: {exc}")
        sys.exit(1)

    pending = response.json()
    if not pending:
        click.echo(f"No pending {provider} pairing requests")
        return
    click.echo(f"{'Code':<10} {'Sender'}")
    click.echo("-" * 40)
    for entry in pending:
        click.echo(f"{entry['code']:<10} {entry['id']}")


@pairing.command()
@click.argument("code")
@click.option("--provider", default="signal", show_default=True)
@admin_url_option
def approve(code: str, provider: str, admin_url: str) -> None:
    """Approve the pending request holding CODE."""
    try:
        with _admin_client(admin_url) as client:
            response = client.post(f"/pairing/{provider}/approve", json={"code": code})
    except httpx.HTTPError as exc:
        click.echo(f"Could not reach the monitor at {admin_url}: {exc}")
        sys.exit(1)

    if response.status_code == 404:
        click.echo(f"No pending {provider} pairing request with code {code}")
        sys.exit(1)
    if response.is_error:
        click.echo(f"Approval failed: HTTP {response.status_code}")
        sys.exit(1)
    click.echo(f"Approved {response.json()['id']} for {provider}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
