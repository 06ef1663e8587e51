"""Key Vault VNet sample CLI (kvnet).

Usage:
    kvnet run                         # Run with environment configuration
    kvnet run --settings sample.yaml  # Run with a settings file
    kvnet parse-id <resource-id>      # Show the coordinates of a resource id
    kvnet info                        # Show the effective configuration
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from .config import Config, ConfigurationError
from .errors import InvalidResourceIdentifier
from .main import main as run_main
from .resource_id import is_virtual_network_or_subnet, parse
from .settings import SettingsLoadError, load_settings


@click.group()
@click.version_option(version="0.1.0", prog_name="kvnet")
def cli() -> None:
    """Key Vault virtual network access rule sample.

    Adds a vnet rule and an IP rule to a vault's network ACL, enables
    enforcement, verifies that data access is denied, then rolls back.
    """


@cli.command()
@click.option(
    "--settings",
    "settings_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="KVNET_SETTINGS_FILE",
    help="YAML settings file (default: environment variables)",
)
@click.option("--ip-address", envvar="ACL_IP_ADDRESS", help="IP address or CIDR for the IP rule")
def run(settings_file: Path | None, ip_address: str | None) -> None:
    """Run the access rule workflow once.

    \b
    Examples:
        kvnet run
        kvnet run --settings sample.yaml
        kvnet run --ip-address 203.0.113.0/24
    """
    sys.exit(asyncio.run(run_main(settings_file, ip_address=ip_address)))


@cli.command("parse-id")
@click.argument("resource_id")
def parse_id(resource_id: str) -> None:
    """Show the coordinates of a resource identifier."""
    try:
        rid = parse(resource_id)
    except InvalidResourceIdentifier as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Subscription:   {rid.subscription}")
    click.echo(f"Resource group: {rid.resource_group}")
    click.echo(f"Provider:       {rid.provider}")
    click.echo(f"Type:           {rid.resource_type}")
    click.echo(f"Name:           {rid.resource_name}")
    if rid.has_child:
        click.echo(f"Child type:     {rid.child_type}")
        click.echo(f"Child name:     {rid.child_name}")
    click.echo(f"VNet or subnet: {'yes' if is_virtual_network_or_subnet(rid) else 'no'}")


@cli.command()
@click.option(
    "--settings",
    "settings_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="KVNET_SETTINGS_FILE",
    help="YAML settings file (default: environment variables)",
)
def info(settings_file: Path | None) -> None:
    """Show the effective configuration (secrets are not shown)."""
    try:
        config = load_settings(settings_file) if settings_file else Config.from_env()
    except (ConfigurationError, SettingsLoadError, InvalidResourceIdentifier) as e:
        raise click.ClickException(str(e)) from e

    subnet = config.subnet
    click.echo("Key Vault VNet sample (kvnet)")
    click.echo("=" * 40)
    click.echo(f"Tenant:         {config.tenant_id}")
    click.echo(f"Subscription:   {config.subscription_id}")
    click.echo(f"Vault:          {config.vault_resource_group}/{config.vault_name}")
    click.echo(f"Location:       {config.vault_location}")
    click.echo(f"VNet:           {subnet.resource_group}/{subnet.resource_name}")
    click.echo(f"Subnet:         {subnet.child_name}")
    click.echo(f"IP rule:        {config.ip_address}")
    identity = "application secret" if config.uses_client_secret else "managed identity"
    click.echo(f"Identity:       {identity}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
