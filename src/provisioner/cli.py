"""Provisioner CLI.

Usage:
    provisioner plan manifest.yaml            # Show the ops each resource needs
    provisioner apply manifest.yaml           # Create or update every resource
    provisioner delete service svc-123        # Delete one resource

Exit codes: 0 success, 1 failure, 2 a failed create needs manual cleanup.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from .config import Config, ConfigurationError
from .coordinator import ReconciliationCoordinator
from .errors import ReconcileError
from .main import (
    EXIT_FAILURE,
    apply_resources,
    connect,
    plan_resources,
    setup_logging,
)
from .registry import RESOURCE_TYPES, get_resource_type
from .security import CredentialError
from .spec_loader import ManifestResource, SpecLoadError, load_manifest

MANIFEST_ARGUMENT = click.argument(
    "manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)


def load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def load_resources(manifest: Path) -> list[ManifestResource]:
    try:
        return load_manifest(manifest)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


def describe(resource: ManifestResource) -> str:
    if resource.exists:
        return f"{resource.kind} {resource.resource_id}"
    return f"{resource.kind} (new)"


# =============================================================================
# CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="provisioner")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Reconcile managed database resources against a manifest.

    \b
    Configuration comes from the environment:
        CLOUD_PROJECT_ID, CLOUD_ACCESS_KEY, CLOUD_SECRET_KEY (required)
        CLOUD_API_URL, CLOUD_MAX_RETRIES, ... (optional)
    """
    # Logs go to stderr so command output stays parseable
    setup_logging(logging.DEBUG if verbose else logging.WARNING, stream=sys.stderr)


# =============================================================================
# Commands
# =============================================================================


@cli.command()
@MANIFEST_ARGUMENT
def plan(manifest: Path) -> None:
    """Show the operations needed for each manifest entry without applying them."""
    config = load_config()
    resources = load_resources(manifest)

    async def run() -> list:
        transport = await connect(config)
        try:
            return await plan_resources(resources, transport, config)
        finally:
            transport.close()

    try:
        plans = asyncio.run(run())
    except (CredentialError, ReconcileError) as e:
        raise click.ClickException(str(e)) from e

    changes = 0
    for resource, resource_plan in plans:
        if resource_plan.is_empty:
            click.echo(f"{describe(resource)}: no changes")
            continue
        changes += len(resource_plan)
        click.echo(f"{describe(resource)}:")
        for index, op in enumerate(resource_plan, start=1):
            click.echo(f"  {index}. {op}")

    click.secho(f"Plan: {changes} operation(s) across {len(plans)} resource(s)", fg="green")


@cli.command()
@MANIFEST_ARGUMENT
@click.pass_context
def apply(ctx: click.Context, manifest: Path) -> None:
    """Create entries without an id and update the rest, in manifest order."""
    config = load_config()
    resources = load_resources(manifest)

    async def run() -> int:
        transport = await connect(config)
        try:
            return await apply_resources(resources, transport, config)
        finally:
            transport.close()

    try:
        exit_code = asyncio.run(run())
    except (CredentialError, ReconcileError) as e:
        raise click.ClickException(str(e)) from e

    if exit_code == 0:
        click.secho(f"✓ Applied {len(resources)} resource(s)", fg="green")
    elif exit_code == EXIT_FAILURE:
        click.secho("✗ Apply failed", fg="red", err=True)
    else:
        click.secho("✗ Apply failed, a resource needs manual cleanup", fg="red", err=True)
    ctx.exit(exit_code)


@cli.command()
@click.argument("kind", type=click.Choice(sorted(RESOURCE_TYPES)))
@click.argument("resource_id")
@click.option("--parent-id", help="Parent resource id (service id for connectors)")
def delete(kind: str, resource_id: str, parent_id: str | None) -> None:
    """Delete a single resource. Already deleted resources succeed."""
    config = load_config()

    async def run() -> None:
        transport = await connect(config)
        try:
            coordinator = ReconciliationCoordinator(
                get_resource_type(kind), transport, config=config
            )
            await coordinator.delete(resource_id, parent_id=parent_id)
        finally:
            transport.close()

    try:
        asyncio.run(run())
    except (CredentialError, ReconcileError) as e:
        raise click.ClickException(str(e)) from e

    click.secho(f"✓ Deleted {kind} {resource_id}", fg="green")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
