"""Dragonfly Cloud CLI (dfcloud).

Runs one lifecycle operation and prints the result as JSON on stdout.
Logs go to stderr as JSON lines.

Usage:
    dfcloud create network.yaml            # Create everything in a manifest
    dfcloud read datastore <id>            # Show current state
    dfcloud update datastore <id> ds.yaml  # Apply a changed manifest
    dfcloud delete connection <id>         # Delete and wait until gone
    dfcloud import network <id>            # Adopt an existing resource
    dfcloud list networks                  # List everything of a kind

Exit codes: 0 success, 1 operation failed, 2 configuration error,
3 resource absent (read only).
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
from pathlib import Path
from typing import Any

import click

from .config import API_HOST_ENV_VAR, API_KEY_ENV_VAR, Config
from .errors import ConfigurationError, DfCloudError
from .lifecycle import LifecycleResult, Operation, ResourceKind
from .main import (
    EXIT_CONFIG_ERROR,
    EXIT_FAILURE,
    EXIT_SUCCESS,
    exit_code_for,
    run_create_all,
    run_list,
    run_operation,
    setup_logging,
)
from .spec_loader import SpecLoadError, load_manifest, load_manifests

KIND_NAMES = [kind.value for kind in ResourceKind] + [f"{kind.value}s" for kind in ResourceKind]

kind_argument = click.argument("kind", type=click.Choice(KIND_NAMES, case_sensitive=False))


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def _load_config(ctx: click.Context) -> Config:
    """Build configuration from options and environment, exiting with 2 on error."""
    options = ctx.obj
    try:
        config = Config.from_env(api_key=options.get("api_key"), api_host=options.get("api_host"))
        if options.get("log_level"):
            config = dataclasses.replace(config, log_level=options["log_level"])
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)

    setup_logging(config.log_level_value)
    return config


def _finish(ctx: click.Context, result: LifecycleResult) -> None:
    _emit(result.to_output())
    ctx.exit(exit_code_for(result))


def _run(
    ctx: click.Context,
    kind: str,
    operation: Operation,
    *,
    resource_id: str | None = None,
    manifest_path: str | None = None,
) -> None:
    config = _load_config(ctx)
    resource_kind = ResourceKind.from_name(kind)

    desired = None
    if manifest_path is not None:
        try:
            desired = load_manifest(Path(manifest_path), resource_kind).resource
        except SpecLoadError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(EXIT_CONFIG_ERROR)

    result = asyncio.run(
        run_operation(
            config,
            resource_kind,
            operation,
            resource_id=resource_id,
            desired=desired,
            transport=ctx.obj.get("transport"),
        )
    )
    _finish(ctx, result)


# =============================================================================
# Command Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="dfcloud")
@click.option(
    "--api-key",
    envvar=API_KEY_ENV_VAR,
    show_envvar=True,
    help="API key used as the bearer token",
)
@click.option("--api-host", envvar=API_HOST_ENV_VAR, show_envvar=True, help="API host")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (default: INFO)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    api_key: str | None,
    api_host: str | None,
    log_level: str | None,
) -> None:
    """Dragonfly Cloud CLI (dfcloud).

    Manage networks, datastores and peering connections. Every command
    waits until the control plane has finished the change.

    \b
    Quick Start:
        export DFCLOUD_API_KEY=...
        dfcloud create network.yaml
        dfcloud list networks
    """
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["api_host"] = api_host
    ctx.obj["log_level"] = log_level.upper() if log_level else None


# =============================================================================
# Lifecycle Commands
# =============================================================================


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def create(ctx: click.Context, manifest: str) -> None:
    """Create every resource declared in MANIFEST, in file order.

    Stops at the first resource that fails.
    """
    config = _load_config(ctx)
    try:
        manifests = load_manifests(Path(manifest))
    except SpecLoadError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)

    results = asyncio.run(
        run_create_all(
            config,
            [(m.kind, m.resource) for m in manifests],
            transport=ctx.obj.get("transport"),
        )
    )

    if len(manifests) == 1:
        _finish(ctx, results[0])

    _emit([result.to_output() for result in results])
    failed = next((result for result in results if not result.success), None)
    if failed is not None:
        ctx.exit(exit_code_for(failed))
    ctx.exit(EXIT_SUCCESS)


@cli.command()
@kind_argument
@click.argument("resource_id")
@click.pass_context
def read(ctx: click.Context, kind: str, resource_id: str) -> None:
    """Show the current state of a resource. Exits 3 if it no longer exists."""
    _run(ctx, kind, Operation.READ, resource_id=resource_id)


@cli.command()
@kind_argument
@click.argument("resource_id")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def update(ctx: click.Context, kind: str, resource_id: str, manifest: str) -> None:
    """Bring a resource to the state declared in MANIFEST."""
    _run(ctx, kind, Operation.UPDATE, resource_id=resource_id, manifest_path=manifest)


@cli.command()
@kind_argument
@click.argument("resource_id")
@click.pass_context
def delete(ctx: click.Context, kind: str, resource_id: str) -> None:
    """Delete a resource and wait until it is gone."""
    _run(ctx, kind, Operation.DELETE, resource_id=resource_id)


@cli.command("import")
@kind_argument
@click.argument("resource_id")
@click.pass_context
def import_cmd(ctx: click.Context, kind: str, resource_id: str) -> None:
    """Adopt an existing resource and print its full state."""
    _run(ctx, kind, Operation.IMPORT, resource_id=resource_id)


@cli.command("list")
@kind_argument
@click.pass_context
def list_cmd(ctx: click.Context, kind: str) -> None:
    """List every resource of KIND."""
    config = _load_config(ctx)
    try:
        resources = asyncio.run(
            run_list(config, ResourceKind.from_name(kind), transport=ctx.obj.get("transport"))
        )
    except DfCloudError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_FAILURE)

    _emit([resource.to_output() for resource in resources])


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
