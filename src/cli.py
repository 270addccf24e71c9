#!/usr/bin/env python3
"""
CLI tool for the Turso reconciler
Plans, applies, refreshes, imports and destroys declared Turso resources
"""

import asyncio
import json
import logging
from dataclasses import replace

import click
import yaml
from tabulate import tabulate

from client import TursoClient
from config import ControllerConfig, LoggingConfig, ProviderConfig, load_config
from controller import (
    Action,
    ApplyReport,
    Controller,
    ResourceDeclaration,
    load_state,
    save_state,
)
from resources import get_registry, register_builtin_resources


def build_client(provider: ProviderConfig) -> TursoClient:
    """Create the API client shared by every gateway"""
    return TursoClient(
        provider.api_token,
        base_url=provider.api_base_url,
        timeout=provider.request_timeout,
        max_connections=provider.max_connections,
    )


def load_declarations(filename: str):
    """Read resource declarations from a YAML/JSON file"""
    with open(filename, "r") as f:
        if filename.endswith(".json"):
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if not isinstance(data, dict) or not isinstance(data.get("resources", []), list):
        raise ValueError(f"{filename} must contain a 'resources' list")
    return [ResourceDeclaration.from_dict(item) for item in data.get("resources") or []]


def _controller_config(ctx) -> ControllerConfig:
    config = ControllerConfig.from_env()
    config.state_path = ctx.obj["state_path"] or config.state_path
    return config


def _run(ctx, operation):
    """Run ``operation(controller)`` against an open client"""
    try:
        config = load_config()
    except ValueError as e:
        raise click.ClickException(str(e))

    provider = config.provider
    registry = ctx.obj["registry"]
    controller_config = replace(config.controller, state_path=_controller_config(ctx).state_path)

    async def run():
        client = build_client(provider)
        async with client:
            controller = Controller(registry, client, controller_config)
            return await operation(controller)

    try:
        return asyncio.run(run())
    except ValueError as e:
        raise click.ClickException(str(e))


def _read_state(ctx):
    path = _controller_config(ctx).state_path
    try:
        return load_state(path)
    except ValueError as e:
        raise click.ClickException(str(e))


def _write_state(ctx, doc):
    save_state(_controller_config(ctx).state_path, doc)


def _redacted(registry, resource_type, values):
    if registry.has_resource(resource_type):
        return registry.get_policy(resource_type).redact(values)
    return dict(values)


def _echo_changes(changes):
    rows = [
        [change.action.value, change.address, ", ".join(change.attributes)]
        for change in changes
        if change.action is not Action.NOOP
    ]
    if not rows:
        click.echo("No changes. Resources match the declarations.")
        return
    click.echo(tabulate(rows, headers=["Action", "Address", "Attributes"], tablefmt="grid"))


def _echo_report(report: ApplyReport):
    for address, diagnostic in report.iter_diagnostics():
        click.echo(f"{address}: {diagnostic}", err=True)


def _finish(ctx, report: ApplyReport):
    _echo_report(report)
    if report.has_error:
        ctx.exit(1)


@click.group()
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="State file (default: $TURSO_STATE_PATH or turso.state.json)",
)
@click.pass_context
def cli(ctx, state_path):
    """Turso reconciler CLI - declarative management of Turso resources"""
    logging_config = LoggingConfig.from_env()
    logging.basicConfig(level=logging_config.log_level, format=logging_config.log_format)

    ctx.ensure_object(dict)
    ctx.obj["state_path"] = state_path
    ctx.obj["registry"] = register_builtin_resources(get_registry())


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_context
def plan(ctx, filename):
    """Show what apply would change"""
    state = _read_state(ctx)

    async def operation(controller):
        return controller.plan(load_declarations(filename), state)

    _echo_changes(_run(ctx, operation))


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--yes", "-y", is_flag=True, help="Apply without confirmation")
@click.pass_context
def apply(ctx, filename, yes):
    """Create, update, replace or delete resources to match a YAML/JSON file"""
    state = _read_state(ctx)
    try:
        declarations = load_declarations(filename)
    except ValueError as e:
        raise click.ClickException(str(e))

    async def preview(controller):
        return controller.plan(declarations, state)

    changes = _run(ctx, preview)
    _echo_changes(changes)
    if all(change.action is Action.NOOP for change in changes):
        return
    if not yes:
        click.confirm("Apply these changes?", abort=True)

    async def operation(controller):
        return await controller.apply(declarations, state)

    report = _run(ctx, operation)
    _write_state(ctx, report.state)
    click.echo(f"Applied. {len(report.state['resources'])} resources in state.")
    _finish(ctx, report)


@cli.command()
@click.pass_context
def refresh(ctx):
    """Re-read every resource in state from the API"""
    state = _read_state(ctx)

    async def operation(controller):
        return await controller.refresh(state)

    report = _run(ctx, operation)
    _write_state(ctx, report.state)
    dropped = set(state["resources"]) - set(report.state["resources"])
    for address in sorted(dropped):
        click.echo(f"Removed {address} from state (not found)")
    click.echo(f"Refreshed {len(report.state['resources'])} resources.")
    _finish(ctx, report)


@cli.command(name="import")
@click.argument("resource_type")
@click.argument("name")
@click.argument("identifier")
@click.pass_context
def import_(ctx, resource_type, name, identifier):
    """Adopt an existing remote object, e.g. `import database orders acme/orders`"""
    state = _read_state(ctx)

    async def operation(controller):
        return await controller.import_resource(resource_type, name, identifier, state)

    report = _run(ctx, operation)
    address = f"{resource_type}.{name}"
    if address in report.state["resources"] and address not in state["resources"]:
        _write_state(ctx, report.state)
        click.echo(f"Imported {address}")
    _finish(ctx, report)


@cli.command()
@click.confirmation_option(prompt="Are you sure you want to destroy every resource in state?")
@click.pass_context
def destroy(ctx):
    """Delete every resource in state"""
    state = _read_state(ctx)

    async def operation(controller):
        return await controller.destroy(state)

    report = _run(ctx, operation)
    _write_state(ctx, report.state)
    click.echo(f"Destroyed. {len(report.state['resources'])} resources left in state.")
    _finish(ctx, report)


@cli.command()
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
@click.pass_context
def show(ctx, output):
    """Show resources in state (sensitive values masked)"""
    state = _read_state(ctx)
    registry = ctx.obj["registry"]

    resources = {
        address: {
            "type": entry["type"],
            "values": _redacted(registry, entry["type"], entry["values"]),
        }
        for address, entry in state["resources"].items()
    }

    if output == "json":
        click.echo(json.dumps(resources, indent=2, sort_keys=True))
    elif output == "yaml":
        click.echo(yaml.dump(resources, default_flow_style=False))
    elif not resources:
        click.echo("No resources in state")
    else:
        rows = [
            [address, entry["type"], json.dumps(entry["values"], sort_keys=True)]
            for address, entry in sorted(resources.items())
        ]
        click.echo(tabulate(rows, headers=["Address", "Type", "Values"], tablefmt="grid"))


@cli.command()
@click.argument("source_type")
@click.option("--attribute", "-a", "attributes", multiple=True, help="key=value")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.pass_context
def data(ctx, source_type, attributes, output):
    """Read a data source, e.g. `data database -a organization_name=acme -a name=orders`"""
    registry = ctx.obj["registry"]
    if not registry.has_data_source(source_type):
        available = ", ".join(registry.list_data_sources())
        raise click.BadParameter(
            f"Unknown data source {source_type!r}. Available: {available}",
            param_hint="SOURCE_TYPE",
        )

    config = {}
    for item in attributes:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected key=value, got {item!r}", param_hint="--attribute")
        config[key] = value

    async def operation(controller):
        return await controller.read_data(source_type, config)

    result = _run(ctx, operation)
    if result.diagnostics:
        # diagnostics follow the requested output format on stderr
        if output == "yaml":
            click.echo(yaml.dump(result.diagnostics.to_list(), default_flow_style=False), err=True)
        else:
            click.echo(json.dumps(result.diagnostics.to_list(), indent=2), err=True)
    if not result.success:
        ctx.exit(1)

    values = registry.get_data_source_class(source_type).policy.redact(result.state)
    if output == "yaml":
        click.echo(yaml.dump(values, default_flow_style=False))
    else:
        click.echo(json.dumps(values, indent=2, sort_keys=True))


@cli.command()
@click.pass_context
def types(ctx):
    """List supported resource types and data sources"""
    registry = ctx.obj["registry"]

    rows = [
        [info["name"], info["update"], info["delete"], info["import"], info["description"]]
        for info in registry.describe_resources()
    ]
    click.echo(
        tabulate(
            rows,
            headers=["Resource", "Update", "Delete", "Import", "Description"],
            tablefmt="grid",
        )
    )
    click.echo(f"\nData sources: {', '.join(registry.list_data_sources())}")


if __name__ == "__main__":
    cli()
