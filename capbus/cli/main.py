"""CLI entry point for inspecting and exercising capability registrations

TARGET is a "module:function" reference. The function receives a fresh
CapabilityBus and registers capabilities on it:

    # myapp/capabilities.py
    def register(bus):
        bus.register(math_add)

    $ capbus manifest myapp.capabilities:register --permission cart.write
    $ capbus invoke myapp.capabilities:register math.add --args '{"a": 2, "b": 3}'
"""

import asyncio
import importlib
import json
from typing import Callable, Tuple

import click
from rich.console import Console
from rich.table import Table

from capbus import __version__
from capbus.config import configure_logging
from capbus.core.capabilities import (
    AppContext,
    CallerIdentity,
    CallerType,
    CapabilityBus,
    InvokeOptions,
)

console = Console()


def load_registrar(target: str) -> Callable[[CapabilityBus], None]:
    """Resolve a "module:function" reference"""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected 'module:function', got '{target}'", param_hint="TARGET")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}", param_hint="TARGET") from e
    registrar = getattr(module, attr, None)
    if not callable(registrar):
        raise click.BadParameter(f"'{target}' is not a callable", param_hint="TARGET")
    return registrar


def build_bus(target: str, permissions: Tuple[str, ...]) -> CapabilityBus:
    context = AppContext(permissions=list(permissions))
    bus = CapabilityBus(app_context=lambda: context)
    load_registrar(target)(bus)
    return bus


@click.group()
@click.version_option(version=__version__, prog_name="capbus")
@click.option("--log-level", default=None, help="Logging level (default: CAPBUS_LOG_LEVEL or INFO)")
def cli(log_level):
    """capbus - capability invocation mediator"""
    configure_logging(log_level)


@cli.command(name="manifest")
@click.argument("target")
@click.option("--permission", "permissions", multiple=True, help="Granted permission (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Print raw manifest JSON")
def manifest_cmd(target: str, permissions: Tuple[str, ...], as_json: bool):
    """Show the capability manifest for a permission set."""
    bus = build_bus(target, permissions)
    manifest = bus.get_manifest()

    if as_json:
        click.echo(json.dumps(manifest.model_dump(mode="json"), indent=2))
        return

    table = Table(title=f"{manifest.application.name} {manifest.application.version}")
    table.add_column("Capability", style="cyan", no_wrap=True)
    table.add_column("Side effect")
    table.add_column("Concurrency")
    table.add_column("Permissions")
    table.add_column("Available")

    for entry in manifest.capabilities:
        available = "[green]yes[/green]" if entry.available else f"[red]no[/red] {entry.unavailable_reason or ''}"
        table.add_row(
            entry.name,
            entry.side_effect.value,
            entry.concurrency.value,
            ", ".join(entry.permissions) or "-",
            available,
        )

    console.print(table)
    console.print(f"schema {manifest.schema_version}, generated {manifest.generated_at}")


@cli.command(name="tools")
@click.argument("target")
@click.option("--permission", "permissions", multiple=True, help="Granted permission (repeatable)")
def tools_cmd(target: str, permissions: Tuple[str, ...]):
    """Print tool definitions (available capabilities only) as JSON."""
    bus = build_bus(target, permissions)
    tools = [tool.model_dump(mode="json") for tool in bus.get_tool_definitions()]
    click.echo(json.dumps(tools, indent=2))


@cli.command(name="invoke")
@click.argument("target")
@click.argument("name")
@click.option("--args", "raw_args", default="{}", help="JSON arguments")
@click.option("--permission", "permissions", multiple=True, help="Granted permission (repeatable)")
@click.option("--caller", "caller_type", default=CallerType.TEST.value,
              type=click.Choice([t.value for t in CallerType]), help="Caller type")
@click.option("--idempotency-key", default=None, help="Idempotency key")
@click.pass_context
def invoke_cmd(ctx, target: str, name: str, raw_args: str, permissions: Tuple[str, ...],
               caller_type: str, idempotency_key):
    """Invoke one capability and print the result JSON."""
    try:
        args = json.loads(raw_args)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint="--args") from e

    bus = build_bus(target, permissions)
    caller = CallerIdentity(type=CallerType(caller_type), source="capbus-cli")
    result = asyncio.run(
        bus.invoke(name, args, caller, InvokeOptions(idempotency_key=idempotency_key))
    )

    click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
    if result.status != "success":
        ctx.exit(1)


if __name__ == "__main__":
    cli()
