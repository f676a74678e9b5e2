"""CLI entry point for bbat."""

from __future__ import annotations

import importlib
import json

import click

from .core.errors import BbatError


@click.group()
def main() -> None:
    """bbat billing back office."""


@main.command()
@click.option("--config", default=None, help="Config file path")
@click.option(
    "--modules",
    "modules_ref",
    required=True,
    help="Module list as 'package.module:attribute'",
)
@click.option("--json", "as_json", is_flag=True, help="Print the wiring as JSON")
def check(config: str | None, modules_ref: str, as_json: bool) -> None:
    """Boot every module without a database and print the bus wiring.

    Exits non-zero on duplicate registrations, failing setups or missing
    required handlers.
    """
    import asyncio

    from .main import boot

    modules = _load_modules(modules_ref)

    try:
        app = asyncio.run(
            boot(
                modules,
                config_path=config,
                overrides={"observability": {"log_level": "WARNING", "log_format": "console"}},
                create_pool=False,
            )
        )
    except BbatError as exc:
        cause = f" ({exc.__cause__})" if exc.__cause__ else ""
        raise click.ClickException(f"{exc}{cause}") from exc

    wiring = app.bus.describe()
    wiring["modules"] = [module.name for module in app.modules.modules]

    if as_json:
        click.echo(json.dumps(wiring, indent=2))
        return

    _print_wiring(wiring)


def _load_modules(ref: str) -> list:
    module_path, _, attr = ref.partition(":")
    if not attr:
        raise click.BadParameter("expected 'package.module:attribute'", param_hint="--modules")
    try:
        target = getattr(importlib.import_module(module_path), attr)
    except (ImportError, AttributeError) as exc:
        raise click.BadParameter(str(exc), param_hint="--modules") from exc
    if callable(target):
        target = target()
    return list(target)


def _print_wiring(wiring: dict) -> None:
    """Print a formatted wiring table."""
    click.echo(f"\n{'=' * 70}")
    click.echo("BUS WIRING")
    click.echo(f"{'=' * 70}")
    click.echo(f"  Modules:         {', '.join(wiring['modules']) or '-'}")
    click.echo(f"  Handlers:        {len(wiring['procedures'])}")
    click.echo(f"  Events:          {len(wiring['events'])}")

    if wiring["procedures"]:
        click.echo("\n  Procedures:")
        for row in wiring["procedures"]:
            tag = f"[{row['tag']}]" if row["tag"] else ""
            click.echo(f"    {row['procedure']:40s} {tag}")

    if wiring["events"]:
        click.echo("\n  Events:")
        for name, count in sorted(wiring["events"].items()):
            click.echo(f"    {name:40s} {count} subscriber(s)")
    click.echo()
