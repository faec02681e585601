"""
rkentry - Main CLI Application

Inspect how boot configuration resolves: parse override strings, list the
environment overrides in effect, print a merged boot document and check
locale strings.
"""
import json
import os
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from rkentry.config.env import parse_env_overrides
from rkentry.config.loader import read_boot_file, resolve_boot_node
from rkentry.config.locale import match_locale
from rkentry.config.overrides import parse_overrides
from rkentry.core.errors import RkEntryError
from rkentry.settings import LocaleSettings, get_settings

# Initialize app
app = typer.Typer(
    name="rkentry",
    help="rkentry - boot configuration and entry lifecycle tooling",
    add_completion=False
)

console = Console()


def _fail(error: RkEntryError) -> None:
    console.print(f"[red]Error: {escape(str(error))}[/red]", highlight=False)
    raise typer.Exit(1)


@app.command()
def parse(
    expression: str = typer.Argument(..., help="Override string, e.g. 'gin[0].port=8081'"),
):
    """Parse an override string and print the resulting structure."""
    try:
        data = parse_overrides(expression)
    except RkEntryError as e:
        _fail(e)
    console.print_json(json.dumps(data))


@app.command()
def env(
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Environment variable prefix"),
):
    """Show environment variables recognized as overrides."""
    prefix = prefix or get_settings().env_prefix
    result = parse_env_overrides(prefix=prefix, environ=dict(os.environ))

    if not result.applied and not result.skipped:
        console.print(f"[yellow]No {prefix.upper()}_* overrides found[/yellow]")
        return

    table = Table(title=f"Environment overrides ({prefix.upper()}_*)")
    table.add_column("Variable", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    for line in result.applied:
        variable, _, target = line.partition(" => ")
        table.add_row(variable, "[green]applied[/green]", escape(target))
    for variable, reason in result.skipped:
        table.add_row(variable, "[red]skipped[/red]", escape(reason))

    console.print(table)


@app.command()
def resolve(
    boot_file: Path = typer.Argument(..., help="Boot YAML file"),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Environment variable prefix"),
    rkset: Optional[List[str]] = typer.Option(None, "--rkset", help="Override assignments (repeatable)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of YAML"),
):
    """Print a boot document with environment and flag overrides applied."""
    argv: List[str] = []
    for value in rkset or []:
        argv.extend(["--rkset", value])

    try:
        node = resolve_boot_node(
            read_boot_file(boot_file),
            prefix=prefix,
            argv=argv,
            flag_name="rkset",
        )
    except RkEntryError as e:
        _fail(e)

    if as_json:
        console.print_json(json.dumps(node, default=str))
    else:
        typer.echo(yaml.safe_dump(node, sort_keys=False, default_flow_style=False), nl=False)


@app.command()
def locale(
    value: str = typer.Argument(..., help="Locale as <realm>::<region>::<az>::<domain>"),
):
    """Check a locale against REALM, REGION, AZ and DOMAIN."""
    settings = LocaleSettings()
    current = "::".join(part or "*" for part in settings.as_tuple())

    if match_locale(value, settings):
        console.print(Panel.fit(
            f"[green]{value} matches {current}[/green]",
            border_style="green"
        ))
    else:
        console.print(Panel.fit(
            f"[yellow]{value} does not match {current}[/yellow]",
            border_style="yellow"
        ))


if __name__ == "__main__":
    app()
