# -*- coding: utf-8 -*-
"""
carbonmarket CLI
====================

Command-line access to the carbon footprint engine:

    carbonmarket calculate assessment.json [--region US] [--json]
    carbonmarket factors [--category fuel] [--scope 1] [--region US] [--search gas]
    carbonmarket convert 1000 kWh MMBtu
    carbonmarket version
"""

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from carbonmarket.exceptions import CarbonMarketException
from carbonmarket.footprint.config import FootprintConfig, get_config
from carbonmarket.footprint.setup import FootprintService
from carbonmarket.footprint.unit_converter import UnitConverter

app = typer.Typer(
    name="carbonmarket",
    help="Carbon footprint calculation engine",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """
    carbonmarket - GHG Protocol footprint calculations
    """
    level = logging.DEBUG if verbose else getattr(logging, get_config().log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _build_service(
    database_url: Optional[str],
    registry: Optional[Path],
) -> FootprintService:
    config: FootprintConfig = get_config()
    overrides: Dict[str, Any] = {}
    if database_url:
        overrides["database_url"] = database_url
    if registry:
        overrides["factor_registry_path"] = str(registry)
    if overrides:
        config = replace(config, **overrides)
    service = FootprintService(config=config)
    service.startup()
    return service


def _load_input(path: Path) -> Dict[str, Any]:
    if not path.exists():
        console.print(f"[red]Input file not found: {path}[/red]")
        raise typer.Exit(1)
    with open(path) as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif path.suffix == ".json":
            data = json.load(f)
        else:
            console.print(f"[red]Unsupported input format: {path.suffix}[/red]")
            console.print("[yellow]Use .json or .yaml files[/yellow]")
            raise typer.Exit(1)
    if not isinstance(data, dict):
        console.print("[red]Input must be a mapping with an 'assessment' section[/red]")
        raise typer.Exit(1)
    return data


@app.command()
def calculate(
    input_file: Path = typer.Argument(..., help="Assessment request (JSON/YAML)"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="Override request region"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id; stores the assessment"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy URL"),
    registry: Optional[Path] = typer.Option(None, "--registry", help="YAML factor registry"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),
):
    """Calculate a full Scope 1/2/3 assessment"""
    request = _load_input(input_file)
    if region:
        request["region"] = region

    service = _build_service(database_url, registry)
    try:
        result = asyncio.run(service.calculate_footprint(request, owner_id=owner))
    except CarbonMarketException as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        service.shutdown()

    if as_json:
        console.print_json(json.dumps(result.model_dump(by_alias=True, mode="json")))
        return

    summary = result.summary
    table = Table(title="Emissions by Scope", box=box.ROUNDED)
    table.add_column("Scope", style="cyan")
    table.add_column("tCO2e", justify="right")
    table.add_column("Share", justify="right")
    for number in (1, 2, 3):
        table.add_row(
            f"Scope {number}",
            f"{summary.scope_total(number):,.2f}",
            f"{summary.emissions_by_scope[f'scope{number}']}%",
        )
    table.add_row("[bold]Total[/bold]", f"[bold]{summary.total_emissions:,.2f}[/bold]", "")
    console.print(table)
    console.print(f"Average confidence: [bold]{summary.average_confidence:.0f}%[/bold]")
    if result.assessment_id:
        console.print(f"Saved as assessment [green]{result.assessment_id}[/green]")

    for insight in result.insights:
        console.print(Panel(insight.message, title=f"{insight.type} ({insight.priority})"))
    for rec in result.recommendations:
        console.print(
            f"[bold]{rec.priority.upper()}[/bold] Scope {rec.scope}: {rec.action} "
            f"({rec.potential_reduction}) - {rec.description}"
        )


@app.command()
def factors(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Factor category"),
    scope: Optional[int] = typer.Option(None, "--scope", "-s", help="GHG scope (1-3)"),
    region: str = typer.Option("GLOBAL", "--region", "-r", help="Region code, or ALL"),
    search: Optional[str] = typer.Option(None, "--search", help="Match subcategory or source"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy URL"),
    registry: Optional[Path] = typer.Option(None, "--registry", help="YAML factor registry"),
):
    """List emission factors"""
    service = _build_service(database_url, registry)
    try:
        listing = asyncio.run(service.list_factors(category, scope, region, search))
    except CarbonMarketException as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        service.shutdown()

    if not listing.factors:
        console.print("No factors found")
        return

    table = Table(box=box.SIMPLE)
    for column in ("Scope", "Category", "Subcategory", "kg CO2e", "Unit", "Region", "Source"):
        table.add_column(column)
    for f in listing.factors:
        table.add_row(
            str(f.scope), f.category, f.subcategory, f"{f.emission_factor:.4f}",
            f.unit, f.region, f.source,
        )
    console.print(table)
    console.print(f"\nTotal: {len(listing.factors)} factors")
    if listing.from_fallback:
        console.print("[yellow]Factor store not available; showing built-in factors[/yellow]")


@app.command()
def convert(
    value: float = typer.Argument(..., help="Quantity to convert"),
    from_unit: str = typer.Argument(..., help="Source unit"),
    to_unit: str = typer.Argument(..., help="Target unit"),
):
    """Convert a quantity between units"""
    try:
        converted = UnitConverter().convert(value, from_unit, to_unit)
    except CarbonMarketException as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"{value:g} {from_unit} = [bold]{converted:.6g}[/bold] {to_unit}")


@app.command()
def version():
    """Show carbonmarket version"""
    from carbonmarket import __version__

    console.print(f"[bold green]carbonmarket v{__version__}[/bold green]")


def main():
    app()


if __name__ == "__main__":
    main()
