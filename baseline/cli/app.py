"""
Aplicación CLI de baseline.

Solo compone comandos y formatea la salida; la lógica vive en core, declarative y providers.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from baseline import __version__
from baseline.core.errors import (
    BaselineError,
    ConfigError,
    CycleDetectedError,
    PlanError,
    ProviderError,
)
from baseline.core.infra import ProviderRegistry
from baseline.core.plan import plan as build_plan
from baseline.core.resources import Resource, ResourceGraph
from baseline.core.runtime import Action, ConvergenceReport, EngineSettings, converge, load_settings, prepare
from baseline.declarative import RecipeLoader
from baseline.providers import InMemoryHost, host_registry

app = typer.Typer(
    name="baseline",
    help="Baseline - convergencia declarativa de hosts (paquetes, servicios, archivos, firewall)",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

ACTION_STYLES = {
    Action.NOOP: "dim",
    Action.CREATED: "green",
    Action.UPDATED: "cyan",
    Action.FAILED: "bold red",
    Action.SKIPPED: "yellow",
}

EXIT_INVALID = 2


@app.callback()
def main_callback():
    """Carga el .env del directorio actual antes de cualquier comando"""
    env = Path.cwd() / ".env"
    if env.exists():
        load_dotenv(env)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _invalid(e: BaselineError) -> None:
    """Error estructural o de configuración: nada se ha aplicado."""
    console.print(f"[bold red]✘ {type(e).__name__}:[/bold red] {e}")
    if isinstance(e, CycleDetectedError):
        console.print(f"[dim]Recursos en el ciclo: {', '.join(e.involved_ids)}[/dim]")
    console.print("[dim]No se aplicó ningún cambio[/dim]")
    raise typer.Exit(code=EXIT_INVALID)


def _settings(**overrides) -> EngineSettings:
    try:
        return load_settings().override(**overrides)
    except ConfigError as e:
        _invalid(e)


def _load(recipe: str, settings: EngineSettings) -> List[Resource]:
    try:
        return RecipeLoader(settings.recipes_dir).load(recipe)
    except ConfigError as e:
        _invalid(e)


def _registry(mock: bool, settings: EngineSettings) -> ProviderRegistry:
    if mock:
        console.print("[yellow]⚠ Modo --mock: host simulado en memoria[/yellow]")
        return InMemoryHost().registry()
    return host_registry(settings)


@app.command("plan")
def plan_cmd(
    recipe: str = typer.Argument(..., help="Receta YAML (ruta o nombre bajo BASELINE_RECIPES_DIR)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Logs de depuración"),
):
    """Muestra el orden de ejecución resuelto"""
    _setup_logging(verbose)
    settings = _settings()
    resources = _load(recipe, settings)
    try:
        ordered = build_plan(ResourceGraph.from_resources(resources))
    except PlanError as e:
        _invalid(e)

    console.print(Panel.fit(f"[bold cyan]Plan de convergencia[/bold cyan]\n[dim]{recipe}[/dim]", border_style="cyan"))
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Tipo", style="cyan")
    table.add_column("Recurso", style="green")
    table.add_column("Depende de", style="yellow")
    for i, resource in enumerate(ordered, 1):
        deps = ", ".join(sorted(str(d) for d in resource.depends_on)) or "-"
        table.add_row(str(i), resource.kind.value, resource.id, deps)
    console.print(table)


@app.command()
def validate(
    recipe: str = typer.Argument(..., help="Receta YAML"),
    allow_accept_all: Optional[bool] = typer.Option(
        None, "--allow-accept-all/--no-allow-accept-all",
        help="Acepta un ACCEPT sin restricciones como cierre de cadena",
    ),
    mock: bool = typer.Option(False, "--mock", help="Consulta políticas sobre un host simulado"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Logs de depuración"),
):
    """Valida la receta: dependencias, ciclos y política de firewall"""
    _setup_logging(verbose)
    settings = _settings(allow_accept_all=allow_accept_all)
    resources = _load(recipe, settings)
    try:
        ordered = prepare(resources, _registry(mock, settings), allow_accept_all=settings.allow_accept_all)
    except (PlanError, ProviderError) as e:
        _invalid(e)

    chains = ordered.chain_refs()
    console.print(f"[green]✔ Receta válida:[/green] {len(ordered)} recursos, {len(chains)} cadenas de firewall")
    for ref in chains:
        console.print(f"  [green]✔[/green] {ref}")


@app.command("converge")
def converge_cmd(
    recipe: str = typer.Argument(..., help="Receta YAML"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Consulta el estado pero no aplica cambios"),
    mock: bool = typer.Option(False, "--mock", help="Ejecuta contra un host simulado en memoria"),
    service_attempts: Optional[int] = typer.Option(
        None, "--service-attempts", min=1, help="Intentos por servicio (BASELINE_SERVICE_ATTEMPTS)",
    ),
    retry_delay: Optional[float] = typer.Option(
        None, "--retry-delay", min=0, help="Segundos entre intentos (BASELINE_RETRY_DELAY)",
    ),
    allow_accept_all: Optional[bool] = typer.Option(
        None, "--allow-accept-all/--no-allow-accept-all",
        help="Acepta un ACCEPT sin restricciones como cierre de cadena",
    ),
    as_json: bool = typer.Option(False, "--json", help="Imprime el reporte en JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Logs de depuración"),
):
    """Converge el host al estado declarado"""
    _setup_logging(verbose)
    settings = _settings(
        service_attempts=service_attempts,
        retry_delay=retry_delay,
        allow_accept_all=allow_accept_all,
    )
    resources = _load(recipe, settings)
    registry = _registry(mock, settings)
    try:
        report = converge(resources, registry, settings, dry_run=dry_run)
    except (PlanError, ProviderError) as e:
        _invalid(e)

    if as_json:
        console.print_json(data=report.to_dict())
    else:
        _print_report(recipe, report)
    raise typer.Exit(code=report.exit_code)


def _print_report(recipe: str, report: ConvergenceReport) -> None:
    title = "Convergencia (dry-run)" if report.dry_run else "Convergencia"
    console.print(Panel.fit(f"[bold cyan]{title}[/bold cyan]\n[dim]{recipe}[/dim]", border_style="cyan"))

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Tipo", style="cyan")
    table.add_column("Recurso")
    table.add_column("Resultado")
    table.add_column("Intentos", justify="right")
    for i, outcome in enumerate(report, 1):
        style = ACTION_STYLES[outcome.action]
        table.add_row(
            str(i),
            outcome.key.kind.value,
            outcome.key.id,
            f"[{style}]{outcome.action.value}[/{style}]",
            str(outcome.attempts),
        )
    console.print(table)

    counts = report.counts()
    summary = "  ".join(f"{action.value}: {counts[action]}" for action in Action)
    failure = report.first_failure
    if failure is None:
        console.print(Panel.fit(f"[green]✔ {summary}[/green]", border_style="green"))
        return
    console.print(Panel.fit(
        f"[red]✘ {summary}[/red]\n\n"
        f"[bold]Primer error fatal:[/bold] {failure.key}\n"
        f"[dim]{failure.error}[/dim]",
        border_style="red",
    ))


@app.command()
def version():
    """Muestra la versión de baseline"""
    console.print(Panel.fit(
        "[bold cyan]Baseline[/bold cyan]\n"
        "[dim]Convergencia declarativa de hosts[/dim]\n\n"
        f"[bold]Versión:[/bold] {__version__}\n"
        "[bold]Recursos:[/bold] package, service, file, firewall_chain, firewall_rule",
        border_style="cyan"
    ))


def main():
    app()
