"""clusterdash CLI entry point."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="clusterdash",
    help="clusterdash: service discovery and health for a K3s cluster",
    no_args_is_help=True,
)
console = Console()

_STATE_STYLES = {
    "healthy": "green",
    "unhealthy": "yellow",
    "unreachable": "red",
    "unknown": "dim",
}


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load(path: Path | None):
    from clusterdash.config.loader import load_config
    from clusterdash.errors import ConfigInvalid

    try:
        return load_config(path=path)
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    except ConfigInvalid as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


def _fmt_bytes(value: float | None) -> str:
    if value is None:
        return "n/a"
    if value >= 1024**3:
        return f"{value / 1024**3:.1f}Gi"
    return f"{value / 1024**2:.0f}Mi"


def _fmt_cores(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.2f}"


@app.command()
def status(
    path: Path | None = typer.Option(None, "--config", "-c", help="Path to .clusterdash.yaml"),
) -> None:
    """Run one discovery and probe cycle and print the result."""
    from clusterdash.cluster.client import try_connect
    from clusterdash.engine import DashboardEngine

    config = _load(path)
    _setup_logging(config.log_level)

    engine = DashboardEngine(config, client=try_connect(config.cluster))
    snapshot = asyncio.run(engine.run_cycle())

    table = Table(title=f"{config.dashboard.name} services")
    table.add_column("Service", style="bold")
    table.add_column("Category")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("Latency")

    for entry in snapshot.services:
        health = snapshot.health.get(entry.id)
        label = snapshot.state_of(entry.id).value if entry.enabled else "disabled"
        style = _STATE_STYLES.get(label, "dim")
        if entry.target is not None:
            target = f"{entry.target.namespace}/{entry.target.service}:{entry.target.port}"
        else:
            target = entry.url or ""
        latency = f"{health.latency_ms:.0f}ms" if health and health.latency_ms is not None else "-"
        table.add_row(entry.display_name, entry.category.value, target, f"[{style}]{label}[/{style}]", latency)

    console.print(table)

    stats = snapshot.stats
    if stats is None:
        console.print("[yellow]No cluster statistics available.[/yellow]")
    else:
        console.print(
            f"Nodes ready: [bold]{stats.ready_node_count}/{stats.node_count}[/bold]  "
            f"Pods: {stats.pod_count}  Namespaces: {stats.namespace_count}"
        )
        console.print(
            f"CPU requested/capacity: {_fmt_cores(stats.cpu_requested)}/{_fmt_cores(stats.cpu_capacity)}  "
            f"Memory requested/capacity: {_fmt_bytes(stats.memory_requested)}/{_fmt_bytes(stats.memory_capacity)}"
        )
    if snapshot.degraded:
        console.print(f"[yellow]Degraded: {', '.join(snapshot.degraded)}[/yellow]")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8000, help="Bind port"),
    path: Path | None = typer.Option(None, "--config", "-c", help="Path to .clusterdash.yaml"),
) -> None:
    """Start the dashboard API server and serve the UI."""
    import uvicorn

    from clusterdash.config.loader import CONFIG_ENV_VAR, load_config
    from clusterdash.config.models import DashboardConfig
    from clusterdash.errors import ConfigInvalid

    try:
        config = load_config(path=path)
    except FileNotFoundError:
        if path is not None:
            console.print(f"[red]Config file not found: {path}[/red]")
            raise typer.Exit(1)
        config = DashboardConfig()
    except ConfigInvalid as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    if path is not None:
        # The app factory runs inside uvicorn and finds the file through the env
        os.environ[CONFIG_ENV_VAR] = str(path)
    _setup_logging(config.log_level)

    console.print(f"[bold]{config.dashboard.name}[/bold] starting on http://{host}:{port}")
    uvicorn.run("clusterdash.api.app:create_app", factory=True, host=host, port=port, reload=False)


config_app = typer.Typer(name="config", help="Configuration commands")
app.add_typer(config_app)


@config_app.command("validate")
def config_validate(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .clusterdash.yaml"),
) -> None:
    """Validate configuration file."""
    from urllib.parse import urlparse

    from clusterdash.cluster.client import find_kubeconfig
    from clusterdash.config.loader import load_config
    from clusterdash.errors import ConfigInvalid
    from clusterdash.events.emitter import KNOWN_EVENT_TYPES

    errors: list[str] = []
    warnings: list[str] = []
    try:
        config = load_config(path=path)
    except FileNotFoundError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)
    except ConfigInvalid as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓[/green] YAML parses correctly")
    console.print("[green]✓[/green] Pydantic validation passes")

    # Service URLs are checked by the model; only report them here
    for entry in config.services:
        if entry.url is not None:
            console.print(f"[green]✓[/green] Service '{entry.id}' URL is valid")

    if config.probe.cycle_ceiling < config.probe.timeout:
        warnings.append(
            f"probe.cycle_ceiling ({config.probe.cycle_ceiling}s) is shorter than probe.timeout ({config.probe.timeout}s)"
        )
    if config.probe.interval < config.probe.cycle_ceiling:
        warnings.append(
            f"probe.interval ({config.probe.interval}s) is shorter than probe.cycle_ceiling ({config.probe.cycle_ceiling}s)"
        )

    for i, wh in enumerate(config.webhooks):
        parsed = urlparse(wh.url)
        if not parsed.scheme or not parsed.netloc:
            errors.append(f"Webhook {i}: invalid URL '{wh.url}'")
        for evt in wh.events:
            if evt != "*" and evt not in KNOWN_EVENT_TYPES:
                warnings.append(f"Webhook {i}: unrecognized event type '{evt}'")

    if config.discovery.enabled and find_kubeconfig(config.cluster.kubeconfig) is None:
        warnings.append("No kubeconfig found; discovery only works when running in-cluster")

    if not errors:
        console.print(f"[green]✓[/green] {len(config.services)} static service(s) configured")
        if config.webhooks:
            console.print(f"[green]✓[/green] {len(config.webhooks)} webhook(s) configured")
        for w in warnings:
            console.print(f"[yellow]! {w}[/yellow]")
        console.print("\n[green bold]Configuration is valid.[/green bold]")
    else:
        for err in errors:
            console.print(f"[red]✗ {err}[/red]")
        console.print(f"\n[red bold]{len(errors)} validation error(s) found.[/red bold]")
        raise typer.Exit(1)


@config_app.command("show")
def config_show(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .clusterdash.yaml"),
) -> None:
    """Print resolved configuration."""
    config = _load(path)

    console.print(f"[bold]{config.dashboard.name}[/bold] v{config.dashboard.version}\n")

    probe = config.probe
    console.print("[bold]Probing:[/bold]")
    console.print(f"  Interval: {probe.interval}s  Concurrency: {probe.concurrency}")
    console.print(f"  Timeout: {probe.timeout}s  Cycle ceiling: {probe.cycle_ceiling}s")
    console.print(f"  Failure threshold: {probe.failure_threshold}\n")

    console.print("[bold]Discovery:[/bold]")
    if config.discovery.enabled:
        console.print(f"  Annotation: {config.discovery.annotation}")
        console.print(f"  Prefix: {config.discovery.prefix}\n")
    else:
        console.print("  disabled\n")

    console.print("[bold]Services:[/bold]")
    for entry in config.services:
        where = entry.url or f"{entry.target.namespace}/{entry.target.service}:{entry.target.port}"
        flags = "" if entry.enabled else " [dim](disabled)[/dim]"
        console.print(f"  {entry.id}: {entry.display_name} [{entry.category.value}] @ {where}{flags}")
        if entry.health_path:
            console.print(f"    Health: {entry.health_path}")


def main() -> None:
    app()
