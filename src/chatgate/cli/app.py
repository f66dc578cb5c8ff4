"""Main CLI application using Typer."""

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from chatgate import __version__
from chatgate.config.loader import DEFAULT_CONFIG_PATH, load_config, save_config
from chatgate.config.schema import GatewayConfig
from chatgate.errors import ConfigError

# Create Typer app
app = typer.Typer(
    name="chatgate",
    help="chatgate - Conversational AI gateway with a tool-calling agent loop",
    no_args_is_help=True,
)

console = Console()


def _load(config_path: str | None) -> GatewayConfig:
    try:
        return load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def version():
    """Show chatgate version."""
    console.print(f"chatgate version {__version__}")


@app.command()
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    config_path: str = typer.Option(
        None, "--config", "-c", help=f"Where to write the config (default: {DEFAULT_CONFIG_PATH})"
    ),
):
    """Write a default configuration file."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}[/yellow]")
        console.print("Use [bold]--force[/bold] to overwrite.")
        raise typer.Exit(code=1)

    save_config(GatewayConfig(), path)
    console.print(f"[green]Wrote default config to {path}[/green]")


@app.command()
def models(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """List the models in the registry."""
    from chatgate.llm.registry import build_registry

    config = _load(config_path)
    try:
        registry = build_registry(
            config.models,
            include_builtin=config.include_builtin_models,
            unknown_provider=config.providers.unknown_provider,
            fallback_provider=config.providers.fallback_provider,
        )
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title="Models")
    table.add_column("Value", style="cyan")
    table.add_column("Label")
    table.add_column("Provider", style="magenta")
    table.add_column("Model ID")
    table.add_column("Tools", justify="center")
    table.add_column("Reasoning", justify="center")
    table.add_column("Multimodal", justify="center")

    def flag(value: bool) -> str:
        return "[green]yes[/green]" if value else "[dim]no[/dim]"

    for model in registry.list_models():
        table.add_row(
            model.value,
            model.label,
            model.provider,
            model.model_id,
            flag(model.supports_tools),
            flag(model.reasoning),
            flag(model.multimodal),
        )

    console.print(table)


@app.command()
def start(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
    host: str = typer.Option(None, "--host", help="Override server.host"),
    port: int = typer.Option(None, "--port", "-p", help="Override server.port"),
):
    """Start the chatgate API server."""
    import uvicorn

    from chatgate.server.app import create_app

    config = _load(config_path)
    if host:
        config.server.host = host
    if port:
        config.server.port = port

    logging.basicConfig(
        level=config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        app_instance = create_app(config)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]Starting chatgate server on {config.server.host}:{config.server.port}[/green]"
    )
    console.print("\nPress Ctrl+C to stop")

    uvicorn.run(
        app_instance,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
