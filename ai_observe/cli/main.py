"""
CLI interface for AI Observe.

Provides command-line access to the completion gateway, metrics and the
live dashboard.
"""

import sys
from typing import Optional

import typer
import yaml
from rich.console import Console

from ai_observe.cli.dashboard import Dashboard, render_requests, render_stats, render_token_map
from ai_observe.config.loader import get_config, load_config, set_config
from ai_observe.core.aggregator import collect_metrics
from ai_observe.errors import ProviderError, StorageError, ValidationError
from ai_observe.logging_setup import configure_logging
from ai_observe.sdk.openai_client import ObservedOpenAI
from ai_observe.storage.repository import get_repository

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


def _print_missing_table_hint() -> None:
    console.print("\n[bold yellow]No call history found[/]")
    console.print("\nTo get started with AI Observe:")
    console.print("1. Run `ai-observe init` to initialize the database")
    console.print("2. Send a prompt with `ai-observe ask \"...\"`")
    console.print("3. Run this command again to see the metrics\n")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    )
):
    """AI Observe CLI."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    set_config(config)
    configure_logging(config.log_level)

    if ctx.invoked_subcommand is None:
        console.print("AI Observe - Use --help to see available commands")


@app.command()
def init():
    """Initialize the AI Observe database."""
    config = get_config()
    try:
        get_repository(config.db_path).initialize_schema()
    except StorageError as e:
        console.print(f"[red]Error initializing database:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Database initialized at {config.db_path}")


@app.command()
def models():
    """List the models available for prompts."""
    for model in get_config().models:
        console.print(model)


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Prompt text to send"),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        "-m",
        help="Model to use (defaults to the first configured model)"
    ),
    show_tokens: bool = typer.Option(
        True,
        "--tokens/--no-tokens",
        help="Show the token breakdown"
    )
):
    """
    Send a prompt and record its metrics.

    Every attempt is recorded, including failed ones.
    """
    config = get_config()
    model = model or config.models[0]
    repository = get_repository(config.db_path)

    try:
        repository.initialize_schema()
        result = ObservedOpenAI(repository=repository).complete(prompt, model)
    except ValidationError as e:
        console.print(f"[red]Invalid request:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    except ProviderError as e:
        console.print(f"[red]Error:[/] {e.message} ({e.latency_ms}ms)")
        sys.exit(EXIT_CODE_FAIL)
    except StorageError as e:
        console.print(f"[red]Storage error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    console.print("\n[bold]Response[/bold]")
    console.print(result.text, markup=False)
    console.print(
        f"\n[bold]Tokens In:[/bold] {result.tokens_in}  "
        f"[bold]Tokens Out:[/bold] {result.tokens_out}  "
        f"[bold]Latency:[/bold] {result.latency_ms}ms"
    )
    if show_tokens:
        console.print(render_token_map(result.breakdown, model))


@app.command()
def metrics(
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        help="Number of recent requests to list"
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the metrics snapshot as JSON"
    )
):
    """Show aggregate statistics and recent requests."""
    config = get_config()
    repository = get_repository(config.db_path)

    try:
        snapshot = collect_metrics(repository, limit or config.dashboard.recent_limit)
    except StorageError as e:
        if "no such table" in str(e).lower():
            _print_missing_table_hint()
            sys.exit(EXIT_CODE_OK)
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        console.print_json(data=snapshot.to_dict())
        return

    console.print("\n[bold]AI Observe Metrics[/bold]")
    console.print("-" * 40)
    console.print(render_stats(snapshot.stats))
    console.print()
    console.print(render_requests(snapshot.recent_requests))


@app.command()
def dashboard(
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between refreshes"
    ),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        help="Number of recent requests to list"
    ),
    once: bool = typer.Option(
        False,
        "--once",
        help="Render a single frame and exit"
    )
):
    """Show a live dashboard that refreshes on a fixed interval."""
    config = get_config()
    if interval is not None and interval <= 0:
        console.print("[red]Error:[/] --interval must be > 0")
        sys.exit(EXIT_CODE_FAIL)

    Dashboard(
        repository=get_repository(config.db_path),
        limit=limit or config.dashboard.recent_limit,
        interval=interval or config.dashboard.poll_interval,
        console=console
    ).run(once=once)


if __name__ == "__main__":
    app()
