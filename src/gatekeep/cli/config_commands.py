"""CLI commands for creating and checking gatekeep.toml."""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from gatekeep.config import Config, ConfigError, Template, load_config, write_template

console = Console()


def init_command(
    config_path: Path,
    template: str = "fast",
    override: bool = False,
    format: str = "human",
) -> int:
    """Write a starter config.

    Args:
        config_path: Where to write gatekeep.toml
        template: "fast" (one example rule) or "full" (preset rules)
        override: Replace an existing file
        format: Output format: "human" or "json"

    Returns:
        Exit code (0 = written, 1 = error)
    """
    try:
        write_template(config_path, Template(template), override=override)
    except (ConfigError, ValueError) as e:
        _print_error(str(e), format)
        return 1

    if format == "json":
        print(json.dumps({"config": str(config_path), "template": template}))
    else:
        console.print(f"[green]✓[/green] Created {config_path} from the {template} template")
        console.print("Edit its rules, then run [bold]gatekeep review[/bold].")
    return 0


def validate_command(config_path: Path, format: str = "human") -> int:
    """Load and validate a config file.

    Returns:
        Exit code (0 = valid, 1 = invalid)
    """
    try:
        config = load_config(config_path)
    except ConfigError as e:
        _print_error(e.message, format)
        return 1

    if format == "json":
        print(
            json.dumps(
                {
                    "config": str(config_path),
                    "valid": True,
                    "model": config.llm.model,
                    "rules": [rule.name for rule in config.rules],
                }
            )
        )
    else:
        _output_validate_human(config, config_path)
    return 0


def _print_error(message: str, format: str) -> None:
    if format == "human":
        console.print(f"[red]Error:[/red] {message}")
    else:
        print(json.dumps({"error": message}))


def _output_validate_human(config: Config, config_path: Path) -> None:
    console.print(f"[green]✓[/green] {config_path} is valid")
    console.print(f"[bold]Model:[/bold] {config.llm.model}")
    if config.llm.base_url:
        console.print(f"[bold]Endpoint:[/bold] {config.llm.base_url}")
    console.print(f"[bold]Max files per task:[/bold] {config.review.max_files_per_task}")
    if config.review.max_parallel_workers:
        console.print(f"[bold]Max parallel workers:[/bold] {config.review.max_parallel_workers}")

    if not config.rules:
        console.print("[yellow]No rules defined.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Rule", style="yellow")
    table.add_column("Scope", style="cyan")
    table.add_column("Blocking", justify="center")
    table.add_column("Files/task", justify="right")
    for rule in config.rules:
        table.add_row(
            rule.name,
            ", ".join(rule.scope),
            "yes" if rule.blocking else "no",
            str(rule.max_files_per_task or config.review.max_files_per_task),
        )
    console.print(table)
