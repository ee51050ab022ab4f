"""gatekeep CLI application."""

from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint

import gatekeep as gatekeep_pkg
from gatekeep.config import DEFAULT_CONFIG_PATH, Template
from gatekeep.logging_setup import LOG_LEVEL_ENV, configure_logging
from gatekeep.providers.config import API_KEY_ENV


class OutputFormat(StrEnum):
    """Output format for CLI commands."""

    human = "human"
    json = "json"


app = typer.Typer(
    name="gatekeep",
    help="Rule-based AI code review for git change-sets.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    if value:
        rprint(f"gatekeep {gatekeep_pkg.__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            envvar=LOG_LEVEL_ENV,
            help="Log level (debug, info, warning, error).",
        ),
    ] = None,
) -> None:
    """gatekeep: review changed files against your rules with an LLM."""
    from dotenv import load_dotenv

    load_dotenv()
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e


ConfigOption = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to gatekeep.toml"),
]
FormatOption = Annotated[
    OutputFormat,
    typer.Option("--format", "-f", help="Output format"),
]


@app.command("init")
def init(
    config: ConfigOption = DEFAULT_CONFIG_PATH,
    override: Annotated[
        bool,
        typer.Option("--override", help="Replace an existing config file"),
    ] = False,
    template: Annotated[
        Template,
        typer.Option("--template", "-t", help="Starter rules to include"),
    ] = Template.fast,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Create a starter gatekeep.toml."""
    from gatekeep.cli.config_commands import init_command

    exit_code = init_command(
        config_path=config,
        template=template.value,
        override=override,
        format=format.value,
    )
    raise typer.Exit(exit_code)


@app.command("review")
def review(
    base: Annotated[
        str,
        typer.Option(
            "--base",
            "-b",
            help="Base to diff against: a ref, ^/~ relative to HEAD, or ROOT for the "
            "whole repository (default: HEAD with uncommitted changes, else HEAD^)",
        ),
    ] = "",
    config: ConfigOption = DEFAULT_CONFIG_PATH,
    config_override: Annotated[
        list[str] | None,
        typer.Option("--config-override", "-o", help="Override a config value (key.path=value)"),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", envvar=API_KEY_ENV, help="API key for the LLM endpoint"),
    ] = None,
    max_parallel_workers: Annotated[
        int | None,
        typer.Option("--max-parallel-workers", "-j", min=1, help="Tasks reviewed at once"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show the planned tasks without calling the model"),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", help="Write violations to a .md or .json file"),
    ] = None,
    trace: Annotated[
        Path | None,
        typer.Option("--trace", help="Write every conversation to a .md or .json file"),
    ] = None,
    format: FormatOption = OutputFormat.human,
    project_root: Annotated[
        Path | None,
        typer.Option("--project-root", "-p", help="Repository root directory"),
    ] = None,
) -> None:
    """Review the change-set against every rule in the config."""
    from gatekeep.review.cli import review_command

    root = project_root or Path.cwd()
    config_path = config if config.is_absolute() or project_root is None else root / config

    exit_code = review_command(
        project_root=root,
        config_path=config_path,
        base=base,
        overrides=config_override,
        api_key=api_key,
        max_parallel=max_parallel_workers,
        dry_run=dry_run,
        output=output,
        trace=trace,
        format=format.value,
    )
    raise typer.Exit(exit_code)


@app.command("render")
def render(
    input: Annotated[
        Path,
        typer.Option("--input", "-i", help="JSON violation report or trace"),
    ],
    output: Annotated[
        Path | None,
        typer.Option("--output", help="Markdown file to write (console if omitted)"),
    ] = None,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Render a JSON report or trace as Markdown."""
    from gatekeep.review.cli import render_command

    exit_code = render_command(input_path=input, output=output, format=format.value)
    raise typer.Exit(exit_code)


config_app = typer.Typer(help="Inspect the configuration.")
app.add_typer(config_app, name="config")


@config_app.callback(invoke_without_command=True)
def config_group(ctx: typer.Context) -> None:
    """Configuration tools."""
    if ctx.invoked_subcommand is None:
        rprint("Use [bold]gatekeep config validate[/bold].")
        rprint("Run [bold]gatekeep config --help[/bold] for details.")
        raise typer.Exit(0)


@config_app.command("validate")
def config_validate(
    config: ConfigOption = DEFAULT_CONFIG_PATH,
    format: FormatOption = OutputFormat.human,
) -> None:
    """Check that a config file loads and validates."""
    from gatekeep.cli.config_commands import validate_command

    exit_code = validate_command(config_path=config, format=format.value)
    raise typer.Exit(exit_code)
