"""CLI commands for code review."""

import asyncio
import json
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from gatekeep.config import DEFAULT_CONFIG_PATH, load_config
from gatekeep.providers.config import API_KEY_ENV, resolve_api_key
from gatekeep.providers.pydantic_ai import PydanticAIProvider
from gatekeep.review.models import ReviewReport
from gatekeep.review.render import NO_VIOLATIONS, render_file
from gatekeep.review.runner import ReviewPlan, ReviewRunner, ReviewRunResult

console = Console()


def review_command(
    project_root: Path,
    config_path: Path = DEFAULT_CONFIG_PATH,
    base: str = "",
    overrides: list[str] | None = None,
    api_key: str | None = None,
    max_parallel: int | None = None,
    dry_run: bool = False,
    output: Path | None = None,
    trace: Path | None = None,
    format: str = "human",
) -> int:
    """Run the configured rules against the repository's change-set.

    Args:
        project_root: Root directory of the repository
        config_path: gatekeep.toml to load
        base: Base to diff against ("" auto-detects, "ROOT" = whole repository)
        overrides: ``key.path=value`` config overrides
        api_key: API key (falls back to GATEKEEP_LLM_API_KEY)
        max_parallel: Overrides review.max_parallel_workers
        dry_run: Show the plan without calling the model
        output: Violation report file (.md or .json)
        trace: Trace file (.md or .json)
        format: Output format: "human" or "json"

    Returns:
        Exit code (0 = success, 1 = blocking violations, failed tasks or errors)
    """
    try:
        if not project_root.exists():
            _print_error(f"Project root does not exist: {project_root}", format)
            return 1

        config = load_config(config_path, overrides)

        provider = None
        if not dry_run:
            key = resolve_api_key(api_key)
            if config.llm.base_url and not key:
                _print_error(
                    f"API key required: pass --api-key or set {API_KEY_ENV}",
                    format,
                )
                return 1
            provider = PydanticAIProvider.from_config(config.llm, api_key=key)

        runner = ReviewRunner(project_root=project_root, config=config, provider=provider)
        result = asyncio.run(
            runner.run(
                base_spec=base,
                output=output,
                trace=trace,
                dry_run=dry_run,
                max_parallel=max_parallel,
            )
        )

        if format == "json":
            _output_json(result)
        elif result.report is None:
            _output_plan(result.plan)
        else:
            _output_human(result, result.report, show_violations=output is None)

        return result.exit_code

    except KeyboardInterrupt:
        if format == "human":
            console.print("\n[yellow]Review cancelled by user[/yellow]")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        _print_error(str(e), format)
        return 1


def render_command(input_path: Path, output: Path | None = None, format: str = "human") -> int:
    """Render a JSON report or trace as Markdown (to a file or the console).

    Returns:
        Exit code (0 = success, 1 = failure)
    """
    try:
        markdown = render_file(input_path)
        if output is not None:
            output.write_text(markdown, encoding="utf-8")
            if format == "human":
                console.print(f"[green]✓[/green] Rendered {input_path} to {output}")
            else:
                print(json.dumps({"input": str(input_path), "output": str(output)}))
        elif format == "json":
            print(json.dumps({"input": str(input_path), "markdown": markdown}))
        else:
            console.print(Markdown(markdown))
        return 0
    except Exception as e:
        _print_error(str(e), format)
        return 1


def _print_error(message: str, format: str) -> None:
    if format == "human":
        console.print(f"[red]Error:[/red] {message}")
    else:
        print(json.dumps({"error": message}))


def _output_json(result: ReviewRunResult) -> None:
    """Output the run as one JSON object."""
    payload = {
        "base": str(result.plan.base),
        "changed_files": result.plan.changed_files,
        "tasks": [
            {"worker_id": task.worker_id, "rule": task.rule.name, "files": list(task.files)}
            for task in result.plan.tasks
        ],
        "dry_run": result.dry_run,
        "report": result.report.model_dump(mode="json") if result.report else None,
        "exit_code": result.exit_code,
        "duration_ms": result.duration_ms,
    }
    print(json.dumps(payload, indent=2))


def _output_plan(plan: ReviewPlan) -> None:
    """Output a dry-run plan in human-readable format."""
    console.print(
        f"[bold]Base:[/bold] {plan.base}  "
        f"[bold]Changed files:[/bold] {len(plan.changed_files)}  "
        f"[bold]Tasks:[/bold] {len(plan.tasks)}"
    )
    if not plan.tasks:
        console.print("[dim]No rule matches any changed file.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Worker", justify="right", style="magenta")
    table.add_column("Rule", style="yellow")
    table.add_column("Blocking", justify="center")
    table.add_column("Files", style="cyan")
    for task in plan.tasks:
        table.add_row(
            task.worker_id,
            task.rule.name,
            "yes" if task.rule.blocking else "no",
            "\n".join(task.files),
        )
    console.print(table)


def _output_human(
    result: ReviewRunResult, report: ReviewReport, show_violations: bool = True
) -> None:
    """Output result in human-readable format."""

    if report.exit_code == 0:
        console.print(
            Panel(
                "[green]✓ Review passed[/green]",
                title="Code Review Result",
                border_style="green",
            )
        )
    else:
        console.print(
            Panel(
                "[red]✗ Review failed[/red]",
                title="Code Review Result",
                border_style="red",
            )
        )

    if report.partial:
        console.print(
            f"[yellow]Partial review:[/yellow] {report.cancelled} cancelled, "
            f"{report.not_started} not started"
        )

    console.print(
        f"Tasks: {report.completed} completed, {report.failed} failed, "
        f"{report.cancelled} cancelled"
    )

    if show_violations:
        if report.violations_by_file:
            table = Table(show_header=True, header_style="bold")
            table.add_column("File", style="cyan")
            table.add_column("Lines", justify="right", style="magenta")
            table.add_column("Rule", style="yellow")
            table.add_column("Detail")
            for file, by_rule in report.violations_by_file.items():
                for rule, violations in by_rule.items():
                    for violation in violations:
                        table.add_row(
                            file,
                            f"{violation.start_line}-{violation.end_line}",
                            rule,
                            violation.detail,
                        )
            console.print()
            console.print(table)
        else:
            console.print(f"\n[green]{NO_VIOLATIONS}[/green]")

    violated = {*report.blocking_rules_with_violations, *report.non_blocking_rules_with_violations}
    tips = {rule: tip for rule, tip in report.tips_by_rule.items() if rule in violated}
    if tips:
        console.print("\n[bold]Tips:[/bold]")
        for rule, tip in tips.items():
            console.print(f"  [yellow]{rule}[/yellow]: {tip}")

    for rule in report.blocking_rules_with_violations:
        console.print(f"[red]✗[/red] Blocking rule violated: {rule}")
    for rule in report.non_blocking_rules_with_violations:
        console.print(f"[yellow]![/yellow] Non-blocking rule violated: {rule}")

    # Usage and duration
    usage = report.usage
    console.print(
        f"\n[dim]Review completed in {result.duration_ms / 1000:.2f}s, "
        f"{usage.total_tokens} tokens over {usage.requests} request(s)[/dim]"
    )
    if usage.cost_usd:
        console.print(f"[dim]Estimated cost: ${usage.cost_usd:.4f}[/dim]")
