"""Main Typer application — imports and registers all CLI commands.

Entry point: ``rollkeeper`` (configured via pyproject.toml console_scripts).

Commands: rollout, demo, status, history, tag.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console

from rollkeeper.cli.commands.demo import demo_cmd
from rollkeeper.cli.commands.rollout import rollout_cmd
from rollkeeper.cli.render import ResultRenderer
from rollkeeper.config import RolloutSettings

app = typer.Typer(
    name="rollkeeper",
    help="rollkeeper: build -> tag -> push -> apply -> verify -> record, safely.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

console = Console()


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (defaults to ROLLKEEPER_LOG_LEVEL)."
    ),
) -> None:
    """Configure logging for every command."""
    level = (log_level or RolloutSettings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
app.command(name="rollout", help="Roll a workload forward to a revision.")(rollout_cmd)
app.command(name="demo", help="Run a rollout against in-memory collaborators.")(demo_cmd)


@app.command(name="status", help="Show the recorded rollout for a workload.")
def status_cmd(
    workload: str = typer.Argument(..., help="Workload name."),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Kubernetes namespace."),
    manifests: Path = typer.Option(
        None, "--manifests", help="Manifest store directory (defaults to ROLLKEEPER_MANIFEST_PATH)."
    ),
) -> None:
    """Print the workload's current RolloutRecord and version token."""
    from rollkeeper.collaborators.file_store import FileManifestStore
    from rollkeeper.core.errors import ManifestCorruptError

    store = FileManifestStore(manifests or RolloutSettings().manifest_path)
    try:
        record, version = store.read(workload, namespace)
    except (ManifestCorruptError, ValueError) as exc:
        console.print(f"[bold red]Cannot read record:[/bold red] {exc}")
        raise typer.Exit(code=78)
    ResultRenderer(console=console).print_record(record, workload, version)


@app.command(name="history", help="List logged rollout results for a workload.")
def history_cmd(
    workload: str = typer.Argument(..., help="Workload name."),
    results_dir: Path = typer.Option(
        None, "--results", help="Result log directory (defaults to ROLLKEEPER_RESULT_LOG_PATH)."
    ),
) -> None:
    """Show every logged attempt for the workload, oldest first."""
    from rollkeeper.core.result_log import ResultLog

    log = ResultLog(results_dir or RolloutSettings().result_log_path)
    ResultRenderer(console=console).print_history(workload, log.list_results(workload))


@app.command(name="tag", help="Print the image tag derived from a revision.")
def tag_cmd(
    revision: str = typer.Argument(..., help="Source revision identifier."),
) -> None:
    """Print the deterministic tag for REVISION."""
    from rollkeeper.core.errors import InvalidRevisionError
    from rollkeeper.core.tagging import derive_tag

    try:
        console.print(derive_tag(revision), highlight=False)
    except InvalidRevisionError as exc:
        console.print(f"[bold red]{exc.code}:[/bold red] {exc}")
        raise typer.Exit(code=int(exc.exit_status))


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
