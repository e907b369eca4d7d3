"""Rich terminal rendering of rollout results and records.

Color scheme
------------
- green     : COMMITTED
- red       : FAILED
- magenta   : ROLLED_BACK
- yellow    : in-flight states (TAGGED .. VERIFYING)
- dim       : IDLE
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rollkeeper.models.attempt import AttemptState, ExitStatus, RolloutResult
from rollkeeper.models.deployment import RolloutRecord

_STATE_STYLES: dict[AttemptState, str] = {
    AttemptState.IDLE: "dim",
    AttemptState.TAGGED: "yellow",
    AttemptState.PUSHED: "yellow",
    AttemptState.APPLIED: "yellow",
    AttemptState.VERIFYING: "bold yellow",
    AttemptState.COMMITTED: "bold green",
    AttemptState.ROLLED_BACK: "bold magenta",
    AttemptState.FAILED: "bold red",
}

_BORDER_STYLES: dict[ExitStatus, str] = {
    ExitStatus.SUCCESS: "green",
    ExitStatus.ROLLED_BACK: "magenta",
    ExitStatus.DEGRADED: "bold red",
    ExitStatus.RETRYABLE_EXHAUSTED: "yellow",
    ExitStatus.FATAL_CONFIGURATION: "red",
}


def _styled_state(state: AttemptState) -> Text:
    return Text(state.value.upper(), style=_STATE_STYLES.get(state, ""))


class ResultRenderer:
    """Renders rollout results as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance. A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_result(self, result: RolloutResult) -> Panel:
        table = Table(show_header=True, header_style="bold", expand=True)
        table.add_column("#", justify="right", style="dim", width=3)
        table.add_column("From")
        table.add_column("To")
        table.add_column("At (UTC)", style="dim")
        table.add_column("Detail", overflow="fold")
        for idx, transition in enumerate(result.transitions, 1):
            table.add_row(
                str(idx),
                _styled_state(transition.from_state),
                _styled_state(transition.to_state),
                transition.at.strftime("%H:%M:%S"),
                transition.detail,
            )

        lines = [
            f"[bold]Workload:[/bold] {result.namespace}/{result.workload_name}",
            f"[bold]Revision:[/bold] {result.revision}",
            f"[bold]Final state:[/bold] {result.final_state.value}",
            f"[bold]Exit status:[/bold] {result.exit_status.name} ({int(result.exit_status)})",
        ]
        if result.applied_image:
            lines.append(f"[bold]Applied image:[/bold] {result.applied_image.image}")
        if result.previous_image:
            lines.append(f"[bold]Previous image:[/bold] {result.previous_image.image}")
        if result.error:
            lines.append(f"[red][bold]Error:[/bold] {result.error_code}: {result.error}[/red]")
        if result.rolled_back:
            lines.append("[magenta]Rolled back to the previous image.[/magenta]")
        if result.requires_intervention:
            lines.append(
                "[bold red]Workload may be degraded; manual intervention required.[/bold red]"
            )

        return Panel(
            Group(table, Text(""), Text.from_markup("\n".join(lines))),
            title=f"[bold]Rollout {result.attempt_id}[/bold]",
            border_style=_BORDER_STYLES.get(result.exit_status, "white"),
            padding=(1, 2),
        )

    def print_result(self, result: RolloutResult) -> None:
        self.console.print(self.render_result(result))

    def print_record(self, record: RolloutRecord | None, workload: str, version: str) -> None:
        if record is None:
            self.console.print(f"[dim]No rollout recorded for {workload}.[/dim]")
            return
        table = Table(title=f"Rollout record: {workload}", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Namespace", record.namespace)
        table.add_row("Applied image", record.applied_image.image)
        table.add_row("Revision", record.revision_id)
        table.add_row("Recorded at", record.timestamp.isoformat())
        table.add_row("Version", version)
        self.console.print(table)

    def print_history(self, workload: str, results: list[RolloutResult]) -> None:
        if not results:
            self.console.print(f"[dim]No results logged for {workload}.[/dim]")
            return
        table = Table(title=f"Rollout history: {workload}")
        table.add_column("Attempt", style="cyan")
        table.add_column("Started (UTC)", style="dim")
        table.add_column("Revision")
        table.add_column("State")
        table.add_column("Image")
        table.add_column("Error", overflow="fold")
        for result in results:
            table.add_row(
                result.attempt_id,
                result.started_at.strftime("%Y-%m-%d %H:%M:%S"),
                result.revision,
                _styled_state(result.final_state),
                result.applied_image.image if result.applied_image else "-",
                result.error_code or "",
            )
        self.console.print(table)
