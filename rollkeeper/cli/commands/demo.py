"""``rollkeeper demo`` — run a rollout against in-memory collaborators.

Registers a sample workload, records an initial rollout and then rolls
it forward to a new revision, either converging (committed) or never
converging (rolled back).
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from rollkeeper.cli.render import ResultRenderer
from rollkeeper.collaborators.memory import (
    InMemoryManifestStore,
    InMemoryOrchestrator,
    InMemoryRegistry,
)
from rollkeeper.core.controller import RolloutController
from rollkeeper.core.locks import WorkloadLockTable
from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.attempt import RolloutTrigger
from rollkeeper.models.config import ControllerConfig, RetryPolicy, VerificationPolicy
from rollkeeper.models.deployment import RolloutRecord

console = Console()

_REPOSITORY = "localhost:5000/sample-nestjs"
_WORKLOAD = "sample-nestjs"


def demo_cmd(
    revision: str = typer.Option("9314b46b0c1d2e3f", "--revision", help="Revision to roll out."),
    converge: bool = typer.Option(
        True,
        "--converge/--no-converge",
        help="Whether the workload becomes healthy on the new image.",
    ),
    replicas: int = typer.Option(1, "--replicas", help="Replica count of the sample workload."),
) -> None:
    """Roll the sample workload forward using in-memory collaborators."""
    initial = ArtifactReference(repository=_REPOSITORY, tag="00c0ffee")

    registry = InMemoryRegistry()
    registry.push(initial)
    orchestrator = InMemoryOrchestrator(converge_after=2 if converge else None)
    orchestrator.register_workload(_WORKLOAD, "default", initial, replicas=replicas)
    store = InMemoryManifestStore()
    store.write_if_unchanged(
        _WORKLOAD,
        RolloutRecord(workload_name=_WORKLOAD, applied_image=initial, revision_id="00c0ffee"),
        "",
    )

    controller = RolloutController(
        registry,
        orchestrator,
        store,
        config=ControllerConfig(
            repository=_REPOSITORY,
            retry=RetryPolicy(base_delay_seconds=0.01),
            verification=VerificationPolicy(poll_interval_seconds=0.05, timeout_seconds=0.5),
        ),
        lock_table=WorkloadLockTable(),
    )

    console.print()
    console.print(
        Panel(
            "[bold]rollkeeper demo[/bold]\n\n"
            f"Workload [cyan]default/{_WORKLOAD}[/cyan] runs {initial.image}.\n"
            f"Rolling out revision [cyan]{revision}[/cyan] "
            f"({'converging' if converge else 'never converging'}).",
            border_style="cyan",
            padding=(1, 2),
        )
    )

    result = controller.run(RolloutTrigger(revision=revision, workload_name=_WORKLOAD))
    ResultRenderer(console=console).print_result(result)

    intent = orchestrator.intent(_WORKLOAD, "default")
    console.print(f"[bold]Orchestrator desired image:[/bold] {intent.desired_image.image}")
    record, _ = store.read(_WORKLOAD)
    if record is not None:
        console.print(f"[bold]Recorded image:[/bold] {record.applied_image.image}")
    raise typer.Exit(code=int(result.exit_status))
