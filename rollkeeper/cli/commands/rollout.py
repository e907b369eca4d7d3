"""``rollkeeper rollout REVISION`` — roll a workload forward to a revision.

Pushes the image for the revision with docker, applies it with kubectl,
waits for the Deployment to converge and records the result in the
manifest store. SIGINT/SIGTERM cancel the attempt between steps; after
the apply step a cancel still rolls the workload back.
"""

from __future__ import annotations

import signal
from pathlib import Path

import typer
from rich.console import Console

from rollkeeper.cli.render import ResultRenderer
from rollkeeper.collaborators.docker import DockerRegistry
from rollkeeper.collaborators.file_store import FileManifestStore
from rollkeeper.collaborators.kubectl import KubectlOrchestrator
from rollkeeper.config import RolloutSettings
from rollkeeper.core.controller import RolloutController
from rollkeeper.core.errors import AttemptInProgressError
from rollkeeper.core.locks import CancellationToken
from rollkeeper.core.production_guard import ProductionConfigError
from rollkeeper.core.result_log import ResultLog
from rollkeeper.models.attempt import RolloutTrigger

console = Console()


def rollout_cmd(
    revision: str = typer.Argument(..., help="Source revision (commit SHA) to roll out."),
    workload: str = typer.Option(..., "--workload", "-w", help="Deployment name."),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Kubernetes namespace."),
    repository: str = typer.Option(
        None, "--repository", "-r", help="Image repository (defaults to ROLLKEEPER_REPOSITORY)."
    ),
    source_image: str = typer.Option(
        None, "--source-image", help="Locally built image to tag and push."
    ),
    container: str = typer.Option(
        None, "--container", help="Container to update (defaults to the workload name)."
    ),
    manifests: Path = typer.Option(
        None, "--manifests", help="Manifest store directory (defaults to ROLLKEEPER_MANIFEST_PATH)."
    ),
) -> None:
    """Roll WORKLOAD forward to the image built from REVISION."""
    settings = RolloutSettings()
    overrides = {}
    if repository:
        overrides["repository"] = repository
    if manifests:
        overrides["manifest_path"] = manifests
    if container:
        overrides["kubectl_container"] = container
    if overrides:
        settings = settings.model_copy(update=overrides)

    try:
        controller = RolloutController(
            DockerRegistry(
                source_image,
                binary=settings.docker_binary,
                timeout_seconds=settings.command_timeout_seconds,
            ),
            KubectlOrchestrator(
                container=settings.kubectl_container,
                context=settings.kubectl_context,
                binary=settings.kubectl_binary,
                timeout_seconds=settings.command_timeout_seconds,
            ),
            FileManifestStore(settings.manifest_path),
            settings=settings,
            result_log=ResultLog(settings.result_log_path),
        )
    except (ProductionConfigError, ValueError) as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=78)

    token = CancellationToken()
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, lambda *_: token.cancel())

    trigger = RolloutTrigger(revision=revision, workload_name=workload, namespace=namespace)
    console.print(
        f"[bold cyan]Rolling out {revision} to {namespace}/{workload}...[/bold cyan]"
    )
    try:
        result = controller.run(trigger, cancel_token=token)
    except AttemptInProgressError as exc:
        console.print(f"[bold yellow]{exc.code}:[/bold yellow] {exc}")
        raise typer.Exit(code=int(exc.exit_status))

    ResultRenderer(console=console).print_result(result)
    raise typer.Exit(code=int(result.exit_status))
