"""rollkeeper CLI — Typer-based command-line interface.

Provides the ``rollkeeper`` command with subcommands for rolling out a
revision, inspecting recorded rollouts and logged results, deriving
image tags, and running an in-memory demo.

All output uses Rich for formatted terminal display.
"""
