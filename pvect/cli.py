#!/usr/bin/env python3
"""pvect CLI - application containers for Proxmox hosts."""

import typer
from rich.console import Console

from pvect.cli_provision_commands import register_provision_commands

app = typer.Typer(
    name="pvect",
    help="""pvect - one-shot application containers for Proxmox

Quick start:
  pvect apps                 # Show installable applications
  pvect create jellyfin      # Create a container and install Jellyfin
  pvect setup jdownloader2   # Install inside an existing container
""",
    add_completion=False,
)

console = Console()

register_provision_commands(app, console)

if __name__ == "__main__":
    app()
