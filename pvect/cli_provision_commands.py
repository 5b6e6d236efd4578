"""Provisioning CLI commands - create, setup, apps."""
from __future__ import annotations

import os
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from pvect.cli_support import (
    load_app,
    load_runtime_config,
    print_error,
    print_success,
    print_warning,
    report_failure,
)
from pvect.core.app_loader import AppLoader
from pvect.core.errors import SelectionCancelled
from pvect.core.logger import setup_file_logging
from pvect.core.provisioner import Provisioner
from pvect.models.container import ProvisionContext
from pvect.services.guest_installer import GuestInstaller, LocalExecutor


def register_provision_commands(app: typer.Typer, console: Console) -> None:
    """Attach provisioning commands to the main CLI."""

    @app.command("create")
    def create_command(
        name: str = typer.Argument(..., help="Application to provision (see 'pvect apps')."),
        config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML settings file."),
        log_file: Optional[str] = typer.Option(None, "--log-file", help="Transcript path."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every command to the transcript."),
    ) -> None:
        """Create an LXC container on this Proxmox host and install an application in it."""
        try:
            settings = load_runtime_config(config)
        except (OSError, ValueError) as e:
            print_error(console, f"Invalid configuration: {e}")
            raise typer.Exit(1) from e

        definition = load_app(name, console)
        setup_file_logging(log_file or str(settings.log_file(name, "container")), verbose=verbose)

        provisioner = Provisioner(definition, config=settings)
        context = ProvisionContext(app=name)

        try:
            provisioner.provision(context)
        except SelectionCancelled as e:
            print_warning(console, str(e))
            provisioner.rollback(context)
            raise typer.Exit(1) from e
        except (Exception, KeyboardInterrupt) as e:
            # Any failure after an ID is allocated must still be rolled back
            exit_code = report_failure(e, console)
            provisioner.rollback(context)
            raise typer.Exit(exit_code) from e

        print_success(
            console,
            f"Created {definition.name} container {context.ctid} at IP address {context.ip_address}",
        )

    @app.command("setup")
    def setup_command(
        name: str = typer.Argument(..., help="Application to install on this machine."),
        config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML settings file."),
        log_file: Optional[str] = typer.Option(None, "--log-file", help="Transcript path."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every command to the transcript."),
    ) -> None:
        """Install an application inside the container pvect is running in."""
        if os.geteuid() != 0:
            print_error(console, "setup must run as root inside the container")
            raise typer.Exit(1)

        try:
            settings = load_runtime_config(config)
        except (OSError, ValueError) as e:
            print_error(console, f"Invalid configuration: {e}")
            raise typer.Exit(1) from e

        definition = load_app(name, console)
        setup_file_logging(log_file or str(settings.log_file(name, "setup")), verbose=verbose)

        installer = GuestInstaller(definition, LocalExecutor(), config=settings)
        try:
            installer.run()
        except (Exception, KeyboardInterrupt) as e:
            raise typer.Exit(report_failure(e, console, flag="[ERROR:LXC]")) from e

        print_success(console, f"{definition.name} setup completed")

    @app.command("apps")
    def apps_command() -> None:
        """List installable applications."""
        apps = AppLoader().list_apps()
        if not apps:
            print_warning(console, "No applications available")
            raise typer.Exit(1)

        table = Table(show_header=True, header_style="bold")
        table.add_column("App")
        table.add_column("Description")
        table.add_column("Service")
        table.add_column("Network")
        for definition in apps:
            network = definition.container.network
            table.add_row(
                definition.name,
                definition.description or "",
                definition.service,
                f"{network.bridge} {network.ip}",
            )
        console.print(table)
