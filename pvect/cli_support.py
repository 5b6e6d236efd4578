"""Shared utilities for pvect CLI modules."""
from __future__ import annotations

import logging
import shlex
import traceback
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from pvect.core.app_loader import AppLoader
from pvect.core.config import PvectConfig, find_config, set_config
from pvect.core.errors import CommandError, PvectError
from pvect.models.app import AppDefinition

PACKAGE_DIR = str(Path(__file__).resolve().parent)

# Wrappers whose frames never identify the failing step
PASS_THROUGH = {"run", "output", "exec_command"}


def load_runtime_config(config_path: Optional[str] = None) -> PvectConfig:
    """Load settings from file (if any) over the environment and install them globally."""
    config_file = find_config(config_path)
    config = PvectConfig.from_file(config_file) if config_file else PvectConfig.from_env()
    set_config(config)
    return config


def load_app(name: str, console: Console) -> AppDefinition:
    """Load an application definition or exit with an error."""
    try:
        return AppLoader().load_app(name)
    except PvectError as e:
        print_error(console, str(e))
        raise typer.Exit(1) from e


def failure_line(exc: BaseException) -> int:
    """Source line of the step that failed.

    Walks to the innermost cause and returns the deepest pvect frame that
    is not a generic command wrapper; 0 if none is found.
    """
    chain: List[BaseException] = []
    current: Optional[BaseException] = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__

    for error in reversed(chain):
        for frame in reversed(traceback.extract_tb(error.__traceback__)):
            filename = str(Path(frame.filename).resolve())
            if not filename.startswith(PACKAGE_DIR) or filename.endswith("runner.py"):
                continue
            if frame.name in PASS_THROUGH:
                continue
            return frame.lineno or 0
    return 0


def failed_command(exc: BaseException) -> Optional[CommandError]:
    """Innermost CommandError in the cause chain, if any."""
    found = None
    seen: List[BaseException] = []
    current: Optional[BaseException] = exc
    while current is not None and current not in seen:
        seen.append(current)
        if isinstance(current, CommandError):
            found = current
        current = current.__cause__
    return found


def report_failure(exc: BaseException, console: Console, flag: str = "[ERROR]") -> int:
    """Print and log the error banner.

    Args:
        exc: Failure that ended the run
        console: Rich console for output
        flag: Banner tag; guest-side runs use [ERROR:LXC]

    Returns:
        Exit code to terminate with
    """
    if isinstance(exc, KeyboardInterrupt):
        exit_code = 130
        reason = "Script interrupted."
    elif isinstance(exc, PvectError):
        exit_code = exc.exit_code
        reason = str(exc) or "Unknown failure occurred."
    else:
        exit_code = 1
        reason = str(exc) or "Unknown failure occurred."

    line = failure_line(exc)

    console.print(f"[bright_red]{escape(flag)}[/bright_red] [yellow]{exit_code}@{line}[/yellow] {escape(reason)}")
    file_logger = logging.getLogger("pvect")
    file_logger.error(f"{flag} {exit_code}@{line} {reason}")
    command_error = failed_command(exc)
    if command_error is not None:
        file_logger.error(f"Failed command: {shlex.join(command_error.cmd)}")
        if command_error.stderr:
            file_logger.error(f"stderr: {command_error.stderr}")
    file_logger.error(f"Exiting with error code {exit_code} at line {line}")
    return exit_code


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting.

    Args:
        console: Rich console for output
        message: Success message
        prefix: Prefix symbol (default: ✓)
    """
    console.print(f"[green]{prefix}[/green] {escape(message)}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting.

    Args:
        console: Rich console for output
        message: Error message
        prefix: Prefix symbol (default: ✗)
    """
    console.print(f"[red]{prefix}[/red] {escape(message)}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    """Print warning message with consistent formatting."""
    console.print(f"[yellow]{prefix}[/yellow] {escape(message)}")
