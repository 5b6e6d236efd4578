"""Exception hierarchy for provisioning runs."""
from typing import List, Optional, Sequence


class PvectError(Exception):
    """Base class for all provisioning failures.

    Attributes:
        exit_code: Process exit status the CLI propagates
    """

    exit_code: int = 1

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class CommandError(PvectError):
    """An external command returned non-zero."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: str = "", reason: str = None):
        self.cmd: List[str] = [str(part) for part in cmd]
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        self.reason = reason
        message = reason or f"Command failed: {' '.join(self.cmd)}"
        # Killed by a signal: report it the way a shell does
        exit_code = 128 - returncode if returncode < 0 else returncode or 1
        super().__init__(message, exit_code=exit_code)


class StorageError(PvectError):
    """No usable storage for container root disks."""


class TemplateError(PvectError):
    """No template matches the requested OS/version prefix."""


class SelectionCancelled(PvectError):
    """Operator cancelled an interactive selection."""


class AppNotFoundError(PvectError):
    """Unknown application name."""


class GuestInstallError(PvectError):
    """A guest installer step failed inside the container."""

    def __init__(self, step: str, cause: PvectError):
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}", exit_code=cause.exit_code)
