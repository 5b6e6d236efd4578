"""Subprocess wrapper shared by every host and guest operation."""
import shlex
import subprocess
from typing import Optional, Sequence

from pvect.core.errors import CommandError
from pvect.core.logger import get_logger

logger = get_logger(__name__)


class CommandRunner:
    """Runs external commands one at a time and fails fast on non-zero exit."""

    def run(
        self,
        cmd: Sequence[str],
        check: bool = True,
        reason: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command to completion.

        Args:
            cmd: Command and arguments
            check: Raise CommandError on non-zero exit
            reason: Message reported if the command fails

        Returns:
            CompletedProcess with decoded stdout/stderr

        Raises:
            CommandError: Command missing or exited non-zero (when check=True)
        """
        argv = [str(part) for part in cmd]
        logger.debug(f"Command: {shlex.join(argv)}")

        try:
            result = subprocess.run(argv, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            if not check:
                return subprocess.CompletedProcess(argv, 127, "", str(e))
            raise CommandError(argv, 127, str(e), reason) from e

        if result.stdout:
            logger.debug(result.stdout.rstrip())
        if result.stderr:
            logger.debug(result.stderr.rstrip())

        if check and result.returncode != 0:
            raise CommandError(argv, result.returncode, result.stderr, reason)

        return result

    def output(self, cmd: Sequence[str], reason: Optional[str] = None) -> str:
        """Run a command and return its stripped stdout."""
        return (self.run(cmd, reason=reason).stdout or "").strip()
