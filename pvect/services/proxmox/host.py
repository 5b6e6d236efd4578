"""Host-side preparation: kernel modules, architecture, timezone."""
import os
from pathlib import Path
from typing import Optional

from pvect.core.errors import CommandError, PvectError
from pvect.core.logger import get_logger
from pvect.core.runner import CommandRunner

logger = get_logger(__name__)

MODULES_PATH = "/etc/modules"
LOCALTIME_PATH = "/etc/localtime"


class HostManager:
    """Queries and prepares the Proxmox host itself."""

    def __init__(self, runner: Optional[CommandRunner] = None, modules_path: Optional[str] = None,
                 localtime_path: Optional[str] = None):
        self.runner = runner or CommandRunner()
        self.modules_path = Path(modules_path or MODULES_PATH)
        self.localtime_path = Path(localtime_path or LOCALTIME_PATH)

    def load_module(self, module: str) -> None:
        """Load a kernel module now and register it to load at boot.

        Raises:
            CommandError: modprobe failed
            PvectError: /etc/modules could not be updated
        """
        logger.info(f"Loading kernel module: {module}")

        loaded = self.runner.output(['lsmod'], reason="Failed to list kernel modules.")
        if not any(line.split()[0] == module for line in loaded.splitlines()[1:] if line.strip()):
            self.runner.run(['modprobe', module], reason=f"Failed to load '{module}' kernel module.")

        existing = []
        if self.modules_path.exists():
            existing = [line.strip() for line in self.modules_path.read_text().splitlines()]

        if module not in existing:
            try:
                with open(self.modules_path, 'a') as f:
                    f.write(f"{module}\n")
            except OSError as e:
                raise PvectError(f"Failed to add '{module}' kernel module to load at boot: {e}") from e
            logger.debug(f"Added {module} to {self.modules_path}")

    def architecture(self) -> str:
        """Debian architecture of the host (e.g. 'amd64')."""
        return self.runner.output(['dpkg', '--print-architecture'],
                                  reason="Failed to detect host architecture.")

    def timezone_target(self) -> str:
        """Zone file the host's /etc/localtime points to."""
        try:
            return os.readlink(self.localtime_path)
        except OSError as e:
            raise PvectError(f"Failed to read {self.localtime_path}: {e}") from e

    def link_localtime(self, rootfs: str) -> None:
        """Point the mounted container's /etc/localtime at the host's zone file."""
        target = self.timezone_target()
        link = Path(rootfs) / "etc" / "localtime"
        logger.debug(f"Linking {link} -> {target}")
        try:
            if link.is_symlink() or link.exists():
                link.unlink()
            link.symlink_to(target)
        except OSError as e:
            raise CommandError(['ln', '-fs', target, str(link)], 1, str(e),
                               reason="Failed to link localtime into the container.") from e
