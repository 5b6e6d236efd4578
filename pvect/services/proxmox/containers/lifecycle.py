"""Container lifecycle management (create, mount, start, exec, teardown)."""
import re
import subprocess
from typing import List, Optional

from pvect.core.errors import CommandError, PvectError
from pvect.core.logger import get_logger
from pvect.core.runner import CommandRunner
from pvect.models.container import ContainerSpec

logger = get_logger(__name__)

IPV4_PATTERN = re.compile(r'inet (\d{1,3}(?:\.\d{1,3}){3})/\d+')


class ContainerLifecycle:
    """Manages LXC container lifecycle operations through pct/pvesh."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def next_free_id(self) -> int:
        """Ask the cluster for the next free VMID."""
        value = self.runner.output(['pvesh', 'get', '/cluster/nextid'],
                                   reason="Failed to allocate a container ID.")
        value = value.strip().strip('"')
        if not value.isdigit():
            raise PvectError(f"Unexpected container ID from pvesh: {value!r}")
        return int(value)

    def create_container(self, spec: ContainerSpec) -> int:
        """Create the container described by spec.

        Raises:
            CommandError: pct create failed
        """
        cmd = spec.to_pct_args()
        logger.info(f"Creating the LXC container with ID {spec.ctid}.")
        self.runner.run(cmd, reason=f"Failed to create container {spec.ctid}.")
        logger.info(f"✓ Container {spec.ctid} ({spec.hostname}) created")
        return spec.ctid

    def mount(self, ctid: int) -> str:
        """Mount the container's rootfs on the host.

        Returns:
            Host path of the mounted rootfs

        Raises:
            CommandError: pct mount failed or printed no path
        """
        output = self.runner.output(['pct', 'mount', str(ctid)],
                                    reason=f"Failed to mount container {ctid}.")
        # mounted CT 100 in '/var/lib/lxc/100/rootfs'
        parts = output.split("'")
        if len(parts) < 2 or not parts[1]:
            raise CommandError(['pct', 'mount', str(ctid)], 1, output,
                               reason=f"Could not determine mount path for container {ctid}.")
        return parts[1]

    def unmount(self, ctid: int) -> None:
        self.runner.run(['pct', 'unmount', str(ctid)], reason=f"Failed to unmount container {ctid}.")

    def status(self, ctid: int) -> Optional[str]:
        """Container status ('running', 'stopped') or None if it does not exist."""
        result = self.runner.run(['pct', 'status', str(ctid)], check=False)
        if result.returncode != 0:
            return None
        # status: running
        parts = (result.stdout or "").split()
        return parts[1] if len(parts) > 1 else None

    def start_container(self, ctid: int) -> None:
        """Start a container.

        Raises:
            CommandError: pct start failed
        """
        logger.info("Starting the LXC container.")
        self.runner.run(['pct', 'start', str(ctid)], reason="Failed to start the LXC container.")
        logger.info(f"✓ Container {ctid} started")

    def stop_container(self, ctid: int) -> None:
        logger.info("Stopping the LXC container.")
        self.runner.run(['pct', 'stop', str(ctid)], reason=f"Failed to stop container {ctid}.")

    def destroy_container(self, ctid: int) -> None:
        logger.info("Destroying the LXC container.")
        self.runner.run(['pct', 'destroy', str(ctid)], reason=f"Failed to destroy container {ctid}.")

    def push_file(self, ctid: int, source: str, destination: str, perms: Optional[str] = None) -> None:
        """Copy a host file into the container.

        Raises:
            CommandError: pct push failed
        """
        cmd = ['pct', 'push', str(ctid), source, destination]
        if perms:
            cmd.extend(['--perms', perms])
        self.runner.run(cmd, reason=f"Failed to push {destination} into container {ctid}.")

    def exec_command(self, ctid: int, command: List[str], reason: Optional[str] = None) -> subprocess.CompletedProcess:
        """Run a command inside the container.

        Raises:
            CommandError: command exited non-zero
        """
        base_cmd = ['pct', 'exec', str(ctid), '--'] + list(command)
        return self.runner.run(base_cmd, reason=reason)

    def get_ip_address(self, ctid: int, interface: str = "eth0") -> Optional[str]:
        """First IPv4 address of an interface inside the container."""
        result = self.exec_command(ctid, ['ip', '-4', 'addr', 'show', 'dev', interface],
                                   reason=f"Failed to read {interface} address.")
        match = IPV4_PATTERN.search(result.stdout or "")
        return match.group(1) if match else None
