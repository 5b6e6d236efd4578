"""Proxmox storage discovery and selection."""
from typing import Callable, List, Optional

from rich.prompt import Prompt
from rich.table import Table

from pvect.core.errors import SelectionCancelled, StorageError
from pvect.core.logger import console, get_logger
from pvect.core.runner import CommandRunner
from pvect.models.container import StoragePool

logger = get_logger(__name__)

StorageChooser = Callable[[List[StoragePool]], str]


def prompt_for_storage(pools: List[StoragePool]) -> str:
    """Ask the operator which storage pool to use.

    Raises:
        SelectionCancelled: Operator pressed Ctrl-C or closed stdin
    """
    table = Table(title="Storage Pools", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Storage")
    table.add_column("Type")
    table.add_column("Free", justify="right")
    for index, pool in enumerate(pools, start=1):
        table.add_row(str(index), pool.tag, pool.type, pool.free_human)
    console.print(table)

    choices = [pool.tag for pool in pools] + [str(i) for i in range(1, len(pools) + 1)]
    try:
        answer = Prompt.ask(
            "Which storage pool would you like to use for the container?",
            choices=choices,
            show_choices=False,
            console=console,
        )
    except (KeyboardInterrupt, EOFError) as e:
        raise SelectionCancelled("Storage selection cancelled.") from e

    if answer.isdigit() and answer not in {pool.tag for pool in pools}:
        return pools[int(answer) - 1].tag
    return answer


class StorageManager:
    """Lists container-capable storage and manages root volumes on it."""

    def __init__(self, runner: Optional[CommandRunner] = None, chooser: Optional[StorageChooser] = None):
        self.runner = runner or CommandRunner()
        self.chooser = chooser or prompt_for_storage

    def list_rootdir_storages(self) -> List[StoragePool]:
        """Storage pools with 'rootdir' content enabled."""
        output = self.runner.output(['pvesm', 'status', '-content', 'rootdir'],
                                    reason="Failed to list storage pools.")
        return self.parse_status(output)

    @staticmethod
    def parse_status(output: str) -> List[StoragePool]:
        """Parse 'pvesm status' output (header line skipped)."""
        pools = []
        for line in output.splitlines()[1:]:
            parts = line.split()
            if len(parts) < 2:
                continue
            numbers = []
            for value in parts[3:6]:
                numbers.append(int(value) if value.isdigit() else 0)
            while len(numbers) < 3:
                numbers.append(0)
            pools.append(StoragePool(
                tag=parts[0],
                type=parts[1],
                status=parts[2] if len(parts) > 2 else "unknown",
                total=numbers[0],
                used=numbers[1],
                available=numbers[2],
            ))
        return pools

    def select_storage(self, pools: Optional[List[StoragePool]] = None) -> StoragePool:
        """Reduce the eligible pools to exactly one.

        Raises:
            StorageError: No eligible pool
            SelectionCancelled: Operator cancelled the menu
        """
        if pools is None:
            logger.info("Fetching storage options for LXC containers.")
            pools = self.list_rootdir_storages()

        if not pools:
            logger.warning("'Container' needs to be selected for at least one storage location.")
            raise StorageError("Unable to detect valid storage location.")

        if len(pools) == 1:
            selected = pools[0]
        else:
            logger.info("Prompting user to select storage pool.")
            tag = self.chooser(pools)
            matches = [pool for pool in pools if pool.tag == tag]
            if not matches:
                raise SelectionCancelled(f"Invalid storage selection: {tag}")
            selected = matches[0]

        logger.info(f"Using '{selected.tag}' for storage location.")
        return selected

    def storage_type(self, storage: str) -> str:
        """Backend type of a single storage (dir, nfs, zfspool, lvmthin, ...)."""
        output = self.runner.output(['pvesm', 'status', '-storage', storage],
                                    reason=f"Failed to query storage '{storage}'.")
        pools = self.parse_status(output)
        if not pools:
            raise StorageError(f"Storage '{storage}' not found.")
        return pools[0].type

    def list_volumes(self, storage: str, ctid: int) -> List[str]:
        """Volume ids on a storage owned by a container ID."""
        result = self.runner.run(['pvesm', 'list', storage, '--vmid', str(ctid)], check=False)
        if result.returncode != 0:
            return []
        volumes = []
        for line in (result.stdout or "").splitlines()[1:]:
            parts = line.split()
            if parts and parts[0].startswith(f"{storage}:"):
                volumes.append(parts[0])
        return volumes

    def free_volume(self, volid: str) -> None:
        """Release a volume."""
        logger.info("Freeing up storage for the container.")
        self.runner.run(['pvesm', 'free', volid], reason=f"Failed to free volume {volid}.")
