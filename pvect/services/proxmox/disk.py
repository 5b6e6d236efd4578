"""Root volume allocation for new containers."""
from typing import Optional

from pvect.core.config import get_config
from pvect.core.logger import get_logger
from pvect.core.runner import CommandRunner
from pvect.models.container import RootVolume

logger = get_logger(__name__)

# Storage types that hold flat image files under a per-VMID directory
FILE_BACKED_TYPES = ('dir', 'nfs')


def plan_volume(storage: str, storage_type: str, ctid: int, size: str) -> RootVolume:
    """Work out the disk name, volume id and format for a storage type.

    dir/nfs:  storage:<ctid>/vm-<ctid>-disk-0.raw (raw)
    zfspool:  storage:subvol-<ctid>-disk-0 (subvol)
    other:    storage:vm-<ctid>-disk-0 (raw)
    """
    prefix = "vm"
    ext = ""
    ref = ""
    disk_format = "raw"

    if storage_type in FILE_BACKED_TYPES:
        ext = ".raw"
        ref = f"{ctid}/"
    elif storage_type == "zfspool":
        prefix = "subvol"
        disk_format = "subvol"

    disk = f"{prefix}-{ctid}-disk-0{ext}"
    return RootVolume(
        storage=storage,
        storage_type=storage_type,
        disk=disk,
        volid=f"{storage}:{ref}{disk}",
        size=size,
        format=disk_format,
    )


class DiskAllocator:
    """Allocates and formats container root volumes via pvesm."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def allocate(self, storage: str, storage_type: str, ctid: int, size: Optional[str] = None) -> RootVolume:
        """Reserve the root volume.

        Raises:
            CommandError: pvesm alloc failed
        """
        size = size or get_config().disk_size
        volume = plan_volume(storage, storage_type, ctid, size)

        logger.info(f"Allocating storage for the container: {volume.disk}")
        self.runner.run(
            ['pvesm', 'alloc', storage, str(ctid), volume.disk, size, '--format', volume.format],
            reason="Failed to allocate storage for the container.",
        )
        return volume

    def format(self, volume: RootVolume) -> bool:
        """Create the filesystem on a freshly allocated volume.

        Returns:
            False when the backend cannot be formatted (ZFS subvolume), True otherwise

        Raises:
            CommandError: pvesm path or mkfs failed
        """
        if not volume.sparse_capable:
            logger.warning("Some containers may not work properly due to ZFS not supporting 'fallocate'.")
            return False

        filesystem = get_config().filesystem
        path = self.runner.output(['pvesm', 'path', volume.volid],
                                  reason=f"Failed to resolve path for {volume.volid}.")
        logger.info(f"Formatting disk as {filesystem}.")
        self.runner.run([f'mkfs.{filesystem}', path], reason="Failed to format the disk.")
        return True
