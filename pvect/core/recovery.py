"""Rollback of resources acquired by a failed provisioning run."""
from typing import Optional

from pvect.core.errors import PvectError
from pvect.core.logger import get_logger
from pvect.models.container import AcquiredResource, ProvisionContext, ResourceKind
from pvect.services.proxmox.containers.lifecycle import ContainerLifecycle
from pvect.services.proxmox.storage import StorageManager

logger = get_logger(__name__)


class RecoveryManager:
    """Unwinds a run's ledger in reverse order.

    Every teardown checks the live state first, so running it twice (or after
    a step that never completed) is harmless.
    """

    def __init__(self, lifecycle: Optional[ContainerLifecycle] = None,
                 storage: Optional[StorageManager] = None):
        self.lifecycle = lifecycle or ContainerLifecycle()
        self.storage = storage or StorageManager()

    def rollback(self, context: ProvisionContext) -> bool:
        """Tear down everything recorded in the context.

        Returns:
            True if every teardown step succeeded
        """
        if not context.acquired:
            logger.debug("Nothing to roll back")
            return True

        logger.warning(f"Rolling back container {context.ctid}")

        success = True
        for resource in reversed(context.acquired):
            try:
                self._release(resource, context)
            except PvectError as e:
                logger.error(f"Rollback of {resource.kind.value} for {resource.ctid} failed: {e}")
                success = False

        if success:
            context.acquired = []
            logger.info("Rollback complete")
        else:
            logger.warning("Rollback completed with errors")

        return success

    def _release(self, resource: AcquiredResource, context: ProvisionContext) -> None:
        if resource.kind == ResourceKind.MOUNT:
            logger.info("Unmounting the LXC container.")
            self.lifecycle.unmount(resource.ctid)
        elif resource.kind == ResourceKind.CONTAINER:
            self._teardown_container(resource.ctid)
        elif resource.kind == ResourceKind.VOLUME:
            self._free_volume(resource, context)

    def _teardown_container(self, ctid: int) -> None:
        status = self.lifecycle.status(ctid)
        if status is None:
            logger.debug(f"Container {ctid} does not exist")
            return
        if status == "running":
            self.lifecycle.stop_container(ctid)
        self.lifecycle.destroy_container(ctid)

    def _free_volume(self, resource: AcquiredResource, context: ProvisionContext) -> None:
        storage, _, _ = resource.detail.partition(':')
        if not storage and context.storage:
            storage = context.storage.tag
        if not storage:
            return
        # pct destroy normally frees the rootfs already
        for volid in self.storage.list_volumes(storage, resource.ctid):
            self.storage.free_volume(volid)
