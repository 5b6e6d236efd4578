"""Host-side provisioning sequence for one application container."""
from typing import Callable, List, Optional, Tuple

from pvect.core.config import PvectConfig, get_config
from pvect.core.errors import PvectError
from pvect.core.logger import get_logger
from pvect.core.recovery import RecoveryManager
from pvect.core.runner import CommandRunner
from pvect.models.app import AppDefinition
from pvect.models.container import ContainerSpec, NetworkConfig, ProvisionContext, ResourceKind
from pvect.services.guest_installer import ContainerExecutor, GuestInstaller, download_text
from pvect.services.proxmox.containers import ContainerLifecycle, TemplateManager
from pvect.services.proxmox.disk import DiskAllocator
from pvect.services.proxmox.host import HostManager
from pvect.services.proxmox.storage import StorageChooser, StorageManager

logger = get_logger(__name__)


class Provisioner:
    """Creates a container for an application and installs it.

    Each step reads and extends a ProvisionContext. Steps never clean up after
    themselves; the caller hands the context to rollback() on any failure.
    """

    def __init__(
        self,
        app: AppDefinition,
        runner: Optional[CommandRunner] = None,
        config: Optional[PvectConfig] = None,
        chooser: Optional[StorageChooser] = None,
        fetch: Callable[[str], str] = download_text,
    ):
        self.app = app
        self.config = config or get_config()
        self.runner = runner or CommandRunner()
        self.fetch = fetch

        self.host = HostManager(self.runner)
        self.storage = StorageManager(self.runner, chooser=chooser)
        self.disks = DiskAllocator(self.runner)
        self.templates = TemplateManager(self.runner)
        self.lifecycle = ContainerLifecycle(self.runner)
        self.recovery = RecoveryManager(self.lifecycle, self.storage)

    def steps(self) -> List[Tuple[str, Callable[[ProvisionContext], None]]]:
        return [
            ("prepare-host", self.prepare_host),
            ("select-storage", self.select_storage),
            ("allocate-id", self.allocate_id),
            ("fetch-template", self.fetch_template),
            ("allocate-rootfs", self.allocate_rootfs),
            ("create-container", self.create_container),
            ("link-localtime", self.link_localtime),
            ("start-container", self.start_container),
            ("install-app", self.install_app),
            ("read-address", self.read_address),
        ]

    def provision(self, context: ProvisionContext) -> ProvisionContext:
        """Run every step in order.

        Raises:
            PvectError: first failing step (context holds what was acquired)
        """
        logger.info(f"Starting {self.app.name} LXC container creation.")
        for name, step in self.steps():
            logger.debug(f"Step: {name}")
            step(context)
        logger.info(
            f"✓ Successfully created a {self.app.name} LXC container with ID "
            f"{context.ctid} at IP address {context.ip_address}"
        )
        return context

    def rollback(self, context: ProvisionContext) -> bool:
        return self.recovery.rollback(context)

    def prepare_host(self, context: ProvisionContext) -> None:
        for module in self.config.kernel_modules:
            self.host.load_module(module)

    def select_storage(self, context: ProvisionContext) -> None:
        context.storage = self.storage.select_storage()

    def allocate_id(self, context: ProvisionContext) -> None:
        context.ctid = self.lifecycle.next_free_id()
        logger.info(f"Generated container ID: {context.ctid}")

    def fetch_template(self, context: ProvisionContext) -> None:
        self.templates.update_catalog()
        template = self.templates.latest_template(self.config.template_prefix)
        context.template = self.templates.download_template(template, self.config.template_storage)

    def allocate_rootfs(self, context: ProvisionContext) -> None:
        storage = context.storage.tag
        storage_type = self.storage.storage_type(storage)
        context.record(ResourceKind.VOLUME, f"{storage}:")
        context.volume = self.disks.allocate(
            storage, storage_type, context.ctid,
            self.app.container.disk_size or self.config.disk_size,
        )
        self.disks.format(context.volume)

    def create_container(self, context: ProvisionContext) -> None:
        network = self.app.container.network
        context.spec = ContainerSpec(
            ctid=context.ctid,
            hostname=self.app.hostname,
            template=context.template,
            ostype=self.config.os_type,
            arch=self.host.architecture(),
            storage=context.storage.tag,
            rootfs=context.volume.volid,
            disk_size=context.volume.size,
            cores=self.app.container.cores,
            memory=self.app.container.memory,
            network=NetworkConfig(bridge=network.bridge, ip=network.ip, gateway=network.gateway),
        )
        context.record(ResourceKind.CONTAINER)
        self.lifecycle.create_container(context.spec)

    def link_localtime(self, context: ProvisionContext) -> None:
        logger.info("Mounting the LXC container to link localtime.")
        context.record(ResourceKind.MOUNT)
        rootfs = self.lifecycle.mount(context.ctid)
        self.host.link_localtime(rootfs)
        self.lifecycle.unmount(context.ctid)
        context.release(ResourceKind.MOUNT)

    def start_container(self, context: ProvisionContext) -> None:
        self.lifecycle.start_container(context.ctid)

    def install_app(self, context: ProvisionContext) -> None:
        logger.info(f"Running {self.app.name} setup inside the container.")
        executor = ContainerExecutor(self.lifecycle, context.ctid)
        GuestInstaller(self.app, executor, config=self.config, fetch=self.fetch).run()

    def read_address(self, context: ProvisionContext) -> None:
        context.ip_address = self.lifecycle.get_ip_address(context.ctid)
        if not context.ip_address:
            raise PvectError(f"Container {context.ctid} has no IPv4 address on eth0.")
