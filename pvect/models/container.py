"""Container, storage and provisioning-run models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


IEC_UNITS = ['', 'K', 'M', 'G', 'T', 'P', 'E']


def format_iec(size_kib: int) -> str:
    """Format a KiB count as IEC bytes with two decimals (e.g. '12.34GB')."""
    size = float(size_kib) * 1024
    for unit in IEC_UNITS[:-1]:
        if size < 1024:
            return f"{size:.2f}{unit}B"
        size /= 1024
    return f"{size:.2f}{IEC_UNITS[-1]}B"


@dataclass
class StoragePool:
    """A storage entry reported by 'pvesm status -content rootdir'."""
    tag: str
    type: str
    status: str = "active"
    total: int = 0      # KiB
    used: int = 0       # KiB
    available: int = 0  # KiB

    @property
    def free_human(self) -> str:
        """Free space for display only."""
        return format_iec(self.available)


@dataclass
class RootVolume:
    """Root filesystem volume reserved for a container."""
    storage: str
    storage_type: str
    disk: str           # vm-100-disk-0.raw, subvol-100-disk-0, ...
    volid: str          # storage:[ref]disk
    size: str
    format: str

    @property
    def sparse_capable(self) -> bool:
        """ZFS subvolumes do not support fallocate."""
        return self.storage_type != "zfspool"


@dataclass
class NetworkConfig:
    """Network configuration for a container."""
    bridge: str = "vmbr0"
    ip: str = "dhcp"  # Can be "dhcp" or CIDR like "10.0.0.16/24"
    gateway: Optional[str] = None

    def to_net0(self) -> str:
        net = f"name=eth0,bridge={self.bridge},ip={self.ip}"
        if self.ip != "dhcp" and self.gateway:
            net += f",gw={self.gateway}"
        return net


@dataclass
class ContainerSpec:
    """Everything pct create needs, computed once per run."""
    ctid: int
    hostname: str
    template: str       # local:vztmpl/debian-12-standard_12.7-1_amd64.tar.zst
    ostype: str
    arch: str
    storage: str
    rootfs: str         # volume id
    disk_size: str
    cores: int = 2
    memory: int = 1024
    network: NetworkConfig = field(default_factory=NetworkConfig)
    onboot: bool = True
    features: str = "nesting=1"

    def to_pct_args(self) -> List[str]:
        """Build the 'pct create' argument vector."""
        return [
            'pct', 'create', str(self.ctid), self.template,
            '--arch', self.arch,
            '--features', self.features,
            '--hostname', self.hostname,
            '--net0', self.network.to_net0(),
            '--onboot', '1' if self.onboot else '0',
            '--cores', str(self.cores),
            '--memory', str(self.memory),
            '--ostype', self.ostype,
            '--rootfs', f"{self.rootfs},size={self.disk_size}",
            '--storage', self.storage,
        ]


class ResourceKind(Enum):
    """Resources a run can hold when it fails."""
    VOLUME = "volume"
    CONTAINER = "container"
    MOUNT = "mount"


@dataclass
class AcquiredResource:
    """One ledger entry."""
    kind: ResourceKind
    ctid: int
    detail: str = ""  # volume id or mount path


@dataclass
class ProvisionContext:
    """State threaded through one provisioning run.

    Values are filled in as steps complete; ``acquired`` lists what must be
    torn down, in acquisition order.
    """
    app: str
    storage: Optional[StoragePool] = None
    ctid: Optional[int] = None
    template: Optional[str] = None
    volume: Optional[RootVolume] = None
    spec: Optional[ContainerSpec] = None
    ip_address: Optional[str] = None
    acquired: List[AcquiredResource] = field(default_factory=list)

    def record(self, kind: ResourceKind, detail: str = "") -> None:
        if self.ctid is None:
            raise ValueError("Cannot record a resource before a container ID is allocated")
        self.acquired.append(AcquiredResource(kind=kind, ctid=self.ctid, detail=detail))

    def release(self, kind: ResourceKind) -> None:
        """Drop entries of a kind that were given back normally (e.g. unmount)."""
        self.acquired = [r for r in self.acquired if r.kind != kind]
