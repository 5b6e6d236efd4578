"""Tests for root volume allocation."""
import pytest

from pvect.core.errors import CommandError
from pvect.services.proxmox.disk import DiskAllocator, plan_volume


class TestVolumeNaming:
    """Disk names and volume ids per storage type."""

    @pytest.mark.parametrize("storage_type", ["dir", "nfs"])
    def test_file_backed_storage(self, storage_type):
        volume = plan_volume("local", storage_type, 105, "32G")

        assert volume.disk == "vm-105-disk-0.raw"
        assert volume.volid == "local:105/vm-105-disk-0.raw"
        assert volume.format == "raw"

    def test_zfs_pool(self):
        volume = plan_volume("local-zfs", "zfspool", 105, "32G")

        assert volume.disk == "subvol-105-disk-0"
        assert volume.volid == "local-zfs:subvol-105-disk-0"
        assert volume.format == "subvol"
        assert not volume.sparse_capable

    def test_block_storage(self):
        volume = plan_volume("local-lvm", "lvmthin", 105, "8G")

        assert volume.disk == "vm-105-disk-0"
        assert volume.volid == "local-lvm:vm-105-disk-0"
        assert volume.format == "raw"
        assert volume.size == "8G"


class TestAllocation:
    """pvesm alloc and formatting."""

    def test_allocate_uses_configured_size(self, fake_host):
        volume = DiskAllocator().allocate("local-lvm", "lvmthin", 100)

        assert volume.size == "32G"
        assert fake_host.commands("pvesm", "alloc") == [
            ["pvesm", "alloc", "local-lvm", "100", "vm-100-disk-0", "32G", "--format", "raw"]
        ]

    def test_format_non_zfs_volume(self, fake_host):
        allocator = DiskAllocator()
        volume = allocator.allocate("local-lvm", "lvmthin", 100, "8G")

        assert allocator.format(volume) is True
        assert fake_host.commands("mkfs.ext4") == [["mkfs.ext4", "/dev/pve/vm-100-disk-0"]]

    def test_zfs_volume_warns_and_skips_format(self, fake_host):
        fake_host.storages = [("local-zfs", "zfspool", 1000)]
        allocator = DiskAllocator()
        volume = allocator.allocate("local-zfs", "zfspool", 100, "8G")

        assert allocator.format(volume) is False
        assert fake_host.commands("mkfs.ext4") == []

    def test_format_failure_is_fatal(self, fake_host):
        fake_host.fail_on("mkfs.ext4")
        allocator = DiskAllocator()
        volume = allocator.allocate("local-lvm", "lvmthin", 100, "8G")

        with pytest.raises(CommandError) as exc_info:
            allocator.format(volume)

        assert "Failed to format the disk." in str(exc_info.value)

    def test_alloc_failure_is_fatal(self, fake_host):
        fake_host.fail_on("pvesm", "alloc", returncode=5)

        with pytest.raises(CommandError) as exc_info:
            DiskAllocator().allocate("local-lvm", "lvmthin", 100)

        assert exc_info.value.exit_code == 5
