"""Shared test fixtures for pvect tests."""
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest

from pvect.core.config import PvectConfig, set_config
from pvect.core.runner import CommandRunner
from pvect.models.app import AppDefinition

PVESM_HEADER = "Name             Type     Status           Total            Used       Available        %"

TEMPLATES = [
    "system          alpine-3.19-default_20240207_amd64.tar.xz",
    "system          debian-11-standard_11.7-1_amd64.tar.zst",
    "system          debian-12-standard_12.2-1_amd64.tar.zst",
    "system          debian-12-standard_12.7-1_amd64.tar.zst",
    "system          ubuntu-24.04-standard_24.04-2_amd64.tar.zst",
]


class FakeHost:
    """Stand-in for a Proxmox host's command-line tools.

    Installed in place of subprocess.run; keeps just enough state (containers,
    volumes) for lifecycle and rollback assertions.
    """

    def __init__(self, rootfs: Path):
        self.rootfs = rootfs
        self.calls: List[List[str]] = []
        self.storages: List[Tuple[str, str, int]] = [("local-lvm", "lvmthin", 52428800)]
        self.templates = list(TEMPLATES)
        self.containers: Dict[int, str] = {}
        self.volumes: Dict[str, Set[str]] = {}
        self.next_id = 100
        self.ip_output = (
            "2: eth0@if12: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500\n"
            "    inet 10.0.0.16/24 brd 10.0.0.255 scope global eth0\n"
        )
        self.failures: List[Tuple[Tuple[str, ...], int, str]] = []

    def fail_on(self, *prefix: str, returncode: int = 1, stderr: str = "boom") -> None:
        """Make every command starting with prefix exit non-zero."""
        self.failures.append((prefix, returncode, stderr))

    def commands(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if tuple(c[:len(prefix)]) == prefix]

    def __call__(self, cmd, capture_output=True, text=True, check=False, **kwargs):
        cmd = [str(part) for part in cmd]
        self.calls.append(cmd)

        for prefix, returncode, stderr in self.failures:
            if tuple(cmd[:len(prefix)]) == prefix:
                return subprocess.CompletedProcess(cmd, returncode, "", stderr)

        returncode, stdout = self._dispatch(cmd)
        stderr = "" if returncode == 0 else "error"
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    def _status_rows(self, only: Optional[str] = None) -> str:
        rows = [PVESM_HEADER]
        for tag, storage_type, available in self.storages:
            if only is None or tag == only:
                rows.append(f"{tag} {storage_type} active 104857600 1048576 {available} 1.00%")
        return "\n".join(rows) + "\n"

    def _dispatch(self, cmd: List[str]) -> Tuple[int, str]:
        tool = cmd[0]
        args = cmd[1:]

        if tool == "lsmod":
            return 0, "Module                  Size  Used by\nbridge  1 0\n"
        if tool == "dpkg":
            return 0, "amd64\n"
        if tool == "pvesh":
            return 0, f"{self.next_id}\n"
        if tool == "pveam":
            if args[0] == "available":
                return 0, "\n".join(self.templates) + "\n"
            return 0, ""
        if tool == "pvesm":
            return self._pvesm(args)
        if tool == "pct":
            return self._pct(args)
        return 0, ""

    def _pvesm(self, args: List[str]) -> Tuple[int, str]:
        action = args[0]
        if action == "status":
            if "-storage" in args:
                return 0, self._status_rows(args[args.index("-storage") + 1])
            return 0, self._status_rows()
        if action == "alloc":
            storage, ctid, disk = args[1], args[2], args[3]
            ref = f"{ctid}/" if any(t == storage and s in ("dir", "nfs") for t, s, _ in self.storages) else ""
            self.volumes.setdefault(storage, set()).add(f"{storage}:{ref}{disk}")
            return 0, f"successfully created '{storage}:{ref}{disk}'\n"
        if action == "path":
            return 0, f"/dev/pve/{args[1].split(':', 1)[1]}\n"
        if action == "list":
            storage, ctid = args[1], args[3]
            rows = ["Volid Format Type Size VMID"]
            for volid in sorted(self.volumes.get(storage, set())):
                if f"-{ctid}-" in volid:
                    rows.append(f"{volid} raw rootdir 34359738368 {ctid}")
            return 0, "\n".join(rows) + "\n"
        if action == "free":
            storage = args[1].split(":", 1)[0]
            self.volumes.get(storage, set()).discard(args[1])
            return 0, ""
        return 0, ""

    def _pct(self, args: List[str]) -> Tuple[int, str]:
        action, ctid = args[0], int(args[1])
        if action == "create":
            self.containers[ctid] = "stopped"
            return 0, ""
        if action == "status":
            if ctid not in self.containers:
                return 2, ""
            return 0, f"status: {self.containers[ctid]}\n"
        if action == "mount":
            return 0, f"mounted CT {ctid} in '{self.rootfs}'\n"
        if action == "start":
            self.containers[ctid] = "running"
            return 0, ""
        if action == "stop":
            self.containers[ctid] = "stopped"
            return 0, ""
        if action == "destroy":
            self.containers.pop(ctid, None)
            for volumes in self.volumes.values():
                for volid in [v for v in volumes if f"-{ctid}-" in v]:
                    volumes.discard(volid)
            return 0, ""
        if action == "exec" and args[3:5] == ["ip", "-4"]:
            return 0, self.ip_output
        return 0, ""


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Fresh global config per test, logging under tmp_path."""
    monkeypatch.setenv("PVECT_LOG_DIR", str(tmp_path / "log"))
    monkeypatch.delenv("PVECT_CONFIG", raising=False)
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def host_files(tmp_path, monkeypatch):
    """Redirect /etc/modules and /etc/localtime to temporary files."""
    modules = tmp_path / "modules"
    modules.write_text("")
    localtime = tmp_path / "localtime"
    localtime.symlink_to("/usr/share/zoneinfo/Europe/Stockholm")
    monkeypatch.setattr("pvect.services.proxmox.host.MODULES_PATH", str(modules))
    monkeypatch.setattr("pvect.services.proxmox.host.LOCALTIME_PATH", str(localtime))
    return modules, localtime


@pytest.fixture
def fake_host(tmp_path, monkeypatch, host_files):
    """Replace subprocess.run with a FakeHost."""
    rootfs = tmp_path / "rootfs"
    (rootfs / "etc").mkdir(parents=True)
    host = FakeHost(rootfs)
    monkeypatch.setattr("pvect.core.runner.subprocess.run", host)
    return host


@pytest.fixture
def runner():
    return CommandRunner()


@pytest.fixture
def config():
    return PvectConfig()


@pytest.fixture
def basic_app():
    """Small application definition."""
    return AppDefinition(
        name="demo",
        service="demo",
        packages=["curl"],
        unit_url="https://example.com/demo.service",
        steps=[{"description": "Creating demo user", "command": ["useradd", "demo"]}],
        container={"network": {"bridge": "vmbr1", "ip": "10.0.0.16/24", "gateway": "10.0.0.1"}},
    )


@pytest.fixture
def unit_fetch():
    """Fetch stub returning a fixed unit file and recording URLs."""
    fetched = []

    def fetch(url):
        fetched.append(url)
        return "[Unit]\nDescription=demo\n"

    fetch.urls = fetched
    return fetch
