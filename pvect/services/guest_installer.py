"""Guest-side application installer.

Runs once inside a freshly created container, either locally (``pvect setup``)
or driven from the host through ``pct exec``/``pct push``. Steps:

- locale generation and OpenSSH removal
- package update/upgrade and the application's package list
- application-specific steps from its definition
- systemd unit installation and enablement
- console customization (MOTD, root autologin on the container getty)
- package cache cleanup
"""
import os
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import requests

from pvect.core.config import PvectConfig, get_config
from pvect.core.errors import GuestInstallError, PvectError
from pvect.core.logger import get_logger
from pvect.core.runner import CommandRunner
from pvect.models.app import AppDefinition, GuestStep
from pvect.services.proxmox.containers.lifecycle import ContainerLifecycle

logger = get_logger(__name__)

APT = ['env', 'DEBIAN_FRONTEND=noninteractive', 'apt-get']

GETTY_OVERRIDE = "/etc/systemd/system/container-getty@1.service.d/override.conf"
GETTY_OVERRIDE_CONTENT = """[Service]
ExecStart=
ExecStart=-/sbin/agetty --autologin root --noclear --keep-baud tty%I 115200,38400,9600 $TERM
"""


def download_text(url: str, timeout: Optional[int] = None) -> str:
    """Fetch a small text payload (unit files) over HTTP.

    Raises:
        PvectError: Network failure or non-2xx response
    """
    timeout = timeout or get_config().http_timeout
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise PvectError(f"Failed to download {url}: {e}") from e
    return response.text


class LocalExecutor:
    """Runs guest steps on the machine pvect itself runs on."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def run(self, command: List[str], reason: Optional[str] = None) -> None:
        self.runner.run(command, reason=reason)

    def write_file(self, path: str, content: str, perms: str = "0644") -> None:
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
            target.chmod(int(perms, 8))
        except OSError as e:
            raise PvectError(f"Failed to write {path}: {e}") from e


class ContainerExecutor:
    """Runs guest steps inside a container from the host."""

    def __init__(self, lifecycle: ContainerLifecycle, ctid: int):
        self.lifecycle = lifecycle
        self.ctid = ctid

    def run(self, command: List[str], reason: Optional[str] = None) -> None:
        self.lifecycle.exec_command(self.ctid, command, reason=reason)

    def write_file(self, path: str, content: str, perms: str = "0644") -> None:
        staged = None
        try:
            with tempfile.NamedTemporaryFile('w', prefix='pvect-', delete=False) as f:
                staged = f.name
                f.write(content)
        except OSError as e:
            if staged:
                Path(staged).unlink(missing_ok=True)
            raise PvectError(f"Failed to stage {path} for the container: {e}") from e
        try:
            self.lifecycle.exec_command(self.ctid, ['mkdir', '-p', str(Path(path).parent)],
                                        reason=f"Failed to create directory for {path}.")
            self.lifecycle.push_file(self.ctid, staged, path, perms=perms)
        finally:
            os.unlink(staged)


class GuestInstaller:
    """Installs one application inside a container, step by step."""

    def __init__(self, app: AppDefinition, executor, config: Optional[PvectConfig] = None,
                 fetch: Callable[[str], str] = download_text):
        self.app = app
        self.executor = executor
        self.config = config or get_config()
        self.fetch = fetch

    def steps(self) -> List[Tuple[str, Callable[[], None]]]:
        """Ordered (description, action) pairs."""
        plan = [
            (f"Generating locale {self.config.locale}", self.configure_locale),
            ("Purging OpenSSH client and server", self.purge_openssh),
            ("Updating container OS", self.update_os),
            (f"Installing prerequisites: {', '.join(self.app.packages)}", self.install_packages),
        ]
        for step in self.app.steps:
            plan.append((step.description, self._app_step(step)))
        plan.extend([
            (f"Installing {self.app.service} systemd service", self.install_service),
            ("Customizing container", self.customize_console),
            ("Cleanup", self.cleanup),
        ])
        return plan

    def run(self) -> None:
        """Run every step; the first failure aborts the installer.

        Raises:
            GuestInstallError: a step failed
        """
        logger.info(f"Starting {self.app.name} setup.")
        for description, action in self.steps():
            logger.info(description)
            try:
                action()
            except PvectError as e:
                raise GuestInstallError(description, e) from e
        logger.info(f"✓ {self.app.name} setup completed successfully.")

    def configure_locale(self) -> None:
        locale = self.config.locale
        self.executor.run(['sed', '-i', f'/{locale}/ s/\\(^# \\)//', '/etc/locale.gen'],
                          reason="Failed to uncomment locale.")
        self.executor.run(['locale-gen'], reason="Failed to generate locale.")

    def purge_openssh(self) -> None:
        self.executor.run(APT + ['-y', 'purge', 'openssh-client', 'openssh-server'],
                          reason="Failed to purge OpenSSH client/server.")
        self.executor.run(APT + ['-y', 'autoremove'],
                          reason="Failed to autoremove unnecessary packages.")

    def update_os(self) -> None:
        self.executor.run(APT + ['update'], reason="Failed to update package lists.")
        self.executor.run(APT + ['-y', 'upgrade'], reason="Failed to upgrade packages.")

    def install_packages(self) -> None:
        if not self.app.packages:
            return
        self.executor.run(APT + ['-y', 'install'] + list(self.app.packages),
                          reason="Failed to install prerequisites.")

    def _app_step(self, step: GuestStep) -> Callable[[], None]:
        def action() -> None:
            if step.command is not None:
                self.executor.run(list(step.command), reason=f"{step.description} failed.")
            elif step.shell is not None:
                self.executor.run(['bash', '-c', step.shell], reason=f"{step.description} failed.")
            else:
                self.executor.write_file(step.path, step.content)
        return action

    def install_service(self) -> None:
        if self.app.unit_url:
            logger.info(f"Downloading systemd service file for {self.app.service}.")
            unit = self.fetch(self.app.unit_url)
            self.executor.write_file(self.app.unit_path, unit)
        self.executor.run(['systemctl', 'daemon-reload'], reason="Failed to reload systemd daemon.")
        self.executor.run(['systemctl', 'enable', self.app.service],
                          reason=f"Failed to enable {self.app.service} service.")

    def customize_console(self) -> None:
        self.executor.run(['rm', '-f', '/etc/motd', '/etc/update-motd.d/10-uname'],
                          reason="Failed to remove MOTD files.")
        self.executor.run(['touch', '/root/.hushlogin'], reason="Failed to create ~/.hushlogin.")

        logger.info("Configuring container autologin for root.")
        self.executor.write_file(GETTY_OVERRIDE, GETTY_OVERRIDE_CONTENT)
        self.executor.run(['systemctl', 'daemon-reload'],
                          reason="Failed to reload systemd daemon after getty override.")
        getty_unit = Path(GETTY_OVERRIDE).parent.name[:-len('.d')]
        self.executor.run(['systemctl', 'restart', getty_unit], reason="Failed to restart getty service.")

    def cleanup(self) -> None:
        self.executor.run(APT + ['-y', 'clean'], reason="Failed to clean package cache.")
        self.executor.run(['bash', '-c', 'rm -rf /var/lib/apt/lists/*'],
                          reason="Failed to clean up package lists.")
