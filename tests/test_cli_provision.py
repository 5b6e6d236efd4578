"""Tests for the provisioning CLI commands."""
import re

import pytest
from typer.testing import CliRunner

from pvect.cli import app

runner = CliRunner()

APT_INSTALL = ("pct", "exec", "100", "--", "env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "-y", "install")


class FakeResponse:
    text = "[Unit]\nDescription=JDownloader 2\n"

    def raise_for_status(self):
        pass


@pytest.fixture
def cli_host(fake_host, tmp_path, monkeypatch):
    """Fake host plus a stubbed unit file download, run from an empty directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        "pvect.services.guest_installer.requests.get",
        lambda url, timeout: FakeResponse(),
    )
    return fake_host


def test_create_success(cli_host, tmp_path):
    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 0, result.output
    assert "10.0.0.16" in result.output
    assert cli_host.containers[100] == "running"

    transcript = (tmp_path / "log" / "jdownloader2_container_debug.log").read_text()
    assert "Successfully created a jdownloader2 LXC container with ID 100" in transcript


def test_create_failure_rolls_back(cli_host, tmp_path):
    cli_host.fail_on(*APT_INSTALL, returncode=100)

    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 100
    assert "[ERROR]" in result.output
    assert "Installing prerequisites" in result.output
    assert 100 not in cli_host.containers
    assert cli_host.volumes["local-lvm"] == set()

    transcript = (tmp_path / "log" / "jdownloader2_container_debug.log").read_text()
    match = re.search(r"\[ERROR\] 100@(\d+) ", transcript)
    assert match and int(match.group(1)) > 0
    assert "Exiting with error code 100 at line" in transcript


def test_create_without_storage(cli_host):
    cli_host.storages = []

    result = runner.invoke(app, ["create", "jellyfin"])

    assert result.exit_code == 1
    assert "Unable to detect valid storage location." in result.output
    assert cli_host.commands("pvesh") == []


def test_create_custom_log_file(cli_host, tmp_path):
    log_file = tmp_path / "custom.log"

    result = runner.invoke(app, ["create", "jdownloader2", "--log-file", str(log_file), "--verbose"])

    assert result.exit_code == 0, result.output
    assert log_file.read_text().count("Command: pct create 100") == 1


def test_create_unknown_app(cli_host):
    result = runner.invoke(app, ["create", "plex"])

    assert result.exit_code == 1
    assert "Unknown app 'plex'" in result.output
    assert cli_host.calls == []


def test_create_invalid_config(cli_host, tmp_path):
    config = tmp_path / "bad.yml"
    config.write_text("disk: 8G\n")

    result = runner.invoke(app, ["create", "jdownloader2", "--config", str(config)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_setup_requires_root(cli_host, monkeypatch):
    monkeypatch.setattr("os.geteuid", lambda: 1000)

    result = runner.invoke(app, ["setup", "jdownloader2"])

    assert result.exit_code == 1
    assert "root" in result.output
    assert cli_host.calls == []


def test_setup_failure_reports_step(cli_host, tmp_path, monkeypatch):
    monkeypatch.setattr("os.geteuid", lambda: 0)
    cli_host.fail_on("locale-gen", returncode=2)

    result = runner.invoke(app, ["setup", "jdownloader2"])

    assert result.exit_code == 2
    assert "[ERROR:LXC]" in result.output
    transcript = (tmp_path / "log" / "jdownloader2_setup_debug.log").read_text()
    assert "Generating locale en_US.UTF-8" in transcript
    assert cli_host.commands("env") == []


def test_apps_listing():
    result = runner.invoke(app, ["apps"])

    assert result.exit_code == 0
    assert "jdownloader2" in result.output
    assert "jellyfin" in result.output


def test_create_failure_logs_command_stderr(cli_host, tmp_path):
    cli_host.fail_on(*APT_INSTALL, returncode=100, stderr="E: Unable to locate package openjdk-17-jre-headless")

    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 100
    transcript = (tmp_path / "log" / "jdownloader2_container_debug.log").read_text()
    assert "Unable to locate package openjdk-17-jre-headless" in transcript
    assert "Failed command: pct exec 100 -- env DEBIAN_FRONTEND=noninteractive apt-get -y install" in transcript


def test_transcript_holds_commands_without_verbose(cli_host, tmp_path):
    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 0, result.output
    transcript = (tmp_path / "log" / "jdownloader2_container_debug.log").read_text()
    assert "Command: pct create 100" in transcript
    assert "inet 10.0.0.16/24" in transcript


def test_create_staging_error_rolls_back(cli_host, tmp_path, monkeypatch):
    def no_space(*args, **kwargs):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("pvect.services.guest_installer.tempfile.NamedTemporaryFile", no_space)

    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 1
    transcript = (tmp_path / "log" / "jdownloader2_container_debug.log").read_text()
    assert "No space left on device" in transcript
    assert 100 not in cli_host.containers
    assert cli_host.volumes["local-lvm"] == set()


def test_create_unexpected_error_rolls_back(cli_host, monkeypatch):
    def broken(self, rootfs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr("pvect.services.proxmox.host.HostManager.link_localtime", broken)

    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 1
    assert "[ERROR]" in result.output
    assert 100 not in cli_host.containers
    assert cli_host.volumes["local-lvm"] == set()


def test_create_interrupted(cli_host, monkeypatch):
    original = cli_host._pct

    def interrupt_on_start(args):
        if args[0] == "start":
            raise KeyboardInterrupt
        return original(args)

    monkeypatch.setattr(cli_host, "_pct", interrupt_on_start)

    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 130
    assert "Script interrupted." in result.output
    assert 100 not in cli_host.containers
    assert cli_host.volumes["local-lvm"] == set()


def test_create_cancelled_menu(cli_host, monkeypatch):
    cli_host.storages = [("local-lvm", "lvmthin", 1000), ("fast", "lvmthin", 2000)]

    def cancel(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr("pvect.services.proxmox.storage.Prompt.ask", cancel)

    result = runner.invoke(app, ["create", "jdownloader2"])

    assert result.exit_code == 1
    assert "Storage selection cancelled." in result.output
    assert cli_host.commands("pvesh") == []
    assert cli_host.containers == {}
