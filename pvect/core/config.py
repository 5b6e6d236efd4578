"""pvect runtime configuration and settings."""
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml

# Default settings file (optional)
CONFIG_PATHS = [
    "./pvect.yml",
    "/etc/pvect/pvect.yml",
]


@dataclass
class PvectConfig:
    """Runtime configuration for provisioning runs.

    Attributes:
        template_storage: Storage holding downloaded templates (default: local)
        os_type: Container OS type passed to pct (default: debian)
        os_version: Template prefix version (default: 12)
        template_section: pveam section to search (default: system)
        disk_size: Root volume size (default: 32G)
        filesystem: Filesystem created on non-ZFS volumes (default: ext4)
        locale: Locale enabled inside the guest (default: en_US.UTF-8)
        log_dir: Directory for per-run transcripts (default: /var/log)
        http_timeout: Timeout in seconds for unit file downloads (default: 30)
        kernel_modules: Host kernel modules loaded before provisioning
    """

    template_storage: str = "local"
    os_type: str = "debian"
    os_version: str = "12"
    template_section: str = "system"
    disk_size: str = "32G"
    filesystem: str = "ext4"
    locale: str = "en_US.UTF-8"
    log_dir: str = "/var/log"
    http_timeout: int = 30
    kernel_modules: List[str] = field(default_factory=lambda: ["overlay"])

    @property
    def template_prefix(self) -> str:
        """Template name prefix, e.g. 'debian-12'."""
        return f"{self.os_type}-{self.os_version}"

    def log_file(self, app: str, phase: str = "container") -> Path:
        """Transcript path for an application and phase."""
        return Path(self.log_dir) / f"{app}_{phase}_debug.log"

    @classmethod
    def from_env(cls) -> "PvectConfig":
        """Create config from environment variables.

        Environment variables:
            PVECT_TEMPLATE_STORAGE: Template storage
            PVECT_OS_TYPE / PVECT_OS_VERSION: Template OS selection
            PVECT_DISK_SIZE: Root volume size
            PVECT_LOG_DIR: Transcript directory
            PVECT_HTTP_TIMEOUT: HTTP timeout in seconds
            PVECT_KERNEL_MODULES: Comma-separated kernel modules

        Returns:
            PvectConfig instance with values from environment or defaults
        """
        config = cls()
        config.template_storage = os.getenv("PVECT_TEMPLATE_STORAGE", config.template_storage)
        config.os_type = os.getenv("PVECT_OS_TYPE", config.os_type)
        config.os_version = os.getenv("PVECT_OS_VERSION", config.os_version)
        config.disk_size = os.getenv("PVECT_DISK_SIZE", config.disk_size)
        config.log_dir = os.getenv("PVECT_LOG_DIR", config.log_dir)
        config.http_timeout = int(os.getenv("PVECT_HTTP_TIMEOUT", config.http_timeout))

        modules = os.getenv("PVECT_KERNEL_MODULES")
        if modules is not None:
            config.kernel_modules = [m.strip() for m in modules.split(",") if m.strip()]

        return config

    @classmethod
    def from_file(cls, path: str) -> "PvectConfig":
        """Create config from a YAML file layered over the environment.

        Args:
            path: YAML file with top-level keys matching the attributes

        Raises:
            FileNotFoundError: File does not exist
            ValueError: Unknown keys or malformed file
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")

        config = cls.from_env()
        for key, value in data.items():
            setattr(config, key, value)
        config.os_version = str(config.os_version)
        return config


def find_config(config_path: Optional[str] = None) -> Optional[str]:
    """Locate the active settings file, if any."""
    if config_path:
        return config_path

    if env_config := os.environ.get("PVECT_CONFIG"):
        return env_config

    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path

    return None


# Global config instance (can be overridden)
_config: Optional[PvectConfig] = None


def get_config() -> PvectConfig:
    """Get the global pvect configuration.

    Returns:
        PvectConfig instance (creates from environment if not set)
    """
    global _config
    if _config is None:
        _config = PvectConfig.from_env()
    return _config


def set_config(config: Optional[PvectConfig]):
    """Set the global pvect configuration.

    Args:
        config: PvectConfig instance to use globally (None resets to environment)
    """
    global _config
    _config = config
