"""Application definition models for bundled installers."""
import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AppNetwork(BaseModel):
    """Default network attachment for an application's container."""

    model_config = ConfigDict(extra='forbid')

    bridge: str = "vmbr0"
    ip: str = "dhcp"  # "dhcp" or CIDR like "10.0.0.16/24"
    gateway: Optional[str] = None

    @field_validator('ip')
    @classmethod
    def validate_ip(cls, v):
        """Static addresses must carry a prefix length."""
        if v != 'dhcp' and not re.match(r'^\d{1,3}(\.\d{1,3}){3}/\d{1,2}$', v):
            raise ValueError(f"IP must be 'dhcp' or CIDR notation like '10.0.0.16/24'. Got: {v}")
        return v

    @model_validator(mode='after')
    def validate_gateway(self) -> 'AppNetwork':
        if self.ip == 'dhcp' and self.gateway:
            raise ValueError("Gateway only applies to static IP configuration")
        return self


class AppContainer(BaseModel):
    """Container sizing defaults."""

    model_config = ConfigDict(extra='forbid')

    hostname: Optional[str] = None
    cores: int = Field(2, ge=1)
    memory: int = Field(1024, ge=64, description="Memory in MB")
    disk_size: Optional[str] = Field(None, description="Overrides the configured disk size")
    network: AppNetwork = Field(default_factory=AppNetwork)

    @field_validator('disk_size')
    @classmethod
    def validate_disk_size(cls, v):
        if v is not None and not re.match(r'^\d+[KMGT]$', v):
            raise ValueError(f"Size must be in format like '8G', '512M'. Got: {v}")
        return v


class GuestStep(BaseModel):
    """One application-specific step run inside the container.

    Exactly one of ``command`` (argv), ``shell`` (bash -c script) or
    ``path`` + ``content`` (file write) must be given.
    """

    model_config = ConfigDict(extra='forbid')

    description: str
    command: Optional[List[str]] = None
    shell: Optional[str] = None
    path: Optional[str] = None
    content: Optional[str] = None

    @model_validator(mode='after')
    def validate_action(self) -> 'GuestStep':
        actions = [self.command is not None, self.shell is not None, self.path is not None]
        if sum(actions) != 1:
            raise ValueError(
                f"Step '{self.description}' must define exactly one of command, shell or path"
            )
        if self.command is not None and not self.command:
            raise ValueError(f"Step '{self.description}' has an empty command")
        if self.path is not None:
            if not self.path.startswith('/'):
                raise ValueError(f"File path must be absolute. Got: {self.path}")
            if self.content is None:
                raise ValueError(f"Step '{self.description}' writes {self.path} without content")
        elif self.content is not None:
            raise ValueError(f"Step '{self.description}' has content but no path")
        return self


class AppDefinition(BaseModel):
    """Complete definition of an installable application.

    Drives both phases: container sizing for the host provisioner and the
    package list, steps and service for the guest installer.
    """

    model_config = ConfigDict(extra='forbid')

    name: str = Field(..., description="App name (default container hostname)")
    description: Optional[str] = None
    packages: List[str] = Field(default_factory=list)
    steps: List[GuestStep] = Field(default_factory=list)
    service: str = Field(..., description="systemd unit enabled after install")
    unit_url: Optional[str] = Field(None, description="Remote unit file; omitted when the package ships one")
    container: AppContainer = Field(default_factory=AppContainer)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate name is a valid hostname."""
        if not re.match(r'^[a-z0-9]([a-z0-9\-]*[a-z0-9])?$', v):
            raise ValueError(
                f"Name '{v}' is not a valid hostname. "
                "Must be lowercase alphanumeric with hyphens, "
                "start and end with alphanumeric."
            )
        if len(v) > 63:
            raise ValueError(f"Name '{v}' is too long (max 63 characters)")
        return v

    @field_validator('packages')
    @classmethod
    def validate_packages(cls, v):
        """Validate package names."""
        for package in v:
            if not re.match(r'^[a-z0-9][a-z0-9\-\.+]*$', package):
                raise ValueError(
                    f"Package name '{package}' contains invalid characters. "
                    "Must be lowercase letters, numbers, hyphens, dots, and plus signs."
                )
        return v

    @field_validator('unit_url')
    @classmethod
    def validate_unit_url(cls, v):
        if v is not None and not v.startswith(('https://', 'http://')):
            raise ValueError(f"Unit URL must start with http:// or https://. Got: {v}")
        return v

    @property
    def hostname(self) -> str:
        return self.container.hostname or self.name

    @property
    def unit_path(self) -> str:
        return f"/etc/systemd/system/{self.service}.service"
