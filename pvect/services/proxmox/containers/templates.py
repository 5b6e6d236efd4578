"""Template management for Proxmox LXC containers."""
import re
from typing import List, Optional, Tuple

from pvect.core.config import get_config
from pvect.core.errors import TemplateError
from pvect.core.logger import get_logger
from pvect.core.runner import CommandRunner

logger = get_logger(__name__)


def version_key(name: str) -> Tuple:
    """Natural-order key over everything after the first '-'.

    'debian-12-standard_12.7-1_amd64.tar.zst' sorts after
    'debian-12-standard_12.2-1_amd64.tar.zst' and before '..._12.10-1...'.
    """
    tail = name.split('-', 1)[1] if '-' in name else name
    key = []
    for token in re.findall(r'\d+|\D+', tail):
        if token.isdigit():
            key.append((0, int(token), ''))
        else:
            key.append((1, 0, token))
    return tuple(key)


def select_latest(templates: List[str], prefix: str) -> str:
    """Version-highest template starting with the prefix.

    Raises:
        TemplateError: nothing matches
    """
    matches = [t for t in templates if t.startswith(prefix)]
    if not matches:
        raise TemplateError(f"No LXC template found matching '{prefix}'.")
    return max(matches, key=version_key)


class TemplateManager:
    """Manages Proxmox LXC templates (catalog refresh, selection, download)."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def update_catalog(self) -> None:
        """Refresh the template catalog (pveam update)."""
        logger.info("Updating the LXC template list.")
        self.runner.run(['pveam', 'update'], reason="Failed to update LXC template list.")

    def list_available_templates(self, section: Optional[str] = None) -> List[str]:
        """Template file names offered by the repository.

        Returns:
            e.g. ['debian-12-standard_12.7-1_amd64.tar.zst', 'ubuntu-24.04-standard_...']
        """
        section = section or get_config().template_section
        output = self.runner.output(['pveam', 'available', '-section', section],
                                    reason="Failed to list available LXC templates.")
        templates = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                templates.append(parts[-1])
        return templates

    def latest_template(self, prefix: Optional[str] = None) -> str:
        """Newest available template for an OS/version prefix (e.g. 'debian-12')."""
        prefix = prefix or get_config().template_prefix
        return select_latest(self.list_available_templates(), prefix)

    def download_template(self, template: str, storage: Optional[str] = None) -> str:
        """Download a template to template storage.

        Returns:
            Template volume reference (e.g. 'local:vztmpl/debian-12-standard_12.7-1_amd64.tar.zst')

        Raises:
            CommandError: pveam download failed
        """
        storage = storage or get_config().template_storage
        logger.info(f"Downloading the LXC template: {template}")
        self.runner.run(['pveam', 'download', storage, template],
                        reason=f"Failed to download LXC template: {template}")
        logger.info(f"✓ Downloaded template {template}")
        return self.template_volume(template, storage)

    @staticmethod
    def template_volume(template: str, storage: str) -> str:
        return f"{storage}:vztmpl/{template}"
