"""Loads bundled application definitions."""
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from pvect.core.errors import AppNotFoundError, PvectError
from pvect.core.logger import get_logger
from pvect.models.app import AppDefinition

logger = get_logger(__name__)


class AppLoader:
    """Loads and validates application YAML files."""

    def __init__(self, app_dir: Optional[Path] = None):
        """Initialize app loader.

        Args:
            app_dir: Directory containing app YAML files.
                     Defaults to pvect/apps/
        """
        if app_dir is None:
            self.app_dir = Path(__file__).parent.parent / "apps"
        else:
            self.app_dir = Path(app_dir)

    def available(self) -> List[str]:
        """Names of all bundled applications."""
        if not self.app_dir.exists():
            logger.warning(f"App directory not found: {self.app_dir}")
            return []
        return sorted(path.stem for path in self.app_dir.glob("*.yml"))

    def list_apps(self) -> List[AppDefinition]:
        """Load every valid application definition.

        Invalid files are skipped with a warning.
        """
        apps = []
        for name in self.available():
            try:
                apps.append(self.load_app(name))
            except PvectError as e:
                logger.warning(f"Failed to load app {name}: {e}")
        return apps

    def load_app(self, name: str) -> AppDefinition:
        """Load a specific application by name.

        Args:
            name: App name (e.g., 'jdownloader2', 'jellyfin')

        Returns:
            AppDefinition

        Raises:
            AppNotFoundError: No such app file
            PvectError: File is empty or fails validation
        """
        app_file = self.app_dir / f"{name}.yml"

        if not app_file.exists():
            known = ", ".join(self.available()) or "none"
            raise AppNotFoundError(f"Unknown app '{name}' (available: {known})")

        return self.load_app_file(app_file)

    def load_app_file(self, app_file: Path) -> AppDefinition:
        """Load an application definition from an explicit path."""
        with open(app_file) as f:
            data = yaml.safe_load(f)

        if not data:
            raise PvectError(f"Empty app file: {app_file}")

        try:
            app = AppDefinition(**data)
        except ValidationError as e:
            raise PvectError(f"Invalid app file {app_file}: {e}") from e

        if app.name != app_file.stem:
            raise PvectError(f"App name '{app.name}' does not match file name {app_file.name}")

        return app
