"""Configuration provider port.

Defines the interface for loading and accessing application configuration.
"""

from pathlib import Path
from typing import Protocol

from orgrender.domain.config import OrgRenderConfig


class ConfigProvider(Protocol):
    """Protocol for loading and providing configuration."""

    def load(self, config_dir: Path) -> OrgRenderConfig:
        """Load configuration from the project config directory.

        Args:
            config_dir: Path to .orgrender directory containing config.toml

        Returns:
            OrgRenderConfig instance with loaded or default values

        Note:
            Implementations should gracefully fall back to defaults
            if config file is missing or invalid.
        """
        ...
