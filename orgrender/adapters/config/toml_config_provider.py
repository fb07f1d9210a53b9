"""TOML-based configuration provider.

Loads configuration from .orgrender/config.toml with global config fallback.

Config loading priority (highest to lowest):
1. Local: .orgrender/config.toml (project-specific)
2. Global: ~/.config/orgrender/config.toml (user defaults)
3. Built-in defaults
"""

import logging
from pathlib import Path
from typing import Any

from orgrender.domain.config import OrgRenderConfig
from orgrender.shared.config_io import (
    config_data_to_orgrender_config,
    get_global_config_path,
    load_config_data,
    merge_config_data,
)

logger = logging.getLogger(__name__)


class TomlConfigProvider:
    """Configuration provider that loads from TOML files.

    Implements config cascade:
    1. Load global config (~/.config/orgrender/config.toml) if present
    2. Load local config (.orgrender/config.toml) if present
    3. Local values override global values (key-level merge per section)
    4. Missing values fall back to built-in defaults

    Gracefully handles missing or invalid configs with warnings.
    """

    def _apply(
        self, data: dict[str, Any], path: Path, label: str
    ) -> dict[str, Any]:
        """Merge one config file over data, skipping it if invalid."""
        if not path.exists():
            return data

        try:
            override = load_config_data(path)
            merged = merge_config_data(data, override)
            # Validate eagerly so a bad file is ignored as a whole
            config_data_to_orgrender_config(merged)
        except (FileNotFoundError, ValueError) as e:
            logger.warning(
                f"Failed to parse {label} config at {path}: {e}. Ignoring it."
            )
            return data

        logger.debug(f"Loaded {label} config from {path}")
        return merged

    def load(self, config_dir: Path) -> OrgRenderConfig:
        """Load configuration with global fallback.

        Args:
            config_dir: Path to .orgrender directory containing config.toml

        Returns:
            OrgRenderConfig instance with merged global/local values or defaults
        """
        data: dict[str, Any] = {}
        data = self._apply(data, get_global_config_path(), "global")
        data = self._apply(data, config_dir / "config.toml", "local")
        return config_data_to_orgrender_config(data)
