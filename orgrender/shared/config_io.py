"""Configuration I/O utilities for reading and writing TOML config files.

This module handles serialization/deserialization of OrgRenderConfig to/from
TOML format.
"""

import os
import platform
import tomllib  # Built-in Python 3.11+
from pathlib import Path
from typing import Any

import tomli_w

from orgrender.domain.config import (
    DEFAULT_COMMON_BLOCK,
    DaemonConfig,
    OrgConfig,
    OrgRenderConfig,
    RetryConfig,
)

CONFIG_DIR_NAME = ".orgrender"

# TOML has no null, so 0 stands for "unbounded" / "no timeout" in these keys
_ZERO_MEANS_NONE = ("stop_max_attempts", "ready_max_attempts", "attempt_timeout")


def get_global_config_path() -> Path:
    """Get the path to the global config file.

    The location is platform-dependent:
    - Linux/macOS: $XDG_CONFIG_HOME/orgrender/config.toml or
      ~/.config/orgrender/config.toml
    - Windows: %APPDATA%/orgrender/config.toml

    Returns:
        Path to the global config file (may not exist)
    """
    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "orgrender" / "config.toml"
        return Path.home() / ".config" / "orgrender" / "config.toml"
    else:
        xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
        if xdg_config:
            return Path(xdg_config) / "orgrender" / "config.toml"
        return Path.home() / ".config" / "orgrender" / "config.toml"


def get_local_config_path(project_dir: Path) -> Path:
    """Get the project config path (.orgrender/config.toml)."""
    return project_dir / CONFIG_DIR_NAME / "config.toml"


def load_config_data(path: Path) -> dict[str, Any]:
    """Load raw TOML data from a config file.

    Args:
        path: Path to config.toml file

    Returns:
        Dictionary with parsed TOML data

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in config file: {e}") from e


def merge_config_data(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge two config dictionaries, with override values taking precedence.

    Sections present in both are merged key by key; override keys win.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary (takes precedence)

    Returns:
        Merged configuration dictionary
    """
    result: dict[str, Any] = {}

    for section in set(base.keys()) | set(override.keys()):
        base_section = base.get(section, {})
        override_section = override.get(section, {})

        if isinstance(base_section, dict) and isinstance(override_section, dict):
            result[section] = {**base_section, **override_section}
        elif section in override:
            result[section] = override_section
        else:
            result[section] = base_section

    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] must be a table")
    return {
        key: (None if key in _ZERO_MEANS_NONE and value == 0 else value)
        for key, value in section.items()
    }


def config_data_to_orgrender_config(data: dict[str, Any]) -> OrgRenderConfig:
    """Convert raw config data dictionary to OrgRenderConfig.

    Args:
        data: Dictionary with config sections

    Returns:
        OrgRenderConfig instance

    Raises:
        ValueError: If a section has unknown keys or invalid values
    """
    try:
        return OrgRenderConfig(
            org=OrgConfig(**_section(data, "org")),
            daemon=DaemonConfig(**_section(data, "daemon")),
            retry=RetryConfig(**_section(data, "retry")),
        )
    except TypeError as e:
        # dataclass __init__ rejects unknown keys with TypeError
        raise ValueError(f"Invalid config: {e}") from e


def config_to_data(config: OrgRenderConfig) -> dict[str, Any]:
    """Convert OrgRenderConfig to a TOML-serializable dictionary."""
    daemon = config.daemon
    return {
        "org": {
            "emacs": config.org.emacs,
            "emacsclient": config.org.emacsclient,
            "cachedir": config.org.cachedir,
            "user_config": config.org.user_config,
            "theme": config.org.theme,
            "common": config.org.common,
            "htmlize": config.org.htmlize,
            "line_number": config.org.line_number,
            "debug": config.org.debug,
            "entry_point": config.org.entry_point,
        },
        "daemon": {
            "name": daemon.name,
            "stop_interval": daemon.stop_interval,
            "ready_interval": daemon.ready_interval,
            "stop_max_attempts": daemon.stop_max_attempts or 0,
            "ready_max_attempts": daemon.ready_max_attempts or 0,
            "attempt_timeout": daemon.attempt_timeout or 0,
        },
        "retry": {
            "retries": config.retry.retries,
            "factor": config.retry.factor,
            "min_timeout": config.retry.min_timeout,
            "max_timeout": config.retry.max_timeout,
            "randomize": config.retry.randomize,
        },
    }


def create_default_config_file(path: Path) -> None:
    """Create a default config.toml file with sensible defaults and comments.

    Args:
        path: Destination path for config.toml
    """
    common = tomli_w.dumps({"common": DEFAULT_COMMON_BLOCK}).strip()

    # We use a template string to preserve comments and formatting
    template = f"""\
# orgrender configuration
# Created by: orgrender config init

[org]
# Emacs binaries used for the daemon and for each request
emacs = "emacs"
emacsclient = "emacsclient"

# Cache directory used by the rendering engine
cachedir = "./hexo-org-cache/"

# Extra Emacs init file, relative to the project root ("" to skip)
user_config = ""

# Syntax highlighting theme ("" for the engine default)
theme = ""

# Org block prepended to every document
{common}

# Highlight source blocks with htmlize / show line numbers
htmlize = false
line_number = false

# Log generated scripts and every emacsclient attempt
debug = false

# Explicit path to hexo-renderer-org.el ("" searches emacs/ then node_modules/)
entry_point = ""

[daemon]
# Server name shared by emacs --daemon and emacsclient -s
name = "hexo-renderer-org"

# Seconds between kill attempts / readiness pings
stop_interval = 1.0
ready_interval = 0.1

# Attempt bounds (0 = unbounded)
stop_max_attempts = 0
ready_max_attempts = 0

# Kill a single emacsclient after this many seconds (0 = never)
attempt_timeout = 0

[retry]
# Attempts per render request and the exponential backoff between them
retries = 100
factor = 2.0
min_timeout = 0.1
max_timeout = 1.0
randomize = true
"""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write(template)
