"""Factory classes for adapter instantiation.

This module centralizes the creation of the daemon supervisor, the render
client, and the config provider, keeping the CLI layer free from direct
adapter imports.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from orgrender.adapters.emacs.client import EmacsClientInvoker
    from orgrender.adapters.emacs.supervisor import EmacsDaemonSupervisor
    from orgrender.domain.config import OrgRenderConfig
    from orgrender.domain.exceptions import DaemonStartupError
    from orgrender.ports.config import ConfigProvider
    from orgrender.ports.process import ProcessRunner


class DaemonFactory:
    """Factory for the supervisor/client pair sharing one daemon.

    Args:
        config: OrgRenderConfig with org, daemon and retry settings.
        project_dir: Project root used to locate the engine entry point.
        runner: Process runner shared by supervisor and client.
    """

    def __init__(
        self,
        config: OrgRenderConfig,
        project_dir: Path | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self._config = config
        self._project_dir = project_dir
        self._runner = runner

    def create_supervisor(
        self, on_fatal: Callable[[DaemonStartupError], None] | None = None
    ) -> EmacsDaemonSupervisor:
        """Create a daemon supervisor.

        Args:
            on_fatal: Fatal-error hook (default: terminate the process)

        Returns:
            EmacsDaemonSupervisor instance.
        """
        from orgrender.adapters.emacs.supervisor import (
            EmacsDaemonSupervisor,
            terminate_host,
        )

        return EmacsDaemonSupervisor(
            self._config,
            project_dir=self._project_dir,
            runner=self._runner,
            on_fatal=on_fatal or terminate_host,
        )

    def create_client(self, supervisor: EmacsDaemonSupervisor) -> EmacsClientInvoker:
        """Create a render client bound to the supervisor's liveness state.

        Args:
            supervisor: Supervisor owning the daemon.

        Returns:
            EmacsClientInvoker instance.
        """
        from orgrender.adapters.emacs.client import EmacsClientInvoker

        return EmacsClientInvoker(self._config, supervisor, runner=self._runner)


class ConfigFactory:
    """Factory for creating configuration-related instances."""

    def create_config_provider(self) -> ConfigProvider:
        """Create a TomlConfigProvider instance.

        Returns:
            TomlConfigProvider instance.
        """
        from orgrender.adapters.config.toml_config_provider import TomlConfigProvider

        return TomlConfigProvider()
