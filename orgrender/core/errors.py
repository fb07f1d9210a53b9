"""CLI error handling with actionable hints.

Provides consistent error formatting and common error factory functions
for all orgrender CLI commands.
"""

from pathlib import Path
from typing import NoReturn

import click

from orgrender.domain.entities import EngineError


class OrgRenderCliError(click.ClickException):
    """CLI error with actionable hint for users.

    Attributes:
        message: The primary error message.
        hint: Optional actionable suggestion for the user.

    Example:
        raise OrgRenderCliError(
            "Rendering failed",
            hint="Run with --verbose for more details",
        )
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        """Initialize the error with message and optional hint.

        Args:
            message: The primary error message.
            hint: Optional actionable suggestion for the user.
        """
        super().__init__(message)
        self.hint = hint

    def format_message(self) -> str:
        """Format the error message with hint if present.

        Returns:
            Formatted error message, with hint on a new line if provided.
        """
        msg = self.message
        if self.hint:
            msg += f"\nHint: {self.hint}"
        return msg


def render_failed_error(source: Path, error: EngineError | None) -> NoReturn:
    """Raise error when a document could not be rendered.

    Args:
        source: The org file that failed.
        error: Engine error carried by the render result.

    Raises:
        OrgRenderCliError: Always raises with debug hint.
    """
    reason = error.message if error else "unknown error"
    raise OrgRenderCliError(
        f"Failed to render {source}: {reason}",
        hint="Set org.debug = true in .orgrender/config.toml to trace attempts",
    )


def daemon_not_ready_error() -> NoReturn:
    """Raise error when the daemon never answered a ping.

    Raises:
        OrgRenderCliError: Always raises with ping hint.
    """
    raise OrgRenderCliError(
        "Daemon did not become ready",
        hint="Check 'orgrender daemon ping', or set org.debug = true",
    )


def daemon_stop_failed_error(name: str) -> NoReturn:
    """Raise error when the kill directive never succeeded.

    Args:
        name: Daemon server name.

    Raises:
        OrgRenderCliError: Always raises with ping hint.
    """
    raise OrgRenderCliError(
        f"Failed to stop daemon '{name}'",
        hint="The daemon may not be running. Check 'orgrender daemon ping'",
    )


def config_exists_error(path: Path) -> NoReturn:
    """Raise error when config init would overwrite a file.

    Args:
        path: The existing config file.

    Raises:
        OrgRenderCliError: Always raises with --force hint.
    """
    raise OrgRenderCliError(
        f"Config already exists at {path}",
        hint="Use --force to overwrite it",
    )
