"""orgrender CLI entrypoint.

Command-line interface for rendering org files through a supervised Emacs
daemon.
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path

import click

from orgrender.core.errors import (
    OrgRenderCliError,
    config_exists_error,
    daemon_not_ready_error,
    daemon_stop_failed_error,
    render_failed_error,
)
from orgrender.domain.exceptions import OrgRenderDomainError
from orgrender.version import __version__

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def handle_cli_errors(command_name: str):
    """Decorator to handle common CLI errors.

    Domain errors become OrgRenderCliError with their hint. Anything else
    is reported with a generic hint, with a traceback in verbose mode.

    Args:
        command_name: Name of the command for error messages.

    Returns:
        Decorated function with error handling.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (OrgRenderCliError, click.exceptions.Exit):
                raise
            except OrgRenderDomainError as e:
                raise OrgRenderCliError(e.message, hint=e.hint) from e
            except Exception as e:
                ctx = click.get_current_context()
                if ctx.obj.get("verbose", False):
                    import traceback

                    traceback.print_exc()
                raise OrgRenderCliError(
                    f"Unexpected error in {command_name}: {e}",
                    hint="Run with --verbose for more details",
                ) from e

        return wrapper

    return decorator


def _load_config(project_dir: Path):
    """Load merged global/local configuration for the project."""
    from orgrender.adapters.factory import ConfigFactory
    from orgrender.shared.config_io import CONFIG_DIR_NAME

    provider = ConfigFactory().create_config_provider()
    return provider.load(project_dir / CONFIG_DIR_NAME)


def _daemon_factory(ctx: click.Context, config=None):
    from orgrender.adapters.factory import DaemonFactory

    project_dir = ctx.obj["project"]
    config = config or _load_config(project_dir)
    if config.org.debug and not ctx.obj["verbose"]:
        # org.debug traces scripts and attempts at INFO
        logging.getLogger("orgrender").setLevel(logging.INFO)
    return DaemonFactory(config, project_dir=project_dir)


def parse_option(value: str) -> tuple[str, object]:
    """Parse a KEY=VALUE request option.

    "true"/"false" become booleans and integers become ints; everything
    else stays a string.

    Raises:
        click.BadParameter: If there is no "=" or the key is empty
    """
    key, sep, raw = value.partition("=")
    if not sep or not key.strip():
        raise click.BadParameter(f"expected KEY=VALUE, got '{value}'")

    parsed: object = raw
    if raw.lower() in ("true", "false"):
        parsed = raw.lower() == "true"
    else:
        try:
            parsed = int(raw)
        except ValueError:
            pass
    return key.strip(), parsed


@click.group()
@click.version_option(version=__version__, prog_name="orgrender")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-essential output.",
)
@click.option(
    "--project",
    "-p",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, project: Path | None) -> None:
    """orgrender - Render org files through a supervised Emacs daemon."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["project"] = (project or Path.cwd()).absolute()

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the rendered document here instead of stdout.",
)
@click.option(
    "--option",
    "options",
    multiple=True,
    help="Extra KEY=VALUE setting passed to the engine (repeatable).",
)
@click.pass_context
@handle_cli_errors("render")
def render(
    ctx: click.Context, source: Path, output: Path | None, options: tuple[str, ...]
) -> None:
    """Render SOURCE with the Emacs daemon."""
    from orgrender.core.render_session import RenderSession
    from orgrender.domain.entities import RenderRequest

    request = RenderRequest(
        source=source.absolute(),
        output=output.absolute() if output else None,
        options=dict(parse_option(o) for o in options),
    )

    factory = _daemon_factory(ctx)
    supervisor = factory.create_supervisor()
    client = factory.create_client(supervisor)

    with RenderSession(supervisor, client, quiet=ctx.obj["quiet"]) as session:
        result = session.render(request)

    if not result.ok:
        render_failed_error(source, result.error)

    if output is None:
        click.echo(result.content, nl=False)
    elif not ctx.obj["quiet"]:
        click.echo(f"✓ Rendered {source} -> {output}", err=True)


# Daemon management commands
@cli.group()
def daemon() -> None:
    """Manage the Emacs rendering daemon.

    The daemon stays resident between commands. 'render' starts one for
    the duration of a single render and stops it afterwards.
    """
    pass


@daemon.command()
@click.pass_context
@handle_cli_errors("daemon start")
def start(ctx: click.Context) -> None:
    """Start the daemon and wait until it answers."""
    from orgrender.core.progress import start_daemon_with_progress

    supervisor = _daemon_factory(ctx).create_supervisor()
    if not start_daemon_with_progress(supervisor, quiet=ctx.obj["quiet"]):
        daemon_not_ready_error()
    if not ctx.obj["quiet"]:
        click.echo(f"✓ Daemon '{supervisor.name}' is running")


@daemon.command()
@click.option(
    "--attempts",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Give up after this many kill attempts.",
)
@click.pass_context
@handle_cli_errors("daemon stop")
def stop(ctx: click.Context, attempts: int) -> None:
    """Stop the daemon."""
    from dataclasses import replace

    config = _load_config(ctx.obj["project"])
    config = replace(
        config, daemon=replace(config.daemon, stop_max_attempts=attempts)
    )
    supervisor = _daemon_factory(ctx, config).create_supervisor()

    if not supervisor.stop_and_wait():
        daemon_stop_failed_error(supervisor.name)
    if not ctx.obj["quiet"]:
        click.echo(f"✓ Daemon '{supervisor.name}' stopped")


@daemon.command()
@click.pass_context
@handle_cli_errors("daemon ping")
def ping(ctx: click.Context) -> None:
    """Check whether the daemon answers."""
    supervisor = _daemon_factory(ctx).create_supervisor()
    if supervisor.ping():
        click.echo(f"✓ Daemon '{supervisor.name}' is reachable")
        return
    click.echo(f"✗ Daemon '{supervisor.name}' is not reachable")
    ctx.exit(1)


# Config commands
@cli.group()
def config() -> None:
    """Inspect and create configuration files."""
    pass


@config.command(name="show")
@click.pass_context
@handle_cli_errors("config show")
def config_show(ctx: click.Context) -> None:
    """Print the effective (merged) configuration as TOML."""
    import tomli_w

    from orgrender.shared.config_io import config_to_data

    click.echo(tomli_w.dumps(config_to_data(_load_config(ctx.obj["project"]))))


@config.command(name="init")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file.")
@click.option(
    "--global", "-g", "use_global", is_flag=True, help="Create the global config."
)
@click.pass_context
@handle_cli_errors("config init")
def config_init(ctx: click.Context, force: bool, use_global: bool) -> None:
    """Create a commented config.toml with default values."""
    from orgrender.shared.config_io import (
        create_default_config_file,
        get_global_config_path,
        get_local_config_path,
    )

    path = (
        get_global_config_path()
        if use_global
        else get_local_config_path(ctx.obj["project"])
    )
    if path.exists() and not force:
        config_exists_error(path)

    create_default_config_file(path)
    if not ctx.obj["quiet"]:
        click.echo(f"✓ Created {path}")


@config.command(name="path")
@click.option(
    "--global", "-g", "show_global", is_flag=True, help="Show only global config path"
)
@click.option(
    "--local", "-l", "show_local", is_flag=True, help="Show only local config path"
)
@click.pass_context
@handle_cli_errors("config path")
def config_path(ctx: click.Context, show_global: bool, show_local: bool) -> None:
    """Print config file path(s) for use in scripts."""
    from orgrender.shared.config_io import (
        get_global_config_path,
        get_local_config_path,
    )

    global_path = get_global_config_path()
    local_path = get_local_config_path(ctx.obj["project"])

    if show_global:
        click.echo(global_path)
        return
    if show_local:
        click.echo(local_path)
        return

    click.echo(f"global:{global_path}")
    click.echo(f"local:{local_path}")


def main() -> int:
    """Main entrypoint for the CLI."""
    try:
        cli(obj={})
        return 0
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
