"""Emacs daemon supervision (start/stop/readiness).

Starts the rendering engine as a named Emacs daemon, watches its exit and
error sentinel, and shuts it down through emacsclient.
"""

import logging
import os
import subprocess
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from orgrender.adapters.emacs.elisp import render_bootstrap, render_kill, render_ping
from orgrender.adapters.emacs.error_channel import SentinelFileChannel
from orgrender.adapters.emacs.liveness import DaemonLiveness
from orgrender.adapters.emacs.process import SubprocessRunner
from orgrender.domain.config import OrgRenderConfig
from orgrender.domain.entities import DaemonState
from orgrender.domain.exceptions import DaemonDeadError, DaemonStartupError
from orgrender.ports.error_channel import ErrorChannel
from orgrender.ports.process import ProcessHandle, ProcessRunner

logger = logging.getLogger(__name__)

ENTRY_POINT_NAME = "hexo-renderer-org.el"
EXIT_DAEMON_FATAL = 70  # EX_SOFTWARE


@dataclass
class DaemonHandle:
    """A started daemon instance.

    Attributes:
        name: Server name the daemon listens on
        process: The `emacs --daemon` launcher process
        liveness: Liveness cell shared with the supervisor
    """

    name: str
    process: ProcessHandle
    liveness: DaemonLiveness


def terminate_host(error: DaemonStartupError) -> None:
    """Default fatal-error hook: terminate the current process.

    Runs on whichever thread noticed the failure, so it exits with
    os._exit() after flushing log handlers instead of raising.

    Args:
        error: The fatal daemon error
    """
    logger.critical(f"Rendering daemon is dead, terminating: {error.message}")
    logging.shutdown()
    os._exit(EXIT_DAEMON_FATAL)


class EmacsDaemonSupervisor:
    """Supervisor for one named Emacs daemon.

    The supervisor is the only writer of the liveness state. It also serves
    as the read-only liveness view handed to clients: every is_dead() call
    first checks the error channel for a fatal record.
    """

    def __init__(
        self,
        config: OrgRenderConfig,
        project_dir: Path | None = None,
        runner: ProcessRunner | None = None,
        channel_factory: Callable[[], ErrorChannel] = SentinelFileChannel.create,
        on_fatal: Callable[[DaemonStartupError], None] = terminate_host,
    ):
        """Initialize supervisor.

        Args:
            config: Complete configuration
            project_dir: Root used to resolve the entry point and user config
                (default: current directory)
            runner: Process runner (default: SubprocessRunner)
            channel_factory: Allocates the error channel on start
            on_fatal: Called exactly once when the daemon reports a fatal error
        """
        self.config = config
        self.project_dir = project_dir or Path.cwd()
        self.runner = runner or SubprocessRunner()
        self._channel_factory = channel_factory
        self._on_fatal = on_fatal

        self._liveness = DaemonLiveness()
        self._channel: ErrorChannel | None = None
        self._handle: DaemonHandle | None = None
        self._observer: threading.Thread | None = None
        self._launcher_exit: int | None = None
        self._start_lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def name(self) -> str:
        return self.config.daemon.name

    @property
    def state(self) -> DaemonState:
        return self._liveness.state

    @property
    def handle(self) -> DaemonHandle | None:
        return self._handle

    @property
    def owns_daemon(self) -> bool:
        """Whether this supervisor's launcher brought the daemon up.

        False before start(), after a successful stop, and when the launcher
        exited non-zero (usually because a daemon with this name was already
        running). True while the launcher is pending or after a clean exit.
        """
        return self._handle is not None and self._launcher_exit in (None, 0)

    def is_dead(self) -> bool:
        """Check if the daemon is permanently unusable.

        Returns:
            True once the daemon has been marked dead
        """
        if not self._liveness.is_dead():
            self._check_error_channel()
        return self._liveness.is_dead()

    # =========================================================================
    # Start
    # =========================================================================

    def locate_entry_point(self) -> Path:
        """Find hexo-renderer-org.el.

        An explicit org.entry_point wins. Otherwise the project's own emacs/
        directory is checked before the copy shipped in node_modules.

        Returns:
            Absolute path to the entry point

        Raises:
            DaemonStartupError: If no candidate exists
        """
        configured = self.config.org.entry_point
        if configured:
            candidates = [self.project_dir / configured]
        else:
            candidates = [
                self.project_dir / "emacs" / ENTRY_POINT_NAME,
                self.project_dir
                / "node_modules"
                / "hexo-renderer-org"
                / "emacs"
                / ENTRY_POINT_NAME,
            ]

        for candidate in candidates:
            if candidate.is_file():
                return candidate.absolute()

        searched = ", ".join(str(c) for c in candidates)
        raise DaemonStartupError(
            f"Cannot find {ENTRY_POINT_NAME} (searched: {searched})",
            hint="Install hexo-renderer-org or set org.entry_point in config.toml",
        )

    def resolve_user_config(self) -> str:
        """Return the user init file as an absolute path, or "" if unset."""
        user_config = self.config.org.user_config
        if not user_config:
            return ""
        return os.path.abspath(
            os.path.join(self.project_dir, os.path.normpath(user_config))
        )

    def start(self) -> DaemonHandle:
        """Start the daemon.

        Calling start() again while the daemon is starting or alive returns
        the existing handle.

        Returns:
            Handle for the spawned daemon

        Raises:
            DaemonDeadError: If the daemon was already marked dead
            DaemonStartupError: If the daemon cannot be spawned
        """
        with self._start_lock:
            if self._liveness.is_dead():
                raise DaemonDeadError(
                    f"Daemon '{self.name}' is dead",
                    hint="Create a new supervisor to start it again",
                )
            if self._handle is not None:
                return self._handle

            org = self.config.org
            entry_point = self.locate_entry_point()

            try:
                channel = self._channel_factory()
            except OSError as e:
                raise DaemonStartupError(
                    f"Failed to allocate error sentinel: {e}"
                ) from e

            script = render_bootstrap(
                org,
                debug_file=channel.location,
                entry_point=entry_point,
                user_config=self.resolve_user_config(),
            )
            if org.debug:
                logger.info(f"emacs: {org.emacs}")
                logger.info(f"bootstrap script: {script}")

            args = [org.emacs, "-Q", f"--daemon={self.name}", "--eval", script]

            self._liveness.mark_starting()
            try:
                process = self.runner.spawn(args)
            except OSError as e:
                self._liveness.mark_dead()
                channel.discard()
                raise DaemonStartupError(
                    f"Failed to start daemon with '{org.emacs}': {e}",
                    hint="Check that org.emacs points to an Emacs binary",
                ) from e

            logger.info(f"Started Emacs daemon '{self.name}' (PID {process.pid})")
            self._channel = channel
            self._handle = DaemonHandle(self.name, process, self._liveness)

            self._observer = threading.Thread(
                target=self._observe_exit,
                args=(process,),
                name=f"{self.name}-exit-observer",
                daemon=True,
            )
            self._observer.start()
            return self._handle

    def _observe_exit(self, process: ProcessHandle) -> None:
        returncode = process.wait()
        self._on_daemon_exit(returncode)

    def _on_daemon_exit(self, returncode: int) -> None:
        """Handle the exit of the `emacs --daemon` launcher.

        The launcher exits once the daemon has forked and evaluated the
        bootstrap script, so a clean exit means the daemon is up.
        """
        self._launcher_exit = returncode
        if self._check_error_channel():
            return

        if returncode == 0:
            logger.debug(f"Daemon launcher for '{self.name}' exited cleanly")
            self._liveness.mark_alive()
        else:
            # Also happens when a daemon with this name is already running
            logger.warning(
                f"Daemon launcher for '{self.name}' exited with code {returncode}"
            )

    def _check_error_channel(self) -> bool:
        """Mark the daemon dead if the error channel holds a fatal record.

        Returns:
            True if a fatal record was found
        """
        channel = self._channel
        if channel is None:
            return False

        error = channel.read_error()
        if error is None:
            return False

        if self._liveness.mark_dead():
            logger.error(f"Emacs daemon '{self.name}' failed: {error.message}")
            self._on_fatal(
                DaemonStartupError(
                    error.message,
                    hint=f"See the error record at {channel.location}",
                )
            )
        return True

    # =========================================================================
    # Directives
    # =========================================================================

    def _run_client(self, script: str) -> bool:
        args = [self.config.org.emacsclient, "-s", self.name, "-e", script]
        try:
            return self.runner.run(args, timeout=self.config.daemon.attempt_timeout) == 0
        except OSError as e:
            logger.warning(f"Failed to run {args[0]}: {e}")
            return False
        except subprocess.TimeoutExpired:
            logger.warning(f"{args[0]} timed out talking to '{self.name}'")
            return False

    def ping(self) -> bool:
        """Send a single no-op directive to the daemon.

        Returns:
            True if the daemon answered
        """
        return self._run_client(render_ping())

    def wait_until_ready(self) -> bool:
        """Block the calling thread until the daemon answers a ping.

        Polls every daemon.ready_interval seconds. Unbounded unless
        daemon.ready_max_attempts is set.

        Returns:
            True if the daemon is reachable, False if it is dead, the wait
            was cancelled, or the attempt bound was reached
        """
        daemon = self.config.daemon
        attempt = 0
        while not self.is_dead():
            attempt += 1
            if self.ping():
                self._liveness.mark_alive()
                logger.debug(f"Daemon '{self.name}' ready after {attempt} ping(s)")
                return True
            if daemon.ready_max_attempts and attempt >= daemon.ready_max_attempts:
                logger.warning(
                    f"Daemon '{self.name}' not reachable after {attempt} pings"
                )
                return False
            if self._cancelled.wait(daemon.ready_interval):
                return False
        return False

    # =========================================================================
    # Stop
    # =========================================================================

    def stop_and_wait(self) -> bool:
        """Ask the daemon to exit, retrying on the calling thread.

        Returns:
            True if the daemon exited or is already dead, False if the
            loop was cancelled or daemon.stop_max_attempts was reached
        """
        daemon = self.config.daemon
        attempt = 0
        while not self.is_dead():
            attempt += 1
            if self._run_client(render_kill()):
                logger.info(f"Stopped Emacs daemon '{self.name}'")
                self._release()
                return True
            if daemon.stop_max_attempts and attempt >= daemon.stop_max_attempts:
                logger.warning(
                    f"Giving up stopping daemon '{self.name}' after {attempt} attempts"
                )
                return False
            if self.config.org.debug:
                logger.info("Wait for emacs daemon exit")
            if self._cancelled.wait(daemon.stop_interval):
                return False
        return True

    def stop(self) -> threading.Thread | None:
        """Stop the daemon without blocking the caller.

        Returns:
            Thread running the stop loop, or None if the daemon is dead
        """
        if self.is_dead():
            return None

        worker = threading.Thread(
            target=self.stop_and_wait,
            name=f"{self.name}-stop",
            daemon=True,
        )
        worker.start()
        return worker

    def cancel(self) -> None:
        """Abort pending wait_until_ready() and stop loops."""
        self._cancelled.set()

    def _release(self) -> None:
        with self._start_lock:
            if self._channel is not None:
                self._channel.discard()
                self._channel = None
            self._handle = None
