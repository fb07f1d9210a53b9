"""emacsclient-based render client.

Each request renders a small script, runs emacsclient against the named
daemon, and retries with exponential backoff until the client exits
successfully. The engine writes the rendered document to an output file
that is read back once the retry loop ends.
"""

import contextlib
import logging
import os
import random
import subprocess
import tempfile
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from orgrender.adapters.emacs.elisp import render_request
from orgrender.adapters.emacs.process import SubprocessRunner
from orgrender.adapters.emacs.retry import RetryAborted, call_with_backoff
from orgrender.domain.config import OrgRenderConfig
from orgrender.domain.entities import RenderRequest, RenderResult
from orgrender.domain.exceptions import DaemonUnreachableError
from orgrender.ports.daemon import LivenessReader
from orgrender.ports.process import ProcessRunner

logger = logging.getLogger(__name__)

ERROR_DAEMON_DEAD = "daemon_dead"
ERROR_UNREACHABLE = "unreachable"
ERROR_OUTPUT = "output"


class EmacsClientInvoker:
    """Render client that talks to the daemon through emacsclient.

    Requests are serialized: concurrent callers would otherwise race for
    the daemon's terminal frame.
    """

    def __init__(
        self,
        config: OrgRenderConfig,
        liveness: LivenessReader,
        runner: ProcessRunner | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ):
        """Initialize client.

        Args:
            config: Complete configuration
            liveness: Read-only view of the daemon state (usually the supervisor)
            runner: Process runner (default: SubprocessRunner)
            sleep: Sleep function used between attempts
            rng: Random source for backoff jitter
        """
        self.config = config
        self.liveness = liveness
        self.runner = runner or SubprocessRunner()
        self._sleep = sleep
        self._rng = rng
        self._lock = threading.Lock()

    def _log(self, message: str) -> None:
        # org.debug promotes per-request chatter so it shows without --verbose
        level = logging.INFO if self.config.org.debug else logging.DEBUG
        logger.log(level, message)

    def invoke(self, request: RenderRequest) -> RenderResult:
        """Render one document.

        Args:
            request: Document to render

        Returns:
            RenderResult with the rendered content, or a failure carrying an
            EngineError. Never raises for daemon or client failures.
        """
        if self.liveness.is_dead():
            return RenderResult.failure("Rendering daemon is dead", ERROR_DAEMON_DEAD)

        with self._lock:
            return self._invoke(request)

    def _invoke(self, request: RenderRequest) -> RenderResult:
        try:
            output_file, owned = self._allocate_output(request)
        except OSError as e:
            return RenderResult.failure(
                f"Failed to allocate output file: {e}", ERROR_OUTPUT
            )

        org = self.config.org
        script = render_request(org, request, output_file)
        if org.debug:
            logger.info(f"emacsclient: {org.emacsclient}")
            logger.info(f"request script: {script}")

        args = [org.emacsclient, "-nw", "-s", self.config.daemon.name, "-e", script]
        attempts = 0

        def attempt(number: int) -> None:
            nonlocal attempts
            if self.liveness.is_dead():
                raise RetryAborted("daemon marked dead")
            attempts = number
            self._log(f"Attempt {number}: {request.source}")
            self._run_attempt(args)

        try:
            call_with_backoff(
                attempt,
                (DaemonUnreachableError,),
                self.config.retry,
                should_abort=self.liveness.is_dead,
                sleep=self._sleep,
                rng=self._rng,
            )
        except RetryAborted:
            self._log(f"Daemon died while rendering {request.source}")
            if owned:
                self._discard(output_file)
            return RenderResult.failure(
                "Rendering daemon is dead", ERROR_DAEMON_DEAD, attempts
            )
        except DaemonUnreachableError as e:
            return self._exhausted(request, output_file, owned, attempts, e)

        content = self._read_output(output_file)
        self._log(f"DONE: {request.source} ({attempts} attempt(s))")
        if owned:
            self._discard(output_file)
        return RenderResult(content=content, attempts=attempts)

    def _exhausted(
        self,
        request: RenderRequest,
        output_file: Path,
        owned: bool,
        attempts: int,
        error: DaemonUnreachableError,
    ) -> RenderResult:
        """Build the result once every attempt has failed.

        The engine may have written the document even though emacsclient
        never exited cleanly; non-empty output is returned as a success.
        """
        content = self._read_output(output_file)
        if content:
            self._log(
                f"DONE: {request.source} (output found after {attempts} failed attempts)"
            )
            if owned:
                self._discard(output_file)
            return RenderResult(content=content, attempts=attempts)

        self._log(f"FAILED: {request.source}: {error.message} (kept {output_file})")
        return RenderResult.failure(
            f"emacsclient failed after {attempts} attempts: {error.message}",
            ERROR_UNREACHABLE,
            attempts,
        )

    def _run_attempt(self, args: Sequence[str]) -> None:
        """Run emacsclient once.

        Raises:
            DaemonUnreachableError: If the client cannot be spawned, times
                out, or exits with a non-zero code
        """
        try:
            code = self.runner.run(args, timeout=self.config.daemon.attempt_timeout)
        except OSError as e:
            raise DaemonUnreachableError(f"Failed to run {args[0]}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise DaemonUnreachableError(
                f"{args[0]} timed out after {e.timeout}s"
            ) from e

        if code != 0:
            raise DaemonUnreachableError(f"{args[0]} exited with code {code}")

    def _allocate_output(self, request: RenderRequest) -> tuple[Path, bool]:
        """Return the output path and whether this client owns it.

        A caller-supplied file is truncated so that leftovers from an
        earlier run are never read back as this request's document.
        """
        if request.output is not None:
            output = Path(request.output)
            output.write_text("", encoding="utf-8")
            return output, False

        fd, name = tempfile.mkstemp(prefix="orgrender-", suffix=".html")
        os.close(fd)
        return Path(name), True

    def _read_output(self, output_file: Path) -> str:
        try:
            return output_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read {output_file}: {e}")
            return ""

    def _discard(self, output_file: Path) -> None:
        with contextlib.suppress(OSError):
            output_file.unlink()
