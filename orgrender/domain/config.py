"""Config domain models for orgrender.

Configuration is stored in .orgrender/config.toml and describes the Emacs
binaries, the settings handed to the rendering daemon, and how hard the
supervisor and client retry. This module defines the domain models that
represent validated configuration state.
"""

from dataclasses import dataclass, field

DEFAULT_COMMON_BLOCK = "#+OPTIONS: toc:nil num:nil\n"


@dataclass(frozen=True)
class OrgConfig:
    """Settings forwarded to the Emacs rendering engine.

    Attributes:
        emacs: Path or name of the emacs binary used to start the daemon
        emacsclient: Path or name of the emacsclient binary
        cachedir: Directory where the engine caches rendered output
        user_config: Optional user init file, relative to the project root
        theme: Syntax highlighting theme name (empty for the engine default)
        common: Org-mode block prepended to every rendered document
        htmlize: Use htmlize for source block highlighting
        line_number: Render line numbers in source blocks
        debug: Log generated scripts and every client attempt
        entry_point: Explicit path to hexo-renderer-org.el (empty to search)
    """

    emacs: str = "emacs"
    emacsclient: str = "emacsclient"
    cachedir: str = "./hexo-org-cache/"
    user_config: str = ""
    theme: str = ""
    common: str = DEFAULT_COMMON_BLOCK
    htmlize: bool = False
    line_number: bool = False
    debug: bool = False
    entry_point: str = ""

    def __post_init__(self) -> None:
        """Validate org config after initialization."""
        if not self.emacs:
            raise ValueError("emacs binary must not be empty")
        if not self.emacsclient:
            raise ValueError("emacsclient binary must not be empty")


@dataclass(frozen=True)
class DaemonConfig:
    """Configuration for the supervised daemon.

    Attributes:
        name: Server name passed to --daemon and emacsclient -s
        stop_interval: Seconds between kill attempts while stopping
        ready_interval: Seconds between pings while waiting for readiness
        stop_max_attempts: Upper bound on kill attempts (None = unbounded)
        ready_max_attempts: Upper bound on pings (None = unbounded)
        attempt_timeout: Watchdog for a single client process in seconds
            (None = wait forever)

    Raises:
        ValueError: If name is empty, an interval is negative, or a bound
                   or timeout is not positive.
    """

    name: str = "hexo-renderer-org"
    stop_interval: float = 1.0
    ready_interval: float = 0.1
    stop_max_attempts: int | None = None
    ready_max_attempts: int | None = None
    attempt_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate daemon config after initialization."""
        if not self.name:
            raise ValueError("daemon name must not be empty")
        if self.stop_interval < 0:
            raise ValueError(
                f"stop_interval cannot be negative, got {self.stop_interval}"
            )
        if self.ready_interval < 0:
            raise ValueError(
                f"ready_interval cannot be negative, got {self.ready_interval}"
            )
        for attr in ("stop_max_attempts", "ready_max_attempts"):
            value = getattr(self, attr)
            if value is not None and value <= 0:
                raise ValueError(f"{attr} must be positive, got {value}")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError(
                f"attempt_timeout must be positive, got {self.attempt_timeout}"
            )


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy for client invocations.

    Attributes:
        retries: Maximum number of client attempts per request
        factor: Exponential growth factor between attempts
        min_timeout: Delay in seconds before the second attempt
        max_timeout: Ceiling for any single delay in seconds
        randomize: Multiply each delay by a random factor in [1, 2)

    Raises:
        ValueError: If retries is not positive, factor is below 1, or the
                   timeouts are negative or inverted.
    """

    retries: int = 100
    factor: float = 2.0
    min_timeout: float = 0.1
    max_timeout: float = 1.0
    randomize: bool = True

    def __post_init__(self) -> None:
        """Validate retry config after initialization."""
        if self.retries <= 0:
            raise ValueError(f"retries must be positive, got {self.retries}")
        if self.factor < 1:
            raise ValueError(f"factor must be at least 1, got {self.factor}")
        if self.min_timeout < 0:
            raise ValueError(
                f"min_timeout cannot be negative, got {self.min_timeout}"
            )
        if self.max_timeout < self.min_timeout:
            raise ValueError(
                f"max_timeout ({self.max_timeout}) must not be less than "
                f"min_timeout ({self.min_timeout})"
            )


@dataclass(frozen=True)
class OrgRenderConfig:
    """Complete orgrender configuration.

    Typically loaded from .orgrender/config.toml merged over the global
    config and used to build the supervisor and client.

    Attributes:
        org: Engine settings
        daemon: Supervisor settings
        retry: Client backoff policy
    """

    org: OrgConfig = field(default_factory=OrgConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)

    @staticmethod
    def default() -> "OrgRenderConfig":
        """Create a config with all default values."""
        return OrgRenderConfig(
            org=OrgConfig(),
            daemon=DaemonConfig(),
            retry=RetryConfig(),
        )
