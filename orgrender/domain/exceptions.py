"""Domain exceptions for orgrender.

These exceptions describe failures of the supervised daemon. They should be
caught at the application boundary (CLI, host pipeline) and converted to
appropriate user-facing error messages. Render requests never raise them:
RenderResult carries request failures instead.
"""


class OrgRenderDomainError(Exception):
    """Base exception for all domain errors.

    Attributes:
        message: User-facing error message.
        hint: Optional actionable suggestion.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class DaemonStartupError(OrgRenderDomainError):
    """Raised when the daemon cannot be spawned or reports a fatal error."""

    pass


class DaemonUnreachableError(OrgRenderDomainError):
    """Raised when a client invocation fails while the daemon is believed alive."""

    pass


class DaemonDeadError(OrgRenderDomainError):
    """Raised when an operation needs a daemon that has been marked dead."""

    pass
