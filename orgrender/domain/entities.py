"""Domain entities and value objects.

Core domain models for supervising the rendering daemon and the requests
sent to it. These are pure Python dataclasses with no dependencies on
infrastructure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class DaemonState(str, Enum):
    """Lifecycle of the supervised daemon.

    NOT_STARTED -> STARTING -> ALIVE, and any state -> DEAD. DEAD is
    terminal for the lifetime of a supervisor.
    """

    NOT_STARTED = "not_started"
    STARTING = "starting"
    ALIVE = "alive"
    DEAD = "dead"


@dataclass(frozen=True)
class EngineError:
    """Structured error reported by the rendering engine.

    Attributes:
        message: Human-readable description of the failure.
        code: Optional machine-readable code.
    """

    message: str
    code: str | int | None = None

    @classmethod
    def from_json(cls, text: str) -> EngineError | None:
        """Parse an error record written by the engine.

        Args:
            text: Raw contents of the error record.

        Returns:
            EngineError if the text is a JSON object with a string "message",
            None for anything else (including empty text).
        """
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            return None

        if not isinstance(data, dict):
            return None

        message = data.get("message")
        if not isinstance(message, str):
            return None

        code = data.get("code")
        if not isinstance(code, (str, int)) or isinstance(code, bool):
            code = None
        return cls(message=message, code=code)


@dataclass(frozen=True)
class RenderRequest:
    """A single document to render.

    Attributes:
        source: Org file to render.
        output: Where the engine should write the result. None lets the
            client allocate (and clean up) a temporary file.
        options: Extra request-scoped settings passed to the engine.
    """

    source: Path
    output: Path | None = None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderResult:
    """Terminal outcome of a render request.

    Attributes:
        content: Rendered document (empty on failure).
        error: Failure reason, None on success.
        attempts: Number of client processes spawned for the request.
    """

    content: str = ""
    error: EngineError | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        """True if the request produced a result."""
        return self.error is None

    @classmethod
    def failure(
        cls, message: str, code: str | None = None, attempts: int = 0
    ) -> RenderResult:
        """Build a failed result."""
        return cls(error=EngineError(message, code), attempts=attempts)
