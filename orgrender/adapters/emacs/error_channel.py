"""Sentinel-file error channel.

The engine writes a JSON record such as {"message": "..."} to the sentinel
file only when it hits a fatal, unrecoverable error. An empty or missing
file means nothing went wrong.
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path

from orgrender.domain.entities import EngineError

logger = logging.getLogger(__name__)


class SentinelFileChannel:
    """Error channel backed by a uniquely named temporary file."""

    def __init__(self, path: Path) -> None:
        """Wrap an existing sentinel path.

        Args:
            path: File the engine writes its fatal error record to
        """
        self.path = path

    @classmethod
    def create(cls, prefix: str = "orgrender-debug-") -> "SentinelFileChannel":
        """Allocate a fresh, empty sentinel file.

        Args:
            prefix: File name prefix inside the system temp directory

        Returns:
            Channel owning the new file

        Raises:
            OSError: If the temp file cannot be created
        """
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=".json")
        os.close(fd)
        logger.debug(f"Allocated error sentinel {name}")
        return cls(Path(name))

    @property
    def location(self) -> str:
        return str(self.path)

    def read_error(self) -> EngineError | None:
        """Read the engine's fatal error record.

        Returns:
            EngineError if the file holds a valid record, None otherwise
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

        if not text.strip():
            return None

        error = EngineError.from_json(text)
        if error is None:
            logger.debug(f"Ignoring malformed error record in {self.path}")
        return error

    def discard(self) -> None:
        """Delete the sentinel file."""
        with contextlib.suppress(OSError):
            self.path.unlink()
