"""Emacs daemon adapters for rendering org documents.

This package supervises a named Emacs daemon and sends render requests to
it through emacsclient.

Architecture:
- elisp.py: Emacs Lisp script generation (bootstrap, request, kill, ping)
- error_channel.py: Sentinel file carrying fatal engine errors
- liveness.py: Thread-safe daemon state cell
- process.py: subprocess-backed process runner
- retry.py: Exponential backoff with jitter
- supervisor.py: Daemon lifecycle management (start/stop/readiness)
- client.py: Render client (implements RenderClient protocol)
"""

from orgrender.adapters.emacs.client import EmacsClientInvoker
from orgrender.adapters.emacs.supervisor import EmacsDaemonSupervisor

__all__ = ["EmacsClientInvoker", "EmacsDaemonSupervisor"]
