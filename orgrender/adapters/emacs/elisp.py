"""Emacs Lisp script generation.

Builds the scripts evaluated by the daemon (bootstrap) and by emacsclient
(requests, shutdown, health checks). Every function here is pure: the same
input always produces the same text.

Scripts are passed as a single command-line argument, so comments are
removed and line breaks collapsed before they leave this module.
"""

import re
from collections.abc import Mapping
from typing import Any

from orgrender.domain.config import OrgConfig
from orgrender.domain.entities import RenderRequest

_COMMENT_LINE = re.compile(r"^[ \t]*;.*$", re.MULTILINE)
_LINE_BREAK = re.compile(r"\r\n|\n|\r")

BOOTSTRAP_TEMPLATE = """\
(progn
  ;; Setup user's config
  (setq hexo-renderer-org-cachedir "{cachedir}")
  (setq hexo-renderer-org-user-config "{user_config}")
  (setq hexo-renderer-org-theme "{theme}")
  (setq hexo-renderer-org-common-block "{common}")
  (setq hexo-renderer-org--debug-file "{debug_file}")
  (setq hexo-renderer-org--use-htmlize  {htmlize})
  (setq org-hexo-use-htmlize  {htmlize})
  (setq org-hexo-use-line-number  {line_number})
  ;; load init.el
  (load "{entry_point}"))
"""

REQUEST_TEMPLATE = """\
(progn
  ;; render file according to args
  (hexo-renderer-org '(:file "{source}"
                       :output-file "{output_file}"{options}))
  ;; kill the frame
  (delete-frame))
"""


def escape_path(path: object) -> str:
    """Make a filesystem path safe inside an Emacs Lisp string literal.

    Args:
        path: Path or string (None renders as the empty string)

    Returns:
        Path with forward slashes only and escaped double quotes
    """
    if path is None:
        return ""
    text = str(path).replace("\\", "/")
    return text.replace('"', '\\"')


def escape_string(value: object) -> str:
    """Make arbitrary text safe inside an Emacs Lisp string literal.

    Line breaks become \\n escapes so the text survives strip_elisp().

    Args:
        value: Text (None renders as the empty string)

    Returns:
        Escaped text
    """
    if value is None:
        return ""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return _LINE_BREAK.sub("\\\\n", text)


def elisp_bool(value: object) -> str:
    """Convert a Python truth value to t or nil."""
    return "t" if value else "nil"


def strip_elisp(script: str) -> str:
    """Remove comment lines and every line break from a script."""
    script = _COMMENT_LINE.sub("", script)
    return _LINE_BREAK.sub("", script)


def _elisp_value(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return elisp_bool(value)
    if isinstance(value, (int, float)):
        return repr(value)
    return f'"{escape_string(value)}"'


def render_plist_options(options: Mapping[str, Any]) -> str:
    """Render request-scoped options as extra property list entries.

    Keys are converted to Lisp keywords (underscores become dashes) and
    emitted in sorted order.

    Args:
        options: Option names and values

    Returns:
        Text starting with a space per entry, or "" when there are none
    """
    parts = []
    for key in sorted(options):
        keyword = str(key).replace("_", "-")
        parts.append(f" :{keyword} {_elisp_value(options[key])}")
    return "".join(parts)


def render_bootstrap(
    config: OrgConfig,
    debug_file: object,
    entry_point: object,
    user_config: object = "",
) -> str:
    """Render the script the daemon evaluates at startup.

    Args:
        config: Engine settings
        debug_file: Error sentinel path the engine writes fatal errors to
        entry_point: hexo-renderer-org.el to load
        user_config: Resolved (absolute) user init file, or ""

    Returns:
        Single-line script
    """
    script = BOOTSTRAP_TEMPLATE.format(
        cachedir=escape_path(config.cachedir),
        user_config=escape_path(user_config),
        theme=escape_string(config.theme),
        common=escape_string(config.common),
        debug_file=escape_path(debug_file),
        htmlize=elisp_bool(config.htmlize),
        line_number=elisp_bool(config.line_number),
        entry_point=escape_path(entry_point),
    )
    return strip_elisp(script)


def render_request(
    config: OrgConfig, request: RenderRequest, output_file: object
) -> str:
    """Render the script that asks the daemon to render one document.

    Args:
        config: Engine settings
        request: Document to render
        output_file: Where the engine must write the result

    Returns:
        Single-line script
    """
    script = REQUEST_TEMPLATE.format(
        source=escape_path(request.source),
        output_file=escape_path(output_file),
        options=render_plist_options(request.options),
    )
    return strip_elisp(script)


def render_kill() -> str:
    """Script that shuts the daemon down."""
    return "(kill-emacs)"


def render_ping() -> str:
    """No-op script used as a health check."""
    return '(message "ping")'
