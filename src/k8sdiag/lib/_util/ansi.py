"""ANSI color helpers usable from the library layer.

``k8sdiag.ui_utils.terminal`` re-exports these for the CLI.
"""

import os
import sys


def supports_color(stream=None) -> bool:
    """Check if *stream* (stdout by default) supports color output.

    NO_COLOR always wins, FORCE_COLOR (when set and not ``"0"``) forces color
    on, otherwise the stream must be a TTY.
    """
    if "NO_COLOR" in os.environ:
        return False
    force = os.environ.get("FORCE_COLOR")
    if force is not None and force != "0":
        return True
    return (stream or sys.stdout).isatty()


def color(text: str, code: str, enabled: bool) -> str:
    """Wrap *text* in the ANSI SGR *code* when *enabled* is True."""
    if not enabled:
        return text
    return f"\x1b[{code}m{text}\x1b[0m"

