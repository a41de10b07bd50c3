"""Terminal formatting and interaction helpers.

Core color functions are defined in ``k8sdiag.lib._util.ansi`` so that
library modules can use them without a cross-layer dependency. This module
re-exports them and adds the interactive pieces used by profiling sessions.
"""

import sys

from k8sdiag.lib._util.ansi import (  # noqa: F401  -- re-exports
    color,
    supports_color,
)


def yes_no(value: bool, enabled: bool) -> str:
    """Return green ``"yes"`` or red ``"no"`` based on *value* when *enabled*."""
    return color("yes" if value else "no", "32" if value else "31", enabled)


def gray(text: str, enabled: bool) -> str:
    """Return *text* in gray (ANSI 90) when *enabled*."""
    return color(text, "90", enabled)


def wait_for_any_key(prompt: str = "Press any key to continue") -> None:
    """Block until a single key is pressed on the controlling terminal.

    The key is read without echo in raw mode. When stdin is not a terminal
    (piped input, tests) this falls back to waiting for a full line. A
    closed or empty stdin counts as the key press.
    """
    print(prompt, end="", flush=True)
    if not sys.stdin.isatty():
        try:
            input()
        except EOFError:
            print()
        return

    import termios
    import tty

    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        sys.stdin.read(1)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        print()
