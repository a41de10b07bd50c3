"""Shared parser helpers and argcomplete completers for CLI commands."""

from __future__ import annotations

import argparse
from collections.abc import Callable
from typing import Any

from ...lib.containers.runtime import pod_names

TOOL_DESCRIPTIONS: dict[str, str] = {}
"""One-line description of every registered tool, keyed by tool name."""


class _DescAction(argparse.Action):
    """``--desc``: print the tool's one-line description and exit."""

    def __init__(self, option_strings, description: str = "", **kwargs: Any) -> None:
        kwargs.setdefault("dest", argparse.SUPPRESS)
        kwargs.setdefault("default", argparse.SUPPRESS)
        super().__init__(option_strings, nargs=0, **kwargs)
        self.description = description

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        print(self.description)
        parser.exit()


def add_tool_parser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    name: str,
    description: str,
    *,
    requires_root: bool = True,
    needs_tools: bool = True,
    passthrough: bool = False,
) -> argparse.ArgumentParser:
    """Register tool *name* and return its parser.

    Tools keep their underscore names and also accept a hyphenated alias.
    *passthrough* tools forward unrecognized options to the wrapped binary.
    """
    aliases = [name.replace("_", "-")] if "_" in name else []
    parser = subparsers.add_parser(
        name, aliases=aliases, help=description, description=description, allow_abbrev=False
    )
    parser.add_argument(
        "--desc", action=_DescAction, description=description, help="Print a one-line description"
    )
    parser.set_defaults(
        tool=name,
        requires_root=requires_root,
        needs_tools=needs_tools,
        passthrough=passthrough,
    )
    TOOL_DESCRIPTIONS[name] = description
    return parser


def add_target_argument(parser: argparse.ArgumentParser) -> argparse.Action:
    action = parser.add_argument(
        "target", help="Pod name, container ID or name, or host PID (outside Kubernetes)"
    )
    set_completer(action, complete_pod_names)
    return action


def add_passthrough_arguments(parser: argparse.ArgumentParser, help: str) -> None:
    parser.add_argument("tool_args", nargs=argparse.REMAINDER, help=help)


def complete_pod_names(
    prefix: str, parsed_args: argparse.Namespace, **kwargs: object
) -> list[str]:  # pragma: no cover
    """Return names of pods on this node matching *prefix* for argcomplete."""
    try:
        names = pod_names()
    except Exception:
        return []
    if prefix:
        names = [n for n in names if n.startswith(prefix)]
    return names


def set_completer(action: argparse.Action, fn: Callable[..., Any]) -> None:
    """Attach an argcomplete completer to *action*."""
    action.completer = fn  # type: ignore[attr-defined]


def exit_with(returncode: int) -> None:
    """Propagate a child's non-zero exit status as our own."""
    if returncode != 0:
        raise SystemExit(returncode)
