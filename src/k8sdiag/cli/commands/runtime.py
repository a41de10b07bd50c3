"""Container runtime commands: shell, nsenter, crictl, list_pods, netstat_all."""

from __future__ import annotations

import argparse

from ...lib.containers import resolve, runtime
from ._common import add_passthrough_arguments, add_target_argument, add_tool_parser, exit_with


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Register container runtime subcommands."""
    p = add_tool_parser(subparsers, "shell", "Get a root shell inside the pod", passthrough=True)
    add_target_argument(p)
    add_passthrough_arguments(p, "Optional command to run instead of a login shell")

    p = add_tool_parser(
        subparsers,
        "nsenter",
        "Uses nsenter to run a program in the pod's OS namespace",
        passthrough=True,
    )
    add_target_argument(p)
    add_passthrough_arguments(p, "nsenter options and program")

    p = add_tool_parser(subparsers, "crictl", "Run crictl", passthrough=True)
    add_passthrough_arguments(p, "crictl arguments")

    add_tool_parser(subparsers, "list_pods", "Lists all pods running on the node")

    add_tool_parser(
        subparsers, "netstat_all", "Run netstat for all containers.", needs_tools=False
    )


def dispatch(args: argparse.Namespace) -> bool:
    """Handle runtime commands.  Returns True if handled."""
    if args.tool == "shell":
        exit_with(resolve.shell(args.target, args.tool_args))
    elif args.tool == "nsenter":
        exit_with(resolve.nsenter(args.target, args.tool_args))
    elif args.tool == "crictl":
        exit_with(runtime.crictl(args.tool_args))
    elif args.tool == "list_pods":
        exit_with(runtime.list_pods())
    elif args.tool == "netstat_all":
        exit_with(runtime.netstat_all())
    else:
        return False
    return True
