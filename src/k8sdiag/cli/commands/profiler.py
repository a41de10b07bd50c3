"""async-profiler commands."""

from __future__ import annotations

import argparse

from ...lib.diagnostics import profiler
from ...ui_utils.terminal import wait_for_any_key
from ._common import add_passthrough_arguments, add_target_argument, add_tool_parser

_MODE_HELP = (
    "jfr: CPU/alloc/lock profile in JFR format (ASYNC_PROFILER_OPTIONS), "
    "exceptions: exception call tree, exceptions_flamegraph: exception flamegraph, "
    "stop/status: control a running session"
)


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Register async-profiler subcommands."""
    p = add_tool_parser(
        subparsers,
        "async_profiler",
        "Run async-profiler for the pod's initial pid",
        passthrough=True,
    )
    add_target_argument(p)
    add_passthrough_arguments(p, "asprof arguments, e.g. start -e cpu 1")

    p = add_tool_parser(
        subparsers,
        "async_profiler_profile",
        "Run async-profiler profiling in interactive mode",
    )
    add_target_argument(p)
    p.add_argument("mode", choices=profiler.PROFILE_MODES, help=_MODE_HELP)

    p = add_tool_parser(
        subparsers,
        "async_profiler_profile_many",
        "Run async-profiler profiling in interactive mode for all pods with a specific label",
    )
    p.add_argument("label", help="Pod label selector, e.g. app=myservice")
    p.add_argument("mode", choices=profiler.PROFILE_MODES, help=_MODE_HELP)


def dispatch(args: argparse.Namespace) -> bool:
    """Handle async-profiler commands.  Returns True if handled."""
    if args.tool == "async_profiler":
        profiler.async_profiler(args.target, args.tool_args)
    elif args.tool == "async_profiler_profile":
        profiler.async_profiler_profile(args.target, args.mode, wait=wait_for_any_key)
    elif args.tool == "async_profiler_profile_many":
        profiler.async_profiler_profile_many(args.label, args.mode, wait=wait_for_any_key)
    else:
        return False
    return True
