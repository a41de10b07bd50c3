"""JVM commands: jattach, heap/thread dumps, JFR, flamegraphs."""

from __future__ import annotations

import argparse
from pathlib import Path

from ...lib.containers.resolve import jattach_target
from ...lib.diagnostics import jvm
from ...lib.diagnostics.flamegraph import jfr_to_flamegraph
from ...ui_utils.terminal import wait_for_any_key
from ._common import add_passthrough_arguments, add_target_argument, add_tool_parser, exit_with


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Register JVM diagnostics subcommands."""
    p = add_tool_parser(
        subparsers, "jattach", "Run jattach for the initial pid of the pod", passthrough=True
    )
    add_target_argument(p)
    add_passthrough_arguments(p, "jattach command and arguments (e.g. properties, jcmd VM.flags)")

    p = add_tool_parser(subparsers, "get_heapdump", "Gets a heapdump for the pod's initial pid")
    add_target_argument(p)

    p = add_tool_parser(
        subparsers, "get_threaddump", "Gets a threaddump for the pod's initial pid"
    )
    add_target_argument(p)

    p = add_tool_parser(subparsers, "jfr", "Create JFR recordings for the pod's initial pid")
    add_target_argument(p)
    p.add_argument("command", choices=jvm.JFR_COMMANDS, help="Recording action")
    p.add_argument(
        "settings",
        nargs="?",
        type=Path,
        help="Optional JFR profiling settings file (.jfc), used by start",
    )

    p = add_tool_parser(subparsers, "jfr_profile", "Run JFR profiling in interactive mode")
    add_target_argument(p)

    p = add_tool_parser(
        subparsers,
        "jfr_to_flamegraph",
        "Creates a flamegraph from a jfr recording",
        requires_root=False,
    )
    p.add_argument("jfr_file", type=Path, help="JFR recording")
    p.add_argument(
        "flamegraph_file", nargs="?", type=Path, help="Output HTML (default: <recording>.html)"
    )

    p = add_tool_parser(
        subparsers,
        "collect_multiple_dumps",
        "Collects multiple thread and heap dumps for all JVMs",
    )
    add_target_argument(p)
    p.add_argument("--rounds", type=int, default=3, help="Thread dump rounds (default: 3)")
    p.add_argument(
        "--interval", type=int, default=3, help="Seconds between rounds (default: 3)"
    )

    add_tool_parser(
        subparsers,
        "list_java_pids",
        "Lists the host process ids for all Java processes",
        needs_tools=False,
    )


def dispatch(args: argparse.Namespace) -> bool:
    """Handle JVM commands.  Returns True if handled."""
    if args.tool == "jattach":
        exit_with(jattach_target(args.target, args.tool_args))
    elif args.tool == "get_heapdump":
        jvm.get_heapdump(args.target)
    elif args.tool == "get_threaddump":
        exit_with(jvm.get_threaddump(args.target))
    elif args.tool == "jfr":
        jvm.jfr(args.target, args.command, args.settings)
    elif args.tool == "jfr_profile":
        jvm.jfr_profile(args.target, wait=wait_for_any_key)
    elif args.tool == "jfr_to_flamegraph":
        jfr_to_flamegraph(args.jfr_file, args.flamegraph_file)
    elif args.tool == "collect_multiple_dumps":
        jvm.collect_multiple_dumps(args.target, rounds=args.rounds, interval=args.interval)
    elif args.tool == "list_java_pids":
        exit_with(jvm.list_java_pids())
    else:
        return False
    return True
