#!/usr/bin/env python3

import argparse
import sys

import argcomplete

from .. import __version__
from ..lib._util.logging_utils import _log_debug
from ..lib.core.errors import DiagnosticsError
from ..lib.core.paths import is_root
from ..lib.tools.cache import ensure_tools
from .commands import info, jvm, profiler, runtime, transfer
from .commands._common import TOOL_DESCRIPTIONS

COMMAND_MODULES = (runtime, jvm, profiler, transfer, info)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="k8s-diag",
        description=(
            "k8s-diag – thread dumps, heap dumps, JFR recordings and async-profiler "
            "profiles of Java processes in Kubernetes pods and containers"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples (run as root on the node):\n"
            "  k8s-diag list_pods\n"
            "  k8s-diag get_threaddump <pod>\n"
            "  k8s-diag get_heapdump <pod>\n"
            "  k8s-diag async_profiler_profile <pod> jfr\n"
            "  k8s-diag transfer heapdump_<pod>_<ts>.hprof <gpg recipient>\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"k8s-diag {__version__}")
    sub = parser.add_subparsers(dest="cmd", required=True, metavar="<tool>")
    for module in COMMAND_MODULES:
        module.register(sub)
    return parser


def _print_tool_list() -> None:
    for name in sorted(TOOL_DESCRIPTIONS):
        print(f"{name:<28}\t{TOOL_DESCRIPTIONS[name]}")


def _print_usage() -> None:
    print("usage: k8s-diag [tool name] [tool arguments]")
    print("Pass --help as the argument to get usage information for a tool.")
    print("Most tools need to be run as root.")
    print("Available diagnostics tools:")
    _print_tool_list()


def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()

    # Enable bash completion if argcomplete is activated
    argcomplete.autocomplete(parser)

    if not argv:
        _print_usage()
        raise SystemExit(1)

    args, extras = parser.parse_known_args(argv)
    if extras:
        if not getattr(args, "passthrough", False):
            parser.error(f"unrecognized arguments: {' '.join(extras)}")
        # Options in front of the wrapped tool's own arguments
        args.tool_args = extras + list(getattr(args, "tool_args", []))

    if args.requires_root and not is_root():
        print("This command needs to be run as root.", file=sys.stderr)
        raise SystemExit(1)

    _log_debug(f"main: {' '.join(argv)}")
    try:
        if args.needs_tools:
            ensure_tools()
        for module in COMMAND_MODULES:
            if module.dispatch(args):
                break
        else:
            parser.error("Unknown command")
    except DiagnosticsError as e:
        _log_debug(f"main: {args.tool} failed: {e}")
        print(str(e), file=sys.stderr)
        raise SystemExit(e.exit_code)
    except KeyboardInterrupt:
        raise SystemExit(130)


if __name__ == "__main__":
    main()
