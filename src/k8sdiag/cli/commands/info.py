"""Informational commands: resolved configuration and the tool cache."""

from __future__ import annotations

import argparse
from pathlib import Path

from ...lib.containers.runtime import crictl_env, is_k8s_node
from ...lib.core.config import (
    get_java_pid as _get_java_pid,
    get_jfr_settings_file as _get_jfr_settings_file,
    get_profiler_options as _get_profiler_options,
    get_upload_url as _get_upload_url,
    global_config_path as _global_config_path,
    global_config_search_paths as _global_config_search_paths,
    state_root as _state_root,
    tool_cache_root as _tool_cache_root,
)
from ...lib.tools.cache import download_tool, is_installed, tool_cache_dir
from ...lib.tools.registry import TOOLS, get_tool
from ...ui_utils.terminal import gray as _gray, supports_color as _supports_color, yes_no as _yes_no
from ._common import add_tool_parser


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Register informational subcommands (config, tools)."""
    add_tool_parser(
        subparsers,
        "config",
        "Show configuration paths and resolved settings",
        requires_root=False,
        needs_tools=False,
    )

    p = add_tool_parser(
        subparsers,
        "tools",
        "List or download the cached diagnostic tools",
        requires_root=False,
        needs_tools=False,
    )
    tsub = p.add_subparsers(dest="tools_cmd", required=True)
    tsub.add_parser("list", help="Show cached tools and their download URLs")
    t_dl = tsub.add_parser("download", help="Download tools into the cache")
    t_dl.add_argument(
        "names",
        nargs="*",
        metavar="tool",
        help=f"Tools to download (default: all required). Known: {', '.join(TOOLS)}",
    )


def dispatch(args: argparse.Namespace) -> bool:
    """Handle config and tools commands.  Returns True if handled."""
    if args.tool == "config":
        _print_config()
        return True
    if args.tool == "tools":
        if args.tools_cmd == "list":
            _print_tools()
        elif args.tools_cmd == "download":
            specs = [get_tool(n) for n in args.names] or [
                t for t in TOOLS.values() if not t.on_demand
            ]
            for spec in specs:
                if not download_tool(spec):
                    print(f"{spec.name} is already installed in {tool_cache_dir(spec.name)}")
        return True
    return False


def _print_config() -> None:
    """Display configuration paths and effective diagnostics settings."""
    color_enabled = _supports_color()
    print("Configuration (read):")
    gcfg = _global_config_path()
    print(
        f"- Global config file: {_gray(str(gcfg), color_enabled)} "
        f"(exists: {_yes_no(Path(gcfg).is_file(), color_enabled)})"
    )
    print("- Global config search order:")
    for p in _global_config_search_paths():
        exists = _yes_no(p.is_file(), color_enabled)
        print(f"  • {_gray(str(p), color_enabled)} (exists: {exists})")

    print("Paths (write):")
    print(f"- Tool cache: {_gray(str(_tool_cache_root()), color_enabled)}")
    print(f"- Debug log: {_gray(str(_state_root() / 'k8sdiag.log'), color_enabled)}")

    print("Settings:")
    print(f"- Kubernetes node: {_yes_no(is_k8s_node(), color_enabled)}")
    endpoint = crictl_env().get("CONTAINER_RUNTIME_ENDPOINT") or "-"
    print(f"- CRI endpoint: {endpoint}")
    print(f"- async-profiler options: {_get_profiler_options()}")
    print(f"- Java PID in container: {_get_java_pid()}")
    jfc = _get_jfr_settings_file()
    print(f"- JFR settings file: {jfc if jfc else 'built-in profile'}")
    print(f"- Upload URL: {_get_upload_url()}")


def _print_tools() -> None:
    color_enabled = _supports_color()
    for spec in TOOLS.values():
        installed = is_installed(spec.name)
        note = " (on demand)" if spec.on_demand else ""
        print(f"- {spec.name}{note}: installed: {_yes_no(installed, color_enabled)}")
        print(f"  dir: {_gray(str(tool_cache_dir(spec.name)), color_enabled)}")
        print(f"  url: {_gray(spec.url(), color_enabled)}")
