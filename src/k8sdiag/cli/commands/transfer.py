"""Encrypted transfer command."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ...lib import transfer
from ._common import add_tool_parser


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    p = add_tool_parser(
        subparsers,
        "transfer",
        "Transfers files with gpg encryption over file.io",
        requires_root=False,
        needs_tools=False,
    )
    p.epilog = (
        "usage:\n"
        "  transfer <file|directory> <recipient>\n"
        "  ... | transfer <file_name> <recipient>"
    )
    p.formatter_class = argparse.RawDescriptionHelpFormatter
    p.add_argument(
        "file", help="File or directory to send, or the file name for piped input"
    )
    p.add_argument("recipient", help="gpg key ID or e-mail of the recipient")


def dispatch(args: argparse.Namespace) -> bool:
    if args.tool != "transfer":
        return False
    if sys.stdin.isatty():
        transfer.transfer_path(Path(args.file), args.recipient)
    else:
        transfer.transfer_stream(sys.stdin.buffer, args.file, args.recipient)
    return True
