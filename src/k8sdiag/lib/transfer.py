# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""Share diagnostics files through a public file drop, encrypted with gpg.

The payload is encrypted for a single recipient's public key before it leaves
the node, so only the link and the ciphertext are exposed. Nodes without gpg
get a statically linked build from the tool cache.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tarfile
import tempfile
from pathlib import Path
from typing import BinaryIO

import requests

from ._util.logging_utils import _log_debug
from .core.config import get_keyserver, get_upload_url
from .core.errors import CommandFailedError, DiagnosticsError
from .tools.cache import download_tool, tool_cache_dir
from .tools.registry import get_tool

UPLOAD_TIMEOUT = 300

# The static gpg build looks up its helper binaries under this prefix.
GNUPG_LINK = Path("/tmp/gnupg")


def _ensure_gpg_conf() -> None:
    gnupg_home = Path.home() / ".gnupg"
    conf = gnupg_home / "gpg.conf"
    if conf.is_file():
        return
    gnupg_home.mkdir(parents=True, exist_ok=True)
    gnupg_home.chmod(0o700)
    conf.write_text(f"keyserver {get_keyserver()}\n")


def gpg_command() -> list[str]:
    """Return the gpg executable to use, installing the static build if needed."""
    system_gpg = shutil.which("gpg")
    if system_gpg:
        return [system_gpg]

    download_tool(get_tool("gpg"))
    if not os.path.lexists(GNUPG_LINK):
        GNUPG_LINK.symlink_to(tool_cache_dir("gpg"), target_is_directory=True)
    _ensure_gpg_conf()
    return [str(GNUPG_LINK / "bin" / "gpg")]


def _gpg_succeeds(gpg: list[str], args: list[str]) -> bool:
    _log_debug(f"run: {' '.join(gpg + args)}")
    proc = subprocess.run(
        gpg + args, check=False, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
    )
    return proc.returncode == 0


def ensure_recipient_key(gpg: list[str], recipient: str) -> None:
    """Make the recipient's public key available in the local keyring.

    Tries the keyring, then the keyserver by key ID, and finally an
    interactive keyserver search.
    """
    if _gpg_succeeds(gpg, ["-k", recipient]) or _gpg_succeeds(gpg, ["--recv-key", recipient]):
        return
    print(f"Searching for key for {recipient}")
    subprocess.run(gpg + ["--search-keys", recipient], check=False)


def encrypt(gpg: list[str], recipient: str, src: BinaryIO, dest: BinaryIO) -> None:
    cmd = gpg + ["--encrypt", "--recipient", recipient, "--trust-model", "always"]
    _log_debug(f"run: {' '.join(cmd)}")
    rc = subprocess.run(cmd, check=False, stdin=src, stdout=dest).returncode
    if rc != 0:
        raise CommandFailedError("gpg --encrypt", rc)


def upload(fh: BinaryIO, file_name: str, url: str | None = None) -> str:
    """Upload *fh* as ``<file_name>.gpg`` and return the download link."""
    url = url or get_upload_url()
    _log_debug(f"upload: {file_name}.gpg to {url}")
    try:
        resp = requests.post(url, files={"data": (f"{file_name}.gpg", fh)}, timeout=UPLOAD_TIMEOUT)
        resp.raise_for_status()
        link = resp.json().get("link")
    except (requests.RequestException, ValueError) as e:
        raise DiagnosticsError(f"Upload to {url} failed: {e}")
    if not link:
        raise DiagnosticsError(f"Upload to {url} returned no download link")
    return link


def upload_encrypted(src: BinaryIO, file_name: str, recipient: str) -> str:
    """Encrypt *src* for *recipient*, upload it and print the receive command."""
    gpg = gpg_command()
    ensure_recipient_key(gpg, recipient)
    with tempfile.TemporaryFile() as encrypted:
        encrypt(gpg, recipient, src, encrypted)
        encrypted.seek(0)
        link = upload(encrypted, file_name)
    print()
    print(f"command for receiving: curl {link} | gpg --decrypt > {file_name}")
    return link


def transfer_path(path: Path, recipient: str) -> str:
    """Transfer a file, or a directory as ``<name>.tar.gz``."""
    if not os.path.lexists(path):
        raise DiagnosticsError(f"{path}: No such file or directory")
    if path.is_dir():
        with tempfile.TemporaryFile() as archive:
            with tarfile.open(fileobj=archive, mode="w:gz") as tar:
                tar.add(path, arcname=path.name)
            archive.seek(0)
            return upload_encrypted(archive, f"{path.name}.tar.gz", recipient)
    with open(path, "rb") as fh:
        return upload_encrypted(fh, path.name, recipient)


def transfer_stream(stream: BinaryIO, file_name: str, recipient: str) -> str:
    """Transfer piped data under the name *file_name*."""
    return upload_encrypted(stream, file_name, recipient)
