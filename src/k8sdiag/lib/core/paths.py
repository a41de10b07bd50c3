# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""Platform-aware path resolution for state and tool cache directories."""

import getpass
import os
from pathlib import Path

from platformdirs import user_data_dir

APP_NAME = "k8s-diagnostics-toolbox"


def is_root() -> bool:
    """Return True if the current process is running as root."""
    try:
        return os.geteuid() == 0  # type: ignore[attr-defined]
    except AttributeError:
        return getpass.getuser() == "root"


def state_root() -> Path:
    """
    Writable state (debug log).

    Priority:
      1. K8SDIAG_STATE_DIR
      2. if root   → /var/lib/k8s-diagnostics-toolbox
         else      → ${XDG_DATA_HOME:-~/.local/share}/k8s-diagnostics-toolbox
    """
    env = os.getenv("K8SDIAG_STATE_DIR")
    if env:
        return Path(env).expanduser()

    if is_root():
        return Path("/var/lib") / APP_NAME

    return Path(user_data_dir(APP_NAME))


def cache_root() -> Path:
    """
    Downloaded tool binaries, one directory per tool.

    Priority:
      1. K8SDIAG_CACHE_DIR
      2. ~/.cache/k8s-diagnostics-toolbox (for root as well, so an existing
         cache of the invoking user's HOME is reused under ``sudo -E``)
    """
    env = os.getenv("K8SDIAG_CACHE_DIR")
    if env:
        return Path(env).expanduser()

    return Path.home() / ".cache" / APP_NAME
