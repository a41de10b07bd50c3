# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""Registry of the external tools fetched into the local cache.

Each entry pins a GitHub release. ``{arch}`` expands to ``amd64``/``arm64``
and ``{arch_short}`` to ``x64``/``arm64``.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass

from ..core.config import get_tool_url_override

# ---------------------------------------------------------------------------
# Tool descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolSpec:
    """Describes how to fetch one tool into the cache."""

    name: str
    """Cache directory name and default binary name (e.g. ``"crictl"``)."""

    url_template: str
    """Release URL with ``{arch}``/``{arch_short}`` placeholders."""

    extract: bool = False
    """True for gzip tarballs, False for a single (optionally gzipped) binary."""

    strip_components: int = 1
    """Leading path components dropped from tarball members."""

    on_demand: bool = False
    """Only fetched when a command needs it, not by ``ensure_tools()``."""

    def url(self, arch: str | None = None) -> str:
        override = get_tool_url_override(self.name)
        if override:
            return override
        arch = arch or host_arch()
        return self.url_template.format(arch=arch, arch_short=short_arch(arch))


def host_arch(machine: str | None = None) -> str:
    """Map ``uname -m`` to the release naming: ``arm64`` or ``amd64``."""
    machine = (machine if machine is not None else platform.machine()).lower()
    return "arm64" if machine in ("aarch64", "arm64") else "amd64"


def short_arch(arch: str) -> str:
    return "x64" if arch == "amd64" else arch


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

TOOLS: dict[str, ToolSpec] = {}
"""All known tools, keyed by name."""

_ALL_TOOLS: list[ToolSpec] = [
    ToolSpec(
        name="jattach",
        url_template=(
            "https://github.com/jattach/jattach/releases/download/v2.2/"
            "jattach-linux-{arch_short}.tgz"
        ),
        extract=True,
        strip_components=0,
    ),
    ToolSpec(
        name="async-profiler",
        url_template=(
            "https://github.com/async-profiler/async-profiler/releases/download/v4.0/"
            "async-profiler-4.0-linux-{arch_short}.tar.gz"
        ),
        extract=True,
        strip_components=1,
    ),
    ToolSpec(
        name="crictl",
        url_template=(
            "https://github.com/kubernetes-sigs/cri-tools/releases/download/v1.24.2/"
            "crictl-v1.24.2-linux-{arch}.tar.gz"
        ),
        extract=True,
        strip_components=0,
    ),
    ToolSpec(
        name="gpg",
        url_template=(
            "https://github.com/lhotari/lean-static-gpg/releases/download/v2.3.1/gnupg.tar.gz"
        ),
        extract=True,
        strip_components=1,
        on_demand=True,
    ),
]

for _t in _ALL_TOOLS:
    TOOLS[_t.name] = _t


def get_tool(name: str) -> ToolSpec:
    try:
        return TOOLS[name]
    except KeyError:
        raise SystemExit(f"Unknown tool: {name}. Known tools: {', '.join(sorted(TOOLS))}")


def required_tools() -> list[ToolSpec]:
    """Tools every node-side command may need."""
    return [t for t in _ALL_TOOLS if not t.on_demand]
