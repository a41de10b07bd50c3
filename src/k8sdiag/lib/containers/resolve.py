# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""Resolve a diagnostics target to a container, host PID, root path and JVM.

A target is a pod name, a container ID (prefix), a docker container name or,
outside Kubernetes, a host PID.
"""

import re
from pathlib import Path

from ..core.errors import (
    ContainerNotFoundError,
    ContainerPidNotFoundError,
    DiagnosticsError,
    RootPathNotFoundError,
)
from ..tools.cache import tool_path
from .runtime import (
    capture,
    crictl_output,
    first_line,
    has_dockershim,
    is_host_pid,
    is_k8s_node,
    run,
)

_HEX_RE = re.compile(r"^[0-9a-f]+$")

PROC_ROOT = Path("/proc")

PID_TEMPLATE = "{{.info.pid}}"
ROOT_PATH_TEMPLATE = "{{.info.runtimeSpec.root.path}}"
DOCKER_PID_TEMPLATE = "{{.State.Pid}}"


def _crictl_inspect(container: str, template: str) -> str | None:
    return crictl_output(["inspect", "--template", template, "-o", "go-template", container])


def _docker_inspect(container: str, template: str) -> str | None:
    return capture(["docker", "inspect", container, "-f", template])


def _docker_ps(*filters: str) -> list[str]:
    cmd = ["docker", "ps", "-q"]
    for f in filters:
        cmd += ["--filter", f]
    out = capture(cmd) or ""
    return [line.strip() for line in out.splitlines() if line.strip()]


def find_container(target: str) -> str:
    """Return the container ID for *target*.

    Raises ContainerNotFoundError when nothing matches.
    """
    container: str | None = None
    if is_k8s_node():
        if has_dockershim():
            ids = _docker_ps(
                "label=io.kubernetes.docker.type=container",
                f"label=io.kubernetes.pod.name={target}",
            )
            container = ids[0] if ids else None
        else:
            if _HEX_RE.match(target):
                container = first_line(crictl_output(["ps", "--id", target, "-q"]))
            if not container:
                container = first_line(
                    crictl_output(["ps", "--label", f"io.kubernetes.pod.name={target}", "-q"])
                )
    elif is_host_pid(target):
        container = target
    else:
        ids = _docker_ps(f"id={target}") + _docker_ps(f"name={target}")
        container = next(iter(dict.fromkeys(ids)), None)

    if not container:
        raise ContainerNotFoundError(target)
    return container


def find_container_pid(container: str) -> str:
    """Return the host PID of the container's init process."""
    pid: str | None
    if is_k8s_node():
        pid = _crictl_inspect(container, PID_TEMPLATE) or _docker_inspect(
            container, DOCKER_PID_TEMPLATE
        )
    elif is_host_pid(container):
        pid = container
    else:
        pid = _docker_inspect(container, DOCKER_PID_TEMPLATE)

    pid = first_line(pid)
    # docker reports 0 for stopped containers
    if not pid or not is_host_pid(pid) or pid == "0":
        raise ContainerPidNotFoundError(container)
    return pid


def find_root_path(container: str) -> Path:
    """Return the container's root filesystem as seen from the host.

    An absolute runtime-spec root path reported by the CRI is used directly.
    A relative one (containerd reports ``rootfs``) or none at all falls back
    to ``/proc/<pid>/root``.
    """
    if is_host_pid(container):
        return PROC_ROOT / container / "root"

    if is_k8s_node():
        root = first_line(_crictl_inspect(container, ROOT_PATH_TEMPLATE))
        if root and Path(root).is_absolute():
            return Path(root)

    try:
        return PROC_ROOT / find_container_pid(container) / "root"
    except ContainerPidNotFoundError as e:
        raise RootPathNotFoundError(container) from e


def find_java_pid(container: str) -> str:
    """Return the host PID of the first JVM in the container's PID namespace.

    Falls back to the container's init process when pgrep finds nothing.
    """
    if is_host_pid(container):
        return container
    container_pid = find_container_pid(container)
    return first_line(capture(["pgrep", "--ns", container_pid, "java"])) or container_pid


def nstgid(host_pid: str) -> str:
    """Return the PID of *host_pid* as seen inside its innermost PID namespace."""
    status = PROC_ROOT / host_pid / "status"
    try:
        text = status.read_text()
    except OSError as e:
        raise ContainerPidNotFoundError(host_pid) from e
    for line in text.splitlines():
        if line.startswith("NStgid:"):
            fields = line.split()
            if len(fields) > 1:
                return fields[-1]
    raise DiagnosticsError(f"No NStgid entry in {status}")


# ---------- Entering containers ----------


def jattach(container: str, args: list[str]) -> int:
    """Run jattach against the JVM of *container*; return its exit status."""
    java_pid = find_java_pid(container)
    return run([str(tool_path("jattach")), java_pid, *args])


def jattach_target(target: str, args: list[str]) -> int:
    return jattach(find_container(target), args)


def nsenter(target: str, args: list[str]) -> int:
    """Run ``nsenter -t <container pid> args...`` for *target*."""
    container_pid = find_container_pid(find_container(target))
    return run(["nsenter", "-t", container_pid, *args])


def shell(target: str, args: list[str]) -> int:
    """Open a root shell (or run *args*) in all namespaces of *target*."""
    return nsenter(target, ["--all", *args])
