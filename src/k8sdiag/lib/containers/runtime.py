"""Container runtime detection and command execution.

A node is treated as a Kubernetes node when a CRI endpoint is configured or
one of the well-known runtime sockets exists; containers are then reached
through ``crictl``. Otherwise plain ``docker`` (or ``nsenter`` for bare host
PIDs) is used.
"""

import json
import os
import re
import stat
import subprocess
from pathlib import Path

from .._util.logging_utils import _log_debug
from ..core.config import docker_only, kubernetes_service_host, runtime_endpoint
from ..core.errors import DiagnosticsError
from ..tools.cache import tool_path

MICROK8S_CONTAINERD_SOCK = Path("/var/snap/microk8s/common/run/containerd.sock")
DOCKERSHIM_SOCK = Path("/var/run/dockershim.sock")

_HOST_PID_RE = re.compile(r"^[0-9]+$")


def _is_socket(path: Path) -> bool:
    try:
        return stat.S_ISSOCK(path.stat().st_mode)
    except OSError:
        return False


def has_dockershim() -> bool:
    return _is_socket(DOCKERSHIM_SOCK)


def is_k8s_node() -> bool:
    """Return True if containers should be resolved through the CRI.

    PROFILE_DOCKER_ONLY overrides the detection and forces docker mode.
    """
    if docker_only():
        return False
    return bool(
        runtime_endpoint()
        or kubernetes_service_host()
        or _is_socket(MICROK8S_CONTAINERD_SOCK)
        or has_dockershim()
    )


def is_host_pid(ref: str) -> bool:
    """A purely numeric target refers to a host PID rather than a container."""
    return bool(_HOST_PID_RE.match(ref))


# ---------- Running commands ----------


def run(cmd: list[str], *, env: dict[str, str] | None = None) -> int:
    """Run *cmd* with inherited stdio and return its exit status."""
    _log_debug(f"run: {' '.join(cmd)}")
    try:
        return subprocess.run(cmd, check=False, env=env).returncode
    except FileNotFoundError:
        raise DiagnosticsError(f"{cmd[0]} not found")


def capture(cmd: list[str], *, env: dict[str, str] | None = None) -> str | None:
    """Run *cmd* and return its stripped stdout, or None if it failed.

    stderr is discarded; a missing binary counts as failure.
    """
    _log_debug(f"capture: {' '.join(cmd)}")
    try:
        return subprocess.check_output(
            cmd, stderr=subprocess.DEVNULL, text=True, env=env
        ).strip()
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None


def first_line(output: str | None) -> str | None:
    if not output:
        return None
    for line in output.splitlines():
        if line.strip():
            return line.strip()
    return None


# ---------- crictl ----------


def crictl_env() -> dict[str, str]:
    """Environment for crictl with a default CONTAINER_RUNTIME_ENDPOINT.

    An explicit endpoint is kept; otherwise the microk8s containerd socket is
    preferred over dockershim. The caller's environment is not modified.
    """
    env = dict(os.environ)
    if not env.get("CONTAINER_RUNTIME_ENDPOINT"):
        if _is_socket(MICROK8S_CONTAINERD_SOCK):
            env["CONTAINER_RUNTIME_ENDPOINT"] = f"unix://{MICROK8S_CONTAINERD_SOCK}"
        elif has_dockershim():
            env["CONTAINER_RUNTIME_ENDPOINT"] = f"unix://{DOCKERSHIM_SOCK}"
    return env


def crictl_command(args: list[str]) -> list[str]:
    return [str(tool_path("crictl")), *args]


def crictl(args: list[str]) -> int:
    """Run the cached crictl interactively and return its exit status."""
    return run(crictl_command(args), env=crictl_env())


def crictl_output(args: list[str]) -> str | None:
    return capture(crictl_command(args), env=crictl_env())


def list_pods() -> int:
    return crictl(["pods"])


def pod_names(label: str | None = None) -> list[str]:
    """Names of the pods on this node, optionally filtered by a label selector."""
    args = ["pods", "-o", "json"]
    if label:
        args += ["--label", label]
    out = crictl_output(args)
    if not out:
        return []
    try:
        data = json.loads(out)
    except json.JSONDecodeError as e:
        raise DiagnosticsError(f"Cannot parse crictl pods output: {e}")
    names = []
    for item in data.get("items") or []:
        name = (item.get("metadata") or {}).get("name")
        if name:
            names.append(name)
    return names


# ---------- Executing inside containers ----------


def exec_command(container: str, command: list[str]) -> list[str]:
    """Build the command line that runs *command* inside *container*."""
    if is_k8s_node():
        return crictl_command(["exec", "-is", container, *command])
    if is_host_pid(container):
        return ["nsenter", "-t", container, "-a", *command]
    return ["docker", "exec", "-i", container, *command]


def exec_in_container(container: str, command: list[str]) -> int:
    """Run *command* inside *container* with inherited stdio; return its status."""
    env = crictl_env() if is_k8s_node() else None
    return run(exec_command(container, command), env=env)


def netstat_all() -> int:
    """Show addresses and TCP sockets of every named network namespace."""
    return run(["ip", "-all", "netns", "exec", "bash", "-c", "ip a; netstat -tapn"])
