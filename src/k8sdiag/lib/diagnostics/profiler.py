# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""async-profiler sessions against JVMs in containers.

The cached async-profiler is copied into the container's ``/tmp`` and its
launcher is executed inside the container, so the profiler sees the same
filesystem and PID namespace as the JVM. Output files named with ``-f`` are
moved to the working directory once a session is stopped.
"""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Callable
from pathlib import Path

from .._util.fs import chown_sudo_user, timestamped_name
from .._util.logging_utils import _log_debug
from ..containers.resolve import find_container, find_root_path, nstgid
from ..containers.runtime import exec_in_container, is_host_pid, pod_names
from ..core.config import get_java_pid, get_profiler_options
from ..core.errors import DiagnosticsError, ProfilingError
from ..tools.cache import tool_cache_dir
from .flamegraph import auto_convert

PROFILER_DIR = "/tmp/async-profiler"
# Launcher locations relative to PROFILER_DIR, newest layout first.
LAUNCHERS = ("bin/asprof", "asprof", "profiler.sh")

PERF_SYSCTLS = {
    Path("/proc/sys/kernel/perf_event_paranoid"): "1",
    Path("/proc/sys/kernel/kptr_restrict"): "0",
}

EXCEPTION_EVENT = "Java_java_lang_Throwable_fillInStackTrace"

PROFILE_MODES = ("jfr", "exceptions", "exceptions_flamegraph", "stop", "status")

Wait = Callable[[str], None]


def install_profiler(root: Path) -> Path:
    """Copy the cached async-profiler into the container unless already there."""
    dest = root / PROFILER_DIR.lstrip("/")
    if not dest.is_dir():
        _log_debug(f"install_profiler: copying async-profiler to {dest}")
        shutil.copytree(tool_cache_dir("async-profiler"), dest, symlinks=True)
    return dest


def enable_perf_events() -> None:
    """Relax the kernel settings async-profiler needs for perf events.

    Failures are reported but not fatal: itimer/wall profiling still works.
    """
    for path, value in PERF_SYSCTLS.items():
        try:
            path.write_text(value)
        except OSError as e:
            _log_debug(f"enable_perf_events: cannot write {path}: {e}")
            print(f"Warning: cannot set {path} to {value} ({e})")


def launcher_path(installed_dir: Path) -> str:
    """Return the in-container path of the profiler launcher."""
    for rel in LAUNCHERS:
        if (installed_dir / rel).is_file():
            return f"{PROFILER_DIR}/{rel}"
    return f"{PROFILER_DIR}/{LAUNCHERS[0]}"


def output_files(args: list[str]) -> list[str]:
    """Return the values of all ``-f <file>`` options in *args*."""
    return [args[i + 1] for i, arg in enumerate(args[:-1]) if arg == "-f"]


def collect_outputs(root: Path, args: list[str]) -> list[Path]:
    """Move files written by the profiler out of the container.

    Each ``-f`` file present under *root* becomes ``<stem>_<ts>.<ext>`` in the
    working directory. Symlinks are left in place.
    """
    collected = []
    for fileparam in output_files(args):
        src = root / fileparam.lstrip("/")
        if src.is_symlink():
            print(f"Warning: not moving {fileparam}, it is a symlink")
            continue
        if not src.is_file():
            continue
        target = Path(timestamped_name(fileparam))
        _log_debug(f"mv {src} {target}")
        shutil.move(str(src), str(target))
        chown_sudo_user(target)
        print(target)
        collected.append(target)
    return collected


def async_profiler(target: str, args: list[str]) -> list[Path]:
    """Run async-profiler with *args* against the target's container.

    Returns the result files moved to the working directory (none for
    ``start``).
    """
    container = find_container(target)
    root = find_root_path(container)
    installed = install_profiler(root)
    enable_perf_events()

    rc = exec_in_container(container, [launcher_path(installed), *args])
    print("Done." if rc == 0 else "Failed.")
    _log_debug(f"async_profiler: rootpath {root}, exit status {rc}")

    if args and args[0] == "start":
        return []
    return collect_outputs(root, args)


# ---------- Interactive profiling ----------


def profile_pid(target: str) -> str:
    """PID of the JVM as seen inside the container.

    A host PID target is translated through its NStgid; otherwise JAVAPID
    (default 1) is used.
    """
    if is_host_pid(target):
        return nstgid(target)
    return get_java_pid()


def _start_args(mode: str, target: str, pid: str, options: str) -> list[str]:
    if mode == "jfr":
        jfr_file = f"/tmp/{target}_async_profiler.jfr"
        return ["start", *shlex.split(options), "-o", "jfr", "-f", jfr_file, pid]
    return ["start", "-e", EXCEPTION_EVENT, pid]


def _stop_args(mode: str, target: str, pid: str) -> list[str]:
    if mode == "jfr":
        return ["stop", "-f", f"/tmp/{target}_async_profiler.jfr", pid]
    if mode == "exceptions":
        return ["stop", "-o", "tree", "--reverse", "-f", f"/tmp/{target}_exceptions.html", pid]
    return ["stop", "-f", f"/tmp/{target}_exceptions.html", pid]


_MODE_BANNERS = {
    "jfr": "Profiling CPU, allocations and locks in JFR format with options {options}",
    "exceptions": "Profiling exceptions...",
    "exceptions_flamegraph": "Profiling exceptions with flamegraph output...",
}


def _report(target: str, error: DiagnosticsError, failures: list) -> None:
    _log_debug(f"profile: {target} failed: {error}")
    print(f"{target}: {error}")
    failures.append((target, error))


def _stop_all(mode: str, started: dict[str, str], failures: list) -> list[Path]:
    results: list[Path] = []
    for target, pid in started.items():
        try:
            files = async_profiler(target, _stop_args(mode, target, pid))
        except DiagnosticsError as e:
            _report(target, e, failures)
            continue
        results.extend(files)
        if mode != "jfr":
            continue
        for f in files:
            try:
                auto_convert(f)
            except DiagnosticsError as e:
                _report(target, e, failures)
    return results


def profile(targets: dict[str, str], mode: str, wait: Wait) -> list[Path]:
    """Profile every target (name → in-container PID) in one session.

    ``stop`` and ``status`` are passed through. Recording modes start all
    targets, wait once for a key press, then stop all of them. JFR results
    are converted to flamegraphs when java is available.

    A failing target does not abort the session: every target that was
    started is stopped again, even when waiting is interrupted, and the
    failures are raised together as a ProfilingError at the end.
    """
    if mode not in PROFILE_MODES:
        raise ValueError(f"Unknown profiling mode: {mode}")

    failures: list[tuple[str, DiagnosticsError]] = []
    if mode in ("stop", "status"):
        for target, pid in targets.items():
            try:
                async_profiler(target, [mode, pid])
            except DiagnosticsError as e:
                _report(target, e, failures)
        if failures:
            raise ProfilingError(failures)
        return []

    options = get_profiler_options()
    print(_MODE_BANNERS[mode].format(options=options))
    started: dict[str, str] = {}
    try:
        for target, pid in targets.items():
            try:
                async_profiler(target, _start_args(mode, target, pid, options))
            except DiagnosticsError as e:
                _report(target, e, failures)
                continue
            started[target] = pid
        if started:
            wait("Press any key to stop profiling...")
    finally:
        results = _stop_all(mode, started, failures)

    if failures:
        raise ProfilingError(failures)
    return results


def async_profiler_profile(target: str, mode: str, wait: Wait) -> list[Path]:
    return profile({target: profile_pid(target)}, mode, wait)


def async_profiler_profile_many(label: str, mode: str, wait: Wait) -> list[Path]:
    """Profile all pods on this node matching the label selector *label*."""
    pods = pod_names(label)
    print(f"Matching pods are {' '.join(pods)}")
    pid = get_java_pid()
    return profile({pod: pid for pod in pods}, mode, wait)
