# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""Thread dumps, heap dumps and JFR recordings through jattach.

Results are written by the JVM into the container's ``/tmp`` and then moved
into the current working directory with a timestamped name.
"""

import os
import shutil
from collections.abc import Callable
from importlib import resources
from pathlib import Path

from .._util.fs import chown_sudo_user, relocate, timestamp
from .._util.logging_utils import _log_debug
from ..containers.resolve import find_container, find_root_path, jattach
from ..containers.runtime import exec_in_container, run
from ..core.config import get_jfr_settings_file
from ..core.errors import CommandFailedError, DiagnosticsError, OutputMissingError
from .flamegraph import auto_convert

HEAPDUMP_PATH = "/tmp/heapdump.hprof"
RECORDING_PATH = "/tmp/recording.jfr"
PROFILING_SETTINGS_PATH = "/tmp/profiling.jfc"
RECORDING_NAME = "recording"

JFR_COMMANDS = ("start", "stop", "dump")


def _in_root(root: Path, container_path: str) -> Path:
    """Map an absolute path inside the container to the host view under *root*."""
    return root / container_path.lstrip("/")


def get_heapdump(target: str) -> Path:
    """Dump the heap of the target's JVM into ``heapdump_<target>_<ts>.hprof``."""
    container = find_container(target)
    root = find_root_path(container)
    rc = jattach(container, ["dumpheap", HEAPDUMP_PATH])
    if rc != 0:
        raise CommandFailedError("jattach dumpheap", rc)
    heapdump_file = Path(f"heapdump_{target}_{timestamp()}.hprof")
    relocate(_in_root(root, HEAPDUMP_PATH), heapdump_file)
    print(heapdump_file)
    return heapdump_file


def get_threaddump(target: str) -> int:
    """Print a thread dump with lock information to stdout."""
    return jattach(find_container(target), ["threaddump", "-l"])


def _jcmd(container: str, command: str) -> int:
    return jattach(container, ["jcmd", command])


def jfr_start(target: str, settings: Path | None = None) -> int:
    """Start a JFR recording named ``recording``.

    A settings (.jfc) file, given or configured, is copied into the container;
    without one the JVM's built-in ``profile`` settings are used.
    """
    container = find_container(target)
    root = find_root_path(container)
    settings = settings or get_jfr_settings_file()
    if settings is not None and settings.is_file():
        print(f"Using profiling settings from {settings}")
        shutil.copyfile(settings, _in_root(root, PROFILING_SETTINGS_PATH))
        return _jcmd(
            container, f"JFR.start name={RECORDING_NAME} settings={PROFILING_SETTINGS_PATH}"
        )
    return _jcmd(container, f"JFR.start name={RECORDING_NAME} settings=profile")


def jfr_finish(target: str, command: str = "stop") -> Path | None:
    """Stop or dump the recording and move it to ``recording_<ts>.jfr``.

    Returns the recording path, or None when the JVM did not write one.
    """
    if command not in ("stop", "dump"):
        raise DiagnosticsError(f"Unknown JFR command: {command}")
    container = find_container(target)
    root = find_root_path(container)
    _jcmd(container, f"JFR.{command} name={RECORDING_NAME} filename={RECORDING_PATH}")

    jfr_file = Path(f"recording_{timestamp()}.jfr")
    try:
        relocate(_in_root(root, RECORDING_PATH), jfr_file)
    except OutputMissingError as e:
        _log_debug(f"jfr {command}: {e}")
        jfr_file = None
    finally:
        if command == "stop":
            _in_root(root, PROFILING_SETTINGS_PATH).unlink(missing_ok=True)

    if jfr_file is not None:
        print(jfr_file)
    return jfr_file


def jfr(target: str, command: str, settings: Path | None = None) -> Path | None:
    """Dispatch ``start``/``stop``/``dump`` of the target's JFR recording."""
    if command == "start":
        rc = jfr_start(target, settings)
        if rc != 0:
            raise CommandFailedError("JFR.start", rc)
        return None
    return jfr_finish(target, command)


def jfr_profile(target: str, wait: Callable[[str], None]) -> Path | None:
    """Record with JFR until a key is pressed, then convert to a flamegraph."""
    print("Starting JFR profiling...")
    jfr(target, "start")
    try:
        wait("Press any key to stop profiling...")
    finally:
        jfr_file = jfr_finish(target, "stop")
    auto_convert(jfr_file)
    return jfr_file


def _collect_script() -> str:
    return (resources.files("k8sdiag") / "resources" / "scripts" / "collect_dumps.sh").read_text()


def collect_multiple_dumps(target: str, rounds: int = 3, interval: int = 3) -> Path:
    """Collect repeated thread dumps and heap dumps of every JVM in the target.

    The collection runs inside the container; the result directory is copied
    out to ``jvm_diagnostics_<target>_<ts>`` and removed from the container.
    """
    if rounds < 1:
        raise DiagnosticsError("rounds must be at least 1")
    container = find_container(target)
    container_dir = f"/tmp/diagnostics{os.getpid()}"
    exec_in_container(
        container,
        ["bash", "-c", _collect_script(), "bash", container_dir, str(rounds), str(interval)],
    )

    root = find_root_path(container)
    src = _in_root(root, container_dir)
    if not src.is_dir():
        raise OutputMissingError(src)
    diagnostics_dir = Path(f"jvm_diagnostics_{target}_{timestamp()}")
    _log_debug(f"cp -r {src} {diagnostics_dir}")
    shutil.copytree(src, diagnostics_dir)
    shutil.rmtree(src, ignore_errors=True)
    chown_sudo_user(diagnostics_dir)
    print(f"diagnostics information in {diagnostics_dir}")
    return diagnostics_dir


def list_java_pids() -> int:
    """List host PIDs and command lines of all Java processes."""
    return run(["pgrep", "-a", "java"])
