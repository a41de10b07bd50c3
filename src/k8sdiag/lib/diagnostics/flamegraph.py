# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""Convert JFR recordings to HTML flamegraphs with async-profiler's converter."""

import shutil
import subprocess
from pathlib import Path

from .._util.fs import chown_sudo_user
from .._util.logging_utils import _log_debug
from ..core.errors import CommandFailedError, DiagnosticsError
from ..tools.cache import tool_cache_dir


def converter_jar() -> Path:
    """Location of converter.jar in the cached async-profiler.

    Releases before 3.0 ship it under ``build/``, newer ones under ``lib/``.
    """
    profiler_dir = tool_cache_dir("async-profiler")
    jar = profiler_dir / "build" / "converter.jar"
    if not jar.is_file():
        jar = profiler_dir / "lib" / "converter.jar"
    return jar


def jfr_to_flamegraph(jfr_file: Path, flamegraph_file: Path | None = None) -> Path:
    """Render *jfr_file* as an HTML flamegraph and return the output path.

    The output defaults to the recording's name with an ``.html`` extension.
    """
    if not jfr_file.is_file():
        raise DiagnosticsError(f"File {jfr_file} doesn't exist.")
    if flamegraph_file is None:
        flamegraph_file = jfr_file.with_suffix(".html")

    cmd = ["java", "-cp", str(converter_jar()), "jfr2flame", str(jfr_file), str(flamegraph_file)]
    _log_debug(f"run: {' '.join(cmd)}")
    try:
        rc = subprocess.run(cmd, check=False).returncode
    except FileNotFoundError:
        raise DiagnosticsError("java not found; a JRE is needed to create flamegraphs")
    if rc != 0:
        raise CommandFailedError("jfr2flame", rc)

    chown_sudo_user(flamegraph_file)
    print(f"Result in file://{flamegraph_file.resolve()}")
    return flamegraph_file


def auto_convert(jfr_file: Path | None) -> Path | None:
    """Create a flamegraph next to *jfr_file* when it exists and java is available."""
    if jfr_file is None or not jfr_file.is_file():
        return None
    if shutil.which("java") is None:
        _log_debug(f"auto_convert: java not on PATH, keeping {jfr_file} as is")
        return None
    return jfr_to_flamegraph(jfr_file)
