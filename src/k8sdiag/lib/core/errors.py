# SPDX-FileCopyrightText: 2025-2026 Jiri Vyskocil <jiri@vyskocil.com>
#
# SPDX-License-Identifier: Apache-2.0

"""Errors raised by the diagnostics library.

Each error carries the process exit code the CLI terminates with, so scripts
wrapping ``k8s-diag`` can tell a missing container from a missing dump.
"""


class DiagnosticsError(Exception):
    """Base class for failures of a diagnostics operation."""

    exit_code = 1


class ContainerNotFoundError(DiagnosticsError):
    """No container matches the given pod name, container ID or name."""

    exit_code = 1

    def __init__(self, target: str) -> None:
        super().__init__(f"No container found for '{target}'")
        self.target = target


class ContainerPidNotFoundError(DiagnosticsError):
    """The host PID of a container could not be determined."""

    exit_code = 2

    def __init__(self, container: str) -> None:
        super().__init__(f"Cannot determine the host PID of container {container}")
        self.container = container


class RootPathNotFoundError(DiagnosticsError):
    """The container's root filesystem is not reachable from the host."""

    exit_code = 2

    def __init__(self, container: str) -> None:
        super().__init__(f"Cannot determine the root filesystem of container {container}")
        self.container = container


class CommandFailedError(DiagnosticsError):
    """An external diagnostic command exited with a non-zero status."""

    exit_code = 3

    def __init__(self, command: str, returncode: int) -> None:
        super().__init__(f"{command} failed with exit status {returncode}")
        self.command = command
        self.returncode = returncode


class OutputMissingError(DiagnosticsError):
    """A diagnostic command succeeded but its output file is not there."""

    exit_code = 4

    def __init__(self, path: object) -> None:
        super().__init__(f"Expected output file {path} was not created")
        self.path = path


class ToolDownloadError(DiagnosticsError):
    exit_code = 1


class ProfilingError(DiagnosticsError):
    """One or more targets of a multi-target profiling session failed.

    The exit code is the one of the first failure.
    """

    def __init__(self, failures: list[tuple[str, DiagnosticsError]]) -> None:
        super().__init__(
            "; ".join(f"{target}: {error}" for target, error in failures)
        )
        self.failures = failures
        self.exit_code = failures[0][1].exit_code


class ConfigError(DiagnosticsError):
    """The global config file cannot be used."""

    def __init__(self, path: object, reason: object) -> None:
        super().__init__(f"Invalid config file {path}: {reason}")
        self.path = path
