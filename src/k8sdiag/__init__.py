"""k8sdiag package.

Modules:
- k8sdiag.cli: CLI entry point package (k8s-diag)
- k8sdiag.lib.core: Configuration, paths, errors
- k8sdiag.lib.containers: Container runtime detection and target resolution
- k8sdiag.lib.diagnostics: JVM dumps, JFR, async-profiler, flamegraphs
- k8sdiag.lib.tools: Tool registry and download cache
- k8sdiag.lib.transfer: Encrypted file transfer
- k8sdiag.ui_utils: Terminal helpers
- k8sdiag.lib._util: Internal helpers (fs, logging, ansi)
"""

__all__ = [
    "cli",
    "lib",
    "ui_utils",
]

# Version information - single source of truth using importlib.metadata
try:
    from importlib.metadata import version

    __version__ = version("k8s-diagnostics-toolbox")
except Exception:
    # Fallback for development mode when package is not installed
    try:
        import tomllib
        from pathlib import Path

        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                pyproject_data = tomllib.load(f)
                __version__ = pyproject_data["project"]["version"]
        else:
            __version__ = "unknown"
    except Exception:
        __version__ = "unknown"
