import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml  # pip install pyyaml

from .errors import ConfigError
from .paths import APP_NAME, cache_root as _cache_root_base, state_root as _state_root_base

DEFAULT_PROFILER_OPTIONS = "-e cpu,alloc,lock -i 1ms"
DEFAULT_JAVA_PID = "1"
DEFAULT_UPLOAD_URL = "https://file.io"
DEFAULT_KEYSERVER = "keyserver.ubuntu.com"

_TRUTHY = ("1", "true", "yes", "on")

# ---------- Global config file ----------


def global_config_search_paths() -> list[Path]:
    """Return the ordered list of paths that will be checked for global config.

    Behavior matches global_config_path():
    - If K8SDIAG_CONFIG_FILE is set, only that single path is considered.
    - Otherwise, check in order:
        1) ${XDG_CONFIG_HOME:-~/.config}/k8s-diagnostics-toolbox/config.yml
        2) sys.prefix/etc/k8s-diagnostics-toolbox/config.yml
        3) /etc/k8s-diagnostics-toolbox/config.yml
    """
    env_file = os.environ.get("K8SDIAG_CONFIG_FILE")
    if env_file:
        return [Path(env_file).expanduser().resolve()]

    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    user_cfg = (Path(xdg_home) if xdg_home else Path.home() / ".config") / APP_NAME / "config.yml"
    sp_cfg = Path(sys.prefix) / "etc" / APP_NAME / "config.yml"
    etc_cfg = Path("/etc") / APP_NAME / "config.yml"
    return [user_cfg, sp_cfg, etc_cfg]


def global_config_path() -> Path:
    """Global config file path (resolved based on search paths).

    An explicit K8SDIAG_CONFIG_FILE is returned even if missing to make intent
    visible to the user. Otherwise the first existing candidate wins, and the
    last candidate (/etc/...) is returned when none exist.
    """
    candidates = global_config_search_paths()
    if len(candidates) == 1:
        return candidates[0]

    for c in candidates:
        if c.is_file():
            return c.resolve()
    return candidates[-1]


def load_global_config() -> dict[str, Any]:
    """Load the global config file, ``{}`` when it is missing.

    Raises ConfigError when the file cannot be read, is not valid YAML or
    does not hold a mapping at the top level.
    """
    cfg_path = global_config_path()
    if not cfg_path.is_file():
        return {}
    try:
        data = yaml.safe_load(cfg_path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(cfg_path, e) from e
    if not isinstance(data, dict):
        raise ConfigError(cfg_path, "expected a mapping at the top level")
    return data


def get_global_section(key: str) -> dict[str, Any]:
    """Return a top-level section from the global config, defaulting to ``{}``.

    If the value under *key* is not a dict (e.g. the user wrote ``jfr: "oops"``),
    returns ``{}`` so callers can always use ``.get()``.
    """
    cfg = load_global_config()
    value = cfg.get(key, {})
    if not isinstance(value, dict):
        return {}
    return value or {}


# ---------- Path resolution ----------


def _resolve_path(
    env_var: str | None,
    config_key: tuple[str, str] | None,
    default: Callable[[], Path],
) -> Path:
    """Resolve a path: env var → global config → computed default."""
    if env_var:
        env = os.environ.get(env_var)
        if env:
            return Path(env).expanduser().resolve()

    if config_key:
        try:
            section = get_global_section(config_key[0])
            val = section.get(config_key[1])
            if val:
                return Path(val).expanduser().resolve()
        except (ConfigError, TypeError):
            pass

    return default().resolve()


def _resolve_value(env_var: str | None, config_key: tuple[str, str], default: str) -> str:
    """Resolve a string setting with the same precedence as ``_resolve_path``."""
    if env_var:
        env = os.environ.get(env_var)
        if env:
            return env
    val = get_global_section(config_key[0]).get(config_key[1])
    if val is None or val == "":
        return default
    return str(val)


def state_root() -> Path:
    """Writable state directory (debug log).

    Precedence: K8SDIAG_STATE_DIR, then ``paths.state_root`` from the global
    config, then the FHS/XDG default from ``paths.state_root()``.
    """
    return _resolve_path("K8SDIAG_STATE_DIR", ("paths", "state_root"), _state_root_base)


def tool_cache_root() -> Path:
    """Directory holding one subdirectory per downloaded tool.

    Precedence: K8SDIAG_CACHE_DIR, then ``paths.cache_root``, then
    ``~/.cache/k8s-diagnostics-toolbox``.
    """
    return _resolve_path("K8SDIAG_CACHE_DIR", ("paths", "cache_root"), _cache_root_base)


# ---------- Diagnostics settings ----------


def get_profiler_options() -> str:
    """Default async-profiler options for interactive profiling.

    ASYNC_PROFILER_OPTIONS wins over ``profiler.options``.
    """
    return _resolve_value(
        "ASYNC_PROFILER_OPTIONS", ("profiler", "options"), DEFAULT_PROFILER_OPTIONS
    )


def get_java_pid() -> str:
    """PID of the JVM inside the container (JAVAPID, ``profiler.java_pid``, or 1)."""
    return _resolve_value("JAVAPID", ("profiler", "java_pid"), DEFAULT_JAVA_PID)


def get_jfr_settings_file() -> Path | None:
    """Default JFR settings (.jfc) file from ``jfr.settings_file``, if configured."""
    val = get_global_section("jfr").get("settings_file")
    if not val:
        return None
    return Path(val).expanduser()


def get_upload_url() -> str:
    return _resolve_value(None, ("transfer", "upload_url"), DEFAULT_UPLOAD_URL)


def get_keyserver() -> str:
    return _resolve_value(None, ("transfer", "keyserver"), DEFAULT_KEYSERVER)


def get_tool_url_override(tool_name: str) -> str | None:
    """Return ``tools.<name>.url`` from the global config, or None."""
    entry = get_global_section("tools").get(tool_name)
    if isinstance(entry, dict) and entry.get("url"):
        return str(entry["url"])
    return None


# ---------- Environment ----------


def runtime_endpoint() -> str | None:
    """CRI endpoint explicitly configured via CONTAINER_RUNTIME_ENDPOINT."""
    return os.environ.get("CONTAINER_RUNTIME_ENDPOINT") or None


def kubernetes_service_host() -> str | None:
    return os.environ.get("KUBERNETES_SERVICE_HOST") or None


def docker_only() -> bool:
    """Return True when PROFILE_DOCKER_ONLY forces plain docker mode."""
    return os.environ.get("PROFILE_DOCKER_ONLY", "").strip().lower() in _TRUTHY


def sudo_user() -> str | None:
    """The user that invoked sudo; result files are handed back to them."""
    return os.environ.get("SUDO_USER") or None
