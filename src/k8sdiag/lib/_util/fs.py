import os
import pwd
import shutil
from datetime import datetime
from pathlib import Path

from ..core.config import sudo_user
from ..core.errors import DiagnosticsError, OutputMissingError
from .logging_utils import _log_debug


def ensure_dir(path: Path) -> None:
    """Create a directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)


def timestamp(now: datetime | None = None) -> str:
    """Return the ``YYYY-MM-DD-HHMMSS`` stamp used in result file names."""
    return (now or datetime.now()).strftime("%Y-%m-%d-%H%M%S")


def timestamped_name(filename: str, now: datetime | None = None) -> str:
    """Insert a timestamp before the extension: ``cpu.html`` → ``cpu_<ts>.html``.

    Only the last extension is kept separate, names without one get the
    stamp appended.
    """
    name = Path(filename).name
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return f"{name}_{timestamp(now)}"
    return f"{stem}_{timestamp(now)}.{ext}"


def chown_sudo_user(path: Path) -> None:
    """Hand *path* (recursively) over to the user that invoked sudo.

    Symlinks are changed themselves, never their targets. Does nothing when
    SUDO_USER is unset or the path is gone.
    """
    user = sudo_user()
    if not user or not os.path.lexists(path):
        return
    try:
        uid = pwd.getpwnam(user).pw_uid
    except KeyError:
        raise DiagnosticsError(f"SUDO_USER {user} is not a known user")
    _log_debug(f"chown -R {user} {path}")
    os.chown(path, uid, -1, follow_symlinks=False)
    if path.is_dir() and not path.is_symlink():
        for root, dirs, files in os.walk(path):
            for name in dirs + files:
                os.chown(os.path.join(root, name), uid, -1, follow_symlinks=False)


def relocate(src: Path, dest: Path) -> Path:
    """Move a result file out of a container's filesystem.

    Raises OutputMissingError when *src* does not exist. A symlink at *src*
    is refused, it could point anywhere on the host.
    """
    if src.is_symlink():
        raise DiagnosticsError(f"Refusing to move {src}: it is a symlink")
    if not src.exists():
        raise OutputMissingError(src)
    _log_debug(f"mv {src} {dest}")
    shutil.move(str(src), str(dest))
    if not dest.exists():
        raise OutputMissingError(dest)
    chown_sudo_user(dest)
    return dest
