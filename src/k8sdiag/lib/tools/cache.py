"""On-disk cache of downloaded tools.

Every tool gets its own directory under ``tool_cache_root()``. A non-empty
directory counts as installed; downloads are only attempted for empty ones.
"""

import gzip
import shutil
import tarfile
import tempfile
from collections.abc import Iterator
from pathlib import Path, PurePosixPath

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)

from .._util.fs import ensure_dir
from .._util.logging_utils import _log_debug
from ..core.config import tool_cache_root
from ..core.errors import ToolDownloadError
from .registry import ToolSpec, required_tools

DOWNLOAD_TIMEOUT = 60
_CHUNK_SIZE = 64 * 1024


def tool_cache_dir(tool_name: str) -> Path:
    return tool_cache_root() / tool_name


def tool_path(tool_name: str, binary: str | None = None) -> Path:
    """Path of *binary* (default: the tool's own name) inside the tool's cache dir."""
    return tool_cache_dir(tool_name) / (binary or tool_name)


def is_installed(tool_name: str) -> bool:
    d = tool_cache_dir(tool_name)
    return d.is_dir() and any(d.iterdir())


def _fetch(url: str, dest: Path, label: str) -> None:
    """Stream *url* into *dest* with a progress bar on stderr."""
    with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT, allow_redirects=True) as resp:
        resp.raise_for_status()
        total = int(resp.headers.get("content-length") or 0) or None
        columns = (
            TextColumn("{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
        )
        with Progress(*columns, transient=True) as progress, open(dest, "wb") as fh:
            task = progress.add_task(label, total=total)
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                fh.write(chunk)
                progress.update(task, advance=len(chunk))


def _strip_member(name: str, strip: int) -> str | None:
    parts = PurePosixPath(name).parts
    if len(parts) <= strip:
        return None
    return str(PurePosixPath(*parts[strip:]))


def _stripped_members(tar: tarfile.TarFile, strip: int) -> Iterator[tarfile.TarInfo]:
    """Yield tar members with *strip* leading components removed (``tar --strip-components``)."""
    for member in tar.getmembers():
        name = _strip_member(member.name, strip)
        if name is None:
            continue
        member.name = name
        if member.islnk():
            linkname = _strip_member(member.linkname, strip)
            if linkname is None:
                continue
            member.linkname = linkname
        yield member


def _extract_tarball(archive: Path, dest: Path, strip: int) -> None:
    with tarfile.open(archive, mode="r:gz") as tar:
        # The "tar" filter rejects absolute names and members escaping dest.
        tar.extractall(dest, members=_stripped_members(tar, strip), filter="tar")


def _install_binary(download: Path, dest: Path, gzipped: bool) -> None:
    if gzipped:
        with gzip.open(download, "rb") as src, open(dest, "wb") as out:
            shutil.copyfileobj(src, out)
    else:
        shutil.move(str(download), str(dest))
    dest.chmod(0o755)


def _clear_dir(d: Path) -> None:
    for child in d.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child, ignore_errors=True)
        else:
            child.unlink(missing_ok=True)


def download_tool(spec: ToolSpec, arch: str | None = None) -> bool:
    """Download and install *spec* into its cache dir unless already present.

    Returns True if a download happened. On any failure the partially
    populated directory is emptied again so the next run retries, and
    ToolDownloadError is raised.
    """
    tooldir = tool_cache_dir(spec.name)
    ensure_dir(tooldir)
    if any(tooldir.iterdir()):
        return False

    url = spec.url(arch)
    print(f"Downloading and installing {spec.name} to {tooldir}")
    _log_debug(f"download_tool: {spec.name} from {url}")
    try:
        with tempfile.TemporaryDirectory(prefix=f"k8sdiag-{spec.name}-") as td:
            download = Path(td) / "download"
            _fetch(url, download, spec.name)
            if spec.extract:
                _extract_tarball(download, tooldir, spec.strip_components)
            else:
                _install_binary(download, tooldir / spec.name, url.endswith(".gz"))
    except (requests.RequestException, tarfile.TarError, OSError, EOFError) as e:
        _log_debug(f"download_tool: {spec.name} failed: {e}")
        _clear_dir(tooldir)
        raise ToolDownloadError(f"Error downloading {spec.name} from {url}: {e}")

    print("Done.")
    return True


def ensure_tools(arch: str | None = None) -> None:
    """Make sure jattach, async-profiler and crictl are in the cache."""
    for spec in required_tools():
        download_tool(spec, arch)
