"""Tests for the tool registry and the download cache."""

import gzip
import shutil
import unittest
import unittest.mock
from contextlib import redirect_stdout
from io import StringIO
from pathlib import Path

import requests

from k8sdiag.lib.core.errors import ToolDownloadError
from k8sdiag.lib.tools import cache
from k8sdiag.lib.tools.registry import TOOLS, ToolSpec, get_tool, host_arch, required_tools
from test_utils import diag_env, write_tarball


def _serve(archive: Path):
    """Return a _fetch replacement that "downloads" *archive*."""

    def fetch(url: str, dest: Path, label: str) -> None:
        shutil.copyfile(archive, dest)

    return fetch


class RegistryTests(unittest.TestCase):
    def test_host_arch(self) -> None:
        self.assertEqual(host_arch("x86_64"), "amd64")
        self.assertEqual(host_arch("aarch64"), "arm64")
        self.assertEqual(host_arch("arm64"), "arm64")

    def test_release_urls_per_arch(self) -> None:
        with diag_env(chdir=False):
            self.assertEqual(
                TOOLS["jattach"].url("amd64"),
                "https://github.com/jattach/jattach/releases/download/v2.2/"
                "jattach-linux-x64.tgz",
            )
            profiler_url = TOOLS["async-profiler"].url("arm64")
            self.assertTrue(profiler_url.endswith("async-profiler-4.0-linux-arm64.tar.gz"))
            crictl_url = TOOLS["crictl"].url("amd64")
            self.assertTrue(crictl_url.endswith("crictl-v1.24.2-linux-amd64.tar.gz"))

    def test_configured_url_override(self) -> None:
        cfg = "tools:\n  jattach:\n    url: https://mirror.example.com/jattach.tgz\n"
        with diag_env(cfg, chdir=False):
            self.assertEqual(
                TOOLS["jattach"].url("arm64"), "https://mirror.example.com/jattach.tgz"
            )

    def test_required_tools_skip_on_demand(self) -> None:
        self.assertEqual(
            [t.name for t in required_tools()], ["jattach", "async-profiler", "crictl"]
        )
        self.assertTrue(get_tool("gpg").on_demand)

    def test_unknown_tool(self) -> None:
        with self.assertRaises(SystemExit):
            get_tool("perf")


class DownloadToolTests(unittest.TestCase):
    def test_extracts_with_stripped_components(self) -> None:
        with diag_env() as env:
            archive = write_tarball(
                env.base / "ap.tar.gz",
                {
                    "async-profiler-4.0-linux-x64/bin/asprof": b"#!/bin/sh\n",
                    "async-profiler-4.0-linux-x64/lib/converter.jar": b"PK",
                },
            )
            out = StringIO()
            with (
                unittest.mock.patch.object(cache, "_fetch", side_effect=_serve(archive)),
                redirect_stdout(out),
            ):
                self.assertTrue(cache.download_tool(TOOLS["async-profiler"], "amd64"))

            tooldir = env.cache_dir.resolve() / "async-profiler"
            self.assertTrue((tooldir / "bin" / "asprof").is_file())
            self.assertEqual((tooldir / "lib" / "converter.jar").read_bytes(), b"PK")
            self.assertIn(f"Downloading and installing async-profiler to {tooldir}", out.getvalue())
            self.assertIn("Done.", out.getvalue())

    def test_no_strip_for_flat_archives(self) -> None:
        with diag_env() as env:
            archive = write_tarball(env.base / "jattach.tgz", {"jattach": b"\x7fELF"})
            with (
                unittest.mock.patch.object(cache, "_fetch", side_effect=_serve(archive)),
                redirect_stdout(StringIO()),
            ):
                cache.download_tool(TOOLS["jattach"], "amd64")
            self.assertEqual(cache.tool_path("jattach").read_bytes(), b"\x7fELF")
            self.assertTrue(cache.is_installed("jattach"))

    def test_non_empty_dir_is_not_downloaded_again(self) -> None:
        with diag_env() as env:
            tooldir = env.cache_dir / "crictl"
            tooldir.mkdir(parents=True)
            (tooldir / "crictl").write_text("already here")
            with unittest.mock.patch.object(cache, "_fetch") as fetch:
                self.assertFalse(cache.download_tool(TOOLS["crictl"]))
            fetch.assert_not_called()

    def test_gzipped_single_binary(self) -> None:
        spec = ToolSpec(name="helper", url_template="https://example.com/helper-{arch}.gz")
        with diag_env() as env:
            blob = env.base / "helper.gz"
            with gzip.open(blob, "wb") as fh:
                fh.write(b"binary")
            with (
                unittest.mock.patch.object(cache, "_fetch", side_effect=_serve(blob)),
                redirect_stdout(StringIO()),
            ):
                cache.download_tool(spec, "amd64")
            installed = env.cache_dir / "helper" / "helper"
            self.assertEqual(installed.read_bytes(), b"binary")
            self.assertEqual(installed.stat().st_mode & 0o777, 0o755)

    def test_failed_download_leaves_empty_dir(self) -> None:
        with diag_env() as env:
            with (
                unittest.mock.patch.object(
                    cache, "_fetch", side_effect=requests.ConnectionError("no route")
                ),
                redirect_stdout(StringIO()),
            ):
                with self.assertRaises(ToolDownloadError) as ctx:
                    cache.download_tool(TOOLS["crictl"], "amd64")
            self.assertIn("crictl", str(ctx.exception))
            tooldir = env.cache_dir / "crictl"
            self.assertTrue(tooldir.is_dir())
            self.assertEqual(list(tooldir.iterdir()), [])

    def test_corrupt_archive_is_cleaned_up(self) -> None:
        with diag_env() as env:
            bogus = env.base / "bogus.tgz"
            bogus.write_bytes(b"not a tarball")
            with (
                unittest.mock.patch.object(cache, "_fetch", side_effect=_serve(bogus)),
                redirect_stdout(StringIO()),
            ):
                with self.assertRaises(ToolDownloadError):
                    cache.download_tool(TOOLS["jattach"], "amd64")
            self.assertFalse(cache.is_installed("jattach"))

    def test_ensure_tools_fetches_required_only(self) -> None:
        with diag_env():
            with unittest.mock.patch.object(cache, "download_tool") as dl:
                cache.ensure_tools("amd64")
            self.assertEqual(
                [c.args[0].name for c in dl.call_args_list],
                ["jattach", "async-profiler", "crictl"],
            )
