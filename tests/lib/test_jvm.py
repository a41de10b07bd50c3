"""Tests for heap dumps, thread dumps, JFR recordings and dump collection."""

import os
import unittest
import unittest.mock
from contextlib import redirect_stdout
from io import StringIO
from pathlib import Path

from k8sdiag.lib.core.errors import CommandFailedError, DiagnosticsError, OutputMissingError
from k8sdiag.lib.diagnostics import jvm
from test_utils import diag_env, make_container_root

TS = "2024-03-05-140709"


class _JvmTestCase(unittest.TestCase):
    """Runs each test against a fake container root; jattach is mocked."""

    def setUp(self) -> None:
        self._env_cm = diag_env()
        self.env = self._env_cm.__enter__()
        self.addCleanup(self._env_cm.__exit__, None, None, None)
        self.root = make_container_root(self.env.base)
        self.out = StringIO()

        patches = {
            "find_container": unittest.mock.patch.object(
                jvm, "find_container", return_value="c0ffee"
            ),
            "find_root_path": unittest.mock.patch.object(
                jvm, "find_root_path", return_value=self.root
            ),
            "jattach": unittest.mock.patch.object(jvm, "jattach", return_value=0),
            "timestamp": unittest.mock.patch.object(jvm, "timestamp", return_value=TS),
        }
        self.mocks = {}
        for name, p in patches.items():
            self.mocks[name] = p.start()
            self.addCleanup(p.stop)
        stdout = redirect_stdout(self.out)
        stdout.__enter__()
        self.addCleanup(stdout.__exit__, None, None, None)

    def jvm_writes(self, container_path: str, content: bytes = b"data", rc: int = 0):
        """Make jattach "create" *container_path* inside the fake root."""

        def side_effect(container, args):
            (self.root / container_path.lstrip("/")).write_bytes(content)
            return rc

        self.mocks["jattach"].side_effect = side_effect


class HeapdumpTests(_JvmTestCase):
    def test_heapdump_moved_to_workdir(self) -> None:
        self.jvm_writes(jvm.HEAPDUMP_PATH, b"JAVA PROFILE 1.0.2")
        result = jvm.get_heapdump("web-1")

        self.assertEqual(result, Path(f"heapdump_web-1_{TS}.hprof"))
        self.assertEqual((self.env.workdir / result).read_bytes(), b"JAVA PROFILE 1.0.2")
        self.assertFalse((self.root / "tmp" / "heapdump.hprof").exists())
        self.mocks["jattach"].assert_called_once_with("c0ffee", ["dumpheap", "/tmp/heapdump.hprof"])
        self.assertIn(str(result), self.out.getvalue())

    def test_jattach_failure(self) -> None:
        self.mocks["jattach"].return_value = 1
        with self.assertRaises(CommandFailedError) as ctx:
            jvm.get_heapdump("web-1")
        self.assertEqual(ctx.exception.exit_code, 3)

    def test_missing_heapdump(self) -> None:
        with self.assertRaises(OutputMissingError) as ctx:
            jvm.get_heapdump("web-1")
        self.assertEqual(ctx.exception.exit_code, 4)

    def test_threaddump_returns_status(self) -> None:
        self.mocks["jattach"].return_value = 7
        self.assertEqual(jvm.get_threaddump("web-1"), 7)
        self.mocks["jattach"].assert_called_once_with("c0ffee", ["threaddump", "-l"])

    def test_symlink_is_not_moved(self) -> None:
        host_file = self.env.base / "shadow"
        host_file.write_text("secret")
        (self.root / "tmp" / "heapdump.hprof").symlink_to(host_file)
        with self.assertRaises(DiagnosticsError):
            jvm.get_heapdump("web-1")
        self.assertEqual(host_file.read_text(), "secret")
        self.assertEqual(list(self.env.workdir.iterdir()), [])


class JfrTests(_JvmTestCase):
    def test_start_with_builtin_profile(self) -> None:
        self.assertIsNone(jvm.jfr("web-1", "start"))
        self.mocks["jattach"].assert_called_once_with(
            "c0ffee", ["jcmd", "JFR.start name=recording settings=profile"]
        )

    def test_start_with_settings_file(self) -> None:
        jfc = self.env.base / "custom.jfc"
        jfc.write_text("<configuration/>")
        jvm.jfr("web-1", "start", jfc)

        self.assertEqual((self.root / "tmp" / "profiling.jfc").read_text(), "<configuration/>")
        self.mocks["jattach"].assert_called_once_with(
            "c0ffee", ["jcmd", "JFR.start name=recording settings=/tmp/profiling.jfc"]
        )

    def test_start_with_configured_settings_file(self) -> None:
        jfc = self.env.base / "configured.jfc"
        jfc.write_text("<configuration/>")
        self.env.config_file.write_text(f"jfr:\n  settings_file: {jfc}\n")
        jvm.jfr("web-1", "start")
        self.assertTrue((self.root / "tmp" / "profiling.jfc").is_file())

    def test_start_failure(self) -> None:
        self.mocks["jattach"].return_value = 1
        with self.assertRaises(CommandFailedError):
            jvm.jfr("web-1", "start")

    def test_stop_moves_recording_and_removes_settings(self) -> None:
        (self.root / "tmp" / "profiling.jfc").write_text("<configuration/>")
        self.jvm_writes(jvm.RECORDING_PATH, b"FLR")
        result = jvm.jfr("web-1", "stop")

        self.assertEqual(result, Path(f"recording_{TS}.jfr"))
        self.assertEqual(result.read_bytes(), b"FLR")
        self.assertFalse((self.root / "tmp" / "profiling.jfc").exists())
        self.mocks["jattach"].assert_called_once_with(
            "c0ffee", ["jcmd", "JFR.stop name=recording filename=/tmp/recording.jfr"]
        )

    def test_dump_keeps_settings(self) -> None:
        (self.root / "tmp" / "profiling.jfc").write_text("<configuration/>")
        self.jvm_writes(jvm.RECORDING_PATH, b"FLR")
        jvm.jfr("web-1", "dump")
        self.assertTrue((self.root / "tmp" / "profiling.jfc").exists())

    def test_no_recording_written(self) -> None:
        self.assertIsNone(jvm.jfr("web-1", "dump"))

    def test_jfr_profile_waits_and_converts(self) -> None:
        events = []

        def fake_jattach(container, args):
            events.append(args[1].split()[0])
            if args[1].startswith("JFR.stop"):
                (self.root / "tmp" / "recording.jfr").write_bytes(b"FLR")
            return 0

        self.mocks["jattach"].side_effect = fake_jattach
        wait = unittest.mock.Mock(side_effect=lambda prompt: events.append("wait"))
        with unittest.mock.patch.object(jvm, "auto_convert") as convert:
            result = jvm.jfr_profile("web-1", wait)

        self.assertEqual(events, ["JFR.start", "wait", "JFR.stop"])
        convert.assert_called_once_with(result)
        self.assertEqual(result, Path(f"recording_{TS}.jfr"))

    def test_jfr_profile_stops_when_interrupted(self) -> None:
        events = []

        def fake_jattach(container, args):
            events.append(args[1].split()[0])
            return 0

        self.mocks["jattach"].side_effect = fake_jattach
        wait = unittest.mock.Mock(side_effect=KeyboardInterrupt)
        with unittest.mock.patch.object(jvm, "auto_convert") as convert:
            with self.assertRaises(KeyboardInterrupt):
                jvm.jfr_profile("web-1", wait)

        self.assertEqual(events, ["JFR.start", "JFR.stop"])
        convert.assert_not_called()


class CollectDumpsTests(_JvmTestCase):
    def test_collects_directory_from_container(self) -> None:
        container_dir = f"/tmp/diagnostics{os.getpid()}"

        def fake_exec(container, command):
            d = self.root / container_dir.lstrip("/")
            d.mkdir()
            (d / "threaddump_1.txt").write_text("\"main\" #1")
            return 0

        with unittest.mock.patch.object(
            jvm, "exec_in_container", side_effect=fake_exec
        ) as exec_in:
            result = jvm.collect_multiple_dumps("web-1", rounds=2, interval=5)

        command = exec_in.call_args.args[1]
        self.assertEqual(command[:2], ["bash", "-c"])
        self.assertIn("jstack", command[2])
        self.assertEqual(command[3:], ["bash", container_dir, "2", "5"])

        self.assertEqual(result, Path(f"jvm_diagnostics_web-1_{TS}"))
        self.assertTrue((result / "threaddump_1.txt").is_file())
        self.assertFalse((self.root / container_dir.lstrip("/")).exists())
        self.assertIn(f"diagnostics information in {result}", self.out.getvalue())

    def test_nothing_collected(self) -> None:
        with unittest.mock.patch.object(jvm, "exec_in_container", return_value=1):
            with self.assertRaises(OutputMissingError):
                jvm.collect_multiple_dumps("web-1")
