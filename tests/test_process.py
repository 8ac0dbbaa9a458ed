"""Tests for the child process handle."""

import os

import pytest

from procfleet.process import Process

from .conftest import posix_only, wait_for


@posix_only
class TestProcess:
    def test_exit_code(self, tmp_path):
        process = Process("exit 7", root=tmp_path)
        process.start()

        assert process.wait() == 7
        assert process.returncode == 7

    def test_output_routed_to_outlets(self, tmp_path, output, outlets):
        process = Process(
            "echo out; echo err >&2",
            root=tmp_path,
            stdout=outlets.create_outlet("web.1", 0, False),
            stderr=outlets.create_outlet("web.1", 0, True),
        )
        process.start()
        process.wait()

        lines = sorted(output.getvalue().splitlines())
        assert lines == ["web.1     | err", "web.1     | out"]

    def test_environment_and_working_directory(self, tmp_path, output, outlets):
        process = Process(
            'echo "$PORT $(pwd -P)"',
            env={"PORT": "5000", "PATH": os.environ.get("PATH", "")},
            root=tmp_path,
            stdout=outlets.create_outlet("web.1", 0, False),
        )
        process.start()
        process.wait()

        assert output.getvalue().strip().endswith(f"5000 {tmp_path.resolve()}")

    def test_stdin_is_disconnected(self, tmp_path):
        process = Process("read line", root=tmp_path)
        process.start()

        # read hits EOF immediately instead of blocking
        assert process.wait() != 0

    def test_sigterm_stops_process_group(self, tmp_path):
        process = Process("sleep 30 & sleep 30; wait", root=tmp_path)
        process.start()
        assert wait_for(process.running)

        process.send_sigterm()

        assert process.wait() != 0

    def test_sigkill_after_ignored_sigterm(self, tmp_path, output, outlets):
        process = Process(
            "trap '' TERM; echo ready; sleep 30",
            root=tmp_path,
            stdout=outlets.create_outlet("web.1", 0, False),
        )
        process.start()
        assert wait_for(lambda: "ready" in output.getvalue())
        process.send_sigterm()
        assert not wait_for(lambda: process.popen.poll() is not None, timeout=0.3)

        process.send_sigkill()

        assert process.wait() == -9

    def test_signals_after_exit_are_ignored(self, tmp_path):
        process = Process("true", root=tmp_path)
        process.start()
        process.wait()

        process.send_sigterm()
        process.send_sigkill()

    def test_missing_working_directory(self, tmp_path):
        process = Process("true", root=tmp_path / "missing")
        with pytest.raises(OSError):
            process.start()
