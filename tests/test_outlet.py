"""Tests for output multiplexing."""

import io
import threading

import pytest

from procfleet.outlet import OutletFactory


class TestOutletFactory:
    def test_pads_labels(self, output):
        outlets = OutletFactory(stream=output, padding=12, color=False)
        outlets.create_outlet("web.1", 0, False).write_line("listening")

        assert output.getvalue() == "web.1        | listening\n"

    def test_padding_fits_system_label(self, output, outlets):
        outlets.system_output("starting web.1 on port 5000")
        outlets.create_outlet("web.1", 0, False).write_line("hi")

        assert output.getvalue().splitlines() == [
            "procfleet | starting web.1 on port 5000",
            "web.1     | hi",
        ]

    def test_write_line_strips_line_endings(self, output, outlets):
        outlet = outlets.create_outlet("worker.2", 1, True)
        outlet.write_line("one\r\n")
        outlet.write_line("two\n")

        assert output.getvalue() == "worker.2  | one\nworker.2  | two\n"

    def test_pump_decodes_binary_stream(self, output, outlets):
        outlets.create_outlet("web.1", 0, False).pump(io.BytesIO(b"caf\xc3\xa9\n\xff\n"))

        lines = output.getvalue().splitlines()
        assert lines[0].endswith("| café")
        assert lines[1].endswith("| �")

    def test_colors_by_slot(self, output):
        outlets = OutletFactory(stream=output, color=True)
        outlets.create_outlet("web.1", 0, False).write_line("a")
        outlets.create_outlet("worker.1", 7, True).write_line("b")

        web, worker = output.getvalue().splitlines()
        assert web.startswith("\033[1;36m")
        assert worker.startswith("\033[1;33m")
        assert "\033[1;31mb" in worker

    def test_no_color_for_non_tty(self, output):
        assert OutletFactory(stream=output).color is False

    def test_no_color_env(self, monkeypatch):
        class Tty(io.StringIO):
            def isatty(self):
                return True

        monkeypatch.setenv("NO_COLOR", "1")
        assert OutletFactory(stream=Tty()).color is False

    def test_error_output_exits(self, output, outlets):
        with pytest.raises(SystemExit) as exc:
            outlets.error_output("no such process: clock")

        assert exc.value.code == 1
        assert output.getvalue() == "ERROR: no such process: clock\n"

    def test_concurrent_writes_do_not_interleave(self, output, outlets):
        def writer(n):
            outlet = outlets.create_outlet(f"web.{n}", 0, False)
            for i in range(200):
                outlet.write_line(f"line {i} from {n}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(1, 6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = output.getvalue().splitlines()
        assert len(lines) == 1000
        for line in lines:
            label, text = line.split(" | ")
            assert text.endswith(label.strip().split(".")[1])
