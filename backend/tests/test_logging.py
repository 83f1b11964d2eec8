"""Tests for structlog configuration and the file sink."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from enricher.logging import _TeeStream, configure_logging


class TestTeeStream:
    def test_writes_to_stdout_and_file(self, tmp_path: Path, capsys):
        path = tmp_path / "run.log"
        stream = _TeeStream(str(path))
        stream.write("hello\n")
        stream.flush()

        assert capsys.readouterr().out == "hello\n"
        assert path.read_text() == "hello\n"

    def test_unopenable_file_falls_back_to_stdout(self, tmp_path: Path, capsys):
        stream = _TeeStream(str(tmp_path / "missing" / "run.log"))
        assert not stream.file_enabled

        stream.write("still here\n")
        captured = capsys.readouterr()
        assert captured.out == "still here\n"
        assert "file logging disabled" in captured.err

    def test_closed_file_is_dropped(self, tmp_path: Path, capsys):
        stream = _TeeStream(str(tmp_path / "run.log"))
        stream._file.close()

        stream.write("after close\n")
        assert not stream.file_enabled
        assert capsys.readouterr().out == "after close\n"


class TestConfigureLogging:
    def test_json_lines_in_file(self, test_settings, tmp_path: Path):
        path = tmp_path / "run.log"
        test_settings.environment = "production"
        test_settings.log_file = str(path)
        try:
            configure_logging(test_settings)
            structlog.get_logger("test").info("run_complete", updated=3)
        finally:
            structlog.reset_defaults()

        record = json.loads(path.read_text().strip().splitlines()[-1])
        assert record["event"] == "run_complete"
        assert record["updated"] == 3
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_level_filters_lower_events(self, test_settings, tmp_path: Path):
        path = tmp_path / "run.log"
        test_settings.environment = "production"
        test_settings.log_level = "warning"
        test_settings.log_file = str(path)
        try:
            configure_logging(test_settings)
            logger = structlog.get_logger("test")
            logger.info("quiet")
            logger.warning("loud")
        finally:
            structlog.reset_defaults()

        events = [json.loads(line)["event"] for line in path.read_text().splitlines()]
        assert events == ["loud"]
