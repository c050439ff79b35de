"""Unit tests for FileHandler rotation and formats."""

import json
from datetime import datetime

import pytest

from pagerlink.logging.file_handler import FileHandler
from pagerlink.logging.log_models import LogEntry


def entry(message="Sending command"):
    return LogEntry(datetime(2025, 1, 12, 10, 30), "INFO", "ATExecutor", message, command="AT")


class TestFileHandler:
    """Test writing and closing."""

    def test_creates_directory(self, tmp_path):
        path = tmp_path / "logs" / "nested" / "comm.log"
        with FileHandler(str(path)) as handler:
            assert handler.write(entry())
        assert path.exists()

    def test_text_format(self, tmp_path):
        path = tmp_path / "comm.log"
        with FileHandler(str(path)) as handler:
            handler.write(entry())

        line = path.read_text(encoding="utf-8").splitlines()[0]
        assert line == entry().to_string()

    def test_json_format(self, tmp_path):
        path = tmp_path / "comm.jsonl"
        with FileHandler(str(path), fmt="json") as handler:
            handler.write(entry())

        data = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
        assert data["command"] == "AT"

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            FileHandler(str(tmp_path / "comm.log"), fmt="xml")

    def test_appends(self, tmp_path):
        path = tmp_path / "comm.log"
        for _ in range(2):
            with FileHandler(str(path)) as handler:
                handler.write(entry())
        assert len(path.read_text(encoding="utf-8").splitlines()) == 2

    def test_write_after_close(self, tmp_path):
        handler = FileHandler(str(tmp_path / "comm.log"))
        handler.close()
        handler.close()

        assert handler.closed
        assert not handler.write(entry())

    def test_flush(self, tmp_path):
        with FileHandler(str(tmp_path / "comm.log")) as handler:
            handler.write(entry())
            handler.flush()


class TestRotation:
    """Test size-based rotation."""

    def test_rotates_and_shifts_backups(self, tmp_path):
        path = tmp_path / "comm.log"
        # Rotate before every write once the file holds one entry
        handler = FileHandler(str(path), max_size_mb=1e-6, backup_count=2)

        for i in range(4):
            handler.write(entry(f"message {i}"))
        handler.close()

        assert "message 3" in path.read_text(encoding="utf-8")
        assert "message 2" in handler.backup_path(1).read_text(encoding="utf-8")
        assert "message 1" in handler.backup_path(2).read_text(encoding="utf-8")
        assert not handler.backup_path(3).exists()

    def test_zero_backups_truncates(self, tmp_path):
        path = tmp_path / "comm.log"
        handler = FileHandler(str(path), max_size_mb=1e-6, backup_count=0)

        handler.write(entry("first"))
        handler.write(entry("second"))
        handler.close()

        content = path.read_text(encoding="utf-8")
        assert "second" in content
        assert "first" not in content
        assert not handler.backup_path(1).exists()
