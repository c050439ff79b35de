"""Log file writer with size-based rotation.

Entries are appended one per line, as readable text or JSON lines. When the
file reaches its size limit it is renamed to ``<name>.1`` (older backups
shift up by one) and a fresh file is started.
"""

from pathlib import Path
from threading import Lock
from typing import IO, Optional
import os
import sys

from pagerlink.logging.log_models import LogEntry

FORMATS = ("text", "json")


class FileHandler:
    """Appends LogEntry records to a rotating log file.

    Example:
        >>> handler = FileHandler("~/.pagerlink/logs/comm.log", max_size_mb=10, backup_count=5)
        >>> handler.write(entry)
        >>> handler.close()
    """

    def __init__(self,
                 log_file_path: str,
                 max_size_mb: float = 10,
                 backup_count: int = 5,
                 fmt: str = "text"):
        """Create the log directory and open the file for appending.

        Args:
            log_file_path: Path to log file (supports ~ expansion)
            max_size_mb: Size in MB that triggers rotation
            backup_count: Rotated files to keep (0 truncates instead)
            fmt: "text" for to_string() lines, "json" for JSON lines

        Raises:
            ValueError: Unknown format
            OSError: Directory or file cannot be created
        """
        if fmt not in FORMATS:
            raise ValueError(f"Unknown log format {fmt!r}, expected one of {FORMATS}")

        self.log_file_path = Path(log_file_path).expanduser().resolve()
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.backup_count = backup_count
        self.fmt = fmt
        self._lock = Lock()
        self._file: Optional[IO[str]] = None

        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._open()

    def _open(self) -> IO[str]:
        return open(self.log_file_path, mode='a', encoding='utf-8')

    @property
    def closed(self) -> bool:
        return self._file is None

    def backup_path(self, index: int) -> Path:
        return self.log_file_path.with_name(f"{self.log_file_path.name}.{index}")

    def format(self, entry: LogEntry) -> str:
        return entry.to_json() if self.fmt == "json" else entry.to_string()

    def write(self, entry: LogEntry) -> bool:
        """Write one entry, rotating first if the file is full.

        Returns:
            True if written; False if closed or the write failed
        """
        with self._lock:
            if self._file is None:
                return False
            try:
                self._rotate_if_needed()
                self._file.write(self.format(entry) + '\n')
                self._file.flush()
                return True
            except OSError as e:
                print(f"ERROR: Failed to write log entry: {e}", file=sys.stderr)
                return False

    def _rotate_if_needed(self) -> None:
        """Rotate when the current file has reached max size. Caller holds the lock."""
        if self.max_size_bytes <= 0 or self._file.tell() < self.max_size_bytes:
            return

        self._file.close()
        try:
            if self.backup_count > 0:
                oldest = self.backup_path(self.backup_count)
                if oldest.exists():
                    oldest.unlink()
                for index in range(self.backup_count - 1, 0, -1):
                    source = self.backup_path(index)
                    if source.exists():
                        source.rename(self.backup_path(index + 1))
                self.log_file_path.rename(self.backup_path(1))
            else:
                self.log_file_path.unlink()
        except OSError as e:
            print(f"WARNING: Log rotation failed: {e}", file=sys.stderr)
        finally:
            self._file = self._open()

    def flush(self) -> None:
        """Flush and fsync the log file."""
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.flush()
                os.fsync(self._file.fileno())
            except OSError as e:
                print(f"ERROR: Failed to flush log file: {e}", file=sys.stderr)

    def close(self) -> None:
        """Close the file. Safe to call more than once."""
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.close()
            except OSError as e:
                print(f"ERROR: Failed to close log file: {e}", file=sys.stderr)
            finally:
                self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
