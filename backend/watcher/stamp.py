"""
Restamp Restart Stamp.

Marker file whose modification signals the runtime to restart.
Requires Python 3.11+.
"""

import time
from pathlib import Path

from utils.logger import LoggerMixin


class RestartStamp(LoggerMixin):
    """
    Timestamped marker file observed by the runtime's own watcher.

    Writes truncate and rewrite the existing file rather than replacing
    it, so watchers tracking the path see a change on the same inode.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._writes = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def writes(self) -> int:
        """Number of successful writes."""
        return self._writes

    def write(self) -> bool:
        """
        Write the current time into the stamp file.

        Filesystem errors are logged and swallowed: a missing stamp only
        delays a runtime restart, it never breaks the build.

        Returns:
            True if the stamp was written
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as f:
                f.write(f"{time.time_ns() // 1_000_000}\n")
        except OSError as e:
            self.log.warning("restart_stamp_write_failed", path=str(self._path), error=str(e))
            return False

        self._writes += 1
        self.log.debug("restart_stamp_written", path=str(self._path), writes=self._writes)
        return True
