"""Size-triggered log file rotation."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from ..constants import FALLBACK_LOGGER_NAME

_fallback = logging.getLogger(FALLBACK_LOGGER_NAME)


class SizeRotatingFileHandler(RotatingFileHandler):
    """Rotating handler that checks the active file's size on open and before every write.

    Rotation happens once the active file is strictly larger than
    ``max_bytes``. Generation ``.1`` is the most recently rotated file and
    ``.{backup_count}`` the oldest; the oldest is dropped when a new rotation
    would exceed the generation cap. With ``backup_count == 0`` the oversized
    active file is discarded instead of kept.
    """

    def __init__(self, filename: str | os.PathLike, max_bytes: int, backup_count: int):
        super().__init__(
            filename,
            mode="a",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        self.setFormatter(logging.Formatter("%(message)s"))
        self.rotate_if_oversized()

    def active_size(self) -> int:
        """Size of the active file in bytes, 0 when it does not exist yet."""
        try:
            return os.path.getsize(self.baseFilename)
        except OSError:
            return 0

    def shouldRollover(self, record: logging.LogRecord | None) -> bool:  # noqa: N802
        """Whether the active file has grown past the configured maximum."""
        if self.maxBytes <= 0:
            return False
        return self.active_size() > self.maxBytes

    def rotate_if_oversized(self) -> bool:
        """Run a rotation check outside of a write.

        Returns:
            True if a rotation was performed
        """
        try:
            if self.shouldRollover(None):
                self.doRollover()
                return True
        except OSError as e:
            _fallback.warning("Log rotation failed for %s: %s", self.baseFilename, e)
        return False

    def doRollover(self) -> None:  # noqa: N802
        """Shift generations up by one and start a fresh active file."""
        if self.backupCount > 0:
            super().doRollover()
            return

        if self.stream:
            self.stream.close()
            self.stream = None
        if os.path.exists(self.baseFilename):
            os.remove(self.baseFilename)

    def generation_path(self, generation: int) -> str:
        """Path of a rotated generation (1 is the newest)."""
        return self.rotation_filename(f"{self.baseFilename}.{generation}")

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802
        """Report write failures on the fallback channel instead of raising."""
        _fallback.warning(
            "Failed to write to log file %s: %s", self.baseFilename, sys.exc_info()[1]
        )
