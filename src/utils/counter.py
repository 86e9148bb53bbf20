import json
import os
import tempfile
import threading
from pathlib import Path

from src.logger import get_logger
from src.utils.errors import StorageError

logger = get_logger(__name__)


class PersistentCounter:
    """
    Patient number source that survives restarts.

    The value lives in a small JSON document ({"counter": N}). A new value is
    only handed out after it has been written to disk, so a crash can at worst
    skip a number, never reuse one.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._value = self._load()
        logger.info(f"Patient counter loaded from {self.path}: {self._value}")

    @property
    def current(self) -> int:
        with self._lock:
            return self._value

    def next(self) -> int:
        """Increments, persists and returns the new value. Raises StorageError if the write fails."""
        with self._lock:
            candidate = self._value + 1
            try:
                self._persist(candidate)
            except OSError as e:
                logger.error(f"Could not persist patient counter {candidate} to {self.path}: {e}")
                raise StorageError(f"Could not persist patient counter: {e}") from e
            self._value = candidate
            return candidate

    def _load(self) -> int:
        if not self.path.exists():
            return 0
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                value = json.load(f).get("counter", 0)
            return max(int(value or 0), 0)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            # A corrupt counter file starts over at 0, same as a missing one
            logger.warning(f"Unreadable counter file {self.path}, starting from 0: {e}")
            return 0

    def _persist(self, value: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"counter": value}, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
