"""Schedule-time cursor for smart controller tasks.

The router identifies a scene task by its time of day, so every command we
run needs a time no earlier task is still pending on. The last used time is
kept in a one-line "H:M" file and advanced by one minute per command. Losing
the file is harmless: we fall back to now + 1 minute.
"""

import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = ".task_time_cache"


@dataclass(frozen=True)
class TaskTime:
    """Wall-clock hour:minute used as a scene task's launch time."""
    hour: int
    minute: int

    def advance(self) -> "TaskTime":
        """Return the next minute, wrapping 23:59 to 0:0."""
        minute = self.minute + 1
        hour = self.hour
        if minute >= 60:
            minute = 0
            hour += 1
            if hour >= 24:
                hour = 0
        return TaskTime(hour, minute)

    @classmethod
    def from_datetime(cls, value: datetime) -> "TaskTime":
        return cls(value.hour, value.minute)

    @classmethod
    def parse(cls, text: str) -> Optional["TaskTime"]:
        """Parse "H:M"; returns None for anything malformed or out of range."""
        parts = text.strip().split(":")
        if len(parts) != 2:
            return None
        try:
            hour, minute = int(parts[0]), int(parts[1])
        except ValueError:
            return None
        if not (0 <= hour < 24 and 0 <= minute < 60):
            return None
        return cls(hour, minute)

    def __str__(self) -> str:
        return f"{self.hour}:{self.minute}"


class TaskTimeStore:
    """Persistence for the last used task time."""

    def read(self) -> Optional[TaskTime]:
        raise NotImplementedError

    def write(self, value: TaskTime) -> None:
        """Persist value. May raise OSError."""
        raise NotImplementedError


class MemoryTaskTimeStore(TaskTimeStore):
    """Keeps the cursor in memory only (lost when the process exits)."""

    def __init__(self, initial: Optional[TaskTime] = None):
        self.value = initial

    def read(self) -> Optional[TaskTime]:
        return self.value

    def write(self, value: TaskTime) -> None:
        self.value = value


def default_cache_dir() -> Path:
    """Directory of the running executable, or the working directory if unknown."""
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve().parent
    return Path.cwd()


class FileTaskTimeStore(TaskTimeStore):
    """Stores the cursor in a plain text file.

    Reads come from `path` (default: .task_time_cache next to the executable).
    If writing there fails, the file is written to `fallback_dir` (default:
    the working directory) instead.
    """

    def __init__(self, path: Optional[Path] = None, fallback_dir: Optional[Path] = None):
        self.path = Path(path) if path else default_cache_dir() / CACHE_FILE_NAME
        self.fallback_dir = Path(fallback_dir) if fallback_dir else None
        self.last_written: Optional[Path] = None

    @property
    def fallback_path(self) -> Path:
        return (self.fallback_dir or Path.cwd()) / self.path.name

    def read(self) -> Optional[TaskTime]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"[TASK] Cannot read {self.path}: {e}")
            return None
        value = TaskTime.parse(content)
        if value is None:
            logger.debug(f"[TASK] Ignoring corrupt task time cache: {content!r}")
        return value

    def write(self, value: TaskTime) -> None:
        try:
            self.path.write_text(str(value))
            self.last_written = self.path
            return
        except OSError as e:
            logger.debug(f"[TASK] Cannot write {self.path}: {e}, trying {self.fallback_path}")

        self.fallback_path.write_text(str(value))
        self.last_written = self.fallback_path


def next_task_time(store: TaskTimeStore, now: Optional[datetime] = None) -> TaskTime:
    """Mint a task time nobody has used yet and record it in the store.

    Args:
        store: Where the previous time lives.
        now: Current time, used only when the store has nothing usable.

    Returns:
        The stored time advanced by one minute, or now + 1 minute.
    """
    previous = store.read()
    if previous is not None:
        value = previous.advance()
    else:
        value = TaskTime.from_datetime((now or datetime.now()) + timedelta(minutes=1))
        logger.debug(f"[TASK] No cached task time, using now+1min: {value}")

    try:
        store.write(value)
    except OSError as e:
        logger.debug(f"[TASK] Could not persist task time {value}: {e}")

    logger.debug(f"[TASK] Using task time {value}")
    return value
