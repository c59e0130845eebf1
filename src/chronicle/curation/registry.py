"""
Persistent set of archived thread roots.

The registry file holds one event id per line. It is read fully at startup
and only ever grows: new ids are appended, and a rewrite keeps every id
that was loaded, so the file on disk is always a superset of what was
accepted before a crash.

With a [TaskSupervisor][chronicle.core.tasks.TaskSupervisor], appends are
buffered and written by a background flush in a worker thread, so the accept
path never waits on the disk. Without one, every new id is written through
immediately.

Examples:
    ```python
    registry = RootThreadRegistry("data/root_notes", supervisor=tasks)
    registry.load_from_file()
    registry.add(event.id)
    registry.includes(event.id)   # True
    ```
"""

from __future__ import annotations

import asyncio
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from chronicle.core.exceptions import RegistryError
from chronicle.core.logger import Logger
from chronicle.models._validation import is_hex


if TYPE_CHECKING:
    from chronicle.core.tasks import TaskSupervisor


class RootThreadRegistry:
    """Deduplicated, append-only set of thread root ids backed by a file.

    ``_lock`` guards the id set and the append buffer and is never held
    during file I/O; ``_file_lock`` serializes writers of the file.
    """

    def __init__(self, path: str | Path, supervisor: TaskSupervisor | None = None) -> None:
        self._path = Path(path)
        self._supervisor = supervisor
        self._ids: set[str] = set()
        self._pending: list[str] = []
        self._flush_scheduled = False
        self._lock = threading.Lock()
        self._file_lock = threading.Lock()
        self._logger = Logger("registry")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def pending(self) -> int:
        """Ids added but not yet written to the file."""
        with self._lock:
            return len(self._pending)

    def load_from_file(self) -> int:
        """Merge every non-empty line of the registry file into memory.

        A missing or empty file yields an empty registry. Lines that do not
        look like a lowercase hex event id are kept as they are and only
        reported.

        Returns:
            Number of ids held after loading.

        Raises:
            RegistryError: If the file exists but cannot be read.
        """
        if not self._path.exists():
            self._logger.info("registry_file_missing", path=str(self._path))
            return self.size()

        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise RegistryError(f"cannot read registry file {self._path}: {e}") from e

        loaded = {value for value in map(str.strip, text.splitlines()) if value}
        unusual = sum(1 for value in loaded if not is_hex(value, 64))

        with self._lock:
            self._ids |= loaded
            size = len(self._ids)

        if unusual:
            self._logger.warning("registry_unusual_lines", count=unusual, path=str(self._path))
        self._logger.info("registry_loaded", threads=size, path=str(self._path))
        return size

    def add(self, event_id: str) -> bool:
        """Register *event_id* and queue it for the file if it is new.

        With a supervisor the write happens in a background flush, so this
        must then be called from the event loop thread.

        Returns:
            True if the id was not present before.

        Raises:
            RegistryError: If a write-through append failed. The id stays
                registered in memory and is retried by the next flush.
        """
        with self._lock:
            if event_id in self._ids:
                return False
            self._ids.add(event_id)
            self._pending.append(event_id)
            schedule = self._supervisor is not None and not self._flush_scheduled
            if schedule:
                self._flush_scheduled = True

        if self._supervisor is None:
            self.flush()
        elif schedule and self._supervisor.spawn(self.flush_async(), name="registry_flush") is None:
            with self._lock:
                self._flush_scheduled = False
        return True

    def flush(self) -> int:
        """Append every buffered id to the file.

        Returns:
            Number of ids written.

        Raises:
            RegistryError: If the append failed; the ids stay buffered.
        """
        with self._file_lock:
            with self._lock:
                batch, self._pending = self._pending, []
                if not batch:
                    self._flush_scheduled = False
                    return 0
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as f:
                    f.writelines(event_id + "\n" for event_id in batch)
            except OSError as e:
                with self._lock:
                    self._pending[:0] = batch
                    self._flush_scheduled = False
                raise RegistryError(f"cannot append to registry file {self._path}: {e}") from e
        return len(batch)

    async def flush_async(self) -> int:
        """Drain the buffer by running ``flush()`` in a worker thread."""
        written = 0
        while count := await asyncio.to_thread(self.flush):
            written += count
        self._logger.debug("registry_flushed", written=written)
        return written

    def includes(self, event_id: str) -> bool:
        """Return True if *event_id* is a registered thread root."""
        return event_id in self._ids

    def size(self) -> int:
        """Return the number of registered roots."""
        return len(self._ids)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def persist(self) -> None:
        """Rewrite the file with every known id, sorted, atomically.

        Buffered appends are folded into the rewrite.

        Raises:
            RegistryError: If the temporary file cannot be written or moved.
        """
        tmp = self._path.with_name(self._path.name + ".tmp")
        with self._file_lock:
            with self._lock:
                ids = sorted(self._ids)
                batch, self._pending = self._pending, []
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with tmp.open("w", encoding="utf-8") as f:
                    f.writelines(event_id + "\n" for event_id in ids)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._path)
            except OSError as e:
                with self._lock:
                    self._pending[:0] = batch
                raise RegistryError(f"cannot persist registry file {self._path}: {e}") from e
        self._logger.info("registry_persisted", threads=len(ids))
