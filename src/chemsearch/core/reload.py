"""Rebuild the index when the dataset file changes on disk."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from chemsearch.core.dataset import DatasetError, load_records
from chemsearch.core.engine import SearchEngine
from chemsearch.core.schema import SearchableRecord

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 1.0


class DatasetWatcher:
    """Watches one dataset file and swaps in a freshly built index after edits settle.

    A burst of filesystem events restarts the debounce timer; only the last one
    triggers a reload. A dataset that fails to load leaves the current index in place.
    """

    def __init__(
        self,
        path: Path,
        engine: SearchEngine,
        debounce: float = DEFAULT_DEBOUNCE,
        loader: Callable[[Path], Iterable[SearchableRecord]] = load_records,
    ) -> None:
        self.path = Path(path).resolve()
        self.engine = engine
        self.debounce = debounce
        self.loader = loader
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self._observer: Observer | None = None

    def reload(self) -> bool:
        """Load the dataset and replace the engine's index. Returns whether it did."""
        try:
            records = list(self.loader(self.path))
        except DatasetError as e:
            logger.warning("Keeping current index, dataset reload failed: %s", e)
            return False
        index = self.engine.replace_records(records)
        logger.info("Reloaded %d records from %s", len(index), self.path)
        return True

    def _matches(self, event: FileSystemEvent) -> bool:
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(p and Path(p).resolve() == self.path for p in paths)

    def schedule_reload(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self.reload)
            self._timer.daemon = True
            self._timer.start()

    def start(self) -> None:
        watcher = self

        class _Handler(FileSystemEventHandler):
            def on_any_event(self, event):
                if not event.is_directory and watcher._matches(event):
                    watcher.schedule_reload()

        observer = Observer()
        observer.schedule(_Handler(), str(self.path.parent), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching %s (debounce %ss)", self.path, self.debounce)

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
