"""Filesystem watcher — turns watchdog events into ``ChangeEvent``s.

The watchdog observer runs in its own thread.  Its handler converts each
file event into one ``ChangeEvent`` per affected path and hands it to the
server's event loop with ``call_soon_threadsafe``; listeners (the change
bus, the package resolver cache) therefore always run on the loop.
"""

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import TypeAlias

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from esdev.files.resolver import is_within, url_path_for
from esdev.realtime.events import ChangeEvent, ChangeKind

logger = logging.getLogger("esdev.watch")

ChangeListener: TypeAlias = Callable[[ChangeEvent], object]

_KINDS: dict[str, ChangeKind] = {
    EVENT_TYPE_MODIFIED: "modified",
    EVENT_TYPE_CREATED: "created",
    EVENT_TYPE_DELETED: "deleted",
}


def _fspath(value: str | bytes) -> str:
    return os.fsdecode(value)


def changes_for(root: Path, event: FileSystemEvent) -> list[ChangeEvent]:
    """Translate one watchdog event into change events under *root*.

    Directory events and paths outside the root produce nothing.  A move
    yields a deletion of the source and a creation of the destination.
    """
    if event.is_directory:
        return []

    if event.event_type == EVENT_TYPE_MOVED:
        pairs = [
            (_fspath(event.src_path), "deleted"),
            (_fspath(event.dest_path), "created"),
        ]
    elif event.event_type in _KINDS:
        pairs = [(_fspath(event.src_path), _KINDS[event.event_type])]
    else:
        return []  # opened / closed: no content change

    # Some platforms report symlink-resolved paths (/private/var on macOS).
    real_root = Path(os.path.realpath(root))
    changes: list[ChangeEvent] = []
    for path, kind in pairs:
        file_path = Path(os.path.normpath(path))
        for base in (root, real_root):
            if is_within(base, file_path) and file_path != base:
                changes.append(ChangeEvent(path=url_path_for(base, file_path), kind=kind))
                break
    return changes


class _Handler(FileSystemEventHandler):
    """Bridges watchdog's observer thread to the asyncio loop."""

    def __init__(self, watcher: "FileWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        for change in changes_for(self._watcher.root, event):
            self._watcher.emit_threadsafe(change)


class FileWatcher:
    """Watches the root directory tree and notifies listeners on the loop.

    Usage::

        watcher = FileWatcher(root, loop)
        watcher.add_listener(bus.publish)
        watcher.start()
        ...
        watcher.stop()
    """

    __slots__ = ("_listeners", "_loop", "_observer", "root")

    def __init__(self, root: Path, loop: asyncio.AbstractEventLoop) -> None:
        self.root = Path(os.path.normpath(root))
        self._loop = loop
        self._listeners: list[ChangeListener] = []
        self._observer: BaseObserver | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def add_listener(self, listener: ChangeListener) -> None:
        """Call *listener* (on the loop) for every change event."""
        self._listeners.append(listener)

    def start(self) -> None:
        """Start the observer thread.  Idempotent."""
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(_Handler(self), str(self.root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", self.root)

    def stop(self) -> None:
        """Stop the observer thread and wait for it to exit."""
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5.0)
        logger.info("Stopped watching %s", self.root)

    def emit_threadsafe(self, change: ChangeEvent) -> None:
        """Schedule listener dispatch on the loop from any thread."""
        if self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self.emit, change)
        except RuntimeError:
            # Loop closed between the check and the call (shutdown race)
            logger.debug("Dropped change for %s: event loop closed", change.path)

    def emit(self, change: ChangeEvent) -> None:
        """Dispatch *change* to every listener.  Must run on the loop."""
        logger.debug("%s %s", change.kind, change.path)
        for listener in tuple(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Change listener %r failed for %s", listener, change.path)
