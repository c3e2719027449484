#!/usr/bin/env python3
"""
File Monitor for Data Transmit
Watches upload directories for files moved into place

Producers are expected to write a file elsewhere and then rename it into
an upload directory, so only move-completion events are reported. Files
created in place are never reported; the retry sweeper finds them once
they are older than the retry interval.
"""

import logging
import os
import sys
from typing import Callable

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from data_transmit.watch_registry import WatchRegistry

logger = logging.getLogger(__name__)


def create_observer():
    """
    Create the watchdog observer.

    On Linux the inotify observer is asked for full events so a file moved
    in from an unwatched directory arrives as a move (with only a
    destination) instead of being folded into a creation. Elsewhere only
    renames between watched paths are seen as moves.
    """
    if sys.platform.startswith('linux'):
        from watchdog.observers.inotify import InotifyObserver
        return InotifyObserver(generate_full_events=True)
    return Observer()


class FileMonitor:
    """
    Reports (directory_name, filename) for every file moved into a watched
    directory.

    The callback runs on watchdog's event thread and should only hand the
    event off (e.g. put it on a queue).

    Example:
        >>> def on_moved(directory_name, filename):
        ...     print(f"{directory_name}/{filename} arrived")
        >>> monitor = FileMonitor(registry, on_moved)
        >>> monitor.start()
        >>> # ... monitor runs in background ...
        >>> monitor.stop()
    """

    def __init__(self, registry: WatchRegistry, callback: Callable[[str, str], None]):
        self.registry = registry
        self.callback = callback
        self.observer = create_observer()
        self.handler = MovedIntoHandler(self.handle_moved)
        self._running = False

        logger.info(f"Initialized monitoring {len(registry)} directories")

    def start(self):
        """Start watching every registered directory (non-recursive)."""
        if self._running:
            logger.warning("Already running")
            return

        for directory in self.registry:
            self.observer.schedule(self.handler, str(directory.absolute_path), recursive=False)
            logger.debug(f"Watching {directory.absolute_path}")

        self.observer.start()
        self._running = True
        logger.info("Started monitoring")

    def stop(self):
        """Stop watching. Safe to call multiple times."""
        if not self._running:
            return

        self._running = False
        self.observer.stop()
        self.observer.join()
        logger.info("Stopped monitoring")

    def handle_moved(self, dest_path: str):
        """Map a move destination to its watched directory and report it."""
        if not dest_path:
            return

        dest_path = os.fsdecode(dest_path)
        directory = self.registry.find_by_path(os.path.dirname(dest_path))
        if directory is None:
            logger.debug(f"Ignoring move outside watched directories: {dest_path}")
            return

        self.callback(directory.name, os.path.basename(dest_path))


class MovedIntoHandler(FileSystemEventHandler):
    """
    Watchdog event handler that forwards move destinations.

    Ignores directory events and every event type other than moves.
    """

    def __init__(self, callback: Callable[[str], None]):
        self.callback = callback

    def on_moved(self, event):
        if not event.is_directory:
            self.callback(event.dest_path)
