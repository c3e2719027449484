#!/usr/bin/env python3
"""
Event-Driven Dispatcher for Data Transmit
Uploads each file as soon as it is moved into a watched directory
"""

import logging
from typing import Optional

from data_transmit.upload_manager import UploadManager, UploadResult
from data_transmit.watch_registry import WatchRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Turns one (directory_name, filename) event into one delivery attempt.

    A failed delivery is not retried here; the file stays in place and the
    retry sweeper picks it up once it is older than the retry interval.
    """

    def __init__(self, registry: WatchRegistry, uploader: UploadManager):
        self.registry = registry
        self.uploader = uploader
        self.events_handled = 0

    def handle_event(self, directory_name: str, filename: str) -> Optional[UploadResult]:
        """
        Attempt delivery of a newly arrived file.

        Returns:
            The attempt's UploadResult, or None if the event was ignored
            (unknown directory or malformed filename)
        """
        directory = self.registry.get(directory_name)
        if directory is None:
            logger.debug(f"Ignoring event for unknown directory: {directory_name!r}")
            return None

        if not filename or filename in ('.', '..') or '/' in filename:
            logger.debug(f"Ignoring malformed filename in {directory_name}: {filename!r}")
            return None

        path = directory.absolute_path / filename
        logger.info(f"File move detected: {path}")
        self.events_handled += 1

        return self.uploader.attempt(str(path), directory.name)
