#!/usr/bin/env python3
"""
Retry Sweeper for Data Transmit
Periodically rescans every upload directory for stray files

A file is stray when its status-change time (ctime) is older than the
retry interval. ctime is updated whenever a file is written or moved, so
it is a lower bound on the time since the file was moved into place.
Every file still pending after the retry pass is handed to the quota
enforcer.
"""

import logging
import os
import stat
import time
from pathlib import Path
from typing import List

from data_transmit.quota_enforcer import FileRecord, QuotaEnforcer
from data_transmit.upload_manager import UploadManager, UploadResult
from data_transmit.utils import format_bytes
from data_transmit.watch_registry import WatchedDirectory, WatchRegistry

logger = logging.getLogger(__name__)


class RetrySweeper:
    """
    Runs one retry-and-quota pass over all watched directories.

    Directories are visited in registry order; files within a directory
    in enumeration order. Retries are not prioritized by age.

    Scheduling is not done here: the caller runs sweep() on its own
    timer and must not run it concurrently with dispatcher events.

    Example:
        >>> sweeper = RetrySweeper(registry, uploader, enforcer, retry_interval_seconds=1800)
        >>> result = sweeper.sweep()
        >>> result['delivered'], result['evicted']
        (3, 0)
    """

    def __init__(self,
                 registry: WatchRegistry,
                 uploader: UploadManager,
                 quota_enforcer: QuotaEnforcer,
                 retry_interval_seconds: float):
        self.registry = registry
        self.uploader = uploader
        self.quota_enforcer = quota_enforcer
        self.retry_interval_seconds = retry_interval_seconds

    def sweep(self, now: float = None) -> dict:
        """
        Retry due files, then enforce the quota on what is left.

        Args:
            now: Wall-clock reference for file ages (default: time.time())

        Returns:
            dict: retried, delivered, failed, pending_files, pending_bytes, evicted
        """
        if now is None:
            now = time.time()

        result = {
            'retried': 0,
            'delivered': 0,
            'failed': 0,
            'pending_files': 0,
            'pending_bytes': 0,
            'evicted': 0
        }
        snapshot: List[FileRecord] = []

        for directory in self.registry:
            self._sweep_directory(directory, now, snapshot, result)

        result['pending_files'] = len(snapshot)
        result['pending_bytes'] = sum(record.size_bytes for record in snapshot)
        result['evicted'] = self.quota_enforcer.enforce(snapshot)

        logger.info(
            f"Sweep complete: {result['retried']} retried, {result['delivered']} delivered, "
            f"{result['failed']} failed, {result['pending_files']} pending "
            f"({format_bytes(result['pending_bytes'])}), {result['evicted']} evicted"
        )
        return result

    def _sweep_directory(self, directory: WatchedDirectory, now: float,
                         snapshot: List[FileRecord], result: dict):
        try:
            with os.scandir(directory.absolute_path) as it:
                entries = list(it)
        except OSError as e:
            logger.error(f"Cannot list {directory.absolute_path}: {e}")
            return

        for entry in entries:
            path = Path(entry.path)

            # Follows symlinks: links count when they point at a regular file
            try:
                file_info = os.stat(path)
            except OSError as e:
                logger.warning(f"Cannot stat {path}: {e}")
                continue

            if not stat.S_ISREG(file_info.st_mode):
                continue

            elapsed = now - file_info.st_ctime
            if elapsed > self.retry_interval_seconds:
                logger.info(f"Retrying file {path}")
                result['retried'] += 1

                try:
                    outcome = self.uploader.attempt(str(path), directory.name)
                except Exception as e:
                    logger.error(f"Error retrying {path}: {e}")
                    import traceback
                    logger.debug(traceback.format_exc())
                    outcome = None

                if outcome == UploadResult.DELIVERED:
                    result['delivered'] += 1
                    continue
                result['failed'] += 1

            snapshot.append(
                FileRecord(
                    path=path,
                    directory=directory,
                    age_marker=file_info.st_ctime,
                    size_bytes=file_info.st_size,
                )
            )
