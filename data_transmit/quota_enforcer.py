#!/usr/bin/env python3
"""
Quota Enforcer for Data Transmit
Bounds the bytes of pending files by evicting the oldest ones

Policy: newest-first retention. Pending files are sorted by status-change
time, newest first, and sizes are accumulated in that order. Once the
running total passes the budget, that file and every older one is deleted
and counted against its directory.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from data_transmit.failure_report import FailureReportWriter
from data_transmit.utils import format_bytes
from data_transmit.watch_registry import WatchedDirectory, WatchRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """A pending file as observed during one sweep."""

    path: Path
    directory: WatchedDirectory
    age_marker: float
    size_bytes: int


class QuotaEnforcer:
    """
    Deletes the oldest pending files once their total size exceeds a budget.

    Owns the per-directory failure counters. Counters only ever go up, and
    only for evictions: a failed delivery is not a failure here.

    Example:
        >>> enforcer = QuotaEnforcer(registry, budget_bytes=10 * 1024**2,
        ...                          report_writer=FailureReportWriter('/tmp/failures.log'))
        >>> evicted = enforcer.enforce(snapshot)
        >>> enforcer.counters
        {'passive': 1, 'passive-frequent': 0}

    Attributes:
        budget_bytes (int): Byte budget, or None when no quota is configured
    """

    def __init__(self,
                 registry: WatchRegistry,
                 budget_bytes: Optional[int],
                 report_writer: FailureReportWriter = None,
                 cloudwatch=None):
        self.budget_bytes = budget_bytes
        self.report_writer = report_writer
        self.cloudwatch = cloudwatch
        self._counters: Dict[str, int] = {name: 0 for name in registry.names()}

        if budget_bytes is None:
            logger.info("Quota: DISABLED (no budget configured)")
        else:
            logger.info(f"Quota budget: {format_bytes(budget_bytes)}")

    @property
    def counters(self) -> Dict[str, int]:
        """Snapshot of eviction counts per directory name."""
        return dict(self._counters)

    def enforce(self, snapshot: List[FileRecord]) -> int:
        """
        Evict files until the kept set fits the budget.

        Args:
            snapshot: Every pending file found by the sweep, any order

        Returns:
            int: Number of files deleted
        """
        if self.budget_bytes is None:
            return 0

        ordered = sorted(snapshot, key=lambda record: record.age_marker, reverse=True)

        running_total = 0
        over_budget = False
        evicted = 0
        freed_bytes = 0

        for record in ordered:
            if not over_budget:
                running_total += record.size_bytes
                if running_total <= self.budget_bytes:
                    continue
                over_budget = True
                logger.warning(
                    f"Pending files exceed quota ({format_bytes(running_total)} > "
                    f"{format_bytes(self.budget_bytes)}), evicting oldest"
                )

            if self._evict(record):
                evicted += 1
                freed_bytes += record.size_bytes

        if evicted > 0:
            logger.warning(f"Quota eviction: {evicted} files, {format_bytes(freed_bytes)} freed")
            if self.report_writer:
                self.report_writer.write(self._counters)
            if self.cloudwatch:
                self.cloudwatch.record_evictions(evicted)

        return evicted

    def _evict(self, record: FileRecord) -> bool:
        try:
            record.path.unlink()
        except FileNotFoundError:
            logger.info(f"File already gone, not evicted: {record.path}")
            return False
        except OSError as e:
            logger.error(f"Error evicting {record.path}: {e}")
            return False

        name = record.directory.name
        self._counters[name] = self._counters.get(name, 0) + 1
        logger.warning(f"EVICTED: {record.path} ({format_bytes(record.size_bytes)})")
        return True
