#!/usr/bin/env python3
"""
Failure Report Writer for Data Transmit
Externalizes per-directory eviction counters as a plain-text table
"""

import logging
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)

DEFAULT_REPORT_PATH = '/tmp/data-transmit-failures.log'


class FailureReportWriter:
    """
    Writes the eviction counter table.

    Format, one line per watched directory in registry order:

        passive 3
        passive-frequent 0

    The file is rewritten in full on every call, through a temp file and
    an atomic rename so readers never see a half-written table.
    """

    def __init__(self, report_path: str = DEFAULT_REPORT_PATH, directory_names: List[str] = None):
        """
        Args:
            report_path: Where the table is written
            directory_names: Registry order for the table rows; names not
                listed here are appended in counter order
        """
        self.report_path = Path(report_path)
        self.directory_names = list(directory_names or [])

    def render(self, counters: Dict[str, int]) -> str:
        names = self.directory_names + [n for n in counters if n not in self.directory_names]
        return ''.join(f"{name} {counters.get(name, 0)}\n" for name in names)

    def write(self, counters: Dict[str, int]) -> bool:
        """
        Rewrite the report file.

        Returns:
            bool: True if written, False if the write failed (logged)
        """
        try:
            self.report_path.parent.mkdir(parents=True, exist_ok=True)

            temp_file = self.report_path.with_name(self.report_path.name + '.tmp')
            temp_file.write_text(self.render(counters))
            temp_file.replace(self.report_path)

            logger.debug(f"Wrote failure counters to {self.report_path}")
            return True

        except OSError as e:
            logger.error(f"Cannot write failure counters to {self.report_path}: {e}")
            return False
