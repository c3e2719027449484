#!/usr/bin/env python3
"""
Watch Registry for Data Transmit
Maps each upload subdirectory to a stable index and absolute path

The registry is built once at startup, either by scanning the upload root
or from an explicit list of subdirectory names, and never changes after.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchedDirectory:
    """One monitored upload subdirectory."""

    index: int
    name: str
    absolute_path: Path


class WatchRegistry:
    """
    Immutable, ordered set of watched upload directories.

    Order is the order the root scan returned (or the configured order) and
    is used as the addressing scheme for failure counters and watches.

    Example:
        >>> registry = WatchRegistry.from_root('/tmp/bismark-uploads')
        >>> [d.name for d in registry]
        ['passive', 'passive-frequent']
        >>> registry.get('passive').absolute_path
        PosixPath('/tmp/bismark-uploads/passive')
    """

    def __init__(self, root: Path, directories: List[WatchedDirectory]):
        self.root = root
        self._directories = tuple(directories)
        self._by_name = {d.name: d for d in self._directories}
        self._by_path = {d.absolute_path: d for d in self._directories}

    @classmethod
    def from_root(cls, root: str) -> "WatchRegistry":
        """
        Build the registry by scanning the immediate children of root.

        Hidden entries are skipped; every child that stats as a directory
        (symlinks to directories included) becomes a watched directory.

        Raises:
            OSError: If root is missing or unreadable
        """
        root_path = Path(root).resolve()
        directories = []

        with os.scandir(root_path) as entries:
            for entry in entries:
                if entry.name.startswith("."):
                    continue
                if entry.is_dir():
                    directories.append(
                        WatchedDirectory(
                            index=len(directories),
                            name=entry.name,
                            absolute_path=root_path / entry.name,
                        )
                    )

        logger.info(f"Found {len(directories)} upload directories under {root_path}")
        return cls(root_path, directories)

    @classmethod
    def from_names(cls, root: str, names: List[str]) -> "WatchRegistry":
        """
        Build the registry from an explicit list of subdirectory names.

        Raises:
            FileNotFoundError: If a named subdirectory does not exist
            NotADirectoryError: If a named entry is not a directory
            ValueError: If a name is listed twice
        """
        root_path = Path(root).resolve()
        directories = []

        for name in names:
            if any(d.name == name for d in directories):
                raise ValueError(f"Duplicate upload directory: {name}")

            path = root_path / name
            if not path.exists():
                raise FileNotFoundError(f"Upload directory does not exist: {path}")
            if not path.is_dir():
                raise NotADirectoryError(f"Upload directory is not a directory: {path}")

            directories.append(WatchedDirectory(index=len(directories), name=name, absolute_path=path))

        logger.info(f"Configured {len(directories)} upload directories under {root_path}")
        return cls(root_path, directories)

    def __iter__(self) -> Iterator[WatchedDirectory]:
        return iter(self._directories)

    def __len__(self) -> int:
        return len(self._directories)

    def __getitem__(self, index: int) -> WatchedDirectory:
        return self._directories[index]

    def get(self, name: str) -> Optional[WatchedDirectory]:
        """Look up a watched directory by name."""
        return self._by_name.get(name)

    def find_by_path(self, directory_path: str) -> Optional[WatchedDirectory]:
        """Return the watched directory whose absolute path is directory_path."""
        return self._by_path.get(Path(directory_path))

    def names(self) -> List[str]:
        """Directory names in registry order."""
        return [d.name for d in self._directories]
