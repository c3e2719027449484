#!/usr/bin/env python3
"""
Utility functions for the Data Transmit agent
Byte formatting and node identity helpers
"""

from pathlib import Path


def format_bytes(bytes_value: int, precision: int = 2) -> str:
    """Format bytes as human-readable string with auto-scaling (B/KB/MB/GB)."""
    if bytes_value < 1024:
        return f"{bytes_value} B"
    elif bytes_value < 1024**2:
        return f"{bytes_value / 1024:.{precision}f} KB"
    elif bytes_value < 1024**3:
        return f"{bytes_value / 1024**2:.{precision}f} MB"
    else:
        return f"{bytes_value / 1024**3:.{precision}f} GB"


def read_node_id(id_file: str) -> str:
    """
    Read this node's identifier from disk.

    The identity file holds a single token (e.g. a router MAC-derived ID);
    surrounding whitespace and the trailing newline are dropped.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is empty
    """
    node_id = Path(id_file).read_text(encoding="utf-8").strip()
    if not node_id:
        raise ValueError(f"Node ID file is empty: {id_file}")
    return node_id
