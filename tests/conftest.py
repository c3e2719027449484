# tests/conftest.py
"""
Common fixtures for all test types
These are shared across unit and integration tests
"""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add project root to Python path so 'data_transmit' can be imported
# This allows tests to run without installing the package
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from data_transmit.watch_registry import WatchRegistry  # noqa: E402


@pytest.fixture
def upload_root(tmp_path):
    """Upload root with two category directories"""
    root = tmp_path / "uploads"
    root.mkdir()
    (root / "passive").mkdir()
    (root / "passive-frequent").mkdir()
    return root


@pytest.fixture
def registry(upload_root):
    """Registry over upload_root in a fixed order"""
    return WatchRegistry.from_names(str(upload_root), ["passive", "passive-frequent"])


@pytest.fixture
def mock_transport():
    """Transport double: upload() succeeds unless side_effect is set"""
    transport = Mock()
    transport.base_url = "https://collector.example.net/upload/"
    transport.upload.return_value = None
    return transport
