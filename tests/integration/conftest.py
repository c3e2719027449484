# tests/integration/conftest.py
"""
Fixtures for integration tests (mocked collector)
These tests run the whole agent against real directories with HTTP mocked
"""

from unittest.mock import patch

import pytest
import requests
import yaml


def make_response(status_code, reason="OK"):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.url = "https://collector.example.net/upload/"
    return response


@pytest.fixture
def staging_dir(tmp_path):
    """Where producers write files before moving them into place"""
    staging = tmp_path / "staging"
    staging.mkdir()
    return staging


@pytest.fixture
def report_path(tmp_path):
    return tmp_path / "failures.log"


@pytest.fixture
def make_config(tmp_path, upload_root, report_path):
    """
    Write a config file for the agent and return its path.

    Keyword arguments override keys of the upload and quota sections.
    """
    def _make(budget_bytes=None, **upload_overrides):
        upload = {
            'url': 'https://collector.example.net/upload/',
            'root': str(upload_root),
            'directories': ['passive', 'passive-frequent'],
            'retry_interval_minutes': 30,
            'sweep_on_start': False,
        }
        upload.update(upload_overrides)

        config = {
            'node_id': 'test-node',
            'build_id': 'test-build',
            'upload': upload,
            'quota': {'budget_bytes': budget_bytes},
            'reporting': {'failure_counters_file': str(report_path)},
            'monitoring': {'cloudwatch_enabled': False},
        }

        config_file = tmp_path / "config.yaml"
        with open(config_file, 'w') as f:
            yaml.dump(config, f)
        return str(config_file)

    return _make


@pytest.fixture
def collector_ok():
    """Every PUT is accepted"""
    with patch('requests.Session.put', return_value=make_response(200)) as mock_put:
        yield mock_put


@pytest.fixture
def collector_down():
    """Every PUT is rejected with a server error"""
    with patch(
        'requests.Session.put', return_value=make_response(500, "Internal Server Error")
    ) as mock_put:
        yield mock_put
