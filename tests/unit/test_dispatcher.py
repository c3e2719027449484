#!/usr/bin/env python3
"""Tests for Event-Driven Dispatcher"""

from unittest.mock import Mock

import pytest

from data_transmit.dispatcher import Dispatcher
from data_transmit.upload_manager import TransportError, UploadManager, UploadResult


@pytest.fixture
def uploader(mock_transport):
    return UploadManager(mock_transport, node_id="node-1", build_id="git")


def test_moved_file_uploaded_and_deleted(registry, uploader, mock_transport, upload_root):
    """A file moved into a watched directory is delivered right away"""
    arrived = upload_root / "passive-frequent" / "report.json"
    arrived.write_text("payload")
    dispatcher = Dispatcher(registry, uploader)

    result = dispatcher.handle_event("passive-frequent", "report.json")

    assert result == UploadResult.DELIVERED
    assert not arrived.exists()
    assert dispatcher.events_handled == 1

    url = mock_transport.upload.call_args[0][0]
    assert "directory=passive-frequent" in url
    assert "report.json" in url


def test_failed_upload_leaves_file(registry, uploader, mock_transport, upload_root):
    """No retry is scheduled; the file just stays for the sweeper"""
    arrived = upload_root / "passive" / "a.json"
    arrived.write_text("payload")
    mock_transport.upload.side_effect = TransportError("HTTP 503: Service Unavailable")
    dispatcher = Dispatcher(registry, uploader)

    result = dispatcher.handle_event("passive", "a.json")

    assert result == UploadResult.FAILED
    assert arrived.read_text() == "payload"
    assert mock_transport.upload.call_count == 1


def test_unknown_directory_ignored(registry):
    uploader = Mock()
    dispatcher = Dispatcher(registry, uploader)

    assert dispatcher.handle_event("active", "a.json") is None
    uploader.attempt.assert_not_called()
    assert dispatcher.events_handled == 0


@pytest.mark.parametrize("filename", ["", ".", "..", "../escape.json", "sub/a.json"])
def test_malformed_filename_ignored(registry, filename):
    uploader = Mock()
    dispatcher = Dispatcher(registry, uploader)

    assert dispatcher.handle_event("passive", filename) is None
    uploader.attempt.assert_not_called()


def test_path_is_absolute_within_directory(registry, upload_root):
    """The uploader is given the absolute path and the directory name"""
    uploader = Mock()
    uploader.attempt.return_value = UploadResult.DELIVERED
    dispatcher = Dispatcher(registry, uploader)

    dispatcher.handle_event("passive", "b.json")

    uploader.attempt.assert_called_once_with(
        str(upload_root.resolve() / "passive" / "b.json"), "passive"
    )


def test_vanished_file_fails_without_side_effects(registry, uploader, mock_transport):
    """An event for a file that is already gone is a failed attempt"""
    dispatcher = Dispatcher(registry, uploader)

    result = dispatcher.handle_event("passive", "gone.json")

    assert result == UploadResult.FAILED
    mock_transport.upload.assert_not_called()
