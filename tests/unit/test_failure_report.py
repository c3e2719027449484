#!/usr/bin/env python3
"""Tests for Failure Report Writer"""

from data_transmit.failure_report import FailureReportWriter


def test_render_follows_registry_order(tmp_path):
    writer = FailureReportWriter(str(tmp_path / "f.log"), ["passive-frequent", "passive"])

    text = writer.render({"passive": 3, "passive-frequent": 0})

    assert text == "passive-frequent 0\npassive 3\n"


def test_render_appends_unlisted_names(tmp_path):
    writer = FailureReportWriter(str(tmp_path / "f.log"), ["passive"])

    assert writer.render({"passive": 1, "extra": 2}) == "passive 1\nextra 2\n"


def test_write_replaces_previous_content(tmp_path):
    report = tmp_path / "f.log"
    report.write_text("stale line\nanother\n")
    writer = FailureReportWriter(str(report), ["passive"])

    assert writer.write({"passive": 4}) is True

    assert report.read_text() == "passive 4\n"
    assert not (tmp_path / "f.log.tmp").exists()


def test_write_creates_parent_directories(tmp_path):
    report = tmp_path / "var" / "log" / "failures.log"
    writer = FailureReportWriter(str(report), ["passive"])

    assert writer.write({"passive": 0}) is True
    assert report.read_text() == "passive 0\n"


def test_write_failure_returns_false(tmp_path):
    """An unwritable location is logged, not raised"""
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    writer = FailureReportWriter(str(blocker / "failures.log"), ["passive"])

    assert writer.write({"passive": 1}) is False
