#!/usr/bin/env python3
"""Tests for CloudWatch manager"""

from unittest.mock import Mock, patch

import pytest

from data_transmit.cloudwatch_manager import CloudWatchManager


class TestCloudWatchManager:
    """Test CloudWatch metric recording and publishing"""

    def test_init_disabled(self):
        """Test CloudWatch manager with disabled mode"""
        cw = CloudWatchManager("us-east-1", "node-1", enabled=False)
        assert cw.enabled is False
        assert cw.node_id == "node-1"
        assert cw.cw_client is None

    def test_record_counters(self):
        """Test recording deliveries, failures and evictions"""
        cw = CloudWatchManager("us-east-1", "node-1", enabled=False)

        cw.record_upload_success(1024)
        cw.record_upload_success(2048)
        cw.record_upload_failure()
        cw.record_evictions(3)

        assert cw.bytes_delivered == 3072
        assert cw.files_delivered == 2
        assert cw.files_failed == 1
        assert cw.files_evicted == 3

    def test_publish_disabled_is_noop(self):
        cw = CloudWatchManager("us-east-1", "node-1", enabled=False)
        cw.record_upload_success(1024)

        cw.publish_metrics(pending_bytes=10)

        # Counters kept, nothing sent
        assert cw.bytes_delivered == 1024

    @patch("boto3.client")
    def test_startup_metric_published(self, mock_boto_client):
        mock_cw = Mock()
        mock_boto_client.return_value = mock_cw

        CloudWatchManager("us-east-1", "node-1", enabled=True)

        mock_boto_client.assert_called_once_with("cloudwatch", region_name="us-east-1")
        metrics = mock_cw.put_metric_data.call_args[1]["MetricData"]
        assert metrics[0]["MetricName"] == "ServiceStartup"
        assert metrics[0]["Dimensions"] == [{"Name": "NodeId", "Value": "node-1"}]

    @patch("boto3.client")
    def test_publish_metrics(self, mock_boto_client):
        """Test publishing metrics to CloudWatch"""
        mock_cw = Mock()
        mock_boto_client.return_value = mock_cw

        cw = CloudWatchManager("us-east-1", "node-1", enabled=True)

        # Reset mock after initialization (ServiceStartup metric was published)
        mock_cw.put_metric_data.reset_mock()

        cw.record_upload_success(50 * 1024 * 1024)
        cw.record_upload_failure()
        cw.record_evictions(2)

        cw.publish_metrics(pending_bytes=4096)

        mock_cw.put_metric_data.assert_called_once()
        call_args = mock_cw.put_metric_data.call_args

        assert call_args[1]["Namespace"] == "DataTransmit/Upload"
        names = {m["MetricName"] for m in call_args[1]["MetricData"]}
        assert names == {
            "BytesDelivered",
            "FilesDelivered",
            "DeliveryFailures",
            "FilesEvicted",
            "PendingBytes",
        }

        # Check metrics reset after publish
        assert cw.bytes_delivered == 0
        assert cw.files_delivered == 0
        assert cw.files_failed == 0
        assert cw.files_evicted == 0

    @patch("boto3.client")
    def test_publish_error_is_logged_not_raised(self, mock_boto_client):
        mock_cw = Mock()
        mock_boto_client.return_value = mock_cw
        cw = CloudWatchManager("us-east-1", "node-1", enabled=True)

        mock_cw.put_metric_data.side_effect = Exception("throttled")
        cw.record_upload_failure()
        cw.publish_metrics()

        assert cw.files_failed == 1

    @patch("boto3.client")
    def test_init_failure_raises(self, mock_boto_client):
        """An enabled but unusable CloudWatch is a startup error"""
        mock_boto_client.side_effect = Exception("no credentials")

        with pytest.raises(RuntimeError, match="CloudWatch initialization failed"):
            CloudWatchManager("us-east-1", "node-1", enabled=True)
