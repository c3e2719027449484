#!/usr/bin/env python3
"""
CloudWatch Manager for Data Transmit
Publishes per-sweep delivery and eviction metrics
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import boto3

logger = logging.getLogger(__name__)

CLOUDWATCH_NAMESPACE = 'DataTransmit/Upload'
METRIC_BYTES_DELIVERED = 'BytesDelivered'
METRIC_FILES_DELIVERED = 'FilesDelivered'
METRIC_DELIVERY_FAILURES = 'DeliveryFailures'
METRIC_FILES_EVICTED = 'FilesEvicted'
METRIC_PENDING_BYTES = 'PendingBytes'
METRIC_SERVICE_STARTUP = 'ServiceStartup'


class CloudWatchManager:
    """
    Accumulates delivery counters and publishes them to CloudWatch.

    Metrics Published (dimension NodeId):
    - DataTransmit/Upload/BytesDelivered
    - DataTransmit/Upload/FilesDelivered
    - DataTransmit/Upload/DeliveryFailures
    - DataTransmit/Upload/FilesEvicted
    - DataTransmit/Upload/PendingBytes (snapshot total at the end of a sweep)

    Disabled by default; when disabled every method is a cheap no-op apart
    from the in-memory counters.

    Example:
        >>> cw = CloudWatchManager('us-east-1', 'OW0123456789AB', enabled=False)
        >>> cw.record_upload_success(file_size=1024)
        >>> cw.record_evictions(2)
        >>> cw.publish_metrics(pending_bytes=4096)
    """

    def __init__(self, region: str, node_id: str, enabled: bool = False, profile_name: str = None):
        """
        Initialize CloudWatch manager.

        Raises:
            RuntimeError: If enabled and the client cannot be created or
                cannot publish the startup metric
        """
        self.region = region
        self.node_id = node_id
        self.enabled = enabled
        self.cw_client = None
        self.bytes_delivered = 0
        self.files_delivered = 0
        self.files_failed = 0
        self.files_evicted = 0

        if not self.enabled:
            logger.info("CloudWatch disabled (enabled=False)")
            return

        try:
            if profile_name:
                session = boto3.Session(profile_name=profile_name)
                self.cw_client = session.client('cloudwatch', region_name=region)
            else:
                self.cw_client = boto3.client('cloudwatch', region_name=region)

            self.cw_client.put_metric_data(
                Namespace=CLOUDWATCH_NAMESPACE,
                MetricData=[self._metric(METRIC_SERVICE_STARTUP, 1, 'Count')]
            )
            logger.info(f"CloudWatch initialized for region: {region}")
        except Exception as e:
            logger.error(f"CloudWatch initialization failed: {e}")
            logger.error("Set monitoring.cloudwatch_enabled: false if metrics are optional")
            raise RuntimeError(f"CloudWatch initialization failed: {e}") from e

    def _metric(self, name: str, value: float, unit: str, timestamp: datetime = None) -> dict:
        return {
            'MetricName': name,
            'Value': value,
            'Unit': unit,
            'Timestamp': timestamp or datetime.now(timezone.utc),
            'Dimensions': [{'Name': 'NodeId', 'Value': self.node_id}]
        }

    def record_upload_success(self, file_size: int):
        """Record a delivered file."""
        self.bytes_delivered += file_size
        self.files_delivered += 1
        logger.debug(f"Recorded delivery: {file_size} bytes")

    def record_upload_failure(self):
        """Record a failed delivery attempt."""
        self.files_failed += 1
        logger.debug("Recorded delivery failure")

    def record_evictions(self, count: int):
        """Record files deleted by the quota enforcer."""
        self.files_evicted += count
        logger.debug(f"Recorded {count} evictions")

    def publish_metrics(self, pending_bytes: Optional[int] = None):
        """Publish accumulated metrics to CloudWatch and reset accumulators."""
        if not self.enabled:
            logger.debug("CloudWatch disabled, skipping publish")
            return

        if self.cw_client is None:
            logger.error("CloudWatch client not initialized, cannot publish metrics")
            return

        try:
            timestamp = datetime.now(timezone.utc)
            metrics = []

            if self.bytes_delivered > 0:
                metrics.append(self._metric(METRIC_BYTES_DELIVERED, self.bytes_delivered, 'Bytes', timestamp))
            if self.files_delivered > 0:
                metrics.append(self._metric(METRIC_FILES_DELIVERED, self.files_delivered, 'Count', timestamp))
            if self.files_failed > 0:
                metrics.append(self._metric(METRIC_DELIVERY_FAILURES, self.files_failed, 'Count', timestamp))
            if self.files_evicted > 0:
                metrics.append(self._metric(METRIC_FILES_EVICTED, self.files_evicted, 'Count', timestamp))
            if pending_bytes is not None:
                metrics.append(self._metric(METRIC_PENDING_BYTES, pending_bytes, 'Bytes', timestamp))

            if metrics:
                self.cw_client.put_metric_data(
                    Namespace=CLOUDWATCH_NAMESPACE,
                    MetricData=metrics
                )
                logger.info(f"Published {len(metrics)} metrics to CloudWatch")
                self.bytes_delivered = 0
                self.files_delivered = 0
                self.files_failed = 0
                self.files_evicted = 0

        except Exception as e:
            logger.error(f"Failed to publish CloudWatch metrics: {e}")
