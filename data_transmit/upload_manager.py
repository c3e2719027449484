#!/usr/bin/env python3
"""
Upload Manager for Data Transmit
Performs one delivery attempt per call over HTTP PUT

A delivered file is deleted locally as part of the same call. A failed
attempt leaves the file untouched; retry timing belongs to the retry
sweeper, which goes by file age, so nothing is recorded here.
"""

import enum
import logging
import os
from pathlib import Path
from urllib.parse import quote, urlparse

import requests

from data_transmit.utils import format_bytes

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300


class TransportError(Exception):
    """
    Raised when a transfer fails.

    Covers connection errors, timeouts and HTTP error statuses. All of
    these are transient from the agent's point of view: the file stays on
    disk and is retried once it is old enough.
    """

    pass


class UploadResult(enum.Enum):
    """Outcome of a single delivery attempt."""

    DELIVERED = "delivered"
    FAILED = "failed"


class HttpTransport:
    """
    Streams a file to the collector with an HTTP PUT.

    Any HTTP error status counts as a failed transfer, not only
    transport-level errors.

    Attributes:
        timeout (float): Seconds before a stalled transfer is abandoned
        session (requests.Session): Reused connection pool
    """

    def __init__(self, base_url: str, verify_tls: bool = True,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """
        Initialize transport.

        Raises:
            ValueError: If base_url is not an http(s) URL
        """
        parsed = urlparse(base_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"Invalid upload URL: {base_url}")

        self.base_url = base_url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.verify = verify_tls

        if not verify_tls:
            logger.warning("TLS certificate verification DISABLED")
        logger.info(f"HTTP transport ready: {base_url} (timeout {timeout}s)")

    def upload(self, url: str, file_obj, size: int) -> None:
        """
        PUT file_obj to url.

        Raises:
            TransportError: On connection failure, timeout or HTTP error status
        """
        try:
            response = self.session.put(
                url,
                data=file_obj,
                headers={'Content-Length': str(size)},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            raise TransportError(f"HTTP {e.response.status_code}: {e.response.reason}") from e
        except requests.RequestException as e:
            raise TransportError(str(e)) from e

    def close(self):
        self.session.close()


class UploadManager:
    """
    Delivers one file per call and removes it on success.

    Request metadata is sent as query parameters, each percent-encoded on
    its own: filename (absolute local path), node_id, build_id and
    directory (the watched directory the file arrived in).

    Example:
        >>> transport = HttpTransport('https://collector.example.net/upload/')
        >>> uploader = UploadManager(transport, node_id='OW0123456789AB', build_id='git')
        >>> uploader.attempt('/tmp/bismark-uploads/passive/1.json', 'passive')
        <UploadResult.DELIVERED: 'delivered'>

    Attributes:
        stats (dict): Running totals (delivered, failed, bytes_delivered)
    """

    def __init__(self, transport: HttpTransport, node_id: str, build_id: str,
                 cloudwatch=None):
        self.transport = transport
        self.node_id = node_id
        self.build_id = build_id
        self.cloudwatch = cloudwatch

        self.stats = {
            'delivered': 0,
            'failed': 0,
            'bytes_delivered': 0
        }

        logger.info(f"Node ID: {node_id}")
        logger.info(f"Build ID: {build_id}")

    def build_upload_url(self, file_path: str, directory_name: str) -> str:
        """Build the PUT URL for one file."""
        params = (
            ('filename', file_path),
            ('node_id', self.node_id),
            ('build_id', self.build_id),
            ('directory', directory_name),
        )
        # Escape the raw bytes so undecodable filenames still encode
        query = '&'.join(f"{key}={quote(os.fsencode(value), safe='')}" for key, value in params)
        return f"{self.transport.base_url}?{query}"

    def attempt(self, file_path: str, directory_name: str) -> UploadResult:
        """
        Make one delivery attempt.

        Args:
            file_path: Absolute path of the file to send
            directory_name: Name of the watched directory it lives in

        Returns:
            UploadResult.DELIVERED if the collector accepted the file (the
            local copy has been removed, or a warning was logged), otherwise
            UploadResult.FAILED with the file left in place
        """
        path = Path(file_path)

        try:
            with open(path, 'rb') as f:
                size = os.fstat(f.fileno()).st_size
                url = self.build_upload_url(str(path), directory_name)
                self.transport.upload(url, f, size)
        except TransportError as e:
            logger.error(f"Failed to upload {path}: {e}")
            self._record_failure()
            return UploadResult.FAILED
        except OSError as e:
            logger.warning(f"Cannot read {path} for upload: {e}")
            self._record_failure()
            return UploadResult.FAILED

        logger.info(f"Uploaded {path} ({format_bytes(size)})")
        self.stats['delivered'] += 1
        self.stats['bytes_delivered'] += size
        if self.cloudwatch:
            self.cloudwatch.record_upload_success(size)

        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Uploaded file not garbage collected: {path} ({e})")

        return UploadResult.DELIVERED

    def _record_failure(self):
        self.stats['failed'] += 1
        if self.cloudwatch:
            self.cloudwatch.record_upload_failure()
