#!/usr/bin/env python3
"""
Data Transmit - Main Application
Ships files dropped into upload directories to a remote collector

This is the main entry point that wires the watch registry, file monitor,
dispatcher, retry sweeper and quota enforcer together and runs them on a
single worker thread.
"""

import logging
import queue
import signal
import sys
import threading
import time

from data_transmit.cloudwatch_manager import CloudWatchManager
from data_transmit.config_manager import (
    DEFAULT_BUILD_ID,
    DEFAULT_CONFIG_PATH,
    DEFAULT_FAILURE_COUNTERS_FILE,
    DEFAULT_RETRY_INTERVAL_MINUTES,
    DEFAULT_TIMEOUT_SECONDS,
    ConfigManager,
)
from data_transmit.dispatcher import Dispatcher
from data_transmit.failure_report import FailureReportWriter
from data_transmit.file_monitor import FileMonitor
from data_transmit.quota_enforcer import QuotaEnforcer
from data_transmit.retry_sweeper import RetrySweeper
from data_transmit.upload_manager import HttpTransport, UploadManager
from data_transmit.utils import format_bytes
from data_transmit.watch_registry import WatchRegistry

logger = logging.getLogger(__name__)

_STOP = object()


class DataTransmitSystem:
    """
    Main system coordinator.

    Coordinates:
    - Configuration management (config_manager)
    - Upload directories (watch_registry)
    - Move notifications (file_monitor)
    - Immediate uploads (dispatcher)
    - Periodic retries and quota enforcement (retry_sweeper, quota_enforcer)

    Architecture:
    1. File Monitor sees a file moved into an upload directory and queues
       (directory_name, filename)
    2. The worker thread takes one event at a time and the Dispatcher
       uploads the file; delivered files are deleted
    3. Every retry interval the worker runs a sweep instead: files older
       than the interval are retried and the quota is enforced on the rest
    4. Events that arrive during a sweep wait in the queue, so a file is
       never handled by a sweep and an event at the same time

    Example:
        >>> system = DataTransmitSystem('/etc/data-transmit/config.yaml')
        >>> system.start()
        >>> # ... system runs ...
        >>> system.stop()

    Attributes:
        config (ConfigManager): Configuration manager
        registry (WatchRegistry): Watched upload directories
        upload_manager (UploadManager): Delivery attempts
        quota_enforcer (QuotaEnforcer): Eviction and failure counters
        stats (dict): Runtime statistics
    """

    def __init__(self, config_path: str, handle_sighup: bool = True):
        """
        Initialize the system.

        Loads configuration and initializes all components.
        Does not start monitoring - call start() to begin operation.

        Raises:
            FileNotFoundError: If config file or upload root doesn't exist
            ConfigValidationError: If config or node identity is invalid
            OSError: If the upload root cannot be scanned
            ValueError: If the upload URL is invalid
            RuntimeError: If CloudWatch is enabled but unusable
        """
        logger.info("Initializing Data Transmit...")

        self.config = ConfigManager(config_path, handle_sighup=handle_sighup)
        node_id = self.config.get_node_id()

        root = self.config.get('upload.root')
        names = self.config.get('upload.directories')
        if names:
            self.registry = WatchRegistry.from_names(root, names)
        else:
            self.registry = WatchRegistry.from_root(root)

        if len(self.registry) == 0:
            logger.warning(f"No upload directories found under {root}")
        else:
            logger.info(f"Upload directories: {', '.join(self.registry.names())}")

        self.cloudwatch = CloudWatchManager(
            region=self.config.get('monitoring.region'),
            node_id=node_id,
            enabled=self.config.get('monitoring.cloudwatch_enabled', False),
            profile_name=self.config.get('monitoring.profile')
        )

        self.transport = HttpTransport(
            base_url=self.config.get('upload.url'),
            verify_tls=self.config.get('upload.verify_tls', True),
            timeout=self.config.get('upload.timeout_seconds', DEFAULT_TIMEOUT_SECONDS)
        )

        self.upload_manager = UploadManager(
            transport=self.transport,
            node_id=node_id,
            build_id=self.config.get('build_id', DEFAULT_BUILD_ID),
            cloudwatch=self.cloudwatch
        )

        self.quota_enforcer = QuotaEnforcer(
            registry=self.registry,
            budget_bytes=self.config.get('quota.budget_bytes'),
            report_writer=FailureReportWriter(
                self.config.get('reporting.failure_counters_file', DEFAULT_FAILURE_COUNTERS_FILE),
                directory_names=self.registry.names()
            ),
            cloudwatch=self.cloudwatch
        )

        self.retry_interval_seconds = 60 * self.config.get(
            'upload.retry_interval_minutes', DEFAULT_RETRY_INTERVAL_MINUTES
        )

        self.dispatcher = Dispatcher(self.registry, self.upload_manager)
        self.sweeper = RetrySweeper(
            registry=self.registry,
            uploader=self.upload_manager,
            quota_enforcer=self.quota_enforcer,
            retry_interval_seconds=self.retry_interval_seconds
        )
        self.file_monitor = FileMonitor(self.registry, self.enqueue_event)

        self.sweep_on_start = self.config.get('upload.sweep_on_start', True)

        self._events = queue.Queue()
        self._running = False
        self._worker_thread = None

        self.stats = {
            'events_received': 0,
            'sweeps': 0,
            'files_evicted': 0
        }

        logger.info(f"Upload URL: {self.transport.base_url}")
        logger.info(f"Retry interval: {self.retry_interval_seconds / 60:g} minutes")
        logger.info("Initialization complete")

    def start(self):
        """
        Start the worker thread and file monitoring.

        Note:
            Safe to call multiple times - will not start if already running
        """
        if self._running:
            logger.warning("Already running")
            return

        logger.info("Starting Data Transmit...")

        self._running = True
        self._worker_thread = threading.Thread(target=self._work_loop, daemon=True)
        self._worker_thread.start()

        self.file_monitor.start()

        logger.info("System started successfully")

    def stop(self, timeout: float = 10):
        """
        Stop monitoring and the worker thread.

        An upload or sweep already in progress runs to completion first;
        waits up to timeout seconds for it.
        """
        if not self._running:
            return

        logger.info("Shutting down...")

        self._running = False
        self.file_monitor.stop()
        self._events.put(_STOP)

        if self._worker_thread:
            self._worker_thread.join(timeout=timeout)

        if self._worker_thread and self._worker_thread.is_alive():
            # Upload still in flight; the session is released when the process exits
            logger.warning(f"Worker still busy after {timeout}s, leaving HTTP session open")
        else:
            self.transport.close()

        self._print_statistics()
        logger.info("Shutdown complete")

    def enqueue_event(self, directory_name: str, filename: str):
        """File monitor callback: defer the event to the worker thread."""
        self.stats['events_received'] += 1
        self._events.put((directory_name, filename))

    def _work_loop(self):
        """
        Worker thread: dispatcher events and sweeps, one at a time.

        The wait for the next event doubles as the sweep timer. A sweep is
        rescheduled one retry interval after the previous one finished.
        """
        logger.info("Worker loop started")

        if self.sweep_on_start:
            next_sweep = time.monotonic()
        else:
            next_sweep = time.monotonic() + self.retry_interval_seconds

        while self._running:
            timeout = max(0.0, next_sweep - time.monotonic())
            try:
                item = self._events.get(timeout=timeout)
            except queue.Empty:
                item = None

            if item is _STOP:
                break

            if item is not None:
                self._handle_event(*item)

            if self._running and time.monotonic() >= next_sweep:
                self._run_sweep()
                next_sweep = time.monotonic() + self.retry_interval_seconds

        logger.info("Worker loop stopped")

    def _handle_event(self, directory_name: str, filename: str):
        try:
            self.dispatcher.handle_event(directory_name, filename)
        except Exception as e:
            logger.error(f"Error handling event for {directory_name}/{filename}: {e}")
            import traceback
            logger.debug(traceback.format_exc())

    def _run_sweep(self):
        try:
            result = self.sweeper.sweep()
        except Exception as e:
            logger.error(f"Error in retry sweep: {e}")
            import traceback
            logger.debug(traceback.format_exc())
            return

        self.stats['sweeps'] += 1
        self.stats['files_evicted'] += result['evicted']
        self.cloudwatch.publish_metrics(pending_bytes=result['pending_bytes'])

    def _print_statistics(self):
        """Log final statistics."""
        upload_stats = self.upload_manager.stats
        logger.info("=" * 50)
        logger.info("System Statistics")
        logger.info("=" * 50)
        logger.info(f"Move events:        {self.stats['events_received']}")
        logger.info(f"Sweeps:             {self.stats['sweeps']}")
        logger.info(f"Files delivered:    {upload_stats['delivered']}")
        logger.info(f"Failed attempts:    {upload_stats['failed']}")
        logger.info(f"Files evicted:      {self.stats['files_evicted']}")
        logger.info(f"Data delivered:     {format_bytes(upload_stats['bytes_delivered'])}")
        logger.info("=" * 50)

    def get_statistics(self) -> dict:
        """Public snapshot for tests/monitoring."""
        upload_stats = self.upload_manager.stats
        return {
            "events": self.stats['events_received'],
            "sweeps": self.stats['sweeps'],
            "delivered": upload_stats['delivered'],
            "failed": upload_stats['failed'],
            "evicted": self.stats['files_evicted'],
            "bytes_delivered": upload_stats['bytes_delivered'],
            "failure_counters": self.quota_enforcer.counters,
        }


def main():
    """
    Main entry point for Data Transmit.

    Command-line arguments:
        --config: Path to configuration file
        --test-config: Test configuration and exit
        --log-level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    import argparse

    parser = argparse.ArgumentParser(description='Data Transmit upload agent')
    parser.add_argument(
        '--config',
        default=DEFAULT_CONFIG_PATH,
        help='Path to configuration file'
    )
    parser.add_argument(
        '--test-config',
        action='store_true',
        help='Test configuration and exit'
    )
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s [%(name)s] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if args.test_config:
        try:
            config = ConfigManager(args.config, handle_sighup=False)
            logger.info("Configuration valid!")
            logger.info(f"Node ID: {config.get_node_id()}")
            logger.info(f"Upload URL: {config.get('upload.url')}")
            logger.info(f"Upload root: {config.get('upload.root')}")
            logger.info(f"Quota budget: {config.get('quota.budget_bytes')}")
            sys.exit(0)
        except Exception as e:
            logger.error(f"Configuration error: {e}")
            sys.exit(1)

    try:
        system = DataTransmitSystem(args.config)
    except Exception as e:
        logger.error(f"FATAL ERROR: {e}")
        sys.exit(1)

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}")
        system.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    system.start()
    logger.info("Running... Press Ctrl+C to stop")
    while True:
        time.sleep(1)


if __name__ == '__main__':
    main()
