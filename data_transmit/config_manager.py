#!/usr/bin/env python3
"""
Configuration Manager for Data Transmit
Loads, validates, and manages YAML configuration

Configuration values are read once at startup. SIGHUP re-validates the
file on disk but running components keep the values they were built with.
"""

import logging
import os
import signal
from pathlib import Path
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

from data_transmit.utils import read_node_id

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/data-transmit/config.yaml"
DEFAULT_BUILD_ID = "git"
DEFAULT_RETRY_INTERVAL_MINUTES = 30
DEFAULT_TIMEOUT_SECONDS = 300
DEFAULT_FAILURE_COUNTERS_FILE = "/tmp/data-transmit-failures.log"


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is raised when the configuration file is malformed,
    missing required fields, or contains invalid values.
    """

    pass


class ConfigManager:
    """
    Manages agent configuration from YAML file.

    Features:
    - Load and validate YAML config
    - Re-validate on SIGHUP signal
    - Environment variable and ~ expansion in string values
    - Dot-notation access to nested values

    Example:
        >>> config = ConfigManager('/etc/data-transmit/config.yaml')
        >>> url = config.get('upload.url')
        >>> node_id = config.get_node_id()

    Attributes:
        config_path (Path): Path to the configuration file
        config (dict): Loaded configuration dictionary
    """

    def __init__(self, config_path: str, handle_sighup: bool = True):
        """
        Initialize config manager and load configuration.

        Args:
            config_path: Path to YAML config file
            handle_sighup: Install the SIGHUP re-validation handler (only
                possible from the main thread)

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML syntax is invalid
            ConfigValidationError: If validation fails
        """
        self.config_path = Path(config_path)
        self.config = {}
        if handle_sighup:
            signal.signal(signal.SIGHUP, self._handle_reload_signal)
        self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load and validate configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, "r") as f:
            config = yaml.safe_load(f)

        if config is None:
            raise ConfigValidationError("Config file is empty or contains only whitespace")

        if not isinstance(config, dict):
            raise ConfigValidationError("Config file must contain a mapping at the top level")

        config = self._expand_env_vars(config)

        self.validate_config(config)
        self.config = config
        logger.info(f"Loaded config from {self.config_path}")
        return self.config

    def reload_config(self) -> Dict[str, Any]:
        """
        Reload configuration from disk (SIGHUP handler).

        NOTE: Config changes require a restart - SIGHUP only validates.
        The watch registry, retry interval and quota budget are fixed
        for the lifetime of the process.
        """
        logger.info("Reloading configuration...")
        logger.warning(
            "Config reload detected (SIGHUP). "
            "Changes take effect only after a restart; validation only."
        )

        try:
            old_config = self.config.copy()
            new_config = self.load_config()

            changed = [
                section
                for section in ("node_id", "node_id_file", "build_id", "upload", "quota", "reporting")
                if old_config.get(section) != new_config.get(section)
            ]

            if changed:
                logger.warning(f"CONFIG CHANGES DETECTED: {', '.join(changed)}")
                logger.warning("These changes will NOT take effect until restart")

            logger.info("Config validation successful (changes require restart)")
            return new_config

        except Exception as e:
            logger.error(f"Failed to reload config: {e}")
            logger.info("Keeping existing configuration")
            return self.config

    def _expand_env_vars(self, config: Any) -> Any:
        """
        Recursively expand environment variables in configuration values.

        Supports ${VAR}, $VAR and a leading ~ in any string value.
        """
        if isinstance(config, dict):
            return {key: self._expand_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._expand_env_vars(item) for item in config]
        elif isinstance(config, str):
            expanded = os.path.expanduser(config)
            expanded = os.path.expandvars(expanded)
            return expanded
        else:
            return config

    def validate_config(self, config: Dict[str, Any]) -> bool:
        """Validate configuration schema and values."""
        if "upload" not in config:
            raise ConfigValidationError("Missing required key: upload")

        self._validate_identity(config)
        self._validate_upload_config(config["upload"])

        if "quota" in config:
            self._validate_quota_config(config["quota"])

        if "reporting" in config:
            self._validate_reporting_config(config["reporting"])

        if "monitoring" in config:
            self._validate_monitoring_config(config["monitoring"])

        logger.info("Configuration validated successfully")
        return True

    def _validate_identity(self, config: Dict[str, Any]) -> None:
        """Validate node identity and build identifier."""
        has_id = "node_id" in config
        has_id_file = "node_id_file" in config

        if not has_id and not has_id_file:
            raise ConfigValidationError("One of node_id or node_id_file is required")

        if has_id and (not isinstance(config["node_id"], str) or not config["node_id"]):
            raise ConfigValidationError("node_id must be a non-empty string")

        if has_id_file and (
            not isinstance(config["node_id_file"], str) or not config["node_id_file"]
        ):
            raise ConfigValidationError("node_id_file must be a non-empty string")

        if "build_id" in config:
            if not isinstance(config["build_id"], str) or not config["build_id"]:
                raise ConfigValidationError("build_id must be a non-empty string")

    def _validate_upload_config(self, upload_config: Dict[str, Any]) -> None:
        """Validate upload configuration section."""
        if not isinstance(upload_config, dict):
            raise ConfigValidationError("upload must be a mapping")

        for key in ("url", "root"):
            if key not in upload_config:
                raise ConfigValidationError(f"Missing upload.{key}")
            if not isinstance(upload_config[key], str) or not upload_config[key]:
                raise ConfigValidationError(f"upload.{key} must be a non-empty string")

        parsed = urlparse(upload_config["url"])
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigValidationError(
                f"upload.url must be an http(s) URL, got: {upload_config['url']}"
            )

        if "directories" in upload_config:
            directories = upload_config["directories"]
            if not isinstance(directories, list) or not directories:
                raise ConfigValidationError("upload.directories must be a non-empty list")

            seen = set()
            for idx, name in enumerate(directories):
                if not isinstance(name, str) or not name:
                    raise ConfigValidationError(
                        f"upload.directories[{idx}]: Must be non-empty string"
                    )
                if "/" in name or name.startswith("."):
                    raise ConfigValidationError(
                        f"upload.directories[{idx}]: Must be a plain subdirectory name, got: '{name}'"
                    )
                if name in seen:
                    raise ConfigValidationError(
                        f"upload.directories[{idx}]: Duplicate directory '{name}'"
                    )
                seen.add(name)

        for key in ("retry_interval_minutes", "timeout_seconds"):
            if key in upload_config:
                value = upload_config[key]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    raise ConfigValidationError(f"upload.{key} must be a positive number")

        for flag in ("verify_tls", "sweep_on_start"):
            if flag in upload_config and not isinstance(upload_config[flag], bool):
                raise ConfigValidationError(f"upload.{flag} must be boolean")

    def _validate_quota_config(self, quota_config: Dict[str, Any]) -> None:
        """Validate quota configuration section."""
        if not isinstance(quota_config, dict):
            raise ConfigValidationError("quota must be a mapping")

        budget = quota_config.get("budget_bytes")
        if budget is None:
            return

        if isinstance(budget, bool) or not isinstance(budget, int) or budget < 0:
            raise ConfigValidationError("quota.budget_bytes must be a non-negative integer")

    def _validate_reporting_config(self, reporting_config: Dict[str, Any]) -> None:
        """Validate reporting configuration section."""
        if not isinstance(reporting_config, dict):
            raise ConfigValidationError("reporting must be a mapping")

        if "failure_counters_file" in reporting_config:
            path = reporting_config["failure_counters_file"]
            if not isinstance(path, str) or not path:
                raise ConfigValidationError(
                    "reporting.failure_counters_file must be a non-empty string"
                )

    def _validate_monitoring_config(self, monitoring_config: Dict[str, Any]) -> None:
        """Validate monitoring configuration section."""
        if not isinstance(monitoring_config, dict):
            raise ConfigValidationError("monitoring must be a mapping")

        enabled = monitoring_config.get("cloudwatch_enabled", False)
        if not isinstance(enabled, bool):
            raise ConfigValidationError("monitoring.cloudwatch_enabled must be boolean")

        if enabled and not monitoring_config.get("region"):
            raise ConfigValidationError(
                "monitoring.region is required when cloudwatch_enabled is true"
            )

    def _handle_reload_signal(self, signum, frame):
        """Signal handler for SIGHUP."""
        self.reload_config()

    def get(self, key: str, default=None) -> Any:
        """
        Get configuration value by dot-separated key path.

        Args:
            key: Dot-separated key path (e.g., 'upload.url')
            default: Default value if key not found

        Returns:
            Configuration value or default if not found

        Examples:
            >>> config.get('upload.root')  # '/tmp/bismark-uploads'
            >>> config.get('quota.budget_bytes')  # 104857600
            >>> config.get('missing.key', 'default')  # 'default'
        """
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_node_id(self) -> str:
        """
        Resolve this node's identity.

        An inline node_id wins over node_id_file.

        Raises:
            ConfigValidationError: If the identity file is unreadable or empty
        """
        if self.config.get("node_id"):
            return self.config["node_id"]

        id_file = self.config["node_id_file"]
        try:
            return read_node_id(id_file)
        except (OSError, ValueError) as e:
            raise ConfigValidationError(f"Cannot read node ID from {id_file}: {e}") from e


if __name__ == "__main__":
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if len(sys.argv) < 2:
        logger.error("Usage: python -m data_transmit.config_manager <config_file>")
        sys.exit(1)

    try:
        cm = ConfigManager(sys.argv[1])
        logger.info("Configuration loaded successfully!")
        logger.info(f"Node ID: {cm.get_node_id()}")
        logger.info(f"Upload URL: {cm.get('upload.url')}")
        logger.info(f"Upload root: {cm.get('upload.root')}")
        logger.info(
            f"Retry interval: {cm.get('upload.retry_interval_minutes', DEFAULT_RETRY_INTERVAL_MINUTES)} minutes"
        )
        logger.info(f"Quota budget: {cm.get('quota.budget_bytes')} bytes")

    except Exception as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)
