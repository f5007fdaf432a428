#!/usr/bin/env python3
"""
Configuration Manager for the Docker console

This module handles loading and managing configuration from config.yaml
and environment variables.
"""

import logging
import os
from typing import Any, Dict, Optional

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""


class ConfigManager:
    """Manages configuration for the Docker console"""

    def __init__(self, config_file: str = None, validate: bool = True):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to config.yaml or CONFIG_FILE env var)
            validate: If True, validate configuration on initialization
        """
        if config_file is None:
            config_file = os.environ.get("CONFIG_FILE", "config.yaml")
        self.config_file = config_file
        self.config = self._load_config()

        if validate:
            self.validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        default_config = {
            "engine": {
                "binary": "docker",
                "timeout": 120,  # Timeout for a single engine command in seconds
            },
            "ssh": {
                "hostname": "",
                "username": "",
                "port": 22,
                "password": "",
                "key_filename": "",
                "connect_timeout": 10,
                "strict_host_key_checking": False,
            },
            "retry": {
                "max_retries": 2,
                "initial_delay": 1.0,
                "max_delay": 10.0,
                "exponential_base": 2.0,
                "jitter": True,
            },
            "logging": {"level": "WARNING"},
        }

        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, "r") as f:
                    user_config = yaml.safe_load(f) or {}
                return self._merge_config(default_config, user_config)
            else:
                logging.debug(f"Config file {self.config_file} not found, using defaults")
                return default_config
        except Exception as e:
            logging.error(f"Error loading config file: {e}")
            return default_config

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = default.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _get_int(self, section: str, key: str, env_var: Optional[str] = None) -> int:
        raw = (os.environ.get(env_var) if env_var else None) or self.config.get(section, {}).get(key)
        try:
            return int(raw)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"{section}.{key} must be an integer, got: {raw} (type: {type(raw).__name__})"
            )

    def _get_float(self, section: str, key: str) -> float:
        raw = self.config.get(section, {}).get(key)
        try:
            return float(raw)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"{section}.{key} must be a number, got: {raw} (type: {type(raw).__name__})"
            )

    @staticmethod
    def _as_bool(value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)

    # Engine configuration
    def get_docker_binary(self) -> str:
        """Get Docker client binary from environment or config"""
        return os.environ.get("DOCKER_BINARY") or self.config["engine"]["binary"]

    def get_engine_timeout(self) -> int:
        """Get per-command engine timeout in seconds"""
        return self._get_int("engine", "timeout", "DOCKER_TIMEOUT")

    # SSH configuration
    def get_ssh_hostname(self) -> Optional[str]:
        return os.environ.get("SSH_HOSTNAME") or self.config["ssh"].get("hostname") or None

    def get_ssh_username(self) -> Optional[str]:
        return os.environ.get("SSH_USERNAME") or self.config["ssh"].get("username") or None

    def get_ssh_port(self) -> int:
        return self._get_int("ssh", "port", "SSH_PORT")

    def get_ssh_password(self) -> Optional[str]:
        """Get SSH password. Prefer key-based authentication; this is only a fallback."""
        return os.environ.get("SSH_PASSWORD") or self.config["ssh"].get("password") or None

    def get_ssh_key_filename(self) -> Optional[str]:
        key_file = os.environ.get("SSH_KEY_FILE") or self.config["ssh"].get("key_filename")
        return os.path.expanduser(key_file) if key_file else None

    def get_ssh_connect_timeout(self) -> int:
        return self._get_int("ssh", "connect_timeout")

    def get_ssh_strict_host_key_checking(self) -> bool:
        env_value = os.environ.get("SSH_STRICT_HOST_KEY_CHECKING")
        if env_value is not None:
            return self._as_bool(env_value)
        return self._as_bool(self.config["ssh"].get("strict_host_key_checking", False))

    # Retry configuration
    def get_max_retries(self) -> int:
        """Get max retries from config, with type coercion"""
        return self._get_int("retry", "max_retries")

    def get_retry_initial_delay(self) -> float:
        return self._get_float("retry", "initial_delay")

    def get_retry_max_delay(self) -> float:
        return self._get_float("retry", "max_delay")

    def get_retry_exponential_base(self) -> float:
        return self._get_float("retry", "exponential_base")

    def get_retry_jitter(self) -> bool:
        return self._as_bool(self.config.get("retry", {}).get("jitter", True))

    # Logging configuration
    def get_log_level(self) -> str:
        return (os.environ.get("LOG_LEVEL") or self.config.get("logging", {}).get("level", "WARNING")).upper()

    def validate_config(self) -> None:
        """Validate configuration values

        Raises:
            ConfigValidationError: If any configuration value is invalid
        """
        errors = []

        if not self.get_docker_binary():
            errors.append("engine.binary must not be empty")

        for getter, name in (
            (self.get_engine_timeout, "engine.timeout"),
            (self.get_ssh_connect_timeout, "ssh.connect_timeout"),
            (self.get_max_retries, "retry.max_retries"),
        ):
            try:
                value = getter()
                if value < 0 or (name != "retry.max_retries" and value == 0):
                    errors.append(f"{name} must be positive, got: {value}")
            except ConfigValidationError as e:
                errors.append(str(e))

        try:
            port = self.get_ssh_port()
            if not 1 <= port <= 65535:
                errors.append(f"ssh.port must be between 1 and 65535, got: {port}")
        except ConfigValidationError as e:
            errors.append(str(e))

        for getter in (self.get_retry_initial_delay, self.get_retry_max_delay, self.get_retry_exponential_base):
            try:
                getter()
            except ConfigValidationError as e:
                errors.append(str(e))

        if self.get_log_level() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"logging.level must be a standard level name, got: {self.get_log_level()}")

        if errors:
            raise ConfigValidationError("Configuration validation failed:\n  - " + "\n  - ".join(errors))

    def print_config(self):
        """Print current configuration (password redacted)"""
        print("Docker Console Configuration:")
        print("=" * 50)
        print(f"Config file: {self.config_file}")
        print(f"Docker binary: {self.get_docker_binary()}")
        print(f"Engine timeout: {self.get_engine_timeout()}s")
        print(f"SSH host: {self.get_ssh_hostname() or '-'}")
        print(f"SSH user: {self.get_ssh_username() or '-'}")
        print(f"SSH port: {self.get_ssh_port()}")
        print(f"SSH password: {'****' if self.get_ssh_password() else '-'}")
        print(f"SSH key file: {self.get_ssh_key_filename() or '-'}")
        print(f"Strict host key checking: {self.get_ssh_strict_host_key_checking()}")
        print(f"Log level: {self.get_log_level()}")


# Global config manager instance
# Validation can be disabled by setting SKIP_CONFIG_VALIDATION=true environment variable
config_manager = ConfigManager(
    validate=os.environ.get("SKIP_CONFIG_VALIDATION", "").lower() not in ("true", "1", "yes")
)
