#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Configuration Module for statichttp
-----------------------------------
Handles loading and managing server configuration from various sources:
- Default configuration
- Configuration file (JSON)
- Keyword overrides (typically from the command line)
"""

import json
import logging


class ServerConfig:
    """
    Server configuration manager.

    Values are resolved with the following precedence (highest to lowest):
    1. Keyword overrides
    2. Configuration file
    3. Default values
    """

    DEFAULT_CONFIG = {
        "host": "0.0.0.0",
        "port": 8080,
        "document_root": "htdocs",
        "log_level": "INFO",
        "log_file": None,
        "log_max_size": 10485760,  # 10 MB
        "log_backup_count": 5,
        "colored_logging": True,
        "idle_timeout": 5,
        "chunk_size": 100,
        "connection_queue": 10,
        "accept_timeout": 0.5,
        "max_line_length": 8192,
    }

    def __init__(self, config_file=None, **kwargs):
        """
        Initialize the configuration with values from file and kwargs.

        Args:
            config_file: Path to a JSON configuration file
            **kwargs: Configuration values that override file values
        """
        self._config = self.DEFAULT_CONFIG.copy()
        self.logger = logging.getLogger('ServerConfig')

        if config_file:
            self.load_from_file(config_file)

        for key, value in kwargs.items():
            self._config[key] = value

    def load_from_file(self, config_path):
        """
        Load configuration from a JSON file.

        Returns:
            bool: True if loaded successfully, False otherwise
        """
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
        except FileNotFoundError:
            self.logger.warning(f"Configuration file {config_path} not found. Using defaults.")
            return False
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading configuration from {config_path}: {e}")
            return False

        if not isinstance(file_config, dict):
            self.logger.error(f"Configuration file {config_path} must contain a JSON object")
            return False

        self._config.update(file_config)
        self.logger.info(f"Loaded configuration from {config_path}")
        return True

    def get(self, key, default=None):
        """
        Get a configuration value.

        Args:
            key: Configuration key
            default: Value returned when the key is not set

        Returns:
            The configured value, or default
        """
        return self._config.get(key, default)

    def set(self, key, value):
        """
        Set a configuration value, overriding file and default values.

        Args:
            key: Configuration key
            value: New value
        """
        self._config[key] = value

    def get_all(self):
        """
        Get all configuration values.

        Returns:
            dict: A copy of every configuration value
        """
        return self._config.copy()

    @property
    def host(self):
        return self.get('host')

    @property
    def port(self):
        return self.get('port')

    @property
    def document_root(self):
        return self.get('document_root')

    @property
    def log_level(self):
        return self.get('log_level')

    @property
    def log_file(self):
        return self.get('log_file')

    @property
    def log_max_size(self):
        return self.get('log_max_size')

    @property
    def log_backup_count(self):
        return self.get('log_backup_count')

    @property
    def colored_logging(self):
        return self.get('colored_logging')

    @property
    def idle_timeout(self):
        return self.get('idle_timeout')

    @property
    def chunk_size(self):
        return self.get('chunk_size')

    @property
    def connection_queue(self):
        return self.get('connection_queue')

    @property
    def accept_timeout(self):
        return self.get('accept_timeout')

    @property
    def max_line_length(self):
        return self.get('max_line_length')
