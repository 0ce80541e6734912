#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Utility Module for statichttp
-----------------------------
Contains helper functions used throughout the server:
- Logging setup with colored console output
- HTTP date formatting
- MIME type lookup by file extension
- Path containment check
"""

import os
import time
import logging
from logging.handlers import RotatingFileHandler
from types import MappingProxyType

import colorama
from colorama import Fore, Style


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

DEFAULT_MIME_TYPE = 'application/octet-stream'

# Built once at import and never mutated; shared by every connection.
MIME_TYPES = MappingProxyType({
    '.avif': 'image/avif',
    '.css': 'text/css; charset=utf-8',
    '.gif': 'image/gif',
    '.htm': 'text/html; charset=utf-8',
    '.html': 'text/html; charset=utf-8',
    '.ico': 'image/x-icon',
    '.jpeg': 'image/jpeg',
    '.jpg': 'image/jpeg',
    '.js': 'text/javascript; charset=utf-8',
    '.json': 'application/json',
    '.mjs': 'text/javascript; charset=utf-8',
    '.pdf': 'application/pdf',
    '.png': 'image/png',
    '.svg': 'image/svg+xml',
    '.txt': 'text/plain; charset=utf-8',
    '.wasm': 'application/wasm',
    '.webp': 'image/webp',
    '.xml': 'text/xml; charset=utf-8',
})


class ColoredFormatter(logging.Formatter):
    """Formatter that colors console records by level."""

    COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def __init__(self):
        super().__init__(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    def format(self, record):
        color = self.COLORS.get(record.levelno, Fore.GREEN)
        return color + super().format(record) + Style.RESET_ALL


def setup_logging(log_level='INFO', log_file=None, max_size=10485760, backup_count=5, use_colored_logging=True):
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (default: INFO)
        log_file: Log file path (default: None, console only)
        max_size: Maximum log file size in bytes (default: 10MB)
        backup_count: Number of backup logs to keep (default: 5)
        use_colored_logging: Whether to use colored logging in console (default: True)

    Returns:
        logging.Logger: Root logger instance
    """
    log_level_value = getattr(logging, str(log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_value)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_size,
                backupCount=backup_count
            )
        except OSError as e:
            print(f"Error setting up log file: {e}")
        else:
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
            root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    if use_colored_logging:
        colorama.just_fix_windows_console()
        console_handler.setFormatter(ColoredFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    root_logger.addHandler(console_handler)
    return root_logger


def mime_type_by_extension(extension, mime_types=MIME_TYPES):
    """
    Look up the content type for a file extension.

    Args:
        extension: Extension including the leading dot, e.g. ".html"
        mime_types: Read-only extension table

    Returns:
        str: Content type, or the generic octet type for unknown extensions
    """
    return mime_types.get(extension.lower(), DEFAULT_MIME_TYPE)


def is_path_within(base_path, target_path):
    """
    Check that an absolute path is the base directory or lies beneath it.

    Both arguments must already be absolute and normalized.
    """
    if target_path == base_path:
        return True
    prefix = base_path if base_path.endswith(os.sep) else base_path + os.sep
    return target_path.startswith(prefix)


def format_http_date(timestamp=None):
    """
    Format a timestamp as an HTTP date string.

    Args:
        timestamp: UNIX timestamp (default: current time)

    Returns:
        str: HTTP date string in RFC 7231 format
    """
    if timestamp is None:
        timestamp = time.time()
    return time.strftime('%a, %d %b %Y %H:%M:%S GMT', time.gmtime(timestamp))
