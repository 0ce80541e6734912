#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
statichttp Server Module
------------------------
Listens for TCP connections and starts one thread per accepted connection
to run its ConnectionSession.
"""

import os
import socket
import threading
import time
import logging
import signal

from .config import ServerConfig
from .handler import RequestHandler
from .utils import setup_logging


class ServerSetupError(Exception):
    """The server cannot start with the given configuration."""


def validate_document_root(document_root):
    """
    Check that the document root exists and is a directory.

    Raises:
        ServerSetupError: The document root is missing or not a directory
    """
    if not os.path.exists(document_root):
        raise ServerSetupError(f"Document root {document_root} does not exist")
    if not os.path.isdir(document_root):
        raise ServerSetupError(f"Document root {document_root} is not a directory")


class WebServer:
    """
    Web server that accepts connections and serves each one on its own
    session thread.
    """

    def __init__(self, config_file=None, configure_logging=True, **kwargs):
        """
        Initialize the web server.

        Args:
            config_file: Path to the configuration file
            configure_logging: Install console/file log handlers
            **kwargs: Additional configuration parameters that override config file
        """
        self.config = ServerConfig(config_file, **kwargs)

        if configure_logging:
            setup_logging(
                log_level=self.config.log_level,
                log_file=self.config.log_file,
                max_size=self.config.log_max_size,
                backup_count=self.config.log_backup_count,
                use_colored_logging=self.config.colored_logging
            )
        self.logger = logging.getLogger('WebServer')

        self.request_handler = None
        self.server_socket = None
        self.server_address = None
        self.is_running = False
        self.session_threads = set()
        self._accept_thread = None
        self.start_time = time.time()

        self.active_connections = 0
        self.active_connections_lock = threading.Lock()

    def install_signal_handlers(self):
        """Shut down on SIGINT and SIGTERM. Must be called from the main thread."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, sig, frame):
        self.logger.info(f"Received signal {sig}, shutting down...")
        self.is_running = False

    def start(self):
        """
        Validate the setup, bind the listening socket and start accepting.

        Returns:
            bool: True if the server is now accepting connections
        """
        if self.is_running:
            self.logger.warning("Server is already running")
            return True

        try:
            validate_document_root(self.config.document_root)
        except ServerSetupError as e:
            self.logger.error(f"Server is not set up correctly: {e}")
            return False

        try:
            self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.server_socket.bind((self.config.host, self.config.port))
            self.server_socket.listen(self.config.connection_queue)
            # Lets the accept loop notice shutdown
            self.server_socket.settimeout(self.config.accept_timeout)
        except OSError as e:
            self.logger.error(f"Error starting server on {self.config.host}:{self.config.port}: {e}")
            if self.server_socket:
                self.server_socket.close()
                self.server_socket = None
            return False

        self.server_address = self.server_socket.getsockname()
        self.request_handler = RequestHandler(self.config)
        self.is_running = True

        host, port = self.server_address[:2]
        self.logger.info(f"Server started and bound to http://{host}:{port}")
        self.logger.info(f"Serving files from {os.path.abspath(self.config.document_root)}")

        self._accept_thread = threading.Thread(
            target=self._accept_connections,
            name="WebServerAcceptor",
            daemon=True
        )
        self._accept_thread.start()
        return True

    def shutdown(self):
        """
        Stop accepting, wait for open sessions to finish and release the
        listening socket.
        """
        if self.server_socket is None:
            return

        self.logger.info("Shutting down server...")
        self.is_running = False

        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join()
        self._accept_thread = None

        self.server_socket.close()
        self.server_socket = None

        with self.active_connections_lock:
            session_threads = list(self.session_threads)
        self.logger.debug(f"Waiting for {len(session_threads)} session thread(s)...")
        for thread in session_threads:
            thread.join()

        self.logger.info("Server shutdown complete")

    def _accept_connections(self):
        while self.is_running:
            try:
                client_socket, client_address = self.server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.is_running:
                    self.logger.error(f"Error accepting connection: {e}")
                    # Avoid spinning on repeated errors
                    time.sleep(0.1)
                continue

            self.logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            session_thread = threading.Thread(
                target=self._handle_client,
                args=(client_socket, client_address),
                name=f"WebServerSession-{client_address[0]}:{client_address[1]}",
                daemon=True
            )
            with self.active_connections_lock:
                self.active_connections += 1
                self.session_threads.add(session_thread)
            session_thread.start()

    def _handle_client(self, client_socket, client_address):
        try:
            self.request_handler.handle_request(client_socket, client_address)
        except Exception:
            self.logger.exception(f"Error handling client {client_address}")
            client_socket.close()
        finally:
            with self.active_connections_lock:
                self.active_connections -= 1
                self.session_threads.discard(threading.current_thread())

    def wait_for_shutdown(self):
        """
        Block until the server stops running, then shut it down.
        """
        try:
            while self.is_running:
                time.sleep(0.5)
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt, shutting down...")
        finally:
            self.shutdown()

    @property
    def stats(self):
        """
        Get server statistics.

        Returns:
            dict: Uptime and open connection count
        """
        return {
            'uptime': time.time() - self.start_time,
            'active_connections': self.active_connections,
        }
