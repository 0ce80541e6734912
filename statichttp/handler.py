#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Connection Handling Module for statichttp
-----------------------------------------
Runs the read/dispatch/write loop for one client connection:

    AWAITING_REQUEST -> PARSING -> DISPATCHING -> RESPONDING
           ^                                          |
           +------------- keep-alive ----------------+
                                                      |
                                                   CLOSED

A connection is closed on peer hang-up, on idle timeout, after a malformed
request, after a failed body write, or when the last request asked for it.
"""

import time
import logging
from enum import Enum

from .request import DEFAULT_MAX_LINE_LENGTH, ErrorKind, LineReader, parse_request
from .resolver import PathResolver
from .response import BodyStreamError, ResponseBuilder, ResponseWriter


class SessionState(Enum):
    AWAITING_REQUEST = "awaiting_request"
    PARSING = "parsing"
    DISPATCHING = "dispatching"
    RESPONDING = "responding"
    CLOSED = "closed"


class ConnectionSession:
    """
    Owns one accepted connection until it is closed.

    Requests are handled strictly one at a time; the next request is not
    read until the current response has been written.
    """

    def __init__(self, connection, client_address, resolver, builder, writer, idle_timeout=5,
                 max_line_length=DEFAULT_MAX_LINE_LENGTH):
        """
        Args:
            connection: Accepted socket (recv, sendall, settimeout, close)
            client_address: Client address tuple (ip, port)
            resolver: PathResolver for the document root
            builder: ResponseBuilder
            writer: ResponseWriter
            idle_timeout: Seconds allowed for each request to arrive
            max_line_length: Longest request or header line accepted
        """
        self.connection = connection
        self.client_address = client_address
        self.resolver = resolver
        self.builder = builder
        self.writer = writer
        self.idle_timeout = idle_timeout
        self.reader = LineReader(connection, max_line_length=max_line_length)
        self.state = SessionState.AWAITING_REQUEST
        self.requests_handled = 0
        self.logger = logging.getLogger('ConnectionSession')

    @property
    def closed(self):
        return self.state is SessionState.CLOSED

    @property
    def peer(self):
        if isinstance(self.client_address, tuple) and len(self.client_address) >= 2:
            return f"{self.client_address[0]}:{self.client_address[1]}"
        return str(self.client_address)

    def run(self):
        """Serve requests until the session closes."""
        try:
            while not self.closed:
                self.serve_one()
        finally:
            self.close()

    def serve_one(self):
        """Read, dispatch and answer a single request."""
        self._transition(SessionState.AWAITING_REQUEST)
        self.reader.set_deadline(time.monotonic() + self.idle_timeout)

        self._transition(SessionState.PARSING)
        request, bytes_received, error = parse_request(self.reader)

        if error is not None:
            if error.kind is ErrorKind.PEER_CLOSED:
                self.logger.debug(f"Connection closed by {self.peer}")
                self.close()
                return
            if error.kind is ErrorKind.IDLE_TIMEOUT:
                if bytes_received:
                    self.logger.info(f"Connection to {self.peer} timed out mid-request")
                else:
                    self.logger.debug(f"Connection to {self.peer} timed out")
                self.close()
                return

            self.logger.warning(f"Bad request from {self.peer}: {error}")
            self._transition(SessionState.DISPATCHING)
            self._respond(self.builder.bad_request())
            self.close()
            return

        self._transition(SessionState.DISPATCHING)
        path, found = self.resolver.resolve(request.target)
        if found:
            response = self.builder.ok(request, path)
        else:
            response = self.builder.not_found(request)

        self._respond(response)
        self.requests_handled += 1

        if request.close or response.closes_connection:
            self.close()

    def _respond(self, response):
        if self.closed:
            return
        self._transition(SessionState.RESPONDING)
        target = response.request.target if response.request is not None else '-'
        self.logger.info(f"{self.peer} - GET {target} -> {response.status_code}")
        try:
            # Each send may take up to idle_timeout
            self.connection.settimeout(self.idle_timeout)
            self.writer.write(response, self.connection)
        except BodyStreamError as e:
            self.logger.error(f"Error streaming body to {self.peer}: {e}")
            self.close()
        except OSError as e:
            self.logger.warning(f"Error sending response to {self.peer}: {e}")
            self.close()

    def _transition(self, state):
        if self.closed:
            return
        self.logger.debug(f"{self.peer}: {self.state.value} -> {state.value}")
        self.state = state

    def close(self):
        """Close the connection. Safe to call more than once."""
        if self.closed:
            return
        self._transition(SessionState.CLOSED)
        try:
            self.connection.close()
        except OSError as e:
            self.logger.debug(f"Error closing connection to {self.peer}: {e}")


class RequestHandler:
    """
    Builds the read-only collaborators once and runs a ConnectionSession
    for each accepted connection.
    """

    def __init__(self, server_config):
        """
        Args:
            server_config: ServerConfig instance
        """
        self.config = server_config
        self.logger = logging.getLogger('RequestHandler')
        self.resolver = PathResolver(server_config.document_root)
        self.builder = ResponseBuilder()
        self.writer = ResponseWriter(chunk_size=server_config.chunk_size)

    def create_session(self, client_socket, client_address):
        """
        Create a session for an accepted connection.

        Args:
            client_socket: Client socket object
            client_address: Client address tuple (ip, port)

        Returns:
            ConnectionSession: Session sharing this handler's resolver,
            builder and writer
        """
        return ConnectionSession(
            client_socket,
            client_address,
            self.resolver,
            self.builder,
            self.writer,
            idle_timeout=self.config.idle_timeout,
            max_line_length=self.config.max_line_length,
        )

    def handle_request(self, client_socket, client_address):
        """
        Serve every request on an accepted connection, then close it.

        Args:
            client_socket: Client socket object
            client_address: Client address tuple (ip, port)
        """
        session = self.create_session(client_socket, client_address)
        self.logger.debug(f"Session started for {session.peer}")
        session.run()
        self.logger.debug(f"Session for {session.peer} ended after {session.requests_handled} request(s)")
