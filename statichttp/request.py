#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
HTTP Request Parsing Module for statichttp
------------------------------------------
Reads CRLF-terminated lines from a client connection and turns them into
validated Request values.

Parse failures are returned rather than raised, so the connection loop can
branch on a closed set of error kinds:

    request, bytes_received, error = parse_request(reader)
"""

import re
import socket
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional


CRLF = b'\r\n'

SUPPORTED_METHOD = 'GET'
SUPPORTED_PROTO = 'HTTP/1.1'

HEADER_KEY_PATTERN = re.compile(r'^[A-Za-z0-9-]+$')

DEFAULT_MAX_LINE_LENGTH = 8192


class IncompleteLine(EOFError):
    """The stream ended before a CRLF terminator was seen."""

    def __init__(self, partial=b''):
        super().__init__(f"stream closed with {len(partial)} unterminated bytes")
        self.partial = partial


class LineTooLong(ValueError):
    """A line exceeded the reader's max_line_length."""

    def __init__(self, max_line_length):
        super().__init__(f"line longer than {max_line_length} bytes")
        self.max_line_length = max_line_length


class LineReader:
    """
    Buffered line reader over a socket-like object.

    Each call to read_line() returns exactly one line; bytes after the
    terminator stay buffered for the next call, which may belong to the
    next request on the same connection.
    """

    def __init__(self, stream, recv_size=4096, max_line_length=DEFAULT_MAX_LINE_LENGTH):
        """
        Args:
            stream: Object with recv() and, if a deadline is used, settimeout()
            recv_size: Maximum number of bytes requested per recv() call
            max_line_length: Longest line accepted, terminator excluded
        """
        self._stream = stream
        self._recv_size = recv_size
        self.max_line_length = max_line_length
        self._buffer = bytearray()
        self._deadline = None
        self.bytes_consumed = 0

    @property
    def pending(self):
        """Number of bytes received but not yet returned as a line."""
        return len(self._buffer)

    def set_deadline(self, deadline):
        """
        Arm an absolute read deadline.

        Args:
            deadline: time.monotonic() value, or None to disable
        """
        self._deadline = deadline

    def read_line(self):
        """
        Read one line, without its CRLF terminator.

        Raises:
            IncompleteLine: The stream ended before a terminator
            LineTooLong: The line is longer than max_line_length
            socket.timeout: The deadline expired
        """
        search_from = 0
        while True:
            index = self._buffer.find(CRLF, search_from)
            if index > self.max_line_length:
                raise LineTooLong(self.max_line_length)
            if index >= 0:
                line = bytes(self._buffer[:index])
                del self._buffer[:index + len(CRLF)]
                self.bytes_consumed += index + len(CRLF)
                return line.decode('iso-8859-1')

            # Room for the line plus a trailing CR
            if len(self._buffer) > self.max_line_length + 1:
                raise LineTooLong(self.max_line_length)
            # A CR at the very end may be completed by the next chunk
            search_from = max(0, len(self._buffer) - 1)
            chunk = self._recv()
            if not chunk:
                partial = bytes(self._buffer)
                self.bytes_consumed += len(partial)
                self._buffer.clear()
                raise IncompleteLine(partial)
            self._buffer += chunk

    def _recv(self):
        if self._deadline is not None:
            remaining = self._deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("read deadline expired")
            self._stream.settimeout(remaining)
        return self._stream.recv(self._recv_size)


class ErrorKind(Enum):
    """Every way reading a request can fail."""
    MALFORMED_START_LINE = "malformed start line"
    INVALID_METHOD = "invalid method"
    INVALID_PROTO = "invalid proto"
    INVALID_URL = "invalid url"
    MALFORMED_HEADER_LINE = "malformed header line"
    MALFORMED_BODY = "malformed body"
    PEER_CLOSED = "peer closed"
    IDLE_TIMEOUT = "idle timeout"


class ParseError(Exception):
    """A failed attempt to read one request."""

    def __init__(self, kind, detail=''):
        super().__init__(f"{kind.value} {detail!r}" if detail else kind.value)
        self.kind = kind
        self.detail = detail

    @property
    def is_protocol_violation(self):
        """False when the connection simply ended or went idle."""
        return self.kind not in (ErrorKind.PEER_CLOSED, ErrorKind.IDLE_TIMEOUT)


@dataclass(frozen=True)
class Request:
    """A validated GET request."""
    method: str
    target: str
    proto: str
    # Canonical keys; Host and Connection are lifted into their own fields
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    host: str = ''
    close: bool = False


class ParseResult(NamedTuple):
    request: Optional[Request]
    bytes_received: bool
    error: Optional[ParseError]


def canonical_header_key(key):
    """
    Canonicalize a header name: the first letter of each hyphen-separated
    word upper case, the rest lower case ("content-TYPE" -> "Content-Type").
    """
    return '-'.join(word[:1].upper() + word[1:].lower() for word in key.split('-'))


def parse_request_line(line):
    """
    Split a start line into method, target and proto.

    Raises:
        ParseError: The line does not have exactly three space-separated fields
    """
    fields = line.split(' ', 2)
    if len(fields) != 3:
        raise ParseError(ErrorKind.MALFORMED_START_LINE, line)
    return fields[0], fields[1], fields[2]


def parse_header_line(line):
    """
    Split a header line into a validated (key, value) pair.

    The key is returned as sent; callers canonicalize it.

    Raises:
        ParseError: The line is not a well-formed "Key: Value" header
    """
    key, sep, value = line.partition(':')
    if not sep:
        raise ParseError(ErrorKind.MALFORMED_HEADER_LINE, line)

    key = key.lstrip(' ')
    value = value.lstrip(' ')

    if not HEADER_KEY_PATTERN.match(key):
        raise ParseError(ErrorKind.MALFORMED_HEADER_LINE, line)
    if '\r' in value or '\n' in value:
        raise ParseError(ErrorKind.MALFORMED_HEADER_LINE, line)

    return key, value


def _validate_start_line(method, target, proto):
    if method != SUPPORTED_METHOD:
        raise ParseError(ErrorKind.INVALID_METHOD, method)
    if proto != SUPPORTED_PROTO:
        raise ParseError(ErrorKind.INVALID_PROTO, proto)
    if not target.startswith('/'):
        raise ParseError(ErrorKind.INVALID_URL, target)


def _read_request(reader):
    try:
        line = reader.read_line()
    except IncompleteLine as e:
        if e.partial:
            raise ParseError(ErrorKind.MALFORMED_START_LINE, e.partial.decode('iso-8859-1'))
        raise ParseError(ErrorKind.PEER_CLOSED)
    except LineTooLong as e:
        raise ParseError(ErrorKind.MALFORMED_START_LINE, str(e))

    method, target, proto = parse_request_line(line)
    _validate_start_line(method, target, proto)

    headers = {}
    host = ''
    close = False

    while True:
        try:
            line = reader.read_line()
        except IncompleteLine as e:
            raise ParseError(ErrorKind.MALFORMED_BODY, e.partial.decode('iso-8859-1'))
        except LineTooLong as e:
            raise ParseError(ErrorKind.MALFORMED_HEADER_LINE, str(e))

        if line == '':
            break

        key, value = parse_header_line(line)
        key = canonical_header_key(key)
        if key == 'Host':
            host = value
        elif key == 'Connection':
            if value == 'close':
                close = True
        else:
            headers[key] = value

    return Request(
        method=method,
        target=target,
        proto=proto,
        headers=MappingProxyType(headers),
        host=host,
        close=close,
    )


def parse_request(reader):
    """
    Read the next request from a LineReader.

    Args:
        reader: LineReader positioned at the start of a request

    Returns:
        ParseResult: (request, bytes_received, error). On success error is
        None and bytes_received is True. On failure request is None and
        bytes_received tells whether any bytes of this request arrived.
    """
    start = reader.bytes_consumed
    try:
        request = _read_request(reader)
    except ParseError as e:
        error = e
    except socket.timeout:
        error = ParseError(ErrorKind.IDLE_TIMEOUT)
    except ConnectionError as e:
        error = ParseError(ErrorKind.PEER_CLOSED, str(e))
    else:
        return ParseResult(request, True, None)

    bytes_received = reader.bytes_consumed > start or reader.pending > 0
    return ParseResult(None, bytes_received, error)
