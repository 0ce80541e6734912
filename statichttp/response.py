#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
HTTP Response Module for statichttp
-----------------------------------
Builds Response values for the three outcomes the server produces and
writes them to a client connection:

    HTTP/1.1 200 OK\\r\\n
    Content-Length: 5\\r\\n          <- headers sorted by key
    Content-Type: text/plain\\r\\n
    Date: ...\\r\\n
    Last-Modified: ...\\r\\n
    \\r\\n
    hello                          <- file streamed in fixed-size chunks
"""

import os
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from .request import Request, SUPPORTED_PROTO
from .utils import MIME_TYPES, format_http_date, mime_type_by_extension


STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404

# HTTP status codes with reason phrases
HTTP_STATUS = {
    STATUS_OK: 'OK',
    STATUS_BAD_REQUEST: 'Bad Request',
    STATUS_NOT_FOUND: 'Not Found',
}

DEFAULT_CHUNK_SIZE = 100


class BodyStreamError(Exception):
    """The file body could not be sent after the headers went out."""


@dataclass
class Response:
    """
    A response ready to be written.

    The body is streamed from file_path by ResponseWriter; headers are
    written sorted by key.
    """
    status_code: int
    proto: str = SUPPORTED_PROTO
    headers: Dict[str, str] = field(default_factory=dict)
    # None for responses to requests that could not be parsed
    request: Optional[Request] = None
    # None means an empty body
    file_path: Optional[str] = None

    @property
    def reason(self):
        """Reason phrase for status_code, e.g. "Not Found"."""
        return HTTP_STATUS.get(self.status_code, 'Unknown')

    @property
    def closes_connection(self):
        """
        Whether the session must close after this response.

        Returns:
            bool: True if the response carries "Connection: close"
        """
        return self.headers.get('Connection') == 'close'


class ResponseBuilder:
    """
    Produces OK, Not Found and Bad Request responses.

    The MIME table and clock are shared, read-only collaborators.
    """

    def __init__(self, mime_types=MIME_TYPES, clock=time.time):
        self.mime_types = mime_types
        self.clock = clock

    def ok(self, request, path):
        """
        Build a 200 response serving the file at path.

        Falls back to a 404 if the file can no longer be stat'ed.
        """
        try:
            file_stat = os.stat(path)
        except OSError:
            return self.not_found(request)

        headers = {
            'Content-Length': str(file_stat.st_size),
            'Content-Type': mime_type_by_extension(os.path.splitext(path)[1], self.mime_types),
            'Date': format_http_date(self.clock()),
            'Last-Modified': format_http_date(file_stat.st_mtime),
        }
        if request.close:
            headers['Connection'] = 'close'

        return Response(STATUS_OK, headers=headers, request=request, file_path=path)

    def not_found(self, request):
        """Build a 404 response with no body."""
        headers = {'Date': format_http_date(self.clock())}
        if request is not None and request.close:
            headers['Connection'] = 'close'
        return Response(STATUS_NOT_FOUND, headers=headers, request=request)

    def bad_request(self):
        """Build a 400 response; the connection is always closed afterwards."""
        headers = {
            'Connection': 'close',
            'Date': format_http_date(self.clock()),
        }
        return Response(STATUS_BAD_REQUEST, headers=headers)


def serialize_head(response):
    """
    Serialize the status line and header block of a response.

    Header order depends only on the key set, so equal responses always
    serialize to equal bytes.
    """
    lines = [f"{response.proto} {response.status_code} {response.reason}\r\n"]
    for key in sorted(response.headers):
        lines.append(f"{key}: {response.headers[key]}\r\n")
    lines.append("\r\n")
    return ''.join(lines).encode('iso-8859-1')


class ResponseWriter:
    """Writes responses to a socket-like object with sendall()."""

    def __init__(self, chunk_size=DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size

    def write(self, response, connection):
        """
        Write the full response.

        Raises:
            BodyStreamError: The body could not be read from disk
            OSError: The connection failed while sending
        """
        connection.sendall(serialize_head(response))
        self.write_body(response, connection)

    def write_body(self, response, connection):
        """
        Stream the response's file in chunk_size pieces.

        Sends nothing when the response has no file. Sends at most
        Content-Length bytes so the framing announced in the headers holds
        even if the file grew after it was stat'ed.
        """
        if response.file_path is None:
            return

        try:
            f = open(response.file_path, 'rb')
        except OSError as e:
            raise BodyStreamError(f"cannot open {response.file_path}: {e}") from e

        with f:
            remaining = self._body_length(response, f)
            while remaining > 0:
                try:
                    chunk = f.read(min(self.chunk_size, remaining))
                except OSError as e:
                    raise BodyStreamError(f"error reading {response.file_path}: {e}") from e
                if not chunk:
                    raise BodyStreamError(
                        f"{response.file_path} ended with {remaining} bytes still owed"
                    )
                connection.sendall(chunk)
                remaining -= len(chunk)

    @staticmethod
    def _body_length(response, f):
        length = response.headers.get('Content-Length')
        if length is not None:
            return int(length)
        return os.fstat(f.fileno()).st_size
