"""
pytest configuration and fixtures.
"""

import socket
from typing import Generator

import pytest

from statichttp import WebServer


INDEX_BODY = b"<html><body>home</body></html>\n"
HELLO_BODY = b"hello, world\n"
# Several chunks plus a remainder at the default chunk size
BINARY_BODY = bytes(range(256)) * 4 + b"tail"


class FakeSocket:
    """Socket stub that returns predefined chunks and records what is sent."""

    def __init__(self, chunks=(), timeout_when_empty=False):
        self._chunks = [
            chunk if isinstance(chunk, bytes) else chunk.encode() for chunk in chunks
        ]
        self.timeout_when_empty = timeout_when_empty
        self.sent = bytearray()
        self.timeouts = []
        self.closed = False

    def recv(self, size):
        if self._chunks:
            chunk = self._chunks.pop(0)
            if len(chunk) > size:
                self._chunks.insert(0, chunk[size:])
                chunk = chunk[:size]
            return chunk
        if self.timeout_when_empty:
            raise socket.timeout("timed out")
        return b""

    def settimeout(self, value):
        self.timeouts.append(value)

    def sendall(self, data):
        if self.closed:
            raise OSError("send on closed socket")
        self.sent += data

    def close(self):
        self.closed = True


@pytest.fixture
def doc_root(tmp_path):
    """Document root with a few files, plus a file just outside it."""
    root = tmp_path / "htdocs"
    root.mkdir()
    (root / "index.html").write_bytes(INDEX_BODY)
    (root / "hello.txt").write_bytes(HELLO_BODY)
    (root / "data.bin").write_bytes(BINARY_BODY)
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_bytes(b"<p>docs</p>")
    (root / "empty").mkdir()
    (tmp_path / "secret.txt").write_bytes(b"top secret")
    (tmp_path / "htdocs2").mkdir()
    (tmp_path / "htdocs2" / "sibling.txt").write_bytes(b"sibling")
    return root


@pytest.fixture
def fake_socket():
    return FakeSocket


def read_response(sock):
    """
    Read one response from a socket.

    Returns:
        tuple: (status_line, headers dict, body bytes), or None on EOF
    """
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = sock.recv(4096)
        if not chunk:
            if data:
                raise AssertionError(f"connection closed mid-response: {data!r}")
            return None
        data += chunk

    head, body = data.split(b"\r\n\r\n", 1)
    lines = head.decode("iso-8859-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        key, value = line.split(": ", 1)
        headers[key] = value

    length = int(headers.get("Content-Length", "0"))
    while len(body) < length:
        chunk = sock.recv(4096)
        if not chunk:
            break
        body += chunk
    return lines[0], headers, body


def connection_closed(sock, timeout=3.0):
    """True if the peer has closed the connection."""
    sock.settimeout(timeout)
    try:
        return sock.recv(1) == b""
    except ConnectionResetError:
        return True


@pytest.fixture
def running_server(doc_root) -> Generator[WebServer, None, None]:
    """A server on an ephemeral port serving doc_root."""
    server = WebServer(
        configure_logging=False,
        host="127.0.0.1",
        port=0,
        document_root=str(doc_root),
        idle_timeout=1.0,
        accept_timeout=0.1,
    )
    assert server.start()

    yield server

    server.shutdown()


@pytest.fixture
def client(running_server) -> Generator[socket.socket, None, None]:
    """A client socket connected to running_server."""
    sock = socket.create_connection(running_server.server_address[:2], timeout=5.0)
    yield sock
    sock.close()


@pytest.fixture(name="read_response")
def read_response_fixture():
    return read_response


@pytest.fixture(name="connection_closed")
def connection_closed_fixture():
    return connection_closed
