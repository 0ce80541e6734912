"""
Unit tests for the per-connection session loop.
"""

import pytest

from statichttp.config import ServerConfig
from statichttp.handler import ConnectionSession, RequestHandler, SessionState
from statichttp.resolver import PathResolver
from statichttp.response import BodyStreamError, ResponseBuilder, ResponseWriter


def split_responses(data):
    """Split concatenated head-only or small-body responses into status lines."""
    return [line for line in data.split(b"\r\n") if line.startswith(b"HTTP/1.1 ")]


@pytest.fixture
def make_session(doc_root, fake_socket):
    def factory(*chunks, writer=None, timeout_when_empty=False):
        sock = fake_socket(chunks, timeout_when_empty=timeout_when_empty)
        session = ConnectionSession(
            sock,
            ("127.0.0.1", 50000),
            PathResolver(str(doc_root)),
            ResponseBuilder(),
            writer or ResponseWriter(),
            idle_timeout=5,
        )
        return session, sock
    return factory


class TestConnectionSession:
    """Tests for ConnectionSession.run."""

    def test_keep_alive_serves_sequential_requests(self, make_session, doc_root):
        session, sock = make_session(
            b"GET /hello.txt HTTP/1.1\r\nHost: x\r\n\r\n",
            b"GET /missing.txt HTTP/1.1\r\nHost: x\r\n\r\n",
        )

        session.run()

        body = (doc_root / "hello.txt").read_bytes()
        assert split_responses(bytes(sock.sent)) == [
            b"HTTP/1.1 200 OK",
            b"HTTP/1.1 404 Not Found",
        ]
        assert body in bytes(sock.sent)
        assert session.requests_handled == 2
        assert session.state is SessionState.CLOSED
        assert sock.closed

    def test_connection_close_ends_session(self, make_session):
        session, sock = make_session(
            b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n"
            b"GET /hello.txt HTTP/1.1\r\n\r\n"
        )

        session.run()

        assert split_responses(bytes(sock.sent)) == [b"HTTP/1.1 200 OK"]
        assert b"Connection: close\r\n" in bytes(sock.sent)
        assert session.requests_handled == 1
        assert sock.closed

    def test_not_found_with_close(self, make_session):
        session, sock = make_session(b"GET /missing.txt HTTP/1.1\r\nConnection: close\r\n\r\n")

        session.run()

        head = bytes(sock.sent)
        assert head.startswith(b"HTTP/1.1 404 Not Found\r\nConnection: close\r\nDate: ")
        assert head.endswith(b"\r\n\r\n")
        assert sock.closed

    def test_malformed_request_gets_400_and_close(self, make_session):
        session, sock = make_session(
            b"GET / HTTP/1.1\r\nBad Header\r\n\r\n"
            b"GET / HTTP/1.1\r\n\r\n"
        )

        session.run()

        sent = bytes(sock.sent)
        assert split_responses(sent) == [b"HTTP/1.1 400 Bad Request"]
        assert b"Connection: close\r\n" in sent
        assert session.requests_handled == 0
        assert sock.closed

    def test_bad_request_after_good_one(self, make_session):
        session, sock = make_session(
            b"GET /hello.txt HTTP/1.1\r\n\r\n",
            b"DELETE /hello.txt HTTP/1.1\r\n\r\n",
        )

        session.run()

        assert split_responses(bytes(sock.sent)) == [
            b"HTTP/1.1 200 OK",
            b"HTTP/1.1 400 Bad Request",
        ]

    def test_peer_hang_up_sends_nothing(self, make_session):
        session, sock = make_session()

        session.run()

        assert bytes(sock.sent) == b""
        assert sock.closed

    def test_idle_timeout_sends_nothing(self, make_session):
        session, sock = make_session(timeout_when_empty=True)

        session.run()

        assert bytes(sock.sent) == b""
        assert sock.closed

    def test_timeout_mid_request_sends_nothing(self, make_session):
        session, sock = make_session(b"GET / HTTP/1.1\r\nHost:", timeout_when_empty=True)

        session.run()

        assert bytes(sock.sent) == b""
        assert sock.closed

    def test_deadline_rearmed_per_request(self, make_session):
        session, sock = make_session(
            b"GET /missing HTTP/1.1\r\n\r\n",
            b"GET /missing HTTP/1.1\r\n\r\n",
        )

        session.run()

        # One read timeout per request plus one send timeout per response
        assert len(sock.timeouts) == 5
        assert all(0 < t <= 5 for t in sock.timeouts)

    def test_body_stream_failure_closes(self, make_session):
        class FailingWriter(ResponseWriter):
            def write_body(self, response, connection):
                if response.file_path is not None:
                    raise BodyStreamError("disk went away")

        session, sock = make_session(
            b"GET /hello.txt HTTP/1.1\r\n\r\n",
            b"GET /hello.txt HTTP/1.1\r\n\r\n",
            writer=FailingWriter(),
        )

        session.run()

        assert split_responses(bytes(sock.sent)) == [b"HTTP/1.1 200 OK"]
        assert session.requests_handled == 1
        assert sock.closed

    def test_send_failure_closes(self, make_session):
        class BrokenPipeWriter(ResponseWriter):
            def write(self, response, connection):
                raise BrokenPipeError("client went away")

        session, sock = make_session(
            b"GET / HTTP/1.1\r\n\r\n",
            b"GET / HTTP/1.1\r\n\r\n",
            writer=BrokenPipeWriter(),
        )

        session.run()

        assert session.requests_handled == 1
        assert sock.closed

    def test_close_is_idempotent(self, make_session):
        session, sock = make_session()

        session.close()
        session.close()

        assert session.closed
        assert sock.closed


class TestRequestHandler:
    """Tests for RequestHandler."""

    def test_handle_request_uses_config(self, doc_root, fake_socket):
        config = ServerConfig(document_root=str(doc_root), idle_timeout=2, chunk_size=7)
        handler = RequestHandler(config)
        sock = fake_socket([b"GET /hello.txt HTTP/1.1\r\nConnection: close\r\n\r\n"])

        handler.handle_request(sock, ("127.0.0.1", 50001))

        assert handler.writer.chunk_size == 7
        assert handler.resolver.document_root == str(doc_root)
        assert bytes(sock.sent).endswith((doc_root / "hello.txt").read_bytes())
        assert sock.timeouts and sock.timeouts[0] <= 2
        assert sock.closed

    def test_sessions_share_read_only_collaborators(self, doc_root, fake_socket):
        handler = RequestHandler(ServerConfig(document_root=str(doc_root)))

        first = handler.create_session(fake_socket(), ("127.0.0.1", 1))
        second = handler.create_session(fake_socket(), ("127.0.0.1", 2))

        assert first.resolver is second.resolver
        assert first.builder is second.builder
        assert first.reader is not second.reader

    def test_overlong_line_gets_400_and_close(self, doc_root, fake_socket):
        handler = RequestHandler(ServerConfig(document_root=str(doc_root), max_line_length=16))
        sock = fake_socket([b"GET /a-rather-long-target.txt HTTP/1.1\r\n\r\n"])

        handler.handle_request(sock, ("127.0.0.1", 50002))

        sent = bytes(sock.sent)
        assert split_responses(sent) == [b"HTTP/1.1 400 Bad Request"]
        assert b"Connection: close\r\n" in sent
        assert sock.closed
