"""
Integration tests: a real server on an ephemeral port, real TCP viewers.
"""

import errno
import socket
import time

import pytest

from conftest import wait_for
from videostreamer import BindError, CommunicationError, Server, ServerConfiguration
from videostreamer.http.response import multipart_chunk


STREAM_HEAD = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: multipart/x-mixed-replace; boundary=basic_stream_boundary\r\n"
    b"Connection: close\r\n"
    b"Expires: 0\r\n"
    b"Max-Age: 0\r\n"
    b"Cache-Control: no-cache, private\r\n"
    b"Accept-Range: bytes\r\n"
    b"Pragma: no-cache\r\n"
    b"\r\n"
)

NOT_FOUND = b"HTTP/1.1 404 Not Found\r\n\r\n"


def connect_viewers(server, make_viewer, count, target="/stream"):
    """Open count viewers and wait until all are registered."""
    viewers = [make_viewer(server.address, target) for _ in range(count)]
    for viewer in viewers:
        assert viewer.read_head() == STREAM_HEAD
    assert wait_for(lambda: server.connection_count == count)
    return viewers


class TestLifecycle:

    def test_start_and_stop(self, free_port):
        server = Server(ServerConfiguration(free_port))

        assert not server.is_running()
        assert server.start() is True
        assert server.is_running()
        assert server.address == ("127.0.0.1", free_port)

        assert server.stop() is True
        assert not server.is_running()
        assert server.address is None

    def test_start_twice(self, stream_server):
        address = stream_server.address

        assert stream_server.start() is False
        assert stream_server.is_running()
        assert stream_server.address == address

    def test_stop_when_stopped(self):
        server = Server(ServerConfiguration(0))

        assert server.stop() is False

    def test_stop_twice(self):
        server = Server(ServerConfiguration(0))
        server.start()

        assert server.stop() is True
        assert server.stop() is False

    def test_send_before_start(self, jpeg_placeholder):
        server = Server(ServerConfiguration(0))

        assert server.send(jpeg_placeholder) is False

    def test_send_after_stop(self, jpeg_placeholder):
        server = Server(ServerConfiguration(0))
        server.start()
        server.stop()

        assert server.send(jpeg_placeholder) is False

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            Server(ServerConfiguration(0, endpoint="stream"))

    def test_restart_on_same_port(self, free_port, make_viewer, jpeg_placeholder):
        server = Server(ServerConfiguration(free_port, endpoint="/stream"))

        server.start()
        first = connect_viewers(server, make_viewer, 1)[0]
        server.stop()

        # The old viewer sees the stream end
        assert first.read_rest() == b""

        assert server.start() is True
        try:
            assert server.address == ("127.0.0.1", free_port)
            viewer = connect_viewers(server, make_viewer, 1)[0]

            assert server.send(jpeg_placeholder)
            _, body = viewer.read_chunk()
            assert body == jpeg_placeholder
        finally:
            server.stop()

    def test_context_manager(self, make_viewer):
        with Server(ServerConfiguration(0, endpoint="/stream")) as server:
            assert server.is_running()
            viewer = connect_viewers(server, make_viewer, 1)[0]

        assert not server.is_running()
        assert server.connection_count == 0
        assert viewer.read_rest() == b""


class TestBind:

    def test_port_in_use(self, stream_server):
        _, port = stream_server.address
        other = Server(ServerConfiguration(port))

        with pytest.raises(BindError) as exc_info:
            other.start()

        assert exc_info.value.errno == errno.EADDRINUSE
        assert isinstance(exc_info.value.__cause__, OSError)
        assert not other.is_running()
        assert other.send(b"frame") is False

    def test_bind_error_is_oserror(self, stream_server):
        _, port = stream_server.address

        with pytest.raises(OSError):
            Server(ServerConfiguration(port)).start()

    def test_unresolvable_address(self):
        server = Server(ServerConfiguration(0, address="no-such-host.invalid"))

        with pytest.raises(BindError):
            server.start()

        assert not server.is_running()


class TestChannelFailure:
    """The background threads died while the server still claims to run."""

    def test_send_fails_after_listener_dies(self, jpeg_placeholder):
        server = Server(ServerConfiguration(0))
        server.start()
        acceptor = server._acceptor

        # The next accept() fails with EBADF, which ends the acceptor and,
        # through it, the dispatcher
        acceptor.listener.close()
        acceptor.join(timeout=5.0)

        assert not acceptor.is_alive()
        assert server.is_running()

        with pytest.raises(CommunicationError, match="Unable to send data by channel"):
            server.send(jpeg_placeholder)

        assert server.stop() is True
        assert not server.is_running()
        assert server.send(jpeg_placeholder) is False

    def test_send_fails_after_registry_failure(self, monkeypatch, jpeg_placeholder):
        server = Server(ServerConfiguration(0))
        server.start()
        dispatcher = server._dispatcher

        def broken_broadcast(chunk):
            raise RuntimeError("registry corrupted")

        monkeypatch.setattr(server._registry, "broadcast", broken_broadcast)

        try:
            assert server.send(jpeg_placeholder) is True
            assert wait_for(dispatcher.closed.is_set)

            with pytest.raises(CommunicationError):
                server.send(jpeg_placeholder)
        finally:
            assert server.stop() is True

    def test_send_without_queue(self, jpeg_placeholder):
        server = Server(ServerConfiguration(0))
        server.start()
        commands = server._commands
        server._commands = None

        try:
            with pytest.raises(CommunicationError):
                server.send(jpeg_placeholder)
        finally:
            server._commands = commands
            server.stop()

    def test_stop_without_queue(self):
        server = Server(ServerConfiguration(0))
        server.start()
        acceptor = server._acceptor
        server._commands = None

        with pytest.raises(CommunicationError):
            server.stop()

        assert not server.is_running()

        # The cleared flag still winds both threads down
        acceptor.join(timeout=5.0)
        assert not acceptor.is_alive()
        assert acceptor.dispatcher.closed.is_set()

    def test_stop_without_acceptor(self):
        server = Server(ServerConfiguration(0))
        server.start()
        acceptor = server._acceptor
        server._acceptor = None

        with pytest.raises(CommunicationError):
            server.stop()

        acceptor.join(timeout=5.0)
        assert not acceptor.is_alive()


class TestHandshake:

    def test_stream_headers(self, stream_server, make_viewer):
        viewer = make_viewer(stream_server.address, "/stream")

        assert viewer.read_head() == STREAM_HEAD
        assert wait_for(lambda: stream_server.connection_count == 1)

    def test_wrong_path(self, stream_server, make_viewer):
        viewer = make_viewer(stream_server.address, "/other")

        assert viewer.read_rest() == NOT_FOUND
        assert stream_server.connection_count == 0

    def test_query_string_is_not_stripped(self, stream_server, make_viewer):
        viewer = make_viewer(stream_server.address, "/stream?t=1")

        assert viewer.read_rest() == NOT_FOUND

    def test_wrong_method(self, stream_server, make_viewer):
        viewer = make_viewer(stream_server.address, "/stream", method="POST")

        assert viewer.read_rest() == NOT_FOUND
        assert stream_server.connection_count == 0

    def test_garbage_request(self, stream_server, make_viewer):
        viewer = make_viewer(stream_server.address, raw=b"hello there\r\n\r\n")

        assert viewer.read_rest() == NOT_FOUND

    def test_default_endpoint_is_root(self, make_viewer):
        with Server(ServerConfiguration(0)) as server:
            viewer = make_viewer(server.address, "/")
            assert viewer.read_head() == STREAM_HEAD

    def test_rejected_client_does_not_stop_server(self, stream_server, make_viewer):
        make_viewer(stream_server.address, "/nope").read_rest()

        connect_viewers(stream_server, make_viewer, 1)

        assert stream_server.is_running()

    def test_silent_client_times_out(self, make_viewer):
        config = ServerConfiguration(0, endpoint="/stream", read_timeout=0.3)

        with Server(config) as server:
            # Connects but never sends a request
            silent = socket.create_connection(server.address, timeout=5.0)
            try:
                viewer = make_viewer(server.address, "/stream")
                assert viewer.read_head() == STREAM_HEAD
                assert wait_for(lambda: server.connection_count == 1)
            finally:
                silent.close()


class TestBroadcast:

    def test_ten_byte_frame(self, stream_server, make_viewer, jpeg_placeholder):
        viewer = connect_viewers(stream_server, make_viewer, 1)[0]

        assert stream_server.send(jpeg_placeholder) is True

        expected = (
            b"--basic_stream_boundary\r\n"
            b"Content-Type: image/jpeg\r\n"
            b"Content-Length: 10\r\n"
            b"\r\n" + jpeg_placeholder
        )
        assert viewer.rfile.read(len(expected)) == expected

    def test_every_viewer_gets_the_frame(self, stream_server, make_viewer):
        viewers = connect_viewers(stream_server, make_viewer, 5)
        frame = b"\xff\xd8" + b"\x42" * 5000 + b"\xff\xd9"

        stream_server.send(frame)

        chunk = multipart_chunk(frame)
        for viewer in viewers:
            assert viewer.rfile.read(len(chunk)) == chunk

    def test_frames_arrive_in_order(self, stream_server, make_viewer):
        viewer = connect_viewers(stream_server, make_viewer, 1)[0]
        frames = [f"frame-{i}".encode() for i in range(20)]

        for frame in frames:
            stream_server.send(frame)

        received = [viewer.read_chunk()[1] for _ in frames]
        assert received == frames

    def test_chunk_headers(self, stream_server, make_viewer, jpeg_placeholder):
        viewer = connect_viewers(stream_server, make_viewer, 1)[0]

        stream_server.send(jpeg_placeholder)
        headers, _ = viewer.read_chunk()

        assert headers["boundary"] == b"--basic_stream_boundary\r\n"
        assert headers["content-type"] == "image/jpeg"
        assert headers["content-length"] == "10"

    def test_send_copies_buffer(self, stream_server, make_viewer):
        viewer = connect_viewers(stream_server, make_viewer, 1)[0]
        buffer = bytearray(b"original")

        stream_server.send(buffer)
        buffer[:] = b"mutated!"

        assert viewer.read_chunk()[1] == b"original"

    def test_departed_viewer_is_evicted(self, stream_server, make_viewer):
        viewers = connect_viewers(stream_server, make_viewer, 3)
        viewers[1].close()

        # A write to a closed peer can still succeed once before the
        # reset arrives, so keep sending until the registry shrinks.
        sent = 0
        deadline = time.monotonic() + 5.0
        while stream_server.connection_count == 3 and time.monotonic() < deadline:
            stream_server.send(f"probe-{sent}".encode())
            sent += 1
            time.sleep(0.02)

        assert stream_server.connection_count == 2

        stream_server.send(b"after-eviction")

        for viewer in (viewers[0], viewers[2]):
            bodies = [viewer.read_chunk()[1] for _ in range(sent + 1)]
            assert bodies == [f"probe-{i}".encode() for i in range(sent)] + [b"after-eviction"]

    def test_late_viewer_joins_stream(self, stream_server, make_viewer):
        early = connect_viewers(stream_server, make_viewer, 1)[0]
        stream_server.send(b"first")
        assert early.read_chunk()[1] == b"first"

        late = make_viewer(stream_server.address, "/stream")
        assert late.read_head() == STREAM_HEAD
        assert wait_for(lambda: stream_server.connection_count == 2)

        stream_server.send(b"second")

        assert early.read_chunk()[1] == b"second"
        assert late.read_chunk()[1] == b"second"

    def test_stop_disconnects_viewers(self, make_viewer):
        server = Server(ServerConfiguration(0, endpoint="/stream"))
        server.start()
        viewers = connect_viewers(server, make_viewer, 2)

        server.stop()

        for viewer in viewers:
            assert viewer.read_rest() == b""
        assert server.connection_count == 0
