"""
pytest configuration and fixtures.
"""

import socket
import time
from typing import Callable, Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from videostreamer import Server, ServerConfiguration


@pytest.fixture
def sample_get_request() -> bytes:
    """Request a browser would send for the /img stream."""
    return (
        b"GET /img HTTP/1.1\r\n"
        b"Host: 127.0.0.1:7879\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: image/avif,image/webp,*/*\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def jpeg_placeholder() -> bytes:
    """10 bytes that look like the start and end of a JPEG."""
    return b"\xff\xd8\xff\xe0\x00\x10JF\xff\xd9"


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class Viewer:
    """
    Raw-socket MJPEG client.

    Sends one request, then reads the response head and multipart chunks
    through a buffered file so TCP segmentation does not matter.
    """

    def __init__(self, address: tuple, target: str = "/", method: str = "GET",
                 raw: Optional[bytes] = None, timeout: float = 5.0):
        self.sock = socket.create_connection(address, timeout=timeout)
        self.rfile = self.sock.makefile("rb")

        if raw is None:
            raw = (
                f"{method} {target} HTTP/1.1\r\n"
                f"Host: {address[0]}:{address[1]}\r\n"
                f"\r\n"
            ).encode()
        self.sock.sendall(raw)

    def read_head(self) -> bytes:
        """Read the response up to and including the blank line."""
        head = b""
        while not head.endswith(b"\r\n\r\n"):
            line = self.rfile.readline()
            if not line:
                break
            head += line
        return head

    def read_chunk(self) -> tuple[dict, bytes]:
        """
        Read one multipart part.

        Returns:
            (headers, body) where headers includes the boundary line
            under the key "boundary".
        """
        boundary = self.rfile.readline()
        headers = {"boundary": boundary}
        while True:
            line = self.rfile.readline()
            if line in (b"\r\n", b""):
                break
            name, _, value = line.decode().partition(":")
            headers[name.strip().lower()] = value.strip()

        length = int(headers["content-length"])
        body = self.rfile.read(length)
        return headers, body

    def read_rest(self) -> bytes:
        """Read until the server closes the connection."""
        return self.rfile.read()

    def close(self):
        self.rfile.close()
        self.sock.close()


@pytest.fixture
def make_viewer() -> Generator[Callable[..., Viewer], None, None]:
    """Factory for viewers; all are closed at teardown."""
    viewers = []

    def factory(address, target="/", **kwargs) -> Viewer:
        viewer = Viewer(address, target, **kwargs)
        viewers.append(viewer)
        return viewer

    yield factory

    for viewer in viewers:
        viewer.close()


@pytest.fixture
def stream_server() -> Generator[Server, None, None]:
    """A running server on an ephemeral port serving /stream."""
    server = Server(ServerConfiguration(0, endpoint="/stream", write_timeout=2.0))
    server.start()

    yield server

    server.stop()
