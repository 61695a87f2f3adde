"""
=============================================================================
HTTP RESPONSES AND MULTIPART FRAMING
=============================================================================

Everything the server ever writes to a socket is built here.

=============================================================================
MULTIPART/X-MIXED-REPLACE
=============================================================================

An MJPEG stream is one never-ending HTTP response. The headers announce a
multipart body, and each part replaces the image shown before it:

    HTTP/1.1 200 OK\\r\\n
    Content-Type: multipart/x-mixed-replace; boundary=basic_stream_boundary\\r\\n
    Connection: close\\r\\n
    ...\\r\\n
    \\r\\n                                     ← end of headers, body begins
    --basic_stream_boundary\\r\\n               ┐
    Content-Type: image/jpeg\\r\\n              │ one frame
    Content-Length: 5120\\r\\n                  │ (multipart_chunk)
    \\r\\n                                       │
    <5120 bytes of JPEG>                       ┘
    --basic_stream_boundary\\r\\n               ┐
    ...                                        ┘ next frame

There is no closing boundary: the stream ends when the socket does.

Responses are serialized exactly as given. Unlike a general-purpose
server there are no automatic Content-Length, Date or Server headers,
since a streaming response has no length and viewers expect this precise
header set.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict

from .status_codes import HTTPStatus


BOUNDARY = "basic_stream_boundary"
FRAME_CONTENT_TYPE = "image/jpeg"


@dataclass
class HTTPResponse:
    """
    An HTTP response head (and optional body) to be sent to a viewer.

    Headers keep their insertion order when serialized.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def to_bytes(self) -> bytes:
        """
        Serialize to bytes for socket.sendall().

            HTTP/1.1 404 Not Found\\r\\n     ← status line
            Name: value\\r\\n                ← one line per header, in order
            \\r\\n                           ← blank line
            <body>
        """
        lines = [self.status_line]
        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return head + self.body


def stream_response(boundary: str = BOUNDARY) -> HTTPResponse:
    """
    The 200 response that opens a multipart stream.

    Caching is disabled in every way browsers and proxies understand, and
    the connection is declared non-persistent: the stream is the only
    thing ever sent on it.
    """
    return HTTPResponse(
        status=HTTPStatus.OK,
        headers={
            "Content-Type": f"multipart/x-mixed-replace; boundary={boundary}",
            "Connection": "close",
            "Expires": "0",
            "Max-Age": "0",
            "Cache-Control": "no-cache, private",
            "Accept-Range": "bytes",
            "Pragma": "no-cache",
        },
    )


def not_found() -> HTTPResponse:
    """The bare rejection: "HTTP/1.1 404 Not Found\\r\\n\\r\\n"."""
    return HTTPResponse(status=HTTPStatus.NOT_FOUND)


def multipart_chunk(
    frame: bytes,
    boundary: str = BOUNDARY,
    content_type: str = FRAME_CONTENT_TYPE,
) -> bytes:
    """
    Frame one image as a body part of the multipart stream.

    Args:
        frame: Encoded image bytes, sent verbatim (not validated).
        boundary: Boundary announced in the stream response.
        content_type: Content type of the part.

    Returns:
        Part header followed by exactly len(frame) bytes of payload.
    """
    head = (
        f"--{boundary}\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(frame)}\r\n"
        f"\r\n"
    )
    return head.encode("latin-1") + bytes(frame)
