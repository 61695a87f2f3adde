"""
HTTP protocol pieces used by the streaming server.

Only the small subset of HTTP/1.1 a viewer needs is covered:

- Parsing the single request a viewer sends (method + target + headers)
- The 200 response that opens a multipart/x-mixed-replace stream
- The bare 404 used to reject everything else
- Framing each image as a multipart body part
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    BOUNDARY,
    FRAME_CONTENT_TYPE,
    stream_response,
    not_found,
    multipart_chunk,
)
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Responses and framing
    "HTTPResponse",
    "BOUNDARY",
    "FRAME_CONTENT_TYPE",
    "stream_response",
    "not_found",
    "multipart_chunk",

    # Status codes
    "HTTPStatus",
]
