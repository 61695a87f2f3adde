"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The streaming server only ever answers with two statuses:

    200 OK          - request accepted, multipart stream follows
    404 Not Found   - wrong method, wrong path, or unparseable request

The parser additionally classifies malformed input with 400/405/505 so
the reason is visible in logs, even though the client always gets a 404.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the server.

    IntEnum, so values compare equal to plain ints:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200                            # Stream accepted
    BAD_REQUEST = 400                   # Malformed request line
    NOT_FOUND = 404                     # Rejected request
    METHOD_NOT_ALLOWED = 405            # Unknown method token
    HTTP_VERSION_NOT_SUPPORTED = 505    # Not HTTP/1.x

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
