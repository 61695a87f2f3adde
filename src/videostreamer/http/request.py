"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses the one request a viewer sends before it starts receiving frames.

The server reads a single bounded buffer (1024 bytes by default) and never
asks for more, so the parser has to cope with a request that was cut off
in the middle of its headers:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /img HTTP/1.1\r\n              ← REQUEST LINE (must be whole)  │
    │  Host: 127.0.0.1:7879\r\n           ← headers (kept if complete)    │
    │  User-Agent: Mozilla/5.0 (X11; Lin  ← cut off by the buffer limit,  │
    │                                       silently dropped              │
    └─────────────────────────────────────────────────────────────────────┘

Only the method and the request target decide whether the viewer is
accepted. Headers are parsed so the User-Agent can be logged.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
import re


class HTTPParseError(Exception):
    """
    Raised when the initial request cannot be parsed.

    Carries the HTTP status that best describes the problem:

        400 Bad Request                - Malformed request line
        405 Method Not Allowed         - Unknown method token
        505 HTTP Version Not Supported - Not HTTP/1.0 or HTTP/1.1

    The acceptor answers every parse error with 404 (viewers only care
    whether they get a stream); the status is kept for logging.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed viewer request.

    Attributes:
        method:         Request method ("GET", "POST", ...)
        target:         Request target exactly as sent, query string
                        included ("/img", "/img?x=1")
        version:        "HTTP/1.0" or "HTTP/1.1"
        headers:        Header name → value, names lowercased
        complete:       True if the blank line ending the headers was seen
        client_address: (ip, port) of the viewer
        raw:            The bytes the request was parsed from
    """

    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    complete: bool = True
    client_address: tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    @property
    def user_agent(self) -> str:
        """Get the User-Agent header value."""
        return self.headers.get("user-agent", "")


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

        Raw bytes (≤ read_buffer_size)
              │
              ▼
        1. Empty? ─────────────────────────► HTTPParseError(400)
        2. Cut at \\r\\n\\r\\n, or at the last
           complete line if the headers were truncated
        3. Request line: METHOD SP TARGET SP VERSION
              │  malformed ────────────────► HTTPParseError(400/405/505)
              ▼
        4. Headers: "Name: Value", lowercased names
              │
              ▼
        HTTPRequest
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse the initial request of a viewer.

        Args:
            data: Bytes read from the socket (possibly truncated).
            client_address: Viewer's (ip, port) tuple for logging.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If no complete, valid request line is present.
        """
        if not data:
            raise HTTPParseError("Empty request")

        # Header bytes are ASCII by the RFC; latin-1 maps every byte so
        # garbage input cannot raise here.
        text = data.decode("latin-1")

        # ─────────────────────────────────────────────────────────────────
        # Find the end of the usable header section
        # ─────────────────────────────────────────────────────────────────
        header_end = text.find("\r\n\r\n")
        complete = header_end != -1
        if not complete:
            # Truncated: keep only lines that ended with CRLF
            header_end = text.rfind("\r\n")
            if header_end == -1:
                raise HTTPParseError("Incomplete request line")

        lines = text[:header_end].split("\r\n")

        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers=headers,
            complete=complete,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Parse "METHOD SP TARGET SP VERSION".

        Returns:
            Tuple of (method, target, version)

        Raises:
            HTTPParseError: If the line is malformed
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:80]!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dictionary with lowercase names.

        Malformed lines are skipped. Repeated headers are joined with
        ", " as RFC 7230 allows.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
