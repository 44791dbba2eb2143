"""HTTP request and response types, plus server-side request parsing."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Optional, Union

from .cancellation import make_cancellation_request_with_timeout
from .sockets import CancellationRequest, Socket, SocketError

REQUEST_TIMEOUT_SECS = 5

Logger = Callable[[str], None]
OnProgressCallback = Callable[[int, int], None]


class HttpErrorCode(IntEnum):
    OK = 0
    CANNOT_CONNECT = 1
    TIMEOUT = 2
    GZIP = 3
    URL_MALFORMED = 4
    CANNOT_CREATE_SOCKET = 5
    SEND_ERROR = 6
    READ_ERROR = 7
    CANNOT_READ_STATUS_LINE = 8
    MISSING_STATUS = 9
    HEADER_PARSING_ERROR = 10
    MISSING_LOCATION = 11
    TOO_MANY_REDIRECTS = 12
    CHUNK_READ_ERROR = 13
    CANNOT_READ_BODY = 14
    INVALID = 100


class HttpParseError(ValueError):
    """Raised when an incoming HTTP request cannot be read or parsed."""


@dataclass
class HttpResponse:
    status_code: int = 0
    description: str = ""
    error_code: HttpErrorCode = HttpErrorCode.OK
    headers: dict[str, str] = field(default_factory=dict)
    payload: bytes = b""
    error_msg: str = ""
    upload_size: int = 0
    download_size: int = 0


@dataclass
class HttpRequestArgs:
    url: str = ""
    verb: str = "GET"
    extra_headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    connect_timeout: int = 60
    transfer_timeout: int = 1800
    follow_redirects: bool = True
    max_redirects: int = 5
    verbose: bool = False
    compress: bool = True
    logger: Optional[Logger] = None
    on_progress: Optional[OnProgressCallback] = None


@dataclass
class HttpRequest:
    uri: str
    method: str
    version: str
    headers: dict[str, str] = field(default_factory=dict)


def trim(text: str) -> str:
    """Remove every space, CR and LF character from *text*."""
    return "".join(ch for ch in text if ch not in " \r\n")


def parse_request_line(line: str) -> tuple[str, str, str]:
    """Split 'METHOD URI VERSION' into its three parts; missing parts are ''."""
    tokens = line.split(" ")
    method, uri, version = (tokens + ["", "", ""])[:3]
    return trim(method), trim(uri), trim(version)


def _read_http_headers(
    sock: Socket, is_cancellation_requested: CancellationRequest = None
) -> dict[str, str]:
    """Read header lines up to the blank line; raises SocketError or HttpParseError."""
    headers: dict[str, str] = {}
    while True:
        line = sock.read_line(is_cancellation_requested)
        if line in ("\r\n", "\n"):
            return headers
        name, sep, value = line.partition(":")
        if not sep:
            raise HttpParseError(f"Malformed header line: {line!r}")
        headers[name.strip()] = value.strip()


def parse_request(sock: Socket) -> HttpRequest:
    """Read a request line and headers from *sock*; raises HttpParseError."""
    is_cancellation_requested = make_cancellation_request_with_timeout(
        REQUEST_TIMEOUT_SECS, threading.Event()
    )

    try:
        line = sock.read_line(is_cancellation_requested)
    except SocketError as exc:
        raise HttpParseError("Error reading HTTP request line") from exc

    method, uri, version = parse_request_line(line)

    try:
        headers = _read_http_headers(sock, is_cancellation_requested)
    except (SocketError, HttpParseError) as exc:
        raise HttpParseError("Error parsing HTTP headers") from exc

    return HttpRequest(uri=uri, method=method, version=version, headers=headers)


def _encode(payload: Union[bytes, str]) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)


def send_response(response: HttpResponse, sock: Socket) -> None:
    """Write *response* to *sock*; raises SocketError on failure."""
    status_line = f"HTTP/1.1 {response.status_code} {response.description}\r\n"
    sock.write_bytes(status_line.encode("latin-1"))

    payload = _encode(response.payload)
    lines = [f"Content-Length: {len(payload)}\r\n"]
    lines.extend(f"{name}: {value}\r\n" for name, value in response.headers.items())
    lines.append("\r\n")
    sock.write_bytes("".join(lines).encode("latin-1"))

    if payload:
        sock.write_bytes(payload)