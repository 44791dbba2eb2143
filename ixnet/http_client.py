"""A small blocking HTTP/1.1 client with an optional background worker."""

from __future__ import annotations

import re
import threading
import zlib
from collections import deque
from typing import Callable, Mapping, Optional, Union
from urllib.parse import quote

from .cancellation import make_cancellation_request_with_timeout
from .http import (
    HttpErrorCode,
    HttpParseError,
    HttpRequestArgs,
    HttpResponse,
    _read_http_headers,
)
from .socket_factory import create_socket
from .sockets import SocketError
from .url_parser import UrlParseError, parse_url

OnResponseCallback = Callable[[HttpResponse], None]
Body = Union[str, bytes, Mapping[str, str]]

_STATUS_RE = re.compile(r"HTTP/1\.1\s*([+-]?\d+)")
_CHUNK_SIZE_RE = re.compile(r"\s*([0-9a-fA-F]+)")


def url_encode(value: str) -> str:
    """Percent-encode every byte of *value* except ASCII letters, digits and '-_.~'."""
    return quote(value, safe="")


def serialize_http_parameters(parameters: Mapping[str, str]) -> str:
    """Encode *parameters* as a form body, ordered by key."""
    return "&".join(
        f"{url_encode(key)}={url_encode(value)}" for key, value in sorted(parameters.items())
    )


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _to_bytes(body: Body) -> bytes:
    if isinstance(body, Mapping):
        return serialize_http_parameters(body).encode("utf-8")
    if isinstance(body, str):
        return body.encode("utf-8")
    return bytes(body)


def _gzip_inflate(data: bytes) -> bytes:
    """Decompress a gzip stream; raises zlib.error when it is corrupt."""
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    return decompressor.decompress(data) + decompressor.flush()


def _log(message: str, args: HttpRequestArgs) -> None:
    if args.logger:
        args.logger(message)


class HttpClient:
    """Performs HTTP requests over a single connection at a time.

    With *async_* set, requests queued by perform_request() run on a background thread.
    """

    POST = "POST"
    GET = "GET"
    HEAD = "HEAD"
    DEL = "DEL"
    PUT = "PUT"

    def __init__(self, async_: bool = False) -> None:
        self._async = async_
        self._queue: deque[tuple[HttpRequestArgs, OnResponseCallback]] = deque()
        self._condition = threading.Condition()
        self._stop = False
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        if async_:
            self._thread = threading.Thread(target=self._run, name="http-client", daemon=True)
            self._thread.start()

    def close(self) -> None:
        """Stop the background worker, if any, and wait for it."""
        if self._thread is None:
            return
        with self._condition:
            self._stop = True
            self._condition.notify_all()
        self._thread.join()
        self._thread = None

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def create_request(self, url: str = "", verb: str = GET) -> HttpRequestArgs:
        """Return request arguments for *url* and *verb* with default settings."""
        return HttpRequestArgs(url=url, verb=verb)

    def perform_request(self, args: HttpRequestArgs, on_response: OnResponseCallback) -> bool:
        """Queue *args*; *on_response* is called with the response on the worker thread."""
        if not self._async:
            raise RuntimeError(
                "HttpClient needs its async_ parameter set to True in order to call perform_request"
            )
        with self._condition:
            self._queue.append((args, on_response))
            self._condition.notify()
        return True

    def _run(self) -> None:
        while True:
            with self._condition:
                while not self._stop and not self._queue:
                    self._condition.wait()
                if self._stop:
                    return
                args, on_response = self._queue.popleft()

            response = self.request(args.url, args.verb, args.body, args)
            on_response(response)

            if self._stop:
                return

    def get(self, url: str, args: Optional[HttpRequestArgs] = None) -> HttpResponse:
        return self.request(url, self.GET, b"", args)

    def head(self, url: str, args: Optional[HttpRequestArgs] = None) -> HttpResponse:
        return self.request(url, self.HEAD, b"", args)

    def delete(self, url: str, args: Optional[HttpRequestArgs] = None) -> HttpResponse:
        return self.request(url, self.DEL, b"", args)

    def post(self, url: str, body: Body = b"", args: Optional[HttpRequestArgs] = None) -> HttpResponse:
        """POST *body*, a string, bytes or a mapping of form parameters."""
        return self.request(url, self.POST, body, args)

    def put(self, url: str, body: Body = b"", args: Optional[HttpRequestArgs] = None) -> HttpResponse:
        """PUT *body*, a string, bytes or a mapping of form parameters."""
        return self.request(url, self.PUT, body, args)

    def request(
        self,
        url: str,
        verb: str,
        body: Body = b"",
        args: Optional[HttpRequestArgs] = None,
        redirects: int = 0,
    ) -> HttpResponse:
        """Perform one request; failures are reported through the response's error_code."""
        args = args if args is not None else HttpRequestArgs()
        # Only one connection per client, so requests are serialised.
        with self._lock:
            return self._request(url, verb, _to_bytes(body), args, redirects)

    def _request(
        self, url: str, verb: str, body: bytes, args: HttpRequestArgs, redirects: int
    ) -> HttpResponse:
        status = 0
        headers: dict[str, str] = {}
        payload = b""
        upload_size = 0
        download_size = 0

        def response(code: HttpErrorCode, message: str = "") -> HttpResponse:
            return HttpResponse(
                status, "", code, headers, payload, message, upload_size, download_size
            )

        try:
            parsed = parse_url(url)
        except UrlParseError:
            return response(HttpErrorCode.URL_MALFORMED, f"Cannot parse url: {url}")

        try:
            sock = create_socket(parsed.protocol == "https")
        except OSError as exc:
            return response(HttpErrorCode.CANNOT_CREATE_SOCKET, str(exc))

        lines = [f"{verb} {parsed.path} HTTP/1.1", f"Host: {parsed.host}"]
        if args.compress:
            lines.append("Accept-Encoding: gzip")
        lines.extend(f"{name}: {value}" for name, value in args.extra_headers.items())
        lines.append("Accept: */*")
        lines.append("User-Agent: ixnet")
        if verb in (self.POST, self.PUT):
            lines.append(f"Content-Length: {len(body)}")
            if "Content-Type" not in args.extra_headers:
                lines.append("Content-Type: application/x-www-form-urlencoded")
            req = ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + body
        else:
            req = ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")

        cancel_event = threading.Event()

        with sock:
            is_cancellation_requested = make_cancellation_request_with_timeout(
                args.connect_timeout, cancel_event
            )
            try:
                sock.connect(parsed.host, parsed.port, is_cancellation_requested)
            except OSError as exc:
                return response(
                    HttpErrorCode.CANNOT_CONNECT,
                    f"Cannot connect to url: {url} / error : {exc}",
                )

            is_cancellation_requested = make_cancellation_request_with_timeout(
                args.transfer_timeout, cancel_event
            )

            if args.verbose:
                _log(
                    f"Sending {verb} request to {parsed.host}:{parsed.port}\n"
                    f"request size: {len(req)} bytes\n"
                    "=============\n"
                    f"{req.decode('utf-8', 'replace')}"
                    "=============\n\n",
                    args,
                )

            try:
                sock.write_bytes(req, is_cancellation_requested)
            except SocketError:
                return response(HttpErrorCode.SEND_ERROR, "Cannot send request")

            upload_size = len(req)

            try:
                line = sock.read_line(is_cancellation_requested)
            except SocketError:
                return response(HttpErrorCode.CANNOT_READ_STATUS_LINE, "Cannot retrieve status line")

            if args.verbose:
                _log(f"Status line {line}", args)

            match = _STATUS_RE.match(line)
            if match is None:
                return response(
                    HttpErrorCode.MISSING_STATUS, "Cannot parse response code from status line"
                )
            status = int(match.group(1))

            try:
                headers = _read_http_headers(sock, is_cancellation_requested)
            except (SocketError, HttpParseError):
                return response(HttpErrorCode.HEADER_PARSING_ERROR, "Cannot parse http headers")

            if 301 <= status <= 308 and args.follow_redirects:
                location = _header(headers, "Location")
                if location is None:
                    return response(
                        HttpErrorCode.MISSING_LOCATION, "Missing location header for redirect"
                    )
                if redirects >= args.max_redirects:
                    return response(
                        HttpErrorCode.TOO_MANY_REDIRECTS, f"Too many redirects: {redirects}"
                    )
                sock.close()
                return self._request(location, verb, body, args, redirects + 1)

            if verb == self.HEAD:
                return response(HttpErrorCode.OK)

            content_length = _header(headers, "Content-Length")
            transfer_encoding = _header(headers, "Transfer-Encoding")

            if content_length is not None:
                try:
                    length = int(content_length.strip())
                except ValueError:
                    return response(HttpErrorCode.HEADER_PARSING_ERROR, "Invalid Content-Length")
                if length < 0:
                    return response(HttpErrorCode.HEADER_PARSING_ERROR, "Invalid Content-Length")
                try:
                    payload = sock.read_bytes(length, args.on_progress, is_cancellation_requested)
                except SocketError:
                    return response(HttpErrorCode.CHUNK_READ_ERROR, "Cannot read chunk")
            elif transfer_encoding == "chunked":
                chunks = bytearray()
                while True:
                    try:
                        size_line = sock.read_line(is_cancellation_requested)
                    except SocketError:
                        payload = bytes(chunks)
                        return response(HttpErrorCode.CHUNK_READ_ERROR, "Cannot read chunk")

                    size_match = _CHUNK_SIZE_RE.match(size_line)
                    if size_match is None:
                        payload = bytes(chunks)
                        return response(HttpErrorCode.CHUNK_READ_ERROR, "Cannot read chunk size")
                    chunk_size = int(size_match.group(1), 16)

                    if args.verbose:
                        _log(f"Reading {chunk_size} bytes\n", args)

                    try:
                        chunks += sock.read_bytes(
                            chunk_size, args.on_progress, is_cancellation_requested
                        )
                        # The CRLF that terminates each chunk.
                        sock.read_line(is_cancellation_requested)
                    except SocketError:
                        payload = bytes(chunks)
                        return response(HttpErrorCode.CHUNK_READ_ERROR, "Cannot read chunk")

                    if chunk_size == 0:
                        break
                payload = bytes(chunks)
            elif status == 204:
                pass
            else:
                return response(HttpErrorCode.CANNOT_READ_BODY, "Cannot read http body")

        download_size = len(payload)

        if _header(headers, "Content-Encoding") == "gzip":
            try:
                decompressed = _gzip_inflate(payload)
            except zlib.error:
                return response(HttpErrorCode.GZIP, "Error decompressing payload")
            payload = decompressed

        return response(HttpErrorCode.OK)