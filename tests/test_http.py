import socket

import pytest

from ixnet.http import (
    HttpParseError,
    HttpResponse,
    parse_request,
    parse_request_line,
    send_response,
    trim,
)
from ixnet.sockets import Socket


def test_trim_removes_whitespace_everywhere():
    assert trim("  GET\r\n") == "GET"
    assert trim("a b\nc\r") == "abc"
    assert trim("") == ""


def test_parse_request_line_full():
    assert parse_request_line("GET /foo HTTP/1.1\r\n") == ("GET", "/foo", "HTTP/1.1")


def test_parse_request_line_partial():
    assert parse_request_line("GET") == ("GET", "", "")
    assert parse_request_line("") == ("", "", "")


def _pair():
    left, right = socket.socketpair()
    return Socket(left), right


def _read_all(raw):
    chunks = []
    while True:
        data = raw.recv(4096)
        if not data:
            return b"".join(chunks)
        chunks.append(data)


def test_parse_request_reads_line_and_headers():
    sock, peer = _pair()
    with sock:
        peer.sendall(
            b"GET /index.html HTTP/1.1\r\nHost: localhost\r\nUser-Agent: ixtest\r\n\r\n"
        )
        request = parse_request(sock)
    peer.close()
    assert request.method == "GET"
    assert request.uri == "/index.html"
    assert request.version == "HTTP/1.1"
    assert request.headers == {"Host": "localhost", "User-Agent": "ixtest"}


def test_parse_request_truncated_line_raises():
    sock, peer = _pair()
    with sock:
        peer.sendall(b"GET /index")
        peer.close()
        with pytest.raises(HttpParseError, match="request line"):
            parse_request(sock)


def test_parse_request_malformed_header_raises():
    sock, peer = _pair()
    with sock:
        peer.sendall(b"GET / HTTP/1.1\r\nno colon here\r\n\r\n")
        with pytest.raises(HttpParseError, match="headers"):
            parse_request(sock)
    peer.close()


def test_send_response_wire_format():
    sock, peer = _pair()
    response = HttpResponse(200, "OK", headers={"X-Test": "1"}, payload=b"hello")
    with sock:
        send_response(response, sock)
    data = _read_all(peer)
    peer.close()
    assert data == b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\nX-Test: 1\r\n\r\nhello"


def test_send_response_empty_payload():
    sock, peer = _pair()
    with sock:
        send_response(HttpResponse(404, "Not Found"), sock)
    data = _read_all(peer)
    peer.close()
    assert data.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert b"Content-Length: 0\r\n" in data
    assert data.endswith(b"\r\n\r\n")


def test_send_then_parse_round_trip():
    server, client = _pair()
    with server:
        client.sendall(b"POST /submit HTTP/1.0\r\nAccept: */*\r\n\r\n")
        request = parse_request(server)
        send_response(HttpResponse(200, "OK", headers=dict(request.headers), payload=b"ok"), server)
    data = _read_all(client)
    client.close()
    assert request.method == "POST"
    assert request.version == "HTTP/1.0"
    assert b"Accept: */*\r\n" in data
    assert data.endswith(b"\r\n\r\nok")