import socket
import threading

import pytest

from ixnet.select_interrupt import create_select_interrupt
from ixnet.sockets import (
    CLOSE_REQUEST,
    SEND_REQUEST,
    PollResultType,
    Socket,
    SocketError,
    configure,
    connect,
    connect_to_address,
    poll_fd,
)


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    yield left, right
    left.close()
    right.close()


@pytest.fixture
def wrapped(pair):
    left, right = pair
    configure(left)
    sock = Socket(left)
    sock.init()
    yield sock, right
    sock.__exit__(None, None, None)


def test_poll_result_values_match_wire_codes():
    assert PollResultType(SEND_REQUEST + 3) == PollResultType.SEND_REQUEST
    assert PollResultType(CLOSE_REQUEST + 3) == PollResultType.CLOSE_REQUEST


def test_poll_fd_times_out_on_idle_socket(pair):
    left, _ = pair
    assert poll_fd(True, 10, left) == PollResultType.TIMEOUT


def test_poll_fd_ready_for_read_after_peer_writes(pair):
    left, right = pair
    right.sendall(b"x")
    assert poll_fd(True, 1000, left) == PollResultType.READY_FOR_READ


def test_poll_fd_ready_for_write(pair):
    left, _ = pair
    assert poll_fd(False, 1000, left.fileno()) == PollResultType.READY_FOR_WRITE


@pytest.mark.parametrize(
    "code, expected",
    [(SEND_REQUEST, PollResultType.SEND_REQUEST), (CLOSE_REQUEST, PollResultType.CLOSE_REQUEST)],
)
def test_poll_fd_reports_interrupt_codes(pair, code, expected):
    left, _ = pair
    interrupt = create_select_interrupt()
    interrupt.init()
    try:
        assert interrupt.notify(code)
        assert poll_fd(True, 1000, left, interrupt) == expected
    finally:
        interrupt.close()


def test_unconnected_socket_reports_error():
    sock = Socket()
    assert sock.is_ready_to_read(0) == PollResultType.ERROR
    assert sock.is_ready_to_write(0) == PollResultType.ERROR


def test_unconnected_socket_send_raises():
    with pytest.raises(SocketError):
        Socket().send(b"data")


def test_wake_up_from_poll(wrapped):
    sock, _ = wrapped
    assert sock.wake_up_from_poll(SEND_REQUEST)
    assert sock.poll(1000) == PollResultType.SEND_REQUEST


def test_configure_makes_socket_non_blocking(pair):
    left, _ = pair
    configure(left)
    assert left.getblocking() is False


def test_send_and_recv(wrapped):
    sock, peer = wrapped
    assert sock.send(b"abc") == 3
    assert peer.recv(3) == b"abc"
    peer.sendall(b"xyz")
    assert sock.poll(1000) == PollResultType.READY_FOR_READ
    assert sock.recv(3) == b"xyz"


def test_read_byte(wrapped):
    sock, peer = wrapped
    peer.sendall(b"Q")
    assert sock.read_byte(None) == b"Q"


def test_write_bytes_round_trip(wrapped):
    sock, peer = wrapped
    payload = b"hello world" * 100
    sock.write_bytes(payload, None)
    received = bytearray()
    while len(received) < len(payload):
        received += peer.recv(4096)
    assert bytes(received) == payload


def test_write_bytes_cancelled(wrapped):
    sock, _ = wrapped
    with pytest.raises(SocketError):
        sock.write_bytes(b"data", lambda: True)


def test_read_line_crlf(wrapped):
    sock, peer = wrapped
    peer.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n")
    assert sock.read_line(None) == "GET / HTTP/1.1\r\n"
    assert sock.read_line(None) == "Host: x\r\n"


def test_read_line_stops_at_newline(wrapped):
    sock, peer = wrapped
    peer.sendall(b"hello\nworld")
    assert sock.read_line(None) == "hello\n"


def test_read_line_reports_partial_on_close(wrapped):
    sock, peer = wrapped
    peer.sendall(b"abc")
    peer.shutdown(socket.SHUT_WR)
    with pytest.raises(SocketError) as info:
        sock.read_line(None)
    assert info.value.partial == "abc"


def test_read_line_cancelled(wrapped):
    sock, _ = wrapped
    with pytest.raises(SocketError):
        sock.read_line(lambda: True)


def test_read_bytes_with_progress(wrapped):
    sock, peer = wrapped
    payload = bytes(range(256)) * 200
    writer = threading.Thread(target=peer.sendall, args=(payload,))
    writer.start()
    progress = []
    data = sock.read_bytes(len(payload), lambda got, total: progress.append((got, total)), None)
    writer.join()
    assert data == payload
    assert progress[-1] == (len(payload), len(payload))
    sizes = [got for got, _ in progress]
    assert sizes == sorted(sizes)


def test_read_bytes_cancelled(wrapped):
    sock, _ = wrapped
    with pytest.raises(SocketError) as info:
        sock.read_bytes(10, None, lambda: True)
    assert info.value.partial == b""


def test_read_bytes_peer_closed(wrapped):
    sock, peer = wrapped
    peer.sendall(b"12")
    peer.shutdown(socket.SHUT_WR)
    with pytest.raises(SocketError) as info:
        sock.read_bytes(5, None, None)
    assert info.value.partial == b"12"


def test_context_manager_closes(pair):
    left, _ = pair
    with Socket(left) as sock:
        sock.init()
        assert sock.is_ready_to_write(1000) == PollResultType.READY_FOR_WRITE
    assert sock.is_ready_to_read(0) == PollResultType.ERROR


@pytest.fixture
def listener():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server
    server.close()


def test_connect_to_local_server(listener):
    port = listener.getsockname()[1]
    client = connect("127.0.0.1", port, None)
    try:
        accepted, _ = listener.accept()
        try:
            assert client.getpeername()[1] == port
            assert client.getblocking() is False
        finally:
            accepted.close()
    finally:
        client.close()


def test_socket_connect_and_exchange(listener):
    port = listener.getsockname()[1]
    with Socket() as sock:
        sock.init()
        sock.connect("127.0.0.1", port, None)
        accepted, _ = listener.accept()
        try:
            sock.write_bytes(b"ping\r\n", None)
            assert accepted.recv(6) == b"ping\r\n"
            accepted.sendall(b"pong\r\n")
            assert sock.read_line(None) == "pong\r\n"
        finally:
            accepted.close()


def test_connect_to_address_with_cancellation(listener):
    port = listener.getsockname()[1]
    address = (socket.AF_INET, socket.SOCK_STREAM, 0, "", ("127.0.0.1", port))
    with pytest.raises(SocketError, match="Cancelled"):
        connect_to_address(address, lambda: True)


def test_connect_refused():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(SocketError):
        connect("127.0.0.1", port, None)


def test_connect_cancelled_before_start(listener):
    port = listener.getsockname()[1]
    with pytest.raises(SocketError):
        connect("127.0.0.1", port, lambda: True)