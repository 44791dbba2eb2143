import socket

from ixnet.socket_factory import create_socket, wrap_socket
from ixnet.sockets import PollResultType, Socket
from ixnet.tls_socket import TlsSocket


def test_create_plain_socket():
    with create_socket(False) as sock:
        assert type(sock) is Socket
        assert sock.wake_up_from_poll(1) is True


def test_create_tls_socket():
    with create_socket(True) as sock:
        assert isinstance(sock, TlsSocket)
        assert sock.wake_up_from_poll(1) is True


def test_wrap_socket_round_trip():
    left, right = socket.socketpair()
    with wrap_socket(left) as wrapped:
        wrapped.write_bytes(b"ping")
        assert right.recv(4) == b"ping"
        right.sendall(b"pong")
        assert wrapped.read_bytes(4) == b"pong"
    right.close()


def test_wrap_socket_interrupt_is_ready():
    left, right = socket.socketpair()
    with wrap_socket(left) as wrapped:
        assert wrapped.wake_up_from_poll(2) is True
        assert wrapped.poll(1000) == PollResultType.CLOSE_REQUEST
    right.close()