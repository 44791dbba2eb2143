"""Construction of plain and TLS sockets."""

from __future__ import annotations

import socket

from .sockets import Socket, SocketError


def create_socket(tls: bool) -> Socket:
    """Return an initialised client socket, secured with TLS when *tls* is true.

    Raises SocketError when TLS is unavailable and OSError when setup fails.
    """
    if tls:
        try:
            from .tls_socket import TlsSocket
        except ImportError as exc:
            raise SocketError("TLS support is not enabled on this platform.") from exc
        sock: Socket = TlsSocket()
    else:
        sock = Socket()

    sock.init()
    return sock


def wrap_socket(sock: socket.socket) -> Socket:
    """Wrap an already connected socket, such as one returned by accept()."""
    wrapped = Socket(sock)
    wrapped.init()
    return wrapped