"""TLS client sockets built on the standard ssl module."""

from __future__ import annotations

import errno
import fnmatch
import ssl
import threading
from typing import Optional

from .sockets import (
    CancellationRequest,
    Socket,
    SocketError,
    connect as tcp_connect,
    poll_fd,
)

HANDSHAKE_POLL_TIMEOUT_MS = 10

_WANT_IO = (ssl.SSLWantReadError, ssl.SSLWantWriteError)


def check_host(host: str, pattern: str) -> bool:
    """Return True when *host* matches the shell-style *pattern* (case-sensitive)."""
    return fnmatch.fnmatchcase(host, pattern)


def _create_context() -> ssl.SSLContext:
    # Verifies the peer against the default trust store and checks the host name;
    # SSLv2 and SSLv3 are never offered.
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.verify_mode = ssl.CERT_REQUIRED
    context.check_hostname = True
    return context


def _would_block() -> BlockingIOError:
    return BlockingIOError(errno.EWOULDBLOCK, "TLS operation would block")


class TlsSocket(Socket):
    """A client socket that performs a TLS handshake after connecting."""

    def __init__(self, sock=None) -> None:
        super().__init__(sock)
        self._tls_lock = threading.Lock()

    def connect(
        self, host: str, port: int, is_cancellation_requested: CancellationRequest = None
    ) -> None:
        """Connect to *host*:*port* and complete the TLS handshake; raises SocketError."""
        with self._tls_lock:
            if not self._select_interrupt.clear():
                raise SocketError("Cannot clear the select interrupt")

            raw = tcp_connect(host, port, is_cancellation_requested)
            try:
                context = _create_context()
                tls = context.wrap_socket(
                    raw, server_hostname=host, do_handshake_on_connect=False
                )
            except (ssl.SSLError, OSError, ValueError) as exc:
                raw.close()
                raise SocketError(f"TLS failed to connect - {exc}") from exc

            try:
                self._handshake(tls, is_cancellation_requested)
            except SocketError:
                tls.close()
                raise

            with self._lock:
                self._sock = tls

    @staticmethod
    def _handshake(tls: ssl.SSLSocket, is_cancellation_requested: CancellationRequest) -> None:
        while True:
            if is_cancellation_requested and is_cancellation_requested():
                raise SocketError("Cancelled")
            try:
                tls.do_handshake()
                break
            except ssl.SSLWantReadError:
                poll_fd(True, HANDSHAKE_POLL_TIMEOUT_MS, tls)
            except ssl.SSLWantWriteError:
                poll_fd(False, HANDSHAKE_POLL_TIMEOUT_MS, tls)
            except OSError as exc:
                raise SocketError(f"TLS handshake failed - {exc}") from exc

        if not tls.getpeercert():
            raise SocketError("TLS failed - peer didn't present a X509 certificate.")

    def close(self) -> None:
        with self._tls_lock:
            super().close()

    def send(self, data: bytes) -> int:
        """Encrypt and send as much of *data* as possible; 0 when not connected."""
        with self._tls_lock:
            sock: Optional[ssl.SSLSocket] = self._sock
            if sock is None:
                return 0
            view = memoryview(data)
            total = 0
            while total < len(view):
                try:
                    sent = sock.send(view[total:])
                except _WANT_IO:
                    if total:
                        return total
                    raise _would_block() from None
                if sent <= 0:
                    break
                total += sent
            return total

    def recv(self, length: int) -> bytes:
        """Receive up to *length* decrypted bytes; b'' when closed or not connected."""
        with self._tls_lock:
            sock: Optional[ssl.SSLSocket] = self._sock
            if sock is None:
                return b""
            try:
                return sock.recv(length)
            except _WANT_IO:
                raise _would_block() from None
            except ssl.SSLZeroReturnError:
                return b""