"""Non-blocking TCP sockets with cancellable reads, writes and connects."""

from __future__ import annotations

import errno
import os
import select
import socket
import threading
from enum import IntEnum
from typing import Callable, Optional, Union

from .dns_lookup import DNSLookup, DNSLookupError
from .select_interrupt import SelectInterrupt, create_select_interrupt

CancellationRequest = Optional[Callable[[], bool]]
OnProgressCallback = Optional[Callable[[int, int], None]]
FileLike = Union[int, socket.socket]

# Special codes posted on the select interrupt.
SEND_REQUEST = 1
CLOSE_REQUEST = 2

DEFAULT_POLL_TIMEOUT = -1
CHUNK_SIZE = 1 << 15
CONNECT_POLL_TIMEOUT_MS = 10

_IN = 1
_OUT = 2
_ERR = 4

_SEND_FLAGS = getattr(socket, "MSG_NOSIGNAL", 0)

_WAIT_ERRNOS = {
    code
    for code in (
        errno.EWOULDBLOCK,
        errno.EAGAIN,
        errno.EINPROGRESS,
        getattr(errno, "WSAEWOULDBLOCK", None),
        getattr(errno, "WSAEINPROGRESS", None),
    )
    if code is not None
}


class PollResultType(IntEnum):
    READY_FOR_READ = 0
    READY_FOR_WRITE = 1
    TIMEOUT = 2
    ERROR = 3
    SEND_REQUEST = 4
    CLOSE_REQUEST = 5


class SocketError(OSError):
    """Raised when a socket operation fails or is cancelled.

    *partial* holds whatever was read before the failure.
    """

    def __init__(self, message: str, partial: Union[str, bytes] = b"") -> None:
        super().__init__(message)
        self.partial = partial


def _fileno(fd: Optional[FileLike]) -> int:
    if fd is None:
        return -1
    if isinstance(fd, int):
        return fd
    return fd.fileno()


def _wait(fds: dict[int, int], timeout_ms: int) -> dict[int, int]:
    """Wait on *fds* (fd -> wanted events) and return fd -> events that fired."""
    if hasattr(select, "poll"):
        poller = select.poll()
        for fd, wanted in fds.items():
            mask = 0
            if wanted & _IN:
                mask |= select.POLLIN
            if wanted & _OUT:
                mask |= select.POLLOUT
            if wanted & _ERR:
                mask |= select.POLLERR
            poller.register(fd, mask)
        fired: dict[int, int] = {}
        for fd, revents in poller.poll(timeout_ms):
            flags = 0
            if revents & select.POLLIN:
                flags |= _IN
            if revents & select.POLLOUT:
                flags |= _OUT
            if revents & (select.POLLERR | select.POLLHUP):
                flags |= _ERR
            fired[fd] = flags
        return fired

    timeout = None if timeout_ms < 0 else timeout_ms / 1000
    rlist = [fd for fd, wanted in fds.items() if wanted & _IN]
    wlist = [fd for fd, wanted in fds.items() if wanted & _OUT]
    xlist = [fd for fd, wanted in fds.items() if wanted & _ERR]
    readable, writable, errored = select.select(rlist, wlist, xlist, timeout)
    fired = {}
    for fd in readable:
        fired[fd] = fired.get(fd, 0) | _IN
    for fd in writable:
        fired[fd] = fired.get(fd, 0) | _OUT
    for fd in errored:
        fired[fd] = fired.get(fd, 0) | _ERR
    return fired


def _pending_error(fd: FileLike) -> int:
    """Return the SO_ERROR value of *fd*, or -1 when it cannot be queried."""
    try:
        if isinstance(fd, socket.socket):
            return fd.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        probe = socket.socket(fileno=fd)
        try:
            return probe.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        finally:
            probe.detach()
    except OSError:
        return -1


def poll_fd(
    ready_to_read: bool,
    timeout_ms: int,
    fd: Optional[FileLike],
    select_interrupt: Optional[SelectInterrupt] = None,
) -> PollResultType:
    """Wait until *fd* is readable or writable, the interrupt fires, or the timeout expires."""
    sockfd = _fileno(fd)
    interrupt_fd = select_interrupt.fileno() if select_interrupt is not None else -1

    wanted: dict[int, int] = {}
    if sockfd != -1:
        wanted[sockfd] = (_IN if ready_to_read else _OUT) | _ERR
    if interrupt_fd != -1:
        wanted[interrupt_fd] = wanted.get(interrupt_fd, 0) | _IN

    try:
        fired = _wait(wanted, timeout_ms)
    except (OSError, ValueError):
        return PollResultType.ERROR

    if not fired:
        return PollResultType.TIMEOUT

    if interrupt_fd != -1 and fired.get(interrupt_fd, 0) & _IN:
        value = select_interrupt.read()
        if value == SEND_REQUEST:
            return PollResultType.SEND_REQUEST
        if value == CLOSE_REQUEST:
            return PollResultType.CLOSE_REQUEST
        return PollResultType.READY_FOR_READ

    events = fired.get(sockfd, 0) if sockfd != -1 else 0
    if ready_to_read and events & _IN:
        return PollResultType.READY_FOR_READ
    if not ready_to_read and events & _OUT:
        # SO_ERROR holds the outcome of an asynchronous connect; 0 means success.
        if _pending_error(fd) != 0:
            return PollResultType.ERROR
        return PollResultType.READY_FOR_WRITE
    return PollResultType.READY_FOR_READ


def configure(sock: socket.socket) -> None:
    """Disable Nagle's algorithm, make *sock* non-blocking and suppress SIGPIPE."""
    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    except OSError:
        pass
    sock.setblocking(False)
    no_sigpipe = getattr(socket, "SO_NOSIGPIPE", None)
    if no_sigpipe is not None:
        try:
            sock.setsockopt(socket.SOL_SOCKET, no_sigpipe, 1)
        except OSError:
            pass


def connect_to_address(address: tuple, is_cancellation_requested: CancellationRequest = None) -> socket.socket:
    """Connect to one getaddrinfo entry, checking for cancellation every few milliseconds."""
    family, socktype, proto, _canonname, sockaddr = address
    try:
        sock = socket.socket(family, socktype, proto)
    except OSError as exc:
        raise SocketError("Cannot create a socket") from exc

    configure(sock)

    err = sock.connect_ex(sockaddr)
    if err != 0 and err not in _WAIT_ERRNOS:
        sock.close()
        raise SocketError(os.strerror(err))

    while True:
        if is_cancellation_requested and is_cancellation_requested():
            sock.close()
            raise SocketError("Cancelled")

        result = poll_fd(False, CONNECT_POLL_TIMEOUT_MS, sock)
        if result == PollResultType.TIMEOUT:
            continue
        if result == PollResultType.READY_FOR_WRITE:
            return sock

        pending = _pending_error(sock)
        sock.close()
        reason = os.strerror(pending) if pending > 0 else "unknown error"
        raise SocketError(f"Connect error: {reason}")


def connect(hostname: str, port: int, is_cancellation_requested: CancellationRequest = None) -> socket.socket:
    """Resolve *hostname* and connect to the first address that accepts."""
    try:
        addresses = DNSLookup(hostname, port).resolve(is_cancellation_requested)
    except DNSLookupError as exc:
        raise SocketError(str(exc)) from exc

    last_error: Optional[SocketError] = None
    for address in addresses:
        try:
            return connect_to_address(address, is_cancellation_requested)
        except SocketError as exc:
            last_error = exc
    raise last_error or SocketError(f"No address found for {hostname}:{port}")


class Socket:
    """A plain TCP socket with a wake-up channel for interrupting polls."""

    def __init__(self, sock: Optional[socket.socket] = None) -> None:
        self._sock = sock
        self._lock = threading.Lock()
        self._select_interrupt = create_select_interrupt()

    def init(self) -> None:
        """Set up the wake-up channel; raises OSError on failure."""
        self._select_interrupt.init()

    def poll(self, timeout_ms: int = DEFAULT_POLL_TIMEOUT) -> PollResultType:
        """Wait for incoming data or a wake-up request."""
        return self.is_ready_to_read(timeout_ms)

    def is_ready_to_read(self, timeout_ms: int) -> PollResultType:
        if self._sock is None:
            return PollResultType.ERROR
        return poll_fd(True, timeout_ms, self._sock, self._select_interrupt)

    def is_ready_to_write(self, timeout_ms: int) -> PollResultType:
        if self._sock is None:
            return PollResultType.ERROR
        return poll_fd(False, timeout_ms, self._sock, self._select_interrupt)

    def wake_up_from_poll(self, wake_up_code: int) -> bool:
        """Post *wake_up_code* so that a thread blocked in poll() returns."""
        return self._select_interrupt.notify(wake_up_code)

    def connect(self, host: str, port: int, is_cancellation_requested: CancellationRequest = None) -> None:
        """Connect to *host*:*port*; raises SocketError on failure."""
        with self._lock:
            if not self._select_interrupt.clear():
                raise SocketError("Cannot clear the select interrupt")
            self._sock = connect(host, port, is_cancellation_requested)

    def close(self) -> None:
        with self._lock:
            if self._sock is None:
                return
            self._sock.close()
            self._sock = None

    def _require(self) -> socket.socket:
        if self._sock is None:
            raise SocketError("socket is not connected")
        return self._sock

    def send(self, data: bytes) -> int:
        """Send some of *data* and return how many bytes went out."""
        return self._require().send(data, _SEND_FLAGS)

    def recv(self, length: int) -> bytes:
        """Receive up to *length* bytes; b'' means the peer closed the connection."""
        return self._require().recv(length)

    def read_byte(self, is_cancellation_requested: CancellationRequest = None) -> bytes:
        """Read exactly one byte, waiting on a non-blocking socket as needed."""
        while True:
            if is_cancellation_requested and is_cancellation_requested():
                raise SocketError("cancellation requested")
            try:
                data = self.recv(1)
            except (BlockingIOError, InterruptedError):
                if self.is_ready_to_read(1) == PollResultType.ERROR:
                    raise SocketError("error while waiting for data") from None
                continue
            except OSError as exc:
                raise SocketError(f"read error: {exc}") from exc
            if len(data) == 1:
                return data
            raise SocketError("connection closed by peer")

    def write_bytes(self, data: bytes, is_cancellation_requested: CancellationRequest = None) -> None:
        """Write all of *data*; raises SocketError on error or cancellation."""
        view = memoryview(data)
        offset = 0
        while offset < len(view):
            if is_cancellation_requested and is_cancellation_requested():
                raise SocketError("cancellation requested")
            try:
                sent = self.send(view[offset:])
            except (BlockingIOError, InterruptedError):
                if self.is_ready_to_write(1) == PollResultType.ERROR:
                    raise SocketError("error while waiting to write") from None
                continue
            except OSError as exc:
                raise SocketError(f"write error: {exc}") from exc
            if sent <= 0:
                raise SocketError("write error: nothing was sent")
            offset += sent

    def read_line(self, is_cancellation_requested: CancellationRequest = None) -> str:
        """Read a line including its terminator, decoded as latin-1.

        On failure SocketError.partial holds the text read so far.
        """
        line = bytearray()
        while len(line) < 2 or (line[-2:-1] != b"\r" and line[-1:] != b"\n"):
            try:
                line += self.read_byte(is_cancellation_requested)
            except SocketError as exc:
                raise SocketError(str(exc), partial=line.decode("latin-1")) from exc
        return line.decode("latin-1")

    def read_bytes(
        self,
        length: int,
        on_progress: OnProgressCallback = None,
        is_cancellation_requested: CancellationRequest = None,
    ) -> bytes:
        """Read exactly *length* bytes, reporting progress as (received, total)."""
        output = bytearray()
        while len(output) != length:
            if is_cancellation_requested and is_cancellation_requested():
                raise SocketError("cancellation requested", partial=bytes(output))

            size = min(CHUNK_SIZE, length - len(output))
            try:
                data = self.recv(size)
            except (BlockingIOError, InterruptedError):
                data = b""
            except OSError as exc:
                raise SocketError(f"read error: {exc}", partial=bytes(output)) from exc
            else:
                if not data:
                    raise SocketError("connection closed by peer", partial=bytes(output))

            output += data

            if on_progress:
                on_progress(len(output), length)

            if self.is_ready_to_read(1) == PollResultType.ERROR:
                raise SocketError("error while waiting for data", partial=bytes(output))

        return bytes(output)

    def __enter__(self) -> "Socket":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
        self._select_interrupt.close()