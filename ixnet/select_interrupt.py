"""Wake-up channels that let another thread interrupt a blocking poll."""

from __future__ import annotations

import os
import struct
import sys
import threading
from typing import Optional

_UINT64 = struct.Struct("=Q")
_MAX_UINT64 = (1 << 64) - 1


def _pack(value: int) -> bytes:
    if not 0 <= value <= _MAX_UINT64:
        raise ValueError(f"value out of range for a 64-bit unsigned integer: {value}")
    return _UINT64.pack(value)


def _write_value(fd: int, value: int) -> bool:
    try:
        return os.write(fd, _pack(value)) == _UINT64.size
    except OSError:
        return False


def _read_value(fd: int) -> int:
    if fd == -1:
        return 0
    try:
        data = os.read(fd, _UINT64.size)
    except OSError:
        return 0
    if len(data) != _UINT64.size:
        return 0
    return _UINT64.unpack(data)[0]


class SelectInterrupt:
    """A no-op interrupt with no file descriptor, used where nothing better exists."""

    def init(self) -> None:
        """Prepare the interrupt; raises OSError on failure."""

    def notify(self, value: int) -> bool:
        """Post *value* so that a poll watching fileno() wakes up."""
        return True

    def clear(self) -> bool:
        """Reset any pending notification."""
        return True

    def read(self) -> int:
        """Consume and return a pending value, or 0 when there is none."""
        return 0

    def fileno(self) -> int:
        """Descriptor to watch for readability, or -1 when there is none."""
        return -1

    def close(self) -> None:
        """Release the underlying resources."""

    def __enter__(self) -> "SelectInterrupt":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SelectInterruptPipe(SelectInterrupt):
    """Interrupt backed by a non-blocking UNIX pipe."""

    def __init__(self) -> None:
        self._read_fd = -1
        self._write_fd = -1
        self._lock = threading.Lock()

    def init(self) -> None:
        with self._lock:
            if self._read_fd != -1 or self._write_fd != -1:
                raise RuntimeError("SelectInterruptPipe.init() called twice")
            try:
                read_fd, write_fd = os.pipe()
            except OSError as exc:
                raise OSError(
                    exc.errno, f"SelectInterruptPipe.init() failed in pipe() call : {exc.strerror}"
                ) from exc
            try:
                os.set_blocking(read_fd, False)
                os.set_blocking(write_fd, False)
            except OSError as exc:
                os.close(read_fd)
                os.close(write_fd)
                raise OSError(
                    exc.errno,
                    "SelectInterruptPipe.init() failed in fcntl(..., O_NONBLOCK) call"
                    f" : {exc.strerror}",
                ) from exc
            self._read_fd, self._write_fd = read_fd, write_fd

    def notify(self, value: int) -> bool:
        data = _pack(value)
        with self._lock:
            if self._write_fd == -1:
                return False
            try:
                return os.write(self._write_fd, data) == _UINT64.size
            except OSError:
                return False

    def clear(self) -> bool:
        return True

    def read(self) -> int:
        with self._lock:
            return _read_value(self._read_fd)

    def fileno(self) -> int:
        with self._lock:
            return self._read_fd

    def close(self) -> None:
        with self._lock:
            for fd in (self._read_fd, self._write_fd):
                if fd != -1:
                    try:
                        os.close(fd)
                    except OSError:
                        pass
            self._read_fd = -1
            self._write_fd = -1


class SelectInterruptEventFd(SelectInterrupt):
    """Interrupt backed by a Linux eventfd counter."""

    def __init__(self) -> None:
        self._eventfd = -1

    def init(self) -> None:
        if self._eventfd != -1:
            raise RuntimeError("SelectInterruptEventFd.init() called twice")
        make_eventfd = getattr(os, "eventfd", None)
        if make_eventfd is None:
            raise OSError("SelectInterruptEventFd.init() failed in eventfd() : not supported")
        try:
            fd = make_eventfd(0, 0)
        except OSError as exc:
            raise OSError(
                exc.errno, f"SelectInterruptEventFd.init() failed in eventfd() : {exc.strerror}"
            ) from exc
        try:
            os.set_blocking(fd, False)
        except OSError as exc:
            os.close(fd)
            raise OSError(
                exc.errno,
                f"SelectInterruptEventFd.init() failed in fcntl() call : {exc.strerror}",
            ) from exc
        self._eventfd = fd

    def notify(self, value: int) -> bool:
        data = _pack(value)
        fd = self._eventfd
        if fd == -1:
            return False
        try:
            return os.write(fd, data) == _UINT64.size
        except OSError:
            return False

    def clear(self) -> bool:
        if self._eventfd == -1:
            return False
        # Writing 0 leaves the counter unchanged, so a poll will not wake up.
        return _write_value(self._eventfd, 0)

    def read(self) -> int:
        return _read_value(self._eventfd)

    def fileno(self) -> int:
        return self._eventfd

    def close(self) -> None:
        if self._eventfd != -1:
            try:
                os.close(self._eventfd)
            except OSError:
                pass
        self._eventfd = -1


def create_select_interrupt() -> SelectInterrupt:
    """Return the best interrupt implementation for this platform."""
    platform: Optional[str] = sys.platform
    if platform.startswith("linux") or platform == "darwin":
        return SelectInterruptPipe()
    return SelectInterrupt()