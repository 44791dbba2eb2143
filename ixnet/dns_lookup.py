"""Hostname resolution that can be abandoned while the lookup is still running."""

from __future__ import annotations

import socket
import threading
from typing import Callable, Optional

AddrInfo = tuple

DEFAULT_WAIT_MS = 1

_FLAGS = getattr(socket, "AI_ADDRCONFIG", 0) | getattr(socket, "AI_NUMERICSERV", 0)


class DNSLookupError(OSError):
    """Raised when a hostname cannot be resolved or the lookup was cancelled."""


def _get_addr_info(hostname: str, port: int) -> list[AddrInfo]:
    try:
        return socket.getaddrinfo(
            hostname, str(port), socket.AF_UNSPEC, socket.SOCK_STREAM, 0, _FLAGS
        )
    except socket.gaierror as exc:
        raise DNSLookupError(exc.strerror or str(exc)) from exc


class _Outcome:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: list[AddrInfo] = []
        self.error: Optional[DNSLookupError] = None


class DNSLookup:
    """Resolve a hostname and port to a list of getaddrinfo entries."""

    def __init__(self, hostname: str, port: int, wait: int = DEFAULT_WAIT_MS) -> None:
        self.hostname = hostname
        self.port = port
        self.wait = wait
        self._started = False

    def resolve(
        self,
        is_cancellation_requested: Optional[Callable[[], bool]] = None,
        cancellable: bool = True,
    ) -> list[AddrInfo]:
        """Return the resolved addresses, raising DNSLookupError on failure or cancellation."""
        if cancellable:
            return self._resolve_cancellable(is_cancellation_requested)
        return self._resolve_uncancellable(is_cancellation_requested)

    def _resolve_uncancellable(
        self, is_cancellation_requested: Optional[Callable[[], bool]]
    ) -> list[AddrInfo]:
        if is_cancellation_requested and is_cancellation_requested():
            raise DNSLookupError("cancellation requested")
        return _get_addr_info(self.hostname, self.port)

    def _resolve_cancellable(
        self, is_cancellation_requested: Optional[Callable[[], bool]]
    ) -> list[AddrInfo]:
        # A lookup instance drives a single background thread; use a new instance per lookup.
        if self._started:
            raise DNSLookupError("lookup already performed; create a new DNSLookup")
        self._started = True

        outcome = _Outcome()
        worker = threading.Thread(
            target=self._run,
            args=(outcome, self.hostname, self.port),
            name=f"dns-lookup-{self.hostname}",
            daemon=True,
        )
        worker.start()

        while not outcome.done.wait(self.wait / 1000):
            if is_cancellation_requested and is_cancellation_requested():
                raise DNSLookupError("cancellation requested")

        if is_cancellation_requested and is_cancellation_requested():
            raise DNSLookupError("cancellation requested")

        if outcome.error is not None:
            raise outcome.error
        return outcome.result

    @staticmethod
    def _run(outcome: _Outcome, hostname: str, port: int) -> None:
        try:
            outcome.result = _get_addr_info(hostname, port)
        except DNSLookupError as exc:
            outcome.error = exc
        finally:
            outcome.done.set()