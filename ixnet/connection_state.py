"""Per-connection state shared between a server and its worker threads."""

from __future__ import annotations

import itertools
import threading


class ConnectionState:
    """Identifies a connection and tracks whether it has terminated."""

    _global_ids = itertools.count()
    _id_lock = threading.Lock()

    def __init__(self) -> None:
        self._terminated = threading.Event()
        self._id = ""
        self.compute_id()

    def compute_id(self) -> None:
        """Assign the next process-wide identifier to this connection."""
        with ConnectionState._id_lock:
            self._id = str(next(ConnectionState._global_ids))

    @property
    def id(self) -> str:
        return self._id

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    def terminate(self) -> None:
        """Mark the connection as terminated."""
        self._terminated.set()