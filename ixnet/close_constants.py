"""WebSocket close codes and their standard messages."""

from __future__ import annotations

from enum import Enum, IntEnum


class CloseCode(IntEnum):
    NORMAL_CLOSURE = 1000
    PROTOCOL_ERROR = 1002
    NO_STATUS_CODE_ERROR = 1005
    ABNORMAL_CLOSE = 1006
    INTERNAL_ERROR = 1011


class CloseMessage(str, Enum):
    NORMAL_CLOSURE = "Normal closure"
    INTERNAL_ERROR = "Internal error"
    ABNORMAL_CLOSE = "Abnormal closure"
    PING_TIMEOUT = "Ping timeout"
    PROTOCOL_ERROR = "Protocol error"
    NO_STATUS_CODE_ERROR = "No status code"