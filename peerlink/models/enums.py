from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class PairState(Enum):
    """Platform bonding status, distinct from the catalog's connection state."""

    UNPAIRED = "unpaired"
    PAIRING = "pairing"
    PAIRED = "paired"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Any) -> "PairState":
        if isinstance(code, cls):
            return code
        return _PAIR_CODES.get(code, cls.UNKNOWN)


_PAIR_CODES: Dict[Any, PairState] = {
    10: PairState.UNPAIRED,
    11: PairState.PAIRING,
    12: PairState.PAIRED,
}


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DeviceClass(Enum):
    """Coarse major device class, used for display only."""

    MISC = 0x0000
    COMPUTER = 0x0100
    PHONE = 0x0200
    NETWORKING = 0x0300
    AUDIO_VIDEO = 0x0400
    PERIPHERAL = 0x0500
    IMAGING = 0x0600
    WEARABLE = 0x0700
    TOY = 0x0800
    HEALTH = 0x0900
    UNCATEGORIZED = 0x1F00
    UNKNOWN = -1

    @classmethod
    def from_code(cls, code: Optional[int]) -> "DeviceClass":
        if isinstance(code, cls):
            return code
        if code is None:
            return cls.UNKNOWN
        try:
            return cls(int(code) & 0x1F00)
        except (TypeError, ValueError):
            return cls.UNKNOWN

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


class ScanMode(Enum):
    NONE = 20
    CONNECTABLE = 21
    CONNECTABLE_DISCOVERABLE = 23
    UNKNOWN = -1

    @classmethod
    def from_code(cls, code: Any) -> "ScanMode":
        if isinstance(code, cls):
            return code
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class SessionState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class UpdateReason(Enum):
    SNAPSHOT = "snapshot"
    RESET = "reset"
    BATCH = "batch"
    REFRESH = "refresh"
    CONNECTION = "connection"
