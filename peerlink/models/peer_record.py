from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .enums import ConnectionState, DeviceClass, PairState, UpdateReason

UNKNOWN_NAME = "unknown"


@dataclass(frozen=True, slots=True)
class PeerRecord:
    """One discovered peer, keyed by its hardware address.

    ``connection_state`` belongs to the catalog. Sightings coming from the
    radio always carry the default and must never overwrite a known value,
    see :meth:`merged_with`.
    """

    id: str
    display_name: str = UNKNOWN_NAME
    signal_strength: Optional[int] = None
    device_class: Optional[DeviceClass] = None
    pair_state: PairState = PairState.UNKNOWN
    connection_state: ConnectionState = ConnectionState.DISCONNECTED

    def merged_with(self, sighting: "PeerRecord") -> "PeerRecord":
        """Take every field of ``sighting`` except the connection state."""
        if sighting.id != self.id:
            raise ValueError(f"cannot merge {sighting.id} into {self.id}")
        return dataclasses.replace(sighting, connection_state=self.connection_state)

    def with_connection_state(self, state: ConnectionState) -> "PeerRecord":
        return dataclasses.replace(self, connection_state=state)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "rssi": self.signal_strength,
            "device_class": self.device_class.label if self.device_class else None,
            "pair_state": self.pair_state.value,
            "connection_state": self.connection_state.value,
        }


@dataclass(frozen=True, slots=True)
class CatalogUpdate:
    """Notification payload carrying the whole catalog, never a diff."""

    peers: Tuple[PeerRecord, ...]
    reason: UpdateReason
    session: int = 0

    def __len__(self) -> int:
        return len(self.peers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason.value,
            "session": self.session,
            "count": len(self.peers),
            "peers": [peer.to_dict() for peer in self.peers],
        }
