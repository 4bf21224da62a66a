"""Data model for the PeerLink discovery core.

Records are plain dataclasses; platform codes are folded into closed enums
with an explicit unknown variant so unrecognized values never leak through.
"""
from .enums import ConnectionState, DeviceClass, PairState, ScanMode, SessionState, UpdateReason
from .peer_record import UNKNOWN_NAME, CatalogUpdate, PeerRecord

__all__ = [
    "CatalogUpdate",
    "ConnectionState",
    "DeviceClass",
    "PairState",
    "PeerRecord",
    "ScanMode",
    "SessionState",
    "UNKNOWN_NAME",
    "UpdateReason",
]
