"""PeerLink: peer discovery and connection-state tracking for ad-hoc sharing."""
from peerlink.bridge import AdapterBridge
from peerlink.catalog import DiscoveryCatalog
from peerlink.config import RadioConfig, Settings
from peerlink.models import CatalogUpdate, ConnectionState, PairState, PeerRecord, SessionState

__version__ = "0.1.0"

__all__ = [
    "AdapterBridge",
    "CatalogUpdate",
    "ConnectionState",
    "DiscoveryCatalog",
    "PairState",
    "PeerRecord",
    "RadioConfig",
    "SessionState",
    "Settings",
    "__version__",
]
