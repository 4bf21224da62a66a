"""Wiring of the discovery stack from :class:`~peerlink.config.Settings`."""
from __future__ import annotations

import logging

from peerlink.bridge import AdapterBridge
from peerlink.catalog import DiscoveryCatalog
from peerlink.config import Settings
from peerlink.handshake import SimulatedHandshake
from peerlink.metrics import MetricsLogger
from peerlink.radio import BleakRadio

logger = logging.getLogger(__name__)


def build_catalog(settings: Settings) -> DiscoveryCatalog:
    journal = None
    if settings.journal_path is not None:
        journal = MetricsLogger(settings.journal_path, static_extra={"adapter": settings.radio.adapter or "default"})
        logger.info("Journaling discovery events to %s", settings.journal_path)
    bridge = AdapterBridge(BleakRadio(settings.radio), journal=journal)
    return DiscoveryCatalog(
        bridge,
        handshake=SimulatedHandshake(settings.connect_delay),
        journal=journal,
    )


__all__ = ["build_catalog"]
