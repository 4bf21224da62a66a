from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Handshake = Callable[[str], Awaitable[None]]


class SimulatedHandshake:
    """Stand-in for a pairing handshake: succeeds after a fixed delay."""

    def __init__(self, delay: float = 1.5) -> None:
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.delay = delay

    async def __call__(self, peer_id: str) -> None:
        logger.debug("Simulating handshake with %s (%.2fs)", peer_id, self.delay)
        await asyncio.sleep(self.delay)


__all__ = ["Handshake", "SimulatedHandshake"]
