"""FastAPI surface over a :class:`~peerlink.catalog.DiscoveryCatalog`."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket

from peerlink import __version__
from peerlink.catalog import DiscoveryCatalog
from peerlink.config import Settings
from peerlink.models import CatalogUpdate, UpdateReason

logger = logging.getLogger(__name__)


def create_app(catalog: Optional[DiscoveryCatalog] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around ``catalog``, or one wired from ``settings``."""
    if catalog is None:
        from peerlink.factory import build_catalog

        catalog = build_catalog(settings or Settings.from_env())

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await catalog.close()

    app = FastAPI(title="PeerLink API", version=__version__, lifespan=lifespan)
    app.state.catalog = catalog

    def _require(peer_id: str) -> Dict[str, Any]:
        record = catalog.get(peer_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Unknown peer {peer_id}")
        return record.to_dict()

    @app.get("/health")
    async def health():
        return {"status": "ok", "time": time.time(), **catalog.stats()}

    @app.get("/peers")
    async def peers():
        return {
            "state": catalog.state.value,
            "session": catalog.session,
            "peers": [peer.to_dict() for peer in catalog.snapshot()],
        }

    @app.get("/peers/{peer_id}")
    async def peer(peer_id: str):
        return _require(peer_id)

    @app.post("/scan/start")
    async def scan_start():
        started = await catalog.start_scan()
        return {"started": started, "state": catalog.state.value, "session": catalog.session}

    @app.post("/scan/stop")
    async def scan_stop():
        stopped = await catalog.stop_scan()
        return {"stopped": stopped, "state": catalog.state.value}

    @app.post("/refresh")
    async def refresh():
        update = await catalog.refresh()
        return update.to_dict()

    @app.post("/peers/{peer_id}/connect")
    async def connect(peer_id: str):
        if catalog.connect(peer_id) is None:
            raise HTTPException(status_code=404, detail=f"Unknown peer {peer_id}")
        return _require(peer_id)

    @app.post("/peers/{peer_id}/disconnect")
    async def disconnect(peer_id: str):
        if not catalog.disconnect(peer_id):
            raise HTTPException(status_code=404, detail=f"Unknown peer {peer_id}")
        return _require(peer_id)

    @app.post("/discoverable")
    async def discoverable(enabled: bool = Query(True, description="Accept incoming connections")):
        applied = await catalog.bridge.set_discoverable(enabled)
        return {"discoverable": enabled, "applied": applied}

    @app.websocket("/events")
    async def events(ws: WebSocket):
        await ws.accept()
        queue: asyncio.Queue[CatalogUpdate] = asyncio.Queue()
        unsubscribe = catalog.subscribe(queue.put_nowait)
        closed = asyncio.create_task(_wait_for_disconnect(ws))
        try:
            initial = CatalogUpdate(catalog.snapshot(), UpdateReason.SNAPSHOT, catalog.session)
            await ws.send_json(initial.to_dict())
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter, closed}, return_when=asyncio.FIRST_COMPLETED)
                if closed in done:
                    getter.cancel()
                    break
                await ws.send_json(getter.result().to_dict())
        finally:
            unsubscribe()
            if not closed.done():
                closed.cancel()

    return app


async def _wait_for_disconnect(ws: WebSocket) -> None:
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            return


__all__ = ["create_app"]
