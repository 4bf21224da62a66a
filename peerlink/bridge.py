"""Adapter event bridge: raw peer-id batches in, enriched records out."""
from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from peerlink.metrics import MetricsLogger, safe_log
from peerlink.models import UNKNOWN_NAME, DeviceClass, PairState, PeerRecord, ScanMode
from peerlink.radio import Radio

logger = logging.getLogger(__name__)

BatchSubscriber = Callable[[List[PeerRecord]], Union[None, Awaitable[None]]]


class AdapterBridge:
	"""Wraps a :class:`~peerlink.radio.Radio` and enriches what it reports.

	Nothing here raises to the caller for platform failures. Lookups that
	fail are logged and leave their field empty, and session control calls
	report failure through their return value.

	Raw batches are queued and consumed by a single worker task, so enriched
	batches reach subscribers in the order the radio produced them.
	"""

	def __init__(self, radio: Radio, *, journal: Optional[MetricsLogger] = None) -> None:
		self.radio = radio
		self.journal = journal
		self._registered = False
		self._queue: Optional[asyncio.Queue[Tuple[int, List[str]]]] = None
		self._epoch = 0
		self._worker: Optional[asyncio.Task[None]] = None
		self._subscribers: List[BatchSubscriber] = []

	@property
	def listening(self) -> bool:
		return self._registered

	# ------------------------------------------------------------------
	# Session control
	# ------------------------------------------------------------------
	async def start_discovery(self) -> bool:
		self._ensure_worker()
		if not self._registered:
			try:
				self.radio.register_batch_callback(self._on_raw_batch)
			except Exception as exc:
				logger.warning("Unable to subscribe to discovery events: %s", exc)
				safe_log(self.journal, "discovery_start", status="error", extra={"message": str(exc)})
				await self._stop_worker()
				return False
			self._registered = True

		try:
			if not await self.radio.is_discovering():
				await self.radio.start_discovery()
		except Exception as exc:
			logger.warning("Unable to start discovery: %s", exc)
			safe_log(self.journal, "discovery_start", status="error", extra={"message": str(exc)})
			self._unregister()
			await self._stop_worker()
			return False

		safe_log(self.journal, "discovery_start", status="ok")
		return True

	async def stop_discovery(self) -> bool:
		stopped = True
		try:
			if await self.radio.is_discovering():
				await self.radio.stop_discovery()
		except Exception as exc:
			stopped = False
			logger.warning("Unable to stop discovery: %s", exc)
		finally:
			worker = self._worker
			if worker is not None and not worker.done() and worker is not asyncio.current_task():
				await self.drain()
			self._unregister()
			await self._stop_worker()
		safe_log(self.journal, "discovery_stop", status="ok" if stopped else "error")
		return stopped

	async def set_discoverable(self, enabled: bool) -> bool:
		"""Toggle whether nearby scanners can find and connect to us."""
		mode = ScanMode.CONNECTABLE_DISCOVERABLE if enabled else ScanMode.CONNECTABLE
		try:
			await self.radio.set_scan_mode(mode)
		except Exception as exc:
			logger.warning("Unable to switch scan mode to %s: %s", mode.name, exc)
			return False
		logger.info("Scan mode set to %s", mode.name)
		return True

	def reset(self) -> None:
		"""Forget batches queued or being enriched for the previous session."""
		self._epoch += 1
		if self._queue is not None:
			_discard_queued(self._queue)

	async def drain(self) -> None:
		"""Wait until every queued raw batch has been delivered."""
		if self._queue is not None:
			await self._queue.join()

	# ------------------------------------------------------------------
	# Queries
	# ------------------------------------------------------------------
	async def list_paired_peers(self) -> List[PeerRecord]:
		try:
			peer_ids = await self.radio.list_paired_peers()
		except Exception as exc:
			logger.warning("Unable to enumerate paired peers: %s", exc)
			return []
		return await self._enrich_all(peer_ids)

	async def enrich(self, peer_id: str) -> PeerRecord:
		name = await self._lookup("name", self.radio.get_device_name, peer_id)
		class_code = await self._lookup("device class", self.radio.get_device_class, peer_id)
		pair_code = await self._lookup("pair state", self.radio.get_pair_state, peer_id)
		rssi = await self._lookup("signal strength", self.radio.get_signal_strength, peer_id)

		return PeerRecord(
			id=peer_id,
			display_name=str(name) if name else UNKNOWN_NAME,
			signal_strength=int(rssi) if isinstance(rssi, (int, float)) else None,
			device_class=DeviceClass.from_code(class_code) if class_code is not None else None,
			pair_state=PairState.from_code(pair_code),
		)

	# ------------------------------------------------------------------
	# Subscribers
	# ------------------------------------------------------------------
	def subscribe(self, callback: BatchSubscriber) -> Callable[[], None]:
		self._subscribers.append(callback)

		def _unsubscribe() -> None:
			if callback in self._subscribers:
				self._subscribers.remove(callback)

		return _unsubscribe

	# ------------------------------------------------------------------
	# Internals
	# ------------------------------------------------------------------
	async def _lookup(self, field: str, getter: Callable[[str], Awaitable[Any]], peer_id: str) -> Any:
		try:
			return await getter(peer_id)
		except Exception:
			logger.debug("%s lookup failed for %s", field, peer_id, exc_info=True)
			return None

	async def _enrich_all(self, peer_ids: List[str]) -> List[PeerRecord]:
		unique = list(dict.fromkeys(peer_ids))
		return list(await asyncio.gather(*(self.enrich(peer_id) for peer_id in unique)))

	def _on_raw_batch(self, peer_ids: List[str]) -> None:
		if self._queue is None:
			logger.debug("Dropping batch of %d peers received while idle", len(peer_ids))
			return
		self._queue.put_nowait((self._epoch, list(peer_ids)))

	def _ensure_worker(self) -> None:
		if self._worker is not None and not self._worker.done():
			return
		self._queue = asyncio.Queue()
		self._worker = asyncio.get_running_loop().create_task(self._run_worker(self._queue))

	async def _run_worker(self, queue: asyncio.Queue[Tuple[int, List[str]]]) -> None:
		while True:
			epoch, peer_ids = await queue.get()
			try:
				if epoch != self._epoch:
					continue
				records = await self._enrich_all(peer_ids)
				if epoch != self._epoch:
					logger.debug("Discarding batch of %d peers from a previous session", len(records))
					continue
				safe_log(self.journal, "batch", status="ok", value=float(len(records)))
				await self._deliver(records)
			except Exception:
				logger.exception("Failed to deliver discovery batch")
			finally:
				queue.task_done()

	async def _deliver(self, records: List[PeerRecord]) -> None:
		for callback in list(self._subscribers):
			try:
				outcome = callback(records)
				if inspect.isawaitable(outcome):
					await outcome
			except Exception:
				logger.exception("batch subscriber raised an exception")

	def _unregister(self) -> None:
		if not self._registered:
			return
		self._registered = False
		try:
			self.radio.unregister_batch_callback(self._on_raw_batch)
		except Exception:
			logger.warning("Unable to unsubscribe from discovery events", exc_info=True)

	async def _stop_worker(self) -> None:
		worker, self._worker = self._worker, None
		queue, self._queue = self._queue, None
		if queue is not None:
			_discard_queued(queue)
		if worker is None or worker.done():
			return
		worker.cancel()
		if worker is asyncio.current_task():
			return
		with contextlib.suppress(asyncio.CancelledError):
			await worker


def _discard_queued(queue: asyncio.Queue[Any]) -> None:
	while not queue.empty():
		queue.get_nowait()
		queue.task_done()


__all__ = ["AdapterBridge", "BatchSubscriber"]
