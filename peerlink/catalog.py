"""Discovery catalog: the canonical, de-duplicated set of known peers."""
from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from peerlink.bridge import AdapterBridge
from peerlink.handshake import Handshake, SimulatedHandshake
from peerlink.metrics import MetricsLogger, safe_log
from peerlink.models import CatalogUpdate, ConnectionState, PeerRecord, SessionState, UpdateReason

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[CatalogUpdate], Union[None, Awaitable[None]]]


class DiscoveryCatalog:
	"""Owns discovered peers, discovery session boundaries and subscribers.

	Every merge emits a single :class:`CatalogUpdate` carrying the whole
	catalog. Merges replace all scanned fields of a known peer but keep its
	connection state, which only this class changes.

	Connect attempts run as tasks keyed by peer id. Starting a new attempt
	for the same peer, disconnecting it, or starting a new scan cancels a
	pending attempt so a late completion cannot touch a newer record.
	"""

	def __init__(
		self,
		bridge: AdapterBridge,
		*,
		handshake: Optional[Handshake] = None,
		journal: Optional[MetricsLogger] = None,
	) -> None:
		self.bridge = bridge
		self.handshake: Handshake = handshake or SimulatedHandshake()
		self.journal = journal
		self._peers: Dict[str, PeerRecord] = {}
		self._state = SessionState.IDLE
		self._session = 0
		self._batches = 0
		self._subscribers: List[UpdateCallback] = []
		self._pending: Dict[str, asyncio.Task[bool]] = {}
		self._subscriber_tasks: Set[asyncio.Task[Any]] = set()
		self._detach = bridge.subscribe(self._on_batch)

	@property
	def state(self) -> SessionState:
		return self._state

	@property
	def session(self) -> int:
		return self._session

	# ------------------------------------------------------------------
	# Session lifecycle
	# ------------------------------------------------------------------
	async def start_scan(self) -> bool:
		"""Reset the catalog and begin a new discovery session.

		Returns False, leaving the session Idle, when the radio refused to
		start. The catalog is cleared either way.
		"""
		self._cancel_pending()
		self.bridge.reset()
		self._peers.clear()
		self._batches = 0
		self._session += 1
		self._emit(UpdateReason.RESET)

		started = await self.bridge.start_discovery()
		if started:
			self._state = SessionState.SCANNING
			logger.info("Discovery session %d started", self._session)
		else:
			self._state = SessionState.IDLE
			logger.warning("Discovery session %d failed to start", self._session)
		self._log("scan_start", status="ok" if started else "error")
		return started

	async def stop_scan(self) -> bool:
		stopped = await self.bridge.stop_discovery()
		self._state = SessionState.IDLE
		self._log("scan_stop", status="ok" if stopped else "error", value=float(len(self._peers)))
		return stopped

	async def refresh(self) -> CatalogUpdate:
		"""Fold the already-paired peers into the catalog."""
		records = await self.bridge.list_paired_peers()
		update = self.merge_batch(records, reason=UpdateReason.REFRESH)
		self._log("refresh", status="ok", value=float(len(update)))
		return update

	async def close(self) -> None:
		self._cancel_pending()
		for task in list(self._subscriber_tasks):
			task.cancel()
		await self.stop_scan()
		self._detach()

	# ------------------------------------------------------------------
	# Catalog mutation
	# ------------------------------------------------------------------
	def merge_batch(self, records: Iterable[PeerRecord], reason: UpdateReason = UpdateReason.BATCH) -> CatalogUpdate:
		for record in records:
			existing = self._peers.get(record.id)
			if existing is None:
				self._peers[record.id] = record.with_connection_state(ConnectionState.DISCONNECTED)
			else:
				self._peers[record.id] = existing.merged_with(record)
		if reason is UpdateReason.BATCH:
			self._batches += 1
		return self._emit(reason)

	def set_connection_state(self, peer_id: str, state: Union[ConnectionState, str]) -> bool:
		"""Record a connection outcome for a known peer.

		Returns False for ids that are not in the catalog; no entry is created.
		"""
		state = ConnectionState(state)
		existing = self._peers.get(peer_id)
		if existing is None:
			logger.warning("Ignoring %s state for unknown peer %s", state.value, peer_id)
			return False
		if existing.connection_state is not state:
			self._peers[peer_id] = existing.with_connection_state(state)
			self._log("connection_state", peer=peer_id, status=state.value)
			self._emit(UpdateReason.CONNECTION)
		return True

	def connect(self, peer_id: str) -> Optional[asyncio.Task[bool]]:
		if peer_id not in self._peers:
			logger.warning("Cannot connect to unknown peer %s", peer_id)
			return None
		self._cancel_pending(peer_id)
		self.set_connection_state(peer_id, ConnectionState.CONNECTING)
		task = asyncio.get_running_loop().create_task(
			self._complete_connect(peer_id, self._session),
			name=f"peerlink-connect-{peer_id}",
		)
		self._pending[peer_id] = task
		task.add_done_callback(functools.partial(self._forget_pending, peer_id))
		return task

	def disconnect(self, peer_id: str) -> bool:
		self._cancel_pending(peer_id)
		return self.set_connection_state(peer_id, ConnectionState.DISCONNECTED)

	# ------------------------------------------------------------------
	# Queries
	# ------------------------------------------------------------------
	def snapshot(self) -> Tuple[PeerRecord, ...]:
		return tuple(self._peers.values())

	def get(self, peer_id: str) -> Optional[PeerRecord]:
		return self._peers.get(peer_id)

	def __len__(self) -> int:
		return len(self._peers)

	def __contains__(self, peer_id: object) -> bool:
		return peer_id in self._peers

	def pending_connect(self, peer_id: str) -> Optional[asyncio.Task[bool]]:
		return self._pending.get(peer_id)

	def stats(self) -> Dict[str, Any]:
		return {
			"state": self._state.value,
			"session": self._session,
			"peers": len(self._peers),
			"batches": self._batches,
			"pending_connects": len(self._pending),
		}

	# ------------------------------------------------------------------
	# Subscribers
	# ------------------------------------------------------------------
	def subscribe(self, callback: UpdateCallback) -> Callable[[], None]:
		self._subscribers.append(callback)
		return functools.partial(self.unsubscribe, callback)

	def unsubscribe(self, callback: UpdateCallback) -> None:
		if callback in self._subscribers:
			self._subscribers.remove(callback)

	# ------------------------------------------------------------------
	# Internals
	# ------------------------------------------------------------------
	def _on_batch(self, records: List[PeerRecord]) -> None:
		self.merge_batch(records)

	async def _complete_connect(self, peer_id: str, session: int) -> bool:
		try:
			await self.handshake(peer_id)
		except Exception as exc:
			logger.warning("Connection to %s failed: %s", peer_id, exc)
			if session == self._session:
				self.set_connection_state(peer_id, ConnectionState.DISCONNECTED)
			return False
		if session != self._session or peer_id not in self._peers:
			logger.debug("Dropping stale connect completion for %s", peer_id)
			return False
		return self.set_connection_state(peer_id, ConnectionState.CONNECTED)

	def _forget_pending(self, peer_id: str, task: asyncio.Task[bool]) -> None:
		if self._pending.get(peer_id) is task:
			del self._pending[peer_id]

	def _cancel_pending(self, peer_id: Optional[str] = None) -> None:
		if peer_id is None:
			tasks = list(self._pending.values())
			self._pending.clear()
		else:
			task = self._pending.pop(peer_id, None)
			tasks = [task] if task is not None else []
		for task in tasks:
			if not task.done():
				logger.debug("Cancelling pending connect %s", task.get_name())
				task.cancel()

	def _emit(self, reason: UpdateReason) -> CatalogUpdate:
		update = CatalogUpdate(peers=self.snapshot(), reason=reason, session=self._session)
		for callback in list(self._subscribers):
			self._dispatch(callback, update)
		return update

	def _dispatch(self, callback: UpdateCallback, update: CatalogUpdate) -> None:
		try:
			outcome = callback(update)
		except Exception:
			logger.exception("catalog subscriber raised an exception")
			return
		if not inspect.iscoroutine(outcome):
			return
		try:
			task = asyncio.get_running_loop().create_task(outcome)
		except RuntimeError:
			logger.warning("No running event loop for async subscriber %r", callback)
			outcome.close()
			return
		self._subscriber_tasks.add(task)
		task.add_done_callback(self._subscriber_done)

	def _subscriber_done(self, task: asyncio.Task[Any]) -> None:
		self._subscriber_tasks.discard(task)
		if task.cancelled():
			return
		exc = task.exception()
		if exc is not None:
			logger.error("catalog subscriber raised an exception", exc_info=exc)

	def _log(self, event: str, **payload: Any) -> None:
		extra = dict(payload.pop("extra", None) or {})
		extra.setdefault("session", self._session)
		safe_log(self.journal, event, extra=extra, **payload)


__all__ = ["DiscoveryCatalog", "UpdateCallback"]
