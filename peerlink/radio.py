"""Platform discovery primitive and its bleak-backed implementation."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, TYPE_CHECKING, TypeAlias

from bleak import BleakScanner

from peerlink.config import RadioConfig
from peerlink.models import ScanMode

if TYPE_CHECKING:  # pragma: no cover - typing helper only
	from bleak.backends.device import BLEDevice as _BLEDevice
	from bleak.backends.scanner import AdvertisementData as _AdvertisementData
else:  # pragma: no cover
	_BLEDevice = Any
	_AdvertisementData = Any

BLEDevice: TypeAlias = _BLEDevice
AdvertisementData: TypeAlias = _AdvertisementData

logger = logging.getLogger(__name__)

BatchCallback = Callable[[List[str]], None]

BOND_NONE = 10
BOND_BONDED = 12

# 16-bit service UUID prefix -> major device class code
SERVICE_CLASS_CODES: Dict[str, int] = {
	"00001108": 0x0400,  # headset
	"0000110a": 0x0400,  # audio source
	"0000110b": 0x0400,  # audio sink
	"0000110e": 0x0400,  # remote control
	"0000111e": 0x0400,  # handsfree
	"0000184e": 0x0400,  # audio stream control
	"00001812": 0x0500,  # human interface device
	"0000180d": 0x0900,  # heart rate
	"00001808": 0x0900,  # glucose
	"00001810": 0x0900,  # blood pressure
	"00001814": 0x0700,  # running speed and cadence
	"00001816": 0x0700,  # cycling speed and cadence
	"00001823": 0x0100,  # http proxy
}


class RadioError(RuntimeError):
	"""Raised by a radio when the platform refuses or fails a request."""


class RadioUnsupported(RadioError):
	"""The backend has no way to perform the requested operation."""


class Radio(Protocol):
	"""Raw discovery primitive consumed by :class:`peerlink.bridge.AdapterBridge`."""

	async def start_discovery(self) -> None: ...

	async def stop_discovery(self) -> None: ...

	async def is_discovering(self) -> bool: ...

	async def set_scan_mode(self, mode: ScanMode) -> None: ...

	async def list_paired_peers(self) -> List[str]: ...

	async def get_pair_state(self, peer_id: str) -> Optional[int]: ...

	async def get_device_name(self, peer_id: str) -> Optional[str]: ...

	async def get_device_class(self, peer_id: str) -> Optional[int]: ...

	async def get_signal_strength(self, peer_id: str) -> Optional[int]: ...

	def register_batch_callback(self, callback: BatchCallback) -> None: ...

	def unregister_batch_callback(self, callback: BatchCallback) -> None: ...


class BleakRadio:
	"""BLE radio built on :class:`bleak.BleakScanner`.

	Advertisements are coalesced per address and handed to the registered
	callbacks as batches every ``batch_interval`` seconds. Lookups are answered
	from the most recent advertisement seen for an address.
	"""

	def __init__(self, config: RadioConfig | None = None) -> None:
		self.config = config or RadioConfig()
		self._scanner: Optional[BleakScanner] = None
		self._discovering = False
		self._callbacks: List[BatchCallback] = []
		self._seen: Dict[str, Tuple[BLEDevice, Optional[AdvertisementData]]] = {}
		self._pending: Dict[str, None] = {}
		self._flush_handle: Optional[asyncio.Handle] = None
		self._loop: Optional[asyncio.AbstractEventLoop] = None

	async def start_discovery(self) -> None:
		self._loop = asyncio.get_running_loop()
		if self._scanner is None:
			self._scanner = BleakScanner(detection_callback=self._on_detection, **self.config.bleak_kwargs())
		try:
			await self._scanner.start()
		except Exception as exc:
			raise RadioError(f"unable to start BLE scan: {exc}") from exc
		self._discovering = True

	async def stop_discovery(self) -> None:
		self._cancel_flush()
		self._flush()
		if self._scanner is None or not self._discovering:
			return
		try:
			await self._scanner.stop()
		except Exception as exc:
			raise RadioError(f"unable to stop BLE scan: {exc}") from exc
		finally:
			self._discovering = False

	async def is_discovering(self) -> bool:
		return self._discovering

	async def set_scan_mode(self, mode: ScanMode) -> None:
		raise RadioUnsupported(f"bleak cannot advertise; scan mode {mode.name} unavailable")

	async def list_paired_peers(self) -> List[str]:
		return list(self.config.paired_addresses)

	async def get_pair_state(self, peer_id: str) -> Optional[int]:
		if peer_id.upper() in self.config.paired_addresses:
			return BOND_BONDED
		return BOND_NONE

	async def get_device_name(self, peer_id: str) -> Optional[str]:
		device, advertisement = self._lookup(peer_id)
		if advertisement is not None and getattr(advertisement, "local_name", None):
			return advertisement.local_name
		return device.name or None

	async def get_device_class(self, peer_id: str) -> Optional[int]:
		_, advertisement = self._lookup(peer_id)
		uuids = getattr(advertisement, "service_uuids", None) or ()
		for uuid in uuids:
			code = SERVICE_CLASS_CODES.get(str(uuid).lower()[:8])
			if code is not None:
				return code
		raise LookupError(f"no recognizable service advertised by {peer_id}")

	async def get_signal_strength(self, peer_id: str) -> Optional[int]:
		device, advertisement = self._lookup(peer_id)
		if advertisement is not None and advertisement.rssi is not None:
			return advertisement.rssi
		return getattr(device, "rssi", None)

	def register_batch_callback(self, callback: BatchCallback) -> None:
		self._callbacks.append(callback)

	def unregister_batch_callback(self, callback: BatchCallback) -> None:
		if callback in self._callbacks:
			self._callbacks.remove(callback)

	def _lookup(self, peer_id: str) -> Tuple[BLEDevice, Optional[AdvertisementData]]:
		try:
			return self._seen[peer_id]
		except KeyError:
			raise LookupError(f"{peer_id} has not been seen by this radio") from None

	def _on_detection(self, device: BLEDevice, advertisement: AdvertisementData | None) -> None:
		self._seen[device.address] = (device, advertisement)
		self._pending[device.address] = None
		if self._flush_handle is not None:
			return
		loop = self._loop or asyncio.get_event_loop()
		if self.config.batch_interval:
			self._flush_handle = loop.call_later(self.config.batch_interval, self._flush)
		else:
			self._flush_handle = loop.call_soon(self._flush)

	def _flush(self) -> None:
		self._flush_handle = None
		if not self._pending:
			return
		batch = list(self._pending)
		self._pending.clear()
		for callback in list(self._callbacks):
			try:
				callback(batch)
			except Exception:
				logger.exception("batch callback raised an exception")

	def _cancel_flush(self) -> None:
		if self._flush_handle is not None:
			self._flush_handle.cancel()
			self._flush_handle = None


__all__ = [
	"BatchCallback",
	"BleakRadio",
	"Radio",
	"RadioError",
	"RadioUnsupported",
	"SERVICE_CLASS_CODES",
]
