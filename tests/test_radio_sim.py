"""Simulation tests for the bleak-backed radio."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, List, Optional, Tuple
from unittest import IsolatedAsyncioTestCase
from unittest.mock import patch

from peerlink.config import RadioConfig
from peerlink.models import ScanMode
from peerlink.radio import BOND_BONDED, BOND_NONE, BleakRadio, RadioError, RadioUnsupported


class FakeBleakScanner:
    """Replays predetermined advertisements once started."""

    events: List[Tuple[Any, Any]] = []
    instances: List["FakeBleakScanner"] = []
    fail_start = False

    def __init__(self, detection_callback=None, **kwargs: Any) -> None:
        self._callback = detection_callback
        self.kwargs = kwargs
        self.started = False
        self._task: Optional[asyncio.Task[None]] = None
        FakeBleakScanner.instances.append(self)

    async def start(self) -> None:
        if self.fail_start:
            raise OSError("adapter powered off")
        self.started = True
        self._task = asyncio.create_task(self._emit())

    async def stop(self) -> None:
        self.started = False
        if self._task:
            await self._task

    async def _emit(self) -> None:
        await asyncio.sleep(0)
        for device, advertisement in list(self.events):
            self._callback(device, advertisement)


def _adv(rssi: int, local_name: Optional[str] = None, uuids: Optional[List[str]] = None) -> SimpleNamespace:
    return SimpleNamespace(rssi=rssi, local_name=local_name, service_uuids=uuids or [])


class BleakRadioSimulationTest(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        FakeBleakScanner.events = []
        FakeBleakScanner.instances = []
        FakeBleakScanner.fail_start = False
        patcher = patch("peerlink.radio.BleakScanner", FakeBleakScanner)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def test_sightings_are_coalesced_into_one_batch(self) -> None:
        headset = SimpleNamespace(address="AA:01", name="Headset")
        phone = SimpleNamespace(address="AA:02", name=None)
        FakeBleakScanner.events = [
            (headset, _adv(-70, uuids=["0000110b-0000-1000-8000-00805f9b34fb"])),
            (phone, _adv(-52, local_name="Pixel")),
            (headset, _adv(-68, uuids=["0000110b-0000-1000-8000-00805f9b34fb"])),
        ]
        radio = BleakRadio(RadioConfig(batch_interval=0.01, adapter="hci1", scanning_mode="active"))
        batches: List[List[str]] = []
        radio.register_batch_callback(batches.append)

        await radio.start_discovery()
        self.assertTrue(await radio.is_discovering())
        await asyncio.sleep(0.05)
        await radio.stop_discovery()

        self.assertEqual(batches, [["AA:01", "AA:02"]])
        self.assertEqual(FakeBleakScanner.instances[0].kwargs, {"adapter": "hci1", "scanning_mode": "active"})
        self.assertEqual(await radio.get_device_name("AA:01"), "Headset")
        self.assertEqual(await radio.get_device_name("AA:02"), "Pixel")
        self.assertEqual(await radio.get_signal_strength("AA:01"), -68)
        self.assertEqual(await radio.get_device_class("AA:01"), 0x0400)
        self.assertFalse(await radio.is_discovering())

    async def test_lookups_for_unseen_peers_raise(self) -> None:
        radio = BleakRadio()
        with self.assertRaises(LookupError):
            await radio.get_device_name("ZZ:99")
        with self.assertRaises(LookupError):
            await radio.get_signal_strength("ZZ:99")

    async def test_class_lookup_without_known_services_raises(self) -> None:
        FakeBleakScanner.events = [(SimpleNamespace(address="AA:05", name="Tag"), _adv(-40))]
        radio = BleakRadio(RadioConfig(batch_interval=0))
        await radio.start_discovery()
        await asyncio.sleep(0.01)
        await radio.stop_discovery()
        with self.assertRaises(LookupError):
            await radio.get_device_class("AA:05")

    async def test_paired_peers_come_from_configuration(self) -> None:
        radio = BleakRadio(RadioConfig(paired_addresses=["aa:01"]))
        self.assertEqual(await radio.list_paired_peers(), ["AA:01"])
        self.assertEqual(await radio.get_pair_state("aa:01"), BOND_BONDED)
        self.assertEqual(await radio.get_pair_state("AA:02"), BOND_NONE)

    async def test_start_failure_is_wrapped(self) -> None:
        FakeBleakScanner.fail_start = True
        radio = BleakRadio()
        with self.assertRaises(RadioError):
            await radio.start_discovery()
        self.assertFalse(await radio.is_discovering())

    async def test_scan_mode_is_unsupported(self) -> None:
        with self.assertRaises(RadioUnsupported):
            await BleakRadio().set_scan_mode(ScanMode.CONNECTABLE_DISCOVERABLE)

    async def test_unregistered_callbacks_receive_nothing(self) -> None:
        FakeBleakScanner.events = [(SimpleNamespace(address="AA:01", name="A"), _adv(-40))]
        radio = BleakRadio(RadioConfig(batch_interval=0))
        batches: List[List[str]] = []
        radio.register_batch_callback(batches.append)
        radio.unregister_batch_callback(batches.append)
        await radio.start_discovery()
        await asyncio.sleep(0.01)
        await radio.stop_discovery()
        self.assertEqual(batches, [])

    async def test_stop_flushes_sightings_waiting_for_the_batch_timer(self) -> None:
        FakeBleakScanner.events = [(SimpleNamespace(address="AA:01", name="A"), _adv(-40))]
        radio = BleakRadio(RadioConfig(batch_interval=10.0))
        batches: List[List[str]] = []
        radio.register_batch_callback(batches.append)
        await radio.start_discovery()
        await asyncio.sleep(0.01)
        self.assertEqual(batches, [])

        await radio.stop_discovery()
        self.assertEqual(batches, [["AA:01"]])


if __name__ == "__main__":
    import unittest

    unittest.main()
