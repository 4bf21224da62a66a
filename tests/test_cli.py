"""Tests for the command-line entry point."""
from __future__ import annotations

import asyncio
import contextlib
import io
import json
import unittest
from unittest.mock import patch

from fakes import FakeRadio

from peerlink import cli
from peerlink.bridge import AdapterBridge
from peerlink.catalog import DiscoveryCatalog


class ChattyRadio(FakeRadio):
    """Reports a sighting as soon as discovery starts."""

    async def start_discovery(self) -> None:
        await super().start_discovery()
        asyncio.get_running_loop().call_soon(self.emit, ["AA:01"])


class CliTest(unittest.TestCase):
    def test_paired_command_prints_json(self) -> None:
        radio = FakeRadio(names={"AA:03": "Headset"}, paired=["AA:03"])

        def fake_build(settings):
            self.settings = settings
            return DiscoveryCatalog(AdapterBridge(radio))

        out = io.StringIO()
        with patch("peerlink.cli.build_catalog", fake_build), contextlib.redirect_stdout(out):
            code = cli.main(["--paired", "aa:03", "--connect-delay", "0", "paired", "--json"])

        self.assertEqual(code, 0)
        payload = json.loads(out.getvalue())
        self.assertEqual(payload[0]["id"], "AA:03")
        self.assertEqual(payload[0]["name"], "Headset")
        self.assertEqual(self.settings.radio.paired_addresses, ("AA:03",))
        self.assertEqual(self.settings.connect_delay, 0.0)

    def test_scan_reports_radio_failure(self) -> None:
        radio = FakeRadio(failing={"start_discovery"})
        err = io.StringIO()
        with patch("peerlink.cli.build_catalog", lambda _: DiscoveryCatalog(AdapterBridge(radio))), \
                contextlib.redirect_stderr(err):
            code = cli.main(["scan", "--timeout", "0"])
        self.assertEqual(code, 1)
        self.assertIn("could not be started", err.getvalue())

    def test_scan_json_lists_catalog_after_session(self) -> None:
        radio = FakeRadio(names={"AA:01": "Phone"})
        out = io.StringIO()
        with patch("peerlink.cli.build_catalog", lambda _: DiscoveryCatalog(AdapterBridge(radio))), \
                contextlib.redirect_stdout(out):
            code = cli.main(["scan", "--timeout", "0", "--json"])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out.getvalue()), [])
        self.assertFalse(radio.discovering)

    def test_scan_json_includes_peers_seen_before_the_timeout(self) -> None:
        radio = ChattyRadio(names={"AA:01": "Phone"})
        out = io.StringIO()
        with patch("peerlink.cli.build_catalog", lambda _: DiscoveryCatalog(AdapterBridge(radio))), \
                contextlib.redirect_stdout(out):
            code = cli.main(["scan", "--timeout", "0", "--json"])
        self.assertEqual(code, 0)
        payload = json.loads(out.getvalue())
        self.assertEqual([peer["id"] for peer in payload], ["AA:01"])
        self.assertEqual(payload[0]["name"], "Phone")


if __name__ == "__main__":
    unittest.main()
