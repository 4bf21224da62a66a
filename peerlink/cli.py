"""PeerLink command-line interface."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import uvicorn
from rich.console import Console
from rich.table import Table

from peerlink.api import create_app
from peerlink.catalog import DiscoveryCatalog
from peerlink.config import Settings
from peerlink.factory import build_catalog
from peerlink.models import CatalogUpdate, PeerRecord

logger = logging.getLogger("peerlink.cli")


def _settings_from_args(args: argparse.Namespace) -> Settings:
	settings = Settings.from_env()
	radio_overrides: Dict[str, Any] = {}
	if args.adapter:
		radio_overrides["adapter"] = args.adapter
	if args.batch_interval is not None:
		radio_overrides["batch_interval"] = args.batch_interval
	if args.paired:
		radio_overrides["paired_addresses"] = tuple(args.paired)
	overrides: Dict[str, Any] = {}
	if radio_overrides:
		overrides["radio"] = dataclasses.replace(settings.radio, **radio_overrides)
	if args.connect_delay is not None:
		overrides["connect_delay"] = args.connect_delay
	if args.journal:
		overrides["journal_path"] = Path(args.journal)
	return dataclasses.replace(settings, **overrides) if overrides else settings


def _render(peers: Sequence[PeerRecord], *, as_json: bool, title: str) -> None:
	data = [peer.to_dict() for peer in peers]
	if as_json:
		json.dump(data, sys.stdout, indent=2)
		sys.stdout.write("\n")
		return
	table = Table(title=title, show_lines=False)
	for column in ("id", "name", "rssi", "device_class", "pair_state", "connection_state"):
		table.add_column(column.replace("_", " ").upper())
	for entry in data:
		table.add_row(*(str(entry[key]) if entry[key] is not None else "-" for key in (
			"id", "name", "rssi", "device_class", "pair_state", "connection_state",
		)))
	Console().print(table)


async def _cmd_scan(args: argparse.Namespace) -> int:
	catalog = build_catalog(_settings_from_args(args))

	def _progress(update: CatalogUpdate) -> None:
		logger.info("%s: %d peers known", update.reason.value, len(update))

	catalog.subscribe(_progress)
	if not await catalog.start_scan():
		sys.stderr.write("discovery could not be started; is the radio enabled?\n")
		return 1
	try:
		await asyncio.sleep(args.timeout)
		await catalog.bridge.drain()
	finally:
		await catalog.close()
	_render(catalog.snapshot(), as_json=args.json, title="PeerLink Scan Results")
	return 0


async def _cmd_paired(args: argparse.Namespace) -> int:
	catalog: DiscoveryCatalog = build_catalog(_settings_from_args(args))
	update = await catalog.refresh()
	_render(update.peers, as_json=args.json, title="Paired Peers")
	return 0


async def _cmd_serve(args: argparse.Namespace) -> int:
	settings = _settings_from_args(args)
	host = args.host or settings.api_host
	port = args.port or settings.api_port
	app = create_app(build_catalog(settings))
	server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=args.log_level.lower()))
	await server.serve()
	return 0


def _build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="PeerLink discovery utilities")
	parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
	parser.add_argument("--adapter", help="Bluetooth adapter identifier")
	parser.add_argument("--batch-interval", type=float, help="Seconds to coalesce sightings into one batch")
	parser.add_argument("--paired", action="append", help="Address to treat as already paired")
	parser.add_argument("--connect-delay", type=float, help="Simulated handshake duration in seconds")
	parser.add_argument("--journal", help="Path to a CSV journal of discovery events")
	sub = parser.add_subparsers(dest="command", required=True)

	scan = sub.add_parser("scan", help="Run one discovery session and list the peers found")
	scan.add_argument("--timeout", type=float, default=6.0, help="Session length in seconds")
	scan.add_argument("--json", action="store_true", help="Output JSON")
	scan.set_defaults(handler=_cmd_scan)

	paired = sub.add_parser("paired", help="List already-paired peers")
	paired.add_argument("--json", action="store_true", help="Output JSON")
	paired.set_defaults(handler=_cmd_paired)

	serve = sub.add_parser("serve", help="Serve the HTTP/websocket API")
	serve.add_argument("--host", help="Bind address")
	serve.add_argument("--port", type=int, help="Bind port")
	serve.set_defaults(handler=_cmd_serve)

	return parser


def main(argv: Optional[List[str]] = None) -> int:
	parser = _build_parser()
	args = parser.parse_args(argv)
	logging.basicConfig(
		level=getattr(logging, args.log_level.upper(), logging.WARNING),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	try:
		return asyncio.run(args.handler(args))
	except ValueError as exc:
		parser.error(str(exc))
	except KeyboardInterrupt:
		return 130


if __name__ == "__main__":
	sys.exit(main())
