"""Configuration bundles for PeerLink, with environment overrides."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

ENV_PREFIX = "PEERLINK_"


@dataclass(slots=True)
class RadioConfig:
    """Settings for :class:`peerlink.radio.BleakRadio`."""

    adapter: Optional[str] = None
    batch_interval: float = 0.5
    scanning_mode: Optional[str] = None
    paired_addresses: Sequence[str] = ()
    detection_kwargs: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.batch_interval < 0:
            raise ValueError("batch_interval must not be negative")
        if self.scanning_mode not in (None, "active", "passive"):
            raise ValueError("scanning_mode must be 'active' or 'passive'")
        self.paired_addresses = tuple(addr.upper() for addr in self.paired_addresses)

    def bleak_kwargs(self) -> Dict[str, Any]:
        kwargs = dict(self.detection_kwargs)
        if self.adapter and "adapter" not in kwargs:
            kwargs["adapter"] = self.adapter
        if self.scanning_mode and "scanning_mode" not in kwargs:
            kwargs["scanning_mode"] = self.scanning_mode
        return kwargs


@dataclass(slots=True)
class Settings:
    radio: RadioConfig = field(default_factory=RadioConfig)
    connect_delay: float = 1.5
    journal_path: Optional[Path] = None
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    def __post_init__(self) -> None:
        if self.connect_delay < 0:
            raise ValueError("connect_delay must not be negative")
        if not 0 < self.api_port < 65536:
            raise ValueError("api_port must be a valid TCP port")
        if self.journal_path is not None:
            self.journal_path = Path(self.journal_path)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        paired = get("PAIRED")
        radio = RadioConfig(
            adapter=get("ADAPTER"),
            batch_interval=_as_float(get("BATCH_INTERVAL"), 0.5, "BATCH_INTERVAL"),
            scanning_mode=get("SCANNING_MODE"),
            paired_addresses=tuple(a.strip() for a in paired.split(",") if a.strip()) if paired else (),
        )
        journal = get("JOURNAL")
        port = get("API_PORT")
        try:
            api_port = int(port) if port else 8000
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}API_PORT must be an integer: {port!r}") from exc
        return cls(
            radio=radio,
            connect_delay=_as_float(get("CONNECT_DELAY"), 1.5, "CONNECT_DELAY"),
            journal_path=Path(journal) if journal else None,
            api_host=get("API_HOST") or "127.0.0.1",
            api_port=api_port,
        )


def _as_float(raw: Optional[str], default: float, name: str) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number: {raw!r}") from exc


__all__ = ["ENV_PREFIX", "RadioConfig", "Settings"]
