"""
Settings Manager
Simple JSON-based settings with defaults
"""

import json
import os
from pathlib import Path
from typing import Any

from loguru import logger


class Settings:
    """Application settings manager."""

    DEFAULTS = {
        'check_interval': 30,           # seconds between background passes
        'probe_timeout': 5.0,           # seconds per probe
        'probe_mode': 'real',           # real, simulated
        'hop_count': 3,
        'packet_loss_pings': 10,
        'bandwidth_bytes': 5_000_000,
        'connection_url': 'https://httpbin.org/status/200',
        'download_url': 'https://speed.cloudflare.com/__down',
        'upload_url': 'https://speed.cloudflare.com/__up',
        'route_target': '8.8.8.8',
        'dns_query_name': 'example.com',
        'stability_samples': 20,
    }

    def __init__(self, data_dir: Path = None):
        """Initialize settings."""
        if data_dir is None:
            data_dir = Path("data")

        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.file = self.data_dir / "settings.json"
        self.data = self.DEFAULTS.copy()

        self._load()

        if os.environ.get("NETDIAG_PROBES", "").lower() == "simulated":
            self.data['probe_mode'] = 'simulated'

    def get(self, key: str, default: Any = None) -> Any:
        """Get setting value."""
        return self.data.get(key, default)

    def set(self, key: str, value: Any):
        """Set setting value and save."""
        self.data[key] = value
        self._save()

    @property
    def history_file(self) -> Path:
        return self.data_dir / "history.json"

    def _load(self):
        """Load from file."""
        if not self.file.exists():
            return
        try:
            with open(self.file, 'r') as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.file}: {e}")
            return
        if not isinstance(loaded, dict):
            logger.warning(f"Ignoring settings file {self.file}: expected an object")
            return
        self.data.update(loaded)

    def _save(self):
        """Save to file."""
        try:
            with open(self.file, 'w') as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save settings to {self.file}: {e}")
