"""
Saved test history, persisted as a JSON list ordered by save time.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import List

from loguru import logger

from .models import HistoryEntry


class HistoryRepository:
    """Append / list / remove-one / clear over saved HistoryEntry records.

    Entries are keyed by timestamp, which is assumed unique per saved test.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def list(self) -> List[HistoryEntry]:
        """All entries, oldest first. Malformed records are skipped."""
        entries = []
        for record in self._read():
            try:
                entries.append(HistoryEntry.from_dict(record))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed history record {record!r}: {e}")
        return entries

    def append(self, entry: HistoryEntry):
        records = self._read()
        records.append(entry.to_dict())
        self._write(records)
        logger.info(f"History entry saved: {entry.timestamp.isoformat()} ({entry.status.value})")

    def remove_one(self, timestamp: datetime) -> bool:
        """Remove the first entry saved at timestamp. Returns False if none matched."""
        records = self._read()
        key = timestamp.isoformat()
        for i, record in enumerate(records):
            if record.get('timestamp') == key:
                del records[i]
                self._write(records)
                logger.debug(f"History entry removed: {key}")
                return True
        return False

    def clear(self):
        if self.path.exists():
            self.path.unlink()
        logger.info("History cleared")

    def _read(self) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable history file {self.path}: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"History file {self.path} is not a list, ignoring")
            return []
        return data

    def _write(self, records: List[dict]):
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, 'w') as f:
            json.dump(records, f, indent=2)
        tmp.replace(self.path)
