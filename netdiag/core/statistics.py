"""
History Statistics
Timeframe filters, averages and speed trends over saved tests
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .models import HistoryEntry


TIMEFRAMES = {
    'all': None,
    'week': timedelta(days=7),
    'month': timedelta(days=30),
}


def filter_by_timeframe(
    entries: Sequence[HistoryEntry],
    timeframe: str = 'all',
    now: Optional[datetime] = None,
) -> List[HistoryEntry]:
    """Keep entries saved within the timeframe ('all', 'week', 'month')."""
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Unknown timeframe: {timeframe!r}")

    span = TIMEFRAMES[timeframe]
    if span is None:
        return list(entries)

    cutoff = (now or datetime.now()) - span
    return [e for e in entries if e.timestamp >= cutoff]


def _speed(entry: HistoryEntry, kind: str) -> float:
    if kind == 'download':
        return entry.download_mbps
    if kind == 'upload':
        return entry.upload_mbps
    raise ValueError(f"Unknown speed kind: {kind!r}")


def average_speed(entries: Sequence[HistoryEntry], kind: str) -> float:
    if not entries:
        return 0.0
    return sum(_speed(e, kind) for e in entries) / len(entries)


def speed_trend(entries: Sequence[HistoryEntry], kind: str) -> str:
    """Compare the newer half against the older half.

    entries must be newest first. More than 10% faster is 'improving',
    more than 10% slower is 'declining', otherwise 'stable'.
    """
    if len(entries) < 2:
        return 'stable'

    split = -(-len(entries) // 2)
    recent_avg = average_speed(entries[:split], kind)
    older_avg = average_speed(entries[split:], kind)

    if recent_avg > older_avg * 1.1:
        return 'improving'
    if recent_avg < older_avg * 0.9:
        return 'declining'
    return 'stable'


def newest_first(entries: Sequence[HistoryEntry]) -> List[HistoryEntry]:
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)
