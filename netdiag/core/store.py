"""
Snapshot store: one NetworkSnapshot per session, changed only through events.

reduce() is a pure transition function. SnapshotStore owns the current value,
applies events to it and notifies subscribers of every new snapshot.
"""

from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from loguru import logger

from .models import (
    Diagnostics,
    DnsProbeResult,
    HistoryEntry,
    NetworkSnapshot,
    NetworkStatus,
    RouteHop,
    StabilitySample,
)


# ──────────────────────────────────────────────────────────────────────
# Patches
# ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConnectionPatch:
    """Field-level patch for connection metrics. None means "leave as is"."""
    status: Optional[NetworkStatus] = None
    connection_type: Optional[str] = None
    download_mbps: Optional[float] = None
    upload_mbps: Optional[float] = None
    latency_ms: Optional[float] = None
    packet_loss_pct: Optional[float] = None
    is_local_issue: Optional[bool] = None
    is_isp_issue: Optional[bool] = None
    confidence_pct: Optional[float] = None
    last_updated: Optional[datetime] = None
    is_online: Optional[bool] = None


@dataclass(frozen=True)
class DiagnosticsPatch:
    dns_results: Optional[Tuple[DnsProbeResult, ...]] = None
    route_hops: Optional[Tuple[RouteHop, ...]] = None
    stability: Optional[Tuple[StabilitySample, ...]] = None


def _provided(patch) -> dict:
    return {
        f.name: getattr(patch, f.name)
        for f in fields(patch)
        if getattr(patch, f.name) is not None
    }


# ──────────────────────────────────────────────────────────────────────
# Events
# ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SetStatus:
    status: NetworkStatus


@dataclass(frozen=True)
class SetConnectionInfo:
    patch: ConnectionPatch


@dataclass(frozen=True)
class SetDiagnostics:
    patch: DiagnosticsPatch


@dataclass(frozen=True)
class AddHistoryEntry:
    """Append to the session history; the timestamp is assigned by the store."""
    download_mbps: float
    upload_mbps: float
    latency_ms: float
    packet_loss_pct: float
    status: NetworkStatus
    is_local_issue: bool = False
    is_isp_issue: bool = False


@dataclass(frozen=True)
class SetLoading:
    value: bool


@dataclass(frozen=True)
class SetError:
    message: Optional[str]


@dataclass(frozen=True)
class SetOnlineStatus:
    value: bool


@dataclass(frozen=True)
class ClearError:
    pass


# ──────────────────────────────────────────────────────────────────────
# Reducer
# ──────────────────────────────────────────────────────────────────────

def reduce(snapshot: NetworkSnapshot, event: object, now: Optional[datetime] = None) -> NetworkSnapshot:
    """Return the snapshot that results from applying event.

    Unknown events return the input unchanged so new event kinds can be
    introduced without breaking older stores.
    """
    if isinstance(event, SetStatus):
        return replace(snapshot, status=event.status)

    if isinstance(event, SetConnectionInfo):
        changes = _provided(event.patch)
        return replace(snapshot, **changes) if changes else snapshot

    if isinstance(event, SetDiagnostics):
        changes = _provided(event.patch)
        if not changes:
            return snapshot
        return replace(snapshot, diagnostics=replace(snapshot.diagnostics, **changes))

    if isinstance(event, AddHistoryEntry):
        entry = HistoryEntry(
            timestamp=now or datetime.now(),
            download_mbps=event.download_mbps,
            upload_mbps=event.upload_mbps,
            latency_ms=event.latency_ms,
            packet_loss_pct=event.packet_loss_pct,
            status=event.status,
            is_local_issue=event.is_local_issue,
            is_isp_issue=event.is_isp_issue,
        )
        return replace(snapshot, history=snapshot.history + (entry,))

    if isinstance(event, SetLoading):
        return replace(snapshot, is_loading=event.value)

    if isinstance(event, SetError):
        return replace(snapshot, error=event.message)

    if isinstance(event, SetOnlineStatus):
        return replace(snapshot, is_online=event.value)

    if isinstance(event, ClearError):
        if snapshot.error is None:
            return snapshot
        return replace(snapshot, error=None)

    return snapshot


# ──────────────────────────────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────────────────────────────

Subscriber = Callable[[NetworkSnapshot], None]


class SnapshotStore:
    """Single owner of the session snapshot."""

    def __init__(
        self,
        initial: Optional[NetworkSnapshot] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._snapshot = initial if initial is not None else NetworkSnapshot()
        self._clock = clock
        self._subscribers: List[Subscriber] = []

    @property
    def snapshot(self) -> NetworkSnapshot:
        return self._snapshot

    def dispatch(self, event: object) -> NetworkSnapshot:
        new = reduce(self._snapshot, event, now=self._clock())
        if new is self._snapshot:
            return new

        self._snapshot = new
        for callback in list(self._subscribers):
            try:
                callback(new)
            except Exception as e:
                logger.error(f"Snapshot subscriber {callback!r} failed: {e}")
        return new

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback for snapshot changes; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
