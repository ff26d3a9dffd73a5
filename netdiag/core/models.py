"""
Shared data models for the network diagnostics core.
All dataclasses are frozen so snapshots can be shared without copying.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from enum import Enum


class NetworkStatus(Enum):
    """Coarse connection health rating."""
    UNKNOWN = "unknown"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    OFFLINE = "offline"


class ProbeStatus(Enum):
    """Outcome of a single DNS or route probe."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class DnsProbeResult:
    """Response time of one named resolver."""
    server_label: str
    response_time_ms: float
    status: ProbeStatus
    address: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ProbeStatus.SUCCESS


@dataclass(frozen=True)
class RouteHop:
    """One hop on the path to the internet (1-based index)."""
    hop_index: int
    host_label: str
    address: str
    latency_ms: float
    status: ProbeStatus


@dataclass(frozen=True)
class StabilitySample:
    """Latency/loss sample recorded by the background cycle."""
    timestamp: datetime
    latency_ms: float
    packet_loss_pct: float
    status: NetworkStatus


@dataclass(frozen=True)
class Diagnostics:
    dns_results: Tuple[DnsProbeResult, ...] = ()
    route_hops: Tuple[RouteHop, ...] = ()
    stability: Tuple[StabilitySample, ...] = ()


@dataclass(frozen=True)
class ClassificationResult:
    """Local-vs-ISP verdict with a 0-100 confidence."""
    is_local_issue: bool
    is_isp_issue: bool
    confidence_pct: float = 0.0

    @property
    def healthy(self) -> bool:
        return not (self.is_local_issue or self.is_isp_issue)


@dataclass(frozen=True)
class ConnectionInfo:
    is_online: bool
    connection_type: str = "unknown"


@dataclass(frozen=True)
class Bandwidth:
    download_mbps: float
    upload_mbps: float


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable record of a saved test."""
    timestamp: datetime
    download_mbps: float
    upload_mbps: float
    latency_ms: float
    packet_loss_pct: float
    status: NetworkStatus
    is_local_issue: bool = False
    is_isp_issue: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: "NetworkSnapshot", timestamp: datetime) -> "HistoryEntry":
        return cls(
            timestamp=timestamp,
            download_mbps=snapshot.download_mbps,
            upload_mbps=snapshot.upload_mbps,
            latency_ms=snapshot.latency_ms,
            packet_loss_pct=snapshot.packet_loss_pct,
            status=snapshot.status,
            is_local_issue=snapshot.is_local_issue,
            is_isp_issue=snapshot.is_isp_issue,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'download_mbps': self.download_mbps,
            'upload_mbps': self.upload_mbps,
            'latency_ms': self.latency_ms,
            'packet_loss_pct': self.packet_loss_pct,
            'status': self.status.value,
            'is_local_issue': self.is_local_issue,
            'is_isp_issue': self.is_isp_issue,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            timestamp=datetime.fromisoformat(data['timestamp']),
            download_mbps=float(data.get('download_mbps', 0)),
            upload_mbps=float(data.get('upload_mbps', 0)),
            latency_ms=float(data.get('latency_ms', 0)),
            packet_loss_pct=float(data.get('packet_loss_pct', 0)),
            status=NetworkStatus(data.get('status', NetworkStatus.UNKNOWN.value)),
            is_local_issue=bool(data.get('is_local_issue', False)),
            is_isp_issue=bool(data.get('is_isp_issue', False)),
        )


@dataclass(frozen=True)
class NetworkSnapshot:
    """Current best-known state of the connection."""
    status: NetworkStatus = NetworkStatus.UNKNOWN
    connection_type: str = ""
    download_mbps: float = 0.0
    upload_mbps: float = 0.0
    latency_ms: float = 0.0
    packet_loss_pct: float = 0.0
    is_local_issue: bool = False
    is_isp_issue: bool = False
    confidence_pct: float = 0.0
    last_updated: Optional[datetime] = None
    is_online: bool = True
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    history: Tuple[HistoryEntry, ...] = ()
    is_loading: bool = False
    error: Optional[str] = None

    @property
    def has_bandwidth(self) -> bool:
        return self.download_mbps > 0 or self.upload_mbps > 0


@dataclass(frozen=True)
class SpeedTestResult:
    """Completed full-test record."""
    download_mbps: float
    upload_mbps: float
    latency_ms: float
    jitter_ms: float
    packet_loss_pct: float
    server: str
    timestamp: datetime
    status: NetworkStatus
    is_local_issue: bool = False
    is_isp_issue: bool = False
    confidence_pct: float = 0.0


@dataclass(frozen=True)
class ProgressUpdate:
    percent: int = 0
    label: str = ""
