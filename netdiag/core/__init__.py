from .orchestrator import MonitoringOrchestrator
from .store import SnapshotStore, reduce
from .settings import Settings
from .history import HistoryRepository
from .probes import ProbeSet, guard_probe
from .checker import NetworkProber
from .simulated import SimulatedProbeSet
from .latency_window import LatencyWindow
from .scoring import compute_status, quick_status, STATUS_STRATEGIES
from .classifier import classify_issue, quick_classify, CLASSIFIERS
from .troubleshooting import troubleshooting_steps
from .statistics import filter_by_timeframe, average_speed, speed_trend, newest_first
from .errors import NetDiagError, ConnectivityError, ProbeError, ProbeTimeout, AggregateFailure
from .models import (
    NetworkStatus,
    ProbeStatus,
    NetworkSnapshot,
    HistoryEntry,
    DnsProbeResult,
    RouteHop,
    ClassificationResult,
    SpeedTestResult,
)

__all__ = [
    'MonitoringOrchestrator',
    'SnapshotStore',
    'reduce',
    'Settings',
    'HistoryRepository',
    'ProbeSet',
    'guard_probe',
    'NetworkProber',
    'SimulatedProbeSet',
    'LatencyWindow',
    'compute_status',
    'quick_status',
    'STATUS_STRATEGIES',
    'classify_issue',
    'quick_classify',
    'CLASSIFIERS',
    'troubleshooting_steps',
    'filter_by_timeframe',
    'average_speed',
    'speed_trend',
    'newest_first',
    'NetDiagError',
    'ConnectivityError',
    'ProbeError',
    'ProbeTimeout',
    'AggregateFailure',
    'NetworkStatus',
    'ProbeStatus',
    'NetworkSnapshot',
    'HistoryEntry',
    'DnsProbeResult',
    'RouteHop',
    'ClassificationResult',
    'SpeedTestResult',
]
