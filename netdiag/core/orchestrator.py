"""
Monitoring Orchestrator - drives the probe set and feeds the snapshot store.

Two operating modes:
- One-shot full test: connection → latency → bandwidth → packet loss →
  analysis, with progress reported to listeners. Loading/running flags are
  released in a finally block, so a failing phase can never leave them set.
- Background cycle: one light pass (connection, latency, DNS) immediately,
  then one per interval until stopped. A failing pass is logged and the
  schedule keeps going at the same cadence.

Every probe call is guarded: timeouts and probe failures resolve to a
fallback value instead of aborting the sequence.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, TypeVar

from loguru import logger

from .classifier import classify_issue, quick_classify
from .errors import AggregateFailure, ConnectivityError
from .history import HistoryRepository
from .latency_window import LatencyWindow
from .models import (
    Bandwidth,
    ConnectionInfo,
    DnsProbeResult,
    HistoryEntry,
    NetworkStatus,
    ProbeStatus,
    ProgressUpdate,
    RouteHop,
    SpeedTestResult,
    StabilitySample,
)
from .probes import DEFAULT_PROBE_TIMEOUT, DNS_SERVERS, ProbeSet, guard_probe, hop_label
from .scoring import compute_status, quick_status
from .settings import Settings
from .store import (
    AddHistoryEntry,
    ConnectionPatch,
    DiagnosticsPatch,
    SetConnectionInfo,
    SetDiagnostics,
    SetError,
    SetLoading,
    SetOnlineStatus,
    SetStatus,
    SnapshotStore,
)


T = TypeVar("T")

ProgressListener = Callable[[ProgressUpdate], None]

# Time budget per probe, in multiples of probe_timeout (+1s slack)
PROBE_BUDGETS = {
    "connection":  2,
    "latency":     1,
    "dns":         1,
    "route":       1,
    "bandwidth":   6,
    "packet_loss": 6,
}

OFFLINE = ConnectionInfo(is_online=False, connection_type="unknown")
NO_BANDWIDTH = Bandwidth(download_mbps=0.0, upload_mbps=0.0)


class MonitoringOrchestrator:
    """Runs full tests, diagnostics and the background cycle for one store."""

    def __init__(
        self,
        probes: ProbeSet,
        store: Optional[SnapshotStore] = None,
        interval: float = 30.0,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        stability_samples: int = 20,
        schedule: Callable[[Awaitable[None]], "asyncio.Future"] = asyncio.ensure_future,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.probes            = probes
        self.store             = store if store is not None else SnapshotStore(clock=clock)
        self.interval          = interval
        self.probe_timeout     = probe_timeout
        self.stability_samples = stability_samples
        self.latency_window    = LatencyWindow(maxlen=stability_samples)

        self._schedule = schedule
        self._clock    = clock

        self._cycle_task: Optional[asyncio.Future] = None
        self._progress_listeners: List[ProgressListener] = []

        self.is_running_test = False
        self.progress        = ProgressUpdate()

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[SnapshotStore] = None) -> "MonitoringOrchestrator":
        """Build the probe set selected by settings and wrap it."""
        timeout = float(settings.get('probe_timeout'))
        if settings.get('probe_mode') == 'simulated':
            from .simulated import SimulatedProbeSet
            probes = SimulatedProbeSet(hop_count=settings.get('hop_count'))
            logger.info("Using simulated probes")
        else:
            from .checker import NetworkProber
            probes = NetworkProber(
                timeout=timeout,
                connection_url=settings.get('connection_url'),
                download_url=settings.get('download_url'),
                upload_url=settings.get('upload_url'),
                bandwidth_bytes=settings.get('bandwidth_bytes'),
                packet_loss_pings=settings.get('packet_loss_pings'),
                dns_query_name=settings.get('dns_query_name'),
                route_target=settings.get('route_target'),
                hop_count=settings.get('hop_count'),
            )
        return cls(
            probes,
            store=store,
            interval=float(settings.get('check_interval')),
            probe_timeout=timeout,
            stability_samples=settings.get('stability_samples'),
        )

    # ──────────────────────────────────────────────────────────────────
    # Probe guarding
    # ──────────────────────────────────────────────────────────────────

    @property
    def latency_fallback_ms(self) -> float:
        """Latency reported when no target answered within the budget."""
        return self.probe_timeout * 1000

    def _dns_fallback(self) -> List[DnsProbeResult]:
        return [DnsProbeResult(label, 0, ProbeStatus.ERROR, address) for label, address in DNS_SERVERS]

    def _route_fallback(self) -> List[RouteHop]:
        return [RouteHop(1, hop_label(1), "*", 0.0, ProbeStatus.ERROR)]

    async def _probe(self, name: str, awaitable: Awaitable[T], fallback: T) -> T:
        budget = self.probe_timeout * PROBE_BUDGETS.get(name, 1) + 1.0
        return await guard_probe(name, awaitable, budget, fallback)

    async def _measure_latency(self) -> float:
        """Guarded latency probe. Only real measurements enter the jitter window."""
        latency = await self._probe("latency", self.probes.measure_latency(), None)
        if latency is None:
            return self.latency_fallback_ms
        self.latency_window.add(latency)
        return latency

    # ──────────────────────────────────────────────────────────────────
    # Progress
    # ──────────────────────────────────────────────────────────────────

    def add_progress_listener(self, callback: ProgressListener) -> Callable[[], None]:
        self._progress_listeners.append(callback)

        def remove():
            if callback in self._progress_listeners:
                self._progress_listeners.remove(callback)

        return remove

    def _report(self, percent: int, label: str):
        self.progress = ProgressUpdate(percent=percent, label=label)
        for callback in list(self._progress_listeners):
            try:
                callback(self.progress)
            except Exception as e:
                logger.error(f"Progress listener {callback!r} failed: {e}")

    # ──────────────────────────────────────────────────────────────────
    # Full test
    # ──────────────────────────────────────────────────────────────────

    async def run_full_test(self) -> Optional[SpeedTestResult]:
        """Run the multi-phase test. Returns None when it fails."""
        self.is_running_test = True
        self.store.dispatch(SetLoading(True))
        self._report(0, "Initializing...")

        try:
            # ── 1. Connectivity ─────────────────────────────────────────
            self._report(10, "Checking connection...")
            connection = await self._probe("connection", self.probes.check_connection(), OFFLINE)
            if not connection.is_online:
                self.store.dispatch(SetOnlineStatus(False))
                raise ConnectivityError()

            # ── 2. Latency ──────────────────────────────────────────────
            self._report(20, "Measuring latency...")
            latency = await self._measure_latency()

            # ── 3. Bandwidth ────────────────────────────────────────────
            self._report(40, "Estimating bandwidth...")
            bandwidth = await self._probe("bandwidth", self.probes.estimate_bandwidth(), NO_BANDWIDTH)

            # ── 4. Packet loss ──────────────────────────────────────────
            self._report(60, "Measuring packet loss...")
            packet_loss = await self._probe("packet_loss", self.probes.estimate_packet_loss(), 0.0)

            # ── 5. Analysis ─────────────────────────────────────────────
            self._report(80, "Analyzing results...")
            dns_results = self.store.snapshot.diagnostics.dns_results
            status  = compute_status(bandwidth.download_mbps, bandwidth.upload_mbps, latency, packet_loss)
            verdict = classify_issue(
                bandwidth.download_mbps, bandwidth.upload_mbps, latency, packet_loss, dns_results
            )
            now = self._clock()

            result = SpeedTestResult(
                download_mbps=bandwidth.download_mbps,
                upload_mbps=bandwidth.upload_mbps,
                latency_ms=latency,
                jitter_ms=self.latency_window.get_jitter(),
                packet_loss_pct=packet_loss,
                server=connection.connection_type,
                timestamp=now,
                status=status,
                is_local_issue=verdict.is_local_issue,
                is_isp_issue=verdict.is_isp_issue,
                confidence_pct=verdict.confidence_pct,
            )

            self.store.dispatch(SetConnectionInfo(ConnectionPatch(
                is_online=True,
                connection_type=connection.connection_type,
                download_mbps=bandwidth.download_mbps,
                upload_mbps=bandwidth.upload_mbps,
                latency_ms=latency,
                packet_loss_pct=packet_loss,
                is_local_issue=verdict.is_local_issue,
                is_isp_issue=verdict.is_isp_issue,
                confidence_pct=verdict.confidence_pct,
                last_updated=now,
            )))
            self.store.dispatch(SetStatus(status))
            self.store.dispatch(AddHistoryEntry(
                download_mbps=bandwidth.download_mbps,
                upload_mbps=bandwidth.upload_mbps,
                latency_ms=latency,
                packet_loss_pct=packet_loss,
                status=status,
                is_local_issue=verdict.is_local_issue,
                is_isp_issue=verdict.is_isp_issue,
            ))

            self._report(100, "Test completed")
            logger.info(
                f"Full test: {status.value} | down={bandwidth.download_mbps}Mbps "
                f"up={bandwidth.upload_mbps}Mbps latency={latency}ms loss={packet_loss}%"
            )
            return result

        except ConnectivityError as e:
            logger.warning(f"Full test aborted: {e}")
            self.store.dispatch(SetError(str(e)))
            return None
        except Exception as e:
            failure = AggregateFailure(self.progress.label or "Full test", e)
            logger.opt(exception=e).error(str(failure))
            self.store.dispatch(SetError("Speed test failed"))
            return None
        finally:
            self.is_running_test = False
            self._report(0, "")
            self.store.dispatch(SetLoading(False))

    # ──────────────────────────────────────────────────────────────────
    # Initial assessment
    # ──────────────────────────────────────────────────────────────────

    async def initialize_status(self):
        """First look at the connection, rated with the quick strategy."""
        self.store.dispatch(SetLoading(True))
        try:
            connection = await self._probe("connection", self.probes.check_connection(), OFFLINE)
            if not connection.is_online:
                self.store.dispatch(SetConnectionInfo(ConnectionPatch(
                    is_online=False,
                    connection_type=connection.connection_type,
                    last_updated=self._clock(),
                )))
                self.store.dispatch(SetStatus(NetworkStatus.OFFLINE))
                logger.info("Initial assessment: offline")
                return

            latency     = await self._measure_latency()
            packet_loss = await self._probe("packet_loss", self.probes.estimate_packet_loss(), 0.0)
            bandwidth   = await self._probe("bandwidth", self.probes.estimate_bandwidth(), NO_BANDWIDTH)

            self.store.dispatch(SetConnectionInfo(ConnectionPatch(
                is_online=True,
                connection_type=connection.connection_type,
                download_mbps=bandwidth.download_mbps,
                upload_mbps=bandwidth.upload_mbps,
                latency_ms=latency,
                packet_loss_pct=packet_loss,
                last_updated=self._clock(),
            )))
            status = quick_status(latency, packet_loss)
            self.store.dispatch(SetStatus(status))
            logger.info(f"Initial assessment: {status.value} (latency={latency}ms loss={packet_loss}%)")
        except Exception as e:
            logger.opt(exception=e).error(str(AggregateFailure("Initial assessment", e)))
            self.store.dispatch(SetError("Failed to initialize network status"))
        finally:
            self.store.dispatch(SetLoading(False))

    # ──────────────────────────────────────────────────────────────────
    # Diagnostics
    # ──────────────────────────────────────────────────────────────────

    async def run_diagnostics(self):
        """DNS and route fan-out in parallel, then full classification."""
        self.store.dispatch(SetLoading(True))
        try:
            dns_results, route_hops = await asyncio.gather(
                self._probe("dns", self.probes.test_dns_performance(), self._dns_fallback()),
                self._probe("route", self.probes.analyze_route(), self._route_fallback()),
            )

            snapshot = self.store.snapshot
            verdict = classify_issue(
                snapshot.download_mbps,
                snapshot.upload_mbps,
                snapshot.latency_ms,
                snapshot.packet_loss_pct,
                dns_results,
            )

            self.store.dispatch(SetDiagnostics(DiagnosticsPatch(
                dns_results=tuple(dns_results),
                route_hops=tuple(route_hops),
            )))
            self.store.dispatch(SetConnectionInfo(ConnectionPatch(
                is_local_issue=verdict.is_local_issue,
                is_isp_issue=verdict.is_isp_issue,
                confidence_pct=verdict.confidence_pct,
            )))
            logger.info(
                f"Diagnostics: local={verdict.is_local_issue} isp={verdict.is_isp_issue} "
                f"confidence={verdict.confidence_pct:.0f}%"
            )
            return verdict
        except Exception as e:
            logger.opt(exception=e).error(str(AggregateFailure("Diagnostics", e)))
            self.store.dispatch(SetError("Diagnostics failed"))
            return None
        finally:
            self.store.dispatch(SetLoading(False))

    async def run_dns_test(self) -> List[DnsProbeResult]:
        self.store.dispatch(SetLoading(True))
        try:
            results = await self._probe("dns", self.probes.test_dns_performance(), self._dns_fallback())
            self.store.dispatch(SetDiagnostics(DiagnosticsPatch(dns_results=tuple(results))))
            return list(results)
        except Exception as e:
            logger.opt(exception=e).error(str(AggregateFailure("DNS test", e)))
            self.store.dispatch(SetError("DNS test failed"))
            return []
        finally:
            self.store.dispatch(SetLoading(False))

    async def run_route_analysis(self) -> List[RouteHop]:
        self.store.dispatch(SetLoading(True))
        try:
            hops = await self._probe("route", self.probes.analyze_route(), self._route_fallback())
            self.store.dispatch(SetDiagnostics(DiagnosticsPatch(route_hops=tuple(hops))))
            return list(hops)
        except Exception as e:
            logger.opt(exception=e).error(str(AggregateFailure("Route analysis", e)))
            self.store.dispatch(SetError("Route analysis failed"))
            return []
        finally:
            self.store.dispatch(SetLoading(False))

    # ──────────────────────────────────────────────────────────────────
    # Background cycle
    # ──────────────────────────────────────────────────────────────────

    @property
    def is_monitoring(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    def start_monitoring(self):
        """Start the background cycle. No-op while one is already active."""
        if self.is_monitoring:
            logger.debug("Monitoring already active, start ignored")
            return
        self._cycle_task = self._schedule(self._monitor_loop())
        logger.info(f"Monitoring started: interval={self.interval:.0f}s")

    async def stop_monitoring(self):
        """Cancel the cycle (if any) and release probe resources. Idempotent."""
        task, self._cycle_task = self._cycle_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Monitoring stopped")

        try:
            await self.probes.close()
        except Exception as e:
            logger.error(f"Failed to release probe resources: {e}")

    async def _monitor_loop(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            await self._run_pass_safe()
            next_tick += self.interval
            now = loop.time()
            if next_tick < now:
                # pass overran the interval; skip the missed ticks
                next_tick = now
            await asyncio.sleep(next_tick - now)

    async def _run_pass_safe(self):
        try:
            await self.run_monitoring_pass()
        except Exception as e:
            logger.opt(exception=e).error(f"Monitoring pass failed: {e}")

    async def run_monitoring_pass(self):
        """One light refresh: connection, latency and DNS."""
        connection, latency, dns_results = await asyncio.gather(
            self._probe("connection", self.probes.check_connection(), OFFLINE),
            self._measure_latency(),
            self._probe("dns", self.probes.test_dns_performance(), self._dns_fallback()),
        )
        now = self._clock()
        snapshot = self.store.snapshot

        patch = ConnectionPatch(
            is_online=connection.is_online,
            connection_type=connection.connection_type,
            latency_ms=latency,
            last_updated=now,
        )
        # Quick classification needs a bandwidth figure from a previous test
        if snapshot.has_bandwidth:
            verdict = quick_classify(
                snapshot.download_mbps,
                snapshot.upload_mbps,
                latency,
                snapshot.packet_loss_pct,
                dns_results,
            )
            patch = replace(
                patch,
                is_local_issue=verdict.is_local_issue,
                is_isp_issue=verdict.is_isp_issue,
                confidence_pct=verdict.confidence_pct,
            )
        self.store.dispatch(SetConnectionInfo(patch))

        sample = StabilitySample(
            timestamp=now,
            latency_ms=latency,
            packet_loss_pct=snapshot.packet_loss_pct,
            status=quick_status(latency, snapshot.packet_loss_pct) if connection.is_online else NetworkStatus.OFFLINE,
        )
        stability = (snapshot.diagnostics.stability + (sample,))[-self.stability_samples:]
        self.store.dispatch(SetDiagnostics(DiagnosticsPatch(
            dns_results=tuple(dns_results),
            stability=stability,
        )))
        logger.debug(
            f"Monitoring pass: online={connection.is_online} latency={latency}ms "
            f"dns_ok={sum(1 for r in dns_results if r.succeeded)}/{len(dns_results)}"
        )

    # ──────────────────────────────────────────────────────────────────
    # History
    # ──────────────────────────────────────────────────────────────────

    def save_current_result(self, repository: HistoryRepository) -> HistoryEntry:
        """Persist the current snapshot as a history entry (explicit user save)."""
        entry = HistoryEntry.from_snapshot(self.store.snapshot, self._clock())
        repository.append(entry)
        return entry

    # ──────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────

    async def aclose(self):
        await self.stop_monitoring()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
