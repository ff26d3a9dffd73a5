"""Tests for the snapshot reducer and store."""

from dataclasses import dataclass
from datetime import datetime

from netdiag.core.models import NetworkSnapshot, NetworkStatus, ProbeStatus, RouteHop
from netdiag.core.store import (
    AddHistoryEntry,
    ClearError,
    ConnectionPatch,
    DiagnosticsPatch,
    SetConnectionInfo,
    SetDiagnostics,
    SetError,
    SetLoading,
    SetOnlineStatus,
    SetStatus,
    SnapshotStore,
    reduce,
)

from conftest import dns_ok

NOW = datetime(2024, 5, 1, 12, 0, 0)


@dataclass(frozen=True)
class FutureEvent:
    payload: str = "unknown"


class TestReduce:
    """Pure transition function."""

    def test_initial_snapshot_defaults(self):
        snapshot = NetworkSnapshot()

        assert snapshot.status == NetworkStatus.UNKNOWN
        assert snapshot.download_mbps == 0
        assert snapshot.last_updated is None
        assert snapshot.is_loading is False
        assert snapshot.error is None
        assert snapshot.history == ()
        assert snapshot.diagnostics.dns_results == ()

    def test_set_status_returns_new_value(self):
        before = NetworkSnapshot()
        after = reduce(before, SetStatus(NetworkStatus.GOOD), NOW)

        assert after.status == NetworkStatus.GOOD
        assert before.status == NetworkStatus.UNKNOWN
        assert after is not before

    def test_connection_patch_merges_only_provided_fields(self):
        before = NetworkSnapshot(download_mbps=80.0, latency_ms=40.0, connection_type="wifi")
        after = reduce(before, SetConnectionInfo(ConnectionPatch(latency_ms=12.0, is_isp_issue=True)), NOW)

        assert after.latency_ms == 12.0
        assert after.is_isp_issue is True
        assert after.download_mbps == 80.0
        assert after.connection_type == "wifi"

    def test_connection_patch_can_set_false_and_zero(self):
        before = NetworkSnapshot(is_local_issue=True, packet_loss_pct=3.0)
        after = reduce(before, SetConnectionInfo(ConnectionPatch(is_local_issue=False, packet_loss_pct=0.0)), NOW)

        assert after.is_local_issue is False
        assert after.packet_loss_pct == 0.0

    def test_empty_patch_is_noop(self):
        before = NetworkSnapshot()
        assert reduce(before, SetConnectionInfo(ConnectionPatch()), NOW) is before
        assert reduce(before, SetDiagnostics(DiagnosticsPatch()), NOW) is before

    def test_diagnostics_patch_keeps_other_lists(self):
        hops = (RouteHop(1, "local-network", "192.168.1.1", 3.0, ProbeStatus.SUCCESS),)
        before = reduce(NetworkSnapshot(), SetDiagnostics(DiagnosticsPatch(route_hops=hops)), NOW)
        after = reduce(before, SetDiagnostics(DiagnosticsPatch(dns_results=(dns_ok(),))), NOW)

        assert after.diagnostics.route_hops == hops
        assert after.diagnostics.dns_results == (dns_ok(),)

    def test_add_history_entry_assigns_timestamp(self):
        event = AddHistoryEntry(100, 20, 15, 0, NetworkStatus.EXCELLENT)
        after = reduce(NetworkSnapshot(), event, NOW)

        assert len(after.history) == 1
        assert after.history[0].timestamp == NOW
        assert after.history[0].download_mbps == 100

    def test_add_history_entry_appends_in_order(self):
        first = reduce(NetworkSnapshot(), AddHistoryEntry(10, 1, 50, 0, NetworkStatus.FAIR), NOW)
        second = reduce(first, AddHistoryEntry(20, 2, 40, 0, NetworkStatus.GOOD), NOW)

        assert [e.download_mbps for e in second.history] == [10, 20]
        assert len(first.history) == 1

    def test_flags(self):
        snapshot = NetworkSnapshot()
        snapshot = reduce(snapshot, SetLoading(True), NOW)
        snapshot = reduce(snapshot, SetOnlineStatus(False), NOW)
        snapshot = reduce(snapshot, SetError("boom"), NOW)

        assert snapshot.is_loading is True
        assert snapshot.is_online is False
        assert snapshot.error == "boom"

    def test_set_error_overwrites_and_clears(self):
        snapshot = reduce(NetworkSnapshot(), SetError("first"), NOW)
        snapshot = reduce(snapshot, SetError("second"), NOW)
        assert snapshot.error == "second"

        snapshot = reduce(snapshot, SetError(None), NOW)
        assert snapshot.error is None

    def test_clear_error(self):
        snapshot = reduce(NetworkSnapshot(), SetError("boom"), NOW)
        assert reduce(snapshot, ClearError(), NOW).error is None

    def test_clear_error_is_idempotent(self):
        snapshot = NetworkSnapshot(latency_ms=20.0)
        assert reduce(snapshot, ClearError(), NOW) == snapshot

    def test_unknown_event_returns_input(self):
        snapshot = NetworkSnapshot(latency_ms=20.0)

        assert reduce(snapshot, FutureEvent(), NOW) is snapshot
        assert reduce(snapshot, {"type": "SOMETHING_NEW"}, NOW) is snapshot
        assert reduce(snapshot, None, NOW) is snapshot


class TestSnapshotStore:
    def test_dispatch_updates_snapshot(self, clock):
        store = SnapshotStore(clock=clock)
        store.dispatch(SetStatus(NetworkStatus.FAIR))

        assert store.snapshot.status == NetworkStatus.FAIR

    def test_history_uses_store_clock(self, clock):
        store = SnapshotStore(clock=clock)
        store.dispatch(AddHistoryEntry(10, 1, 50, 0, NetworkStatus.FAIR))

        assert store.snapshot.history[0].timestamp == datetime(2024, 5, 1, 12, 0, 0)

    def test_subscribers_receive_new_snapshots(self, clock):
        store = SnapshotStore(clock=clock)
        seen = []
        store.subscribe(seen.append)

        store.dispatch(SetLoading(True))
        store.dispatch(SetLoading(False))

        assert [s.is_loading for s in seen] == [True, False]

    def test_noop_events_do_not_notify(self, clock):
        store = SnapshotStore(clock=clock)
        seen = []
        store.subscribe(seen.append)

        store.dispatch(ClearError())
        store.dispatch(FutureEvent())

        assert seen == []

    def test_unsubscribe(self, clock):
        store = SnapshotStore(clock=clock)
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        store.dispatch(SetStatus(NetworkStatus.GOOD))
        assert seen == []

    def test_failing_subscriber_does_not_break_dispatch(self, clock):
        store = SnapshotStore(clock=clock)
        seen = []

        def broken(_):
            raise RuntimeError("render failed")

        store.subscribe(broken)
        store.subscribe(seen.append)
        store.dispatch(SetStatus(NetworkStatus.POOR))

        assert store.snapshot.status == NetworkStatus.POOR
        assert len(seen) == 1
