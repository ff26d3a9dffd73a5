"""Tests for troubleshooting guidance."""

from netdiag.core.models import NetworkSnapshot
from netdiag.core.troubleshooting import troubleshooting_steps


def ids(snapshot):
    return [step.id for step in troubleshooting_steps(snapshot)]


class TestTroubleshootingSteps:
    def test_healthy_snapshot(self):
        snapshot = NetworkSnapshot(download_mbps=100, upload_mbps=20, latency_ms=20)

        steps = troubleshooting_steps(snapshot)

        assert [s.id for s in steps] == ['no-issues']
        assert steps[0].severity == 'success'

    def test_offline(self):
        snapshot = NetworkSnapshot(is_online=False, download_mbps=100)
        assert ids(snapshot) == ['check-internet']

    def test_degraded_metrics(self):
        snapshot = NetworkSnapshot(download_mbps=5, latency_ms=250)
        assert ids(snapshot) == ['high-latency', 'slow-download']

    def test_classification_flags(self):
        snapshot = NetworkSnapshot(download_mbps=100, is_local_issue=True, is_isp_issue=True)
        steps = troubleshooting_steps(snapshot)

        assert [s.id for s in steps] == ['local-issue', 'isp-issue']
        assert {s.severity for s in steps} == {'error'}

    def test_thresholds_are_exclusive(self):
        snapshot = NetworkSnapshot(download_mbps=10, latency_ms=200)
        assert ids(snapshot) == ['no-issues']
