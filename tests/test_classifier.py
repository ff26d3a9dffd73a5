"""Tests for the full and quick issue classifiers."""

import pytest

from netdiag.core.classifier import CLASSIFIERS, classify_issue, quick_classify
from netdiag.core.models import ProbeStatus

from conftest import dns_failed, dns_ok

HEALTHY_DNS = [dns_ok("Cloudflare"), dns_ok("Google"), dns_ok("OpenDNS")]


class TestClassifyIssue:
    """Weighted-symptom (full) classifier."""

    def test_healthy_connection_has_no_issue(self):
        result = classify_issue(120, 60, 15, 0, HEALTHY_DNS)

        assert result.is_local_issue is False
        assert result.is_isp_issue is False
        assert result.confidence_pct == 0
        assert result.healthy

    def test_high_latency_is_local(self):
        result = classify_issue(50, 20, 250, 0, HEALTHY_DNS)

        assert result.is_local_issue is True
        assert result.is_isp_issue is False
        assert result.confidence_pct == 100

    def test_thresholds_are_exclusive(self):
        result = classify_issue(10, 5, 200, 5, [dns_ok(), dns_failed()])

        assert result.healthy
        assert result.confidence_pct == 0

    def test_single_dns_failure_is_tolerated(self):
        dns = [dns_ok("Cloudflare"), dns_failed("Google"), dns_ok("OpenDNS")]
        assert classify_issue(120, 60, 15, 0, dns).is_isp_issue is False

    def test_two_dns_failures_point_at_isp(self):
        dns = [dns_ok("Cloudflare"), dns_failed("Google"), dns_failed("OpenDNS", ProbeStatus.ERROR)]
        result = classify_issue(120, 60, 15, 0, dns)

        assert result.is_isp_issue is True
        assert result.is_local_issue is False

    def test_slow_bandwidth_needs_both_directions(self):
        assert classify_issue(5, 10, 15, 0, HEALTHY_DNS).is_isp_issue is False
        assert classify_issue(5, 4, 15, 0, HEALTHY_DNS).is_isp_issue is True

    def test_equal_evidence_flags_neither_side(self):
        # local 2 of 4, isp 2 of 4 → 50% each, not > 50
        result = classify_issue(5, 1, 300, 0, HEALTHY_DNS)

        assert result.is_local_issue is False
        assert result.is_isp_issue is False
        assert result.confidence_pct == 50

    def test_local_outweighs_isp(self):
        # local 4 of 6, isp 2 of 6
        result = classify_issue(5, 1, 300, 10, HEALTHY_DNS)

        assert result.is_local_issue is True
        assert result.is_isp_issue is False
        assert result.confidence_pct == pytest.approx(66.666, rel=1e-3)


class TestQuickClassify:
    """Threshold (quick) classifier used by the background cycle."""

    def test_healthy(self):
        result = quick_classify(50, 5, 40, 0, HEALTHY_DNS)
        assert result.healthy
        assert result.confidence_pct == 0

    @pytest.mark.parametrize("latency,loss", [(101, 0), (10, 6)])
    def test_local_symptoms(self, latency, loss):
        assert quick_classify(50, 5, latency, loss, HEALTHY_DNS).is_local_issue is True

    @pytest.mark.parametrize("download,upload", [(9.9, 5), (50, 0.5)])
    def test_isp_bandwidth_symptoms(self, download, upload):
        assert quick_classify(download, upload, 10, 0, HEALTHY_DNS).is_isp_issue is True

    def test_any_dns_failure_is_isp(self):
        dns = [dns_ok(), dns_failed("Google", ProbeStatus.ERROR)]
        assert quick_classify(50, 5, 10, 0, dns).is_isp_issue is True

    def test_differs_from_full_classifier(self):
        # One DNS failure and 150ms latency: quick flags both, full flags neither
        dns = [dns_ok(), dns_failed(), dns_ok("OpenDNS")]

        quick = CLASSIFIERS["quick"](50, 5, 150, 0, dns)
        full = CLASSIFIERS["full"](50, 5, 150, 0, dns)

        assert (quick.is_local_issue, quick.is_isp_issue) == (True, True)
        assert (full.is_local_issue, full.is_isp_issue) == (False, False)
