"""Shared fixtures and deterministic probe fakes."""

from datetime import datetime, timedelta

import pytest

from netdiag.core.models import (
    Bandwidth,
    ConnectionInfo,
    DnsProbeResult,
    HistoryEntry,
    NetworkStatus,
    ProbeStatus,
    RouteHop,
)


def dns_ok(label: str = "Cloudflare", ms: float = 20) -> DnsProbeResult:
    return DnsProbeResult(label, ms, ProbeStatus.SUCCESS)


def dns_failed(label: str = "Google", status: ProbeStatus = ProbeStatus.TIMEOUT) -> DnsProbeResult:
    return DnsProbeResult(label, 0, status)


class FakeProbeSet:
    """ProbeSet returning fixed values. Set an attribute to an exception to make that probe fail."""

    def __init__(
        self,
        online=True,
        latency=15.0,
        download=120.0,
        upload=60.0,
        packet_loss=0.0,
        dns=None,
        route=None,
    ):
        self.online = online
        self.latency = latency
        self.download = download
        self.upload = upload
        self.packet_loss = packet_loss
        self.dns = dns if dns is not None else [dns_ok("Cloudflare"), dns_ok("Google"), dns_ok("OpenDNS")]
        self.route = route if route is not None else [
            RouteHop(1, "local-network", "192.168.1.1", 2.0, ProbeStatus.SUCCESS),
            RouteHop(2, "isp-gateway", "10.0.0.1", 9.0, ProbeStatus.SUCCESS),
        ]
        self.calls = []
        self.close_calls = 0

    def _value(self, name, value):
        self.calls.append(name)
        if isinstance(value, BaseException):
            raise value
        return value

    async def check_connection(self):
        online = self._value("connection", self.online)
        return ConnectionInfo(is_online=online, connection_type="fake")

    async def measure_latency(self):
        return self._value("latency", self.latency)

    async def estimate_bandwidth(self):
        download = self._value("bandwidth", self.download)
        return Bandwidth(download_mbps=download, upload_mbps=self.upload)

    async def estimate_packet_loss(self):
        return self._value("packet_loss", self.packet_loss)

    async def test_dns_performance(self):
        return list(self._value("dns", self.dns))

    async def analyze_route(self):
        return list(self._value("route", self.route))

    async def close(self):
        self.close_calls += 1


class FixedClock:
    """Clock that advances one second per call."""

    def __init__(self, start=datetime(2024, 5, 1, 12, 0, 0)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture()
def fake_probes():
    return FakeProbeSet()


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def make_entry():
    def _make(timestamp, download=50.0, upload=10.0, status=NetworkStatus.GOOD):
        return HistoryEntry(
            timestamp=timestamp,
            download_mbps=download,
            upload_mbps=upload,
            latency_ms=30.0,
            packet_loss_pct=0.0,
            status=status,
        )
    return _make

