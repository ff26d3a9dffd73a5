"""
Simulated probe set for hosts without network access and for demos.
"""

import asyncio
import random
from typing import List, Optional

from .models import Bandwidth, ConnectionInfo, DnsProbeResult, ProbeStatus, RouteHop
from .probes import DNS_SERVERS, hop_label


class SimulatedProbeSet:
    """ProbeSet that generates plausible measurements from a seedable RNG."""

    def __init__(self, seed: Optional[int] = None, delay: float = 0.05, hop_count: int = 3):
        # Isolated random instance so seeded runs are reproducible
        self._random = random.Random(seed)
        self.delay = delay
        self.hop_count = hop_count

        self.base_latency = 25.0
        self.latency_variance = 5.0
        self.spike_probability = 0.05
        self.spike_multiplier = 3.0
        self.loss_probability = 0.02
        self.dns_failure_probability = 0.02

        self.closed = False

    async def _pause(self):
        if self.delay:
            await asyncio.sleep(self.delay)

    def _latency(self) -> float:
        latency = self.base_latency + self._random.gauss(0, self.latency_variance)
        if self._random.random() < self.spike_probability:
            latency *= self.spike_multiplier
        return round(max(0.1, latency), 1)

    async def check_connection(self) -> ConnectionInfo:
        await self._pause()
        return ConnectionInfo(is_online=True, connection_type="simulated")

    async def measure_latency(self) -> float:
        await self._pause()
        return self._latency()

    async def estimate_bandwidth(self) -> Bandwidth:
        await self._pause()
        download = 10 + self._random.random() * 90
        return Bandwidth(
            download_mbps=round(download, 1),
            upload_mbps=round(download * 0.1, 1),
        )

    async def estimate_packet_loss(self) -> float:
        await self._pause()
        pings = 10
        lost = sum(1 for _ in range(pings) if self._random.random() < self.loss_probability)
        return round(lost / pings * 100, 1)

    async def test_dns_performance(self) -> List[DnsProbeResult]:
        await self._pause()
        results = []
        for label, address in DNS_SERVERS:
            if self._random.random() < self.dns_failure_probability:
                results.append(DnsProbeResult(label, 0, ProbeStatus.TIMEOUT, address))
            else:
                response = round(50 + self._random.random() * 100)
                results.append(DnsProbeResult(label, response, ProbeStatus.SUCCESS, address))
        return results

    async def analyze_route(self) -> List[RouteHop]:
        await self._pause()
        hops = []
        base = 5.0
        for i in range(1, self.hop_count + 1):
            latency = round(base * i + self._random.random() * 20, 1)
            hops.append(RouteHop(i, hop_label(i), "N/A", latency, ProbeStatus.SUCCESS))
        return hops

    async def close(self):
        self.closed = True
