"""
Probe contract shared by the real and simulated probe sets.
"""

import asyncio
from typing import Awaitable, List, Protocol, TypeVar

from loguru import logger

from .errors import ProbeTimeout
from .models import Bandwidth, ConnectionInfo, DnsProbeResult, RouteHop


T = TypeVar("T")

# Fixed DNS fan-out: (label, resolver address)
DNS_SERVERS = (
    ("Cloudflare", "1.1.1.1"),
    ("Google",     "8.8.8.8"),
    ("OpenDNS",    "208.67.222.222"),
)

# Labels for hops that do not report a hostname
HOP_LABELS = ("local-network", "isp-gateway", "internet-backbone")

DEFAULT_PROBE_TIMEOUT = 5.0


def hop_label(hop_index: int) -> str:
    return HOP_LABELS[min(hop_index, len(HOP_LABELS)) - 1]


class ProbeSet(Protocol):
    """Independent async measurements. Any of them may raise."""

    async def check_connection(self) -> ConnectionInfo:
        ...

    async def measure_latency(self) -> float:
        ...

    async def estimate_bandwidth(self) -> Bandwidth:
        ...

    async def estimate_packet_loss(self) -> float:
        ...

    async def test_dns_performance(self) -> List[DnsProbeResult]:
        ...

    async def analyze_route(self) -> List[RouteHop]:
        ...

    async def close(self) -> None:
        """Release transport resources (sessions, sockets, subprocesses)."""
        ...


async def guard_probe(name: str, awaitable: Awaitable[T], timeout: float, fallback: T) -> T:
    """Await a probe with a time budget; return fallback on timeout or failure."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug(str(ProbeTimeout(name, timeout)) + f" → fallback {fallback!r}")
        return fallback
    except Exception as e:
        logger.warning(f"{name} probe failed ({type(e).__name__}: {e}) → fallback {fallback!r}")
        return fallback
