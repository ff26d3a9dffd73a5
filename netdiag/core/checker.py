"""
Real network probes.

- HTTP reachability and bandwidth through a shared aiohttp session
- Latency and packet loss from TCP connect timing (no raw sockets needed)
- DNS response time per resolver with dnspython's async resolver
- Route hops from the system traceroute / tracert command
"""

import asyncio
import os
import platform
import re
import time
from typing import List, Optional, Sequence, Tuple

import aiohttp
import dns.asyncresolver
import dns.exception
from loguru import logger

from .errors import ProbeError
from .models import Bandwidth, ConnectionInfo, DnsProbeResult, ProbeStatus, RouteHop
from .probes import DEFAULT_PROBE_TIMEOUT, DNS_SERVERS, hop_label


DEFAULT_LATENCY_TARGETS = (("1.1.1.1", 53), ("8.8.8.8", 53), ("9.9.9.9", 53))

_HOP_LINE = re.compile(r"^\s*(\d+)\s+(.*)$")
_HOP_ADDRESS = re.compile(r"\b(\d{1,3}(?:\.\d{1,3}){3})\b|\b([0-9a-fA-F]{1,4}(?::[0-9a-fA-F]{0,4}){2,7})\b")
_HOP_LATENCY = re.compile(r"(<)?\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)


def parse_traceroute(output: str, hop_count: int) -> List[RouteHop]:
    """Parse traceroute (Linux/macOS, -n) or tracert (Windows, -d) output.

    Always returns exactly hop_count hops; hops missing from the output or
    answered with "*" are reported as TIMEOUT. "<1 ms" is read as 0.5 ms.
    """
    parsed = {}
    for line in (output or "").splitlines():
        match = _HOP_LINE.match(line)
        if not match:
            continue
        index = int(match.group(1))
        if index < 1 or index > hop_count or index in parsed:
            continue

        rest = match.group(2)
        address_match = _HOP_ADDRESS.search(rest)
        latency_match = _HOP_LATENCY.search(rest)
        if address_match is None or latency_match is None:
            continue

        value = float(latency_match.group(2))
        latency = value / 2.0 if latency_match.group(1) else value
        parsed[index] = RouteHop(
            hop_index=index,
            host_label=hop_label(index),
            address=address_match.group(1) or address_match.group(2),
            latency_ms=latency,
            status=ProbeStatus.SUCCESS,
        )

    return [
        parsed.get(i) or RouteHop(i, hop_label(i), "*", 0.0, ProbeStatus.TIMEOUT)
        for i in range(1, hop_count + 1)
    ]


def _get_env_proxy() -> Optional[str]:
    """Read proxy from standard environment variables."""
    for var in ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy"):
        val = os.environ.get(var, "").strip()
        if val:
            return val
    return None


class NetworkProber:
    """ProbeSet backed by real network traffic."""

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        connection_url: str = "https://httpbin.org/status/200",
        download_url: str = "https://speed.cloudflare.com/__down",
        upload_url: str = "https://speed.cloudflare.com/__up",
        bandwidth_bytes: int = 5_000_000,
        latency_targets: Sequence[Tuple[str, int]] = DEFAULT_LATENCY_TARGETS,
        packet_loss_pings: int = 10,
        dns_servers: Sequence[Tuple[str, str]] = DNS_SERVERS,
        dns_query_name: str = "example.com",
        route_target: str = "8.8.8.8",
        hop_count: int = 3,
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if hop_count <= 0:
            raise ValueError("hop_count must be positive")
        if packet_loss_pings <= 0:
            raise ValueError("packet_loss_pings must be positive")

        self.timeout           = timeout
        self.connection_url    = connection_url
        self.download_url      = download_url
        self.upload_url        = upload_url
        self.bandwidth_bytes   = bandwidth_bytes
        self.latency_targets   = tuple(latency_targets)
        self.packet_loss_pings = packet_loss_pings
        self.dns_servers       = tuple(dns_servers)
        self.dns_query_name    = dns_query_name
        self.route_target      = route_target
        self.hop_count         = hop_count
        self.system            = platform.system()

        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()
        self._route_process: Optional[asyncio.subprocess.Process] = None

    # ──────────────────────────────────────────────────────────────────
    # Session management
    # ──────────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(limit=4, ttl_dns_cache=60, force_close=True)
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(
                        total=None,
                        connect=self.timeout / 2,
                        sock_read=self.timeout,
                    ),
                    connector=connector,
                    trust_env=True,
                    headers={"User-Agent": "netdiag/1.0"},
                )
            return self._session

    async def close(self):
        """Close the HTTP session and kill any running traceroute."""
        process = self._route_process
        if process is not None and process.returncode is None:
            process.kill()
            await process.wait()
        self._route_process = None

        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                # let the connector drop its transports
                await asyncio.sleep(0.1)
            self._session = None

    async def __aenter__(self):
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ──────────────────────────────────────────────────────────────────
    # Connection
    # ──────────────────────────────────────────────────────────────────

    async def check_connection(self) -> ConnectionInfo:
        """HEAD a reliable endpoint; fall back to a direct TCP connect."""
        connection_type = "proxy" if _get_env_proxy() else "direct"
        try:
            session = await self._get_session()
            async with session.head(
                self.connection_url,
                allow_redirects=True,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if 200 <= response.status < 400:
                    return ConnectionInfo(is_online=True, connection_type=connection_type)
                logger.debug(f"Connection check got HTTP {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Connection check HTTP failed: {type(e).__name__}")

        host, port = self.latency_targets[0]
        online = await self._tcp_connect_ms(host, port, timeout=2.0) is not None
        return ConnectionInfo(is_online=online, connection_type=connection_type)

    async def _tcp_connect_ms(self, host: str, port: int, timeout: float) -> Optional[float]:
        """Time a TCP handshake; None when it fails or times out."""
        start = time.monotonic()
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout
            )
        except (asyncio.TimeoutError, OSError):
            return None
        elapsed = (time.monotonic() - start) * 1000
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return elapsed

    # ──────────────────────────────────────────────────────────────────
    # Latency / loss
    # ──────────────────────────────────────────────────────────────────

    async def measure_latency(self) -> float:
        """Average TCP connect time over all latency targets."""
        results = await asyncio.gather(*(
            self._tcp_connect_ms(host, port, timeout=self.timeout)
            for host, port in self.latency_targets
        ))
        samples = [r for r in results if r is not None]
        if not samples:
            raise ProbeError("latency", "no target reachable")
        latency = sum(samples) / len(samples)
        logger.debug(f"Latency: {latency:.1f}ms over {len(samples)}/{len(results)} targets")
        return round(latency, 1)

    async def estimate_packet_loss(self) -> float:
        """Share of failed connects over packet_loss_pings attempts, in percent."""
        per_ping_timeout = min(self.timeout, 2.0)
        failures = 0
        for i in range(self.packet_loss_pings):
            host, port = self.latency_targets[i % len(self.latency_targets)]
            if await self._tcp_connect_ms(host, port, timeout=per_ping_timeout) is None:
                failures += 1
            await asyncio.sleep(0.1)
        loss = failures / self.packet_loss_pings * 100
        return round(loss, 1)

    # ──────────────────────────────────────────────────────────────────
    # Bandwidth
    # ──────────────────────────────────────────────────────────────────

    async def estimate_bandwidth(self) -> Bandwidth:
        session = await self._get_session()
        download = await self._measure_download(session)
        upload   = await self._measure_upload(session)
        logger.debug(f"Bandwidth: down={download}Mbps up={upload}Mbps")
        return Bandwidth(download_mbps=download, upload_mbps=upload)

    async def _measure_download(self, session: aiohttp.ClientSession) -> float:
        start = time.monotonic()
        received = 0
        async with session.get(self.download_url, params={"bytes": str(self.bandwidth_bytes)}) as response:
            if response.status >= 400:
                raise ProbeError("download", f"HTTP {response.status}")
            async for chunk in response.content.iter_chunked(64 * 1024):
                received += len(chunk)
        return _mbps(received, time.monotonic() - start)

    async def _measure_upload(self, session: aiohttp.ClientSession) -> float:
        payload = b"0" * self.bandwidth_bytes
        start = time.monotonic()
        async with session.post(self.upload_url, data=payload) as response:
            if response.status >= 400:
                raise ProbeError("upload", f"HTTP {response.status}")
            await response.read()
        return _mbps(len(payload), time.monotonic() - start)

    # ──────────────────────────────────────────────────────────────────
    # DNS
    # ──────────────────────────────────────────────────────────────────

    async def test_dns_performance(self) -> List[DnsProbeResult]:
        """Query every resolver concurrently; failures become status entries."""
        return list(await asyncio.gather(*(
            self._query_resolver(label, address) for label, address in self.dns_servers
        )))

    async def _query_resolver(self, label: str, address: str) -> DnsProbeResult:
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = [address]
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout

        start = time.monotonic()
        try:
            await resolver.resolve(self.dns_query_name, "A")
            status = ProbeStatus.SUCCESS
        except dns.exception.Timeout:
            status = ProbeStatus.TIMEOUT
        except dns.exception.DNSException as e:
            logger.debug(f"DNS {label} ({address}) error: {type(e).__name__}")
            status = ProbeStatus.ERROR
        elapsed = round((time.monotonic() - start) * 1000)

        return DnsProbeResult(
            server_label=label,
            response_time_ms=elapsed if status == ProbeStatus.SUCCESS else 0,
            status=status,
            address=address,
        )

    # ──────────────────────────────────────────────────────────────────
    # Route
    # ──────────────────────────────────────────────────────────────────

    def _build_route_command(self) -> List[str]:
        if self.system == "Windows":
            return ["tracert", "-d", "-h", str(self.hop_count), "-w", "1000", self.route_target]
        return ["traceroute", "-n", "-q", "1", "-w", "1", "-m", str(self.hop_count), self.route_target]

    async def analyze_route(self) -> List[RouteHop]:
        """Run traceroute for hop_count hops; unreachable hops are TIMEOUT."""
        cmd = self._build_route_command()
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            logger.warning(f"Route command unavailable ({cmd[0]}): {e}")
            return [
                RouteHop(i, hop_label(i), "*", 0.0, ProbeStatus.ERROR)
                for i in range(1, self.hop_count + 1)
            ]

        self._route_process = process
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug(f"Route analysis timed out after {self.timeout}s")
            process.kill()
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        finally:
            self._route_process = None

        return parse_traceroute(stdout.decode(errors="replace"), self.hop_count)


def _mbps(byte_count: int, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return round(byte_count * 8 / seconds / 1_000_000, 1)
