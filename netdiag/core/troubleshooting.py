"""
Troubleshooting guidance derived from the current snapshot.
"""

from dataclasses import dataclass
from typing import List

from .classifier import HIGH_LATENCY_MS, SLOW_DOWNLOAD_MBPS
from .models import NetworkSnapshot


@dataclass(frozen=True)
class TroubleshootingStep:
    id: str
    title: str
    description: str
    severity: str   # success, warning, error, pending
    action: str


def troubleshooting_steps(snapshot: NetworkSnapshot) -> List[TroubleshootingStep]:
    steps = []

    if not snapshot.is_online:
        steps.append(TroubleshootingStep(
            'check-internet', 'Check Internet Connection',
            'Verify that your device is connected to the internet',
            'pending', 'Check your WiFi or ethernet connection',
        ))

    if snapshot.latency_ms > HIGH_LATENCY_MS:
        steps.append(TroubleshootingStep(
            'high-latency', 'High Latency Detected',
            'Your connection has high latency which may affect performance',
            'warning', 'Try connecting to a closer server or contact your ISP',
        ))

    if snapshot.download_mbps < SLOW_DOWNLOAD_MBPS:
        steps.append(TroubleshootingStep(
            'slow-download', 'Slow Download Speed',
            'Your download speed is below recommended levels',
            'warning', 'Check for background downloads or contact your ISP',
        ))

    if snapshot.is_local_issue:
        steps.append(TroubleshootingStep(
            'local-issue', 'Local Network Issue',
            'Problem detected with your local network or devices',
            'error', 'Restart your router and check device connections',
        ))

    if snapshot.is_isp_issue:
        steps.append(TroubleshootingStep(
            'isp-issue', 'ISP Issue Detected',
            'Problem detected with your internet service provider',
            'error', 'Contact your ISP for assistance',
        ))

    if not steps:
        steps.append(TroubleshootingStep(
            'no-issues', 'No Issues Detected',
            'Your network appears to be functioning normally',
            'success', 'Continue using your connection as normal',
        ))

    return steps
