"""
Local-network vs ISP issue classification.

Two classifiers:
- "full": weighted-symptom classifier used after a full test / diagnostics run.
  Every matched symptom adds a fixed weight; confidence is the share of the
  evaluated weight that points at one side.
- "quick": plain threshold checks used by the background cycle, which has no
  bandwidth probe and only a light DNS pass.

Troubleshooting guidance is keyed to the full classifier thresholds
(200 ms, 5 %, more than one DNS failure, 10/5 Mbps).
"""

from typing import Callable, Dict, Sequence

from loguru import logger

from .models import ClassificationResult, DnsProbeResult, ProbeStatus


SYMPTOM_WEIGHT = 2

HIGH_LATENCY_MS      = 200
HIGH_PACKET_LOSS_PCT = 5
MAX_DNS_FAILURES     = 1
SLOW_DOWNLOAD_MBPS   = 10
SLOW_UPLOAD_MBPS     = 5


def classify_issue(
    download: float,
    upload: float,
    latency: float,
    packet_loss: float,
    dns_results: Sequence[DnsProbeResult],
) -> ClassificationResult:
    """Full classifier. Both flags may be set at once, or neither (healthy)."""
    local_score = 0
    isp_score   = 0
    total       = 0

    # ── Local network symptoms ───────────────────────────────────────
    if latency > HIGH_LATENCY_MS:
        local_score += SYMPTOM_WEIGHT
        total       += SYMPTOM_WEIGHT
    if packet_loss > HIGH_PACKET_LOSS_PCT:
        local_score += SYMPTOM_WEIGHT
        total       += SYMPTOM_WEIGHT

    # ── ISP symptoms ─────────────────────────────────────────────────
    dns_failures = sum(1 for r in dns_results if r.status != ProbeStatus.SUCCESS)
    if dns_failures > MAX_DNS_FAILURES:
        isp_score += SYMPTOM_WEIGHT
        total     += SYMPTOM_WEIGHT
    if download < SLOW_DOWNLOAD_MBPS and upload < SLOW_UPLOAD_MBPS:
        isp_score += SYMPTOM_WEIGHT
        total     += SYMPTOM_WEIGHT

    local_confidence = (local_score / total) * 100 if total else 0.0
    isp_confidence   = (isp_score / total) * 100 if total else 0.0

    result = ClassificationResult(
        is_local_issue=local_confidence > 50,
        is_isp_issue=isp_confidence > 50,
        confidence_pct=max(local_confidence, isp_confidence),
    )
    logger.debug(
        f"classify_issue: local={local_score} isp={isp_score} total={total} "
        f"dns_failures={dns_failures} → {result}"
    )
    return result


def quick_classify(
    download: float,
    upload: float,
    latency: float,
    packet_loss: float,
    dns_results: Sequence[DnsProbeResult],
) -> ClassificationResult:
    """Quick classifier for the background cycle."""
    is_local = latency > 100 or packet_loss > 5
    is_isp = (
        download < 10
        or upload < 1
        or any(r.status in (ProbeStatus.ERROR, ProbeStatus.TIMEOUT) for r in dns_results)
    )
    return ClassificationResult(
        is_local_issue=is_local,
        is_isp_issue=is_isp,
        confidence_pct=100.0 if (is_local or is_isp) else 0.0,
    )


CLASSIFIERS: Dict[str, Callable[..., ClassificationResult]] = {
    "full":  classify_issue,
    "quick": quick_classify,
}
