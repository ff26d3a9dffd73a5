"""
Health rating strategies.

Two strategies:
- "scored": additive 0-100 points over download, upload, latency and loss.
  Authoritative rating after a full test.
- "quick": latency/loss thresholds only. Used for the initial assessment
  where bandwidth is not yet trustworthy.
"""

from typing import Callable, Dict

from .models import NetworkStatus


# (threshold, points), checked top to bottom
_DOWNLOAD_BANDS = ((100, 25), (50, 20), (25, 15), (10, 10), (5, 5))
_UPLOAD_BANDS   = ((50, 25), (25, 20), (10, 15), (5, 10), (1, 5))
_LATENCY_BANDS  = ((20, 25), (50, 20), (100, 15), (200, 10), (500, 5))
_LOSS_BANDS     = ((1, 20), (5, 15), (10, 10), (20, 5))

# Lower bound inclusive
_STATUS_BANDS = (
    (90, NetworkStatus.EXCELLENT),
    (70, NetworkStatus.GOOD),
    (50, NetworkStatus.FAIR),
    (30, NetworkStatus.POOR),
)


def _at_least(value: float, bands) -> int:
    for threshold, points in bands:
        if value >= threshold:
            return points
    return 0


def _at_most(value: float, bands) -> int:
    for threshold, points in bands:
        if value <= threshold:
            return points
    return 0


def score_metrics(download: float, upload: float, latency: float, packet_loss: float) -> int:
    """Return the 0-100 health score (four bands of at most 25 points)."""
    score  = _at_least(download, _DOWNLOAD_BANDS)
    score += _at_least(upload, _UPLOAD_BANDS)
    score += _at_most(latency, _LATENCY_BANDS)
    score += 25 if packet_loss == 0 else _at_most(packet_loss, _LOSS_BANDS)
    return score


def status_for_score(score: int) -> NetworkStatus:
    for floor, status in _STATUS_BANDS:
        if score >= floor:
            return status
    return NetworkStatus.OFFLINE


def compute_status(download: float, upload: float, latency: float, packet_loss: float) -> NetworkStatus:
    """Scored strategy: monotonic in every metric."""
    return status_for_score(score_metrics(download, upload, latency, packet_loss))


def quick_status(latency: float, packet_loss: float) -> NetworkStatus:
    """Quick strategy: latency/loss heuristic for the initial assessment."""
    if latency > 100 or packet_loss > 5:
        return NetworkStatus.POOR
    if latency > 50 or packet_loss > 2:
        return NetworkStatus.FAIR
    if latency < 20 and packet_loss < 1:
        return NetworkStatus.EXCELLENT
    return NetworkStatus.GOOD


def _quick_from_metrics(download: float, upload: float, latency: float, packet_loss: float) -> NetworkStatus:
    return quick_status(latency, packet_loss)


STATUS_STRATEGIES: Dict[str, Callable[[float, float, float, float], NetworkStatus]] = {
    "scored": compute_status,
    "quick":  _quick_from_metrics,
}
