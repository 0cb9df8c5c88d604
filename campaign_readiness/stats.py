from __future__ import annotations

import math
from typing import Sequence

from .models import Stability


def median(values: Sequence[float]) -> float | None:
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def p95(values: Sequence[float]) -> float | None:
    """Nearest-rank 95th percentile: index ceil(0.95 * n) - 1 of the sorted values."""
    if not values:
        return None
    ordered = sorted(values)
    idx = min(len(ordered) - 1, math.ceil(0.95 * len(ordered)) - 1)
    return ordered[idx]


def has_spike(values: Sequence[float], factor: float = 2.0) -> bool:
    m = median(values)
    if m is None:
        return False
    return any(v > factor * m for v in values)


def compute_stability(ttfbs: Sequence[float], ok_count: int, total: int) -> Stability:
    # Any failed probe outweighs timing uniformity.
    if total == 0:
        return "unknown"
    if ok_count < total:
        return "unstable"
    if len(ttfbs) < 2:
        return "unknown"
    return "unstable" if has_spike(ttfbs) else "stable"
