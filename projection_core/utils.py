"""
Projection Core - Utility Functions

Helper functions shared by the scoring components.
"""

from typing import Sequence
import math


def clip(x: float, lo: float, hi: float) -> float:
    """
    Clip value to range [lo, hi].

    Args:
        x: Value to clip
        lo: Lower bound
        hi: Upper bound

    Returns:
        Clipped value in [lo, hi]
    """
    return max(lo, min(hi, x))


def clip01(x: float) -> float:
    """Clip value to [0, 1]."""
    return clip(x, 0.0, 1.0)


def in_range(x: float, lo: float, hi: float) -> bool:
    """True if x is a finite number inside [lo, hi]."""
    return math.isfinite(x) and lo <= x <= hi


def population_variance(values: Sequence[float]) -> float:
    """
    Population variance (divide by N, not N-1).

    σ² = Σ (x_i - μ)² / N

    Args:
        values: Sample values (must be non-empty)

    Returns:
        Variance of the values
    """
    n = len(values)
    mean = sum(values) / n
    return sum((v - mean) * (v - mean) for v in values) / n


def safe_truncate(s: str, max_chars: int) -> str:
    """Truncate to at most max_chars characters, marking the cut with an ellipsis."""
    s = " ".join(s.split())
    if len(s) <= max_chars:
        return s
    return s[: max_chars - 1] + "…"
