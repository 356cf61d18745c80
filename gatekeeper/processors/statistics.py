"""
Statistics Kernels

Numerically safe moments, timing entropy and path curvature used by the
feature extractor. Every function accepts short or empty input and never
returns NaN: non-finite values are dropped before computing.
"""

import math
from typing import Iterable, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

# Histogram bins for interval entropy
ENTROPY_BINS = 20

# Timestamps needed before entropy is meaningful
MIN_ENTROPY_SAMPLES = 5
MIN_MICRO_TIMING_SAMPLES = 10

# Neutral value returned when there is too little data
NEUTRAL_ENTROPY = 0.5

# Curvature below this is considered a straight segment
LINEAR_CURVATURE = 0.001
LINEAR_MIN_POINTS = 10
LINEAR_WINDOW = 50
LINEAR_RATIO = 0.8


def finite(values: Iterable[float]) -> NDArray[np.float64]:
    """Array of the finite values in ``values``."""
    arr = np.asarray(list(values), dtype=np.float64)
    if arr.size == 0:
        return arr
    return arr[np.isfinite(arr)]


def mean(values: Iterable[float]) -> float:
    arr = finite(values)
    if arr.size == 0:
        return 0.0
    return float(np.mean(arr))


def std(values: Iterable[float]) -> float:
    """Sample standard deviation (n-1); 0 for fewer than two values."""
    arr = finite(values)
    if arr.size < 2:
        return 0.0
    return float(np.std(arr, ddof=1))


def skewness(values: Iterable[float]) -> float:
    """Adjusted sample skewness; 0 for fewer than three values or zero spread."""
    arr = finite(values)
    n = arr.size
    if n < 3:
        return 0.0
    s = np.std(arr, ddof=1)
    if s == 0:
        return 0.0
    z = (arr - np.mean(arr)) / s
    return float((n / ((n - 1) * (n - 2))) * np.sum(z ** 3))


def kurtosis(values: Iterable[float]) -> float:
    """Excess kurtosis; 0 for fewer than four values or zero spread."""
    arr = finite(values)
    n = arr.size
    if n < 4:
        return 0.0
    s = np.std(arr, ddof=1)
    if s == 0:
        return 0.0
    z = (arr - np.mean(arr)) / s
    return float(np.sum(z ** 4) / n - 3.0)


def intervals(timestamps: Iterable[float]) -> NDArray[np.float64]:
    arr = finite(timestamps)
    if arr.size < 2:
        return np.zeros(0, dtype=np.float64)
    return np.diff(arr)


def interval_entropy(timestamps: Sequence[float]) -> float:
    """
    Normalised Shannon entropy of the gaps between timestamps.

    Gaps are binned into ENTROPY_BINS equal-width bins over their observed
    range. Returns 0.5 for fewer than five timestamps and 0 when every gap
    is identical.
    """
    arr = finite(timestamps)
    if arr.size < MIN_ENTROPY_SAMPLES:
        return NEUTRAL_ENTROPY
    gaps = np.diff(arr)
    lo, hi = float(gaps.min()), float(gaps.max())
    span = hi - lo
    if span == 0:
        return 0.0
    idx = np.minimum(((gaps - lo) / span * ENTROPY_BINS).astype(int), ENTROPY_BINS - 1)
    counts = np.bincount(idx, minlength=ENTROPY_BINS)
    p = counts[counts > 0] / gaps.size
    entropy = float(-np.sum(p * np.log2(p)))
    return min(1.0, max(0.0, entropy / math.log2(ENTROPY_BINS)))


def lag1_autocorrelation(values: Sequence[float]) -> float:
    """Lag-1 autocorrelation of z-scored values, averaged over n-1 pairs."""
    arr = finite(values)
    if arr.size <= 2:
        return 0.0
    s = np.std(arr, ddof=1)
    if s == 0:
        return 0.0
    z = (arr - np.mean(arr)) / s
    return float(np.sum(z[1:] * z[:-1]) / (arr.size - 1))


def micro_timing(timestamps: Sequence[float]) -> float:
    """
    Composite timing score in [0, 1].

    - High entropy with no serial correlation: injected randomness -> 0.9
    - Very low entropy: mechanical timing -> 0.1
    - Otherwise the raw interval entropy
    """
    arr = finite(timestamps)
    if arr.size < MIN_MICRO_TIMING_SAMPLES:
        return NEUTRAL_ENTROPY
    autocorr = lag1_autocorrelation(np.diff(arr))
    entropy = interval_entropy(arr)
    if entropy > 0.85 and abs(autocorr) < 0.1:
        return 0.9
    if entropy < 0.15:
        return 0.1
    return entropy


# =============================================================================
# Path Geometry
# =============================================================================

def menger_curvature(
    p1: Tuple[float, float],
    p2: Tuple[float, float],
    p3: Tuple[float, float],
) -> float:
    """Curvature of the circle through three points; 0 when any side is zero."""
    ax, ay = p2[0] - p1[0], p2[1] - p1[1]
    bx, by = p3[0] - p2[0], p3[1] - p2[1]
    cx, cy = p3[0] - p1[0], p3[1] - p1[1]
    cross = abs(ax * by - ay * bx)
    d = math.hypot(ax, ay) * math.hypot(bx, by) * math.hypot(cx, cy)
    if d == 0 or not math.isfinite(d):
        return 0.0
    return 2.0 * cross / d


def path_curvatures(xy: NDArray[np.float64]) -> NDArray[np.float64]:
    """Menger curvature of every consecutive point triple of an (n, 2) array."""
    if xy.shape[0] < 3:
        return np.zeros(0, dtype=np.float64)
    a = xy[1:-1] - xy[:-2]
    b = xy[2:] - xy[1:-1]
    c = xy[2:] - xy[:-2]
    cross = np.abs(a[:, 0] * b[:, 1] - a[:, 1] * b[:, 0])
    d = np.hypot(a[:, 0], a[:, 1]) * np.hypot(b[:, 0], b[:, 1]) * np.hypot(c[:, 0], c[:, 1])
    with np.errstate(divide="ignore", invalid="ignore"):
        k = np.where(d > 0, 2.0 * cross / d, 0.0)
    return np.nan_to_num(k, nan=0.0, posinf=0.0, neginf=0.0)


def is_linear(xy: NDArray[np.float64]) -> bool:
    """More than 80% of the last 50 points lie on near-straight segments."""
    if xy.shape[0] < LINEAR_MIN_POINTS:
        return False
    k = path_curvatures(xy[-LINEAR_WINDOW:])
    if k.size == 0:
        return False
    return float(np.mean(k < LINEAR_CURVATURE)) > LINEAR_RATIO
