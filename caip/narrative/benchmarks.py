"""
PRACTICE BENCHMARKING (AUTHORITATIVE)
-------------------------------------
Numeric inputs for practice-vs-national narratives:
1. Rank percentile against a comparison population
2. Qualitative trend against a historical mean
3. Network statistics, outliers and rankings
4. Linear-regression forecasts

Nothing here throws on thin data: insufficient input yields None or
the "Insufficient data" label.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from caip.core.kpi_utils import round_half_up, valid_numbers

INSUFFICIENT_DATA = "Insufficient data"

TREND_THRESHOLDS = {
    "significant": 10.0,
    "moderate": 5.0,
}

FORECAST_SLOPE_EPSILON = 0.01


# =====================================================
# 1. RANK PERCENTILE
# =====================================================

def percentile(value: Optional[float], population: Optional[Iterable]) -> Optional[int]:
    """
    Share of the population strictly below `value`, as a rounded
    whole percentage. Not an interpolated distribution percentile.
    """
    current = valid_numbers([value])
    values = valid_numbers(population)
    if not current or not values:
        return None

    below = sum(1 for v in values if v < current[0])
    return int(round_half_up(below / len(values) * 100))


# =====================================================
# 2. TREND
# =====================================================

def trend_change(current: Optional[float], historical: Optional[Iterable]) -> Optional[float]:
    """Percentage change of `current` against the historical mean."""
    now = valid_numbers([current])
    history = valid_numbers(historical)
    if not now or len(history) < 2:
        return None

    mean = sum(history) / len(history)
    if mean == 0:
        return None
    return (now[0] - mean) / mean * 100


def trend(current: Optional[float], historical: Optional[Iterable]) -> str:
    """
    Rules:
    - fewer than 2 valid historical values -> "Insufficient data"
    - historical mean of zero -> "Increasing (from zero)" or "Stable"
    - otherwise compare the % change to the +/-5 and +/-10 thresholds
    """
    now = valid_numbers([current])
    history = valid_numbers(historical)
    if not now or len(history) < 2:
        return INSUFFICIENT_DATA

    if sum(history) / len(history) == 0:
        return "Increasing (from zero)" if now[0] > 0 else "Stable"

    change = trend_change(current, historical)
    if change > TREND_THRESHOLDS["significant"]:
        return "Increasing significantly"
    if change > TREND_THRESHOLDS["moderate"]:
        return "Increasing"
    if change < -TREND_THRESHOLDS["significant"]:
        return "Decreasing significantly"
    if change < -TREND_THRESHOLDS["moderate"]:
        return "Decreasing"
    return "Stable"


# =====================================================
# 3. NETWORK STATISTICS
# =====================================================

def network_statistics(values: Optional[Iterable]) -> Optional[Dict[str, float]]:
    """Mean, population standard deviation, min, max and count."""
    cleaned = valid_numbers(values)
    if not cleaned:
        return None

    arr = np.asarray(cleaned, dtype=float)
    return {
        "mean": float(arr.mean()),
        "std_dev": float(arr.std()),
        "min": float(arr.min()),
        "max": float(arr.max()),
        "count": int(arr.size),
    }


def detect_outlier(
    value: Optional[float],
    stats: Optional[Mapping[str, float]],
    threshold: float = 1.5,
) -> Optional[Dict[str, Any]]:
    """z-score test: outlier when |z| > threshold."""
    if value is None or not stats:
        return None

    if stats["std_dev"] == 0:
        return {"is_outlier": False, "z_score": 0.0, "direction": None, "deviations": 0.0}

    z = (value - stats["mean"]) / stats["std_dev"]
    return {
        "is_outlier": abs(z) > threshold,
        "z_score": z,
        "direction": "above" if z > 0 else "below",
        "deviations": abs(z),
    }


def rank_practices(values: Mapping[str, Optional[float]], direction: str = "desc") -> List[Dict[str, Any]]:
    """
    Competition ranking (1, 2, 2, 4) of practices by metric value.
    Practices without a value are left out. Ties keep input order.
    """
    if direction not in ("asc", "desc"):
        raise ValueError(f"direction must be 'asc' or 'desc', got {direction!r}")

    scored = [(code, v) for code, v in values.items() if valid_numbers([v])]
    scored.sort(key=lambda item: item[1], reverse=(direction == "desc"))

    ranked = []
    for position, (code, v) in enumerate(scored, start=1):
        if ranked and ranked[-1]["value"] == v:
            rank = ranked[-1]["rank"]
        else:
            rank = position
        ranked.append({"practice": code, "value": v, "rank": rank, "of": len(scored)})
    return ranked


# =====================================================
# 4. REGRESSION + FORECAST
# =====================================================

def linear_regression(values: Sequence[float]) -> Dict[str, float]:
    """Least-squares fit of value against index 0..n-1."""
    y = np.asarray(valid_numbers(values), dtype=float)
    n = y.size
    if n < 2:
        return {"slope": 0.0, "intercept": float(y[0]) if n else 0.0, "r2": 0.0}

    x = np.arange(n, dtype=float)
    slope = float((n * (x * y).sum() - x.sum() * y.sum()) / (n * (x * x).sum() - x.sum() ** 2))
    intercept = float((y.sum() - slope * x.sum()) / n)

    predicted = slope * x + intercept
    ss_total = float(((y - y.mean()) ** 2).sum())
    ss_residual = float(((y - predicted) ** 2).sum())
    r2 = 1 - ss_residual / ss_total if ss_total > 0 else 0.0

    return {"slope": slope, "intercept": intercept, "r2": r2}


def forecast_values(values: Sequence[float], periods: int = 3) -> Dict[str, Any]:
    cleaned = valid_numbers(values)
    if len(cleaned) < 3:
        return {"forecasts": [], "trend": "insufficient_data", "monthly_change": 0.0, "r2": 0.0}

    fit = linear_regression(cleaned)
    n = len(cleaned)

    forecasts = [
        {
            "period_offset": i,
            "value": max(0.0, fit["slope"] * (n - 1 + i) + fit["intercept"]),
            "confidence": fit["r2"],
        }
        for i in range(1, periods + 1)
    ]

    direction = "stable"
    if abs(fit["slope"]) > FORECAST_SLOPE_EPSILON:
        direction = "increasing" if fit["slope"] > 0 else "decreasing"

    return {
        "forecasts": forecasts,
        "trend": direction,
        "monthly_change": fit["slope"],
        "r2": fit["r2"],
    }


# =====================================================
# 5. BENCHMARK POSITIONS
# =====================================================

def build_benchmark_positions(
    metrics: Mapping[str, Optional[float]],
    national_arrays: Mapping[str, Sequence[float]],
    historical: Optional[Mapping[str, Sequence[float]]] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    {metric: {value, percentile, trend, trend_change}} for every metric
    with a national array. Pure numbers and labels; no prose.
    """
    historical = historical or {}
    positions = {}
    for key, population in national_arrays.items():
        value = metrics.get(key)
        positions[key] = {
            "value": value,
            "percentile": percentile(value, population),
            "trend": trend(value, historical.get(key)),
            "trend_change": trend_change(value, historical.get(key)),
        }
    return positions
