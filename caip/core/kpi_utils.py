import math
from typing import Iterable, List, Optional


def pct(numerator: float, denominator: float) -> float:
    """Percentage with the '0 when the total is 0' policy."""
    if not denominator:
        return 0.0
    return (numerator / denominator) * 100


def safe_div(numerator, denominator) -> Optional[float]:
    if numerator is None or not denominator:
        return None
    return float(numerator / denominator)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def valid_numbers(values: Optional[Iterable]) -> List[float]:
    """Drop None / NaN / infinite entries."""
    if not values:
        return []
    out = []
    for v in values:
        if v is None or isinstance(v, bool):
            continue
        try:
            f = float(v)
        except (TypeError, ValueError):
            continue
        if math.isfinite(f):
            out.append(f)
    return out


def floor_median(values: Iterable[Optional[float]]) -> Optional[float]:
    """
    Element at floor(n/2) of the ascending non-negative values.
    Even-length input takes the higher central element, not an average.
    """
    cleaned = sorted(v for v in valid_numbers(values) if v >= 0)
    if not cleaned:
        return None
    return cleaned[len(cleaned) // 2]
