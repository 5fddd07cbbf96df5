# mastery_core/stats.py

import math
from dataclasses import dataclass
from typing import Iterable, Sequence


def clamp01(x: float) -> float:
    """Kẹp giá trị về [0, 1]. NaN được coi như 0."""
    if x != x:
        return 0.0
    return max(0.0, min(1.0, x))


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Percentile nội suy tuyến tính trên mảng đã sắp xếp tăng dần.
    Trả 0 nếu mảng rỗng; p được kẹp về [0, 1] trước khi dùng.
    """
    if not sorted_values:
        return 0.0
    p = clamp01(p)
    idx = (len(sorted_values) - 1) * p
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return float(sorted_values[lo])
    w = idx - lo
    return sorted_values[lo] * (1.0 - w) + sorted_values[hi] * w


@dataclass(frozen=True)
class MeanVariance:
    count: int = 0
    mean: float = 0.0
    variance: float = 0.0  # population variance

    @property
    def stddev(self) -> float:
        return math.sqrt(self.variance)


def online_mean_variance(values: Iterable[float]) -> MeanVariance:
    """
    Welford một lượt: mean, variance (tổng thể) và stddev.
    Đầu vào rỗng → count=0, mean=0, variance=0.
    """
    count = 0
    mean = 0.0
    m2 = 0.0
    for x in values:
        count += 1
        delta = x - mean
        mean += delta / count
        m2 += delta * (x - mean)

    if count == 0:
        return MeanVariance()
    return MeanVariance(count=count, mean=mean, variance=max(0.0, m2 / count))
