# mastery_core/time_normalizer.py

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from .schema import AnsweredRecord, timestamp_ms
from .stats import clamp01, online_mean_variance, percentile

# Chặn log(0)
MIN_LATENCY_MS = 1.0
# Ngưỡng loại ngoại lai trong không gian log
OUTLIER_STDDEVS = 3.0
# Trần tỉ lệ latency / median; median rơi vào ≈ 0.5
MAX_TIME_MULTIPLIER = 2.0

RecordKey = Tuple[str, float]


def record_key(record: AnsweredRecord) -> RecordKey:
    return (record.question_id, timestamp_ms(record.created_at))


def _reject_outliers(latencies: List[float]) -> List[float]:
    """
    Loại ngoại lai trên ln(latency): thời gian phản hồi gần log-normal,
    lọc trong không gian tuyến tính sẽ giữ lại đuôi chậm.
    Nếu lọc xong không còn gì thì dùng lại tập gốc.
    """
    if len(latencies) <= 2:
        return latencies

    logs = [math.log(t) for t in latencies]
    mv = online_mean_variance(logs)
    bound = OUTLIER_STDDEVS * mv.stddev
    kept = [t for t, lt in zip(latencies, logs) if abs(lt - mv.mean) <= bound]
    return kept or latencies


def topic_median(latencies: List[float]) -> float:
    """Median latency sau khi loại ngoại lai; 1 nếu không có mẫu."""
    filtered = sorted(_reject_outliers(latencies))
    med = percentile(filtered, 0.5)
    return med if med > 0 else 1.0


def normalize_times_within_topic(
    records: Iterable[AnsweredRecord],
    max_multiplier: float = MAX_TIME_MULTIPLIER,
) -> Dict[RecordKey, float]:
    """
    Chuẩn hóa thời gian trả lời theo từng topic về [0, 1]:
    ratio = latency / median, cắt ở max_multiplier rồi chia cho max_multiplier.
    Topic chỉ có 1 bản ghi luôn nhận đúng 0.5.
    """
    by_topic: Dict[str, List[AnsweredRecord]] = defaultdict(list)
    for r in records:
        by_topic[r.topic].append(r)

    out: Dict[RecordKey, float] = {}
    for topic, recs in by_topic.items():
        latencies = [max(MIN_LATENCY_MS, float(r.time_spent_ms)) for r in recs]
        med = topic_median(latencies)
        for r, latency in zip(recs, latencies):
            ratio = min(latency / med, max_multiplier)
            out[record_key(r)] = clamp01(ratio / max_multiplier)
    return out


def normalized_time_for(
    normalized: Dict[RecordKey, float],
    record: AnsweredRecord,
    default: float = 0.5,
) -> float:
    value: Optional[float] = normalized.get(record_key(record))
    return default if value is None else value
