# mastery_core/complexity_engine.py

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .schema import AnsweredRecord, ScoredRecord, TopicAggregate, timestamp_ms
from .stats import clamp01
from .time_normalizer import (
    MAX_TIME_MULTIPLIER,
    normalize_times_within_topic,
    normalized_time_for,
)

logger = logging.getLogger(__name__)

# ============================
# Tham số điều chỉnh
# ============================
TIME_WEIGHT = 0.6        # trọng số thành phần thời gian
INCORRECT_WEIGHT = 0.4   # trọng số trả lời sai
HISTORY_WINDOW = 20      # số bản ghi đầu bảng xếp hạng dùng để lấy trung bình mỗi topic
PROGRESS_STEP = 0.08     # bước tăng độ khó
MIN_COMPLEXITY = 0.15
MAX_COMPLEXITY = 0.95
NEUTRAL_COMPLEXITY = 0.5

COMPLEXITY_TUNABLES: Dict[str, float] = {
    "TIME_WEIGHT": TIME_WEIGHT,
    "INCORRECT_WEIGHT": INCORRECT_WEIGHT,
    "MAX_TIME_MULTIPLIER": MAX_TIME_MULTIPLIER,
    "HISTORY_WINDOW": HISTORY_WINDOW,
    "PROGRESS_STEP": PROGRESS_STEP,
    "MIN_COMPLEXITY": MIN_COMPLEXITY,
    "MAX_COMPLEXITY": MAX_COMPLEXITY,
}

HistoryLike = Optional[Iterable[Union[AnsweredRecord, Mapping[str, Any]]]]


def coerce_history(history: HistoryLike) -> List[AnsweredRecord]:
    """Lịch sử không hợp lệ (None, không phải list...) được coi là rỗng."""
    if not isinstance(history, (list, tuple)):
        return []
    out: List[AnsweredRecord] = []
    for r in history:
        if isinstance(r, AnsweredRecord):
            out.append(r)
        elif isinstance(r, Mapping):
            out.append(AnsweredRecord.from_dict(r))
    return out


def complexity_score(time_component: float, is_correct: bool) -> float:
    incorrect = 0.0 if is_correct else 1.0
    return clamp01(TIME_WEIGHT * time_component + INCORRECT_WEIGHT * incorrect)


# ============================
# Xếp hạng theo độ phức tạp
# ============================

def rank_questions_by_complexity(history: HistoryLike) -> List[ScoredRecord]:
    """
    Chấm điểm độ phức tạp ∈ [0,1] cho từng lần trả lời rồi sắp xếp:
    điểm giảm dần, cùng điểm thì bản ghi mới hơn đứng trước.
    """
    records = coerce_history(history)
    if not records:
        return []

    norm_times = normalize_times_within_topic(records)
    ranked = [
        ScoredRecord(record=r, complexity_score=complexity_score(normalized_time_for(norm_times, r), r.is_correct))
        for r in records
    ]
    ranked.sort(key=lambda s: (-s.complexity_score, -timestamp_ms(s.created_at)))
    return ranked


def compute_per_topic_complexity(history: HistoryLike) -> List[TopicAggregate]:
    """
    Trung bình độ phức tạp theo topic trên HISTORY_WINDOW bản ghi đứng đầu
    (đã xếp theo độ phức tạp + độ mới). Topic luyện gần nhất đứng trước.
    """
    ranked = rank_questions_by_complexity(history)
    by_topic: "OrderedDict[str, List[ScoredRecord]]" = OrderedDict()
    for s in ranked:
        by_topic.setdefault(s.topic, []).append(s)

    topics: List[TopicAggregate] = []
    for topic, recs in by_topic.items():
        window = recs[:HISTORY_WINDOW]
        avg = sum(s.complexity_score for s in window) / max(1, len(window))
        stamped = [s.created_at for s in recs if s.created_at is not None]
        last = max(stamped, key=timestamp_ms) if stamped else None
        topics.append(TopicAggregate(topic=topic, avg_complexity=clamp01(avg), count=len(recs), last_answered_at=last))

    topics.sort(key=lambda t: timestamp_ms(t.last_answered_at), reverse=True)
    return topics


# ============================
# Độ khó mục tiêu tiếp theo
# ============================

def next_target_complexity(
    history: HistoryLike,
    topic: str,
    mode: str = "progressive",
    last_asked_complexity: Optional[float] = None,
) -> float:
    """
    Đề xuất độ khó cho lượt câu hỏi tiếp theo của một topic.
    - mode="random": luôn 0.5
    - chưa có lịch sử topic: 0.5
    - còn lại: avg + PROGRESS_STEP, không thấp hơn last_asked + PROGRESS_STEP,
      kẹp trong [MIN_COMPLEXITY, MAX_COMPLEXITY]
    """
    if mode == "random":
        return NEUTRAL_COMPLEXITY

    topic_history = [r for r in coerce_history(history) if r.topic == topic]
    if not topic_history:
        return NEUTRAL_COMPLEXITY

    stat = next((t for t in compute_per_topic_complexity(topic_history) if t.topic == topic), None)
    base = stat.avg_complexity if stat else NEUTRAL_COMPLEXITY

    target = base + PROGRESS_STEP
    if last_asked_complexity is not None and last_asked_complexity == last_asked_complexity:
        target = max(target, float(last_asked_complexity) + PROGRESS_STEP)

    target = min(MAX_COMPLEXITY, max(MIN_COMPLEXITY, target))
    logger.debug("Target complexity for %s: base=%.3f → %.3f", topic, base, target)
    return clamp01(target)
