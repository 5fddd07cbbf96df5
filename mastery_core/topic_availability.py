# mastery_core/topic_availability.py

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from .quiz_sampler import DEFAULT_DAILY_GOAL


@dataclass(frozen=True)
class TopicProgress:
    topic: str
    correct_answers: int
    goal: int
    completed: bool


@dataclass
class TopicAvailability:
    available_topics: List[str] = field(default_factory=list)
    unavailable_topics: List[str] = field(default_factory=list)
    all_completed: bool = False
    topic_stats: List[TopicProgress] = field(default_factory=list)


def sanitize_topic_name(topic: str) -> str:
    """Tên topic dùng làm key tiến độ (bỏ ký tự không hợp lệ cho khóa lưu trữ)."""
    return "".join(ch if ch.isalnum() or ch in " _-" else "_" for ch in topic).strip()


def _correct_count(progress: Optional[Mapping[str, Any]], topic: str) -> int:
    if not progress:
        return 0
    stats = progress.get(sanitize_topic_name(topic), progress.get(topic))
    if not isinstance(stats, Mapping):
        return 0
    try:
        return int(stats.get("correct") or 0)
    except (TypeError, ValueError):
        return 0


def get_topic_availability(
    topics: Sequence[str],
    daily_goals: Optional[Mapping[str, int]] = None,
    progress: Optional[Mapping[str, Any]] = None,
) -> TopicAvailability:
    """
    Topic đạt mục tiêu trong ngày (correct >= goal) bị khóa cho tới khi
    các topic còn lại bắt kịp. Nếu tất cả hoặc chưa topic nào hoàn thành
    thì mở toàn bộ.
    """
    daily_goals = daily_goals or {}
    stats: List[TopicProgress] = []
    for topic in topics:
        goal = int(daily_goals.get(topic) or DEFAULT_DAILY_GOAL)
        correct = _correct_count(progress, topic)
        stats.append(TopicProgress(topic=topic, correct_answers=correct, goal=goal, completed=correct >= goal))

    completed = [s.topic for s in stats if s.completed]
    incomplete = [s.topic for s in stats if not s.completed]

    if stats and len(completed) == len(stats):
        return TopicAvailability(list(topics), [], True, stats)
    if not completed:
        return TopicAvailability(list(topics), [], False, stats)
    return TopicAvailability(incomplete, completed, False, stats)
