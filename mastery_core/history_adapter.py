# mastery_core/history_adapter.py

from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from .schema import AnsweredRecord, to_datetime


def _created_at(entry: Mapping[str, Any]) -> datetime:
    # Ưu tiên timestamp ISO, sau đó date "YYYY-MM-DD", cuối cùng là thời điểm hiện tại
    if entry.get("timestamp"):
        parsed = to_datetime(entry["timestamp"])
        if parsed is not None:
            return parsed
    if entry.get("date"):
        parsed = to_datetime(f"{entry['date']}T00:00:00Z")
        if parsed is not None:
            return parsed
    return datetime.now(timezone.utc)


def _time_spent_ms(entry: Mapping[str, Any]) -> float:
    try:
        seconds = float(entry.get("timeTaken") or 0)
    except (TypeError, ValueError):
        return 0.0
    if seconds != seconds:
        return 0.0
    return max(0.0, seconds * 1000.0)


def adapt_answered_record(entry: Mapping[str, Any], user_id: Optional[str] = None) -> AnsweredRecord:
    """Chuyển một câu đã trả lời (định dạng lưu trữ của app) sang AnsweredRecord."""
    topic = entry.get("topic") or ""
    question = entry.get("question")
    question_id = entry.get("id") or f"{topic}|{(question or '')[:40] or 'unknown'}"
    answer = entry.get("correctAnswer")

    return AnsweredRecord(
        question_id=str(question_id),
        topic=str(topic),
        is_correct=bool(entry.get("isCorrect")),
        time_spent_ms=_time_spent_ms(entry),
        created_at=_created_at(entry),
        question=question,
        correct_answer=None if answer is None else str(answer),
        signature=entry.get("signature"),
        user_id=user_id or entry.get("userId") or "unknown",
    )


def adapt_answered_history(
    answered: Optional[Iterable[Mapping[str, Any]]],
    user_id: Optional[str] = None,
) -> List[AnsweredRecord]:
    """
    answeredQuestions của app → danh sách AnsweredRecord cho engine.
    timeTaken (giây) → time_spent_ms, âm thì về 0.
    """
    if not answered:
        return []
    return [adapt_answered_record(e, user_id) for e in answered if isinstance(e, Mapping)]
