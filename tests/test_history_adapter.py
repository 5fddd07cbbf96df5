# tests/test_history_adapter.py

from datetime import datetime, timezone

from mastery_core.complexity_engine import rank_questions_by_complexity
from mastery_core.history_adapter import adapt_answered_history


def test_adapts_app_format():
    answered = [{
        "id": "q1",
        "topic": "fractions",
        "question": "What is 1/2 + 1/4?",
        "correctAnswer": "3/4",
        "isCorrect": True,
        "timeTaken": 12.5,
        "timestamp": "2024-01-15T10:30:00Z",
    }]
    [rec] = adapt_answered_history(answered, "user123")
    assert rec.question_id == "q1"
    assert rec.topic == "fractions"
    assert rec.is_correct is True
    assert rec.time_spent_ms == 12500
    assert rec.created_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert rec.user_id == "user123"
    assert rec.mastery_signature() == "What is 1/2 + 1/4?|||3/4"


def test_generates_id_when_missing():
    [rec] = adapt_answered_history([{
        "topic": "multiplication",
        "question": "What is 5 x 6?",
        "isCorrect": False,
        "timeTaken": 8,
        "timestamp": "2024-01-15T11:00:00Z",
    }], "user123")
    assert rec.question_id == "multiplication|What is 5 x 6?"
    assert rec.is_correct is False


def test_falls_back_to_date_then_now():
    before = datetime.now(timezone.utc)
    by_date, by_now = adapt_answered_history([
        {"topic": "t", "question": "a", "isCorrect": True, "timeTaken": 1, "date": "2024-02-01"},
        {"topic": "t", "question": "b", "isCorrect": True, "timeTaken": 1},
    ])
    assert by_date.created_at == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert by_now.created_at >= before
    assert by_date.user_id == "unknown"


def test_negative_or_invalid_time_becomes_zero():
    recs = adapt_answered_history([
        {"topic": "t", "question": "a", "isCorrect": True, "timeTaken": -4},
        {"topic": "t", "question": "b", "isCorrect": True, "timeTaken": "slow"},
    ])
    assert [r.time_spent_ms for r in recs] == [0, 0]


def test_empty_input():
    assert adapt_answered_history(None) == []
    assert adapt_answered_history([]) == []


def test_adapted_history_feeds_ranking():
    answered = [
        {"id": "q1", "topic": "fractions", "question": "1/2 + 1/4", "correctAnswer": "3/4",
         "isCorrect": False, "timeTaken": 30, "timestamp": "2024-01-15T10:00:00Z"},
        {"id": "q2", "topic": "fractions", "question": "1/3 + 1/3", "correctAnswer": "2/3",
         "isCorrect": True, "timeTaken": 10, "timestamp": "2024-01-15T10:05:00Z"},
    ]
    ranked = rank_questions_by_complexity(adapt_answered_history(answered, "u"))
    assert [s.question_id for s in ranked] == ["q1", "q2"]
