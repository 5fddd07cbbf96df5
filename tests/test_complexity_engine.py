# tests/test_complexity_engine.py

import math
from datetime import datetime, timedelta, timezone

import pytest

from mastery_core.complexity_engine import (
    COMPLEXITY_TUNABLES,
    INCORRECT_WEIGHT,
    MAX_COMPLEXITY,
    MIN_COMPLEXITY,
    PROGRESS_STEP,
    TIME_WEIGHT,
    compute_per_topic_complexity,
    next_target_complexity,
    rank_questions_by_complexity,
)
from mastery_core.schema import AnsweredRecord
from mastery_core.time_normalizer import topic_median

NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def _rec(qid, topic="fractions", correct=True, ms=5000, at=NOW):
    return AnsweredRecord(question_id=qid, topic=topic, is_correct=correct, time_spent_ms=ms, created_at=at)


# ============================
# rank_questions_by_complexity
# ============================

def test_rank_empty_or_invalid_history():
    assert rank_questions_by_complexity([]) == []
    assert rank_questions_by_complexity(None) == []
    assert rank_questions_by_complexity("not a list") == []


def test_weights_are_named_and_sum_to_one():
    assert TIME_WEIGHT == 0.6
    assert INCORRECT_WEIGHT == 0.4
    assert TIME_WEIGHT + INCORRECT_WEIGHT == pytest.approx(1.0)
    assert COMPLEXITY_TUNABLES["HISTORY_WINDOW"] == 20
    assert COMPLEXITY_TUNABLES["MAX_TIME_MULTIPLIER"] == 2


def test_single_record_regression_scores():
    wrong = rank_questions_by_complexity([_rec("q1", topic="test", correct=False, ms=1)])
    right = rank_questions_by_complexity([_rec("q1", topic="test", correct=True, ms=1000)])
    assert wrong[0].complexity_score == pytest.approx(0.7)
    assert right[0].complexity_score == pytest.approx(0.3)


def test_incorrect_scores_higher_than_correct():
    ranked = rank_questions_by_complexity([_rec("q1", correct=True), _rec("q2", correct=False)])
    by_id = {s.question_id: s for s in ranked}
    assert by_id["q2"].complexity_score > by_id["q1"].complexity_score


def test_slower_scores_higher_within_topic():
    ranked = rank_questions_by_complexity([_rec("q1", ms=2000), _rec("q2", ms=10000)])
    by_id = {s.question_id: s for s in ranked}
    assert by_id["q2"].complexity_score > by_id["q1"].complexity_score


def test_sorted_desc_and_bounded():
    history = [
        _rec("q1", ms=1000),
        _rec("q2", correct=False, ms=5000),
        _rec("q3", ms=3000),
        _rec("q4", topic="multiplication", ms=0),
        _rec("q5", topic="multiplication", correct=False, ms=10 ** 9),
    ]
    ranked = rank_questions_by_complexity(history)
    scores = [s.complexity_score for s in ranked]
    assert scores == sorted(scores, reverse=True)
    for s in scores:
        assert 0.0 <= s <= 1.0
        assert math.isfinite(s), "Không được sinh NaN/Infinity"


def test_ties_broken_by_recency():
    older = _rec("old", topic="a", at=NOW - timedelta(days=1))
    newer = _rec("new", topic="b", at=NOW)
    ranked = rank_questions_by_complexity([older, newer])
    assert ranked[0].complexity_score == ranked[1].complexity_score
    assert [s.question_id for s in ranked] == ["new", "old"]


def test_rank_is_idempotent():
    history = [_rec("q1", ms=1200), _rec("q2", correct=False, ms=4000), _rec("q3", ms=900)]
    assert rank_questions_by_complexity(history) == rank_questions_by_complexity(history)


def test_slow_record_in_small_topic_keeps_other_order():
    assert topic_median([4000.0, 5000.0, 6000.0, 600000.0]) == pytest.approx(5500.0)
    base = [_rec("q1", ms=5000), _rec("q2", ms=6000), _rec("q3", ms=4000)]
    before = [s.question_id for s in rank_questions_by_complexity(base)]
    after = [s.question_id for s in rank_questions_by_complexity(base + [_rec("slow", ms=600000)])]
    assert [q for q in after if q != "slow"] == before


def test_accepts_camelcase_mappings():
    ranked = rank_questions_by_complexity([
        {"questionId": "q1", "topic": "test", "isCorrect": False, "timeSpentMs": 1, "createdAt": "2024-01-15T10:00:00Z"},
    ])
    assert ranked[0].question_id == "q1"
    assert ranked[0].complexity_score == pytest.approx(0.7)


@pytest.mark.parametrize("created_at", [float("nan"), 1e20, -1e20])
def test_unusable_epoch_timestamp_is_treated_as_missing(created_at):
    history = [
        {"questionId": "q1", "topic": "test", "isCorrect": False, "timeSpentMs": 1, "createdAt": created_at},
        {"questionId": "q2", "topic": "other", "isCorrect": True, "timeSpentMs": 1000, "createdAt": 1705312800000},
    ]
    ranked = rank_questions_by_complexity(history)
    assert [s.question_id for s in ranked] == ["q1", "q2"]
    assert ranked[0].created_at is None

    per_topic = compute_per_topic_complexity(history)
    assert [t.topic for t in per_topic] == ["other", "test"]
    assert per_topic[1].last_answered_at is None

    assert next_target_complexity(history, "test") == pytest.approx(0.7 + PROGRESS_STEP)


# ============================
# compute_per_topic_complexity
# ============================

def test_per_topic_counts():
    history = [
        _rec("q1", topic="fractions", correct=True, ms=5000),
        _rec("q2", topic="fractions", correct=False, ms=5000),
        _rec("q3", topic="multiplication", correct=True, ms=3000),
    ]
    per_topic = compute_per_topic_complexity(history)
    assert len(per_topic) == 2
    by_topic = {t.topic: t for t in per_topic}
    assert by_topic["fractions"].count == 2
    assert by_topic["multiplication"].count == 1
    assert 0.0 <= by_topic["fractions"].avg_complexity <= 1.0


def test_per_topic_empty():
    assert compute_per_topic_complexity([]) == []


def test_per_topic_sorted_by_last_answered():
    history = [
        _rec("q1", topic="fractions", at=NOW - timedelta(days=1)),
        _rec("q2", topic="multiplication", at=NOW),
        _rec("q3", topic="division", at=None),
    ]
    per_topic = compute_per_topic_complexity(history)
    assert [t.topic for t in per_topic] == ["multiplication", "fractions", "division"]
    assert per_topic[0].last_answered_at == NOW
    assert per_topic[-1].last_answered_at is None


def test_per_topic_window_uses_top_ranked_records():
    history = [_rec(f"w{i}", correct=False, at=NOW - timedelta(minutes=i)) for i in range(5)]
    history += [_rec(f"c{i}", correct=True, at=NOW - timedelta(minutes=10 + i)) for i in range(20)]
    stat = compute_per_topic_complexity(history)[0]
    # 5 câu sai (0.7) + 15 câu đúng (0.3) trong cửa sổ 20
    assert stat.avg_complexity == pytest.approx((5 * 0.7 + 15 * 0.3) / 20)
    assert stat.count == 25


# ============================
# next_target_complexity
# ============================

def test_random_mode_always_half():
    history = [_rec("q1", correct=False)]
    assert next_target_complexity([], "fractions", mode="random") == 0.5
    assert next_target_complexity(history, "fractions", mode="random", last_asked_complexity=0.9) == 0.5


def test_cold_start_is_neutral():
    assert next_target_complexity([], "fractions") == 0.5
    assert next_target_complexity(None, "fractions") == 0.5
    assert next_target_complexity([], "fractions", last_asked_complexity=0.99) == 0.5


def test_progressive_step_from_topic_average():
    history = [_rec("q1", correct=True)]
    assert next_target_complexity(history, "fractions") == pytest.approx(0.3 + PROGRESS_STEP)


def test_last_asked_enforces_forward_progress():
    history = [_rec("q1", correct=True, ms=3000)]
    result = next_target_complexity(history, "fractions", last_asked_complexity=0.7)
    assert result == pytest.approx(0.7 + PROGRESS_STEP)


def test_target_clamped_to_max():
    history = [_rec("q1", correct=False)]
    assert next_target_complexity(history, "fractions", last_asked_complexity=0.99) == MAX_COMPLEXITY


def test_target_monotonic_in_last_asked_and_bounded():
    history = [_rec("q1", correct=True, ms=1000), _rec("q2", correct=False, ms=9000), _rec("x", topic="other")]
    previous = -1.0
    for i in range(0, 21):
        last = -0.5 + i * 0.1
        value = next_target_complexity(history, "fractions", last_asked_complexity=last)
        assert MIN_COMPLEXITY <= value <= MAX_COMPLEXITY
        assert value >= previous
        previous = value


def test_target_filters_history_by_topic():
    history = [
        _rec("q1", topic="fractions", correct=False, ms=10000),
        _rec("q2", topic="multiplication", correct=True, ms=1000),
    ]
    fractions = next_target_complexity(history, "fractions")
    multiplication = next_target_complexity(history, "multiplication")
    assert fractions == pytest.approx(0.7 + PROGRESS_STEP)
    assert multiplication == pytest.approx(0.3 + PROGRESS_STEP)
