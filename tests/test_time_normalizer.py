# tests/test_time_normalizer.py

import pytest

from mastery_core.schema import AnsweredRecord
from mastery_core.time_normalizer import normalize_times_within_topic, record_key, topic_median


def _rec(qid, ms, topic="fractions", correct=True):
    return AnsweredRecord(question_id=qid, topic=topic, is_correct=correct, time_spent_ms=ms)


def test_single_record_topic_is_half():
    r = _rec("q1", 1234)
    norm = normalize_times_within_topic([r])
    assert norm[record_key(r)] == pytest.approx(0.5)


def test_zero_latency_clamped_to_one_ms():
    a, b = _rec("a", 0), _rec("b", 1)
    norm = normalize_times_within_topic([a, b])
    # cả hai bị kẹp về 1ms → cùng bằng median
    assert norm[record_key(a)] == pytest.approx(0.5)
    assert norm[record_key(b)] == pytest.approx(0.5)


def test_ratio_capped_at_max_multiplier():
    fast, mid, slow = _rec("f", 1000), _rec("m", 2000), _rec("s", 100000)
    norm = normalize_times_within_topic([fast, mid, slow])
    assert norm[record_key(slow)] == pytest.approx(1.0)
    assert norm[record_key(mid)] == pytest.approx(0.5)
    assert norm[record_key(fast)] == pytest.approx(0.25)


def test_topics_are_normalized_independently():
    a = _rec("a", 10000, topic="fractions")
    b = _rec("b", 1000, topic="multiplication")
    norm = normalize_times_within_topic([a, b])
    assert norm[record_key(a)] == norm[record_key(b)] == pytest.approx(0.5)


def test_log_space_outlier_excluded_from_median():
    records = [_rec(f"lo{i}", 4000) for i in range(10)] + [_rec(f"hi{i}", 6000) for i in range(10)]
    outlier = _rec("outlier", 500000)
    norm = normalize_times_within_topic(records + [outlier])

    # median của 20 mẫu còn lại = 5000 (không bị kéo lên 6000 bởi ngoại lai)
    assert norm[record_key(records[0])] == pytest.approx(0.4)
    assert norm[record_key(records[-1])] == pytest.approx(0.6)
    assert norm[record_key(outlier)] == pytest.approx(1.0)


def test_topic_median_defaults():
    assert topic_median([]) == 1.0
    assert topic_median([7.0]) == 7.0
