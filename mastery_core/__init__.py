# mastery_core/__init__.py

"""
Engine độ phức tạp thích ứng cho nền tảng luyện tập

Bao gồm:
- Thống kê cơ bản (clamp, percentile, Welford) và chuẩn hóa thời gian theo topic
- Điểm độ phức tạp cho từng lần trả lời, tổng hợp theo topic
- Đề xuất độ khó mục tiêu tiếp theo
- Bộ lấy mẫu quiz có thiên lệch theo mastery, chống trùng, lọc subtopic

Các thành phần xuất khẩu phổ biến:
    AnsweredRecord, Candidate, QuizResult, ExitReason
    rank_questions_by_complexity, compute_per_topic_complexity, next_target_complexity
    generate_quiz_questions, adapt_answered_history
"""

# Schema models
from .schema import (
    AnsweredRecord,
    ScoredRecord,
    TopicAggregate,
    MasteryEntry,
    Candidate,
    QuizResult,
    ExitReason,
    question_signature,
)

# Stats kernel
from .stats import (
    clamp01,
    percentile,
    online_mean_variance,
)

# Scoring, aggregation & planning
from .complexity_engine import (
    TIME_WEIGHT,
    INCORRECT_WEIGHT,
    HISTORY_WINDOW,
    PROGRESS_STEP,
    MIN_COMPLEXITY,
    MAX_COMPLEXITY,
    COMPLEXITY_TUNABLES,
    rank_questions_by_complexity,
    compute_per_topic_complexity,
    next_target_complexity,
)
from .time_normalizer import (
    MAX_TIME_MULTIPLIER,
    normalize_times_within_topic,
)

# History & eligibility helpers
from .history_adapter import adapt_answered_history
from .subtopic_policy import is_subtopic_allowed

# Quiz sampling
from .quiz_sampler import (
    DEFAULT_DAILY_GOAL,
    SamplerConfig,
    build_mastery_index,
    generate_quiz_questions,
    resolve_daily_goal,
)
from .topic_availability import get_topic_availability


__all__ = [
    # Schema
    "AnsweredRecord",
    "ScoredRecord",
    "TopicAggregate",
    "MasteryEntry",
    "Candidate",
    "QuizResult",
    "ExitReason",
    "question_signature",

    # Stats
    "clamp01",
    "percentile",
    "online_mean_variance",

    # Complexity engine
    "TIME_WEIGHT",
    "INCORRECT_WEIGHT",
    "MAX_TIME_MULTIPLIER",
    "HISTORY_WINDOW",
    "PROGRESS_STEP",
    "MIN_COMPLEXITY",
    "MAX_COMPLEXITY",
    "COMPLEXITY_TUNABLES",
    "normalize_times_within_topic",
    "rank_questions_by_complexity",
    "compute_per_topic_complexity",
    "next_target_complexity",

    # Helpers
    "adapt_answered_history",
    "is_subtopic_allowed",

    # Quiz sampler
    "DEFAULT_DAILY_GOAL",
    "SamplerConfig",
    "build_mastery_index",
    "generate_quiz_questions",
    "resolve_daily_goal",
    "get_topic_availability",
]
