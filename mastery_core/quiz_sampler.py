# mastery_core/quiz_sampler.py

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Union

from .complexity_engine import HistoryLike, rank_questions_by_complexity
from .schema import Candidate, ExitReason, MasteryEntry, QuizResult, ScoredRecord
from .subtopic_policy import (
    AllowedSubtopics,
    allowed_subtopics_for,
    has_subtopic_restrictions,
    is_subtopic_allowed,
)

logger = logging.getLogger(__name__)

DEFAULT_DAILY_GOAL = 4

CandidateLike = Union[Candidate, Mapping[str, Any]]
# generator(difficulty, allowed_subtopics) -> Candidate | dict | None
CandidateGenerator = Callable[[float, Optional[Sequence[str]]], Optional[CandidateLike]]


@dataclass(frozen=True)
class SamplerConfig:
    """Các hằng số điều khiển vòng lặp lấy mẫu câu hỏi."""
    attempt_multiplier: int = 10
    restricted_attempt_multiplier: int = 30   # khi có giới hạn subtopic cần thử nhiều hơn
    max_consecutive_filtered: int = 50
    baseline_accept_prob: float = 0.7         # câu chưa từng gặp
    mastered_accept_prob: float = 0.1         # câu đã thành thạo hoàn toàn
    relax_start: float = 0.3                  # bắt đầu nới xác suất sau 30% số lượt thử
    question_bank_probability: float = 0.7


DEFAULT_SAMPLER_CONFIG = SamplerConfig()


def resolve_daily_goal(daily_goals: Optional[Mapping[str, int]], topic: str) -> int:
    if daily_goals and daily_goals.get(topic):
        return int(daily_goals[topic])
    return DEFAULT_DAILY_GOAL


# ============================
# Mastery index
# ============================

def build_mastery_index(ranked: Sequence[ScoredRecord]) -> Dict[str, MasteryEntry]:
    """
    Gom độ phức tạp theo signature câu hỏi trên toàn bộ lịch sử (mọi topic).
    Câu hay làm sai/chậm có trung bình cao → được ưu tiên hỏi lại.
    """
    index: Dict[str, MasteryEntry] = {}
    for s in ranked:
        sig = s.record.mastery_signature()
        if not sig:
            continue
        entry = index.setdefault(sig, MasteryEntry())
        entry.total_complexity += s.complexity_score
        entry.count += 1
    return index


def acceptance_probability(
    entry: Optional[MasteryEntry],
    attempts: int,
    max_attempts: int,
    config: SamplerConfig = DEFAULT_SAMPLER_CONFIG,
) -> float:
    """
    Xác suất nhận một câu sinh tự động:
    - đã gặp: floor + (1 - floor) * need, need = min(1, avg complexity)
    - chưa gặp: baseline
    Sau relax_start * max_attempts lượt thử, kéo tuyến tính về 1.0.
    """
    if entry is not None and entry.count > 0:
        need = min(1.0, entry.average())
        floor = config.mastered_accept_prob
        prob = floor + (1.0 - floor) * need
    else:
        prob = config.baseline_accept_prob

    progress = attempts / max_attempts if max_attempts else 1.0
    if progress > config.relax_start:
        relax = min(1.0, (progress - config.relax_start) / (1.0 - config.relax_start))
        prob = prob + (1.0 - prob) * relax
    return prob


def _as_candidate(raw: Optional[CandidateLike], source: str) -> Optional[Candidate]:
    if raw is None:
        return None
    if isinstance(raw, Candidate):
        return raw
    if isinstance(raw, Mapping):
        return Candidate.from_dict(raw, source=source)
    return None


def _log_shortfall(
    topic: str,
    accepted: int,
    requested: int,
    exit_reason: ExitReason,
    max_attempts: int,
    filtered: int,
    restricted: bool,
    config: SamplerConfig,
) -> None:
    parts = [f"Could only generate {accepted} unique questions out of {requested} requested for {topic}"]
    if exit_reason is ExitReason.ATTEMPTS_EXHAUSTED:
        parts.append(f"(reached maximum attempts limit: {max_attempts})")
    if exit_reason is ExitReason.FILTERED_OUT:
        parts.append(
            f"stopped after {config.max_consecutive_filtered} consecutive questions were filtered by subtopic restrictions"
        )
    if filtered > 0:
        parts.append(f"{filtered} question{'s were' if filtered > 1 else ' was'} filtered out due to subtopic restrictions")
    if restricted and accepted == 0:
        parts.append("No valid questions found matching the subtopic restrictions. Consider reviewing the Focus settings for this student")
    logger.warning(". ".join(parts) + ".")


# ============================
# Sinh quiz
# ============================

def generate_quiz_questions(
    topic: str,
    daily_goal: Optional[int],
    history: HistoryLike,
    difficulty: float,
    remote_candidates: Optional[Sequence[CandidateLike]] = None,
    generator: Optional[CandidateGenerator] = None,
    question_bank_probability: Optional[float] = None,
    allowed_subtopics_by_topic: AllowedSubtopics = None,
    rng: Optional[random.Random] = None,
    config: SamplerConfig = DEFAULT_SAMPLER_CONFIG,
) -> QuizResult:
    """
    Ghép quiz gồm daily_goal câu không trùng signature.

    Mỗi lượt thử:
        1) Với xác suất question_bank_probability lấy câu kế tiếp từ ngân hàng
           (chỉ số luôn tăng, câu trùng thì chuyển sang sinh tự động)
        2) Ngược lại gọi generator(difficulty, allowed_subtopics[topic])
        3) Loại câu có subtopic không được phép (tính vào chuỗi bị lọc liên tiếp)
        4) Câu ngân hàng: nhận nếu chưa dùng; câu sinh: nhận theo mastery index

    Dừng khi đủ câu, hết lượt thử, hoặc bị lọc liên tiếp max_consecutive_filtered lần.
    Không bao giờ ném lỗi vì thiếu câu: trả về QuizResult ngắn hơn kèm lý do dừng.
    """
    if question_bank_probability is None:
        question_bank_probability = config.question_bank_probability
    if not 0.0 <= question_bank_probability <= 1.0:
        raise ValueError(f"question_bank_probability must be in [0, 1], got {question_bank_probability}")

    rng = rng or random.Random()
    remote = list(remote_candidates or [])

    ranked = rank_questions_by_complexity(history)
    mastery = build_mastery_index(ranked)

    num_questions = max(1, int(DEFAULT_DAILY_GOAL if daily_goal is None else daily_goal))
    restricted = has_subtopic_restrictions(allowed_subtopics_by_topic)
    multiplier = config.restricted_attempt_multiplier if restricted else config.attempt_multiplier
    max_attempts = num_questions * multiplier
    allowed_for_topic = allowed_subtopics_for(topic, allowed_subtopics_by_topic)

    questions: List[Candidate] = []
    used: Set[str] = set()
    attempts = 0
    remote_index = 0
    remote_used = 0
    filtered = 0
    consecutive_filtered = 0
    generator_misses = 0
    exit_reason = ExitReason.ATTEMPTS_EXHAUSTED

    while len(questions) < num_questions and attempts < max_attempts:
        if consecutive_filtered >= config.max_consecutive_filtered:
            exit_reason = ExitReason.FILTERED_OUT
            break
        attempts += 1

        candidate: Optional[Candidate] = None
        from_remote = False

        if remote_index < len(remote) and rng.random() < question_bank_probability:
            drawn = _as_candidate(remote[remote_index], "questionBank")
            remote_index += 1
            if drawn is not None and drawn.question and drawn.signature not in used:
                candidate = replace(drawn, concept=drawn.topic or drawn.concept or topic)
                from_remote = True

        if not from_remote:
            raw = generator(difficulty, allowed_for_topic) if generator else None
            generated = _as_candidate(raw, "generated")
            if generated is not None:
                candidate = replace(generated, concept=topic)

        if candidate is None or not candidate.question:
            generator_misses += 1
            continue

        if not is_subtopic_allowed(candidate, topic, allowed_subtopics_by_topic):
            filtered += 1
            consecutive_filtered += 1
            continue

        sig = candidate.signature
        if from_remote:
            accept = sig not in used
        else:
            prob = acceptance_probability(mastery.get(sig), attempts, max_attempts, config)
            logger.debug("Generated candidate %r acceptProb=%.3f", candidate.question, prob)
            accept = rng.random() <= prob and sig not in used

        if accept:
            used.add(sig)
            questions.append(candidate)
            consecutive_filtered = 0
            if from_remote:
                remote_used += 1

    if len(questions) >= num_questions:
        exit_reason = ExitReason.QUOTA_REACHED
    else:
        # chuỗi bị lọc có thể chạm ngưỡng đúng ở lượt thử cuối cùng
        if consecutive_filtered >= config.max_consecutive_filtered:
            exit_reason = ExitReason.FILTERED_OUT
        _log_shortfall(topic, len(questions), num_questions, exit_reason, max_attempts, filtered, restricted, config)

    return QuizResult(
        questions=questions,
        requested=num_questions,
        exit_reason=exit_reason,
        attempts=attempts,
        max_attempts=max_attempts,
        filtered_by_subtopic=filtered,
        generator_misses=generator_misses,
        remote_used=remote_used,
    )
