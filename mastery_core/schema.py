# mastery_core/schema.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


def question_signature(question: Optional[str], correct_answer: Any = None) -> str:
    """
    Khóa chống trùng của một câu hỏi: nội dung + đáp án đúng.
    Hai câu cùng text nhưng khác đáp án (ví dụ đọc đồng hồ) là hai câu khác nhau.
    """
    answer = "" if correct_answer is None else str(correct_answer)
    return f"{question}|||{answer}"


def to_datetime(value: Any) -> Optional[datetime]:
    """Chuyển timestamp (datetime / epoch ms / ISO string) về datetime UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        # NaN / epoch ngoài miền datetime → coi như không có thời điểm
        try:
            return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def timestamp_ms(value: Optional[datetime]) -> float:
    """Epoch milliseconds, 0 khi không có thời điểm."""
    if value is None:
        return 0.0
    return value.timestamp() * 1000.0


# ============================
# Lịch sử trả lời
# ============================

@dataclass(frozen=True)
class AnsweredRecord:
    """
    Một lần trả lời của học sinh (dữ liệu đầu vào, bất biến).
    - question_id không cần duy nhất giữa các topic; khóa chấm điểm là (question_id, created_at)
    - question / correct_answer / signature được giữ lại để dựng mastery index
    """
    question_id: str
    topic: str
    is_correct: bool
    time_spent_ms: float
    created_at: Optional[datetime] = None

    # Optional fields
    question: Optional[str] = None
    correct_answer: Optional[str] = None
    signature: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnsweredRecord":
        """Nhận cả key snake_case lẫn camelCase cũ."""
        def pick(*keys: str, default: Any = None) -> Any:
            for k in keys:
                if k in data and data[k] is not None:
                    return data[k]
            return default

        try:
            spent = float(pick("time_spent_ms", "timeSpentMs", default=0) or 0)
        except (TypeError, ValueError):
            spent = 0.0
        answer = pick("correct_answer", "correctAnswer")
        return cls(
            question_id=str(pick("question_id", "questionId", "id", default="unknown")),
            topic=str(pick("topic", default="")),
            is_correct=bool(pick("is_correct", "isCorrect", default=False)),
            time_spent_ms=max(0.0, spent),
            created_at=to_datetime(pick("created_at", "createdAt")),
            question=pick("question"),
            correct_answer=None if answer is None else str(answer),
            signature=pick("signature"),
            user_id=pick("user_id", "userId"),
        )

    def mastery_signature(self) -> Optional[str]:
        if self.question:
            return question_signature(self.question, self.correct_answer)
        return self.signature


@dataclass(frozen=True)
class ScoredRecord:
    """AnsweredRecord + complexity_score ∈ [0,1]."""
    record: AnsweredRecord
    complexity_score: float

    @property
    def question_id(self) -> str:
        return self.record.question_id

    @property
    def topic(self) -> str:
        return self.record.topic

    @property
    def is_correct(self) -> bool:
        return self.record.is_correct

    @property
    def time_spent_ms(self) -> float:
        return self.record.time_spent_ms

    @property
    def created_at(self) -> Optional[datetime]:
        return self.record.created_at


@dataclass(frozen=True)
class TopicAggregate:
    """
    Thống kê độ phức tạp theo topic:
    - avg_complexity: trung bình trên HISTORY_WINDOW bản ghi đứng đầu bảng xếp hạng
    - count: tổng số bản ghi của topic
    """
    topic: str
    avg_complexity: float
    count: int
    last_answered_at: Optional[datetime] = None


@dataclass
class MasteryEntry:
    total_complexity: float = 0.0
    count: int = 0

    def average(self) -> float:
        return self.total_complexity / self.count if self.count else 0.0


# ============================
# Câu hỏi ứng viên
# ============================

@dataclass(frozen=True)
class Candidate:
    """
    Câu hỏi ứng viên cho quiz (từ ngân hàng câu hỏi hoặc sinh tự động).
    Sau khi được nhận vào quiz thì không bị sửa nữa.
    """
    question: str
    correct_answer: str
    options: Tuple[str, ...] = ()
    subtopic: Optional[str] = None
    concept: Optional[str] = None
    topic: Optional[str] = None
    question_id: Optional[str] = None
    source: str = "generated"  # generated | questionBank | sharedQuestionBank
    collection: Optional[str] = None
    difficulty: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def signature(self) -> str:
        return question_signature(self.question, self.correct_answer)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "generated") -> "Candidate":
        """
        Dựng Candidate từ dict lỏng lẻo (Firestore cũ, JSON do LLM trả về...).
        Hỗ trợ "correctAnswer" hoặc cặp "choices" + "answer_index".
        """
        known = {
            "question", "correct_answer", "correctAnswer", "options", "choices",
            "answer_index", "subtopic", "concept", "topic", "question_id",
            "questionId", "id", "source", "collection", "difficulty",
        }
        options = data.get("options") or data.get("choices") or ()
        options = tuple(str(o) for o in options)

        answer = data.get("correct_answer", data.get("correctAnswer"))
        if answer is None and "answer_index" in data and options:
            try:
                answer = options[int(data["answer_index"])]
            except (TypeError, ValueError, IndexError):
                answer = None

        difficulty = data.get("difficulty")
        if not isinstance(difficulty, (int, float)) or isinstance(difficulty, bool):
            difficulty = None

        qid = data.get("question_id", data.get("questionId", data.get("id")))
        return cls(
            question=str(data.get("question") or ""),
            correct_answer="" if answer is None else str(answer),
            options=options,
            subtopic=data.get("subtopic") or None,
            concept=data.get("concept"),
            topic=data.get("topic"),
            question_id=None if qid is None else str(qid),
            source=str(data.get("source") or source),
            collection=data.get("collection"),
            difficulty=difficulty,
            metadata={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.metadata)
        out.update({
            "question": self.question,
            "correctAnswer": self.correct_answer,
            "options": list(self.options),
            "subtopic": self.subtopic,
            "concept": self.concept,
            "topic": self.topic,
            "questionId": self.question_id,
            "source": self.source,
            "collection": self.collection,
            "difficulty": self.difficulty,
        })
        return {k: v for k, v in out.items() if v is not None}


# ============================
# Kết quả sinh quiz
# ============================

class ExitReason(Enum):
    QUOTA_REACHED = "quota_reached"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    FILTERED_OUT = "filtered_out"


@dataclass
class QuizResult:
    """Danh sách câu hỏi đã nhận + lý do dừng và số liệu chẩn đoán."""
    questions: List[Candidate]
    requested: int
    exit_reason: ExitReason
    attempts: int = 0
    max_attempts: int = 0
    filtered_by_subtopic: int = 0
    generator_misses: int = 0
    remote_used: int = 0

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - len(self.questions))

    @property
    def is_complete(self) -> bool:
        return self.exit_reason is ExitReason.QUOTA_REACHED

    def __len__(self) -> int:
        return len(self.questions)

    def __iter__(self):
        return iter(self.questions)
