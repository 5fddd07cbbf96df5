# mastery_core/subtopic_policy.py

from typing import Any, Mapping, Optional, Sequence

AllowedSubtopics = Optional[Mapping[str, Sequence[str]]]


def normalize_subtopic(value: str) -> str:
    return value.strip().lower()


def has_subtopic_restrictions(allowed_subtopics_by_topic: AllowedSubtopics) -> bool:
    return bool(allowed_subtopics_by_topic)


def allowed_subtopics_for(topic: str, allowed_subtopics_by_topic: AllowedSubtopics) -> Optional[Sequence[str]]:
    if not allowed_subtopics_by_topic:
        return None
    return allowed_subtopics_by_topic.get(topic)


def _subtopic_of(question: Any) -> Optional[str]:
    if isinstance(question, Mapping):
        return question.get("subtopic")
    return getattr(question, "subtopic", None)


def is_subtopic_allowed(question: Any, topic: str, allowed_subtopics_by_topic: AllowedSubtopics) -> bool:
    """
    Kiểm tra subtopic của câu hỏi theo giới hạn đăng ký lớp học.
    - Không có giới hạn cho topic: cho qua
    - Danh sách cho phép rỗng: chặn hết
    - Câu hỏi không có subtopic (dữ liệu cũ): cho qua
    - So khớp không phân biệt hoa thường, bỏ khoảng trắng hai đầu
    """
    allowed = allowed_subtopics_for(topic, allowed_subtopics_by_topic)
    if allowed is None:
        return True
    if len(allowed) == 0:
        return False

    subtopic = _subtopic_of(question)
    if not subtopic:
        return True

    wanted = normalize_subtopic(subtopic)
    return any(normalize_subtopic(a) == wanted for a in allowed)
