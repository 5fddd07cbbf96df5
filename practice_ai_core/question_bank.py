"""
practice_ai_core/question_bank.py
-----------------------------------
Ngân hàng câu hỏi lưu dạng JSON, đóng vai nguồn câu hỏi "từ xa" cho quiz.

Thứ tự ưu tiên (cao → thấp):
    1) Câu hỏi của lớp:      <base>/classes/<class_id>/questions.json   (có cache TTL)
    2) Ngân hàng riêng:      <base>/users/<user_id>/questionBank.json
    3) Ngân hàng dùng chung: <base>/sharedQuestionBank.json

Mỗi nguồn được đọc qua retry_with_backoff; lỗi của từng nguồn được ghi lại,
chỉ ném QuestionBankError khi không lấy được câu nào.
"""

import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from mastery_core.schema import Candidate, question_signature
from mastery_core.subtopic_policy import AllowedSubtopics, is_subtopic_allowed

from .resilient_fetch import RetryPolicy, is_missing_index_error, retry_with_backoff

logger = logging.getLogger(__name__)

CLASS_CACHE_TTL_SECONDS = 5 * 60

CLASS_RETRY = RetryPolicy(max_retries=3, initial_delay=1.0)
USER_RETRY = RetryPolicy(max_retries=2, initial_delay=0.5)
SHARED_RETRY = RetryPolicy(max_retries=2, initial_delay=0.5)

Loader = Callable[[str], List[Dict[str, Any]]]


class QuestionBankError(Exception):
    """Không lấy được câu hỏi nào và có ít nhất một nguồn bị lỗi."""

    def __init__(self, message: str, errors: Dict[str, Dict[str, str]]):
        super().__init__(message)
        self.errors = errors


def _load_json(path: str) -> List[Dict[str, Any]]:
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of questions")
    return data


# ==============================
# 🗃️ Cache câu hỏi của lớp
# ==============================
class ClassQuestionCache:
    """Cache trong bộ nhớ có TTL, khóa theo (app_id, class_id, topic, grade)."""

    def __init__(self, ttl_seconds: float = CLASS_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, str, str, str], Tuple[float, List[Dict[str, Any]]]] = {}

    def get(self, app_id: str, class_id: str, topic: str, grade: str) -> Optional[List[Dict[str, Any]]]:
        key = (app_id, class_id, topic, grade)
        hit = self._entries.get(key)
        if hit is None:
            return None
        stored_at, questions = hit
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return [dict(q) for q in questions]

    def set(self, app_id: str, class_id: str, topic: str, grade: str, questions: Sequence[Mapping[str, Any]]) -> None:
        self._entries[(app_id, class_id, topic, grade)] = (self._clock(), [dict(q) for q in questions])

    def clear(self, class_id: Optional[str] = None) -> None:
        if class_id is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[1] == class_id]:
            del self._entries[key]


@dataclass
class FetchReport:
    candidates: List[Candidate] = field(default_factory=list)
    errors: Dict[str, Dict[str, str]] = field(default_factory=dict)


# ==============================
# 🏦 Ngân hàng câu hỏi
# ==============================
class QuestionBank:
    def __init__(
        self,
        base_dir: str = "data",
        app_id: str = "default-app-id",
        loader: Optional[Loader] = None,
        cache: Optional[ClassQuestionCache] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        self.base_dir = base_dir
        self.app_id = app_id
        self._load = loader or _load_json
        self.cache = cache or ClassQuestionCache()
        self._sleep = sleep

    # ------------------------------
    # 📁 Đường dẫn các collection
    # ------------------------------
    def class_path(self, class_id: str) -> str:
        return os.path.join(self.base_dir, "classes", class_id, "questions.json")

    def user_path(self, user_id: str) -> str:
        return os.path.join(self.base_dir, "users", user_id, "questionBank.json")

    def shared_path(self) -> str:
        return os.path.join(self.base_dir, "sharedQuestionBank.json")

    def _query(self, path: str, topic: str, grade: str, policy: RetryPolicy, label: str) -> List[Dict[str, Any]]:
        rows = retry_with_backoff(lambda: self._load(path), policy, sleep=self._sleep, label=label)
        return [r for r in rows if r.get("topic") == topic and r.get("grade") == grade]

    # ------------------------------
    # 📥 Lấy câu hỏi cho quiz
    # ------------------------------
    def fetch_with_report(
        self,
        topic: str,
        grade: str,
        user_id: Optional[str] = None,
        class_id: Optional[str] = None,
        answered_question_ids: Iterable[str] = (),
        allowed_subtopics_by_topic: AllowedSubtopics = None,
    ) -> FetchReport:
        report = FetchReport()
        answered: Set[str] = set(answered_question_ids or ())
        seen: Set[str] = set()

        def take(rows: Iterable[Mapping[str, Any]], source: str, collection: str) -> int:
            added = 0
            for row in rows:
                qid = row.get("questionId") or row.get("id")
                if not qid:
                    logger.warning(f"[{collection}] question missing id, skipping")
                    continue
                if not is_subtopic_allowed(row, topic, allowed_subtopics_by_topic):
                    continue
                if qid in answered or qid in seen:
                    continue
                seen.add(qid)
                data = dict(row)
                data.update({"questionId": qid, "source": source, "collection": collection})
                report.candidates.append(Candidate.from_dict(data, source=source))
                added += 1
            return added

        sources = []
        if class_id:
            sources.append(("classQuestions", "questionBank", lambda: self._class_rows(class_id, topic, grade)))
        if user_id:
            sources.append(("questionBank", "questionBank",
                            lambda: self._query(self.user_path(user_id), topic, grade, USER_RETRY, "user questionBank")))
        sources.append(("sharedQuestionBank", "sharedQuestionBank",
                        lambda: self._query(self.shared_path(), topic, grade, SHARED_RETRY, "shared questionBank")))

        for collection, source, fetch in sources:
            try:
                rows = fetch()
            except Exception as e:
                kind = "index" if is_missing_index_error(e) else "query"
                logger.error(f"[fetch_remote_candidates] Error fetching {collection}: {e}")
                report.errors[collection] = {"type": kind, "message": f"Failed to load {collection}: {e}"}
                continue
            added = take(rows, source, collection)
            logger.info(f"[fetch_remote_candidates] {collection}: {added} usable of {len(rows)} for {topic}/{grade}")

        if not report.candidates and report.errors:
            raise QuestionBankError(self._failure_message(report.errors), report.errors)
        return report

    def fetch_remote_candidates(self, topic: str, grade: str, **filters) -> List[Candidate]:
        """Danh sách câu hỏi đã lọc và chống trùng theo id, theo thứ tự ưu tiên."""
        return self.fetch_with_report(topic, grade, **filters).candidates

    def _class_rows(self, class_id: str, topic: str, grade: str) -> List[Dict[str, Any]]:
        cached = self.cache.get(self.app_id, class_id, topic, grade)
        if cached:
            logger.info(f"Using cached class questions for {class_id}/{topic}/{grade}")
            return cached
        rows = self._query(self.class_path(class_id), topic, grade, CLASS_RETRY, "class questions")
        if rows:
            self.cache.set(self.app_id, class_id, topic, grade, rows)
        return rows

    @staticmethod
    def _failure_message(errors: Dict[str, Dict[str, str]]) -> str:
        if any(e["type"] == "index" for e in errors.values()):
            return "Database index required. Check the logs for the missing index details."
        if "classQuestions" in errors:
            return f"Failed to load class questions. {errors['classQuestions']['message']}"
        details = "; ".join(f"{src}: {e['message']}" for src, e in errors.items())
        return f"Failed to load questions: {details}"

    # ------------------------------
    # 💾 Ghi câu hỏi mới
    # ------------------------------
    def save_questions(self, path: str, questions: Sequence[Candidate], grade: str) -> int:
        """Thêm câu hỏi vào một collection, bỏ qua câu trùng signature. Trả về số câu đã thêm."""
        existing = _load_json(path)
        known = {question_signature(q.get("question"), q.get("correctAnswer")) for q in existing}

        added = 0
        for q in questions:
            if q.signature in known:
                continue
            row = q.to_dict()
            row.setdefault("questionId", q.question_id or str(uuid.uuid4()))
            row["grade"] = grade
            existing.append(row)
            known.add(q.signature)
            added += 1

        if not added:
            logger.warning("⚠️ Không có câu hỏi mới (trùng signature).")
            return 0

        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(existing, f, ensure_ascii=False, indent=2)
        logger.info(f"📦 Lưu {added} câu hỏi mới vào {path}")
        return added
