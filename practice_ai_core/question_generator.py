import json
import logging
import random
import time
import uuid
from typing import Any, Callable, Dict, Optional, Sequence

from mastery_core.schema import Candidate

from .resilient_fetch import RetryPolicy, retry_with_backoff
from .settings import Settings, load_settings

logger = logging.getLogger(__name__)

# Lỗi tạm thời của OpenAI / Gemini (429, timeout, 5xx)
LLM_RETRY = RetryPolicy(
    max_retries=3,
    initial_delay=2.0,
    max_delay=25.0,
    backoff_factor=2.0,
    retryable_error_codes=(
        "rate_limit", "rate limit", "timed out", "timeout", "unavailable",
        "overloaded", "resource_exhausted", "resource-exhausted", "server_error", "503", "502", "500",
    ),
)

SYSTEM_PROMPT = "You are an expert elementary math teacher who writes short practice questions."


def difficulty_label(difficulty: float) -> str:
    """Độ khó số [0,1] → nhãn dùng trong prompt."""
    if difficulty < 0.4:
        return "easy"
    if difficulty < 0.7:
        return "medium"
    return "hard"


def make_prompt(topic: str, grade: str, difficulty: float, allowed_subtopics: Optional[Sequence[str]] = None) -> str:
    subtopic_rule = (
        f"- Subtopic: chọn MỘT trong {', '.join(allowed_subtopics)}"
        if allowed_subtopics else "- Subtopic: tự chọn, ghi rõ trong trường subtopic"
    )
    return f"""
Hãy tạo 1 câu hỏi trắc nghiệm luyện tập.

YÊU CẦU:
- Topic: {topic}
- Lớp: {grade}
- Độ khó: {difficulty_label(difficulty)} ({difficulty:.2f} trên thang 0-1)
{subtopic_rule}
- Có 4 đáp án (options), một đáp án đúng DUY NHẤT
- Không có lời giải

Kết quả trả về JSON:
{{
  "question": "Câu hỏi ...",
  "options": ["...", "...", "...", "..."],
  "correctAnswer": "...",
  "subtopic": "..."
}}
"""


def parse_candidate_json(raw_text: str) -> Optional[Dict[str, Any]]:
    """Bóc JSON từ output LLM (có thể bọc trong ```json ... ```)."""
    text = (raw_text or "").strip().replace("```json", "").replace("```", "").strip()
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        fixed = text[start:end + 1].replace("\n", " ").replace("“", "\"").replace("”", "\"")
        try:
            data = json.loads(fixed)
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def _validate(data: Dict[str, Any]) -> bool:
    options = data.get("options") or []
    answer = data.get("correctAnswer")
    return bool(data.get("question")) and answer is not None and (not options or str(answer) in map(str, options))


class LLMQuestionGenerator:
    """
    Sinh câu hỏi bằng LLM, dùng làm generator(difficulty, allowed_subtopics) cho quiz.
    Lỗi API / JSON hỏng → None, không bao giờ ném exception ra ngoài.
    """

    def __init__(
        self,
        topic: str,
        grade: str = "G3",
        backend: str = "openai",
        settings: Optional[Settings] = None,
        client: Any = None,
        policy: RetryPolicy = LLM_RETRY,
        sleep: Callable[[float], Any] = time.sleep,
        temperature: float = 0.7,
        rng: Optional[random.Random] = None,
    ):
        if backend not in ("openai", "gemini"):
            raise ValueError(f"Unknown backend: {backend}")
        self.topic = topic
        self.grade = grade
        self.backend = backend
        self.settings = settings or load_settings()
        self.policy = policy
        self.temperature = temperature
        self._client = client
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def model(self) -> str:
        return self.settings.openai_model if self.backend == "openai" else self.settings.gemini_model

    def _get_client(self):
        if self._client is not None:
            return self._client
        if self.backend == "openai":
            from openai import OpenAI
            if not self.settings.openai_api_key:
                raise ValueError("❌ OPENAI_API_KEY chưa được cấu hình trong .env")
            self._client = OpenAI(api_key=self.settings.openai_api_key)
        else:
            from google import genai
            if not self.settings.google_api_key:
                raise ValueError("❌ GOOGLE_API_KEY chưa được cấu hình trong .env")
            self._client = genai.Client(api_key=self.settings.google_api_key)
        return self._client

    def _complete(self, prompt: str) -> str:
        client = self._get_client()
        if self.backend == "openai":
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
            )
            return response.choices[0].message.content or ""
        response = client.models.generate_content(model=self.model, contents=prompt)
        return response.text or ""

    def __call__(self, difficulty: float, allowed_subtopics: Optional[Sequence[str]] = None) -> Optional[Candidate]:
        prompt = make_prompt(self.topic, self.grade, difficulty, allowed_subtopics)
        try:
            raw = retry_with_backoff(lambda: self._complete(prompt), self.policy, sleep=self._sleep,
                                     label=f"{self.backend} generate")
        except Exception as e:
            logger.error(f"🚨 Không sinh được câu hỏi {self.topic}: {e}")
            return None

        data = parse_candidate_json(raw)
        if not data or not _validate(data):
            logger.warning("⚠️ JSON không hợp lệ, bỏ qua.")
            return None

        options = [str(o) for o in data.get("options") or []]
        self._rng.shuffle(options)
        data.update({
            "options": options,
            "topic": self.topic,
            "difficulty": difficulty,
            "questionId": str(uuid.uuid4()),
            "model_used": self.model,
        })
        return Candidate.from_dict(data, source="generated")
