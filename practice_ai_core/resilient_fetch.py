"""
practice_ai_core/resilient_fetch.py
-----------------------------------
Retry với backoff theo cấp số nhân cho các lệnh gọi nguồn câu hỏi từ xa
(ngân hàng câu hỏi, API sinh câu hỏi).

✅ Điểm nổi bật:
- delay = min(initial_delay * backoff_factor^attempt, max_delay)
- Chỉ retry lỗi tạm thời (mã lỗi nằm trong retryable_error_codes)
- Lỗi thiếu index/schema không bao giờ retry
- Hết lượt hoặc lỗi vĩnh viễn: ném lại chính exception gốc
- Có bản sync (time.sleep) và async (asyncio.sleep)
"""

import asyncio
import functools
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

T = TypeVar("T")

# ==============================
# ⚙️ Logging: handler/level do settings.configure_logging cấu hình
# ==============================
logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_ERROR_CODES = (
    "unavailable",
    "deadline-exceeded",
    "resource-exhausted",
    "failed-precondition",
)


# ==============================
# 🧩 Chính sách retry
# ==============================
@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay: float = 1.0   # giây
    max_delay: float = 5.0
    backoff_factor: float = 2.0
    retryable_error_codes: Sequence[str] = DEFAULT_RETRYABLE_ERROR_CODES

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_factor <= 0:
            raise ValueError("backoff_factor must be > 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")


def compute_delay(attempt: int, policy: RetryPolicy) -> float:
    """Thời gian chờ trước lần thử attempt + 1 (attempt tính từ 0)."""
    return min(policy.initial_delay * (policy.backoff_factor ** attempt), policy.max_delay)


def _error_text(exc: BaseException) -> str:
    return str(exc).lower()


def _error_code(exc: BaseException) -> str:
    code = getattr(exc, "code", None)
    return "" if code is None else str(code).lower()


def is_missing_index_error(exc: BaseException) -> bool:
    """Lỗi thiếu index / schema: retry không thể sửa được."""
    message = _error_text(exc)
    return "index" in message or "requires an index" in message


def is_retryable_error(exc: BaseException, retryable_error_codes: Sequence[str]) -> bool:
    code = _error_code(exc)
    message = _error_text(exc)
    return any(c in code or c in message for c in retryable_error_codes)


def _should_give_up(exc: BaseException, attempt: int, policy: RetryPolicy) -> bool:
    return (
        attempt >= policy.max_retries
        or not is_retryable_error(exc, policy.retryable_error_codes)
        or is_missing_index_error(exc)
    )


# ==============================
# 📥 Hàm chính
# ==============================
def retry_with_backoff(
    fn: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Any] = time.sleep,
    label: str = "operation",
) -> T:
    """
    Gọi fn() tối đa max_retries + 1 lần.
    Lỗi không retry được / hết lượt: ném lại exception gốc.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if _should_give_up(e, attempt, policy):
                logger.error(f"🚫 {label} failed (attempt {attempt + 1}/{policy.max_retries + 1}): {e}")
                raise
            delay = compute_delay(attempt, policy)
            logger.warning(f"⚠️ Retry attempt {attempt + 1}/{policy.max_retries} for {label} after {delay:.2f}s: {e}")
            sleep(delay)
            attempt += 1


async def aretry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Bản async của retry_with_backoff; fn trả về coroutine."""
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if _should_give_up(e, attempt, policy):
                logger.error(f"🚫 {label} failed (attempt {attempt + 1}/{policy.max_retries + 1}): {e}")
                raise
            delay = compute_delay(attempt, policy)
            logger.warning(f"⚠️ Retry attempt {attempt + 1}/{policy.max_retries} for {label} after {delay:.2f}s: {e}")
            await sleep(delay)
            attempt += 1


def with_retry(policy: Optional[RetryPolicy] = None, label: Optional[str] = None):
    """
    Decorator: bọc hàm sync hoặc async bằng retry_with_backoff.

        @with_retry(RetryPolicy(max_retries=2, initial_delay=0.5))
        def load_shared(): ...
    """
    def decorator(func):
        name = label or func.__name__

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                return await aretry_with_backoff(lambda: func(*args, **kwargs), policy, label=name)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return retry_with_backoff(lambda: func(*args, **kwargs), policy, label=name)
        return wrapper

    return decorator
