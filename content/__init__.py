# content/__init__.py

"""Bộ sinh câu hỏi cục bộ (mẫu) và tiện ích tạo phương án."""

from .arithmetic import ArithmeticGenerator, SUBTOPICS
from .distractors import ensure_unique_distractors, make_option_set

__all__ = [
    "ArithmeticGenerator",
    "SUBTOPICS",
    "ensure_unique_distractors",
    "make_option_set",
]
