from __future__ import annotations

import random
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from mastery_core.schema import Candidate
from mastery_core.stats import clamp01
from mastery_core.subtopic_policy import normalize_subtopic

from .distractors import ensure_unique_distractors, make_option_set

# (question, correct, distractor candidates)
Built = Tuple[str, object, List[object]]


# ============================
# Generators theo subtopic
# ============================

def _scale(difficulty: float, lo: int, hi: int) -> int:
    """Độ khó [0,1] → giới hạn trên của toán hạng trong [lo, hi]."""
    return lo + round(clamp01(difficulty) * (hi - lo))


def gen_multiplication_facts(difficulty: float, rng: random.Random) -> Built:
    top = _scale(difficulty, 5, 12)
    a, b = rng.randint(2, top), rng.randint(2, top)
    return f"What is {a} × {b}?", a * b, [a * (b + 1), (a + 1) * b, a + b]


def gen_multiples_of_ten(difficulty: float, rng: random.Random) -> Built:
    a = rng.randint(2, 9)
    b = rng.randint(2, _scale(difficulty, 4, 9)) * 10
    return f"What is {a} × {b}?", a * b, [a * b // 10, a * (b + 10), (a + 1) * b]


def gen_two_digit_by_one_digit(difficulty: float, rng: random.Random) -> Built:
    a = rng.randint(11, _scale(difficulty, 20, 99))
    b = rng.randint(2, 9)
    return f"What is {a} × {b}?", a * b, [a * b + b, a * b - b, a * (b - 1)]


def gen_division_facts(difficulty: float, rng: random.Random) -> Built:
    top = _scale(difficulty, 5, 12)
    divisor, quotient = rng.randint(2, top), rng.randint(2, top)
    dividend = divisor * quotient
    return f"What is {dividend} ÷ {divisor}?", quotient, [quotient + 1, quotient - 1, divisor]


def gen_division_with_remainder(difficulty: float, rng: random.Random) -> Built:
    divisor = rng.randint(2, _scale(difficulty, 5, 9))
    quotient = rng.randint(2, _scale(difficulty, 6, 15))
    remainder = rng.randint(1, divisor - 1)
    dividend = divisor * quotient + remainder
    return (
        f"What is the remainder when {dividend} is divided by {divisor}?",
        remainder,
        [remainder + 1, divisor - remainder, quotient],
    )


def gen_unit_fraction_of_number(difficulty: float, rng: random.Random) -> Built:
    denom = rng.randint(2, _scale(difficulty, 4, 10))
    whole = denom * rng.randint(2, _scale(difficulty, 5, 12))
    return f"What is 1/{denom} of {whole}?", whole // denom, [whole - denom, whole // denom + 1, denom]


def gen_compare_fractions(difficulty: float, rng: random.Random) -> Built:
    top = _scale(difficulty, 6, 12)
    numer = rng.randint(1, top - 3)
    d1, d2 = rng.sample(range(numer + 1, top + 1), 2)
    larger = f"{numer}/{min(d1, d2)}"
    smaller = f"{numer}/{max(d1, d2)}"
    return f"Which fraction is larger: {numer}/{d1} or {numer}/{d2}?", larger, [smaller, "They are equal"]


SUBTOPICS: Dict[str, Dict[str, Callable[[float, random.Random], Built]]] = {
    "Multiplication": {
        "Basic Facts": gen_multiplication_facts,
        "Multiples of Ten": gen_multiples_of_ten,
        "Two-Digit by One-Digit": gen_two_digit_by_one_digit,
    },
    "Division": {
        "Basic Facts": gen_division_facts,
        "Remainders": gen_division_with_remainder,
    },
    "Fractions": {
        "Fraction of a Number": gen_unit_fraction_of_number,
        "Comparing Fractions": gen_compare_fractions,
    },
}


class ArithmeticGenerator:
    """
    Bộ sinh câu hỏi cục bộ cho một topic: generator(difficulty, allowed_subtopics).
    Trả None khi danh sách subtopic cho phép loại hết subtopic của topic.
    """

    def __init__(self, topic: str, rng: Optional[random.Random] = None):
        if topic not in SUBTOPICS:
            raise ValueError(f"No arithmetic generator for topic {topic!r}; choose from {sorted(SUBTOPICS)}")
        self.topic = topic
        self._rng = rng or random.Random()

    @property
    def subtopics(self) -> List[str]:
        return list(SUBTOPICS[self.topic])

    def __call__(self, difficulty: float, allowed_subtopics: Optional[Sequence[str]] = None) -> Optional[Candidate]:
        choices = self.subtopics
        if allowed_subtopics is not None:
            wanted = {normalize_subtopic(s) for s in allowed_subtopics}
            choices = [s for s in choices if normalize_subtopic(s) in wanted]
        if not choices:
            return None

        subtopic = self._rng.choice(choices)
        question, correct, raw_distractors = SUBTOPICS[self.topic][subtopic](difficulty, self._rng)
        distractors = ensure_unique_distractors(correct, raw_distractors, rng=self._rng)
        options = make_option_set(str(correct), distractors, rng=self._rng)
        return Candidate(
            question=question,
            correct_answer=str(correct),
            options=tuple(options),
            subtopic=subtopic,
            topic=self.topic,
            concept=self.topic,
            difficulty=difficulty,
        )
