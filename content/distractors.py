from __future__ import annotations
import random
from typing import List, Optional, Union


def ensure_unique_distractors(
    correct_value: Union[int, float, str],
    candidates: List[Union[int, float, str]],
    max_distractors: int = 3,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Chọn ra tối đa 3 distractor duy nhất khác đáp án đúng.
    Số thì bổ sung bằng các giá trị lân cận; chuỗi thì bằng phương án cố định.
    """
    rng = rng or random.Random()
    seen = {str(correct_value)}
    uniq: List[str] = []

    for value in candidates:
        s = str(value)
        if s not in seen:
            uniq.append(s)
            seen.add(s)
        if len(uniq) >= max_distractors:
            break

    if isinstance(correct_value, (int, float)):
        base = int(correct_value)
        k = 1
        while len(uniq) < max_distractors:
            for cand in (base + k, base - k):
                s = str(cand)
                if s not in seen and cand >= 0:
                    uniq.append(s)
                    seen.add(s)
                    if len(uniq) >= max_distractors:
                        break
            k += 1
    else:
        fillers = [f for f in ("None of these", "Not enough information", "Cannot be determined") if f not in seen]
        rng.shuffle(fillers)
        while len(uniq) < max_distractors and fillers:
            uniq.append(fillers.pop())

    return uniq


def make_option_set(
    correct: str,
    distractors: List[str],
    rng: Optional[random.Random] = None,
) -> List[str]:
    """Trộn đáp án đúng với tối đa 3 distractor."""
    rng = rng or random.Random()
    pool = [correct] + distractors[:3]
    rng.shuffle(pool)
    return pool
