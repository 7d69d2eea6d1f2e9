"""Points accrual: one point for every ten correct review answers."""
from typing import Tuple

from vocabtrack.config import CORRECT_ANSWERS_PER_POINT


def accrue(correct_since_last_point: int, per_point: int = CORRECT_ANSWERS_PER_POINT) -> Tuple[int, int]:
    """Count one more correct answer.

    Returns ``(points_gained, remainder)``; the remainder is carried into the
    next call and always stays below ``per_point``.
    """
    counter = max(0, correct_since_last_point) + 1
    return counter // per_point, counter % per_point
