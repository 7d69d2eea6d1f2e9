"""Stage-interval scheduler.

Pure functions that map a word's current progress and a review outcome to its
next progress. A correct answer moves the word one stage up and pushes its due
date out by the stage interval; a wrong answer moves it one stage down and locks
it into today's review loop until it is answered correctly.
"""
import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Mapping

from vocabtrack.config import CORRECT_ANSWERS_PER_POINT, MAX_STAGE, STAGE_INTERVALS
from vocabtrack.dates import add_days
from vocabtrack.models.progress_models import WordProgress
from vocabtrack.services.points import accrue

logger = logging.getLogger(__name__)

DEFAULT_INTERVALS = STAGE_INTERVALS["short"]


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of applying one review answer."""
    progress: WordProgress
    points_gained: int
    review_correct_since_last_point: int


def validate_intervals(intervals: Mapping[int, int]) -> Dict[int, int]:
    """Check that ``intervals`` covers every stage and never shrinks as the stage grows."""
    missing = [stage for stage in range(MAX_STAGE + 1) if stage not in intervals]
    if missing:
        raise ValueError(f"Interval table is missing stages {missing}")
    table = {stage: int(intervals[stage]) for stage in range(MAX_STAGE + 1)}
    for stage in range(1, MAX_STAGE + 1):
        if table[stage] < table[stage - 1]:
            raise ValueError(f"Interval for stage {stage} is shorter than for stage {stage - 1}")
    if table[0] < 0:
        raise ValueError("Intervals must not be negative")
    return table


def next_due(stage: int, today: date, intervals: Mapping[int, int] = DEFAULT_INTERVALS) -> date:
    """Due date of a word that reached ``stage`` on ``today``."""
    stage = max(0, min(MAX_STAGE, stage))
    return add_days(today, intervals[stage])


def enroll_progress(progress: WordProgress, today: date) -> WordProgress:
    """Put a word into review from stage 0, due today."""
    return replace(progress, enrolled=True, stage=0, due=today, loop_until=None)


def apply_outcome(
    progress: WordProgress,
    correct: bool,
    today: date,
    review_correct_since_last_point: int = 0,
    intervals: Mapping[int, int] = DEFAULT_INTERVALS,
    per_point: int = CORRECT_ANSWERS_PER_POINT,
) -> ScheduleResult:
    """Apply one review answer to ``progress`` without mutating it."""
    if not progress.enrolled:
        # A review of a word that is not in review still counts: enroll it first.
        logger.debug("Reviewing a word that is not enrolled; enrolling it for today")
        progress = replace(
            progress,
            enrolled=True,
            stage=max(0, min(MAX_STAGE, progress.stage)),
            due=progress.due or today,
        )

    if correct:
        stage = min(progress.stage + 1, MAX_STAGE)
        loop_until = None if progress.loop_until == today else progress.loop_until
        updated = replace(
            progress,
            stage=stage,
            due=next_due(stage, today, intervals),
            loop_until=loop_until,
        )
        gained, remainder = accrue(review_correct_since_last_point, per_point)
        return ScheduleResult(updated, gained, remainder)

    updated = replace(
        progress,
        stage=max(progress.stage - 1, 0),
        due=today,
        loop_until=today,
    )
    return ScheduleResult(updated, 0, review_correct_since_last_point)
