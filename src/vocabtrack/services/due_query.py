"""Which enrolled words are up for review on a given day."""
from datetime import date
from typing import Iterable, List, Optional

from vocabtrack.models.progress_models import UserState, WordProgress


def is_due(progress: Optional[WordProgress], today: date) -> bool:
    """A word is due when enrolled and either looping today or past its due date."""
    if progress is None or not progress.enrolled:
        return False
    if progress.loop_until == today:
        return True
    return progress.due is not None and progress.due <= today


def due_word_ids(user: UserState, candidate_ids: Optional[Iterable[str]], today: date) -> List[str]:
    """Due words among ``candidate_ids`` in input order.

    Ids the user has no record for are skipped. With no candidates every
    tracked word is considered.
    """
    source = user.words.keys() if candidate_ids is None else candidate_ids
    due = []
    seen = set()
    for word_id in source:
        if word_id in seen:
            continue
        seen.add(word_id)
        if is_due(user.words.get(word_id), today):
            due.append(word_id)
    return due
