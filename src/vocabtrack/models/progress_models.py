"""Progress state models persisted as one snapshot document."""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional

from vocabtrack.dates import format_day

SCHEMA_VERSION = 3


@dataclass
class WordProgress:
    """Review state of one word for one user."""
    enrolled: bool = False
    stage: int = 0  # 0..6, internal only
    due: Optional[date] = None
    loop_until: Optional[date] = None  # set to today after a wrong answer
    seen_count: int = 0
    remembered_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enrolled": self.enrolled,
            "stage": self.stage,
            "due": format_day(self.due) if self.due else None,
            "loopUntil": format_day(self.loop_until) if self.loop_until else None,
            "seenCount": self.seen_count,
            "rememberedCount": self.remembered_count,
        }


@dataclass
class UserState:
    """Points and per-word progress of one user."""
    points: int = 0
    review_correct_since_last_point: int = 0
    words: Dict[str, WordProgress] = field(default_factory=dict)

    def ensure_word(self, word_id: str) -> WordProgress:
        """Return the record for ``word_id``, creating a default one if absent."""
        if word_id not in self.words:
            self.words[word_id] = WordProgress()
        return self.words[word_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": self.points,
            "reviewCorrectSinceLastPoint": self.review_correct_since_last_point,
            "words": {word_id: progress.to_dict() for word_id, progress in self.words.items()},
        }


@dataclass
class RootState:
    """The whole persisted snapshot: every user's progress."""
    active_user_id: str
    users: Dict[str, UserState] = field(default_factory=dict)
    schema_version: int = SCHEMA_VERSION

    def ensure_user(self, user_id: Optional[str] = None) -> str:
        """Return ``user_id`` (or the active user when empty), creating its entry if absent."""
        uid = user_id or self.active_user_id
        if uid not in self.users:
            self.users[uid] = UserState()
        return uid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "activeUserId": self.active_user_id,
            "users": {user_id: user.to_dict() for user_id, user in self.users.items()},
        }
