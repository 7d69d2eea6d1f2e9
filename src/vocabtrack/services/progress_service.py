"""Progress service: per-user word progress, review results, points and reset."""
import logging
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from vocabtrack import monitoring
from vocabtrack.config import ProgressSettings, settings
from vocabtrack.dates import today as local_today
from vocabtrack.models.progress_models import RootState, WordProgress
from vocabtrack.services.due_query import due_word_ids
from vocabtrack.services.normalizer import normalize
from vocabtrack.services.scheduler import apply_outcome, enroll_progress, validate_intervals
from vocabtrack.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


class InvalidBackupError(ValueError):
    """An imported backup is not a backup document."""


@dataclass(frozen=True)
class ReviewResult:
    """What a caller needs after a progress change; stage is for scheduling, not for display."""
    stage: int
    due: Optional[date]
    enrolled: bool
    points_gained: int = 0


@dataclass(frozen=True)
class ResetResult:
    """Result of a reset attempt."""
    ok: bool


class ProgressService:
    """Service for reading and updating learners' word progress.

    Every call loads a fresh snapshot from the store, works on it and saves it
    back when it changed. No state is kept between calls.
    """

    def __init__(self, store: SnapshotStore, config: Optional[ProgressSettings] = None):
        """Initialize the service with a snapshot store."""
        self.store = store
        self.config = config or settings.progress
        self.intervals = validate_intervals(self.config.stage_intervals)

    def _today(self, today: Optional[date]) -> date:
        return today or local_today()

    def _load(self, today: Optional[date] = None) -> RootState:
        return self.store.load(today, self.config)

    def _result(self, progress: WordProgress, points_gained: int = 0) -> ReviewResult:
        return ReviewResult(progress.stage, progress.due, progress.enrolled, points_gained)

    def get_active_user(self) -> str:
        """Get the id of the active user."""
        return self._load().active_user_id

    def set_active_user(self, user_id: str) -> str:
        """Make ``user_id`` the active user, creating it if needed."""
        state = self._load()
        uid = state.ensure_user(user_id)
        state.active_user_id = uid
        self.store.save(state)
        logger.info(f"Active user set to {uid}")
        return uid

    def get_points(self, user_id: Optional[str] = None) -> int:
        """Get a user's points."""
        state = self._load()
        uid = state.ensure_user(user_id)
        return state.users[uid].points

    def get_progress(self, user_id: Optional[str], word_id: str) -> WordProgress:
        """Get a copy of a word's progress, creating the default record if absent."""
        state = self._load()
        known_users = set(state.users)
        uid = state.ensure_user(user_id)
        user = state.users[uid]
        created = uid not in known_users or word_id not in user.words
        progress = user.ensure_word(word_id)
        if created:
            self.store.save(state)
        return replace(progress)

    def is_enrolled(self, user_id: Optional[str], word_id: str) -> bool:
        """Whether a word is in review; does not create a record."""
        state = self._load()
        uid = state.ensure_user(user_id)
        progress = state.users[uid].words.get(word_id)
        return bool(progress and progress.enrolled)

    def enroll(self, user_id: Optional[str], word_id: str, today: Optional[date] = None) -> WordProgress:
        """Put a word into review from stage 0, due today."""
        day = self._today(today)
        state = self._load(day)
        uid = state.ensure_user(user_id)
        user = state.users[uid]
        progress = enroll_progress(user.ensure_word(word_id), day)
        progress.remembered_count = min(progress.remembered_count + 1, self.config.counter_cap)
        user.words[word_id] = progress
        self.store.save(state)

        monitoring.enrollments.inc()
        logger.info(f"User {uid} enrolled word {word_id}, due {progress.due}")
        return replace(progress)

    def unenroll(self, user_id: Optional[str], word_id: str) -> WordProgress:
        """Take a word out of review. Its stage is kept."""
        state = self._load()
        uid = state.ensure_user(user_id)
        progress = state.users[uid].ensure_word(word_id)
        progress.enrolled = False
        progress.due = None
        progress.loop_until = None
        self.store.save(state)

        monitoring.unenrollments.inc()
        logger.info(f"User {uid} unenrolled word {word_id}")
        return replace(progress)

    def touch_seen(self, user_id: Optional[str], word_id: str) -> int:
        """Count one more time a word was shown. Returns the new count."""
        state = self._load()
        uid = state.ensure_user(user_id)
        progress = state.users[uid].ensure_word(word_id)
        progress.seen_count = min(progress.seen_count + 1, self.config.counter_cap)
        self.store.save(state)
        return progress.seen_count

    def apply_review_result(
        self,
        user_id: Optional[str],
        word_id: str,
        correct: bool,
        today: Optional[date] = None,
    ) -> ReviewResult:
        """Record a review answer and reschedule the word."""
        day = self._today(today)
        state = self._load(day)
        uid = state.ensure_user(user_id)
        user = state.users[uid]

        result = apply_outcome(
            user.ensure_word(word_id),
            correct,
            day,
            review_correct_since_last_point=user.review_correct_since_last_point,
            intervals=self.intervals,
            per_point=self.config.correct_answers_per_point,
        )
        user.words[word_id] = result.progress
        user.review_correct_since_last_point = result.review_correct_since_last_point
        if result.points_gained:
            user.points = min(user.points + result.points_gained, self.config.points_cap)
        self.store.save(state)

        monitoring.reviews.labels(outcome="correct" if correct else "wrong").inc()
        logger.debug(f"User {uid} word {word_id} now at stage {result.progress.stage}, due {result.progress.due}")
        if result.points_gained:
            monitoring.points_awarded.inc(result.points_gained)
            logger.info(f"User {uid} gained {result.points_gained} point(s), total {user.points}")
        return self._result(result.progress, result.points_gained)

    def due_word_ids(
        self,
        user_id: Optional[str],
        candidate_ids: Optional[Iterable[str]] = None,
        today: Optional[date] = None,
    ) -> List[str]:
        """Ids among ``candidate_ids`` that are due on ``today`` or earlier, in input order."""
        day = self._today(today)
        state = self._load(day)
        uid = state.ensure_user(user_id)
        return due_word_ids(state.users[uid], candidate_ids, day)

    def reset_pin_hint(self) -> str:
        """PIN to show on the guardian-facing settings screen."""
        return self.config.reset_pin

    def reset_user(self, user_id: Optional[str], supplied_pin: Any) -> ResetResult:
        """Clear a user's points and word progress if ``supplied_pin`` matches."""
        if str(supplied_pin if supplied_pin is not None else "") != self.config.reset_pin:
            monitoring.resets.labels(result="rejected").inc()
            logger.warning("Progress reset rejected: wrong PIN")
            return ResetResult(ok=False)

        state = self._load()
        uid = state.ensure_user(user_id)
        user = state.users[uid]
        user.points = 0
        user.review_correct_since_last_point = 0
        user.words = {word_id: WordProgress() for word_id in user.words}
        self.store.save(state)

        monitoring.resets.labels(result="ok").inc()
        logger.info(f"Progress reset for user {uid}")
        return ResetResult(ok=True)

    def export_backup(self) -> Dict[str, Any]:
        """Export the current snapshot wrapped in a backup envelope."""
        state = self._load()
        return {
            "backup_version": BACKUP_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            "state": state.to_dict(),
        }

    def import_backup(self, backup: Any) -> Dict[str, Any]:
        """Replace the stored snapshot with the one inside ``backup``."""
        if not isinstance(backup, Mapping):
            raise InvalidBackupError("Backup must be an object")
        raw_state = backup.get("state")
        if not isinstance(raw_state, Mapping):
            raise InvalidBackupError("Backup is missing its state object")

        state = normalize(raw_state, config=self.config)
        self.store.save(state)
        logger.info(f"Imported backup with {len(state.users)} user(s)")
        return state.to_dict()
