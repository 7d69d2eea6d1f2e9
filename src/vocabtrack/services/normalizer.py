"""State normalizer: turns any stored document into a valid RootState.

Every snapshot passes through :func:`normalize` exactly once per load, so the
rest of the engine can rely on a fully valid shape. Older document layouts are
brought forward one version at a time by the functions in ``MIGRATIONS``:

* v0 - flat single-user state with top-level ``points``.
* v1 - first release: ``srs`` / ``progress`` / ``points`` maps keyed by user
  and review mode, due dates as epoch milliseconds.
* v2 - ``users`` map with ``reviewCorrectCount``, ``loopUntilDate``, ``seen``
  and ``remembered``.
* v3 - current layout (see :meth:`RootState.to_dict`).
"""
import logging
import math
from datetime import date
from typing import Any, Callable, Dict, Mapping, Optional

from vocabtrack.config import ProgressSettings, settings
from vocabtrack.dates import day_from_epoch_ms, format_day, parse_day, today as local_today
from vocabtrack.models.progress_models import SCHEMA_VERSION, RootState, UserState, WordProgress

logger = logging.getLogger(__name__)


def clamp_int(value: Any, minimum: int, maximum: int) -> int:
    """Coerce ``value`` to an int within [minimum, maximum]; non-numbers become ``minimum``."""
    if isinstance(value, bool):
        return minimum
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return minimum
    if not isinstance(value, (int, float)):
        return minimum
    if isinstance(value, float):
        if not math.isfinite(value):
            return minimum
        value = int(value)
    return max(minimum, min(maximum, value))


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _string_keyed(value: Any) -> Dict[str, Any]:
    return {key: item for key, item in _mapping(value).items() if isinstance(key, str) and key}


def detect_version(raw: Any) -> Optional[int]:
    """Work out which layout ``raw`` was written with; None when it is not a document at all."""
    if not isinstance(raw, Mapping):
        return None
    version = raw.get("schemaVersion")
    if isinstance(version, float) and version.is_integer():
        version = int(version)
    if isinstance(version, int) and not isinstance(version, bool):
        return max(0, version)
    if _mapping(raw.get("meta")).get("version") == 1 or isinstance(raw.get("srs"), Mapping):
        return 1
    if isinstance(raw.get("users"), Mapping):
        return 2
    return 0


def migrate_v0(raw: Mapping[str, Any], config: ProgressSettings) -> Dict[str, Any]:
    """Flat single-user state -> v2."""
    active = raw.get("activeUserId")
    if not isinstance(active, str) or not active:
        active = raw.get("userId")
    if not isinstance(active, str) or not active:
        active = config.default_user_id

    return {
        "version": 2,
        "activeUserId": active,
        "users": {
            active: {
                "points": raw.get("points", 0),
                "reviewCorrectCount": raw.get("reviewCorrectCount", 0),
                "words": _string_keyed(raw.get("words")),
            },
        },
    }


def _merge_v1_modes(
    srs_modes: Mapping[str, Any],
    progress_modes: Mapping[str, Any],
    config: ProgressSettings,
) -> Dict[str, Dict[str, Any]]:
    """Fold the per-mode records of one v1 user into one record per word."""
    words: Dict[str, Dict[str, Any]] = {}

    for mode_items in srs_modes.values():
        for word_id, item in _string_keyed(mode_items).items():
            item = _mapping(item)
            merged = words.setdefault(word_id, {"enrolled": False, "stage": 0, "due": None})
            stage = clamp_int(item.get("stage"), 0, config.max_stage)
            merged["stage"] = max(merged["stage"], stage)
            if not item.get("enrolled"):
                continue
            merged["enrolled"] = True
            due = day_from_epoch_ms(item.get("due_at_ms"))
            if due is not None and (merged["due"] is None or due < merged["due"]):
                merged["due"] = due

    for mode_items in progress_modes.values():
        for word_id, item in _string_keyed(mode_items).items():
            item = _mapping(item)
            merged = words.setdefault(word_id, {"enrolled": False, "stage": 0, "due": None})
            merged["seen"] = merged.get("seen", 0) + clamp_int(item.get("seen"), 0, config.counter_cap)
            merged["remembered"] = merged.get("remembered", 0) + clamp_int(
                item.get("remembered"), 0, config.counter_cap
            )

    for merged in words.values():
        merged["due"] = format_day(merged["due"]) if merged["due"] else None
    return words


def migrate_v1(raw: Mapping[str, Any], config: ProgressSettings) -> Dict[str, Any]:
    """First-release document -> v2."""
    srs = _string_keyed(raw.get("srs"))
    progress = _string_keyed(raw.get("progress"))
    points = _string_keyed(raw.get("points"))

    user_ids = list(_string_keyed(raw.get("users")))
    for source in (srs, progress, points):
        user_ids.extend(uid for uid in source if uid not in user_ids)

    active = raw.get("current_user_id")
    if not isinstance(active, str) or not active:
        active = user_ids[0] if user_ids else config.default_user_id

    users = {}
    for uid in user_ids:
        user_points = _mapping(points.get(uid))
        users[uid] = {
            "points": user_points.get("points", 0),
            "reviewCorrectCount": user_points.get("review_correct_since_last_point", 0),
            "words": _merge_v1_modes(_mapping(srs.get(uid)), _mapping(progress.get(uid)), config),
        }

    return {"version": 2, "activeUserId": active, "users": users}


def _renamed(item: Mapping[str, Any], old: str, new: str) -> Any:
    # Unversioned users maps may already carry the current names.
    return item[old] if old in item else item.get(new)


def migrate_v2(raw: Mapping[str, Any], config: ProgressSettings) -> Dict[str, Any]:
    """v2 -> v3: rename fields to the current wire names."""
    users = {}
    for uid, user in _string_keyed(raw.get("users")).items():
        user = _mapping(user)
        words = {}
        for word_id, item in _string_keyed(user.get("words")).items():
            item = _mapping(item)
            words[word_id] = {
                "enrolled": item.get("enrolled"),
                "stage": item.get("stage"),
                "due": item.get("due"),
                "loopUntil": _renamed(item, "loopUntilDate", "loopUntil"),
                "seenCount": _renamed(item, "seen", "seenCount"),
                "rememberedCount": _renamed(item, "remembered", "rememberedCount"),
            }
        users[uid] = {
            "points": user.get("points"),
            "reviewCorrectSinceLastPoint": _renamed(user, "reviewCorrectCount", "reviewCorrectSinceLastPoint"),
            "words": words,
        }

    active = raw.get("activeUserId")
    if not isinstance(active, str) or not active:
        active = raw.get("userId")
    return {"schemaVersion": 3, "activeUserId": active, "users": users}


MIGRATIONS: Dict[int, Callable[[Mapping[str, Any], ProgressSettings], Dict[str, Any]]] = {
    0: migrate_v0,
    1: migrate_v1,
    2: migrate_v2,
}


def _coerce_word(raw: Any, today: date, config: ProgressSettings) -> WordProgress:
    item = _mapping(raw)
    cap = config.counter_cap
    progress = WordProgress(
        enrolled=bool(item.get("enrolled")),
        stage=clamp_int(item.get("stage"), 0, config.max_stage),
        due=parse_day(item.get("due")),
        loop_until=parse_day(item.get("loopUntil")),
        seen_count=clamp_int(item.get("seenCount"), 0, cap),
        remembered_count=clamp_int(item.get("rememberedCount"), 0, cap),
    )
    if not progress.enrolled:
        progress.due = None
        progress.loop_until = None
    elif progress.due is None:
        progress.due = today
    return progress


def _coerce_user(raw: Any, today: date, config: ProgressSettings) -> UserState:
    item = _mapping(raw)
    per_point = config.correct_answers_per_point
    points = clamp_int(item.get("points"), 0, config.points_cap)
    counter = clamp_int(item.get("reviewCorrectSinceLastPoint"), 0, config.points_cap)
    # Fold whole tens into points rather than dropping them.
    points = min(points + counter // per_point, config.points_cap)
    return UserState(
        points=points,
        review_correct_since_last_point=counter % per_point,
        words={
            word_id: _coerce_word(word, today, config)
            for word_id, word in _string_keyed(item.get("words")).items()
        },
    )


def _read_current(raw: Mapping[str, Any], today: date, config: ProgressSettings) -> RootState:
    active = raw.get("activeUserId")
    if not isinstance(active, str) or not active:
        active = config.default_user_id
    state = RootState(
        active_user_id=active,
        users={uid: _coerce_user(user, today, config) for uid, user in _string_keyed(raw.get("users")).items()},
    )
    state.ensure_user(active)
    return state


def default_state(config: Optional[ProgressSettings] = None) -> RootState:
    """A fresh state with one empty default user."""
    config = config or settings.progress
    state = RootState(active_user_id=config.default_user_id)
    state.ensure_user()
    return state


def normalize(
    raw: Any,
    today: Optional[date] = None,
    config: Optional[ProgressSettings] = None,
) -> RootState:
    """Convert any stored document into a valid :class:`RootState`. Never raises.

    ``today`` is used only to give an enrolled word that lost its due date a
    due date of today; it defaults to the local calendar day. ``config``
    supplies the default user, caps and points rule; it defaults to the
    global progress settings.
    """
    today = today or local_today()
    config = config or settings.progress
    version = detect_version(raw)
    if version is None:
        if raw is not None:
            logger.warning(f"Discarding non-object snapshot of type {type(raw).__name__}")
        return default_state(config)

    document: Mapping[str, Any] = raw
    if version < SCHEMA_VERSION:
        logger.info(f"Migrating snapshot from schema v{version} to v{SCHEMA_VERSION}")
    elif version > SCHEMA_VERSION:
        logger.warning(f"Snapshot schema v{version} is newer than v{SCHEMA_VERSION}; reading best-effort")
    while version < SCHEMA_VERSION:
        document = MIGRATIONS[version](document, config)
        version = detect_version(document)

    return _read_current(document, today, config)
