"""Tests for the state normalizer and schema migrations."""
import random
from datetime import date, datetime

import pytest
from faker import Faker

from vocabtrack.config import ProgressSettings
from vocabtrack.models.progress_models import SCHEMA_VERSION, RootState, UserState, WordProgress
from vocabtrack.services.normalizer import clamp_int, detect_version, normalize

fake = Faker()

TODAY = date(2024, 1, 10)


def assert_valid(state: RootState) -> None:
    """Check every structural invariant of a normalized state."""
    assert isinstance(state, RootState)
    assert state.schema_version == SCHEMA_VERSION
    assert isinstance(state.active_user_id, str) and state.active_user_id
    assert state.active_user_id in state.users
    for uid, user in state.users.items():
        assert isinstance(uid, str)
        assert isinstance(user, UserState)
        assert 0 <= user.points
        assert 0 <= user.review_correct_since_last_point <= 9
        for word_id, progress in user.words.items():
            assert isinstance(word_id, str)
            assert isinstance(progress, WordProgress)
            assert isinstance(progress.enrolled, bool)
            assert 0 <= progress.stage <= 6
            assert progress.due is None or isinstance(progress.due, date)
            assert progress.loop_until is None or isinstance(progress.loop_until, date)
            assert 0 <= progress.seen_count <= 1_000_000
            assert 0 <= progress.remembered_count <= 1_000_000
            if not progress.enrolled:
                assert progress.due is None and progress.loop_until is None


@pytest.mark.parametrize("raw", [None, 0, 3.5, "state", [], [1, 2], True, object()])
def test_non_object_gives_default_state(raw):
    state = normalize(raw, TODAY)

    assert_valid(state)
    assert state.active_user_id == "riona"
    assert state.users == {"riona": UserState()}


def test_current_document_round_trips():
    document = {
        "schemaVersion": 3,
        "activeUserId": "soma",
        "users": {
            "soma": {
                "points": 4,
                "reviewCorrectSinceLastPoint": 7,
                "words": {
                    "cat": {
                        "enrolled": True,
                        "stage": 3,
                        "due": "2024-01-17",
                        "loopUntil": None,
                        "seenCount": 12,
                        "rememberedCount": 2,
                    },
                },
            },
        },
    }

    state = normalize(document, TODAY)

    assert state.to_dict() == document


def test_word_fields_are_clamped_and_dates_validated():
    state = normalize(
        {
            "schemaVersion": 3,
            "activeUserId": "riona",
            "users": {
                "riona": {
                    "words": {
                        "hi": {"enrolled": True, "stage": 42, "due": "2024-02-30", "loopUntil": "yesterday",
                               "seenCount": 5_000_000, "rememberedCount": -4},
                        "lo": {"enrolled": True, "stage": -3, "due": "2024-01-09", "seenCount": "7"},
                        "str": {"enrolled": 1, "stage": "2.9", "due": "2024-01-12"},
                    },
                },
            },
        },
        TODAY,
    )

    words = state.users["riona"].words
    assert words["hi"].stage == 6
    assert words["hi"].due == TODAY  # enrolled with an invalid due is due today
    assert words["hi"].loop_until is None
    assert words["hi"].seen_count == 1_000_000
    assert words["hi"].remembered_count == 0
    assert words["lo"].stage == 0
    assert words["lo"].due == date(2024, 1, 9)
    assert words["lo"].seen_count == 7
    assert words["str"].enrolled is True
    assert words["str"].stage == 2


def test_unenrolled_words_lose_their_dates():
    state = normalize(
        {
            "schemaVersion": 3,
            "activeUserId": "riona",
            "users": {"riona": {"words": {"cat": {"enrolled": False, "stage": 4, "due": "2024-01-01",
                                                  "loopUntil": "2024-01-10"}}}},
        },
        TODAY,
    )

    cat = state.users["riona"].words["cat"]
    assert (cat.enrolled, cat.stage, cat.due, cat.loop_until) == (False, 4, None, None)


def test_correct_counter_overflow_is_folded_into_points():
    state = normalize(
        {"schemaVersion": 3, "activeUserId": "a", "users": {"a": {"points": 1, "reviewCorrectSinceLastPoint": 23}}},
        TODAY,
    )

    assert state.users["a"].points == 3
    assert state.users["a"].review_correct_since_last_point == 3


def test_missing_active_user_is_created():
    state = normalize({"schemaVersion": 3, "activeUserId": "soma", "users": {"riona": {}}}, TODAY)

    assert set(state.users) == {"riona", "soma"}
    assert_valid(state)


def test_invalid_user_and_word_ids_are_dropped():
    state = normalize(
        {"schemaVersion": 3, "activeUserId": "", "users": {"": {}, "riona": {"words": {"": {}, "ok": {}}}}},
        TODAY,
    )

    assert set(state.users) == {"riona"}
    assert list(state.users["riona"].words) == ["ok"]


def test_flat_single_user_document():
    state = normalize({"userId": "soma", "points": 5}, TODAY)

    assert state.active_user_id == "soma"
    assert state.users["soma"].points == 5
    assert state.users["soma"].words == {}


def test_flat_document_without_user_uses_default():
    state = normalize({"points": "x", "unexpected": [1, 2, 3]}, TODAY)

    assert state.active_user_id == "riona"
    assert state.users == {"riona": UserState()}


def test_version_two_document_is_migrated():
    state = normalize(
        {
            "version": 2,
            "activeUserId": "soma",
            "users": {
                "soma": {
                    "points": 2,
                    "reviewCorrectCount": 6,
                    "words": {
                        "cat": {"enrolled": True, "stage": 2, "due": "2024-01-13", "loopUntilDate": "2024-01-10",
                                "seen": 3, "remembered": 1},
                    },
                },
                "riona": {"points": None, "words": None},
            },
        },
        TODAY,
    )

    soma = state.users["soma"]
    assert soma.points == 2
    assert soma.review_correct_since_last_point == 6
    assert soma.words["cat"] == WordProgress(
        enrolled=True,
        stage=2,
        due=date(2024, 1, 13),
        loop_until=date(2024, 1, 10),
        seen_count=3,
        remembered_count=1,
    )
    assert state.users["riona"] == UserState()


def test_unversioned_users_map_in_current_shape_keeps_every_field():
    state = normalize(
        {
            "activeUserId": "alice",
            "users": {
                "alice": {
                    "points": 3,
                    "reviewCorrectSinceLastPoint": 5,
                    "words": {
                        "w1": {"enrolled": True, "stage": 2, "due": "2024-01-12", "loopUntil": "2024-01-10",
                               "seenCount": 4, "rememberedCount": 2},
                    },
                },
            },
        },
        TODAY,
    )

    alice = state.users["alice"]
    assert alice.points == 3
    assert alice.review_correct_since_last_point == 5
    assert alice.words["w1"] == WordProgress(
        enrolled=True,
        stage=2,
        due=date(2024, 1, 12),
        loop_until=date(2024, 1, 10),
        seen_count=4,
        remembered_count=2,
    )


def test_float_schema_version_is_read_as_current():
    state = normalize(
        {"schemaVersion": 3.0, "activeUserId": "a", "users": {"a": {"reviewCorrectSinceLastPoint": 4}}},
        TODAY,
    )

    assert state.users["a"].review_correct_since_last_point == 4


def test_normalize_uses_given_progress_settings():
    config = ProgressSettings(default_user_id="soma", correct_answers_per_point=5)

    state = normalize({"users": {"soma": {"reviewCorrectCount": 7}}}, TODAY, config)

    assert state.active_user_id == "soma"
    assert state.users["soma"].points == 1
    assert state.users["soma"].review_correct_since_last_point == 2


def _ms(day: date) -> float:
    return datetime(day.year, day.month, day.day, 9, 30).timestamp() * 1000


def test_version_one_document_is_migrated():
    state = normalize(
        {
            "meta": {"version": 1, "created_at": "2023-12-01T00:00:00Z"},
            "settings": {"pin": "1234", "enroll_threshold": 3},
            "users": {"riona": {"id": "riona", "name": "Riona"}, "soma": {"id": "soma", "name": "Soma"}},
            "current_user_id": "soma",
            "srs": {
                "soma": {
                    "p2w": {"cat": {"enrolled": True, "stage": 2, "due_at_ms": _ms(date(2024, 1, 15))}},
                    "w2p": {
                        "cat": {"enrolled": True, "stage": 4, "due_at_ms": _ms(date(2024, 1, 12))},
                        "dog": {"enrolled": False, "stage": 3, "due_at_ms": _ms(date(2024, 1, 1))},
                    },
                },
            },
            "progress": {
                "soma": {
                    "p2w": {"cat": {"seen": 2, "remembered": 1}},
                    "w2p": {"cat": {"seen": 3, "remembered": 2}, "egg": {"seen": 1}},
                },
            },
            "points": {"soma": {"points": 3, "review_correct_total": 38, "review_correct_since_last_point": 8}},
        },
        TODAY,
    )

    assert state.active_user_id == "soma"
    assert set(state.users) == {"riona", "soma"}
    soma = state.users["soma"]
    assert soma.points == 3
    assert soma.review_correct_since_last_point == 8
    assert soma.words["cat"] == WordProgress(
        enrolled=True, stage=4, due=date(2024, 1, 12), seen_count=5, remembered_count=3
    )
    assert soma.words["dog"] == WordProgress(enrolled=False, stage=3)
    assert soma.words["egg"] == WordProgress(seen_count=1)
    assert state.users["riona"] == UserState()


def test_version_one_without_current_user_picks_first_user():
    state = normalize({"meta": {"version": 1}, "users": {"soma": {}}, "current_user_id": None}, TODAY)

    assert state.active_user_id == "soma"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ([], None),
        ({}, 0),
        ({"points": 3}, 0),
        ({"meta": {"version": 1}}, 1),
        ({"srs": {}}, 1),
        ({"version": 2, "users": {}}, 2),
        ({"users": {}}, 2),
        ({"schemaVersion": 3}, 3),
        ({"schemaVersion": 9, "users": {}}, 9),
        ({"schemaVersion": True, "users": {}}, 2),
        ({"schemaVersion": 3.0}, 3),
        ({"schemaVersion": 2.5, "users": {}}, 2),
    ],
)
def test_detect_version(raw, expected):
    assert detect_version(raw) == expected


def test_newer_schema_is_read_best_effort():
    state = normalize({"schemaVersion": 7, "activeUserId": "a", "users": {"a": {"points": 1}}}, TODAY)

    assert state.users["a"].points == 1
    assert state.schema_version == SCHEMA_VERSION


@pytest.mark.parametrize(
    "value, expected",
    [
        (3, 3),
        (3.9, 3),
        (-1, 0),
        (99, 6),
        ("4", 4),
        (" 5 ", 5),
        ("five", 0),
        (True, 0),
        (None, 0),
        (float("nan"), 0),
        (float("inf"), 0),
        ([2], 0),
    ],
)
def test_clamp_int(value, expected):
    assert clamp_int(value, 0, 6) == expected


def _garbage(depth: int = 0):
    choices = [
        lambda: None,
        lambda: fake.pybool(),
        lambda: fake.pyint(min_value=-10**7, max_value=10**7),
        lambda: fake.pyfloat(),
        lambda: fake.word(),
        lambda: fake.date(),
        lambda: float("nan"),
    ]
    if depth < 3:
        choices.append(lambda: [_garbage(depth + 1) for _ in range(random.randint(0, 3))])
        choices.append(lambda: _garbage_mapping(depth + 1))
    return random.choice(choices)()


def _garbage_mapping(depth: int):
    keys = ["schemaVersion", "version", "activeUserId", "userId", "users", "points", "words", "srs", "meta",
            "progress", "current_user_id", "reviewCorrectSinceLastPoint", "reviewCorrectCount", "enrolled",
            "stage", "due", "loopUntil", "loopUntilDate", "seenCount", "rememberedCount", "seen", "remembered",
            "due_at_ms", "p2w", "riona", fake.word()]
    return {random.choice(keys): _garbage(depth) for _ in range(random.randint(0, 6))}


@pytest.mark.parametrize("seed", range(200))
def test_normalize_never_raises_on_garbage(seed):
    random.seed(seed)
    Faker.seed(seed)

    raw = _garbage_mapping(0)
    if seed % 3 == 0:
        raw["users"] = {fake.user_name(): _garbage_mapping(1) for _ in range(random.randint(0, 3))}
    if seed % 5 == 0:
        raw["schemaVersion"] = random.choice([0, 1, 2, 3, 4])

    assert_valid(normalize(raw, TODAY))
