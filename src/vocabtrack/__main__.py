"""Command-line entry point for the progress tracker."""
import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

from vocabtrack.config import ensure_directories, settings
from vocabtrack.dates import format_day, parse_day
from vocabtrack.logging_config import get_logger, setup_logging
from vocabtrack.monitoring import start_monitoring
from vocabtrack.services.catalog import load_catalog_ids
from vocabtrack.services.progress_service import InvalidBackupError, ProgressService
from vocabtrack.services.snapshot_store import SnapshotStoreError, create_store

logger = get_logger(__name__)

EXIT_FAILURE = 1
EXIT_WRONG_PIN = 2


def _day(value: str) -> date:
    day = parse_day(value)
    if day is None:
        raise argparse.ArgumentTypeError(f"expected a YYYY-MM-DD date, got {value!r}")
    return day


def _to_json(value: Any) -> Any:
    if isinstance(value, date):
        return format_day(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _print(payload: Any) -> None:
    print(json.dumps(payload, default=_to_json, ensure_ascii=False, indent=2))


def _progress_payload(progress) -> dict:
    payload = progress.to_dict()
    # Stage drives scheduling only and is left out of output.
    del payload["stage"]
    return payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vocabtrack",
        description="Track vocabulary review progress and due words.",
    )
    parser.add_argument("--user", default="", help="User id (defaults to the active user).")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL.")
    commands = parser.add_subparsers(dest="command", required=True)

    use = commands.add_parser("use", help="Switch the active user.")
    use.add_argument("user_id")

    commands.add_parser("points", help="Show the user's points.")

    show = commands.add_parser("show", help="Show a word's progress.")
    show.add_argument("word_id")

    enroll = commands.add_parser("enroll", help="Put a word into review.")
    enroll.add_argument("word_id")
    enroll.add_argument("--today", type=_day, default=None)

    unenroll = commands.add_parser("unenroll", help="Take a word out of review.")
    unenroll.add_argument("word_id")

    seen = commands.add_parser("seen", help="Count a word as shown.")
    seen.add_argument("word_id")

    review = commands.add_parser("review", help="Record a review answer.")
    review.add_argument("word_id")
    outcome = review.add_mutually_exclusive_group(required=True)
    outcome.add_argument("--correct", dest="correct", action="store_true")
    outcome.add_argument("--wrong", dest="correct", action="store_false")
    review.add_argument("--today", type=_day, default=None)

    due = commands.add_parser("due", help="List words due for review.")
    due.add_argument("--catalog", type=Path, default=None, help="Word catalog JSON to intersect with.")
    due.add_argument("--today", type=_day, default=None)

    reset = commands.add_parser("reset", help="Clear the user's progress and points.")
    reset.add_argument("--pin", required=True)

    export = commands.add_parser("export", help="Write a backup of all progress.")
    export.add_argument("output", type=Path, nargs="?", default=None)

    restore = commands.add_parser("import", help="Replace all progress with a backup.")
    restore.add_argument("backup", type=Path)

    return parser


def run(args: argparse.Namespace, service: ProgressService) -> int:
    """Execute one parsed command against ``service``."""
    user = args.user or None

    if args.command == "use":
        _print({"activeUserId": service.set_active_user(args.user_id)})
    elif args.command == "points":
        _print({"points": service.get_points(user)})
    elif args.command == "show":
        _print(_progress_payload(service.get_progress(user, args.word_id)))
    elif args.command == "enroll":
        _print(_progress_payload(service.enroll(user, args.word_id, args.today)))
    elif args.command == "unenroll":
        _print(_progress_payload(service.unenroll(user, args.word_id)))
    elif args.command == "seen":
        _print({"seenCount": service.touch_seen(user, args.word_id)})
    elif args.command == "review":
        result = service.apply_review_result(user, args.word_id, args.correct, args.today)
        _print({"due": result.due, "enrolled": result.enrolled, "pointsGained": result.points_gained})
    elif args.command == "due":
        candidates: Optional[List[str]] = load_catalog_ids(args.catalog) if args.catalog else None
        _print({"due": service.due_word_ids(user, candidates, args.today)})
    elif args.command == "reset":
        result = service.reset_user(user, args.pin)
        _print({"ok": result.ok})
        if not result.ok:
            print("PIN does not match; nothing was reset.", file=sys.stderr)
            return EXIT_WRONG_PIN
    elif args.command == "export":
        backup = service.export_backup()
        if args.output is None:
            _print(backup)
        else:
            args.output.write_text(json.dumps(backup, ensure_ascii=False, indent=2), encoding="utf-8")
            logger.info(f"Backup written to {args.output}")
    elif args.command == "import":
        with args.backup.open("r", encoding="utf-8") as handle:
            backup = json.load(handle)
        state = service.import_backup(backup)
        _print({"users": sorted(state["users"]), "activeUserId": state["activeUserId"]})
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    ensure_directories()
    setup_logging(level=args.log_level)

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)

    service = ProgressService(create_store(settings))
    try:
        return run(args, service)
    except (SnapshotStoreError, InvalidBackupError, OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
