from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from qr_attendance.app import AttendanceApp, configure_logging
from qr_attendance.config.settings import Settings, refresh_settings
from qr_attendance.models import Session
from qr_attendance.services import ClaimSubmission, SessionNotFoundError
from qr_attendance.utils.time import coerce_datetime, format_expires_in


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _cmd_init_db(app: AttendanceApp, args: argparse.Namespace) -> int:
    applied = app.initialize()
    if applied:
        print("Applied migrations: " + ", ".join(applied))
    else:
        print("Database is up to date.")
    return 0


def _cmd_create_session(app: AttendanceApp, args: argparse.Namespace) -> int:
    session_date = coerce_datetime(args.date) if args.date else datetime.now(timezone.utc)
    session_id = app.sessions.create_session(
        Session(name=args.name, course_name=args.course, session_date=session_date)
    )
    print(session_id)
    return 0


def _cmd_issue(app: AttendanceApp, args: argparse.Namespace) -> int:
    try:
        issued = app.issuer.issue_for_session(args.session_id)
    except SessionNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(issued.png)
        print(f"QR code written to {output}")

    print(issued.token)
    print(issued.scan_url)
    print(f"Expires in {format_expires_in(issued.expires_in)}")
    return 0


def _cmd_claim(app: AttendanceApp, args: argparse.Namespace) -> int:
    outcome = app.claims.submit(
        args.user_id,
        ClaimSubmission(token=args.token, latitude=args.latitude, longitude=args.longitude),
        ip_address=args.ip,
        user_agent=args.user_agent,
    )
    _print_json(outcome.to_payload())
    return 0 if outcome.success else 2


def _cmd_sweep(app: AttendanceApp, args: argparse.Namespace) -> int:
    removed = app.token_store.sweep()
    print(f"Removed {removed} expired token record(s).")
    return 0


def _cmd_stats(app: AttendanceApp, args: argparse.Namespace) -> int:
    _print_json(app.recorder.get_user_attendance_stats(args.user_id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qr-attendance", description="Signed QR attendance tokens.")
    parser.add_argument("--database", help="SQLite database path (overrides DATABASE_PATH).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create or migrate the database schema.")
    init_db.set_defaults(handler=_cmd_init_db)

    create_session = subparsers.add_parser("create-session", help="Register a session.")
    create_session.add_argument("--name", required=True)
    create_session.add_argument("--course", required=True)
    create_session.add_argument("--date", help="ISO-8601 start time, defaults to now (UTC).")
    create_session.set_defaults(handler=_cmd_create_session)

    issue = subparsers.add_parser("issue", help="Issue a fresh QR token for a session.")
    issue.add_argument("session_id", type=int)
    issue.add_argument("--output", help="Write the rendered QR code PNG here.")
    issue.set_defaults(handler=_cmd_issue)

    claim = subparsers.add_parser("claim", help="Submit an attendance claim.")
    claim.add_argument("user_id", type=int)
    claim.add_argument("token")
    claim.add_argument("--latitude", type=float)
    claim.add_argument("--longitude", type=float)
    claim.add_argument("--ip")
    claim.add_argument("--user-agent", dest="user_agent")
    claim.set_defaults(handler=_cmd_claim)

    sweep = subparsers.add_parser("sweep", help="Delete expired token records.")
    sweep.set_defaults(handler=_cmd_sweep)

    stats = subparsers.add_parser("stats", help="Show attendance statistics for a user.")
    stats.add_argument("user_id", type=int)
    stats.set_defaults(handler=_cmd_stats)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = refresh_settings()
    if args.database:
        settings = Settings(database_path=Path(args.database))
    configure_logging(settings.log_level)

    app = AttendanceApp(settings)
    if args.command != "init-db":
        app.initialize()
    return args.handler(app, args)


if __name__ == "__main__":
    sys.exit(main())
