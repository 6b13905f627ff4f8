"""Operator tools for the transcription backend.

Manual, operator-invoked checks and repairs. Nothing here runs in a request
path; every subcommand reads the same configuration as the API.

Usage:
  python cli.py check-env
  python cli.py check-data [--user-id ID]
  python cli.py fix-stuck [--dry-run]
  python cli.py issue-token --user-id ID --email EMAIL [--name NAME] [--expires-days 7]
  python cli.py health-check [--email]
"""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta

from dotenv import load_dotenv
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from models.db import FileRecord, User
from utils.config import REPORTED_VARIABLES, ConfigurationError, Settings
from utils.database import Database, describe_database_error
from utils.exception_handlers import DatabaseUnavailable
from utils.health_monitor import APIHealthMonitor
from utils.jwt import create_user_token, verify_access_token
from utils.logging_config import init_console_logging
from utils.maintenance import fix_stuck_files


def _open_database(settings: Settings) -> Database:
    database = Database(settings.database_url)
    database.ping()
    return database


def cmd_check_env(args: argparse.Namespace, settings: Settings) -> int:
    """Print which variables are configured (never their values)."""
    for name in REPORTED_VARIABLES:
        flag = "set" if settings.presence.get(name) else "MISSING"
        print(f"  {name:<24} {flag}")
    missing = settings.missing_required()
    if missing:
        print(f"ERROR: required variables missing: {', '.join(missing)}", file=sys.stderr)
        return 1
    print("All required variables are set.")
    return 0


def cmd_check_data(args: argparse.Namespace, settings: Settings) -> int:
    """List users and file records, optionally the files of one user."""
    database = _open_database(settings)
    with database.session() as session:
        users = session.scalars(select(User).order_by(User.created_at)).all()
        print(f"Found {len(users)} users:")
        for user in users:
            print(f"- ID: {user.id}, Email: {user.email}, Name: {user.name}")

        files = session.scalars(select(FileRecord).order_by(FileRecord.created_at)).all()
        print(f"\nFound {len(files)} files:")
        for record in files:
            print(f"- ID: {record.id}, UserId: {record.user_id}, Filename: {record.filename}, Status: {record.status}")

        if args.user_id:
            counts = session.execute(
                select(FileRecord.status, func.count())
                .where(FileRecord.user_id == args.user_id)
                .group_by(FileRecord.status)
            ).all()
            total = sum(count for _, count in counts)
            print(f"\nFound {total} files for user {args.user_id}")
            for status_name, count in sorted(counts):
                print(f"- {status_name}: {count}")
    database.dispose()
    return 0


def cmd_fix_stuck(args: argparse.Namespace, settings: Settings) -> int:
    """Repair files stuck in processing and expire stale pending files."""
    database = _open_database(settings)
    with database.session() as session:
        summary = fix_stuck_files(
            session,
            settings,
            stuck_after=timedelta(minutes=args.stuck_minutes),
            dry_run=args.dry_run,
        )
    database.dispose()

    prefix = "[dry run] " if args.dry_run else ""
    for action in summary.actions:
        print(f"{prefix}{action.file_id} ({action.filename}): {action.action} -> {action.new_status} ({action.reason})")
    print(f"\nStuck files found: {summary.stuck_found}")
    print(f"Reset to pending:  {summary.fixed}")
    print(f"Recovered:         {summary.recovered}")
    print(f"Marked as error:   {summary.errored}")
    print(f"Write failures:    {summary.failed}")
    print(f"Expired pending:   {summary.expired}")
    if summary.stuck_found and not args.dry_run:
        handled = summary.stuck_found - summary.failed
        print(f"Success rate:      {handled / summary.stuck_found * 100:.1f}%")
    return 1 if summary.failed else 0


def cmd_issue_token(args: argparse.Namespace, settings: Settings) -> int:
    """Sign a credential for a user and verify it back."""
    if args.expires_days <= 0:
        print("ERROR: --expires-days must be positive", file=sys.stderr)
        return 2
    if settings.jwt_secret_is_default:
        print("WARNING: JWT_SECRET is not set; using the development fallback secret.", file=sys.stderr)

    token = create_user_token(
        args.user_id, args.email, args.name, settings.jwt_secret, timedelta(days=args.expires_days)
    )
    decoded = verify_access_token(token, settings.jwt_secret)
    if decoded is None or decoded.get("userId") != args.user_id:
        print("ERROR: token did not verify with the configured secret", file=sys.stderr)
        return 1

    print(token)
    print(f"Decoded: userId={decoded['userId']} email={decoded.get('email')} name={decoded.get('name')} exp={decoded['exp']}")
    return 0


def cmd_health_check(args: argparse.Namespace, settings: Settings) -> int:
    """Probe upstream APIs and optionally email the report."""
    monitor = APIHealthMonitor(settings)
    report = monitor.perform_health_check()
    print(f"Overall status: {report.overallStatus}")
    for name, health in report.apis.items():
        state = "healthy" if health.isHealthy else f"unhealthy ({health.error})"
        timing = f"{health.responseTime}ms" if health.responseTime is not None else "n/a"
        print(f"  {name:<12} {state} [{timing}]")

    if args.email:
        mail = monitor.send_health_report(report)
        if mail.success:
            print(f"Report emailed to {settings.alert_email} (id: {mail.messageId})")
        else:
            print(f"ERROR: report not sent: {mail.error}", file=sys.stderr)
            return 1
    return 0 if report.overallStatus == "healthy" else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transcription backend operator tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("check-env", help="Show which configuration variables are set")
    p.set_defaults(func=cmd_check_env)

    p = sub.add_parser("check-data", help="List users and file records")
    p.add_argument("--user-id", help="Also summarize files belonging to this user")
    p.set_defaults(func=cmd_check_data)

    p = sub.add_parser("fix-stuck", help="Repair files stuck in processing")
    p.add_argument("--dry-run", action="store_true", help="Report actions without writing")
    p.add_argument("--stuck-minutes", type=int, default=0, help="Only files untouched for this long")
    p.set_defaults(func=cmd_fix_stuck)

    p = sub.add_parser("issue-token", help="Sign and verify a debug credential")
    p.add_argument("--user-id", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--name")
    p.add_argument("--expires-days", type=int, default=7)
    p.set_defaults(func=cmd_issue_token)

    p = sub.add_parser("health-check", help="Probe upstream APIs")
    p.add_argument("--email", action="store_true", help="Email the report to ALERT_EMAIL")
    p.set_defaults(func=cmd_health_check)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    init_console_logging()
    try:
        settings = Settings.from_env()
    except ConfigurationError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        return 2

    try:
        return args.func(args, settings)
    except DatabaseUnavailable as err:
        print(f"ERROR: {err}", file=sys.stderr)
        return 1
    except SQLAlchemyError as err:
        print(f"ERROR: {describe_database_error(err)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
