#!/usr/bin/env python3
"""
Admin tools for the Exam Integrity engine.
Command-line access to proctor sessions, reviews and exam banks.
"""

import os
import sys
import argparse
import json
from typing import Optional

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv
dotenv_path = os.path.join(os.path.dirname(__file__), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)


from pydantic import ValidationError
from sqlalchemy.orm import Session
from exam_integrity.core.config import settings
from exam_integrity.core.database import SessionLocal, create_db_and_tables
from exam_integrity.core.exceptions import ExamIntegrityError
from exam_integrity.models.enums import TargetType
from exam_integrity.schemas.exam import ExamConfigUpsert
from exam_integrity.services.exam_service import ExamService
from exam_integrity.services.proctor_service import ProctorService
from exam_integrity.services.review_service import ReviewService
from exam_integrity.services.session_state import SessionAction
from exam_integrity.utils.timezone import format_local_time


def get_db() -> Session:
    return SessionLocal()


def _fmt(dt) -> str:
    return format_local_time(dt) if dt else "-"


def list_sessions(q: Optional[str], status: Optional[str], review: Optional[str]) -> None:
    """Print the most recent proctor sessions"""
    db = get_db()
    try:
        try:
            rows = ReviewService(db).list_sessions(q=q, status=status, review_status=review)
        except ExamIntegrityError as e:
            print(f"❌ {e.message}")
            return
        if not rows:
            print("📋 No proctor sessions found")
            return

        print(f"📋 Sessions: {len(rows)}")
        print("=" * 100)
        for session, attempt_id in rows:
            print(
                f"#{session.id} | user {session.user_id} | {session.target_type}:{session.target_id} | "
                f"{session.status}{' (' + session.end_reason + ')' if session.end_reason else ''} | "
                f"warnings {session.warning_count} | score {session.suspicious_score} | "
                f"review {session.review_status} | started {_fmt(session.started_at)} | "
                f"attempt {attempt_id or '-'}"
            )
    finally:
        db.close()


def show_session(session_id: int) -> None:
    """Print a session with its events, snapshots and attempt"""
    db = get_db()
    try:
        session, events, snapshots, attempt = ReviewService(db).get_session_detail(session_id)

        print(f"Session #{session.id}")
        print(f"   User: {session.user_id}")
        print(f"   Target: {session.target_type}:{session.target_id}")
        print(f"   Status: {session.status} {session.end_reason or ''}")
        print(f"   Started: {_fmt(session.started_at)}  Ended: {_fmt(session.ended_at)}")
        print(f"   Warnings: {session.warning_count}  Events: {session.events_count}  "
              f"Snapshots: {session.snapshots_count}  Suspicious score: {session.suspicious_score}")
        print(f"   Review: {session.review_status} {session.review_notes or ''}")

        if attempt:
            print(f"   Attempt #{attempt.attempt_no}: {attempt.score_percent}% "
                  f"({'passed' if attempt.passed else 'failed'}), releases {_fmt(attempt.result_release_at)}")

        print("-" * 100)
        for event in events:
            print(f"   {_fmt(event.created_at)}  {event.event_type}  {json.dumps(event.meta) if event.meta else ''}")
        for snapshot in snapshots:
            print(f"   📷 {_fmt(snapshot.created_at)}  {snapshot.snapshot_type}  {snapshot.file_path}")
    except ExamIntegrityError as e:
        print(f"❌ {e.message}")
    finally:
        db.close()


def review_session(session_id: int, status: str, notes: Optional[str], admin_id: int) -> None:
    db = get_db()
    try:
        session = ReviewService(db).set_review(session_id, status, notes, admin_id)
        print(f"✅ Session #{session.id} marked {session.review_status}")
    except ExamIntegrityError as e:
        print(f"❌ {e.message}")
    finally:
        db.close()


def close_session(session_id: int) -> None:
    db = get_db()
    try:
        session = ProctorService(db).close_session(session_id, SessionAction.ADMIN_CLOSE)
        print(f"✅ Session #{session.id} closed ({session.end_reason})")
    except ExamIntegrityError as e:
        print(f"❌ {e.message}")
    finally:
        db.close()


def sweep_sessions() -> None:
    db = get_db()
    try:
        expired = ProctorService(db).expire_stale_sessions(settings.session_expiry_grace_minutes)
        print(f"✅ Expired {len(expired)} sessions {expired if expired else ''}")
    finally:
        db.close()


def import_exam(target_type: str, target_id: int, path: str) -> None:
    """Create or replace an exam from a JSON file"""
    try:
        with open(path, encoding="utf-8") as f:
            payload = ExamConfigUpsert.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"❌ Could not read exam file {path}: {e}")
        return

    db = get_db()
    try:
        exam = ExamService(db).upsert_exam(TargetType(target_type.upper()), target_id, payload)
        print(f"✅ Exam #{exam.id} saved for {exam.target_type}:{exam.target_id} "
              f"({len(exam.questions)} questions)")
    except ExamIntegrityError as e:
        print(f"❌ {e.message}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Admin tools for the Exam Integrity engine")
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('init-db', help='Create database tables')

    sessions_parser = subparsers.add_parser('sessions', help='List proctor sessions')
    sessions_parser.add_argument('--q', help='Session id or user id')
    sessions_parser.add_argument('--status', help='ACTIVE, SUBMITTED or ENDED')
    sessions_parser.add_argument('--review', help='PENDING, CLEARED or FLAGGED')

    show_parser = subparsers.add_parser('show', help='Show one proctor session')
    show_parser.add_argument('--session-id', type=int, required=True)

    review_parser = subparsers.add_parser('review', help='Set the review status of a session')
    review_parser.add_argument('--session-id', type=int, required=True)
    review_parser.add_argument('--status', required=True, help='PENDING, CLEARED or FLAGGED')
    review_parser.add_argument('--notes')
    review_parser.add_argument('--admin-id', type=int, default=0)

    close_parser = subparsers.add_parser('close', help='End an active session without grading')
    close_parser.add_argument('--session-id', type=int, required=True)

    subparsers.add_parser('sweep', help='Expire sessions past their time limit')

    import_parser = subparsers.add_parser('import-exam', help='Create or replace an exam from JSON')
    import_parser.add_argument('--target-type', required=True, choices=['course', 'subject', 'COURSE', 'SUBJECT'])
    import_parser.add_argument('--target-id', type=int, required=True)
    import_parser.add_argument('--file', required=True)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command == 'init-db':
        create_db_and_tables()
        print("✅ Tables created")

    elif args.command == 'sessions':
        list_sessions(args.q, args.status, args.review)

    elif args.command == 'show':
        show_session(args.session_id)

    elif args.command == 'review':
        review_session(args.session_id, args.status, args.notes, args.admin_id)

    elif args.command == 'close':
        close_session(args.session_id)

    elif args.command == 'sweep':
        sweep_sessions()

    elif args.command == 'import-exam':
        import_exam(args.target_type, args.target_id, args.file)


if __name__ == "__main__":
    main()
