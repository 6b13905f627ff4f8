"""Repair of file records left behind by the transcription pipeline."""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, NamedTuple, Optional

import requests
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.db import FileRecord
from utils.config import Settings

logger = logging.getLogger("maintenance")

ASSEMBLYAI_TRANSCRIPT_URL = "https://api.assemblyai.com/v2/transcript/{}"
RECOVERY_TIMEOUT = 10
PROCESSING_TIMEOUT = timedelta(hours=2)
PENDING_EXPIRY_AGE = timedelta(hours=24)


class RepairPolicy(NamedTuple):
    """How stuck files without a usable transcript id are treated, and the wording recorded."""

    untracked_is_error: bool
    pending_orphan_age: timedelta
    reset_reason: str
    recovery_failed_reason: str
    upstream_error_prefix: str


# Operator repair (`cli.py fix-stuck`): anything young enough goes back to pending
OPERATOR_REPAIR = RepairPolicy(
    untracked_is_error=False,
    pending_orphan_age=timedelta(hours=1),
    reset_reason="Fixed stuck processing - reset to pending",
    recovery_failed_reason="Recovery failed - reset to pending",
    upstream_error_prefix="AssemblyAI error",
)

# Scheduled and HTTP-triggered cleanup: only files AssemblyAI can still vouch for are retried
AUTO_CLEANUP = RepairPolicy(
    untracked_is_error=True,
    pending_orphan_age=timedelta(hours=2),
    reset_reason="Auto-cleanup - stuck processing reset to retry",
    recovery_failed_reason="Auto-cleanup - recovery failed, reset for retry",
    upstream_error_prefix="External error",
)


class FileAction(BaseModel):
    file_id: str
    filename: Optional[str] = None
    action: str  # reset, error, recover, expire
    new_status: str
    reason: str


class CleanupSummary(BaseModel):
    stuck_found: int = 0
    # files put back to pending
    fixed: int = 0
    # files completed from AssemblyAI
    recovered: int = 0
    # files marked as error (timeout or upstream failure)
    errored: int = 0
    # files whose update could not be written
    failed: int = 0
    expired: int = 0
    actions: List[FileAction] = []


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def fetch_transcript_status(settings: Settings, transcript_id: str) -> dict:
    response = requests.get(
        ASSEMBLYAI_TRANSCRIPT_URL.format(transcript_id),
        headers={"Authorization": settings.assemblyai_api_key},
        timeout=RECOVERY_TIMEOUT,
    )
    if not response.ok:
        raise requests.HTTPError(f"AssemblyAI API error: {response.status_code}", response=response)
    return response.json()


def _recover(record: FileRecord, settings: Settings, policy: RepairPolicy):
    """Ask AssemblyAI what became of the job; returns (new_status, reason)."""
    if not settings.assemblyai_api_key:
        return "pending", "Cannot verify external status - reset to pending"
    try:
        data = fetch_transcript_status(settings, record.transcript_id)
    except (requests.RequestException, ValueError) as err:
        logger.warning("recovery_failed", extra={"file_id": record.id, "error": str(err)})
        return "pending", policy.recovery_failed_reason

    upstream_status = data.get("status")
    if upstream_status == "completed":
        record.transcript = data.get("text") or "Transcript recovered"
        return "completed", "Recovered completed transcription from AssemblyAI"
    if upstream_status == "error":
        record.error = f"{policy.upstream_error_prefix}: {data.get('error') or 'Unknown error'}"
        return "error", record.error
    return "pending", "Still processing externally - reset for retry"


def plan_action(record: FileRecord, now: datetime, policy: RepairPolicy = OPERATOR_REPAIR) -> str:
    stuck_for = now - (as_utc(record.updated_at) or now)
    if record.transcript_id and stuck_for < PROCESSING_TIMEOUT:
        return "recover"
    if policy.untracked_is_error or stuck_for > PROCESSING_TIMEOUT:
        return "error"
    return "reset"


def fix_stuck_files(
    session: Session,
    settings: Settings,
    stuck_after: timedelta = timedelta(0),
    now: Optional[datetime] = None,
    dry_run: bool = False,
    policy: RepairPolicy = OPERATOR_REPAIR,
) -> CleanupSummary:
    """Repair files stuck in `processing`, then expire long-pending ones.

    A younger file with an AssemblyAI transcript id is reconciled with
    AssemblyAI. A file stuck longer than two hours is marked as failed, and
    under AUTO_CLEANUP so is any file without a transcript id. Anything else
    goes back to `pending` for reprocessing. Pending files older than a day
    are marked expired.
    """
    now = now or datetime.now(timezone.utc)
    summary = CleanupSummary()

    stuck = session.scalars(select(FileRecord).where(FileRecord.status == "processing")).all()
    stuck = [f for f in stuck if now - (as_utc(f.updated_at) or now) >= stuck_after]
    summary.stuck_found = len(stuck)

    for record in stuck:
        action = plan_action(record, now, policy)
        if action == "error":
            hours = (now - (as_utc(record.updated_at) or now)).total_seconds() / 3600
            new_status, reason = "error", f"Processing timeout after {hours:.1f} hours"
            record.error = reason
        elif action == "recover":
            new_status, reason = _recover(record, settings, policy)
        else:
            new_status, reason = "pending", policy.reset_reason
            record.transcript_id = None

        summary.actions.append(FileAction(
            file_id=record.id, filename=record.filename, action=action, new_status=new_status, reason=reason,
        ))
        if dry_run:
            session.rollback()
            continue

        record.status = new_status
        if new_status == "pending":
            record.reset_reason = reason
        record.updated_at = now
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.error("fix_file_failed", exc_info=True, extra={"file_id": record.id})
            summary.failed += 1
            continue

        if new_status == "completed":
            summary.recovered += 1
        elif new_status == "error":
            summary.errored += 1
        else:
            summary.fixed += 1
        logger.info("stuck_file_fixed", extra={"file_id": record.id})

    summary.expired = _expire_old_pending(session, now, summary, dry_run, policy.pending_orphan_age)
    logger.info(
        "stuck_file_cleanup_completed: found=%d fixed=%d recovered=%d errored=%d failed=%d expired=%d",
        summary.stuck_found, summary.fixed, summary.recovered, summary.errored, summary.failed, summary.expired,
    )
    return summary


def _expire_old_pending(
    session: Session, now: datetime, summary: CleanupSummary, dry_run: bool, orphan_age: timedelta,
) -> int:
    orphan_cutoff = now - orphan_age
    pending = session.scalars(select(FileRecord).where(FileRecord.status == "pending")).all()
    expired = 0
    for record in pending:
        created = as_utc(record.created_at) or now
        updated = as_utc(record.updated_at) or now
        if created >= orphan_cutoff or updated >= orphan_cutoff:
            continue
        if now - created <= PENDING_EXPIRY_AGE:
            continue
        reason = "File expired - pending for more than 24 hours"
        summary.actions.append(FileAction(
            file_id=record.id, filename=record.filename, action="expire", new_status="error", reason=reason,
        ))
        if dry_run:
            continue
        record.status = "error"
        record.error = reason
        record.updated_at = now
        expired += 1
    if expired and not dry_run:
        session.commit()
    return expired
