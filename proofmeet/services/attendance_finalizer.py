# proofmeet/services/attendance_finalizer.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.errors import InvalidStateError, ProofMeetError
from proofmeet.core.timeutils import ensure_utc, utcnow
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.meeting import Meeting
from proofmeet.schemas.attendance import (
    AttendanceStatus,
    FinalizationFailure,
    FinalizationSummary,
)
from proofmeet.services.attendance_tracker import AttendanceTracker

logger = logging.getLogger(__name__)


def scheduled_end(meeting: Meeting) -> datetime:
    return ensure_utc(meeting.scheduled_start) + timedelta(
        minutes=float(meeting.planned_duration_minutes or 0)
    )


async def _stale_records(
    db: AsyncSession,
    now: datetime,
    grace: timedelta,
) -> List[Tuple[int, datetime]]:
    """
    (record id, leave time to apply) for every open record whose meeting
    ended more than `grace` before `now`, oldest join first.
    """
    result = await db.execute(
        select(AttendanceRecord, Meeting)
        .join(Meeting, Meeting.id == AttendanceRecord.meeting_id)
        .where(
            AttendanceRecord.status == AttendanceStatus.IN_PROGRESS.value,
            Meeting.scheduled_start <= now,
        )
        .order_by(AttendanceRecord.join_time, AttendanceRecord.id)
    )

    stale: List[Tuple[int, datetime]] = []
    for record, meeting in result.all():
        end = scheduled_end(meeting)
        if end + grace > now:
            continue
        # Someone who joined after the scheduled end still gets a zero-length span.
        stale.append((record.id, max(ensure_utc(record.join_time), end)))
    return stale


async def finalize_stale_attendance(
    db: AsyncSession,
    tracker: AttendanceTracker,
    now: Optional[datetime] = None,
    grace_minutes: float = 0.0,
) -> FinalizationSummary:
    """
    Close attendance records whose participant never sent a leave.

    A record is stale once its meeting's scheduled start plus planned
    duration (plus `grace_minutes`) lies before `now`. It is closed through
    the regular `close_attendance` path with the scheduled end as leave
    time, so the COMPLETED/ABANDONED rule and card issuance apply unchanged.

    Each record is closed in its own transaction. A record someone else
    closed meanwhile counts as `skipped`; any other failure is rolled back,
    reported in `failures` and the batch moves on.
    """
    as_of = ensure_utc(now) if now is not None else utcnow()
    targets = await _stale_records(db, as_of, timedelta(minutes=grace_minutes))

    completed = 0
    abandoned = 0
    skipped = 0
    failures: List[FinalizationFailure] = []

    for record_id, leave_time in targets:
        try:
            record, _ = await tracker.close_attendance(db, record_id=record_id, leave_time=leave_time)
        except InvalidStateError as exc:
            await db.rollback()
            logger.info("Skipping attendance %s during finalization: %s", record_id, exc)
            skipped += 1
            continue
        except (ProofMeetError, SQLAlchemyError) as exc:
            await db.rollback()
            logger.warning("Failed to finalize attendance %s: %s", record_id, exc)
            failures.append(FinalizationFailure(record_id=record_id, error=str(exc)))
            continue

        if record.status == AttendanceStatus.COMPLETED.value:
            completed += 1
        else:
            abandoned += 1

    logger.info(
        "Stale attendance finalization finished: %d total, %d completed, "
        "%d abandoned, %d skipped, %d failed",
        len(targets),
        completed,
        abandoned,
        skipped,
        len(failures),
    )
    return FinalizationSummary(
        as_of=as_of,
        total=len(targets),
        completed=completed,
        abandoned=abandoned,
        skipped=skipped,
        failed=len(failures),
        failures=failures,
    )
