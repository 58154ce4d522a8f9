# proofmeet/services/attendance_tracker.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from proofmeet.core.timeutils import ensure_utc, minutes_between
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.court_card import CourtCard
from proofmeet.models.meeting import Meeting
from proofmeet.models.participant import Participant
from proofmeet.schemas.attendance import AttendanceStatus, VerificationMethod
from proofmeet.services.court_card_issuer import CourtCardIssuer

logger = logging.getLogger(__name__)

# Given the open record and the total attended minutes, return the active minutes.
ActivitySignal = Callable[[AttendanceRecord, float], float]


def full_presence(record: AttendanceRecord, total_minutes: float) -> float:
    """
    Default activity signal: the whole attended span counts as active.
    """
    return total_minutes


def reported_idle(idle_minutes: float) -> ActivitySignal:
    """
    Activity signal built from idle minutes reported by an external monitor.
    """

    def _signal(record: AttendanceRecord, total_minutes: float) -> float:
        return total_minutes - idle_minutes

    return _signal


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class AttendanceTracker:
    """
    Opens and closes attendance records.

    Rules on close
    --------------
    - total  = leave - join (negative spans are rejected)
    - active = activity signal, clamped to [0, total]
    - attendance_percent = active / planned duration, clamped to [0, 1]
    - COMPLETED if active >= minimum_fraction * planned, else ABANDONED

    A COMPLETED record gets its court card in the same transaction, so a
    committed COMPLETED record always has a card.
    """

    def __init__(self, issuer: CourtCardIssuer, minimum_fraction: float = 0.5) -> None:
        if not 0.0 <= minimum_fraction <= 1.0:
            raise ValueError("minimum_fraction must be within [0, 1]")
        self.issuer = issuer
        self.minimum_fraction = minimum_fraction

    async def _find_open_record_id(
        self, db: AsyncSession, participant_id: int, meeting_id: int
    ) -> Optional[int]:
        stmt = select(AttendanceRecord.id).where(
            AttendanceRecord.participant_id == participant_id,
            AttendanceRecord.meeting_id == meeting_id,
            AttendanceRecord.status == AttendanceStatus.IN_PROGRESS.value,
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def open_attendance(
        self,
        db: AsyncSession,
        participant_id: int,
        meeting_id: int,
        join_time: datetime,
        verification_method: VerificationMethod = VerificationMethod.SCREEN_ACTIVITY,
    ) -> AttendanceRecord:
        """
        Record a participant joining a meeting.

        Raises ConflictError if the pair already has an open record; the
        partial unique index turns a lost race into the same error.
        """
        participant = (
            await db.execute(select(Participant).where(Participant.id == participant_id))
        ).scalar_one_or_none()
        if participant is None:
            raise NotFoundError(f"Participant with id={participant_id} not found")
        if not participant.is_active:
            raise InvalidStateError(f"Participant with id={participant_id} is inactive")

        meeting = (
            await db.execute(select(Meeting).where(Meeting.id == meeting_id))
        ).scalar_one_or_none()
        if meeting is None:
            raise NotFoundError(f"Meeting with id={meeting_id} not found")
        if meeting.is_cancelled:
            raise InvalidStateError(f"Meeting with id={meeting_id} is cancelled")

        open_id = await self._find_open_record_id(db, participant_id, meeting_id)
        if open_id is not None:
            raise ConflictError(
                f"Participant {participant_id} already has open attendance "
                f"record {open_id} for meeting {meeting_id}"
            )

        record = AttendanceRecord(
            participant_id=participant_id,
            meeting_id=meeting_id,
            meeting_date=ensure_utc(meeting.scheduled_start).date(),
            join_time=ensure_utc(join_time),
            status=AttendanceStatus.IN_PROGRESS.value,
            verification_method=verification_method.value,
        )
        db.add(record)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise ConflictError(
                f"Participant {participant_id} already has an open attendance "
                f"record for meeting {meeting_id}"
            ) from exc
        await db.refresh(record)

        logger.info(
            "Attendance %s opened: participant %s joined meeting %s",
            record.id,
            participant_id,
            meeting_id,
        )
        return record

    async def close_attendance(
        self,
        db: AsyncSession,
        record_id: int,
        leave_time: datetime,
        activity_signal: ActivitySignal = full_presence,
    ) -> Tuple[AttendanceRecord, Optional[CourtCard]]:
        """
        Record a participant leaving and finalize the attendance record.

        The IN_PROGRESS -> COMPLETED/ABANDONED transition is a conditional
        UPDATE; when two closes race, the loser affects no row and gets
        InvalidStateError, so at most one card is ever issued per record.
        """
        record = (
            await db.execute(select(AttendanceRecord).where(AttendanceRecord.id == record_id))
        ).scalar_one_or_none()
        if record is None:
            raise NotFoundError(f"Attendance record with id={record_id} not found")
        if record.status != AttendanceStatus.IN_PROGRESS.value:
            raise InvalidStateError(
                f"Attendance record {record_id} is already {record.status}"
            )

        meeting = (
            await db.execute(select(Meeting).where(Meeting.id == record.meeting_id))
        ).scalar_one()
        planned = float(meeting.planned_duration_minutes or 0)
        if planned <= 0:
            raise InvalidInputError(
                f"Meeting {meeting.id} has no positive planned duration"
            )

        leave = ensure_utc(leave_time)
        total = minutes_between(record.join_time, leave)
        if total < 0:
            raise InvalidInputError(
                f"Leave time {leave.isoformat()} is before join time "
                f"{ensure_utc(record.join_time).isoformat()}"
            )

        active = _clamp(float(activity_signal(record, total)), 0.0, total)
        idle = total - active
        completed = active >= self.minimum_fraction * planned
        status = AttendanceStatus.COMPLETED if completed else AttendanceStatus.ABANDONED
        percent = round(_clamp(active / planned, 0.0, 1.0), 4) if completed else None

        try:
            result = await db.execute(
                update(AttendanceRecord)
                .where(
                    AttendanceRecord.id == record_id,
                    AttendanceRecord.status == AttendanceStatus.IN_PROGRESS.value,
                )
                .values(
                    leave_time=leave,
                    total_duration_minutes=round(total, 4),
                    active_duration_minutes=round(active, 4),
                    idle_duration_minutes=round(idle, 4),
                    attendance_percent=percent,
                    status=status.value,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError(
                    f"Attendance record {record_id} was closed concurrently"
                )

            await db.refresh(record)

            card: Optional[CourtCard] = None
            if status is AttendanceStatus.COMPLETED:
                card = await self.issuer.issue(db, record)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Attendance %s closed as %s (active %.2f of %.0f planned minutes)",
            record_id,
            status.value,
            active,
            planned,
        )
        return record, card
