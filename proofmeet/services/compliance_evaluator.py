# proofmeet/services/compliance_evaluator.py
from __future__ import annotations

from datetime import date as date_type, datetime, timedelta
from typing import Iterable, List, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.errors import InvalidInputError, NotFoundError
from proofmeet.core.timeutils import ensure_utc
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.participant import Participant
from proofmeet.schemas.attendance import AttendanceStatus
from proofmeet.schemas.compliance import (
    ComplianceHistory,
    ComplianceSnapshot,
    CourtRepOverview,
    CourtRepParticipantRow,
)

# Monday. With 7-day periods every window is an ISO week.
PERIOD_EPOCH = date_type(1970, 1, 5)


def period_bounds(as_of: datetime, period_days: int) -> Tuple[date_type, date_type]:
    """
    Return the inclusive (start, end) dates of the period containing `as_of`.

    Periods are consecutive `period_days`-long windows counted from a fixed
    epoch, so the boundaries depend only on `as_of` and the period length.
    """
    if period_days < 1:
        raise InvalidInputError("period_days must be at least 1")
    day = ensure_utc(as_of).date()
    index = (day - PERIOD_EPOCH).days // period_days
    start = PERIOD_EPOCH + timedelta(days=index * period_days)
    return start, start + timedelta(days=period_days - 1)


def _snapshot_for_period(
    participant: Participant,
    records: Sequence[AttendanceRecord],
    start: date_type,
    end: date_type,
) -> ComplianceSnapshot:
    counted = [
        r
        for r in records
        if r.status == AttendanceStatus.COMPLETED.value
        and r.meeting_date is not None
        and start <= r.meeting_date <= end
    ]
    # Sort so float sums do not depend on input order.
    counted.sort(key=lambda r: (r.meeting_date, r.id or 0))

    completed_count = len(counted)
    total_active = sum(float(r.active_duration_minutes or 0.0) for r in counted)
    if completed_count > 0:
        average = sum(float(r.attendance_percent or 0.0) for r in counted) / completed_count
    else:
        average = 0.0

    return ComplianceSnapshot(
        participant_id=participant.id,
        period_start=start,
        period_end=end,
        required_sessions=participant.required_sessions,
        completed_count=completed_count,
        total_active_minutes=round(total_active, 4),
        average_attendance_percent=round(average, 4),
        meets_requirement=completed_count >= participant.required_sessions,
    )


def evaluate(
    participant: Participant,
    records: Iterable[AttendanceRecord],
    as_of: datetime,
) -> ComplianceSnapshot:
    """
    Compute the participant's compliance for the period containing `as_of`.

    Pure function of its arguments: only COMPLETED records whose meeting date
    falls in the period are counted; IN_PROGRESS and ABANDONED records are
    ignored. Empty history yields zero counts and meets_requirement only when
    nothing is required.
    """
    start, end = period_bounds(as_of, participant.period_days)
    return _snapshot_for_period(participant, list(records), start, end)


def evaluate_history(
    participant: Participant,
    records: Iterable[AttendanceRecord],
    as_of: datetime,
    periods: int,
) -> List[ComplianceSnapshot]:
    """
    Snapshots for the `periods` most recent periods up to `as_of`, newest first.
    """
    if periods < 1:
        raise InvalidInputError("periods must be at least 1")

    materialized = list(records)
    start, end = period_bounds(as_of, participant.period_days)
    step = timedelta(days=participant.period_days)

    snapshots: List[ComplianceSnapshot] = []
    for offset in range(periods):
        snapshots.append(
            _snapshot_for_period(
                participant,
                materialized,
                start - offset * step,
                end - offset * step,
            )
        )
    return snapshots


async def _load_participant(db: AsyncSession, participant_id: int) -> Participant:
    result = await db.execute(select(Participant).where(Participant.id == participant_id))
    participant = result.scalar_one_or_none()
    if participant is None:
        raise NotFoundError(f"Participant with id={participant_id} not found")
    return participant


async def _load_completed_records(
    db: AsyncSession,
    participant_ids: Sequence[int],
    since: date_type,
    until: date_type,
) -> List[AttendanceRecord]:
    if not participant_ids:
        return []
    stmt = (
        select(AttendanceRecord)
        .where(
            AttendanceRecord.participant_id.in_(participant_ids),
            AttendanceRecord.status == AttendanceStatus.COMPLETED.value,
            AttendanceRecord.meeting_date >= since,
            AttendanceRecord.meeting_date <= until,
        )
        .order_by(AttendanceRecord.meeting_date, AttendanceRecord.id)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def evaluate_participant(
    db: AsyncSession,
    participant_id: int,
    as_of: datetime,
    periods: int = 1,
) -> ComplianceHistory:
    """
    Load a participant's attendance history and evaluate the most recent periods.
    """
    if periods < 1:
        raise InvalidInputError("periods must be at least 1")

    participant = await _load_participant(db, participant_id)
    start, end = period_bounds(as_of, participant.period_days)
    since = start - timedelta(days=participant.period_days * (periods - 1))

    records = await _load_completed_records(db, [participant.id], since, end)
    return ComplianceHistory(
        participant_id=participant.id,
        snapshots=evaluate_history(participant, records, as_of, periods),
    )


async def build_court_rep_overview(
    db: AsyncSession,
    court_rep_id: str,
    as_of: datetime,
) -> CourtRepOverview:
    """
    Current-period compliance for every active participant of a court rep.
    """
    result = await db.execute(
        select(Participant)
        .where(
            Participant.court_rep_id == court_rep_id,
            Participant.is_active.is_(True),
        )
        .order_by(Participant.id)
    )
    participants = list(result.scalars().all())

    rows: List[CourtRepParticipantRow] = []
    if participants:
        bounds = {p.id: period_bounds(as_of, p.period_days) for p in participants}
        since = min(start for start, _ in bounds.values())
        until = max(end for _, end in bounds.values())
        records = await _load_completed_records(db, [p.id for p in participants], since, until)

        by_participant: dict[int, List[AttendanceRecord]] = {p.id: [] for p in participants}
        for record in records:
            by_participant[record.participant_id].append(record)

        for participant in participants:
            rows.append(
                CourtRepParticipantRow(
                    participant_id=participant.id,
                    full_name=participant.full_name,
                    case_number=participant.case_number,
                    current=evaluate(participant, by_participant[participant.id], as_of),
                )
            )

    compliant = sum(1 for row in rows if row.current.meets_requirement)
    return CourtRepOverview(
        court_rep_id=court_rep_id,
        participants=rows,
        compliant_count=compliant,
        non_compliant_count=len(rows) - compliant,
    )
