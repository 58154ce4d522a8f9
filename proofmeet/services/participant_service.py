# proofmeet/services/participant_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.errors import ConflictError, InvalidStateError, NotFoundError
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.participant import Participant
from proofmeet.schemas.participant import CourtRepAssignment, ParticipantCreate

logger = logging.getLogger(__name__)


async def enroll_participant(
    db: AsyncSession,
    payload: ParticipantCreate,
    default_period_days: int,
) -> Participant:
    """
    Enroll a participant. Emails are unique across participants.
    """
    existing = await db.execute(select(Participant).where(Participant.email == payload.email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Participant with email '{payload.email}' already exists.")

    participant = Participant(
        full_name=payload.full_name,
        email=payload.email,
        case_number=payload.case_number,
        court_rep_id=payload.court_rep_id,
        court_rep_name=payload.court_rep_name,
        court_rep_email=payload.court_rep_email,
        required_sessions=payload.required_sessions,
        period_days=payload.period_days or default_period_days,
        is_active=True,
    )
    db.add(participant)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f"Participant with email '{payload.email}' already exists.") from exc
    await db.refresh(participant)

    logger.info("Participant %s enrolled under court rep %s", participant.id, participant.court_rep_id)
    return participant


async def get_participant(db: AsyncSession, participant_id: int) -> Participant:
    result = await db.execute(select(Participant).where(Participant.id == participant_id))
    participant = result.scalar_one_or_none()
    if participant is None:
        raise NotFoundError(f"Participant with id={participant_id} not found")
    return participant


async def list_participants(
    db: AsyncSession,
    court_rep_id: Optional[str] = None,
    only_active: Optional[bool] = None,
) -> List[Participant]:
    stmt = select(Participant)
    if court_rep_id is not None:
        stmt = stmt.where(Participant.court_rep_id == court_rep_id)
    if only_active is True:
        stmt = stmt.where(Participant.is_active.is_(True))
    elif only_active is False:
        stmt = stmt.where(Participant.is_active.is_(False))

    result = await db.execute(stmt.order_by(Participant.id.asc()))
    return list(result.scalars().all())


async def assign_court_rep(
    db: AsyncSession,
    participant_id: int,
    assignment: CourtRepAssignment,
) -> Participant:
    """
    Move a participant to another supervising court representative.
    """
    participant = await get_participant(db, participant_id)
    previous = participant.court_rep_id

    participant.court_rep_id = assignment.court_rep_id
    participant.court_rep_name = assignment.court_rep_name
    participant.court_rep_email = assignment.court_rep_email
    await db.commit()
    await db.refresh(participant)

    logger.info(
        "Participant %s reassigned from court rep %s to %s",
        participant_id,
        previous,
        assignment.court_rep_id,
    )
    return participant


async def deactivate_participant(db: AsyncSession, participant_id: int) -> Participant:
    """
    Retire a participant without deleting any history.
    """
    participant = await get_participant(db, participant_id)
    if not participant.is_active:
        raise InvalidStateError(f"Participant with id={participant_id} is already inactive")

    participant.is_active = False
    await db.commit()
    await db.refresh(participant)
    return participant


async def list_attendance(db: AsyncSession, participant_id: int) -> List[AttendanceRecord]:
    await get_participant(db, participant_id)
    result = await db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.participant_id == participant_id)
        .order_by(AttendanceRecord.join_time.asc(), AttendanceRecord.id.asc())
    )
    return list(result.scalars().all())
