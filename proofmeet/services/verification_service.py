# proofmeet/services/verification_service.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.errors import InvalidInputError, NotFoundError
from proofmeet.core.timeutils import ensure_utc, utcnow
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.court_card import CardAuditEvent, CourtCard
from proofmeet.models.meeting import Meeting
from proofmeet.models.participant import Participant
from proofmeet.schemas.court_card import (
    CardAuditAction,
    CardAuditEventRead,
    CardValidationStatus,
)
from proofmeet.schemas.verification import VerificationResult
from proofmeet.services.court_card_issuer import compute_card_hash, is_well_formed_card_id

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_INTERVAL_MINUTES = 60.0


async def _verification_audit_due(
    db: AsyncSession,
    card_id: str,
    status: CardValidationStatus,
    now: datetime,
    interval_minutes: float,
) -> bool:
    """
    True when a VERIFIED audit event should be written for this lookup.

    Repeated lookups only bump the card's counters; an event is written for
    the first lookup, whenever the result differs from the last recorded
    one, and otherwise at most once per interval.
    """
    last = (
        await db.execute(
            select(CardAuditEvent)
            .where(
                CardAuditEvent.card_id == card_id,
                CardAuditEvent.action == CardAuditAction.VERIFIED.value,
            )
            .order_by(CardAuditEvent.occurred_at.desc(), CardAuditEvent.id.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if last is None:
        return True
    if json.loads(last.details or "{}").get("result") != status.value:
        return True
    return now - ensure_utc(last.occurred_at) >= timedelta(minutes=interval_minutes)


async def verify(
    db: AsyncSession,
    card_id: str,
    audit_interval_minutes: float = DEFAULT_AUDIT_INTERVAL_MINUTES,
) -> VerificationResult:
    """
    Publicly verify a court card.

    The sealed hash is compared against a hash freshly computed from the
    linked attendance record on every call; nothing is cached. A mismatch is
    reported as FAILED rather than raised, since a tampered card is an
    expected outcome for the person scanning it.

    Every lookup increments the card's verification counter; VERIFIED audit
    events are throttled per card by `audit_interval_minutes`.

    Raises
    ------
    InvalidInputError
        `card_id` is not a well-formed card identifier.
    NotFoundError
        No card with that identifier exists.
    """
    if not is_well_formed_card_id(card_id):
        raise InvalidInputError(f"'{card_id}' is not a valid court card identifier")

    card = (
        await db.execute(select(CourtCard).where(CourtCard.id == card_id))
    ).scalar_one_or_none()
    if card is None:
        raise NotFoundError(f"Court card {card_id} not found")

    record = (
        await db.execute(
            select(AttendanceRecord).where(AttendanceRecord.id == card.attendance_record_id)
        )
    ).scalar_one_or_none()

    participant = None
    meeting = None
    if record is not None:
        participant = (
            await db.execute(select(Participant).where(Participant.id == record.participant_id))
        ).scalar_one_or_none()
        meeting = (
            await db.execute(select(Meeting).where(Meeting.id == record.meeting_id))
        ).scalar_one_or_none()

    intact = record is not None and compute_card_hash(record) == card.card_hash
    status = CardValidationStatus.PASSED if intact else CardValidationStatus.FAILED
    now = utcnow()

    if not intact and card.validation_status != CardValidationStatus.FAILED.value:
        card.validation_status = CardValidationStatus.FAILED.value
        db.add(
            CardAuditEvent(
                card_id=card.id,
                action=CardAuditAction.TAMPERING_DETECTED.value,
                occurred_at=now,
                details=json.dumps({"record_present": record is not None}),
            )
        )
        logger.warning("Court card %s failed integrity verification", card.id)

    card.verification_count = (card.verification_count or 0) + 1
    card.last_verified_at = now

    if await _verification_audit_due(db, card.id, status, now, audit_interval_minutes):
        db.add(
            CardAuditEvent(
                card_id=card.id,
                action=CardAuditAction.VERIFIED.value,
                occurred_at=now,
                details=json.dumps({"result": status.value}),
            )
        )
    await db.commit()

    reissues = await db.execute(
        select(CardAuditEvent)
        .where(
            CardAuditEvent.card_id == card.id,
            CardAuditEvent.action == CardAuditAction.REISSUED.value,
        )
        .order_by(CardAuditEvent.occurred_at, CardAuditEvent.id)
    )

    return VerificationResult(
        card_id=card.id,
        validation_status=status,
        participant_name=participant.full_name if participant else None,
        case_number=participant.case_number if participant else None,
        court_rep_name=participant.court_rep_name if participant else None,
        meeting_topic=meeting.topic if meeting else None,
        meeting_date=record.meeting_date if record else None,
        join_time=record.join_time if record else None,
        leave_time=record.leave_time if record else None,
        total_duration_minutes=record.total_duration_minutes if record else None,
        active_duration_minutes=record.active_duration_minutes if record else None,
        attendance_percent=record.attendance_percent if record else None,
        verification_url=card.verification_url,
        issued_at=card.issued_at,
        reissue_count=card.reissue_count,
        verification_count=card.verification_count,
        reissue_history=[
            CardAuditEventRead.model_validate(event) for event in reissues.scalars().all()
        ],
    )
