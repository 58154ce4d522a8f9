# proofmeet/api/routes/participants.py
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.config import Settings, get_settings
from proofmeet.core.timeutils import utcnow
from proofmeet.db.session import get_db
from proofmeet.schemas.attendance import AttendanceRecordRead
from proofmeet.schemas.compliance import ComplianceHistory
from proofmeet.schemas.participant import (
    CourtRepAssignment,
    ParticipantCreate,
    ParticipantRead,
)
from proofmeet.services import participant_service
from proofmeet.services.compliance_evaluator import evaluate_participant

router = APIRouter(prefix="/participants", tags=["Participants"])


@router.post(
    "",
    response_model=ParticipantRead,
    status_code=HTTPStatus.CREATED,
    summary="Enroll a participant",
    description=(
        "Register a participant under a court representative together with "
        "their compliance window (`required_sessions` per `period_days`).\n\n"
        "Emails are unique; enrolling the same email twice returns 409."
    ),
    responses={409: {"description": "A participant with this email already exists."}},
)
async def create_participant(
    payload: ParticipantCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ParticipantRead:
    participant = await participant_service.enroll_participant(
        db, payload, default_period_days=settings.DEFAULT_PERIOD_DAYS
    )
    return ParticipantRead.model_validate(participant)


@router.get(
    "",
    response_model=list[ParticipantRead],
    summary="List participants",
)
async def list_participants(
    court_rep_id: str | None = Query(
        default=None,
        description="Only participants supervised by this court representative.",
    ),
    only_active: bool | None = Query(
        default=None,
        description=(
            "If true, only active participants; if false, only deactivated ones. "
            "If omitted, all."
        ),
    ),
    db: AsyncSession = Depends(get_db),
) -> list[ParticipantRead]:
    participants = await participant_service.list_participants(
        db, court_rep_id=court_rep_id, only_active=only_active
    )
    return [ParticipantRead.model_validate(p) for p in participants]


@router.get(
    "/{participant_id}",
    response_model=ParticipantRead,
    summary="Get participant by ID",
    responses={404: {"description": "No participant exists with the given ID."}},
)
async def get_participant(
    participant_id: int = Path(..., ge=1, description="Numeric ID of the participant."),
    db: AsyncSession = Depends(get_db),
) -> ParticipantRead:
    participant = await participant_service.get_participant(db, participant_id)
    return ParticipantRead.model_validate(participant)


@router.patch(
    "/{participant_id}/court-rep",
    response_model=ParticipantRead,
    summary="Reassign the supervising court representative",
    description="The court-rep assignment is the only participant field that changes after enrollment.",
)
async def reassign_court_rep(
    payload: CourtRepAssignment,
    participant_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> ParticipantRead:
    participant = await participant_service.assign_court_rep(db, participant_id, payload)
    return ParticipantRead.model_validate(participant)


@router.post(
    "/{participant_id}/deactivate",
    response_model=ParticipantRead,
    summary="Deactivate a participant",
    description="Participants are never deleted; deactivation keeps their history for audit.",
)
async def deactivate_participant(
    participant_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> ParticipantRead:
    participant = await participant_service.deactivate_participant(db, participant_id)
    return ParticipantRead.model_validate(participant)


@router.get(
    "/{participant_id}/attendance",
    response_model=list[AttendanceRecordRead],
    summary="List a participant's attendance records",
)
async def list_participant_attendance(
    participant_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> list[AttendanceRecordRead]:
    records = await participant_service.list_attendance(db, participant_id)
    return [AttendanceRecordRead.model_validate(r) for r in records]


@router.get(
    "/{participant_id}/compliance",
    response_model=ComplianceHistory,
    summary="Compliance snapshots for a participant",
    description=(
        "Evaluate the participant's compliance for the period containing `as_of` "
        "(defaults to now) and, with `periods > 1`, the preceding periods.\n\n"
        "Only COMPLETED attendance counts toward the requirement."
    ),
)
async def get_participant_compliance(
    participant_id: int = Path(..., ge=1),
    as_of: datetime | None = Query(default=None, description="Reference time (ISO 8601)."),
    periods: int = Query(default=1, ge=1, le=52, description="Number of periods to return."),
    db: AsyncSession = Depends(get_db),
) -> ComplianceHistory:
    return await evaluate_participant(
        db,
        participant_id=participant_id,
        as_of=as_of or utcnow(),
        periods=periods,
    )
